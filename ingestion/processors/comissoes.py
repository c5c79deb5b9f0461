"""
Committees processor
"""

from typing import Any, Dict
from ingestion.base import ETLProcessor
from ingestion.extractors.senado import fetch_committee_members, list_committees
from ingestion.transformers.comissoes import transform_committee
from ingestion.transformers.normalize import clean_str
from schemas.etl import ExtractionResult
import logging

logger = logging.getLogger(__name__)


class ComissoesProcessor(ETLProcessor):
    """Every Senate committee with its current members"""

    name = "comissoes"

    async def extract(self) -> ExtractionResult:
        committees = await self.call(list_committees, self.client, label="list committees")

        self._committees: Dict[str, Dict[str, Any]] = {}
        for committee in committees:
            code = clean_str(committee.get("Codigo") or committee.get("CodigoColegiado")) if isinstance(committee, dict) else ""
            if not code:
                logger.warning(f"[{self.name}] Skipping committee without code: {committee!r}")
                continue
            self._committees[code] = committee

        codes = self.apply_limit(list(self._committees))
        logger.info(f"[{self.name}] {len(codes)} committees in scope (listed {len(committees)})")

        return await self.fetch_many(codes, self._fetch_with_members, label="committee members")

    async def _fetch_with_members(self, code: str) -> Dict[str, Any]:
        members = await fetch_committee_members(self.client, code)
        return {"codigo": code, "comissao": self._committees[code], "membros": members}

    def transform_item(self, item: Dict[str, Any]):
        return transform_committee(item)
