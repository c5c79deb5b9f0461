"""
Senator profiles processor
"""

from typing import Any, Dict, List, Optional
from ingestion.base import ETLProcessor
from ingestion.extractors.senado import fetch_senator, list_senators
from ingestion.transformers.normalize import clean_str, get_nested
from ingestion.transformers.senadores import transform_senator
from schemas.etl import ExtractionResult
import logging

logger = logging.getLogger(__name__)


class SenatorScopedProcessor(ETLProcessor):
    """Base for processors that fan out one request per senator."""

    def _matches_filters(self, senator: Dict[str, Any]) -> bool:
        identificacao = senator.get("IdentificacaoParlamentar") or {}
        if self.config.party and clean_str(identificacao.get("SiglaPartidoParlamentar")).upper() != self.config.party.upper():
            return False
        if self.config.state and clean_str(identificacao.get("UfParlamentar")).upper() != self.config.state:
            return False
        return True

    async def senator_codes(self, legislature: Optional[int] = None) -> List[str]:
        """
        Codes of the senators in scope.

        A configured senator code short-circuits the listing. Otherwise the
        list for ``legislature`` (or the senators in office) is filtered by
        party and state, de-duplicated and truncated to the run limit.
        """
        if self.config.senator:
            return [self.config.senator]

        senators = await self.call(list_senators, self.client, legislature, label="list senators")
        codes = [
            clean_str(get_nested(s, "IdentificacaoParlamentar", "CodigoParlamentar"))
            for s in senators
            if isinstance(s, dict) and self._matches_filters(s)
        ]
        codes = self.apply_limit(list(dict.fromkeys(c for c in codes if c)))

        logger.info(f"[{self.name}] {len(codes)} senators in scope (listed {len(senators)})")
        return codes

    def item_key(self, item: Any, index: int) -> str:
        if isinstance(item, dict):
            code = item.get("codigo") or get_nested(item, "IdentificacaoParlamentar", "CodigoParlamentar")
            if code:
                return str(code)
        return super().item_key(item, index)


class SenadoresProcessor(SenatorScopedProcessor):
    """Full profile of every senator in scope"""

    name = "senadores"

    async def extract(self) -> ExtractionResult:
        codes = await self.senator_codes(self.config.legislature)
        return await self.fetch_many(codes, self._fetch_profile, label="senator profiles")

    async def _fetch_profile(self, code: str) -> Dict[str, Any]:
        return await fetch_senator(self.client, code)

    def transform_item(self, item: Dict[str, Any]):
        return transform_senator(item, self.config.legislature)
