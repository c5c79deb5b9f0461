"""
Senator votes processor
"""

from typing import Any, Dict
from core.config import settings
from ingestion.extractors.senado import current_legislature, fetch_votes
from ingestion.processors.senadores import SenatorScopedProcessor
from ingestion.transformers.votacoes import transform_votes
from schemas.etl import ExtractionResult, ValidationResult


class VotacoesProcessor(SenatorScopedProcessor):
    """
    Votes of every senator in scope for one legislature.

    Without a configured legislature the current one is used.
    """

    name = "votacoes"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.legislature = self.config.legislature or current_legislature()

    def validate(self) -> ValidationResult:
        result = super().validate()
        if not settings.LEGISLATURA_MIN <= self.legislature <= settings.LEGISLATURA_MAX:
            result.add_error(f"Votes require a valid legislature, got {self.legislature}")
        return result

    async def extract(self) -> ExtractionResult:
        codes = await self.senator_codes(self.legislature)
        result = await self.fetch_many(codes, self._fetch_votes, label="senator votes")
        result.metadata["legislatura"] = self.legislature
        return result

    async def _fetch_votes(self, code: str) -> Dict[str, Any]:
        votes = await fetch_votes(
            self.client,
            code,
            legislature=self.legislature,
            period_start=self.config.period_start,
            period_end=self.config.period_end
        )
        return {"codigo": code, **votes}

    def transform_item(self, item: Dict[str, Any]):
        return transform_votes(item, self.legislature)
