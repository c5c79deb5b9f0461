"""
Authored legislative matters processor
"""

from typing import Any, Dict
from ingestion.extractors.senado import fetch_authorships
from ingestion.processors.senadores import SenatorScopedProcessor
from ingestion.transformers.materias import transform_authorships
from schemas.etl import ExtractionResult


class MateriasProcessor(SenatorScopedProcessor):
    """Matters authored by every senator in scope"""

    name = "materias"

    async def extract(self) -> ExtractionResult:
        codes = await self.senator_codes(self.config.legislature)
        return await self.fetch_many(codes, self._fetch_authorships, label="senator authorships")

    async def _fetch_authorships(self, code: str) -> Dict[str, Any]:
        authorships = await fetch_authorships(self.client, code)
        return {"codigo": code, **authorships}

    def transform_item(self, item: Dict[str, Any]):
        return transform_authorships(item)
