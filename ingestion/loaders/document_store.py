"""
Document store backends and addressing.

A document address is a slash-delimited path alternating collection and
document segments (``collection/doc/collection/doc``). The last segment is
the document id and everything before it is the collection path.

Backends:
    SQLDocumentStore: ``documents`` table on Postgres (live store) or
                      SQLite (emulator), idempotent upsert by path
    LocalFileStore:   JSON files under the export directory
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine
from core.database import get_engine, get_session_maker, resolve_store_url
from core.exceptions import ConfigurationError
from models.base import Base, Destination
from models.document import StoredDocument
import logging

logger = logging.getLogger(__name__)

# Hard per-commit entry limit of every backend
MAX_BATCH_SIZE = 500


def parse_document_path(path: str) -> Tuple[str, str]:
    """
    Split a document path into (collection_path, document_id).

    Example:
        parse_document_path("a/b/c/1") -> ("a/b/c", "1")

    Raises:
        ConfigurationError: Odd segment count, empty or relative segment
    """
    segments = path.split("/") if path else []

    if not segments or any(not s for s in segments):
        raise ConfigurationError(
            f"Invalid document path '{path}': empty segment",
            context={"path": path}
        )

    if any(s in (".", "..") for s in segments):
        raise ConfigurationError(
            f"Invalid document path '{path}': relative segment",
            context={"path": path}
        )

    if len(segments) % 2 != 0:
        raise ConfigurationError(
            f"Invalid document path '{path}': expected an even number of segments, got {len(segments)}",
            context={"path": path, "segments": len(segments)}
        )

    return "/".join(segments[:-1]), segments[-1]


@dataclass(frozen=True)
class BatchEntry:
    """One staged upsert"""
    collection_path: str
    document_id: str
    payload: Dict[str, Any] = field(hash=False)

    def __post_init__(self):
        if "/" in self.document_id:
            raise ConfigurationError(
                f"Invalid document id '{self.document_id}': contains '/'",
                context={"collection_path": self.collection_path, "document_id": self.document_id}
            )
        parse_document_path(self.path)

    @property
    def path(self) -> str:
        return f"{self.collection_path}/{self.document_id}"

    @classmethod
    def from_path(cls, path: str, payload: Dict[str, Any]) -> "BatchEntry":
        collection_path, document_id = parse_document_path(path)
        return cls(collection_path, document_id, payload)


def _latest_by_path(entries: Sequence[BatchEntry]) -> List[BatchEntry]:
    """Collapse repeated addresses inside one batch, keeping the last payload."""
    latest: Dict[str, BatchEntry] = {}
    for entry in entries:
        latest.pop(entry.path, None)
        latest[entry.path] = entry
    return list(latest.values())


class DocumentStore(ABC):
    """Destination for committed write-batches"""

    destination: Destination
    max_batch_size: int = MAX_BATCH_SIZE

    @abstractmethod
    async def commit(self, entries: Sequence[BatchEntry]) -> None:
        """Write every entry or none of them."""
        pass

    @abstractmethod
    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        """Payload stored at ``path``, or None"""
        pass

    async def close(self):
        pass


class SQLDocumentStore(DocumentStore):
    """
    Store documents in the ``documents`` table.

    Each commit is one transaction running a single multi-row
    ``INSERT ... ON CONFLICT (path) DO UPDATE``, so writing the same path
    again replaces the payload.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        destination: Destination = Destination.LIVE_STORE,
        auto_create_schema: bool = False
    ):
        dialect = engine.dialect.name
        if dialect == "postgresql":
            self._insert = postgresql.insert
        elif dialect == "sqlite":
            self._insert = sqlite.insert
        else:
            raise ConfigurationError(
                f"Unsupported store dialect: {dialect}",
                context={"destination": destination.value}
            )
        self.engine = engine
        self.destination = destination
        self.session_maker = get_session_maker(engine)
        self._schema_pending = auto_create_schema

    async def create_schema(self):
        """Create the documents table if missing"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def commit(self, entries: Sequence[BatchEntry]) -> None:
        if not entries:
            return

        if self._schema_pending:
            await self.create_schema()
            self._schema_pending = False

        now = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = [
            {
                "path": entry.path,
                "collection_path": entry.collection_path,
                "document_id": entry.document_id,
                "payload": entry.payload,
                "updated_at": now,
            }
            for entry in _latest_by_path(entries)
        ]

        stmt = self._insert(StoredDocument).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["path"],
            set_={
                "collection_path": stmt.excluded.collection_path,
                "document_id": stmt.excluded.document_id,
                "payload": stmt.excluded.payload,
                "updated_at": stmt.excluded.updated_at,
            }
        )

        async with self.session_maker() as session:
            async with session.begin():
                await session.execute(stmt)

        logger.debug(f"Committed {len(rows)} documents to {self.destination.value}")

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(StoredDocument.payload).where(StoredDocument.path == path)
            )
            return result.scalar_one_or_none()

    async def count(self, collection_path: Optional[str] = None) -> int:
        """Number of stored documents, optionally within one collection"""
        async with self.session_maker() as session:
            stmt = select(StoredDocument.path)
            if collection_path is not None:
                stmt = stmt.where(StoredDocument.collection_path == collection_path)
            result = await session.execute(stmt)
            return len(result.scalars().all())


class LocalFileStore(DocumentStore):
    """
    Export documents as ``<base_dir>/<collection_path>/<document_id>.json``.

    A commit writes every document to a temporary file first and only then
    renames them into place, so a failure while writing leaves no partial
    batch behind.
    """

    destination = Destination.LOCAL_FILE

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _target(self, collection_path: str, document_id: str) -> Path:
        return self.base_dir / collection_path / f"{document_id}.json"

    async def commit(self, entries: Sequence[BatchEntry]) -> None:
        if entries:
            await asyncio.to_thread(self._write_batch, _latest_by_path(entries))

    def _write_batch(self, entries: List[BatchEntry]):
        staged: List[Tuple[Path, Path]] = []
        try:
            for entry in entries:
                target = self._target(entry.collection_path, entry.document_id)
                target.parent.mkdir(parents=True, exist_ok=True)
                tmp = target.with_name(f".{target.name}.{os.getpid()}.tmp")
                tmp.write_text(
                    json.dumps(entry.payload, ensure_ascii=False, indent=2, default=str),
                    encoding="utf-8"
                )
                staged.append((tmp, target))
        except Exception:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise

        for tmp, target in staged:
            os.replace(tmp, target)

        logger.debug(f"Exported {len(staged)} documents under {self.base_dir}")

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        collection_path, document_id = parse_document_path(path)
        target = self._target(collection_path, document_id)
        if not target.exists():
            return None
        return json.loads(target.read_text(encoding="utf-8"))


def create_document_store(destination: Destination, export_dir: str) -> DocumentStore:
    """
    Build the store for a destination.

    The emulator URL is resolved (and exported to the environment) before
    its engine is created.
    """
    destination = Destination(destination)

    if destination == Destination.LOCAL_FILE:
        return LocalFileStore(export_dir)

    engine = get_engine(resolve_store_url(destination.value))
    # The emulator starts empty; the live store schema is managed by scripts/init_db.py
    return SQLDocumentStore(
        engine,
        destination,
        auto_create_schema=destination == Destination.EMULATOR
    )
