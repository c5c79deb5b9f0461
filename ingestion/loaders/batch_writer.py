"""
Size-bounded write-batch accumulator
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from core.exceptions import (
    BatchOverflowError,
    CommitError,
    DocumentTooLargeError,
    RunCancelledError,
)
from ingestion.cancellation import CancellationToken
from ingestion.loaders.document_store import BatchEntry, DocumentStore, parse_document_path
import logging

logger = logging.getLogger(__name__)


def document_size(payload: Dict[str, Any]) -> int:
    """Serialized size of a payload in bytes"""
    return len(json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8"))


@dataclass
class CommitOutcome:
    succeeded: int = 0
    failed: int = 0


class BatchWriter:
    """
    Stage upserts and flush them as one write-batch.

    The buffer holds at most ``max_entries`` entries; callers commit at that
    boundary. commit_and_reset() is all-or-nothing for the staged chunk only
    and always leaves the buffer empty, whether the commit succeeded or not.

    Attributes:
        store: Destination of the commits
        max_entries: Staged-entry limit (at most the store's hard limit)
        max_document_bytes: Per-document size limit
        cancel_token: Checked before each commit
    """

    def __init__(
        self,
        store: DocumentStore,
        max_entries: Optional[int] = None,
        max_document_bytes: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None
    ):
        limit = store.max_batch_size if max_entries is None else max_entries
        if limit < 1 or limit > store.max_batch_size:
            raise ValueError(
                f"Batch size must be between 1 and {store.max_batch_size}, got {limit}"
            )
        self.store = store
        self.max_entries = limit
        self.max_document_bytes = max_document_bytes
        self.cancel_token = cancel_token
        self._entries: List[BatchEntry] = []

    @property
    def pending(self) -> int:
        return len(self._entries)

    @property
    def full(self) -> bool:
        return len(self._entries) >= self.max_entries

    def set(self, collection_path: str, document_id: str, payload: Dict[str, Any]) -> BatchEntry:
        """
        Stage one upsert.

        Raises:
            ConfigurationError: The resulting address is not a valid document path
            BatchOverflowError: The buffer is already at its limit
            DocumentTooLargeError: The payload exceeds ``max_document_bytes``
        """
        path = f"{collection_path}/{document_id}"
        parse_document_path(path)

        if self.full:
            raise BatchOverflowError(
                "Write-batch is full, commit before staging more entries",
                context={"limit": self.max_entries, "path": path}
            )

        if self.max_document_bytes is not None:
            size = document_size(payload)
            if size > self.max_document_bytes:
                raise DocumentTooLargeError(
                    f"Document {path} is {size} bytes (limit {self.max_document_bytes})",
                    context={"path": path, "size": size, "limit": self.max_document_bytes}
                )

        entry = BatchEntry(collection_path, document_id, payload)
        self._entries.append(entry)
        return entry

    async def commit_and_reset(self) -> CommitOutcome:
        """
        Commit every staged entry as one write-batch and clear the buffer.

        Raises:
            CommitError: The store rejected the batch (nothing from it is written)
            RunCancelledError: The run was cancelled before the commit
        """
        entries, self._entries = self._entries, []

        if not entries:
            return CommitOutcome()

        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled("commit")

        try:
            await self.store.commit(entries)
        except RunCancelledError:
            raise
        except Exception as e:
            raise CommitError(
                f"Write-batch of {len(entries)} documents failed",
                context={
                    "destination": self.store.destination.value,
                    "batch_size": len(entries),
                    "first_path": entries[0].path,
                },
                original_exception=e
            )

        logger.debug(f"Committed write-batch of {len(entries)} documents")
        return CommitOutcome(succeeded=len(entries))
