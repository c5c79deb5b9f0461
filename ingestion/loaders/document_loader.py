"""
Load transformed documents into a document store in write-batches
"""

from typing import Callable, List, Optional, Sequence, Tuple
from core.exceptions import CommitError, DocumentTooLargeError
from ingestion.cancellation import CancellationToken
from ingestion.loaders.batch_writer import BatchWriter
from ingestion.loaders.document_store import DocumentStore, parse_document_path
from models.base import DetailStatus
from schemas.etl import BatchResult, TransformedDocument
import asyncio
import logging

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class DocumentLoader:
    """
    Write documents through a BatchWriter, committing at the batch limit.

    Ensures:
    - Every address is validated before the first write
    - Oversized documents are reported as failed without stopping the load
    - A failed commit stops the load; earlier batches stay committed
    """

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = 250,
        pause_between_batches: float = 0.0,
        max_document_bytes: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None
    ):
        self.store = store
        self.batch_size = batch_size
        self.pause_between_batches = pause_between_batches
        self.max_document_bytes = max_document_bytes
        self.cancel_token = cancel_token
        self.on_progress = on_progress

    async def load(self, documents: Sequence[TransformedDocument]) -> BatchResult:
        """
        Load documents in batches.

        Args:
            documents: Transformed documents addressed by path

        Returns:
            BatchResult with one detail per document

        Raises:
            ConfigurationError: A document path is invalid (nothing is written)
            CommitError: A batch failed; ``partial_result`` holds what was done
        """
        addressed: List[Tuple[TransformedDocument, str, str]] = [
            (doc, *parse_document_path(doc.path)) for doc in documents
        ]

        result = BatchResult(total=len(addressed))
        if not addressed:
            return result

        writer = BatchWriter(
            self.store,
            max_entries=self.batch_size,
            max_document_bytes=self.max_document_bytes,
            cancel_token=self.cancel_token
        )

        staged: List[str] = []
        batch_index = 0

        for position, (doc, collection_path, document_id) in enumerate(addressed):
            try:
                writer.set(collection_path, document_id, doc.payload)
                staged.append(doc.path)
            except DocumentTooLargeError as e:
                logger.warning(f"Skipping {doc.path}: {e.message}")
                result.record(doc.path, DetailStatus.FAILED, e.message)

            is_last = position == len(addressed) - 1
            if writer.full or (is_last and writer.pending):
                await self._commit(writer, staged, batch_index, result)
                staged = []
                batch_index += 1

                if not is_last and self.pause_between_batches > 0:
                    await self._pause()

        logger.info(
            f"Loaded {result.succeeded}/{result.total} documents into "
            f"{self.store.destination.value} ({batch_index} batches, {result.failed} failed)"
        )
        return result

    async def _commit(self, writer: BatchWriter, paths: List[str], batch_index: int, result: BatchResult):
        try:
            await writer.commit_and_reset()
        except CommitError as e:
            for path in paths:
                result.record(path, DetailStatus.FAILED, f"batch {batch_index} commit failed")
            e.batch_index = batch_index
            e.context["batch_index"] = batch_index
            e.partial_result = result
            logger.error(
                f"Commit of batch {batch_index} failed after {result.succeeded} documents were written: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            raise

        for path in paths:
            result.record(path, DetailStatus.SUCCESS)

        logger.debug(f"Batch {batch_index}: committed {len(paths)} documents")

        if self.on_progress is not None:
            self.on_progress(result.processed, result.total)

    async def _pause(self):
        if self.cancel_token is not None:
            await self.cancel_token.sleep(self.pause_between_batches, where="between batches")
        else:
            await asyncio.sleep(self.pause_between_batches)
