"""
Template pipeline for one entity type.

ETLProcessor.run() drives validate → extract → transform → load and owns
the run's stats, progress emitter and cancellation token. Concrete
processors implement extract() and transform_item(); validate() and load()
have shared defaults.

Failure policy:
    validate   errors abort the run before any I/O (ConfigurationError)
    extract    per-item failures are counted; zero extracted items is fatal
    transform  per-item failures drop the item and count a warning
    load       any exception is fatal and propagates
"""

import asyncio
import os
import re
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union
from core.config import settings
from core.exceptions import (
    CommitError,
    ConfigurationError,
    ETLException,
    ExtractionError,
    LoadError,
)
from ingestion.cancellation import CancellationToken
from ingestion.extractors.client import SenadoAPIClient
from ingestion.extractors.fetcher import RateLimitedFetcher, WorkItem
from ingestion.extractors.retry import RetryPolicy
from ingestion.loaders.document_loader import DocumentLoader
from ingestion.loaders.document_store import MAX_BATCH_SIZE, DocumentStore, create_document_store
from ingestion.progress import ProgressEmitter, Subscriber
from models.base import DetailStatus, Destination, ProcessingStatus
from schemas.etl import (
    BatchResult,
    ExtractionResult,
    ItemFailure,
    RunConfig,
    RunStats,
    TransformationResult,
    TransformedDocument,
    ValidationResult,
)
import logging

logger = logging.getLogger(__name__)

STATE_PATTERN = re.compile(r"^[A-Z]{2}$")
PARTY_PATTERN = re.compile(r"^[A-Z]{2,10}$")

# Legislatures before this one have sparse data in the open-data API
OLDEST_COMPLETE_LEGISLATURE = 55

_NEXT_STATE = {
    ProcessingStatus.INITIALIZING: ProcessingStatus.VALIDATING,
    ProcessingStatus.VALIDATING: ProcessingStatus.EXTRACTING,
    ProcessingStatus.EXTRACTING: ProcessingStatus.TRANSFORMING,
    ProcessingStatus.TRANSFORMING: ProcessingStatus.LOADING,
    ProcessingStatus.LOADING: ProcessingStatus.DONE,
}


def validate_common_params(config: RunConfig) -> ValidationResult:
    """
    Checks shared by every processor.

    Returns:
        ValidationResult with errors for values that make the run
        impossible and warnings for suspicious ones
    """
    result = ValidationResult()

    if config.legislature is not None:
        if not settings.LEGISLATURA_MIN <= config.legislature <= settings.LEGISLATURA_MAX:
            result.add_error(
                f"Invalid legislature: {config.legislature}. "
                f"Must be between {settings.LEGISLATURA_MIN} and {settings.LEGISLATURA_MAX}"
            )
        elif config.legislature < OLDEST_COMPLETE_LEGISLATURE:
            result.add_warning(
                f"Legislature {config.legislature} is old; data may be incomplete"
            )

    if config.limit is not None and config.limit <= 0:
        result.add_error(f"Invalid limit: {config.limit}. Must be a positive number")

    if config.state is not None and not STATE_PATTERN.match(config.state):
        result.add_error(f"Invalid state: {config.state}. Use a two-letter code (e.g. SP, RJ)")

    if config.senator is not None and not config.senator.isdigit():
        result.add_error(f"Invalid senator code: {config.senator}. Must be numeric")

    if config.party is not None and not PARTY_PATTERN.match(config.party):
        result.add_warning(f"Party '{config.party}' may not be in the expected format")

    if config.period_start and config.period_end and config.period_start > config.period_end:
        result.add_error(
            f"Invalid period: {config.period_start} is after {config.period_end}"
        )

    if not 1 <= config.concurrency <= 10:
        result.add_error(f"Invalid concurrency: {config.concurrency}. Must be between 1 and 10")

    if not 1 <= config.max_attempts <= 10:
        result.add_error(f"Invalid max attempts: {config.max_attempts}. Must be between 1 and 10")

    if not 1 <= config.batch_size <= MAX_BATCH_SIZE:
        result.add_error(
            f"Invalid batch size: {config.batch_size}. Must be between 1 and {MAX_BATCH_SIZE}"
        )

    if min(config.pause_between_requests, config.retry_delay, config.pause_between_batches) < 0:
        result.add_error("Delays cannot be negative")

    if config.destination == Destination.EMULATOR and not (
        os.environ.get("STORE_EMULATOR_URL") or settings.STORE_EMULATOR_URL
    ):
        result.add_warning(
            f"STORE_EMULATOR_URL not set; the emulator will use {settings.STORE_EMULATOR_DEFAULT_URL}"
        )

    return result


class ETLProcessor(ABC):
    """
    One pipeline run for one entity type.

    Instances are single-use: each run gets its own stats, writer and token.

    Attributes:
        name: Registry name of the processor
        config: Frozen RunConfig for this run
        status: Current ProcessingStatus
        stats: RunStats owned by this run
        result: Final (or partial) BatchResult once load has run
        progress: ProgressEmitter for subscribers
        cancel_token: Cooperative cancellation for every suspension point
    """

    name: str = "processor"

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        client: Optional[SenadoAPIClient] = None,
        store: Optional[DocumentStore] = None,
        cancel_token: Optional[CancellationToken] = None,
        **options: Any
    ):
        self.config = config or RunConfig.from_settings(**options)
        self.status = ProcessingStatus.INITIALIZING
        self.stats = RunStats()
        self.validation: Optional[ValidationResult] = None
        self.result: Optional[BatchResult] = None
        self.error: Optional[Exception] = None

        self.cancel_token = cancel_token or CancellationToken()
        self.progress = ProgressEmitter()
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            delay=self.config.retry_delay,
            cancel_token=self.cancel_token
        )
        self.fetcher = RateLimitedFetcher(
            self.retry_policy,
            concurrency=self.config.concurrency,
            pause=self.config.pause_between_requests,
            cancel_token=self.cancel_token
        )

        self._client = client
        self._owns_client = client is None
        self._store = store

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def client(self) -> SenadoAPIClient:
        if self._client is None:
            self._client = SenadoAPIClient()
        return self._client

    @property
    def store(self) -> DocumentStore:
        if self._store is None:
            self._store = create_document_store(self.config.destination, self.config.export_dir)
        return self._store

    def on_progress(self, callback: Subscriber) -> Callable[[], None]:
        """Subscribe to progress events; returns an unsubscribe function."""
        return self.progress.subscribe(callback)

    def cancel(self, reason: str = "cancelled by caller"):
        self.cancel_token.cancel(reason)

    # ------------------------------------------------------------------
    # Template hooks
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        return validate_common_params(self.config)

    @abstractmethod
    async def extract(self) -> ExtractionResult:
        """Fetch raw records. Per-item failures go to ``failures``."""
        pass

    @abstractmethod
    def transform_item(self, item: Any) -> Union[TransformedDocument, List[TransformedDocument]]:
        """Normalize one extracted record. Must not perform I/O."""
        pass

    def item_key(self, item: Any, index: int) -> str:
        if isinstance(item, dict):
            for field in ("codigo", "Codigo", "id"):
                if item.get(field):
                    return str(item[field])
        return f"#{index}"

    def transform(self, extracted: ExtractionResult) -> TransformationResult:
        """Apply transform_item to every record, dropping the ones that fail."""
        result = TransformationResult(items_total=len(extracted.items))

        for index, item in enumerate(extracted.items):
            key = self.item_key(item, index)
            try:
                produced = self.transform_item(item)
            except Exception as e:
                logger.warning(f"[{self.name}] Transform failed for {key}: {e}")
                result.failures.append(ItemFailure(key=key, error=str(e)))
                continue

            result.documents.extend(produced if isinstance(produced, list) else [produced])

        return result

    async def load(self, transformed: TransformationResult) -> BatchResult:
        """Write documents to the configured destination."""
        loader = DocumentLoader(
            self.store,
            batch_size=self.config.batch_size,
            pause_between_batches=self.config.pause_between_batches,
            max_document_bytes=self.config.max_document_bytes,
            cancel_token=self.cancel_token,
            on_progress=lambda done, total: self.progress.emit(
                ProcessingStatus.LOADING,
                done / total * 100 if total else 100,
                f"{done}/{total} documents written"
            )
        )
        return await loader.load(transformed.documents)

    # ------------------------------------------------------------------
    # Helpers for extract()
    # ------------------------------------------------------------------

    async def call(self, fn: Callable[..., Awaitable[Any]], *args: Any, label: str = "request") -> Any:
        """Run one adapter call through the run's RetryPolicy."""
        return await self.retry_policy.execute(partial(fn, *args), label=f"{self.name}: {label}")

    async def fetch_many(
        self,
        keys: Sequence[str],
        fetch: Callable[[str], Awaitable[Any]],
        label: str
    ) -> ExtractionResult:
        """
        Fetch one record per key through the RateLimitedFetcher.

        Failed keys are recorded in ``failures``; extraction progress is
        emitted after every chunk.
        """
        items = [WorkItem(key=str(key), call=partial(fetch, str(key))) for key in keys]

        def on_chunk(done: int, total: int):
            self.progress.emit(
                ProcessingStatus.EXTRACTING,
                done / total * 100 if total else 100,
                f"{label}: {done}/{total}"
            )

        outcomes = await self.fetcher.fetch_all(items, label=f"{self.name}: {label}", on_chunk=on_chunk)

        result = ExtractionResult()
        for outcome in outcomes:
            if outcome.ok:
                result.items.append(outcome.value)
            else:
                result.failures.append(ItemFailure(key=outcome.key, error=str(outcome.error)))
        return result

    def apply_limit(self, items: List[Any]) -> List[Any]:
        if self.config.limit is not None:
            return items[:self.config.limit]
        return items

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def run(self) -> BatchResult:
        """
        Execute the full pipeline.

        Returns:
            BatchResult of the load (documents marked skipped on dry runs)

        Raises:
            ConfigurationError: Validation failed (no I/O happened)
            ExtractionError: Nothing could be extracted
            CommitError: A write-batch failed (partial result on the error)
            LoadError: Any other load failure
            RunCancelledError: The run was cancelled
        """
        if self.status != ProcessingStatus.INITIALIZING:
            raise RuntimeError(f"{self.name} processor already ran; create a new instance")

        started = time.perf_counter()
        logger.info(
            f"Starting {self.name} pipeline "
            f"(destination={self.config.destination.value}, dry_run={self.config.dry_run})"
        )

        try:
            # ----- VALIDATION -----
            self._advance(ProcessingStatus.VALIDATING, "Validating configuration")
            with self._timed("validation"):
                validation = self.validate()
            self.validation = validation

            for warning in validation.warnings:
                logger.warning(f"[{self.name}] {warning}")
            self.stats.warnings += len(validation.warnings)

            if not validation.valid:
                for error in validation.errors:
                    logger.error(f"[{self.name}] {error}")
                self.stats.errors += len(validation.errors)
                raise ConfigurationError(
                    f"Invalid configuration for {self.name}",
                    context={"processor": self.name},
                    validation=validation
                )

            # ----- EXTRACTION -----
            self._advance(ProcessingStatus.EXTRACTING, f"Extracting {self.name}")
            with self._timed("extraction"):
                extracted = await self.extract()

            self.stats.extraction.update(
                total=extracted.total,
                succeeded=len(extracted.items),
                failed=len(extracted.failures)
            )
            self.stats.errors += len(extracted.failures)

            if not extracted.items:
                raise ExtractionError(
                    f"No {self.name} items could be extracted",
                    context={"processor": self.name, "failed": len(extracted.failures)}
                )
            self.cancel_token.raise_if_cancelled("after extraction")

            # ----- TRANSFORMATION -----
            self._advance(ProcessingStatus.TRANSFORMING, f"Transforming {len(extracted.items)} items")
            with self._timed("transformation"):
                transformed = self.transform(extracted)
            del extracted

            failed = len(transformed.failures)
            self.stats.transformation.update(
                total=transformed.items_total,
                succeeded=transformed.items_total - failed,
                failed=failed
            )
            self.stats.warnings += failed
            self.progress.emit(
                ProcessingStatus.TRANSFORMING, 100,
                f"{len(transformed.documents)} documents ready"
            )
            self.cancel_token.raise_if_cancelled("after transformation")

            # ----- LOAD -----
            self._advance(ProcessingStatus.LOADING, f"Loading {len(transformed.documents)} documents")
            with self._timed("load"):
                if self.config.dry_run:
                    result = self._skip_load(transformed)
                else:
                    result = await self._load_or_raise(transformed)

            self.stats.load.update(total=result.total, succeeded=result.succeeded, failed=result.failed)
            self.result = result

            self._advance(ProcessingStatus.DONE, f"{self.name} finished")
            self.stats.durations["total"] = round(time.perf_counter() - started, 3)
            self._log_summary(result)
            return result

        except CommitError as e:
            if e.partial_result is not None:
                self.result = e.partial_result
                self.stats.load.update(
                    total=e.partial_result.total,
                    succeeded=e.partial_result.succeeded,
                    failed=e.partial_result.failed
                )
            self._fail(e)
            raise

        except ETLException as e:
            self._fail(e)
            raise

        except asyncio.CancelledError as e:
            self._fail(e)
            raise

        except Exception as e:
            error = ETLException(
                f"Unexpected error in {self.name} pipeline",
                context={"processor": self.name, "stage": self.status.value},
                original_exception=e
            )
            self._fail(error)
            raise error

        finally:
            if self._owns_client and self._client is not None:
                await self._client.aclose()

    async def _load_or_raise(self, transformed: TransformationResult) -> BatchResult:
        try:
            return await self.load(transformed)
        except ETLException:
            raise
        except Exception as e:
            raise LoadError(
                f"Load failed for {self.name}",
                context={
                    "processor": self.name,
                    "destination": self.config.destination.value,
                    "documents": len(transformed.documents),
                },
                original_exception=e
            )

    def _skip_load(self, transformed: TransformationResult) -> BatchResult:
        result = BatchResult(total=len(transformed.documents))
        for doc in transformed.documents:
            result.record(doc.path, DetailStatus.SKIPPED, "dry run")
        logger.info(f"[{self.name}] Dry run: {result.total} documents not written")
        return result

    def _advance(self, new_status: ProcessingStatus, message: str = ""):
        expected = _NEXT_STATE.get(self.status)
        if new_status != expected:
            raise RuntimeError(
                f"Invalid state transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        self.progress.emit(new_status, 0.0, message)

    def _fail(self, error: BaseException):
        self.error = error
        if not (isinstance(error, ConfigurationError) and error.validation is not None):
            self.stats.errors += 1

        if not self.status.is_terminal:
            failed_in = self.status
            self.status = ProcessingStatus.FAILED
            self.progress.emit(ProcessingStatus.FAILED, message=f"Failed during {failed_in.value}: {error}")

        context = error.to_dict() if isinstance(error, ETLException) else {"error_type": type(error).__name__}
        logger.error(
            f"[{self.name}] Pipeline failed: {error}",
            extra={"error_context": context}
        )

    @contextmanager
    def _timed(self, stage: str):
        started = time.perf_counter()
        try:
            yield
        finally:
            self.stats.durations[stage] = round(time.perf_counter() - started, 3)

    def _log_summary(self, result: BatchResult):
        s = self.stats
        logger.info("=" * 60)
        logger.info(f"{self.name} finished in {s.durations.get('total', 0):.1f}s")
        logger.info(
            f"  extraction:     {s.extraction.succeeded}/{s.extraction.total} ok, "
            f"{s.extraction.failed} failed ({s.durations.get('extraction', 0):.1f}s)"
        )
        logger.info(
            f"  transformation: {s.transformation.succeeded}/{s.transformation.total} ok, "
            f"{s.transformation.failed} failed ({s.durations.get('transformation', 0):.1f}s)"
        )
        logger.info(
            f"  load:           {result.succeeded}/{result.total} written, "
            f"{result.failed} failed ({s.durations.get('load', 0):.1f}s)"
        )
        logger.info(f"  warnings: {s.warnings}, errors: {s.errors}")
        logger.info("=" * 60)


# The orchestrator is also known by its role
PipelineRun = ETLProcessor
