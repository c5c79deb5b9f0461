"""
Pydantic schemas for one pipeline run: configuration, stats and reports
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date
from core.config import settings
from models.base import Destination, DetailStatus, ProcessingStatus


class RunConfig(BaseModel):
    """
    Immutable settings for one run.

    Built once at run start from the application settings merged with
    caller-supplied options, and never mutated afterwards.
    """

    # Filters
    legislature: Optional[int] = None
    senator: Optional[str] = None
    party: Optional[str] = None
    state: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    limit: Optional[int] = None

    # Fetching
    concurrency: int = 3
    pause_between_requests: float = 3.0
    max_attempts: int = 5
    retry_delay: float = 2.0

    # Loading
    destination: Destination = Destination.LOCAL_FILE
    dry_run: bool = False
    batch_size: int = 250
    pause_between_batches: float = 0.5
    max_document_bytes: int = 996147
    export_dir: str = "dados_extraidos"

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, **overrides: Any) -> "RunConfig":
        """
        Merge application settings with caller options.

        Options set to None are ignored so callers can forward optional
        arguments without clearing the defaults.
        """
        data: Dict[str, Any] = {
            "legislature": settings.LEGISLATURA_ATUAL,
            "concurrency": settings.SENADO_CONCURRENCY,
            "pause_between_requests": settings.SENADO_PAUSE_BETWEEN_REQUESTS,
            "max_attempts": settings.SENADO_MAX_RETRIES,
            "retry_delay": settings.SENADO_RETRY_DELAY,
            "destination": settings.ETL_DESTINATION,
            "batch_size": settings.STORE_BATCH_SIZE,
            "pause_between_batches": settings.STORE_PAUSE_BETWEEN_BATCHES,
            "max_document_bytes": settings.MAX_DOCUMENT_BYTES,
            "export_dir": settings.EXPORT_BASE_DIR,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)


class ValidationResult(BaseModel):
    """Outcome of validate(). Any error is fatal, warnings are only logged."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str):
        self.errors.append(message)

    def add_warning(self, message: str):
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


class StageStats(BaseModel):
    """Counters for one stage. Only ever accumulated."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    def update(self, total: int = 0, succeeded: int = 0, failed: int = 0):
        if min(total, succeeded, failed) < 0:
            raise ValueError("Stage counters cannot be decremented")
        self.total += total
        self.succeeded += succeeded
        self.failed += failed


class RunStats(BaseModel):
    """Stats owned by a single pipeline run"""

    extraction: StageStats = Field(default_factory=StageStats)
    transformation: StageStats = Field(default_factory=StageStats)
    load: StageStats = Field(default_factory=StageStats)
    warnings: int = 0
    errors: int = 0
    durations: Dict[str, float] = Field(default_factory=dict)


class ItemFailure(BaseModel):
    """One item that could not be extracted or transformed"""

    key: str
    error: str


class ExtractionResult(BaseModel):
    """Raw records produced by extract(), plus per-item failures"""

    items: List[Any] = Field(default_factory=list)
    failures: List[ItemFailure] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.items) + len(self.failures)


class TransformedDocument(BaseModel):
    """A document ready for the store, addressed by its full path"""

    path: str
    payload: Dict[str, Any]


class TransformationResult(BaseModel):
    """Documents produced by transform(), plus dropped items"""

    documents: List[TransformedDocument] = Field(default_factory=list)
    failures: List[ItemFailure] = Field(default_factory=list)
    items_total: int = 0


class BatchDetail(BaseModel):
    """Load outcome for one document"""

    id: str
    status: DetailStatus
    error: Optional[str] = None


class BatchResult(BaseModel):
    """Final per-run report returned by load() and by run()"""

    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    details: List[BatchDetail] = Field(default_factory=list)

    def record(self, doc_id: str, status: DetailStatus, error: Optional[str] = None):
        """Append one detail and bump the matching counters."""
        self.details.append(BatchDetail(id=doc_id, status=status, error=error))
        if status == DetailStatus.SKIPPED:
            return
        self.processed += 1
        if status == DetailStatus.SUCCESS:
            self.succeeded += 1
        else:
            self.failed += 1


class ProgressEvent(BaseModel):
    """Run-level progress notification"""

    stage: ProcessingStatus
    percent: int = Field(..., ge=0, le=100)
    message: str = ""
