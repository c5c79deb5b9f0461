"""
Custom exceptions for the Senado ETL pipeline with structured error context.

Every failure raised by the pipeline carries a context dictionary so that
logs and run reports can say where it happened (endpoint, document path,
batch index, ...). Exceptions are grouped by the stage that raises them.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── APIExtractionError
    │   │   ├── TransientFetchError (retryable)
    │   │   │   ├── NetworkError
    │   │   │   └── RateLimitError
    │   │   ├── AuthenticationError (non-retryable)
    │   │   └── BadRequestError (non-retryable)
    │   └── ResourceNotFoundError (non-retryable)
    ├── TransformError
    ├── LoadError
    │   ├── CommitError
    │   ├── BatchOverflowError
    │   └── DocumentTooLargeError
    ├── RunCancelledError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone

if TYPE_CHECKING:
    from schemas.etl import BatchResult, ValidationResult


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, path, stage, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """
    pass


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    A RetryPolicy built with ``stop_on_non_retryable`` re-raises these on
    the first attempt:
    - Authentication failures (HTTP 401, 403)
    - Malformed requests (HTTP 400)
    - Resource not found (HTTP 404)
    """
    pass


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(NonRetryableError):
    """
    Raised before any I/O when a run cannot start.

    Sources:
        - validate() returned errors (``validation`` holds the result)
        - a document path with an odd number of segments
        - an unknown destination or processor name
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        validation: Optional["ValidationResult"] = None
    ):
        super().__init__(message, context, original_exception)
        self.validation = validation
        if validation is not None:
            self.context["errors"] = list(validation.errors)


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a call to the Senado open-data API fails.

    Context should include:
        - api_url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated if large)
    """
    pass


class TransientFetchError(RetryableError, APIExtractionError):
    """Timeouts, 5xx and rate-limit responses. Retried by RetryPolicy."""
    pass


class NetworkError(TransientFetchError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(TransientFetchError):
    """Rate limiting errors (HTTP 429) that should be retried after a wait."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, APIExtractionError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class BadRequestError(NonRetryableError, APIExtractionError):
    """Malformed request (HTTP 400) that should not be retried."""
    pass


class ResourceNotFoundError(NonRetryableError, ExtractionError):
    """Resource not found errors (HTTP 404) that should not be retried."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformError(ETLException):
    """
    Malformed or unexpected payload shape for one item.

    Always caught per item by the pipeline: the item is dropped and a
    warning is recorded.
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class CommitError(LoadError):
    """
    A write-batch could not be committed.

    Chunks committed before the failing one stay persisted. The partial
    BatchResult (with the failing chunk's ids marked failed) is attached so
    callers can still report what was written.

    Context should include:
        - batch_index: Index of the failing chunk
        - batch_size: Number of entries in the failing chunk
        - destination: Store destination
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        batch_index: Optional[int] = None,
        partial_result: Optional["BatchResult"] = None
    ):
        super().__init__(message, context, original_exception)
        self.batch_index = batch_index
        self.partial_result = partial_result
        if batch_index is not None:
            self.context["batch_index"] = batch_index


class BatchOverflowError(LoadError):
    """More entries staged than the destination accepts in one write-batch."""
    pass


class DocumentTooLargeError(LoadError):
    """A single document exceeds the store's per-document size limit."""
    pass


# ============================================================================
# Cancellation
# ============================================================================

class RunCancelledError(ETLException):
    """The run was cancelled (or its deadline passed) at a suspension point."""
    pass
