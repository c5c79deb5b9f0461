"""
Bounded retry for a single outbound call.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional
from core.exceptions import NonRetryableError, RateLimitError, RunCancelledError
from ingestion.cancellation import CancellationToken
import logging

logger = logging.getLogger(__name__)

FIXED = "fixed"
EXPONENTIAL = "exponential"


class RetryPolicy:
    """
    Retry one unit of work with a bounded number of attempts.

    Every exception is retried except RunCancelledError. A unit that always
    fails is attempted exactly ``max_attempts`` times and the last error is
    re-raised unchanged. With ``stop_on_non_retryable`` set, NonRetryableError
    subclasses (401/403, 400, 404) are re-raised on the first attempt instead.

    The default is a fixed delay without jitter. ``backoff="exponential"``
    doubles the delay after each attempt (capped by ``max_delay``) and
    ``jitter`` spreads each wait by up to that fraction either way.

    Attributes:
        max_attempts: Total attempts, including the first one
        delay: Base wait between attempts in seconds
        backoff: "fixed" or "exponential"
        jitter: Fraction of the wait used as random spread (0 disables)
        max_delay: Upper bound for a single wait
        cancel_token: Checked before each attempt and during waits
        stop_on_non_retryable: Give up at once on NonRetryableError
    """

    def __init__(
        self,
        max_attempts: int = 5,
        delay: float = 2.0,
        backoff: str = FIXED,
        jitter: float = 0.0,
        max_delay: float = 60.0,
        cancel_token: Optional[CancellationToken] = None,
        stop_on_non_retryable: bool = False
    ):
        if backoff not in (FIXED, EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {backoff}")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.jitter = jitter
        self.max_delay = max_delay
        self.cancel_token = cancel_token
        self.stop_on_non_retryable = stop_on_non_retryable
    def compute_delay(self, attempt: int, delay: Optional[float] = None) -> float:
        """Wait before the attempt following ``attempt`` (1-based)."""
        base = self.delay if delay is None else delay
        if self.backoff == EXPONENTIAL:
            base = min(base * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            base += base * self.jitter * (2 * random.random() - 1)
        return max(0.0, base)

    async def execute(
        self,
        unit_of_work: Callable[[], Awaitable[Any]],
        max_attempts: Optional[int] = None,
        delay: Optional[float] = None,
        label: str = "operation"
    ) -> Any:
        """
        Run ``unit_of_work`` until it succeeds or attempts run out.

        Args:
            unit_of_work: Zero-argument coroutine function (called once per attempt)
            max_attempts: Overrides the policy's attempt count
            delay: Overrides the policy's base delay
            label: Name used in log messages

        Returns:
            Whatever ``unit_of_work`` returns

        Raises:
            NonRetryableError: Immediately, when ``stop_on_non_retryable`` is set
            RunCancelledError: If the token is cancelled between attempts
            Exception: The last error once attempts are exhausted
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled(label)

            try:
                return await unit_of_work()

            except RunCancelledError:
                raise

            except Exception as e:
                if self.stop_on_non_retryable and isinstance(e, NonRetryableError):
                    raise
                last_error = e
                if attempt >= attempts:
                    break

                wait = self.compute_delay(attempt, delay)
                if isinstance(e, RateLimitError) and e.retry_after:
                    wait = max(wait, float(e.retry_after))

                logger.warning(
                    f"{label} failed (attempt {attempt}/{attempts}): {e}. "
                    f"Retrying in {wait:.1f}s"
                )
                await self._sleep(wait, label)

        logger.error(f"{label} failed after {attempts} attempts: {last_error}")
        raise last_error

    async def _sleep(self, seconds: float, label: str):
        if self.cancel_token is not None:
            await self.cancel_token.sleep(seconds, where=label)
        else:
            await asyncio.sleep(seconds)
