"""
Cooperative cancellation for pipeline runs.

A token is checked at every suspension point of a run: retry waits, the
pause between fetch chunks and each store commit.
"""

import asyncio
import time
from typing import Optional
from core.exceptions import RunCancelledError
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cancellation flag with an optional deadline.

    Args:
        timeout: Seconds from now after which the token counts as cancelled
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = self._reason or "deadline exceeded"
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled by caller"):
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.warning(f"Run cancellation requested: {reason}")

    def raise_if_cancelled(self, where: str = ""):
        if self.cancelled:
            raise RunCancelledError(
                "Run cancelled",
                context={"reason": self._reason, "where": where}
            )

    async def sleep(self, seconds: float, where: str = ""):
        """Sleep unless cancelled first. Raises RunCancelledError on wake-up if cancelled."""
        self.raise_if_cancelled(where)
        if seconds > 0:
            hits_deadline = False
            if self._deadline is not None:
                remaining = max(0.0, self._deadline - time.monotonic())
                if remaining <= seconds:
                    seconds, hits_deadline = remaining, True
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                if hits_deadline:
                    self.cancel("deadline exceeded")
        self.raise_if_cancelled(where)
