"""
Paced concurrent fan-out of outbound calls.

Work items are split into consecutive chunks of ``concurrency`` items. All
items in a chunk run at once (each through the RetryPolicy), the whole chunk
is awaited, and the fetcher pauses before starting the next one. This caps
in-flight calls to the source API at ``concurrency``.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar
from core.exceptions import RunCancelledError
from ingestion.cancellation import CancellationToken
from ingestion.extractors.retry import RetryPolicy
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChunkCallback = Callable[[int, int], None]


@dataclass
class WorkItem:
    """An external entity key plus the call that fetches it"""
    key: str
    call: Callable[[], Awaitable[Any]]


@dataclass
class FetchOutcome:
    """Result of one work item: either a value or the error that ended it"""
    key: str
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def partition(items: Sequence[T], width: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks of at most ``width``."""
    if width < 1:
        raise ValueError("Chunk width must be at least 1")
    return [list(items[i:i + width]) for i in range(0, len(items), width)]


class RateLimitedFetcher:
    """
    Drive work items through a RetryPolicy in paced concurrent chunks.

    Args:
        retry_policy: Wraps every item call
        concurrency: Items per chunk
        pause: Seconds to wait between chunks (not after the last one)
        cancel_token: Checked before each chunk and during the pause
    """

    def __init__(
        self,
        retry_policy: RetryPolicy,
        concurrency: int = 3,
        pause: float = 3.0,
        cancel_token: Optional[CancellationToken] = None
    ):
        self.retry_policy = retry_policy
        self.concurrency = concurrency
        self.pause = pause
        self.cancel_token = cancel_token

    async def fetch_all(
        self,
        items: Sequence[WorkItem],
        label: str = "fetch",
        on_chunk: Optional[ChunkCallback] = None
    ) -> List[FetchOutcome]:
        """
        Fetch every item and return one outcome per item, in input order.

        Per-item failures become FetchOutcome errors. Only cancellation
        escapes.

        Args:
            items: Work items to run
            label: Prefix for log messages
            on_chunk: Called with (completed_items, total_items) after each chunk
        """
        chunks = partition(items, self.concurrency)
        total = len(items)
        outcomes: List[FetchOutcome] = []

        logger.info(
            f"{label}: {total} items in {len(chunks)} chunks "
            f"(concurrency={self.concurrency})"
        )

        for index, chunk in enumerate(chunks):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled(f"{label} chunk {index + 1}")

            results = await asyncio.gather(*(self._run_item(item, label) for item in chunk))
            outcomes.extend(results)

            failed = sum(1 for r in results if not r.ok)
            logger.debug(
                f"{label}: chunk {index + 1}/{len(chunks)} done "
                f"({len(chunk) - failed} ok, {failed} failed)"
            )

            if on_chunk is not None:
                on_chunk(len(outcomes), total)

            if index < len(chunks) - 1 and self.pause > 0:
                await self._sleep(self.pause, label)

        return outcomes

    async def _run_item(self, item: WorkItem, label: str) -> FetchOutcome:
        try:
            value = await self.retry_policy.execute(item.call, label=f"{label}[{item.key}]")
            return FetchOutcome(key=item.key, value=value)
        except RunCancelledError:
            raise
        except Exception as e:
            logger.warning(f"{label}: item {item.key} failed: {e}")
            return FetchOutcome(key=item.key, error=e)

    async def _sleep(self, seconds: float, label: str):
        if self.cancel_token is not None:
            await self.cancel_token.sleep(seconds, where=label)
        else:
            await asyncio.sleep(seconds)
