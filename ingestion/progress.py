"""
Run-level progress reporting.

Each stage owns a slice of the 0-100 scale. A stage reports its own
completion (0-100) and the emitter maps it onto the run scale, never letting
the run percentage go backwards.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from models.base import ProcessingStatus
from schemas.etl import ProgressEvent
import logging

logger = logging.getLogger(__name__)

Subscriber = Callable[[ProgressEvent], Any]

STAGE_RANGES: Dict[ProcessingStatus, Tuple[int, int]] = {
    ProcessingStatus.INITIALIZING: (0, 0),
    ProcessingStatus.VALIDATING: (0, 10),
    ProcessingStatus.EXTRACTING: (10, 50),
    ProcessingStatus.TRANSFORMING: (50, 60),
    ProcessingStatus.LOADING: (60, 100),
    ProcessingStatus.DONE: (100, 100),
}


class ProgressEmitter:
    """
    Fan out ProgressEvents to subscribers.

    Subscribers may be plain callables or coroutine functions. Coroutines
    are scheduled on the running loop and never awaited. A subscriber that
    raises is logged and otherwise ignored.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._pending: Set[asyncio.Future] = set()
        self._percent = 0
        self.last_event: Optional[ProgressEvent] = None

    @property
    def percent(self) -> int:
        return self._percent

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, stage: ProcessingStatus, stage_percent: float = 0.0, message: str = "") -> ProgressEvent:
        """
        Publish progress within ``stage``.

        Args:
            stage: Current pipeline state
            stage_percent: Completion of the stage itself, 0-100
            message: Free-text description
        """
        if stage in STAGE_RANGES:
            low, high = STAGE_RANGES[stage]
            fraction = min(max(stage_percent, 0.0), 100.0) / 100.0
            percent = max(int(low + (high - low) * fraction), self._percent)
        else:
            # FAILED keeps the last reached value
            percent = self._percent

        self._percent = percent
        event = ProgressEvent(stage=stage, percent=percent, message=message)
        self.last_event = event

        logger.info(f"[{percent:3d}%] {stage.value}: {message}")

        for callback in list(self._subscribers):
            self._notify(callback, event)

        return event

    def _notify(self, callback: Subscriber, event: ProgressEvent):
        try:
            outcome = callback(event)
        except Exception as e:
            logger.warning(f"Progress subscriber {callback!r} failed: {e}")
            return

        if inspect.isawaitable(outcome):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(outcome):
                    outcome.close()
                logger.warning(f"Progress subscriber {callback!r} returned an awaitable outside an event loop")
                return
            future = asyncio.ensure_future(outcome, loop=loop)
            self._pending.add(future)
            future.add_done_callback(self._on_done)

    def _on_done(self, future: asyncio.Future):
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.warning(f"Async progress subscriber failed: {future.exception()}")
