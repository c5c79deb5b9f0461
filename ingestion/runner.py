# ============================================================================
# File: ingestion/runner.py
# Description: Runs several entity pipelines with per-entity isolation
# ============================================================================
"""
ETL Runner - runs one or more entity processors in sequence.

Every entity gets a fresh processor instance (its own stats, writer and
progress emitter), so a failing entity is recorded and the remaining
entities still run. Cancellation is the exception: once the shared token is
cancelled no further entity starts.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

from core.config import settings
from core.exceptions import ETLException, RunCancelledError
from ingestion.base import ETLProcessor
from ingestion.cancellation import CancellationToken
from ingestion.progress import Subscriber
from ingestion.registry import create_processor

logger = logging.getLogger(__name__)

ProcessorFactory = Callable[..., ETLProcessor]


class ETLRunner:
    """
    Multi-entity orchestrator.

    Args:
        cancel_token: Shared by every processor started by this runner
        on_progress: Subscribed to every processor's progress events
        processor_factory: Builds a processor from (name, **kwargs)
        **processor_kwargs: Passed to every processor (client, store, ...)
    """

    def __init__(
        self,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[Subscriber] = None,
        processor_factory: ProcessorFactory = create_processor,
        **processor_kwargs: Any
    ):
        self.cancel_token = cancel_token or CancellationToken()
        self.on_progress = on_progress
        self.processor_factory = processor_factory
        self.processor_kwargs = processor_kwargs

    def cancel(self, reason: str = "cancelled by caller"):
        self.cancel_token.cancel(reason)

    async def run_one(self, name: str, **options: Any) -> Dict[str, Any]:
        """
        Run a single entity pipeline and summarize it.

        Returns:
            Dictionary with:
            - processor: Entity name
            - status: "success", "partial_success" or "failed"
            - result: BatchResult (partial on commit failure, None otherwise)
            - stats: RunStats of the run (None if the processor could not be built)
            - error: Error details (if any)
        """
        logger.info(f"Running ETL for entity: {name}")

        processor = None
        try:
            processor = self.processor_factory(
                name,
                cancel_token=self.cancel_token,
                **self.processor_kwargs,
                **options
            )
            if self.on_progress is not None:
                processor.on_progress(self.on_progress)

            result = await processor.run()

            stats = processor.stats
            partial = (
                result.failed > 0
                or stats.extraction.failed > 0
                or stats.transformation.failed > 0
            )
            summary = {
                "processor": name,
                "status": "partial_success" if partial else "success",
                "result": result,
                "stats": stats,
                "error": None,
            }
            logger.info(
                f"ETL completed for {name}: {summary['status']} - "
                f"Extracted={stats.extraction.succeeded}, Loaded={result.succeeded}"
            )
            return summary

        except RunCancelledError:
            raise

        except ETLException as e:
            logger.error(
                f"ETL failed for {name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return self._failed(name, processor, e.to_dict())

        except Exception as e:
            logger.exception(f"Unexpected error running {name}")
            return self._failed(name, processor, {"error_type": type(e).__name__, "message": str(e)})

    async def run(self, names: Optional[Sequence[str]] = None, **options: Any) -> Dict[str, Dict[str, Any]]:
        """
        Run several entities in order.

        Args:
            names: Entity names (defaults to ``settings.ETL_ENTITIES``)
            **options: RunConfig overrides applied to every entity

        Returns:
            Mapping of entity name to its run summary (see run_one)
        """
        names = list(names or settings.ETL_ENTITIES)
        results: Dict[str, Dict[str, Any]] = {}

        for name in names:
            try:
                results[name] = await self.run_one(name, **options)
            except RunCancelledError as e:
                logger.warning(f"Run cancelled during {name}; skipping remaining entities")
                results[name] = self._failed(name, None, e.to_dict())
                break

        failed = failed_entities(results)
        logger.info(
            f"All ETL jobs completed: {len(results) - len(failed)}/{len(names)} succeeded"
            + (f" (failed: {', '.join(failed)})" if failed else "")
        )
        return results

    @staticmethod
    def _failed(name: str, processor: Optional[ETLProcessor], error: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "processor": name,
            "status": "failed",
            "result": processor.result if processor is not None else None,
            "stats": processor.stats if processor is not None else None,
            "error": error,
        }


def failed_entities(results: Dict[str, Dict[str, Any]]) -> List[str]:
    return [name for name, summary in results.items() if summary["status"] == "failed"]
