"""
Integration tests for failure handling: fatal loads, empty extraction,
cancellation and per-entity isolation in the runner
"""

import pytest
from unittest.mock import AsyncMock
from core.exceptions import (
    CommitError,
    ETLException,
    ExtractionError,
    LoadError,
    RunCancelledError,
)
from ingestion.cancellation import CancellationToken
from ingestion.runner import ETLRunner, failed_entities
from models.base import DetailStatus, ProcessingStatus


class TestLoadFailures:
    """A failed load always fails the run"""

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_partial_result(self, make_processor, make_store):
        store = make_store(fail_on_commits={1})
        events = []
        processor = make_processor(count=10, failing={4, 9}, batch_size=3, store=store)
        processor.on_progress(events.append)

        with pytest.raises(CommitError) as exc_info:
            await processor.run()

        partial = exc_info.value.partial_result
        assert processor.result is partial
        assert (partial.total, partial.succeeded, partial.failed) == (8, 3, 3)
        assert len(store.documents) == 3

        # Earlier stage stats survive the failure
        assert processor.stats.extraction.succeeded == 8
        assert processor.stats.transformation.succeeded == 8
        assert (processor.stats.load.total, processor.stats.load.succeeded, processor.stats.load.failed) == (8, 3, 3)
        assert processor.stats.errors == 3

        assert processor.status == ProcessingStatus.FAILED
        assert events[-1].stage == ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_load_error_is_wrapped(self, make_processor):
        processor = make_processor(count=3)
        processor.load = AsyncMock(side_effect=OSError("disk full"))

        with pytest.raises(LoadError) as exc_info:
            await processor.run()

        assert isinstance(exc_info.value.original_exception, OSError)
        assert processor.status == ProcessingStatus.FAILED
        assert processor.stats.extraction.succeeded == 3

    @pytest.mark.asyncio
    async def test_unexpected_extract_error_is_wrapped(self, make_processor):
        processor = make_processor(count=3)
        processor.extract = AsyncMock(side_effect=KeyError("Parlamentares"))

        with pytest.raises(ETLException) as exc_info:
            await processor.run()

        assert exc_info.value.context["stage"] == "extracting"
        assert processor.status == ProcessingStatus.FAILED


class TestExtractionFailures:
    @pytest.mark.asyncio
    async def test_nothing_extracted_is_fatal(self, make_processor, memory_store):
        processor = make_processor(count=3, failing={1, 2, 3})

        with pytest.raises(ExtractionError):
            await processor.run()

        assert processor.stats.extraction.failed == 3
        assert memory_store.commits == []
        assert processor.status == ProcessingStatus.FAILED


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_run(self, make_processor, memory_store):
        processor = make_processor(count=5)
        processor.cancel("shutdown")

        with pytest.raises(RunCancelledError):
            await processor.run()

        assert sum(processor.calls.values()) == 0
        assert memory_store.commits == []
        assert processor.status == ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancel_during_extraction(self, make_processor, memory_store):
        processor = make_processor(count=10)

        def cancel_after_first_chunk(event):
            if event.stage == ProcessingStatus.EXTRACTING and event.percent > 10:
                processor.cancel("operator abort")

        processor.on_progress(cancel_after_first_chunk)

        with pytest.raises(RunCancelledError):
            await processor.run()

        assert sum(processor.calls.values()) == 3
        assert memory_store.commits == []

    @pytest.mark.asyncio
    async def test_cancel_during_load(self, make_processor, memory_store):
        processor = make_processor(count=6, batch_size=2)

        def cancel_after_first_batch(event):
            if event.stage == ProcessingStatus.LOADING and event.percent > 60:
                processor.cancel("operator abort")

        processor.on_progress(cancel_after_first_batch)

        with pytest.raises(RunCancelledError):
            await processor.run()

        # Committed batches stay written
        assert len(memory_store.commits) == 1
        assert len(memory_store.documents) == 2


class TestRunner:
    """One failing entity does not stop the others"""

    def _factory(self, make_processor, failing_by_name):
        def factory(name, **kwargs):
            processor = make_processor(count=4, failing=failing_by_name.get(name, ()), **kwargs)
            processor.name = name
            return processor
        return factory

    @pytest.mark.asyncio
    async def test_entities_are_isolated(self, make_processor):
        factory = self._factory(make_processor, {"broken": {1, 2, 3, 4}, "partial": {2}})
        runner = ETLRunner(processor_factory=factory)

        results = await runner.run(["ok", "broken", "partial"])

        assert results["ok"]["status"] == "success"
        assert results["ok"]["result"].succeeded == 4
        assert results["broken"]["status"] == "failed"
        assert results["broken"]["error"]["error_type"] == "ExtractionError"
        assert results["broken"]["stats"].extraction.failed == 4
        assert results["partial"]["status"] == "partial_success"
        assert failed_entities(results) == ["broken"]

    @pytest.mark.asyncio
    async def test_options_reach_every_processor(self, make_processor):
        factory = self._factory(make_processor, {})
        runner = ETLRunner(processor_factory=factory)

        results = await runner.run(["a", "b"], dry_run=True)

        for summary in results.values():
            assert summary["result"].details[0].status == DetailStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_cancellation_stops_remaining_entities(self, make_processor):
        token = CancellationToken()
        factory = self._factory(make_processor, {})

        def cancel_on_load(event):
            if event.stage == ProcessingStatus.LOADING:
                token.cancel("shutdown")

        runner = ETLRunner(cancel_token=token, on_progress=cancel_on_load, processor_factory=factory)

        results = await runner.run(["first", "second"])

        assert list(results) == ["first"]
        assert results["first"]["status"] == "failed"
        assert results["first"]["error"]["error_type"] == "RunCancelledError"

    @pytest.mark.asyncio
    async def test_unknown_entity(self):
        results = await ETLRunner().run(["deputados"])

        assert results["deputados"]["status"] == "failed"
        assert results["deputados"]["error"]["error_type"] == "ConfigurationError"
        assert results["deputados"]["stats"] is None
