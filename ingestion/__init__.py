"""
ETL pipeline components for the Senado Federal open-data API.

Modules:
    base: ETLProcessor template (validate → extract → transform → load),
          state machine and shared validation
    progress: ProgressEmitter mapping stage progress onto 0-100
    cancellation: CancellationToken checked at every suspension point
    registry: Entity name → processor class
    runner: Runs several entity processors with per-entity isolation
    scheduler: APScheduler integration for periodic runs

Subpackages:
    extractors: API client, RetryPolicy, RateLimitedFetcher, endpoint adapters
    transformers: Pure per-entity transforms and payload helpers
    loaders: Document stores, BatchWriter and DocumentLoader
    processors: Senators, committees, votes and authored matters

Architecture:
    Each run moves through four stages:

    1. Validate - Reject impossible configurations before any I/O
    2. Extract - Paced, retried fan-out of API calls; per-item failures counted
    3. Transform - Pure normalization; failing items dropped with a warning
    4. Load - Size-bounded write-batches; a failed commit aborts the run

Usage:
    from ingestion.registry import create_processor
    from ingestion.runner import ETLRunner

Example:
    # One entity
    processor = create_processor("votacoes", legislature=57, limit=10)
    result = await processor.run()
    print(f"Loaded {result.succeeded}/{result.total} documents")

    # Several entities
    results = await ETLRunner().run(["senadores", "comissoes"], dry_run=True)

Error Handling:
    All components raise exceptions from core.exceptions. Writes are
    at-least-once and idempotent by document path, so a failed run can
    simply be repeated.
"""

__all__ = [
    "ETLProcessor",
    "PipelineRun",
    "ETLRunner",
    "ETLScheduler",
    "ProgressEmitter",
    "CancellationToken",
    "create_processor",
]
