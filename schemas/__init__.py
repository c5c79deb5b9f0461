"""
Pydantic schemas for run configuration, stage results and reports.

Schemas:
    etl: RunConfig, ValidationResult, StageStats, RunStats, stage results,
         BatchResult and ProgressEvent

Usage:
    from schemas.etl import RunConfig, BatchResult

Example:
    # Defaults from settings, caller options win
    config = RunConfig.from_settings(legislature=57, limit=10, dry_run=True)

    # RunConfig is frozen
    config.limit = 20  # raises a validation error

Lifecycle:
    RunConfig and ValidationResult live for one run. RunStats and the final
    BatchResult outlive it for reporting.
"""

__all__ = [
    "RunConfig",
    "ValidationResult",
    "StageStats",
    "RunStats",
    "ItemFailure",
    "ExtractionResult",
    "TransformedDocument",
    "TransformationResult",
    "BatchDetail",
    "BatchResult",
    "ProgressEvent",
]
