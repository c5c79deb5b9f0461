"""
Core utilities and configuration for the Senado ETL system.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Lazy async engine factory for the SQL-backed document store
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import get_engine, resolve_store_url
    from core.exceptions import CommitError, NetworkError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Engine for the emulator destination
    engine = get_engine(resolve_store_url("emulator"))
"""

__all__ = [
    "settings",
    "get_engine",
    "resolve_store_url",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ConfigurationError",
    "ExtractionError",
    "APIExtractionError",
    "TransientFetchError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "BadRequestError",
    "ResourceNotFoundError",
    "TransformError",
    "LoadError",
    "CommitError",
    "BatchOverflowError",
    "DocumentTooLargeError",
    "RunCancelledError",
    "RetryableError",
    "NonRetryableError",
]
