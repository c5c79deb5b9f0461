"""
Database engine factory with SQLAlchemy async
"""

import os
from typing import Dict
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
from core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

# One engine per URL, built lazily so the emulator override can be set first
_engines: Dict[str, AsyncEngine] = {}


def resolve_store_url(destination: str) -> str:
    """
    Resolve the database URL for a store destination.

    ``emulator`` reads the ``STORE_EMULATOR_URL`` environment variable. If it
    is missing it is set from ``STORE_EMULATOR_DEFAULT_URL`` so that every
    engine created afterwards in this process sees the same endpoint.

    Raises:
        ConfigurationError: For destinations without a database backend
    """
    if destination == "live-store":
        return settings.DATABASE_URL

    if destination == "emulator":
        url = os.environ.get("STORE_EMULATOR_URL") or settings.STORE_EMULATOR_URL
        if not url:
            url = settings.STORE_EMULATOR_DEFAULT_URL
            logger.warning(f"STORE_EMULATOR_URL not set, using default {url}")
        os.environ["STORE_EMULATOR_URL"] = url
        return url

    raise ConfigurationError(
        f"Destination '{destination}' has no database backend",
        context={"destination": destination}
    )


def get_engine(url: str) -> AsyncEngine:
    """Get (or create) the async engine for a database URL"""
    engine = _engines.get(url)
    if engine is None:
        logger.info(f"Creating database engine for {url.split('@')[-1]}")
        engine = create_async_engine(
            url,
            echo=False,
            poolclass=NullPool,
            future=True
        )
        _engines[url] = engine
    return engine


def get_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create a session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def dispose_engines():
    """Dispose every engine created by this process"""
    for url, engine in list(_engines.items()):
        await engine.dispose()
        _engines.pop(url, None)
