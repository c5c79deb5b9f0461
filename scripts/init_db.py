import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import dispose_engines, get_engine, resolve_store_url
from core.logging import setup_logging
from ingestion.loaders.document_store import SQLDocumentStore
from models.base import Destination

logger = logging.getLogger(__name__)


async def init_database(destination: str = Destination.LIVE_STORE.value):
    """Create the documents table for a SQL-backed destination"""
    logger.info(f"Connecting to {destination} store...")
    engine = get_engine(resolve_store_url(destination))

    store = SQLDocumentStore(engine, Destination(destination))
    logger.info("Creating tables...")
    await store.create_schema()
    logger.info("Tables created successfully.")

    await dispose_engines()


if __name__ == "__main__":
    setup_logging()
    target = settings.ETL_DESTINATION if settings.ETL_DESTINATION != Destination.LOCAL_FILE.value else Destination.LIVE_STORE.value
    asyncio.run(init_database(target))
