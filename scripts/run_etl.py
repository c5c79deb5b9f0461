"""
Script to run the ETL pipeline for all configured entities
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import dispose_engines
from core.logging import setup_logging
from ingestion.runner import ETLRunner, failed_entities

logger = logging.getLogger(__name__)


async def run_etl() -> int:
    """Run ETL for every entity in ETL_ENTITIES; returns the exit code"""

    if not settings.ETL_ENTITIES:
        logger.warning("No entities configured. Skipping ETL.")
        return 0

    try:
        runner = ETLRunner()
        results = await runner.run(settings.ETL_ENTITIES)
    except Exception as e:
        logger.error(f"ETL pipeline error: {str(e)}")
        return 1
    finally:
        await dispose_engines()

    return 1 if failed_entities(results) else 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_etl()))
