"""
Script to run the configured entities on a fixed interval
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import dispose_engines
from core.logging import setup_logging
from ingestion.scheduler import ETLScheduler

logger = logging.getLogger(__name__)


async def main():
    scheduler = ETLScheduler()
    scheduler.start()
    try:
        # First run right away, then on the interval
        await scheduler.run_etl_job()
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await dispose_engines()


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
