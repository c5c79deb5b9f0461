import logging
from typing import List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from ingestion.runner import ETLRunner, failed_entities

logger = logging.getLogger(__name__)


class ETLScheduler:
    def __init__(self, entities: Optional[List[str]] = None, interval_minutes: Optional[int] = None):
        self.scheduler = AsyncIOScheduler()
        self.entities = list(entities or settings.ETL_ENTITIES)
        self.interval_minutes = interval_minutes or settings.SCHEDULE_INTERVAL_MINUTES

    async def run_etl_job(self):
        """Job to run the configured entity pipelines"""
        logger.info(f"Scheduler: Starting ETL job for {', '.join(self.entities)}")
        try:
            runner = ETLRunner()
            results = await runner.run(self.entities)
            failed = failed_entities(results)
            if failed:
                logger.warning(f"Scheduler: ETL job finished with failures: {', '.join(failed)}")
            else:
                logger.info("Scheduler: ETL job finished")
        except Exception as e:
            logger.error(f"Scheduler: ETL job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="etl_job",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("ETL Scheduler stopped")
