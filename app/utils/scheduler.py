from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from app.services.sync_service import SyncService, SyncInProgressError
from app.database import SessionLocal
from app.config import get_settings
from datetime import datetime
import asyncio
import logging

logger = logging.getLogger(__name__)
settings = get_settings()


class TaskScheduler:
    def __init__(self, session_factory=SessionLocal):
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory

    def start(self):
        if not settings.sync_cron_enabled:
            logger.info("Scheduled ClickUp sync disabled (SYNC_CRON_ENABLED=false)")
            return

        self.scheduler.add_job(
            self.run_scheduled_sync,
            CronTrigger(minute=settings.sync_cron_minute, hour=settings.sync_cron_hour),
            id='clickup_sync',
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        logger.info(f"Scheduler started - ClickUp sync cron: minute={settings.sync_cron_minute} hour={settings.sync_cron_hour}")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    async def run_scheduled_sync(self):
        # SyncService does blocking HTTP and DB work; keep it off the event loop
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.sync_job)

    def sync_job(self):
        logger.info("=== STARTING SCHEDULED SYNC ===")
        start_time = datetime.now()

        db = self.session_factory()
        try:
            result = SyncService(db, settings).run_sync(mode="auto")
            logger.info(f"📊 {result['message']}")

            failed = [r for r in result["results"] if r.get("error")]
            for r in failed:
                logger.warning(f"❌ Client {r['client']} failed: {r['error']}")

            execution_time = (datetime.now() - start_time).total_seconds()
            logger.info(f"=== SCHEDULED SYNC COMPLETED in {execution_time:.2f} seconds ===")

        except SyncInProgressError:
            logger.warning("Previous sync still running, skipping this run")
        except Exception as e:
            execution_time = (datetime.now() - start_time).total_seconds()
            logger.error(f"💥 CRITICAL ERROR in scheduled sync after {execution_time:.2f} seconds: {str(e)}", exc_info=True)
        finally:
            db.close()
