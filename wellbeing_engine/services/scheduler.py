# services/scheduler.py

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from wellbeing_engine.config import EngineConfig

logger = logging.getLogger(__name__)


class InsightScheduler:
    """Ежедневный пересчет инсайтов и периодические бэкапы хранилища"""

    def __init__(self, engine, engine_config: Optional[EngineConfig] = None,
                 scheduler: Optional[AsyncIOScheduler] = None):
        self.engine = engine
        self.config = engine_config
        self.scheduler = scheduler or AsyncIOScheduler(timezone=engine.clock.tz)

    def refresh_insights(self):
        try:
            insights = self.engine.refresh_insights()
            logger.info(f"Daily insight refresh done: {len(insights)} insights")
        except Exception as e:
            logger.error(f"Daily insight refresh failed: {e}")

    def backup_store(self):
        backup_path = self.engine.store.create_backup()
        if backup_path:
            logger.info(f"Scheduled backup created: {backup_path}")

    def schedule_daily_refresh(self, hour: int = 3, minute: int = 0):
        self.scheduler.add_job(self.refresh_insights, 'cron', hour=hour, minute=minute,
                               id='insight_refresh', replace_existing=True)

    def schedule_backups(self, hours: int = 6):
        self.scheduler.add_job(self.backup_store, 'interval', hours=hours,
                               id='store_backup', replace_existing=True)

    def start(self):
        analytics = self.config.analytics if self.config else self.engine.analytics_config
        self.schedule_daily_refresh(analytics.insight_refresh_hour, analytics.insight_refresh_minute)
        if self.config and self.config.store.auto_backup:
            self.schedule_backups(self.config.store.backup_interval_hours)
        self.scheduler.start()
        logger.info(f"Scheduler started with jobs: {[job.id for job in self.scheduler.get_jobs()]}")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
