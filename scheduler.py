import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from services import rebuild_all_stale_checkpoints


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = settings.scheduler_enabled
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"scheduler_run: source={source}")
        with session_scope() as session:
            count = rebuild_all_stale_checkpoints(session)
        logger.info(f"scheduler_run: source={source} checkpoints_rebuilt={count}")
        return count

    def start(self) -> None:
        if not self.enabled:
            logger.info("Scheduler disabled")
            return

        self._run_job("startup")

        trigger = CronTrigger(hour=2, minute=30)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["nightly_02:30"],
            id="checkpoint_rebuild_nightly",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with nightly 02:30 stale checkpoint rebuild")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
