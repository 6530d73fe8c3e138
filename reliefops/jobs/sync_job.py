"""
Sync Scheduler - Periodic pull-then-push against the remote store
"""
from typing import Optional
import logging
import time

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from reliefops.core.config import settings
from reliefops.services import SyncService

logger = logging.getLogger(__name__)

JOB_ID = "sync_full"

# Global scheduler instance
_scheduler = None


class SyncScheduler:
    """
    Runs SyncService.sync_now on a fixed interval.

    Overlap is prevented twice: APScheduler keeps at most one instance of
    the job (missed firings coalesce into one), and the service itself
    refuses a second concurrent run.
    """

    def __init__(self, service: SyncService, interval_minutes: int):
        self.service = service
        self.interval_minutes = interval_minutes
        self.scheduler = BackgroundScheduler()
        self.is_running = False

    def start(self):
        if self.is_running:
            return
        if self.interval_minutes <= 0:
            logger.info("Auto-sync disabled (interval is 0)")
            return
        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=JOB_ID,
            name="Local <-> remote sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"Sync scheduler started: every {self.interval_minutes} minutes")

    def stop(self):
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Sync scheduler stopped")

    def run_once(self):
        stats, error = self.service.sync_now()
        if error:
            logger.warning(f"Scheduled sync did not run: {error.code.value} - {error.message}")
        else:
            logger.info(f"Scheduled sync completed: {stats}")
        return stats, error


# ========== Global Functions ==========

def get_scheduler(service: Optional[SyncService] = None) -> SyncScheduler:
    """Get or create the global scheduler instance"""
    global _scheduler
    if _scheduler is None:
        if service is None:
            from reliefops.api.deps import get_sync_service
            service = get_sync_service()
        _scheduler = SyncScheduler(service, settings.SYNC_INTERVAL_MINUTES)
    return _scheduler


def start_scheduler():
    get_scheduler().start()


def stop_scheduler():
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None


# ========== CLI Commands ==========

if __name__ == "__main__":
    """
    Run scheduler standalone:
    python -m reliefops.jobs.sync_job [sync]
    """
    import sys
    from reliefops.core.logging_config import configure_logging

    configure_logging()

    if len(sys.argv) > 1 and sys.argv[1] == "sync":
        _, error = get_scheduler().run_once()
        sys.exit(1 if error else 0)
    else:
        print("Starting sync scheduler...")
        print("Press Ctrl+C to stop")
        try:
            start_scheduler()
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            stop_scheduler()
            print("Scheduler stopped")
