# Background Jobs
from .sync_job import SyncScheduler, get_scheduler, start_scheduler, stop_scheduler

__all__ = ["SyncScheduler", "get_scheduler", "start_scheduler", "stop_scheduler"]
