from .runner import TICK_JOB_ID, SchedulerRunner

__all__ = ["SchedulerRunner", "TICK_JOB_ID"]
