"""Background workers."""

from chartpulse.application.workers.chart_update_scheduler import (
    ChartUpdateScheduler,
    JobState,
    ScheduledJob,
)
from chartpulse.application.workers.scheduling import (
    JobSchedule,
    next_daily_run,
    next_weekly_run,
    seconds_until,
)

__all__ = [
    "ChartUpdateScheduler",
    "JobSchedule",
    "JobState",
    "ScheduledJob",
    "next_daily_run",
    "next_weekly_run",
    "seconds_until",
]
