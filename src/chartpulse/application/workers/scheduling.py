"""Schedule math for the chart update jobs.

Pure functions, no clock reads: callers pass `now` in, which keeps the firing logic testable
without freezing time. Works with naive or aware datetimes, as long as `now` and the results
are compared against each other only.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def next_daily_run(now: datetime, hour: int) -> datetime:
    """
    Next firing of a daily job at HH:00.

    Args:
        now: Current time
        hour: Hour of day (0-23)

    Returns:
        Today at `hour`:00 if that's still ahead of `now`, otherwise tomorrow
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be 0-23, got {hour}")
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_weekly_run(now: datetime, weekday: int, hour: int) -> datetime:
    """
    Next firing of a weekly job.

    Args:
        now: Current time
        weekday: Python weekday (Monday=0 ... Sunday=6)
        hour: Hour of day (0-23)

    Returns:
        The next `weekday` at `hour`:00 strictly after `now`
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be 0-6 (Monday=0), got {weekday}")
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be 0-23, got {hour}")
    days_ahead = (weekday - now.weekday()) % 7
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0) + timedelta(
        days=days_ahead
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


def seconds_until(now: datetime, run_at: datetime) -> float:
    """Seconds from `now` to `run_at`, never negative."""
    return max(0.0, (run_at - now).total_seconds())


class ScheduleKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    INTERVAL = "interval"
    MANUAL = "manual"


@dataclass(frozen=True)
class JobSchedule:
    """When a job fires.

    Daily/weekly schedules fire on the wall clock. Interval schedules fire every
    `interval_seconds`, and with `run_on_start` the first firing is immediate.
    Manual jobs never fire on their own, only through run_job().
    """

    kind: ScheduleKind
    hour: int = 0
    weekday: int = 6
    interval_seconds: float = 3600.0
    run_on_start: bool = False

    @classmethod
    def daily(cls, hour: int) -> "JobSchedule":
        return cls(kind=ScheduleKind.DAILY, hour=hour)

    @classmethod
    def weekly(cls, weekday: int, hour: int) -> "JobSchedule":
        return cls(kind=ScheduleKind.WEEKLY, weekday=weekday, hour=hour)

    @classmethod
    def manual(cls) -> "JobSchedule":
        return cls(kind=ScheduleKind.MANUAL)

    @classmethod
    def every(cls, seconds: float, run_on_start: bool = False) -> "JobSchedule":
        return cls(
            kind=ScheduleKind.INTERVAL,
            interval_seconds=seconds,
            run_on_start=run_on_start,
        )

    @property
    def is_manual(self) -> bool:
        return self.kind is ScheduleKind.MANUAL

    def next_run(self, now: datetime) -> datetime:
        """Next firing strictly after `now`."""
        if self.is_manual:
            raise ValueError("Manual jobs have no next firing")
        if self.kind is ScheduleKind.DAILY:
            return next_daily_run(now, self.hour)
        if self.kind is ScheduleKind.WEEKLY:
            return next_weekly_run(now, self.weekday, self.hour)
        return now + timedelta(seconds=self.interval_seconds)

    def describe(self) -> str:
        """Human-readable cadence, e.g. "weekly Sun 01:00"."""
        if self.is_manual:
            return "manual only"
        if self.kind is ScheduleKind.DAILY:
            return f"daily {self.hour:02d}:00"
        if self.kind is ScheduleKind.WEEKLY:
            return f"weekly {WEEKDAY_NAMES[self.weekday]} {self.hour:02d}:00"
        if self.interval_seconds == 3600:
            every = "hourly"
        else:
            every = f"every {self.interval_seconds:g}s"
        return f"{every} (also on start)" if self.run_on_start else every
