"""
Monthly trigger for the billing batch.

Fires on schedule.day_of_month at schedule.hour:schedule.minute UTC
(default: the 27th at 00:00, cron "0 0 27 * *").
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from insurance_billing.config.models import ScheduleConfig
from insurance_billing.utils.clock import Clock, SystemClock
from insurance_billing.utils.time_conversion import add_months

logger = structlog.get_logger()


def next_fire_time(now: datetime, schedule: ScheduleConfig | None = None) -> datetime:
    """
    Next trigger instant strictly after now.

    Args:
        now: Reference instant (naive values are taken as UTC)
        schedule: Trigger settings (defaults to the 27th, 00:00 UTC)

    Returns:
        Timezone-aware UTC datetime
    """
    schedule = schedule or ScheduleConfig()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    candidate = now.replace(
        day=schedule.day_of_month,
        hour=schedule.hour,
        minute=schedule.minute,
        second=0,
        microsecond=0,
    )
    if candidate <= now:
        candidate = add_months(candidate, 1)
    return candidate


class MonthlyScheduler:
    """
    Sleeps until each fire time and runs the job.

    The job's exceptions are logged and never end the loop.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        schedule: ScheduleConfig | None = None,
        clock: Clock | None = None,
        stop_event: threading.Event | None = None,
    ):
        self.job = job
        self.schedule = schedule or ScheduleConfig()
        self.clock = clock or SystemClock()
        self.stop_event = stop_event or threading.Event()
        self.runs = 0

    def next_run(self) -> datetime:
        return next_fire_time(self.clock.now_utc(), self.schedule)

    def run_job(self) -> None:
        """Run the job once, logging instead of raising on failure."""
        self.runs += 1
        logger.info("scheduled_batch_triggered", run=self.runs)
        try:
            self.job()
        except Exception as e:
            logger.exception("scheduled_batch_failed", error=str(e))

    def run(self, max_runs: int | None = None) -> int:
        """
        Loop until stopped or max_runs jobs have run.

        Returns:
            Number of jobs run
        """
        while not self.stop_event.is_set():
            fire_at = self.next_run()
            delay = (fire_at - self.clock.now_utc()).total_seconds()
            logger.info("scheduler_waiting", next_run=fire_at.isoformat(), seconds=round(delay, 1))
            if delay > 0 and self.stop_event.wait(delay):
                break
            self.run_job()
            if max_runs is not None and self.runs >= max_runs:
                break
        return self.runs
