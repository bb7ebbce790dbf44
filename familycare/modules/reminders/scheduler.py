"""
In-process scheduler for the reminder jobs.

Jobs are registered explicitly as (name, cadence, callable). ``start()`` spawns
one asyncio task per job which sleeps until the cadence's next wall-clock run
and then executes the job in a worker thread. A failing run is logged and the
job keeps its schedule.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from supabase import Client

from familycare.config import settings as default_settings, Settings
from familycare.modules.notifications.push import WebPushSender
from familycare.modules.notifications.service import NotificationService
from familycare.modules.reminders.jobs import ReminderJobs, local_now

logger = logging.getLogger(__name__)


class IntervalCadence:
    """Every N minutes, aligned to multiples of N since local midnight (like */N in cron)."""

    def __init__(self, minutes: int):
        if minutes <= 0:
            raise ValueError("Interval must be a positive number of minutes")
        self.minutes = minutes

    def next_run(self, after: datetime) -> datetime:
        midnight = after.replace(hour=0, minute=0, second=0, microsecond=0)
        step = self.minutes * 60
        elapsed = (after - midnight).total_seconds()
        candidate = midnight + timedelta(seconds=(int(elapsed // step) + 1) * step)
        return min(candidate, midnight + timedelta(days=1))

    def __repr__(self):
        return f"every {self.minutes} min"


class DailyCadence:
    def __init__(self, hour: int, minute: int = 0):
        self.hour = hour
        self.minute = minute

    def next_run(self, after: datetime) -> datetime:
        candidate = after.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= after:
            candidate += timedelta(days=1)
        return candidate

    def __repr__(self):
        return f"daily at {self.hour:02d}:{self.minute:02d}"


class WeeklyCadence:
    """weekday follows datetime.weekday(): Monday=0 ... Sunday=6."""

    def __init__(self, weekday: int, hour: int, minute: int = 0):
        if not 0 <= weekday <= 6:
            raise ValueError(f"Invalid weekday: {weekday}")
        self.weekday = weekday
        self.hour = hour
        self.minute = minute

    def next_run(self, after: datetime) -> datetime:
        days_ahead = (self.weekday - after.weekday()) % 7
        candidate = after.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        candidate += timedelta(days=days_ahead)
        if candidate <= after:
            candidate += timedelta(days=7)
        return candidate

    def __repr__(self):
        return f"weekly on day {self.weekday} at {self.hour:02d}:{self.minute:02d}"


@dataclass
class ScheduledJob:
    name: str
    cadence: Any
    func: Callable[[], Any]
    runs: int = 0
    failures: int = 0
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class ReminderScheduler:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or local_now
        self.jobs: Dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def register(self, name: str, cadence, func: Callable[[], Any]) -> ScheduledJob:
        if name in self.jobs:
            raise ValueError(f"Job '{name}' is already registered")
        job = ScheduledJob(name=name, cadence=cadence, func=func)
        self.jobs[name] = job
        return job

    async def run_job(self, job: ScheduledJob) -> bool:
        """Run one job to completion. Never raises except on cancellation."""
        logger.info(f"Running job '{job.name}'")
        started = time.monotonic()
        job.last_run = self.clock()
        try:
            result = await asyncio.to_thread(job.func)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.failures += 1
            job.last_error = str(e)
            logger.exception(f"Job '{job.name}' failed")
            return False
        job.runs += 1
        job.last_error = None
        logger.info(f"Job '{job.name}' finished in {time.monotonic() - started:.2f}s (result: {result})")
        return True

    async def run_now(self, name: str) -> bool:
        if name not in self.jobs:
            raise KeyError(f"Unknown job: {name}")
        return await self.run_job(self.jobs[name])

    async def _job_loop(self, job: ScheduledJob):
        while True:
            now = self.clock()
            next_run = job.cadence.next_run(now)
            delay = max(0.0, (next_run - now).total_seconds())
            logger.debug(f"Job '{job.name}' next run at {next_run.isoformat()}")
            await asyncio.sleep(delay)
            await self.run_job(job)

    def start(self):
        """Spawn one timer task per registered job. Must be called from a running event loop."""
        if self._running:
            logger.warning("Reminder scheduler already running")
            return
        for job in self.jobs.values():
            job.task = asyncio.create_task(self._job_loop(job), name=f"reminder-job:{job.name}")
            logger.info(f"Scheduled job '{job.name}' ({job.cadence!r})")
        self._running = True
        logger.info(f"Reminder scheduler started with {len(self.jobs)} job(s)")

    async def stop(self):
        """Cancel every timer and wait for the tasks to finish."""
        if not self._running:
            return
        tasks: List[asyncio.Task] = [job.task for job in self.jobs.values() if job.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for job in self.jobs.values():
            job.task = None
        self._running = False
        logger.info("Reminder scheduler stopped")


def build_reminder_scheduler(
    supabase: Client,
    settings: Optional[Settings] = None,
    push_sender: Optional[WebPushSender] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> ReminderScheduler:
    """Scheduler with every reminder job registered at its configured cadence."""
    settings = settings or default_settings
    notifications = NotificationService(supabase, push_sender=push_sender, settings=settings)
    jobs = ReminderJobs(supabase, notifications=notifications, settings=settings)
    scheduler = ReminderScheduler(clock=clock)

    scheduler.register(
        "medication_reminders",
        IntervalCadence(settings.medication_reminder_interval_minutes),
        jobs.send_medication_reminders,
    )
    scheduler.register(
        "appointment_reminders",
        DailyCadence(*settings.parse_time_of_day(settings.appointment_reminder_time)),
        jobs.send_appointment_reminders,
    )
    scheduler.register(
        "notification_cleanup",
        DailyCadence(*settings.parse_time_of_day(settings.notification_cleanup_time)),
        jobs.clean_old_notifications,
    )
    scheduler.register(
        "expired_medications",
        DailyCadence(*settings.parse_time_of_day(settings.medication_expiry_time)),
        jobs.deactivate_expired_medications,
    )
    scheduler.register(
        "missed_appointments",
        DailyCadence(*settings.parse_time_of_day(settings.appointment_status_time)),
        jobs.mark_missed_appointments,
    )
    scheduler.register(
        "weekly_reports",
        WeeklyCadence(settings.weekly_report_weekday, *settings.parse_time_of_day(settings.weekly_report_time)),
        jobs.send_weekly_reports,
    )
    return scheduler
