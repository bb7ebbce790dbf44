"""
Unit tests for job cadences and the scheduler lifecycle
"""
import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from familycare.modules.reminders.scheduler import (
    DailyCadence, IntervalCadence, ReminderScheduler, WeeklyCadence, build_reminder_scheduler
)

UTC = timezone.utc


class ImmediateCadence:
    """Fires again a few milliseconds after every run"""

    def next_run(self, after):
        return after + timedelta(milliseconds=5)


class TestCadences:
    def test_interval_aligns_to_wall_clock(self):
        cadence = IntervalCadence(5)

        assert cadence.next_run(datetime(2026, 10, 18, 7, 52, 30, tzinfo=UTC)) == datetime(2026, 10, 18, 7, 55, tzinfo=UTC)
        assert cadence.next_run(datetime(2026, 10, 18, 7, 55, tzinfo=UTC)) == datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
        assert cadence.next_run(datetime(2026, 10, 18, 23, 58, tzinfo=UTC)) == datetime(2026, 10, 19, 0, 0, tzinfo=UTC)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            IntervalCadence(0)

    def test_daily_runs_today_or_tomorrow(self):
        cadence = DailyCadence(8, 0)

        assert cadence.next_run(datetime(2026, 10, 18, 7, 0, tzinfo=UTC)) == datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
        assert cadence.next_run(datetime(2026, 10, 18, 8, 0, tzinfo=UTC)) == datetime(2026, 10, 19, 8, 0, tzinfo=UTC)

    def test_weekly_runs_on_sunday_evening(self):
        cadence = WeeklyCadence(6, 20, 0)

        # 2026-10-14 is a Wednesday, 2026-10-18 a Sunday
        assert cadence.next_run(datetime(2026, 10, 14, 9, 0, tzinfo=UTC)) == datetime(2026, 10, 18, 20, 0, tzinfo=UTC)
        assert cadence.next_run(datetime(2026, 10, 18, 20, 0, tzinfo=UTC)) == datetime(2026, 10, 25, 20, 0, tzinfo=UTC)

    def test_weekly_rejects_bad_weekday(self):
        with pytest.raises(ValueError):
            WeeklyCadence(7, 20)


class TestReminderScheduler:
    """Registry, fault isolation and start/stop lifecycle"""

    def test_failing_job_is_logged_and_isolated(self):
        scheduler = ReminderScheduler()

        def broken():
            raise RuntimeError("store unavailable")

        job = scheduler.register("broken", ImmediateCadence(), broken)

        assert asyncio.run(scheduler.run_job(job)) is False
        assert job.failures == 1
        assert job.last_error == "store unavailable"

    def test_duplicate_registration_rejected(self):
        scheduler = ReminderScheduler()
        scheduler.register("job", ImmediateCadence(), lambda: None)

        with pytest.raises(ValueError):
            scheduler.register("job", ImmediateCadence(), lambda: None)

    def test_jobs_keep_running_after_failures_and_stop_cleanly(self):
        scheduler = ReminderScheduler()
        calls = {"ok": 0, "broken": 0}

        def ok():
            calls["ok"] += 1
            return calls["ok"]

        def broken():
            calls["broken"] += 1
            raise RuntimeError("boom")

        scheduler.register("ok", ImmediateCadence(), ok)
        scheduler.register("broken", ImmediateCadence(), broken)

        async def scenario():
            scheduler.start()
            assert scheduler.running
            await asyncio.sleep(0.2)
            await scheduler.stop()

        asyncio.run(scenario())

        assert calls["ok"] >= 2
        assert calls["broken"] >= 2
        assert scheduler.running is False
        assert all(job.task is None for job in scheduler.jobs.values())

    def test_run_now_unknown_job(self):
        with pytest.raises(KeyError):
            asyncio.run(ReminderScheduler().run_now("missing"))


class TestBuildReminderScheduler:
    def test_registers_every_job_from_settings(self, store, push, test_settings):
        scheduler = build_reminder_scheduler(store, test_settings, push_sender=push)

        assert set(scheduler.jobs) == {
            "medication_reminders", "appointment_reminders", "notification_cleanup",
            "expired_medications", "missed_appointments", "weekly_reports",
        }
        assert scheduler.jobs["medication_reminders"].cadence.minutes == 5
        weekly = scheduler.jobs["weekly_reports"].cadence
        assert (weekly.weekday, weekly.hour, weekly.minute) == (6, 20, 0)
        status_sweep = scheduler.jobs["missed_appointments"].cadence
        assert (status_sweep.hour, status_sweep.minute) == (0, 30)

    def test_registered_job_runs_against_store(self, store, push, test_settings):
        scheduler = build_reminder_scheduler(store, test_settings, push_sender=push)

        assert asyncio.run(scheduler.run_now("expired_medications")) is True
        assert scheduler.jobs["expired_medications"].runs == 1
