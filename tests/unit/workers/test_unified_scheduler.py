"""
Unit tests for UnifiedScheduler.

The scheduler clock is replaced with a hand-advanced one and ``run_pending``
is driven directly, so no test depends on the loop thread's timing.
"""

import threading
from datetime import datetime, timedelta

import pytest

from app.workers.unified_scheduler import UnifiedScheduler, parse_time_of_day

START = datetime(2026, 3, 1, 10, 0, 0)


class FakeClock:
    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


# ==================== Fixtures ====================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    sched = UnifiedScheduler(check_interval_seconds=0.05, max_workers=2, clock=clock)
    yield sched
    sched.stop(wait=True)


def _job(scheduler, name):
    return next(job for job in scheduler.get_jobs() if job.name == name)


# ==================== Validation ====================


class TestScheduleValidation:
    """Tests for rejected schedules."""

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_interval(self, scheduler, interval):
        with pytest.raises(ValueError):
            scheduler.every(interval, lambda: None, name="bad")

    @pytest.mark.parametrize("value", ["25:00", "12:60", "noon", "12", "1:2:3"])
    def test_invalid_time_of_day(self, scheduler, value):
        with pytest.raises(ValueError):
            scheduler.daily_at(value, lambda: None, name="bad")

    def test_parse_time_of_day(self):
        assert parse_time_of_day("02:00") == (2, 0)
        assert parse_time_of_day("23:59") == (23, 59)


# ==================== Next-run calculation ====================


class TestNextRun:
    """Tests for interval and daily next-run times."""

    def test_interval_first_run(self, scheduler):
        scheduler.every(60, lambda: None, name="tick")
        assert _job(scheduler, "tick").next_run == START + timedelta(seconds=60)

    def test_start_immediately(self, scheduler):
        scheduler.every(60, lambda: None, name="tick", start_immediately=True)
        assert _job(scheduler, "tick").next_run == START

    def test_daily_later_today(self, scheduler):
        scheduler.daily_at("11:30", lambda: None, name="daily")
        assert _job(scheduler, "daily").next_run == datetime(2026, 3, 1, 11, 30)

    def test_daily_already_passed_rolls_to_tomorrow(self, scheduler):
        scheduler.daily_at("02:00", lambda: None, name="daily")
        assert _job(scheduler, "daily").next_run == datetime(2026, 3, 2, 2, 0)

    def test_daily_exactly_now_rolls_to_tomorrow(self, scheduler):
        scheduler.daily_at("10:00", lambda: None, name="daily")
        assert _job(scheduler, "daily").next_run == datetime(2026, 3, 2, 10, 0)


# ==================== Execution ====================


class TestRunPending:
    """Tests for run_pending with a controlled clock."""

    def test_nothing_due(self, scheduler):
        scheduler.every(60, lambda: None, name="tick")
        assert scheduler.run_pending() == 0

    def test_due_job_runs_and_reschedules(self, scheduler, clock):
        calls = []
        scheduler.every(60, lambda: calls.append(clock()), name="tick")

        clock.advance(60)
        assert scheduler.run_pending() == 1
        scheduler.stop(wait=True)

        assert len(calls) == 1
        job = _job(scheduler, "tick")
        assert job.run_count == 1
        assert job.success_count == 1
        assert job.next_run == START + timedelta(seconds=120)

    def test_missed_slots_are_skipped(self, scheduler, clock):
        scheduler.every(60, lambda: None, name="tick")
        clock.advance(310)

        assert scheduler.run_pending() == 1
        assert _job(scheduler, "tick").next_run == START + timedelta(seconds=360)

    def test_daily_job_reschedules_next_day(self, scheduler, clock):
        scheduler.daily_at("11:00", lambda: None, name="daily")
        clock.advance(3600)

        assert scheduler.run_pending() == 1
        assert _job(scheduler, "daily").next_run == datetime(2026, 3, 2, 11, 0)

    def test_cancelled_handle_never_fires(self, scheduler, clock):
        handle = scheduler.every(60, lambda: None, name="tick")
        handle.cancel()
        clock.advance(120)

        assert handle.cancelled is True
        assert scheduler.run_pending() == 0
        assert scheduler.remove_cancelled() == 1
        assert scheduler.get_jobs() == []

    def test_job_does_not_overlap_itself(self, scheduler, clock):
        release = threading.Event()
        started = threading.Event()

        def slow():
            started.set()
            release.wait(5)

        scheduler.every(60, slow, name="slow")
        clock.advance(60)
        assert scheduler.run_pending() == 1
        assert started.wait(5)

        clock.advance(60)
        assert scheduler.run_pending() == 0

        release.set()
        scheduler.stop(wait=True)
        assert _job(scheduler, "slow").run_count == 1

    def test_failure_is_recorded(self, scheduler, clock):
        def boom():
            raise RuntimeError("sensor offline")

        scheduler.every(60, boom, name="boom")
        clock.advance(60)
        scheduler.run_pending()
        scheduler.stop(wait=True)

        job = _job(scheduler, "boom")
        assert job.failure_count == 1
        assert job.last_error == "sensor offline"
        history = scheduler.get_history(name="boom")
        assert len(history) == 1
        assert history[0].success is False
        assert scheduler.get_status()["recent_failures"] == 1


# ==================== Lifecycle ====================


class TestLifecycle:
    """Tests for start/stop and status."""

    def test_start_and_stop_are_idempotent(self, scheduler):
        scheduler.start()
        scheduler.start()
        assert scheduler.is_running() is True

        scheduler.stop()
        scheduler.stop()
        assert scheduler.is_running() is False

    def test_status_counts(self, scheduler):
        scheduler.every(60, lambda: None, name="a")
        handle = scheduler.every(60, lambda: None, name="b")
        handle.cancel()

        status = scheduler.get_status()
        assert status["total_jobs"] == 2
        assert status["active_jobs"] == 1
        assert status["running"] is False
        assert status["max_workers"] == 2
