"""
Timer-driven job scheduler for the analytics background work.

Design Principles:
- Single scheduler loop thread
- Bounded worker pool for job execution (no unbounded thread creation)
- Interval and daily ("HH:MM") schedules
- Every scheduled job is represented to its owner by a ``JobHandle``;
  cancelling the handle prevents all future firings

Heap entries are ``(run_at_ts, seq, job_id)``. Entries are never removed in
place; stale ones (job cancelled or rescheduled) are skipped when popped.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class ScheduleType(Enum):
    """Types of schedules."""

    INTERVAL = "interval"  # Every N seconds
    DAILY = "daily"  # At a specific local time each day


@dataclass
class JobResult:
    """Result of a job execution."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


class JobHandle:
    """Cancellation token for one scheduled job."""

    def __init__(self, job_id: str, name: str) -> None:
        self.job_id = job_id
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            self._cancelled.set()
            logger.debug("Cancelled job %s (%s)", self.name, self.job_id)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"JobHandle({self.name!r}, {state})"


@dataclass
class ScheduledJob:
    """A scheduled job configuration plus execution counters."""

    job_id: str
    name: str
    schedule_type: ScheduleType
    func: Callable[[], Any]
    handle: JobHandle
    interval_seconds: float | None = None  # For INTERVAL type
    time_of_day: str | None = None  # "HH:MM" for DAILY type

    next_run: datetime | None = None
    last_run: datetime | None = None
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_error: str | None = None
    running: bool = field(default=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "name": self.name,
            "schedule_type": self.schedule_type.value,
            "interval_seconds": self.interval_seconds,
            "time_of_day": self.time_of_day,
            "cancelled": self.handle.cancelled,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse ``"HH:MM"`` into (hour, minute)."""
    try:
        hour_text, minute_text = str(value).split(":")
        hour, minute = int(hour_text), int(minute_text)
    except ValueError as exc:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM")
    return hour, minute


class UnifiedScheduler:
    """
    Scheduler for the analytics background jobs.

    - Fixed-rate intervals: the next run advances from the scheduled time,
      not from completion, and missed slots are skipped rather than piled up.
    - A job never overlaps itself; a firing that finds the previous run still
      active is dropped.
    - ``stop()`` prevents new firings; in-flight jobs run to completion.
    """

    def __init__(
        self,
        check_interval_seconds: float = 1.0,
        max_history: int = 200,
        max_workers: int = 2,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            check_interval_seconds: How often the loop looks for due jobs
            max_history: Maximum job execution history to keep
            max_workers: Maximum number of concurrent job executions
            clock: Local-time source used for due checks and daily schedules
        """
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)
        self._clock = clock

        self._jobs: dict[str, ScheduledJob] = {}
        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = itertools.count(1)
        self._job_seq = itertools.count(1)

        self._history: list[JobResult] = []

        self._running = False
        self._wakeup = threading.Event()
        self._thread: threading.Thread | None = None
        self._job_lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

    # ==================== Job Scheduling ====================

    def every(
        self,
        interval_seconds: float,
        func: Callable[[], Any],
        *,
        name: str,
        start_immediately: bool = False,
    ) -> JobHandle:
        """Run ``func`` every ``interval_seconds``."""
        interval = float(interval_seconds)
        if interval <= 0:
            raise ValueError("interval_seconds must be positive")

        now = self._clock()
        job = self._new_job(
            name,
            ScheduleType.INTERVAL,
            func,
            interval_seconds=interval,
            next_run=now if start_immediately else now + timedelta(seconds=interval),
        )
        logger.info("Scheduled interval job %s (every %ss)", name, interval)
        return job.handle

    def daily_at(self, time_of_day: str, func: Callable[[], Any], *, name: str) -> JobHandle:
        """Run ``func`` once a day at local ``HH:MM``."""
        parse_time_of_day(time_of_day)
        job = self._new_job(
            name,
            ScheduleType.DAILY,
            func,
            time_of_day=time_of_day,
            next_run=self._calculate_next_daily(time_of_day),
        )
        logger.info("Scheduled daily job %s (at %s)", name, time_of_day)
        return job.handle

    def _new_job(self, name: str, schedule_type: ScheduleType, func: Callable[[], Any], **options: Any) -> ScheduledJob:
        job_id = f"{name}#{next(self._job_seq)}"
        job = ScheduledJob(
            job_id=job_id,
            name=name,
            schedule_type=schedule_type,
            func=func,
            handle=JobHandle(job_id, name),
            **options,
        )
        with self._job_lock:
            self._jobs[job_id] = job
            self._push_heap(job)
        self._wakeup.set()
        return job

    def _push_heap(self, job: ScheduledJob) -> None:
        if job.handle.cancelled or job.next_run is None:
            return
        heapq.heappush(self._job_heap, (job.next_run.timestamp(), next(self._heap_seq), job.job_id))

    def remove_cancelled(self) -> int:
        """Forget jobs whose handle was cancelled."""
        with self._job_lock:
            doomed = [job_id for job_id, job in self._jobs.items() if job.handle.cancelled]
            for job_id in doomed:
                del self._jobs[job_id]
        return len(doomed)

    def get_jobs(self) -> list[ScheduledJob]:
        with self._job_lock:
            return list(self._jobs.values())

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        """Start the scheduler loop thread."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="GrowLabSchedulerJob",
            )
        self._running = True
        self._wakeup.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="GrowLabScheduler")
        self._thread.start()
        logger.info("Scheduler started (%s workers)", self._max_workers)

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """
        Stop the scheduler. Safe to call repeatedly.

        Args:
            wait: Wait for the loop thread and in-flight jobs to finish
            timeout: Maximum wait for the loop thread in seconds
        """
        was_running = self._running
        self._running = False
        self._wakeup.set()

        if wait and self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

        if was_running:
            logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    def _run_loop(self) -> None:
        logger.debug("Scheduler loop started")
        while self._running:
            self.run_pending()
            self._wakeup.wait(self._check_interval)
            self._wakeup.clear()
        logger.debug("Scheduler loop ended")

    # ==================== Core Scheduling Logic ====================

    def run_pending(self) -> int:
        """
        Submit every due job to the worker pool.

        Returns:
            Number of jobs submitted
        """
        now = self._clock()
        submitted = 0

        with self._job_lock:
            while self._job_heap:
                run_at_ts, _seq, job_id = self._job_heap[0]
                if run_at_ts > now.timestamp():
                    break
                heapq.heappop(self._job_heap)

                job = self._jobs.get(job_id)
                if job is None or job.handle.cancelled or job.next_run is None:
                    continue
                if abs(job.next_run.timestamp() - run_at_ts) > 1e-6:
                    continue  # stale entry

                scheduled_for = job.next_run
                self._schedule_next_run(job, scheduled_for, now)
                self._push_heap(job)

                if job.running:
                    logger.warning("Job %s still running; skipping firing for %s", job.name, scheduled_for)
                    continue
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=self._max_workers,
                        thread_name_prefix="GrowLabSchedulerJob",
                    )
                job.running = True
                self._executor.submit(self._execute_job, job, scheduled_for)
                submitted += 1

        return submitted

    def _execute_job(self, job: ScheduledJob, scheduled_for: datetime) -> None:
        if job.handle.cancelled:
            job.running = False
            return

        started_at = self._clock()
        try:
            result = job.func()
        except Exception as e:
            completed_at = self._clock()
            with self._job_lock:
                job.last_run = started_at
                job.run_count += 1
                job.failure_count += 1
                job.last_error = str(e)
                job.running = False
            self._record_history(
                JobResult(job.job_id, False, started_at, completed_at, error=str(e))
            )
            logger.error("Job %s failed: %s", job.name, e, exc_info=True)
            return

        completed_at = self._clock()
        with self._job_lock:
            job.last_run = started_at
            job.run_count += 1
            job.success_count += 1
            job.last_error = None
            job.running = False
        job_result = JobResult(job.job_id, True, started_at, completed_at, result=result)
        self._record_history(job_result)
        logger.debug(
            "Job %s completed in %.2fs (scheduled_for=%s)",
            job.name,
            job_result.duration_seconds,
            scheduled_for.isoformat(),
        )

    def _schedule_next_run(self, job: ScheduledJob, scheduled_time: datetime, now: datetime) -> None:
        if job.schedule_type == ScheduleType.INTERVAL:
            interval = float(job.interval_seconds or 60)
            next_run = scheduled_time + timedelta(seconds=interval)
            if next_run <= now:
                skips = int((now - next_run).total_seconds() // interval) + 1
                next_run += timedelta(seconds=skips * interval)
            job.next_run = next_run
            return

        job.next_run = self._calculate_next_daily(job.time_of_day or "00:00")

    def _calculate_next_daily(self, time_of_day: str) -> datetime:
        """Next occurrence of a daily local time, strictly after now."""
        now = self._clock()
        hour, minute = parse_time_of_day(time_of_day)
        next_run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    def _record_history(self, result: JobResult) -> None:
        with self._job_lock:
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]

    # ==================== Status & History ====================

    def get_status(self) -> dict[str, Any]:
        with self._job_lock:
            active = [job for job in self._jobs.values() if not job.handle.cancelled]
            return {
                "running": self._running,
                "total_jobs": len(self._jobs),
                "active_jobs": len(active),
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in self._history[-20:] if not r.success),
                "max_workers": self._max_workers,
            }

    def get_history(self, name: str | None = None, limit: int = 50) -> list[JobResult]:
        with self._job_lock:
            results = list(self._history)
            if name:
                ids = {job.job_id for job in self._jobs.values() if job.name == name}
                results = [r for r in results if r.job_id in ids]
        return sorted(results, key=lambda r: r.started_at, reverse=True)[: int(limit)]
