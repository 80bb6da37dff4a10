"""
Background Processor
====================

Keeps analytics fresh without recomputing plants that were processed
recently. Owns three recurring jobs on a ``UnifiedScheduler``:

- analytics.process_active_plants: every 6 hours (batched, freshness 6h)
- analytics.cleanup: daily at 02:00 (90-day retention, then orphans)
- analytics.health_check: hourly (database + stale plant report)

``start()`` and ``stop()`` are idempotent. ``stop()`` cancels every job
handle and empties the registry; work already running finishes.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from app.utils.time import utc_now
from app.workers.analytics_tasks import (
    analytics_health_check_task,
    cleanup_analytics_task,
    process_active_plants_task,
)
from app.workers.unified_scheduler import JobHandle, UnifiedScheduler

if TYPE_CHECKING:
    from app.config import AppConfig
    from app.domain.analytics import AnalyticsRecord
    from app.services.ai.recommendation_engine import RecommendationEngine
    from app.services.application.analytics_engine import AnalyticsEngine
    from app.services.application.analytics_store import AnalyticsStore
    from app.services.protocols import CultivationDataSource
    from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)

PROCESS_JOB = "analytics.process_active_plants"
CLEANUP_JOB = "analytics.cleanup"
HEALTH_JOB = "analytics.health_check"


class BackgroundProcessor:
    """Scheduled analytics maintenance for all active plants."""

    def __init__(
        self,
        *,
        database: "SQLiteDatabaseHandler",
        data_source: "CultivationDataSource",
        engine: "AnalyticsEngine",
        store: "AnalyticsStore",
        recommendation_engine: "RecommendationEngine",
        scheduler: UnifiedScheduler | None = None,
        processing_interval_seconds: float = 6 * 3600,
        cleanup_time: str = "02:00",
        health_check_interval_seconds: float = 3600,
        batch_size: int = 5,
        batch_pause_seconds: float = 1.0,
        freshness_hours: float = 6.0,
        retention_days: int = 90,
        stale_hours: float = 24.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.database = database
        self.data_source = data_source
        self.engine = engine
        self.store = store
        self.recommendation_engine = recommendation_engine
        self.scheduler = scheduler or UnifiedScheduler()

        self.processing_interval_seconds = float(processing_interval_seconds)
        self.cleanup_time = cleanup_time
        self.health_check_interval_seconds = float(health_check_interval_seconds)
        self.batch_size = int(batch_size)
        self.batch_pause_seconds = float(batch_pause_seconds)
        self.freshness_hours = float(freshness_hours)
        self.retention_days = int(retention_days)
        self.stale_hours = float(stale_hours)
        self._sleep = sleep

        self._jobs: dict[str, JobHandle] = {}
        self._state_lock = threading.Lock()
        self._is_running = False
        self._last_run: datetime | None = None
        self._last_result: dict[str, Any] | None = None

    @classmethod
    def from_config(cls, config: "AppConfig", **collaborators: Any) -> "BackgroundProcessor":
        return cls(
            processing_interval_seconds=config.analytics_processing_interval_seconds,
            cleanup_time=config.analytics_cleanup_time,
            health_check_interval_seconds=config.health_check_interval_seconds,
            batch_size=config.analytics_batch_size,
            batch_pause_seconds=config.analytics_batch_pause_seconds,
            freshness_hours=config.scheduler_freshness_hours,
            retention_days=config.analytics_retention_days,
            stale_hours=config.stale_analytics_hours,
            **collaborators,
        )

    # ==================== Lifecycle ====================

    def start(self) -> None:
        with self._state_lock:
            if self._is_running:
                logger.warning("Background processor already running")
                return
            self._jobs = {
                PROCESS_JOB: self.scheduler.every(
                    self.processing_interval_seconds, self.process_active_plants, name=PROCESS_JOB
                ),
                CLEANUP_JOB: self.scheduler.daily_at(self.cleanup_time, self.cleanup_old_analytics, name=CLEANUP_JOB),
                HEALTH_JOB: self.scheduler.every(
                    self.health_check_interval_seconds, self.health_check, name=HEALTH_JOB
                ),
            }
            self._is_running = True
        self.scheduler.start()
        logger.info(
            "Background processor started: processing every %ss, cleanup at %s, health check every %ss",
            self.processing_interval_seconds,
            self.cleanup_time,
            self.health_check_interval_seconds,
        )

    def stop(self) -> None:
        with self._state_lock:
            if not self._is_running:
                return
            for handle in self._jobs.values():
                handle.cancel()
            self._jobs.clear()
            self._is_running = False
        self.scheduler.remove_cancelled()
        self.scheduler.stop(wait=True)
        logger.info("Background processor stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ==================== Jobs ====================

    def process_active_plants(self) -> dict[str, Any]:
        """Batch-process every active plant whose analytics are older than the freshness window."""
        result = process_active_plants_task(
            self.data_source,
            self.engine,
            self.store,
            batch_size=self.batch_size,
            pause_seconds=self.batch_pause_seconds,
            freshness_hours=self.freshness_hours,
            sleep=self._sleep,
        )
        with self._state_lock:
            self._last_run = utc_now()
            self._last_result = result
        return result

    def cleanup_old_analytics(self) -> dict[str, Any]:
        return cleanup_analytics_task(self.store, self.retention_days)

    def health_check(self) -> dict[str, Any]:
        return analytics_health_check_task(
            self.database,
            self.data_source,
            self.store,
            stale_hours=self.stale_hours,
        )

    def force_process_all_plants(self) -> dict[str, Any]:
        """Run the batch synchronously, outside the schedule."""
        logger.info("Forced analytics processing requested")
        return self.process_active_plants()

    def process_plant_immediately(self, plant_id: int) -> "AnalyticsRecord":
        """Recompute one plant now and drop its cached recommendations."""
        record = self.engine.process(plant_id, force_recalculation=True)
        self.recommendation_engine.clear_plant_cache(plant_id)
        return record

    # ==================== Status ====================

    def get_status(self) -> dict[str, Any]:
        with self._state_lock:
            active = [name for name, handle in self._jobs.items() if not handle.cancelled]
            return {
                "is_running": self._is_running,
                "active_jobs": active,
                "job_count": len(active),
                "last_run": self._last_run.isoformat() if self._last_run else None,
            }

    def get_last_result(self) -> dict[str, Any] | None:
        with self._state_lock:
            return dict(self._last_result) if self._last_result else None
