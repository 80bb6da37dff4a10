"""
Analytics Tasks: background task bodies driven by the BackgroundProcessor.

Tasks:
- analytics.process_active_plants: recompute stale analytics in batches
- analytics.cleanup: prune old and orphaned analytics records
- analytics.health_check: database connectivity and stale-plant report

Every task returns a result dict with an ``errors`` list. Per-plant failures
are logged and counted; they never abort the rest of the batch.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable, Sequence

from app.domain.exceptions import GrowLabError
from app.utils.time import utc_now

if TYPE_CHECKING:
    from app.services.application.analytics_engine import AnalyticsEngine
    from app.services.application.analytics_store import AnalyticsStore
    from app.services.protocols import CultivationDataSource
    from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)

TASK_SOFT_ERRORS = (
    RuntimeError,
    ValueError,
    TypeError,
    AttributeError,
    OSError,
    ImportError,
)

# Expected failures of the listing, cleanup and health steps
TASK_ERRORS = TASK_SOFT_ERRORS + (GrowLabError, sqlite3.Error)

PROCESSED = "processed"
SKIPPED = "skipped"


def _chunks(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


# ==================== Processing ====================


def process_plant(
    engine: "AnalyticsEngine",
    store: "AnalyticsStore",
    plant_id: int,
    freshness_hours: float,
) -> str:
    """Recompute one plant's analytics unless its latest record is still fresh."""
    latest = store.get_latest(plant_id)
    if latest is not None and latest.is_fresh(freshness_hours):
        logger.debug("Plant %s analytics fresh, skipping", plant_id)
        return SKIPPED
    engine.process(plant_id, force_recalculation=False, freshness_hours=freshness_hours)
    return PROCESSED


def process_plants_in_batches(
    engine: "AnalyticsEngine",
    store: "AnalyticsStore",
    plant_ids: Sequence[int],
    *,
    batch_size: int = 5,
    pause_seconds: float = 1.0,
    freshness_hours: float = 6.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Process plants concurrently, one batch at a time.

    Each batch runs on its own executor sized to the batch, so at most
    ``batch_size`` plants are in flight. Batches are separated by
    ``pause_seconds``.

    Returns:
        ``total``, ``processed``, ``skipped``, ``errors`` (count),
        ``error_details`` and ``duration_seconds``; processed + skipped +
        errors always equals total
    """
    started = time.monotonic()
    results: dict[str, Any] = {
        "total": len(plant_ids),
        "processed": 0,
        "skipped": 0,
        "errors": 0,
        "error_details": [],
    }
    batches = _chunks(list(plant_ids), max(1, int(batch_size)))

    for index, batch in enumerate(batches):
        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="AnalyticsBatch") as pool:
            futures = {
                plant_id: pool.submit(process_plant, engine, store, plant_id, freshness_hours)
                for plant_id in batch
            }
            for plant_id, future in futures.items():
                try:
                    outcome = future.result()
                except Exception as e:
                    # Any one plant failing is counted; the batch always completes
                    results["errors"] += 1
                    results["error_details"].append({"plant_id": plant_id, "error": str(e)})
                    logger.error("Analytics processing failed for plant %s: %s", plant_id, e, exc_info=True)
                    continue
                results[outcome] += 1

        if index < len(batches) - 1 and pause_seconds > 0:
            sleep(pause_seconds)

    results["duration_seconds"] = round(time.monotonic() - started, 3)
    logger.info(
        "Analytics batch complete: %s processed, %s skipped, %s errors (of %s plants, %.1fs)",
        results["processed"],
        results["skipped"],
        results["errors"],
        results["total"],
        results["duration_seconds"],
    )
    return results


def process_active_plants_task(
    data_source: "CultivationDataSource",
    engine: "AnalyticsEngine",
    store: "AnalyticsStore",
    *,
    batch_size: int = 5,
    pause_seconds: float = 1.0,
    freshness_hours: float = 6.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """
    Run the batch pipeline over every non-terminal plant.

    Task name: analytics.process_active_plants
    """
    try:
        plant_ids = [int(row["plant_id"]) for row in data_source.list_active_plants()]
    except TASK_ERRORS as e:
        logger.error("Could not list active plants: %s", e, exc_info=True)
        return {"total": 0, "processed": 0, "skipped": 0, "errors": 1, "error_details": [{"error": str(e)}]}

    if not plant_ids:
        logger.info("No active plants to process")
    return process_plants_in_batches(
        engine,
        store,
        plant_ids,
        batch_size=batch_size,
        pause_seconds=pause_seconds,
        freshness_hours=freshness_hours,
        sleep=sleep,
    )


# ==================== Maintenance ====================


def cleanup_analytics_task(store: "AnalyticsStore", retention_days: int = 90) -> dict[str, Any]:
    """
    Delete analytics older than the retention window, then orphaned rows.

    Task name: analytics.cleanup
    """
    results: dict[str, Any] = {"deleted_old": 0, "deleted_orphans": 0, "errors": []}
    cutoff = utc_now() - timedelta(days=int(retention_days))

    try:
        results["deleted_old"] = store.delete_older_than(cutoff)
    except TASK_ERRORS as e:
        results["errors"].append(f"retention: {e!s}")
        logger.error("Analytics retention cleanup failed: %s", e, exc_info=True)

    try:
        results["deleted_orphans"] = store.delete_orphans()
    except TASK_ERRORS as e:
        results["errors"].append(f"orphans: {e!s}")
        logger.error("Orphaned analytics cleanup failed: %s", e, exc_info=True)

    logger.info(
        "Analytics cleanup: %s old records, %s orphaned records removed",
        results["deleted_old"],
        results["deleted_orphans"],
    )
    return results


def analytics_health_check_task(
    database: "SQLiteDatabaseHandler",
    data_source: "CultivationDataSource",
    store: "AnalyticsStore",
    *,
    stale_hours: float = 24.0,
) -> dict[str, Any]:
    """
    Check database connectivity and count active plants without recent analytics.

    Task name: analytics.health_check
    """
    results: dict[str, Any] = {
        "database_ok": False,
        "active_plants": 0,
        "stale_plants": [],
        "errors": [],
    }

    results["database_ok"] = database.ping()
    if not results["database_ok"]:
        results["errors"].append("database: connectivity check failed")
        logger.error("Analytics health check: database unreachable")
        return results

    try:
        plant_ids = [int(row["plant_id"]) for row in data_source.list_active_plants()]
        results["active_plants"] = len(plant_ids)
        results["stale_plants"] = store.list_plants_without_recent_records(plant_ids, stale_hours)
    except TASK_ERRORS as e:
        results["errors"].append(f"stale check: {e!s}")
        logger.error("Stale analytics check failed: %s", e, exc_info=True)
        return results

    if results["stale_plants"]:
        logger.warning(
            "%s active plants have no analytics in the last %sh: %s",
            len(results["stale_plants"]),
            stale_hours,
            results["stale_plants"],
        )
    else:
        logger.debug("Analytics health check OK (%s active plants)", results["active_plants"])
    return results
