"""
Analytics Store
===============

Trust boundary for analytics snapshots. Everything written through
``AnalyticsStore.create`` is range-checked and coerced into the canonical
shape; readers can rely on it without re-validating.

Validation rules:
- ``plant_id`` must be a positive integer
- ``yield_prediction`` must be a number in [0, 2000] (grams)
- ``growth_rate`` must be a number in [0, 10] (cm/day)
- efficiency sub-scores are clamped to [0, 1]; unknown keys are dropped
- ``overall_score`` is recomputed from the weighted sub-scores
- malformed recommendation entries are dropped, not rejected
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from app.domain.analytics import (
    GROWTH_RATE_BOUNDS,
    SUB_SCORE_KEYS,
    YIELD_BOUNDS,
    AnalyticsRecord,
    weighted_overall,
)
from app.domain.exceptions import NotFoundError, ValidationError
from app.enums.growth import Priority
from app.utils.time import coerce_datetime, utc_now
from infrastructure.database.repositories.analytics import AnalyticsRepository

logger = logging.getLogger(__name__)

MAX_RECOMMENDATION_MESSAGE_LENGTH = 500

# Older records used these names for the temperature and humidity sub-scores.
LEGACY_EFFICIENCY_ALIASES = {
    "temperature_stability": "temperature_efficiency",
    "humidity_control": "humidity_efficiency",
}

# Supplied overall scores within this distance of the weighted sum are rounding noise
OVERALL_SCORE_TOLERANCE = 0.001


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_efficiency(raw: Any) -> dict[str, float]:
    """
    Coerce an efficiency mapping into the five sub-scores plus ``overall_score``.

    ``overall_score`` is always the weighted sum of the sub-scores; a supplied
    value is only compared against it.
    """
    source: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    scores: dict[str, float] = {key: 0.0 for key in SUB_SCORE_KEYS}

    for key, value in source.items():
        canonical = LEGACY_EFFICIENCY_ALIASES.get(key, key)
        if canonical not in scores:
            continue
        number = _number(value)
        scores[canonical] = round(min(1.0, max(0.0, number)), 4) if number is not None else 0.0

    derived = weighted_overall(scores)
    supplied = _number(source.get("overall_score"))
    if supplied is not None and abs(supplied - derived) > OVERALL_SCORE_TOLERANCE:
        logger.warning(
            "Ignoring supplied overall_score %.4f; weighted sub-scores give %.4f", supplied, derived
        )
    scores["overall_score"] = derived
    return scores


def filter_recommendations(raw: Any) -> list[dict[str, Any]]:
    """Keep well-formed textual recommendations; drop the rest silently."""
    if not isinstance(raw, Iterable) or isinstance(raw, (str, bytes, Mapping)):
        return []

    kept: list[dict[str, Any]] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        rec_type = entry.get("type")
        message = entry.get("message")
        if not isinstance(rec_type, str) or not isinstance(message, str):
            continue
        if not message.strip() or len(message) > MAX_RECOMMENDATION_MESSAGE_LENGTH:
            continue

        priority = entry.get("priority")
        if priority not in {p.value for p in Priority}:
            priority = Priority.MEDIUM.value
        confidence = _number(entry.get("confidence"))
        kept.append(
            {
                "type": rec_type,
                "message": message,
                "priority": priority,
                "confidence": round(min(1.0, max(0.0, confidence)), 4) if confidence is not None else 0.0,
            }
        )
    return kept


class AnalyticsStore:
    """Validated access to the analytics snapshot time series."""

    def __init__(self, repository: AnalyticsRepository) -> None:
        self.repository = repository

    # ==================== Writes ====================

    def create(self, data: Mapping[str, Any]) -> AnalyticsRecord:
        """
        Validate and persist one analytics snapshot.

        Raises:
            ValidationError: listing every violated field; nothing is written
        """
        errors: list[str] = []

        plant_id = data.get("plant_id")
        if plant_id is None:
            errors.append("plant_id is required")
        elif isinstance(plant_id, bool) or not isinstance(plant_id, int) or plant_id <= 0:
            errors.append("plant_id must be a positive integer")

        yield_prediction = self._bounded(data, "yield_prediction", YIELD_BOUNDS, errors)
        growth_rate = self._bounded(data, "growth_rate", GROWTH_RATE_BOUNDS, errors)

        raw_date = data.get("calculation_date")
        calculation_date = coerce_datetime(raw_date) if raw_date is not None else utc_now()
        if calculation_date is None:
            errors.append("calculation_date must be an ISO-8601 timestamp")

        if errors:
            logger.warning("Rejected analytics record for plant %s: %s", plant_id, "; ".join(errors))
            raise ValidationError(errors=errors, detail={"plant_id": plant_id})

        analytics_id = self.repository.insert(
            plant_id=plant_id,
            calculation_date=calculation_date,
            yield_prediction=yield_prediction,
            growth_rate=growth_rate,
            environmental_efficiency=normalize_efficiency(data.get("environmental_efficiency")),
            recommendations=filter_recommendations(data.get("recommendations")),
        )
        record = self.repository.get(analytics_id)
        if record is None:
            raise NotFoundError(f"Analytics record {analytics_id} vanished after insert")
        logger.debug("Stored analytics record %s for plant %s", analytics_id, plant_id)
        return record

    @staticmethod
    def _bounded(
        data: Mapping[str, Any],
        field_name: str,
        bounds: tuple[float, float],
        errors: list[str],
    ) -> float:
        raw = data.get(field_name)
        if raw is None:
            return 0.0
        number = _number(raw)
        low, high = bounds
        if number is None:
            errors.append(f"{field_name} must be a number")
            return 0.0
        if number < low or number > high:
            errors.append(f"{field_name} must be between {low:g} and {high:g} (got {number:g})")
        return number

    # ==================== Reads ====================

    def get_by_plant_id(
        self,
        plant_id: int,
        limit: int = 10,
        since: datetime | None = None,
    ) -> list[AnalyticsRecord]:
        """Newest-first snapshots, optionally only those calculated at or after ``since``."""
        return self.repository.list_for_plant(plant_id, limit=max(1, int(limit)), since=since)

    def get_latest(self, plant_id: int) -> AnalyticsRecord | None:
        return self.repository.latest_for_plant(plant_id)

    def get_trends(self, plant_id: int, days: int = 30) -> dict[str, list[dict[str, Any]]]:
        """Three parallel ascending series for charting. Raw points, no interpolation."""
        since = utc_now() - timedelta(days=max(1, int(days)))
        yield_trend: list[dict[str, Any]] = []
        growth_trend: list[dict[str, Any]] = []
        environmental_trend: list[dict[str, Any]] = []

        for row in self.repository.trend_rows(plant_id, since):
            stamp = row["calculation_date"]
            efficiency = AnalyticsRecord.from_row({"plant_id": plant_id, **row}).environmental_efficiency
            yield_trend.append({"date": stamp, "value": row.get("yield_prediction")})
            growth_trend.append({"date": stamp, "value": row.get("growth_rate")})
            environmental_trend.append({"date": stamp, "efficiency": efficiency.overall_score})

        return {
            "yield_trend": yield_trend,
            "growth_trend": growth_trend,
            "environmental_trend": environmental_trend,
        }

    # ==================== Deletes ====================

    def delete_by_plant_id(self, plant_id: int, older_than: datetime | None = None) -> int:
        deleted = self.repository.delete_for_plant(plant_id, older_than)
        logger.info("Deleted %s analytics records for plant %s", deleted, plant_id)
        return deleted

    def delete_older_than(self, cutoff: datetime) -> int:
        return self.repository.delete_older_than(cutoff)

    def delete_orphans(self) -> int:
        return self.repository.delete_orphans()

    def list_plants_without_recent_records(self, plant_ids: Iterable[int], hours: float) -> list[int]:
        """Ids from ``plant_ids`` whose newest snapshot is missing or older than ``hours``."""
        ids = [int(pid) for pid in plant_ids]
        latest = self.repository.latest_calculation_dates(ids)
        cutoff = utc_now() - timedelta(hours=hours)
        stale: list[int] = []
        for plant_id in ids:
            stamp = coerce_datetime(latest.get(plant_id))
            if stamp is None or stamp < cutoff:
                stale.append(plant_id)
        return stale
