"""
Analytics value objects
=======================

``AnalyticsRecord`` is one computed snapshot for a plant. Records form a time
series per plant; the newest by ``calculation_date`` is the current one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from app.enums.growth import TrendDirection
from app.utils.time import coerce_datetime, utc_now

logger = logging.getLogger(__name__)

# Sub-score key -> weight in overall_score. CO2 is tracked for display only.
EFFICIENCY_WEIGHTS: dict[str, float] = {
    "temperature_efficiency": 0.25,
    "humidity_efficiency": 0.25,
    "vpd_efficiency": 0.30,
    "light_efficiency": 0.20,
    "co2_efficiency": 0.0,
}

SUB_SCORE_KEYS: tuple[str, ...] = tuple(EFFICIENCY_WEIGHTS)

YIELD_BOUNDS = (0.0, 2000.0)
GROWTH_RATE_BOUNDS = (0.0, 10.0)

# Period-over-period changes smaller than this (percent) read as stable
TREND_THRESHOLD_PCT = 5.0


def weighted_overall(scores: Mapping[str, float]) -> float:
    total = sum(float(scores.get(key, 0.0)) * weight for key, weight in EFFICIENCY_WEIGHTS.items())
    return round(min(1.0, max(0.0, total)), 4)


@dataclass(frozen=True)
class EnvironmentalEfficiency:
    """Five [0,1] sub-scores plus their fixed weighted sum."""

    temperature_efficiency: float = 0.0
    humidity_efficiency: float = 0.0
    vpd_efficiency: float = 0.0
    light_efficiency: float = 0.0
    co2_efficiency: float = 0.0
    overall_score: float = 0.0

    @classmethod
    def from_scores(cls, scores: Mapping[str, float]) -> EnvironmentalEfficiency:
        """Build from sub-scores, deriving ``overall_score`` from the weights."""
        values = {key: float(scores.get(key, 0.0)) for key in SUB_SCORE_KEYS}
        return cls(**values, overall_score=weighted_overall(values))

    @classmethod
    def zero(cls) -> EnvironmentalEfficiency:
        return cls()

    def sub_scores(self) -> dict[str, float]:
        return {key: getattr(self, key) for key in SUB_SCORE_KEYS}

    def to_dict(self) -> dict[str, float]:
        data = self.sub_scores()
        data["overall_score"] = self.overall_score
        return data


@dataclass
class AnalyticsRecord:
    """One persisted analytics snapshot."""

    plant_id: int
    calculation_date: datetime
    yield_prediction: float
    growth_rate: float
    environmental_efficiency: EnvironmentalEfficiency = field(default_factory=EnvironmentalEfficiency)
    recommendations: list[dict[str, Any]] = field(default_factory=list)
    analytics_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def age_hours(self, now: datetime | None = None) -> float:
        return ((now or utc_now()) - self.calculation_date).total_seconds() / 3600.0

    def is_fresh(self, hours: float, now: datetime | None = None) -> bool:
        return self.age_hours(now) < hours

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AnalyticsRecord:
        """Build a record from a database row (JSON columns decoded here)."""
        efficiency = _decode_json(row.get("environmental_efficiency"), {})
        recommendations = _decode_json(row.get("recommendations"), [])
        return cls(
            analytics_id=row.get("analytics_id"),
            plant_id=int(row["plant_id"]),
            calculation_date=coerce_datetime(row.get("calculation_date")) or utc_now(),
            yield_prediction=float(row.get("yield_prediction") or 0.0),
            growth_rate=float(row.get("growth_rate") or 0.0),
            environmental_efficiency=EnvironmentalEfficiency(
                **{key: float(efficiency.get(key, 0.0)) for key in (*SUB_SCORE_KEYS, "overall_score")}
            ),
            recommendations=recommendations if isinstance(recommendations, list) else [],
            created_at=coerce_datetime(row.get("created_at")),
            updated_at=coerce_datetime(row.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "analytics_id": self.analytics_id,
            "plant_id": self.plant_id,
            "calculation_date": self.calculation_date.isoformat(),
            "yield_prediction": self.yield_prediction,
            "growth_rate": self.growth_rate,
            "environmental_efficiency": self.environmental_efficiency.to_dict(),
            "recommendations": [dict(item) for item in self.recommendations],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _decode_json(raw: Any, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    if isinstance(raw, (dict, list)):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Failed to decode analytics JSON column")
        return default


# ==================== Period comparison ====================


def period_averages(records: Iterable[AnalyticsRecord]) -> dict[str, Any]:
    """Mean yield, growth rate and overall efficiency over a set of snapshots (None when empty)."""
    rows = list(records)
    if not rows:
        return {"records": 0, "yield_prediction": None, "growth_rate": None, "efficiency": None}
    count = len(rows)
    return {
        "records": count,
        "yield_prediction": round(sum(r.yield_prediction for r in rows) / count, 2),
        "growth_rate": round(sum(r.growth_rate for r in rows) / count, 3),
        "efficiency": round(sum(r.environmental_efficiency.overall_score for r in rows) / count, 4),
    }


def improvement_trend(
    earlier: float | None,
    recent: float | None,
    threshold_pct: float = TREND_THRESHOLD_PCT,
) -> tuple[TrendDirection, float | None]:
    """
    Classify the move from ``earlier`` to ``recent``.

    Returns:
        (direction, change in percent of ``earlier``); the change is None when
        either side is missing or ``earlier`` is zero
    """
    if earlier is None or recent is None:
        return TrendDirection.INSUFFICIENT_DATA, None
    if earlier == 0:
        if recent > 0:
            return TrendDirection.IMPROVING, None
        return TrendDirection.STABLE, None

    change = (recent - earlier) / abs(earlier) * 100
    if change > threshold_pct:
        direction = TrendDirection.IMPROVING
    elif change < -threshold_pct:
        direction = TrendDirection.DECLINING
    else:
        direction = TrendDirection.STABLE
    return direction, round(change, 1)
