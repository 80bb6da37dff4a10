"""
Analytics Engine
================

Turns a plant's recent environment samples and activity log into one
``AnalyticsRecord``: growth rate, predicted yield, environmental efficiency
and a short list of textual recommendations.

Recomputation is skipped when the plant already has a record newer than the
freshness window (24h for on-demand calls, 6h for the background processor).

The read-only views (summary, growth timeline, environmental correlation and
historical comparison) never write analytics records.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from app.domain.analytics import AnalyticsRecord, EnvironmentalEfficiency, improvement_trend, period_averages
from app.domain.cultivation_metrics import (
    average_readings,
    growth_rate,
    optimal_ranges,
    stage_efficiency,
    yield_prediction,
)
from app.domain.cultivation_records import height_measurements
from app.domain.environment_analysis import (
    ENVIRONMENT_METRICS,
    data_coverage,
    deviation_from_optimal,
    environment_findings,
    metric_values,
    time_in_range,
)
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.growth_timeline import growth_milestones, growth_predictions, stage_progression
from app.domain.plant_profile import PlantProfile
from app.domain.strain_profile import classify_strain, genetic_potential, normalize_medium, stage_health
from app.enums.growth import GrowthStage, Priority
from app.services.application.analytics_store import AnalyticsStore
from app.services.protocols import CultivationDataSource
from app.utils.time import coerce_datetime, utc_now

logger = logging.getLogger(__name__)

MAX_TEXTUAL_RECOMMENDATIONS = 5

# Growth history falls back to this look-back when the planting date is unknown
GROWTH_HISTORY_DAYS = 365
COMPARISON_RECORD_LIMIT = 500

_LIGHT_ADVICE = {
    GrowthStage.SEEDLING: "Raise light intensity to 300-400 PPFD for healthy seedling development.",
    GrowthStage.VEGETATIVE: "Raise light intensity to 500-600 PPFD for vigorous vegetative growth.",
    GrowthStage.FLOWERING: "Raise light intensity to 800-1000 PPFD for maximum flower development.",
    GrowthStage.LATE_FLOWERING: "Keep light intensity around 700-900 PPFD through ripening.",
}


def textual_recommendations(
    stage: GrowthStage,
    days_in_stage: int,
    plant_growth_rate: float,
    efficiency: EnvironmentalEfficiency,
) -> list[dict[str, Any]]:
    """Threshold-based advice embedded in each analytics record (at most five, in rule order)."""
    items: list[dict[str, Any]] = []
    vpd_range = optimal_ranges(stage)["vpd"]

    if efficiency.vpd_efficiency < 0.7:
        items.append(
            _advice(
                "environmental",
                Priority.HIGH,
                f"VPD is off target. Adjust temperature and humidity toward "
                f"{vpd_range.minimum:g}-{vpd_range.maximum:g} kPa for better transpiration.",
                0.9,
            )
        )
    if efficiency.temperature_efficiency < 0.6:
        items.append(
            _advice(
                "environmental",
                Priority.MEDIUM,
                "Temperature is drifting from the stage optimum. Tighten climate control for steadier conditions.",
                0.8,
            )
        )
    if stage == GrowthStage.VEGETATIVE and days_in_stage > 45:
        items.append(
            _advice(
                "growth_stage",
                Priority.MEDIUM,
                "Plant has been vegetating for more than 45 days. Flip to flowering once it has reached the desired size.",
                0.7,
            )
        )
    if stage == GrowthStage.FLOWERING and days_in_stage > 70:
        items.append(
            _advice(
                "harvest",
                Priority.HIGH,
                "Plant is entering its harvest window. Check trichomes to time the harvest.",
                0.85,
            )
        )
    if stage == GrowthStage.VEGETATIVE and plant_growth_rate < 0.5:
        items.append(
            _advice(
                "nutrient",
                Priority.MEDIUM,
                "Growth is slow for the vegetative stage. Check root-zone pH and consider more nitrogen.",
                0.75,
            )
        )
    if efficiency.light_efficiency < 0.6:
        items.append(
            _advice(
                "lighting",
                Priority.MEDIUM,
                _LIGHT_ADVICE.get(stage, "Tune lighting to the current growth stage."),
                0.8,
            )
        )
    return items[:MAX_TEXTUAL_RECOMMENDATIONS]


def _advice(rec_type: str, priority: Priority, message: str, confidence: float) -> dict[str, Any]:
    return {"type": rec_type, "priority": priority.value, "message": message, "confidence": confidence}


class AnalyticsEngine:
    """Compute-and-store pipeline for per-plant analytics snapshots."""

    def __init__(
        self,
        data_source: CultivationDataSource,
        store: AnalyticsStore,
        *,
        window_days: int = 30,
        freshness_hours: float = 24.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            data_source: Plant, environment and activity reads
            store: Validated analytics persistence
            window_days: Default look-back window when no dates are given
            freshness_hours: Records younger than this are reused as-is
            clock: Current-time source (UTC, aware)
        """
        self.data_source = data_source
        self.store = store
        self.window_days = int(window_days)
        self.freshness_hours = float(freshness_hours)
        self._clock = clock

    # ==================== Public API ====================

    def process(
        self,
        plant_id: int,
        start_date: datetime | str | None = None,
        end_date: datetime | str | None = None,
        force_recalculation: bool = False,
        freshness_hours: float | None = None,
    ) -> AnalyticsRecord:
        """
        Return the plant's current analytics, recomputing only when needed.

        Raises:
            NotFoundError: plant does not exist
            ValidationError: the date window is malformed
        """
        now = self._clock()
        window = self.freshness_hours if freshness_hours is None else float(freshness_hours)

        if not force_recalculation:
            latest = self.store.get_latest(plant_id)
            if latest is not None and latest.is_fresh(window, now):
                logger.debug(
                    "Plant %s analytics fresh (%.1fh old), skipping recalculation",
                    plant_id,
                    latest.age_hours(now),
                )
                return latest

        plant = self._require_plant(plant_id)

        start, end = self._resolve_window(start_date, end_date, now)
        snapshot = self.compute(plant, start, end, now)
        record = self.store.create(snapshot)
        logger.info(
            "Processed analytics for plant %s: yield=%.1fg growth=%.2fcm/day efficiency=%.2f",
            plant_id,
            record.yield_prediction,
            record.growth_rate,
            record.environmental_efficiency.overall_score,
        )
        return record

    def is_fresh(self, plant_id: int, hours: float) -> bool:
        latest = self.store.get_latest(plant_id)
        return latest is not None and latest.is_fresh(hours, self._clock())

    def compute(self, plant: PlantProfile, start: datetime, end: datetime, now: datetime) -> dict[str, Any]:
        """Run the metric library over one window. Missing data degrades to defaults."""
        samples = self.data_source.get_environment_samples(plant.tent_id, start, end)
        activities = self.data_source.get_activity_log(plant.plant_id, start, end)

        stage = plant.stage
        days_in_stage = plant.days_in_stage(now)
        strain_class = classify_strain(plant.strain)
        medium = normalize_medium(plant.growing_medium)

        readings = average_readings(samples)
        efficiency = stage_efficiency(stage, readings)
        rate = growth_rate(height_measurements(activities), stage)
        care_count = sum(1 for entry in activities if entry.is_care)
        estimate = yield_prediction(strain_class, medium, stage, days_in_stage, efficiency, care_count)

        if not samples:
            logger.debug("Plant %s has no environment samples in window; efficiency scores are zero", plant.plant_id)

        return {
            "plant_id": plant.plant_id,
            "calculation_date": now,
            "yield_prediction": estimate.grams,
            "growth_rate": rate,
            "environmental_efficiency": efficiency.to_dict(),
            "recommendations": textual_recommendations(stage, days_in_stage, rate, efficiency),
        }

    def get_plant_summary(self, plant_id: int) -> dict[str, Any]:
        """Strain profile, stage health and the current record for dashboards."""
        plant = self._require_plant(plant_id)

        now = self._clock()
        strain_class = classify_strain(plant.strain)
        medium = normalize_medium(plant.growing_medium)
        latest = self.store.get_latest(plant_id)
        return {
            "plant": plant.to_dict(now),
            "strain_class": strain_class.value,
            "medium": medium.value,
            "genetic_potential": genetic_potential(strain_class, medium).to_dict(),
            "stage_health": stage_health(plant.stage, plant.days_in_stage(now)),
            "optimal_conditions": {key: rng.to_dict() for key, rng in optimal_ranges(plant.stage).items()},
            "latest_analytics": latest.to_dict() if latest else None,
        }

    def get_growth_timeline(self, plant_id: int) -> dict[str, Any]:
        """
        Lifecycle milestones, stage progression and predictions for one plant.

        Predictions cover the next milestone, the next stage transition, the
        expected harvest date and a final yield range around the latest
        record's prediction (None when the plant has no analytics yet).

        Raises:
            NotFoundError: plant does not exist
        """
        plant = self._require_plant(plant_id)
        now = self._clock()
        potential = genetic_potential(classify_strain(plant.strain), normalize_medium(plant.growing_medium))
        milestones = growth_milestones(plant, potential, now)
        latest = self.store.get_latest(plant_id)

        history_start = plant.planted_at or now - timedelta(days=GROWTH_HISTORY_DAYS)
        heights = height_measurements(self.data_source.get_activity_log(plant_id, history_start, now))

        return {
            "plant_id": plant_id,
            "current_stage": {
                "stage": plant.stage.value,
                "days_in_stage": plant.days_in_stage(now),
                "total_days": plant.total_days(now),
            },
            "milestones": [milestone.to_dict() for milestone in milestones],
            "progression": stage_progression(plant, milestones, now),
            "predictions": growth_predictions(
                plant,
                potential,
                milestones,
                now,
                latest_yield=latest.yield_prediction if latest else None,
            ),
            "growth_history": [
                {"date": point.timestamp.isoformat(), "height_cm": point.height_cm} for point in heights
            ],
        }

    def get_environmental_correlation(
        self,
        plant_id: int,
        days: int = 30,
        metrics: list[str] | tuple[str, ...] | None = None,
    ) -> dict[str, Any]:
        """
        How the plant's tent climate tracked the stage optimum over ``days``.

        Per metric: share of readings in range with an impact label, and the
        deviation of the window average from the optimal midpoint. Metrics that
        are both far off and mostly out of range become findings.

        Raises:
            ValidationError: ``days`` is not a positive integer or a metric is unknown
            NotFoundError: plant does not exist
        """
        selected = list(metrics) if metrics is not None else list(ENVIRONMENT_METRICS)
        errors = self._window_errors(days)
        unknown = [name for name in selected if name not in ENVIRONMENT_METRICS]
        if unknown:
            errors.append(f"unknown metrics: {', '.join(map(str, unknown))}")
        if errors:
            raise ValidationError(errors=errors)

        plant = self._require_plant(plant_id)
        now = self._clock()
        start = now - timedelta(days=days)
        samples = self.data_source.get_environment_samples(plant.tent_id, start, now)
        ranges = optimal_ranges(plant.stage)

        correlations: dict[str, dict[str, Any]] = {}
        deviations: dict[str, dict[str, Any]] = {}
        for metric in selected:
            values = metric_values(samples, metric)
            correlations[metric] = time_in_range(metric, values, ranges[metric])
            deviations[metric] = deviation_from_optimal(values, ranges[metric])

        if not samples:
            logger.debug("Plant %s has no environment samples in the last %s days", plant_id, days)

        return {
            "plant_id": plant_id,
            "stage": plant.stage.value,
            "analysis_period": {"days": days, "start": start.isoformat(), "end": now.isoformat()},
            "optimal_conditions": {metric: ranges[metric].to_dict() for metric in selected},
            "correlations": correlations,
            "deviations": deviations,
            "findings": environment_findings(plant.stage, correlations, deviations),
            "data_quality": {
                "total_readings": len(samples),
                "coverage_pct": data_coverage(len(samples), days),
            },
        }

    def get_historical_comparison(self, plant_id: int, days: int = 30) -> dict[str, Any]:
        """
        Compare the last ``days`` of analytics with the ``days`` before them.

        Trends for predicted yield, growth rate and overall efficiency are
        improving / stable / declining (5% threshold), or insufficient_data when
        either period has no records. The latest record is also set against the
        strain's genetic potential.

        Raises:
            ValidationError: ``days`` is not a positive integer
            NotFoundError: plant does not exist
        """
        errors = self._window_errors(days)
        if errors:
            raise ValidationError(errors=errors)

        plant = self._require_plant(plant_id)
        now = self._clock()
        split = now - timedelta(days=days)
        records = self.store.get_by_plant_id(
            plant_id, limit=COMPARISON_RECORD_LIMIT, since=now - timedelta(days=2 * days)
        )
        recent = period_averages(r for r in records if r.calculation_date >= split)
        earlier = period_averages(r for r in records if r.calculation_date < split)

        trends: dict[str, str] = {}
        changes: dict[str, float | None] = {}
        for key in ("yield_prediction", "growth_rate", "efficiency"):
            direction, change = improvement_trend(earlier[key], recent[key])
            trends[key] = direction.value
            changes[key] = change

        potential = genetic_potential(classify_strain(plant.strain), normalize_medium(plant.growing_medium))
        latest = records[0] if records else None
        versus_potential = None
        if latest is not None:
            versus_potential = {
                "yield_pct": round(latest.yield_prediction / potential.expected_yield_g * 100, 1),
                "growth_rate_pct": round(latest.growth_rate / potential.expected_growth_rate * 100, 1),
            }

        return {
            "plant_id": plant_id,
            "period_days": days,
            "recent": recent,
            "earlier": earlier,
            "trends": trends,
            "changes_pct": changes,
            "versus_genetic_potential": versus_potential,
            "insights": _comparison_insights(days, recent, earlier, trends, changes),
        }

    # ==================== Helpers ====================

    def _require_plant(self, plant_id: int) -> PlantProfile:
        plant = self.data_source.get_plant(plant_id)
        if plant is None:
            raise NotFoundError(f"Plant {plant_id} not found", detail={"plant_id": plant_id})
        return plant

    @staticmethod
    def _window_errors(days: Any) -> list[str]:
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            return ["days must be a positive integer"]
        return []

    def _resolve_window(
        self,
        start_date: datetime | str | None,
        end_date: datetime | str | None,
        now: datetime,
    ) -> tuple[datetime, datetime]:
        errors: list[str] = []
        end = coerce_datetime(end_date) if end_date is not None else now
        if end is None:
            errors.append("end_date must be an ISO-8601 timestamp")
        start = coerce_datetime(start_date) if start_date is not None else None
        if start_date is not None and start is None:
            errors.append("start_date must be an ISO-8601 timestamp")
        if errors:
            raise ValidationError(errors=errors)

        if start is None:
            start = end - timedelta(days=self.window_days)
        if start > end:
            raise ValidationError(errors=["start_date must not be after end_date"])
        return start, end


_TREND_LABELS = {
    "yield_prediction": "Predicted yield",
    "growth_rate": "Growth rate",
    "efficiency": "Environmental efficiency",
}


def _comparison_insights(
    days: int,
    recent: dict[str, Any],
    earlier: dict[str, Any],
    trends: dict[str, str],
    changes: dict[str, float | None],
) -> list[str]:
    if not recent["records"] or not earlier["records"]:
        return [f"Not enough analytics history to compare two {days}-day periods yet"]

    insights = [
        f"Compared {recent['records']} recent snapshots with {earlier['records']} from the {days} days before"
    ]
    for key, label in _TREND_LABELS.items():
        change = changes[key]
        suffix = f" ({change:+.1f}%)" if change is not None else ""
        insights.append(f"{label} is {trends[key]}{suffix}")
    return insights
