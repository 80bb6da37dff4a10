"""
Unit tests for AnalyticsEngine.

Tests the compute-and-store pipeline including:
- Freshness short-circuit and forced recalculation
- Window validation and missing plants
- Metric computation against seeded environment and activity data
- Textual recommendation thresholds
- Plant summary assembly
- Growth timeline, environmental correlation and historical comparison views
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from app.domain.analytics import AnalyticsRecord, EnvironmentalEfficiency
from app.domain.exceptions import NotFoundError, ValidationError
from app.enums.growth import GrowthStage
from app.services.application.analytics_engine import (
    MAX_TEXTUAL_RECOMMENDATIONS,
    AnalyticsEngine,
    textual_recommendations,
)
from app.services.application.analytics_store import AnalyticsStore
from infrastructure.database.repositories.plants import PlantRepository

OPTIMAL_VEG = {"temperature": 25.0, "humidity": 60.0, "vpd": 1.0, "ppfd": 500.0, "co2": 1000.0}


# ==================== Fixtures ====================


@pytest.fixture
def grown_plant(seed_plant, seed_environment, seed_activity):
    """Vegetative hybrid with an on-target tent, two height readings and three waterings."""
    plant_id = seed_plant(strain="Blue Dream", stage="vegetative", days_in_stage=10)
    for hours_ago in (1, 5, 9):
        seed_environment(hours_ago=hours_ago, **OPTIMAL_VEG)
    seed_activity(plant_id, "measurement", days_ago=4, value=10.0)
    seed_activity(plant_id, "measurement", days_ago=2, value=14.0)
    for days_ago in (1, 2, 3):
        seed_activity(plant_id, "watering", days_ago=days_ago)
    return plant_id


# ==================== Processing ====================


class TestProcess:
    """Tests for AnalyticsEngine.process against a real database."""

    def test_computes_metrics_from_seeded_data(self, analytics_engine, grown_plant):
        record = analytics_engine.process(grown_plant)

        assert record.plant_id == grown_plant
        assert record.growth_rate == pytest.approx(2.0)
        assert record.environmental_efficiency.overall_score == pytest.approx(1.0)
        # 140 g hybrid/soil × 1.5 env × 1.0 stage × 0.81 care
        assert record.yield_prediction == pytest.approx(170.1)
        assert record.recommendations == []

    def test_fresh_record_is_reused(self, analytics_engine, grown_plant):
        first = analytics_engine.process(grown_plant)
        second = analytics_engine.process(grown_plant)
        assert second.analytics_id == first.analytics_id

    def test_force_recalculation_writes_new_record(self, analytics_engine, grown_plant):
        first = analytics_engine.process(grown_plant)
        second = analytics_engine.process(grown_plant, force_recalculation=True)
        assert second.analytics_id != first.analytics_id
        assert analytics_engine.store.get_latest(grown_plant).analytics_id == second.analytics_id

    def test_zero_freshness_window_recomputes(self, analytics_engine, grown_plant):
        first = analytics_engine.process(grown_plant)
        second = analytics_engine.process(grown_plant, freshness_hours=0)
        assert second.analytics_id != first.analytics_id

    def test_missing_plant_raises_not_found(self, analytics_engine):
        with pytest.raises(NotFoundError):
            analytics_engine.process(999)

    def test_start_after_end_rejected(self, analytics_engine, grown_plant):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            analytics_engine.process(grown_plant, start_date=now, end_date=now - timedelta(days=1))

    def test_malformed_dates_rejected(self, analytics_engine, grown_plant):
        with pytest.raises(ValidationError) as exc_info:
            analytics_engine.process(grown_plant, start_date="last week", end_date="today")
        assert len(exc_info.value.errors) == 2

    def test_plant_without_data_degrades_to_defaults(self, analytics_engine, seed_plant):
        plant_id = seed_plant(stage="vegetative", tent_id=None, days_in_stage=10)
        record = analytics_engine.process(plant_id)

        assert record.environmental_efficiency.overall_score == 0.0
        assert record.growth_rate == pytest.approx(2.0)
        assert record.yield_prediction == pytest.approx(56.0)
        assert [rec["type"] for rec in record.recommendations] == ["environmental", "environmental", "lighting"]

    def test_is_fresh(self, analytics_engine, grown_plant):
        assert analytics_engine.is_fresh(grown_plant, 6) is False
        analytics_engine.process(grown_plant)
        assert analytics_engine.is_fresh(grown_plant, 6) is True


class TestProcessWithMocks:
    """Collaborator interaction checks."""

    @pytest.fixture
    def data_source(self):
        return Mock(spec=PlantRepository)

    @pytest.fixture
    def store(self):
        return Mock(spec=AnalyticsStore)

    def test_fresh_record_skips_data_source(self, data_source, store):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        store.get_latest.return_value = AnalyticsRecord(
            plant_id=1,
            calculation_date=now - timedelta(hours=2),
            yield_prediction=100.0,
            growth_rate=1.0,
        )
        engine = AnalyticsEngine(data_source, store, clock=lambda: now)

        engine.process(1)

        data_source.get_plant.assert_not_called()
        store.create.assert_not_called()

    def test_missing_plant_writes_nothing(self, data_source, store):
        store.get_latest.return_value = None
        data_source.get_plant.return_value = None
        engine = AnalyticsEngine(data_source, store)

        with pytest.raises(NotFoundError):
            engine.process(1)
        store.create.assert_not_called()


# ==================== Textual recommendations ====================


class TestTextualRecommendations:
    """Tests for textual_recommendations thresholds."""

    def test_good_conditions_produce_nothing(self):
        efficiency = EnvironmentalEfficiency.from_scores(
            {"temperature_efficiency": 0.9, "vpd_efficiency": 0.9, "light_efficiency": 0.9}
        )
        assert textual_recommendations(GrowthStage.VEGETATIVE, 10, 2.0, efficiency) == []

    def test_long_vegetation_and_slow_growth(self):
        items = textual_recommendations(GrowthStage.VEGETATIVE, 50, 0.1, EnvironmentalEfficiency.zero())
        assert [item["type"] for item in items] == [
            "environmental",
            "environmental",
            "growth_stage",
            "nutrient",
            "lighting",
        ]
        assert len(items) == MAX_TEXTUAL_RECOMMENDATIONS

    def test_flowering_past_seventy_days_flags_harvest(self):
        efficiency = EnvironmentalEfficiency.from_scores(
            {"temperature_efficiency": 1.0, "vpd_efficiency": 1.0, "light_efficiency": 1.0}
        )
        items = textual_recommendations(GrowthStage.FLOWERING, 71, 0.8, efficiency)
        assert len(items) == 1
        assert items[0]["type"] == "harvest"
        assert items[0]["priority"] == "high"

    def test_vpd_message_names_stage_range(self):
        items = textual_recommendations(GrowthStage.FLOWERING, 5, 0.8, EnvironmentalEfficiency.zero())
        assert "1-1.5 kPa" in items[0]["message"]


# ==================== Summary ====================


class TestPlantSummary:
    """Tests for AnalyticsEngine.get_plant_summary."""

    def test_summary_contents(self, analytics_engine, grown_plant):
        analytics_engine.process(grown_plant)
        summary = analytics_engine.get_plant_summary(grown_plant)

        assert summary["strain_class"] == "hybrid"
        assert summary["medium"] == "soil"
        assert summary["stage_health"]["status"] == "optimal"
        assert summary["plant"]["height_cm"] == pytest.approx(14.0)
        assert summary["optimal_conditions"]["vpd"] == {"min": 0.8, "optimal": 1.0, "max": 1.2}
        assert summary["latest_analytics"]["plant_id"] == grown_plant

    def test_summary_without_analytics(self, analytics_engine, seed_plant):
        plant_id = seed_plant()
        assert analytics_engine.get_plant_summary(plant_id)["latest_analytics"] is None

    def test_summary_for_missing_plant(self, analytics_engine):
        with pytest.raises(NotFoundError):
            analytics_engine.get_plant_summary(404)


# ==================== Growth timeline ====================


class TestGrowthTimeline:
    """Tests for AnalyticsEngine.get_growth_timeline."""

    def test_timeline_for_vegetative_plant(self, analytics_engine, grown_plant):
        timeline = analytics_engine.get_growth_timeline(grown_plant)

        assert timeline["current_stage"] == {"stage": "vegetative", "days_in_stage": 10, "total_days": 30}
        assert [m["status"] for m in timeline["milestones"]] == [
            "completed",
            "completed",
            "current",
            "pending",
            "pending",
        ]
        assert timeline["progression"]["progress_pct"] == pytest.approx(40.0)
        assert timeline["predictions"]["stage_transition"]["to"] == "flowering"
        assert timeline["predictions"]["expected_harvest"]["days_remaining"] == 78
        assert [point["height_cm"] for point in timeline["growth_history"]] == [10.0, 14.0]

    def test_final_yield_follows_latest_record(self, analytics_engine, grown_plant):
        assert analytics_engine.get_growth_timeline(grown_plant)["predictions"]["final_yield"] is None

        record = analytics_engine.process(grown_plant)
        final = analytics_engine.get_growth_timeline(grown_plant)["predictions"]["final_yield"]

        assert final["estimated_g"] == pytest.approx(record.yield_prediction)
        assert final["range_g"]["min"] < final["estimated_g"] < final["range_g"]["max"]

    def test_timeline_writes_nothing(self, analytics_engine, analytics_store, grown_plant):
        analytics_engine.get_growth_timeline(grown_plant)
        assert analytics_store.get_latest(grown_plant) is None

    def test_missing_plant(self, analytics_engine):
        with pytest.raises(NotFoundError):
            analytics_engine.get_growth_timeline(404)


# ==================== Environmental correlation ====================


class TestEnvironmentalCorrelation:
    """Tests for AnalyticsEngine.get_environmental_correlation."""

    def test_on_target_tent(self, analytics_engine, grown_plant):
        result = analytics_engine.get_environmental_correlation(grown_plant, days=7)

        assert result["stage"] == "vegetative"
        assert result["analysis_period"]["days"] == 7
        assert result["correlations"]["humidity"]["in_range_pct"] == pytest.approx(100.0)
        assert result["deviations"]["vpd"]["status"] == "excellent"
        assert result["findings"] == []
        # 3 samples against 4 expected per day for a week
        assert result["data_quality"] == {"total_readings": 3, "coverage_pct": pytest.approx(10.7)}

    def test_humid_tent_produces_findings(self, analytics_engine, seed_plant, seed_environment):
        plant_id = seed_plant()
        for hours_ago in (1, 3):
            seed_environment(hours_ago=hours_ago, temperature=25.0, humidity=85.0, vpd=0.5)

        result = analytics_engine.get_environmental_correlation(plant_id)

        assert [finding["metric"] for finding in result["findings"]] == ["humidity", "vpd"]
        assert result["deviations"]["light"]["status"] == "no_data"
        assert result["correlations"]["co2"]["impact"] == "unknown"

    def test_metric_subset(self, analytics_engine, grown_plant):
        result = analytics_engine.get_environmental_correlation(grown_plant, metrics=["vpd"])
        assert list(result["correlations"]) == ["vpd"]
        assert list(result["optimal_conditions"]) == ["vpd"]

    def test_plant_without_tent(self, analytics_engine, seed_plant):
        plant_id = seed_plant(tent_id=None)
        result = analytics_engine.get_environmental_correlation(plant_id)
        assert result["data_quality"] == {"total_readings": 0, "coverage_pct": 0.0}
        assert result["findings"] == []

    @pytest.mark.parametrize(
        "kwargs",
        [{"days": 0}, {"days": True}, {"days": "7"}, {"metrics": ["soil_moisture"]}],
    )
    def test_invalid_arguments(self, analytics_engine, grown_plant, kwargs):
        with pytest.raises(ValidationError):
            analytics_engine.get_environmental_correlation(grown_plant, **kwargs)

    def test_missing_plant(self, analytics_engine):
        with pytest.raises(NotFoundError):
            analytics_engine.get_environmental_correlation(404)


# ==================== Historical comparison ====================


def _history(store, plant_id, days_ago, yield_g, efficiency):
    store.create(
        {
            "plant_id": plant_id,
            "calculation_date": datetime.now(timezone.utc) - timedelta(days=days_ago),
            "yield_prediction": yield_g,
            "growth_rate": 1.0,
            "environmental_efficiency": efficiency,
        }
    )


class TestHistoricalComparison:
    """Tests for AnalyticsEngine.get_historical_comparison."""

    def test_period_over_period_trends(self, analytics_engine, analytics_store, seed_plant):
        plant_id = seed_plant()
        weak = {"vpd_efficiency": 1.0}
        strong = {"vpd_efficiency": 1.0, "temperature_efficiency": 1.0}
        _history(analytics_store, plant_id, 70, 50.0, weak)
        _history(analytics_store, plant_id, 40, 100.0, weak)
        _history(analytics_store, plant_id, 35, 100.0, weak)
        _history(analytics_store, plant_id, 5, 130.0, strong)
        _history(analytics_store, plant_id, 1, 130.0, strong)

        result = analytics_engine.get_historical_comparison(plant_id, days=30)

        assert result["recent"]["records"] == 2
        assert result["earlier"]["records"] == 2
        assert result["trends"] == {
            "yield_prediction": "improving",
            "growth_rate": "stable",
            "efficiency": "improving",
        }
        assert result["changes_pct"]["yield_prediction"] == pytest.approx(30.0)
        assert result["changes_pct"]["efficiency"] == pytest.approx(83.3)
        # hybrid on soil: 140 g and 1.5 cm/day expected
        assert result["versus_genetic_potential"] == {
            "yield_pct": pytest.approx(92.9),
            "growth_rate_pct": pytest.approx(66.7),
        }
        assert "Predicted yield is improving (+30.0%)" in result["insights"]

    def test_single_period_is_insufficient(self, analytics_engine, analytics_store, seed_plant):
        plant_id = seed_plant()
        _history(analytics_store, plant_id, 2, 120.0, {})

        result = analytics_engine.get_historical_comparison(plant_id)

        assert set(result["trends"].values()) == {"insufficient_data"}
        assert result["earlier"]["records"] == 0
        assert len(result["insights"]) == 1

    def test_plant_without_analytics(self, analytics_engine, seed_plant):
        result = analytics_engine.get_historical_comparison(seed_plant())
        assert result["versus_genetic_potential"] is None
        assert result["recent"]["records"] == 0

    def test_invalid_window(self, analytics_engine, seed_plant):
        with pytest.raises(ValidationError):
            analytics_engine.get_historical_comparison(seed_plant(), days=-1)

    def test_missing_plant(self, analytics_engine):
        with pytest.raises(NotFoundError):
            analytics_engine.get_historical_comparison(404)
