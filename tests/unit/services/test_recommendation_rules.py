"""
Unit tests for the recommendation rule set.

Each evaluator is exercised with a hand-built RuleContext; no storage is
involved.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.analytics import AnalyticsRecord, EnvironmentalEfficiency
from app.domain.cultivation_records import EnvironmentSample
from app.domain.plant_profile import PlantProfile, TrichomeReading
from app.enums.growth import Priority, RecommendationCategory, StrainClass
from app.services.ai.recommendation_rules import (
    RULES,
    RuleContext,
    assess_trichomes,
    evaluate_all,
    evaluate_deficiency,
    evaluate_feeding,
    evaluate_harvest_timing,
    evaluate_humidity,
    evaluate_pre_harvest,
    evaluate_pruning,
    evaluate_temperature,
    evaluate_training,
    evaluate_vpd,
    recommendation_id,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ==================== Helpers ====================


def _plant(stage="vegetative", strain="Blue Dream", days=10, **fields):
    return PlantProfile(
        plant_id=1,
        name="Test Plant",
        strain=strain,
        stage=stage,
        stage_started_at=NOW - timedelta(days=days, hours=1),
        **fields,
    )


def _analytics(growth_rate=1.5, efficiency=0.9):
    return AnalyticsRecord(
        plant_id=1,
        calculation_date=NOW,
        yield_prediction=100.0,
        growth_rate=growth_rate,
        environmental_efficiency=EnvironmentalEfficiency(overall_score=efficiency),
    )


def _env(**readings):
    return EnvironmentSample(timestamp=NOW, tent_id=1, **readings)


def _ctx(plant=None, analytics=None, environment=None, history=()):
    return RuleContext.build(plant or _plant(), NOW, analytics=analytics, environment=environment, history=history)


# ==================== Context ====================


class TestRuleContext:
    """Tests for RuleContext derived values."""

    def test_strain_adjustment_resolved(self):
        ctx = _ctx(_plant(strain="Bubba Kush"))
        assert ctx.strain_class == StrainClass.INDICA
        assert ctx.adjustment.training_method == "LST"
        assert ctx.days_in_stage == 10

    def test_days_in_flower_for_late_flowering(self):
        ctx = _ctx(_plant(stage="late_flowering", days=5))
        # hybrid flowering window starts at day 63
        assert ctx.days_in_flower == 68

    def test_growth_declining_uses_last_three_records(self):
        history = tuple(_analytics(growth_rate=g) for g in (1.0, 1.1, 1.2, 0.1))
        assert _ctx(history=history).growth_declining() is True

    def test_growth_not_declining(self):
        history = tuple(_analytics(growth_rate=g) for g in (1.2, 1.0, 0.9))
        assert _ctx(history=history).growth_declining() is False

    def test_single_record_is_not_a_trend(self):
        assert _ctx(history=(_analytics(growth_rate=0.1),)).growth_declining() is False


# ==================== Environmental ====================


class TestVpdRule:
    """Tests for evaluate_vpd."""

    def test_in_range_returns_none(self):
        assert evaluate_vpd(_ctx(environment=_env(vpd=1.0))) is None

    def test_no_environment_returns_none(self):
        assert evaluate_vpd(_ctx()) is None

    def test_low_vpd_asks_for_less_humidity(self):
        rec = evaluate_vpd(_ctx(environment=_env(vpd=0.6)))
        assert rec.category == RecommendationCategory.VPD_OPTIMIZATION
        assert rec.priority == Priority.MEDIUM
        assert rec.actions[0].directive == "decrease humidity"
        assert rec.confidence == pytest.approx(0.85)

    def test_far_off_vpd_is_high_priority(self):
        assert evaluate_vpd(_ctx(environment=_env(vpd=0.3))).priority == Priority.HIGH

    def test_vpd_derived_from_temperature_and_humidity(self):
        rec = evaluate_vpd(_ctx(environment=_env(temperature=25.0, humidity=60.0)))
        assert rec is not None
        assert rec.actions[0].directive == "increase humidity"

    def test_strain_offset_shifts_range(self):
        env = _env(vpd=0.75)
        assert evaluate_vpd(_ctx(_plant(strain="Blue Dream"), environment=env)) is not None
        assert evaluate_vpd(_ctx(_plant(strain="Bubba Kush"), environment=env)) is None


class TestTemperatureRule:
    """Tests for evaluate_temperature."""

    def test_within_tolerance_returns_none(self):
        assert evaluate_temperature(_ctx(environment=_env(temperature=26.0))) is None

    def test_moderately_hot(self):
        rec = evaluate_temperature(_ctx(environment=_env(temperature=28.0)))
        assert rec.priority == Priority.MEDIUM
        assert rec.actions[0].directive == "decrease temperature"
        assert rec.actions[0].target_range == "22-24°C"

    def test_very_cold_is_high_priority(self):
        rec = evaluate_temperature(_ctx(environment=_env(temperature=18.0)))
        assert rec.priority == Priority.HIGH
        assert rec.actions[0].directive == "increase temperature"

    def test_indica_runs_cooler(self):
        env = _env(temperature=26.0)
        assert evaluate_temperature(_ctx(_plant(strain="Bubba Kush"), environment=env)) is not None


class TestHumidityRule:
    """Tests for evaluate_humidity."""

    def test_in_range_returns_none(self):
        assert evaluate_humidity(_ctx(environment=_env(humidity=60.0))) is None

    def test_very_humid_is_high_priority(self):
        rec = evaluate_humidity(_ctx(environment=_env(humidity=80.0)))
        assert rec.priority == Priority.HIGH
        assert rec.actions[0].directive == "decrease humidity"

    def test_slightly_dry_seedling_is_medium(self):
        rec = evaluate_humidity(_ctx(_plant(stage="seedling"), environment=_env(humidity=62.0)))
        assert rec.priority == Priority.MEDIUM
        assert rec.actions[0].directive == "increase humidity"


# ==================== Nutrient ====================


class TestDeficiencyRule:
    """Tests for evaluate_deficiency."""

    @pytest.fixture
    def declining(self):
        return tuple(_analytics(growth_rate=g) for g in (0.5, 0.9, 1.2))

    def test_declining_growth_in_good_climate(self, declining):
        rec = evaluate_deficiency(_ctx(analytics=declining[0], history=declining))
        assert rec.priority == Priority.HIGH
        assert rec.actions[0].directive == "increase nitrogen"
        assert rec.confidence == pytest.approx(0.9)

    def test_flowering_focuses_on_phosphorus_and_potassium(self, declining):
        rec = evaluate_deficiency(_ctx(_plant(stage="flowering"), analytics=declining[0], history=declining))
        assert rec.actions[0].directive == "increase phosphorus and potassium"

    def test_poor_climate_is_left_to_environmental_rules(self):
        history = tuple(_analytics(growth_rate=g, efficiency=0.5) for g in (0.5, 0.9, 1.2))
        assert evaluate_deficiency(_ctx(analytics=history[0], history=history)) is None

    def test_stable_growth_returns_none(self):
        history = tuple(_analytics(growth_rate=0.5) for _ in range(3))
        assert evaluate_deficiency(_ctx(analytics=history[0], history=history)) is None

    def test_seedlings_are_skipped(self, declining):
        assert evaluate_deficiency(_ctx(_plant(stage="seedling"), analytics=declining[0], history=declining)) is None


class TestFeedingRule:
    """Tests for evaluate_feeding."""

    def test_low_nutrient_efficiency(self):
        rec = evaluate_feeding(_ctx(analytics=_analytics(growth_rate=0.9)))
        assert rec.priority == Priority.MEDIUM
        assert "moderate" in rec.description

    def test_adequate_growth_returns_none(self):
        assert evaluate_feeding(_ctx(analytics=_analytics(growth_rate=1.2))) is None

    def test_late_flowering_is_skipped(self):
        assert evaluate_feeding(_ctx(_plant(stage="late_flowering"), analytics=_analytics(growth_rate=0.1))) is None

    def test_no_analytics_returns_none(self):
        assert evaluate_feeding(_ctx()) is None


# ==================== Cultivation ====================


class TestTrainingRule:
    """Tests for evaluate_training."""

    def test_ready_plant_gets_strain_method(self):
        rec = evaluate_training(_ctx(_plant(height_cm=35.0, node_count=6)))
        assert rec.actions[0].directive == "apply LST"

    def test_sativa_gets_scrog(self):
        rec = evaluate_training(_ctx(_plant(strain="Super Silver Haze", height_cm=35.0, node_count=6)))
        assert rec.actions[0].directive == "apply SCROG"

    def test_already_trained_returns_none(self):
        plant = _plant(height_cm=35.0, node_count=6, training_history=["LST on day 20"])
        assert evaluate_training(_ctx(plant)) is None

    def test_too_short_returns_none(self):
        assert evaluate_training(_ctx(_plant(height_cm=30.0, node_count=6))) is None


class TestPruningRule:
    """Tests for evaluate_pruning."""

    def test_crowded_canopy(self):
        rec = evaluate_pruning(_ctx(_plant(node_count=9), analytics=_analytics(efficiency=0.7)))
        assert rec.priority == Priority.LOW
        assert rec.confidence == pytest.approx(0.7)

    def test_good_efficiency_returns_none(self):
        assert evaluate_pruning(_ctx(_plant(node_count=9), analytics=_analytics(efficiency=0.8))) is None

    def test_few_nodes_returns_none(self):
        assert evaluate_pruning(_ctx(_plant(node_count=8), analytics=_analytics(efficiency=0.5))) is None


# ==================== Harvest ====================


class TestHarvestRules:
    """Tests for trichome assessment, harvest timing and pre-harvest rules."""

    @pytest.mark.parametrize(
        "clear,cloudy,amber,verdict",
        [
            (5, 60, 35, "harvest"),
            (10, 75, 15, "harvest"),
            (60, 35, 5, "continue"),
            (40, 50, 10, "monitor"),
            (0, 0, 0, "monitor"),
        ],
    )
    def test_assess_trichomes(self, clear, cloudy, amber, verdict):
        plant = _plant(stage="flowering", trichomes=TrichomeReading(clear, cloudy, amber))
        assert assess_trichomes(_ctx(plant))[0] == verdict

    def test_no_trichome_check_means_monitor(self):
        assert assess_trichomes(_ctx(_plant(stage="flowering")))[0] == "monitor"

    def test_before_window_returns_none(self):
        assert evaluate_harvest_timing(_ctx(_plant(stage="flowering", days=60), analytics=_analytics())) is None

    def test_inside_window_with_amber_trichomes(self):
        plant = _plant(stage="flowering", days=65, trichomes=TrichomeReading(5, 60, 35))
        rec = evaluate_harvest_timing(_ctx(plant, analytics=_analytics()))
        assert rec.title == "Harvest Window Reached"
        assert rec.priority == Priority.HIGH
        assert rec.confidence == pytest.approx(0.9)

    def test_inside_window_without_trichome_check(self):
        rec = evaluate_harvest_timing(_ctx(_plant(stage="flowering", days=65), analytics=_analytics()))
        assert rec.title == "Monitor Harvest Window"

    def test_late_flowering_counts_from_window_start(self):
        rec = evaluate_harvest_timing(_ctx(_plant(stage="late_flowering", days=5), analytics=_analytics()))
        assert rec is not None
        assert "68 days in flower" in rec.description

    def test_no_analytics_returns_none(self):
        assert evaluate_harvest_timing(_ctx(_plant(stage="flowering", days=65))) is None

    def test_pre_harvest_fires_on_weak_climate(self):
        rec = evaluate_pre_harvest(_ctx(_plant(stage="late_flowering"), analytics=_analytics(efficiency=0.7)))
        assert rec.category == RecommendationCategory.PRE_HARVEST_OPTIMIZATION
        assert rec.confidence == pytest.approx(0.75)

    def test_pre_harvest_quiet_when_climate_good(self):
        assert evaluate_pre_harvest(_ctx(_plant(stage="late_flowering"), analytics=_analytics(efficiency=0.85))) is None

    def test_pre_harvest_only_in_late_flowering(self):
        assert evaluate_pre_harvest(_ctx(_plant(stage="flowering"), analytics=_analytics(efficiency=0.5))) is None


# ==================== Ids & ordering ====================


class TestIdsAndOrdering:
    """Tests for deterministic ids and rule order."""

    def test_rules_cover_every_category_once(self):
        assert [category for category, _rule in RULES] == list(RecommendationCategory)

    def test_same_context_same_ids(self):
        env = _env(vpd=0.3, humidity=80.0)
        first = evaluate_all(_ctx(environment=env))
        second = evaluate_all(_ctx(environment=env))
        assert [rec.id for rec in first] == [rec.id for rec in second]

    def test_different_inputs_different_ids(self):
        low = evaluate_vpd(_ctx(environment=_env(vpd=0.3)))
        lower = evaluate_vpd(_ctx(environment=_env(vpd=0.2)))
        assert low.id != lower.id

    def test_id_format(self):
        rec_id = recommendation_id(1, RecommendationCategory.PRUNING_NEED, {"node_count": 9})
        assert rec_id.startswith("rec_")
        assert len(rec_id) == 24

    def test_evaluate_all_keeps_rule_order(self):
        ctx = _ctx(
            _plant(node_count=9),
            analytics=_analytics(efficiency=0.7),
            environment=_env(vpd=0.3, humidity=80.0, temperature=24.0),
        )
        categories = [rec.category for rec in evaluate_all(ctx)]
        assert categories == [
            RecommendationCategory.VPD_OPTIMIZATION,
            RecommendationCategory.HUMIDITY_OPTIMIZATION,
            RecommendationCategory.PRUNING_NEED,
        ]
