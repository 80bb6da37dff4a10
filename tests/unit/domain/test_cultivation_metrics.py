"""
Unit tests for the cultivation metric library.

Covers:
- growth_rate windowing, shrink filtering and stage defaults
- OptimalRange scoring and stage efficiency weighting
- yield_prediction multipliers
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.analytics import EnvironmentalEfficiency
from app.domain.cultivation_metrics import (
    DEFAULT_GROWTH_RATES,
    EnvironmentReadings,
    OptimalRange,
    average_readings,
    care_quality_multiplier,
    growth_rate,
    optimal_ranges,
    stage_efficiency,
    stage_progression_multiplier,
    yield_prediction,
)
from app.domain.cultivation_records import ActivityLogEntry, EnvironmentSample, HeightMeasurement, height_measurements
from app.enums.growth import GrowingMedium, GrowthStage, StrainClass
from app.utils.psychrometrics import calculate_vpd_kpa

BASE = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _series(*points):
    """(day offset, height) pairs -> HeightMeasurement list."""
    return [HeightMeasurement(timestamp=BASE + timedelta(days=day), height_cm=height) for day, height in points]


# ==================== Growth rate ====================


class TestGrowthRate:
    """Tests for growth_rate."""

    def test_single_measurement_returns_stage_default(self):
        assert growth_rate(_series((0, 10.0)), GrowthStage.VEGETATIVE) == DEFAULT_GROWTH_RATES[GrowthStage.VEGETATIVE]

    def test_no_measurements_returns_stage_default(self):
        assert growth_rate([], GrowthStage.SEEDLING) == pytest.approx(0.5)

    def test_average_of_intervals(self):
        rate = growth_rate(_series((0, 10.0), (2, 13.0), (4, 16.0)), GrowthStage.FLOWERING)
        assert rate == pytest.approx(1.5)

    def test_shrinking_interval_is_ignored(self):
        rate = growth_rate(_series((0, 10.0), (2, 14.0), (3, 12.0), (5, 16.0)), GrowthStage.SEEDLING)
        assert rate == pytest.approx(2.0)

    def test_all_intervals_shrinking_returns_default(self):
        rate = growth_rate(_series((0, 20.0), (1, 18.0), (2, 15.0)), GrowthStage.FLOWERING)
        assert rate == pytest.approx(DEFAULT_GROWTH_RATES[GrowthStage.FLOWERING])

    def test_only_last_five_measurements_count(self):
        points = _series((0, 0.0), (1, 20.0), (2, 21.0), (3, 22.0), (4, 23.0), (5, 24.0))
        assert growth_rate(points, GrowthStage.VEGETATIVE) == pytest.approx(1.0)

    def test_rate_is_clamped_to_upper_bound(self):
        assert growth_rate(_series((0, 0.0), (1, 50.0)), GrowthStage.VEGETATIVE) == pytest.approx(10.0)

    def test_unsorted_input_is_ordered_by_time(self):
        points = list(reversed(_series((0, 10.0), (2, 13.0), (4, 16.0))))
        assert growth_rate(points, GrowthStage.VEGETATIVE) == pytest.approx(1.5)

    def test_height_measurements_filters_activity_log(self):
        entries = [
            ActivityLogEntry(timestamp=BASE + timedelta(days=1), activity_type="measurement", value=12.0),
            ActivityLogEntry(timestamp=BASE, activity_type="measurement", value=10.0),
            ActivityLogEntry(timestamp=BASE, activity_type="watering"),
            ActivityLogEntry(timestamp=BASE, activity_type="measurement", value=None),
        ]
        points = height_measurements(entries)
        assert [p.height_cm for p in points] == [10.0, 12.0]


# ==================== Environmental efficiency ====================


class TestOptimalRange:
    """Tests for OptimalRange.score."""

    @pytest.fixture
    def veg_temperature(self):
        return OptimalRange(22.0, 25.0, 28.0)

    def test_optimum_scores_one(self, veg_temperature):
        assert veg_temperature.score(25.0) == 1.0

    def test_linear_falloff(self, veg_temperature):
        assert veg_temperature.score(26.5) == pytest.approx(0.5)

    def test_outside_range_scores_zero(self, veg_temperature):
        assert veg_temperature.score(21.9) == 0.0
        assert veg_temperature.score(28.1) == 0.0

    def test_missing_value_scores_zero(self, veg_temperature):
        assert veg_temperature.score(None) == 0.0
        assert veg_temperature.score(float("nan")) == 0.0


class TestStageEfficiency:
    """Tests for stage_efficiency and average_readings."""

    def test_optimal_vegetative_climate_scores_one(self):
        readings = EnvironmentReadings(temperature=25.0, humidity=60.0, vpd=1.0, ppfd=500.0, co2=1000.0)
        efficiency = stage_efficiency(GrowthStage.VEGETATIVE, readings)
        assert efficiency.overall_score == pytest.approx(1.0)
        assert efficiency.co2_efficiency == pytest.approx(1.0)

    def test_co2_does_not_move_overall_score(self):
        with_co2 = EnvironmentReadings(temperature=25.0, humidity=60.0, vpd=1.0, ppfd=500.0, co2=1000.0)
        without_co2 = EnvironmentReadings(temperature=25.0, humidity=60.0, vpd=1.0, ppfd=500.0)
        assert (
            stage_efficiency(GrowthStage.VEGETATIVE, with_co2).overall_score
            == stage_efficiency(GrowthStage.VEGETATIVE, without_co2).overall_score
        )

    def test_no_readings_scores_zero(self):
        efficiency = stage_efficiency(GrowthStage.FLOWERING, EnvironmentReadings())
        assert efficiency == EnvironmentalEfficiency.zero()

    def test_weights_apply_per_dimension(self):
        # Only VPD on target: its 0.30 weight is the whole score.
        readings = EnvironmentReadings(vpd=1.2)
        assert stage_efficiency(GrowthStage.FLOWERING, readings).overall_score == pytest.approx(0.30)

    def test_terminal_stage_uses_vegetative_table(self):
        assert optimal_ranges(GrowthStage.HARVEST) == optimal_ranges(GrowthStage.VEGETATIVE)

    def test_average_readings_derives_missing_vpd(self):
        samples = [
            EnvironmentSample(timestamp=BASE, temperature=25.0, humidity=60.0),
            EnvironmentSample(timestamp=BASE, temperature=25.0, humidity=60.0, vpd=None),
        ]
        readings = average_readings(samples)
        assert readings.vpd == pytest.approx(calculate_vpd_kpa(25.0, 60.0), abs=1e-3)
        assert readings.ppfd is None
        assert readings.sample_count == 2

    def test_average_readings_skips_missing_values(self):
        samples = [
            EnvironmentSample(timestamp=BASE, temperature=20.0),
            EnvironmentSample(timestamp=BASE, temperature=None),
            EnvironmentSample(timestamp=BASE, temperature=24.0),
        ]
        assert average_readings(samples).temperature == pytest.approx(22.0)


# ==================== Yield prediction ====================


class TestYieldPrediction:
    """Tests for yield_prediction and its multipliers."""

    def test_zero_efficiency_and_no_care(self):
        estimate = yield_prediction(
            StrainClass.HYBRID, GrowingMedium.SOIL, GrowthStage.VEGETATIVE, 10, EnvironmentalEfficiency.zero(), 0
        )
        # 140 g × 0.5 × 1.0 × 0.8
        assert estimate.grams == pytest.approx(56.0)
        assert estimate.base_yield == pytest.approx(140.0)

    def test_full_efficiency_with_care(self):
        efficiency = EnvironmentalEfficiency.from_scores(
            {
                "temperature_efficiency": 1.0,
                "humidity_efficiency": 1.0,
                "vpd_efficiency": 1.0,
                "light_efficiency": 1.0,
            }
        )
        estimate = yield_prediction(StrainClass.HYBRID, GrowingMedium.SOIL, GrowthStage.VEGETATIVE, 10, efficiency, 30)
        # 140 g × 1.5 × 1.0 × 0.9
        assert estimate.grams == pytest.approx(189.0)

    def test_medium_multiplier_applies_to_base(self):
        estimate = yield_prediction(
            StrainClass.INDICA, GrowingMedium.HYDRO, GrowthStage.VEGETATIVE, 0, EnvironmentalEfficiency.zero(), 0
        )
        assert estimate.base_yield == pytest.approx(172.5)

    @pytest.mark.parametrize(
        "stage,days,expected",
        [
            (GrowthStage.SEEDLING, 5, 1.0),
            (GrowthStage.SEEDLING, 20, 0.9),
            (GrowthStage.VEGETATIVE, 61, 0.95),
            (GrowthStage.FLOWERING, 46, 1.1),
            (GrowthStage.LATE_FLOWERING, 10, 1.0),
            (GrowthStage.HARVEST, 1, 0.9),
        ],
    )
    def test_stage_progression_multiplier(self, stage, days, expected):
        assert stage_progression_multiplier(stage, days) == pytest.approx(expected)

    def test_care_multiplier_scales_and_caps(self):
        assert care_quality_multiplier(0) == pytest.approx(0.8)
        assert care_quality_multiplier(15) == pytest.approx(0.85)
        assert care_quality_multiplier(500) == pytest.approx(1.2)
