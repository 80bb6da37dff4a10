"""
Cultivation Metrics
===================

Pure functions that turn raw samples into one derived quantity each:

- growth_rate: cm/day from recent height measurements
- stage_efficiency: [0,1] closeness of the tent climate to stage optimum
- yield_prediction: grams, from base yield and three multipliers

No I/O happens here; the analytics engine feeds these from the repositories.
Missing inputs never raise - they fall back to the documented defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from app.domain.analytics import GROWTH_RATE_BOUNDS, EnvironmentalEfficiency
from app.domain.cultivation_records import EnvironmentSample, HeightMeasurement
from app.domain.strain_profile import base_yield
from app.enums.growth import GrowingMedium, GrowthStage, StrainClass
from app.utils.psychrometrics import calculate_vpd_kpa

GROWTH_RATE_WINDOW = 5

DEFAULT_GROWTH_RATES: dict[GrowthStage, float] = {
    GrowthStage.SEEDLING: 0.5,
    GrowthStage.VEGETATIVE: 2.0,
    GrowthStage.FLOWERING: 0.8,
    GrowthStage.LATE_FLOWERING: 0.8,
    GrowthStage.HARVEST: 0.0,
    GrowthStage.ARCHIVED: 0.0,
}

YIELD_PREDICTION_BOUNDS = (10.0, 2000.0)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


# ==================== Growth rate ====================


def growth_rate(measurements: Sequence[HeightMeasurement], stage: GrowthStage) -> float:
    """
    Average daily height gain over the most recent measurements.

    Only the last five measurements are considered. An interval counts when
    time moved forward and the plant did not shrink (shrinking readings are
    usually a re-measured pot or a topping cut). With fewer than two usable
    measurements, or no usable interval, the stage default is returned.

    Returns:
        cm/day clamped to [0, 10]
    """
    valid = [
        m for m in sorted(measurements, key=lambda m: m.timestamp)
        if _finite(m.height_cm) is not None and m.height_cm >= 0
    ]
    default = DEFAULT_GROWTH_RATES.get(stage, 0.0)
    if len(valid) < 2:
        return default

    recent = valid[-GROWTH_RATE_WINDOW:]
    rates: list[float] = []
    for previous, current in zip(recent, recent[1:]):
        days = (current.timestamp - previous.timestamp).total_seconds() / 86400.0
        gained = current.height_cm - previous.height_cm
        if days > 0 and gained >= 0:
            rates.append(gained / days)

    if not rates:
        return default

    low, high = GROWTH_RATE_BOUNDS
    return round(_clamp(sum(rates) / len(rates), low, high), 3)


# ==================== Stage efficiency ====================


@dataclass(frozen=True)
class OptimalRange:
    minimum: float
    optimal: float
    maximum: float

    def score(self, value: float | None) -> float:
        """1 at the optimum, falling linearly to 0 at the far edge; 0 outside."""
        reading = _finite(value)
        if reading is None or reading < self.minimum or reading > self.maximum:
            return 0.0
        span = max(self.optimal - self.minimum, self.maximum - self.optimal)
        if span <= 0:
            return 1.0
        return round(_clamp(1.0 - abs(reading - self.optimal) / span, 0.0, 1.0), 4)

    def to_dict(self) -> dict[str, float]:
        return {"min": self.minimum, "optimal": self.optimal, "max": self.maximum}


# Temperature °C, humidity %RH, VPD kPa, light PPFD µmol/m²/s, CO2 ppm.
STAGE_OPTIMAL_RANGES: dict[GrowthStage, dict[str, OptimalRange]] = {
    GrowthStage.SEEDLING: {
        "temperature": OptimalRange(20.0, 22.5, 25.0),
        "humidity": OptimalRange(65.0, 70.0, 75.0),
        "vpd": OptimalRange(0.4, 0.6, 0.8),
        "light": OptimalRange(200.0, 300.0, 400.0),
        "co2": OptimalRange(400.0, 600.0, 800.0),
    },
    GrowthStage.VEGETATIVE: {
        "temperature": OptimalRange(22.0, 25.0, 28.0),
        "humidity": OptimalRange(50.0, 60.0, 70.0),
        "vpd": OptimalRange(0.8, 1.0, 1.2),
        "light": OptimalRange(400.0, 500.0, 600.0),
        "co2": OptimalRange(800.0, 1000.0, 1200.0),
    },
    GrowthStage.FLOWERING: {
        "temperature": OptimalRange(20.0, 23.0, 26.0),
        "humidity": OptimalRange(40.0, 45.0, 50.0),
        "vpd": OptimalRange(1.0, 1.2, 1.5),
        "light": OptimalRange(600.0, 800.0, 1000.0),
        "co2": OptimalRange(1000.0, 1200.0, 1500.0),
    },
    GrowthStage.LATE_FLOWERING: {
        "temperature": OptimalRange(18.0, 21.0, 24.0),
        "humidity": OptimalRange(35.0, 40.0, 45.0),
        "vpd": OptimalRange(1.2, 1.4, 1.6),
        "light": OptimalRange(600.0, 750.0, 900.0),
        "co2": OptimalRange(800.0, 1000.0, 1200.0),
    },
}

# Reading field on EnvironmentReadings -> sub-score key on EnvironmentalEfficiency
_DIMENSIONS: tuple[tuple[str, str, str], ...] = (
    ("temperature", "temperature", "temperature_efficiency"),
    ("humidity", "humidity", "humidity_efficiency"),
    ("vpd", "vpd", "vpd_efficiency"),
    ("light", "ppfd", "light_efficiency"),
    ("co2", "co2", "co2_efficiency"),
)


def optimal_ranges(stage: GrowthStage) -> dict[str, OptimalRange]:
    """Stage table; stages without their own table use the vegetative one."""
    return STAGE_OPTIMAL_RANGES.get(stage, STAGE_OPTIMAL_RANGES[GrowthStage.VEGETATIVE])


@dataclass(frozen=True)
class EnvironmentReadings:
    """Per-dimension averages over a window of samples (None = no data)."""

    temperature: float | None = None
    humidity: float | None = None
    vpd: float | None = None
    ppfd: float | None = None
    co2: float | None = None
    sample_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "vpd": self.vpd,
            "ppfd": self.ppfd,
            "co2": self.co2,
            "sample_count": self.sample_count,
        }


def _mean(values: Iterable[float | None]) -> float | None:
    present = [v for v in (_finite(x) for x in values) if v is not None]
    if not present:
        return None
    return round(sum(present) / len(present), 3)


def sample_vpd(sample: EnvironmentSample) -> float | None:
    """Explicit VPD when recorded, otherwise derived from temperature and humidity."""
    explicit = _finite(sample.vpd)
    if explicit is not None:
        return explicit
    return calculate_vpd_kpa(sample.temperature, sample.humidity)


def average_readings(samples: Sequence[EnvironmentSample]) -> EnvironmentReadings:
    return EnvironmentReadings(
        temperature=_mean(s.temperature for s in samples),
        humidity=_mean(s.humidity for s in samples),
        vpd=_mean(sample_vpd(s) for s in samples),
        ppfd=_mean(s.ppfd for s in samples),
        co2=_mean(s.co2 for s in samples),
        sample_count=len(samples),
    )


def stage_efficiency(stage: GrowthStage, readings: EnvironmentReadings) -> EnvironmentalEfficiency:
    """Score each climate dimension against the stage optimum and combine them."""
    ranges = optimal_ranges(stage)
    scores = {
        score_key: ranges[range_key].score(getattr(readings, reading_field))
        for range_key, reading_field, score_key in _DIMENSIONS
    }
    return EnvironmentalEfficiency.from_scores(scores)


# ==================== Yield prediction ====================


def environmental_multiplier(efficiency: EnvironmentalEfficiency) -> float:
    return 0.5 + efficiency.overall_score


def stage_progression_multiplier(stage: GrowthStage, days_in_stage: int) -> float:
    if stage == GrowthStage.SEEDLING:
        return 1.0 if days_in_stage < 14 else 0.9
    if stage == GrowthStage.VEGETATIVE:
        return 1.0 if days_in_stage < 60 else 0.95
    if stage.is_flowering:
        return 1.1 if days_in_stage > 45 else 1.0
    if stage == GrowthStage.HARVEST:
        return 0.9
    return 1.0


def care_quality_multiplier(care_activity_count: int) -> float:
    """0.8 with no care logged, +0.1 per 30 care activities, capped at 1.2."""
    if care_activity_count <= 0:
        return 0.8
    return min(1.2, 0.8 + (care_activity_count / 30.0) * 0.1)


@dataclass(frozen=True)
class YieldEstimate:
    grams: float
    base_yield: float
    environmental_multiplier: float
    stage_multiplier: float
    care_multiplier: float

    def to_dict(self) -> dict[str, float]:
        return {
            "grams": self.grams,
            "base_yield": self.base_yield,
            "environmental_multiplier": self.environmental_multiplier,
            "stage_multiplier": self.stage_multiplier,
            "care_multiplier": self.care_multiplier,
        }


def yield_prediction(
    strain_class: StrainClass,
    medium: GrowingMedium,
    stage: GrowthStage,
    days_in_stage: int,
    efficiency: EnvironmentalEfficiency,
    care_activity_count: int,
) -> YieldEstimate:
    """Predict harvest weight; the product of base yield and multipliers is clamped to [10, 2000] g."""
    base = base_yield(strain_class, medium)
    env_mult = environmental_multiplier(efficiency)
    stage_mult = stage_progression_multiplier(stage, days_in_stage)
    care_mult = care_quality_multiplier(care_activity_count)

    low, high = YIELD_PREDICTION_BOUNDS
    grams = round(_clamp(base * env_mult * stage_mult * care_mult, low, high), 2)
    return YieldEstimate(
        grams=grams,
        base_yield=base,
        environmental_multiplier=round(env_mult, 4),
        stage_multiplier=stage_mult,
        care_multiplier=round(care_mult, 4),
    )
