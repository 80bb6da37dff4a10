"""
Strain & medium knowledge
=========================

Keyword classifiers plus the per-strain-class tables every other analytics
module reads from. Strain-specific behaviour is expressed as rows in
``STRAIN_ADJUSTMENTS``; adding a strain class means adding one row there and
one in ``_BASE_POTENTIAL``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from app.enums.growth import GrowingMedium, GrowthStage, StrainClass

AUTO_KEYWORDS = frozenset({"auto", "autoflower", "ruderalis"})
INDICA_KEYWORDS = frozenset({"indica", "kush", "afghan", "bubba", "purple", "og", "cookies"})
SATIVA_KEYWORDS = frozenset({"sativa", "haze", "diesel", "jack", "amnesia", "silver", "durban"})

HYDRO_KEYWORDS = frozenset({"hydro", "hydroponic", "dwc", "rdwc", "aero", "aeroponic", "nft", "ebb"})
COCO_KEYWORDS = frozenset({"coco", "coir"})

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _matches(keyword: str, text: str, tokens: set[str]) -> bool:
    # Short keywords ("og") only match whole words so "dog" is not an OG.
    if len(keyword) <= 3:
        return keyword in tokens
    return keyword in text


def classify_strain(name: str | None) -> StrainClass:
    """Map a free-text strain label to a strain class.

    Autoflower markers win outright. Otherwise the side with more keyword
    hits wins; ties and labels without any hit are hybrids.
    """
    text = str(name or "").lower()
    tokens = set(_TOKEN_RE.findall(text))

    if any(_matches(keyword, text, tokens) for keyword in AUTO_KEYWORDS):
        return StrainClass.AUTO

    indica_hits = sum(1 for keyword in INDICA_KEYWORDS if _matches(keyword, text, tokens))
    sativa_hits = sum(1 for keyword in SATIVA_KEYWORDS if _matches(keyword, text, tokens))

    if indica_hits > sativa_hits:
        return StrainClass.INDICA
    if sativa_hits > indica_hits:
        return StrainClass.SATIVA
    return StrainClass.HYBRID


def normalize_medium(name: str | None) -> GrowingMedium:
    """Map a free-text medium label to soil / coco / hydro (default soil)."""
    text = str(name or "").lower()
    tokens = set(_TOKEN_RE.findall(text))
    if any(_matches(keyword, text, tokens) for keyword in HYDRO_KEYWORDS):
        return GrowingMedium.HYDRO
    if any(_matches(keyword, text, tokens) for keyword in COCO_KEYWORDS):
        return GrowingMedium.COCO
    return GrowingMedium.SOIL


@dataclass(frozen=True)
class StrainAdjustment:
    """Offsets and preferences applied on top of the stage defaults."""

    vpd_offset: float
    temp_day_offset: float
    temp_night_offset: float
    humidity_offset: float
    nutrient_needs: str
    feeding_profile: str
    training_method: str
    flowering_window: tuple[int, int]
    expected_growth_rate: float


STRAIN_ADJUSTMENTS: dict[StrainClass, StrainAdjustment] = {
    StrainClass.INDICA: StrainAdjustment(
        vpd_offset=-0.1,
        temp_day_offset=-2.0,
        temp_night_offset=-2.0,
        humidity_offset=-5.0,
        nutrient_needs="high",
        feeding_profile="heavy",
        training_method="LST",
        flowering_window=(56, 70),
        expected_growth_rate=1.2,
    ),
    StrainClass.SATIVA: StrainAdjustment(
        vpd_offset=0.1,
        temp_day_offset=2.0,
        temp_night_offset=1.0,
        humidity_offset=5.0,
        nutrient_needs="medium",
        feeding_profile="moderate",
        training_method="SCROG",
        flowering_window=(70, 90),
        expected_growth_rate=1.8,
    ),
    StrainClass.HYBRID: StrainAdjustment(
        vpd_offset=0.0,
        temp_day_offset=0.0,
        temp_night_offset=0.0,
        humidity_offset=0.0,
        nutrient_needs="medium",
        feeding_profile="moderate",
        training_method="LST",
        flowering_window=(63, 80),
        expected_growth_rate=1.5,
    ),
    StrainClass.AUTO: StrainAdjustment(
        vpd_offset=0.0,
        temp_day_offset=0.0,
        temp_night_offset=0.0,
        humidity_offset=0.0,
        nutrient_needs="low",
        feeding_profile="light",
        training_method="LST",
        flowering_window=(50, 75),
        expected_growth_rate=1.0,
    ),
}


def strain_adjustment(strain_class: StrainClass) -> StrainAdjustment:
    return STRAIN_ADJUSTMENTS[strain_class]


# ==================== Genetic potential ====================

# strain class -> (expected yield g, veg days, flower days, total days)
_BASE_POTENTIAL: dict[StrainClass, tuple[float, int, int, int]] = {
    StrainClass.INDICA: (150.0, 35, 63, 98),
    StrainClass.SATIVA: (130.0, 42, 77, 119),
    StrainClass.HYBRID: (140.0, 38, 70, 108),
    StrainClass.AUTO: (75.0, 21, 49, 70),
}

MEDIUM_YIELD_MULTIPLIERS: dict[GrowingMedium, float] = {
    GrowingMedium.HYDRO: 1.15,
    GrowingMedium.COCO: 1.1,
    GrowingMedium.SOIL: 1.0,
}


@dataclass(frozen=True)
class GeneticPotential:
    strain_class: StrainClass
    medium: GrowingMedium
    expected_yield_g: float
    vegetative_days: int
    flowering_days: int
    total_days: int
    expected_growth_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "strain_class": self.strain_class.value,
            "medium": self.medium.value,
            "expected_yield_g": self.expected_yield_g,
            "lifecycle": {
                "vegetative_days": self.vegetative_days,
                "flowering_days": self.flowering_days,
                "total_days": self.total_days,
            },
            "expected_growth_rate": self.expected_growth_rate,
        }


def base_yield(strain_class: StrainClass, medium: GrowingMedium) -> float:
    """Base yield in grams for a (strain class × medium) pair."""
    expected, _veg, _flower, _total = _BASE_POTENTIAL[strain_class]
    return round(expected * MEDIUM_YIELD_MULTIPLIERS[medium], 1)


def genetic_potential(strain_class: StrainClass, medium: GrowingMedium) -> GeneticPotential:
    _expected, veg, flower, total = _BASE_POTENTIAL[strain_class]
    return GeneticPotential(
        strain_class=strain_class,
        medium=medium,
        expected_yield_g=base_yield(strain_class, medium),
        vegetative_days=veg,
        flowering_days=flower,
        total_days=total,
        expected_growth_rate=STRAIN_ADJUSTMENTS[strain_class].expected_growth_rate,
    )


# ==================== Stage health ====================

# stage -> (last optimal day, last warning day); anything later is critical
_STAGE_HEALTH_RANGES: dict[GrowthStage, tuple[int, int]] = {
    GrowthStage.SEEDLING: (14, 21),
    GrowthStage.VEGETATIVE: (45, 70),
    GrowthStage.FLOWERING: (70, 84),
    GrowthStage.LATE_FLOWERING: (21, 28),
    GrowthStage.HARVEST: (7, 14),
}

_WARNING_ADVICE = {
    GrowthStage.SEEDLING: "Monitor growth progress - ensure optimal conditions",
    GrowthStage.VEGETATIVE: "Consider transitioning to flowering soon",
    GrowthStage.FLOWERING: "Begin checking trichomes for harvest timing",
    GrowthStage.LATE_FLOWERING: "Check trichomes every other day",
    GrowthStage.HARVEST: "Plan harvest within the next few days",
}

_CRITICAL_ADVICE = {
    GrowthStage.SEEDLING: "Review light intensity and climate - seedling development is stalled",
    GrowthStage.VEGETATIVE: "Plant may be ready for flowering transition - check size and health",
    GrowthStage.FLOWERING: "Check trichomes for harvest readiness - may be overripe if delayed",
    GrowthStage.LATE_FLOWERING: "Harvest window is closing - check trichomes today",
    GrowthStage.HARVEST: "Harvest immediately - quality may be declining",
}


def stage_health(stage: GrowthStage, days_in_stage: int) -> dict[str, Any]:
    """Classify how long a plant has been in its stage: optimal, warning or critical."""
    optimal_until, warning_until = _STAGE_HEALTH_RANGES.get(stage, _STAGE_HEALTH_RANGES[GrowthStage.VEGETATIVE])
    if days_in_stage > warning_until:
        status, score, advice = "critical", 30, _CRITICAL_ADVICE.get(stage)
    elif days_in_stage > optimal_until:
        status, score, advice = "warning", 60, _WARNING_ADVICE.get(stage)
    else:
        status, score, advice = "optimal", 100, None
    return {
        "stage": stage.value,
        "status": status,
        "score": score,
        "days_in_stage": days_in_stage,
        "optimal_range": [1, optimal_until],
        "recommendation": advice,
    }
