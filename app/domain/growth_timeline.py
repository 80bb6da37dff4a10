"""
Growth timeline
===============

Lifecycle milestones for a plant and the predictions read off them: days to
the next milestone, the next stage transition and the expected harvest.

Expected milestone days come from the strain class's genetic potential, so an
autoflower is expected to finish weeks before a sativa. Milestone status
follows the plant's recorded stage, not the calendar: a plant that is late to
flip is still ``current`` in vegetative, and its next milestone reads as due.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence

from app.domain.plant_profile import PlantProfile
from app.domain.strain_profile import GeneticPotential, stage_health, strain_adjustment
from app.enums.growth import GrowthStage, MilestoneStatus, StrainClass

GERMINATION_DAYS = 3
SEEDLING_DAYS = 14

# Days the harvest window stays open once flowering is done.
HARVEST_WINDOW_DAYS: dict[StrainClass, int] = {
    StrainClass.INDICA: 7,
    StrainClass.SATIVA: 10,
    StrainClass.HYBRID: 8,
    StrainClass.AUTO: 5,
}

YIELD_RANGE_FRACTION = 0.2
FINAL_YIELD_CONFIDENCE = 0.7

# Milestones share this ordering with plant stages; late flowering is still the flowering milestone.
_STAGE_ORDER: dict[GrowthStage, int] = {
    GrowthStage.SEEDLING: 1,
    GrowthStage.VEGETATIVE: 2,
    GrowthStage.FLOWERING: 3,
    GrowthStage.LATE_FLOWERING: 3,
    GrowthStage.HARVEST: 4,
    GrowthStage.ARCHIVED: 5,
}

# name, order, description, indicators
_MILESTONES: tuple[tuple[str, int, str, tuple[str, ...]], ...] = (
    (
        "germination",
        0,
        "Seed germination and taproot emergence",
        ("Taproot visible", "Seed shell cracked"),
    ),
    (
        "seedling",
        1,
        "First true leaves and early root development",
        ("First true leaves", "Stable growth"),
    ),
    (
        "vegetative",
        2,
        "Vegetative growth and structure development",
        ("Rapid height growth", "Node development", "Branch formation"),
    ),
    (
        "flowering",
        3,
        "Flower development and maturation",
        ("Bud formation", "Trichome development", "Aroma intensification"),
    ),
    (
        "harvest",
        4,
        "Harvest window",
        ("Cloudy trichomes", "Pistils darkened", "Peak potency"),
    ),
)

# current stage -> (next stage, trigger, timing)
_TRANSITIONS: dict[GrowthStage, tuple[GrowthStage, str, str]] = {
    GrowthStage.SEEDLING: (
        GrowthStage.VEGETATIVE,
        "third set of true leaves",
        "about two weeks after sprouting",
    ),
    GrowthStage.VEGETATIVE: (
        GrowthStage.FLOWERING,
        "light cycle change to 12/12",
        "when the desired size is reached",
    ),
    GrowthStage.FLOWERING: (
        GrowthStage.LATE_FLOWERING,
        "pistils darkening and calyxes swelling",
        "start of the strain's flowering window",
    ),
    GrowthStage.LATE_FLOWERING: (
        GrowthStage.HARVEST,
        "trichome maturity",
        "when most trichomes are cloudy with some amber",
    ),
}


@dataclass(frozen=True)
class Milestone:
    name: str
    expected_day: int
    status: MilestoneStatus
    description: str
    indicators: tuple[str, ...] = ()
    # Days spent in the stage so far; only set on the current milestone
    actual_days: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "milestone": self.name,
            "expected_day": self.expected_day,
            "status": self.status.value,
            "actual_days": self.actual_days,
            "description": self.description,
            "indicators": list(self.indicators),
        }


def _expected_days(potential: GeneticPotential) -> dict[str, int]:
    return {
        "germination": GERMINATION_DAYS,
        "seedling": SEEDLING_DAYS,
        "vegetative": potential.vegetative_days,
        "flowering": potential.total_days,
        "harvest": potential.total_days + HARVEST_WINDOW_DAYS[potential.strain_class],
    }


def growth_milestones(plant: PlantProfile, potential: GeneticPotential, now: datetime) -> list[Milestone]:
    """Milestones before the plant's stage are completed, its own is current, later ones pending."""
    plant_order = _STAGE_ORDER.get(plant.stage, 1)
    expected = _expected_days(potential)
    days_in_stage = plant.days_in_stage(now)

    milestones: list[Milestone] = []
    for name, order, description, indicators in _MILESTONES:
        if order < plant_order:
            status = MilestoneStatus.COMPLETED
        elif order == plant_order:
            status = MilestoneStatus.CURRENT
        else:
            status = MilestoneStatus.PENDING
        milestones.append(
            Milestone(
                name=name,
                expected_day=expected[name],
                status=status,
                description=description,
                indicators=indicators,
                actual_days=days_in_stage if status == MilestoneStatus.CURRENT else None,
            )
        )
    return milestones


def prediction_confidence(strain_class: StrainClass, total_days: int, expected_day: int) -> float:
    """Heuristic confidence for a milestone estimate; grows as the plant nears it."""
    base = 0.9 if strain_class == StrainClass.AUTO else 0.8
    ratio = total_days / expected_day if expected_day > 0 else 1.0
    if ratio > 0.8:
        return round(min(0.95, base + 0.1), 2)
    if ratio > 0.5:
        return base
    return round(max(0.6, base - 0.2), 2)


def harvest_confidence(milestones: Sequence[Milestone]) -> float:
    if not milestones:
        return 0.5
    completed = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED)
    return round(min(0.9, 0.5 + (completed / len(milestones)) * 0.4), 2)


def days_to_harvest(plant: PlantProfile, potential: GeneticPotential, now: datetime) -> int | None:
    """
    Whole days until the plant should be ready.

    Flowering plants count from the stage start against the flowering length;
    late flowering starts at the opening of the strain's flowering window.
    Earlier stages count from planting against the full lifecycle.

    Returns:
        0 for plants in harvest, None for archived plants
    """
    if plant.stage == GrowthStage.ARCHIVED:
        return None
    if plant.stage == GrowthStage.HARVEST:
        return 0

    days_in_stage = plant.days_in_stage(now)
    if plant.stage == GrowthStage.FLOWERING:
        return max(0, potential.flowering_days - days_in_stage)
    if plant.stage == GrowthStage.LATE_FLOWERING:
        days_in_flower = strain_adjustment(potential.strain_class).flowering_window[0] + days_in_stage
        return max(0, potential.flowering_days - days_in_flower)
    return max(0, potential.total_days - plant.total_days(now))


def next_stage_transition(plant: PlantProfile, potential: GeneticPotential, now: datetime) -> dict[str, Any] | None:
    transition = _TRANSITIONS.get(plant.stage)
    if transition is None:
        return None
    target, trigger, timing = transition

    if plant.stage == GrowthStage.SEEDLING:
        estimated = SEEDLING_DAYS - plant.total_days(now)
    elif plant.stage == GrowthStage.VEGETATIVE:
        estimated = potential.vegetative_days - plant.total_days(now)
    elif plant.stage == GrowthStage.FLOWERING:
        estimated = strain_adjustment(potential.strain_class).flowering_window[0] - plant.days_in_stage(now)
    else:
        estimated = days_to_harvest(plant, potential, now) or 0

    return {
        "from": plant.stage.value,
        "to": target.value,
        "trigger": trigger,
        "timing": timing,
        "estimated_days": max(0, estimated),
    }


def growth_predictions(
    plant: PlantProfile,
    potential: GeneticPotential,
    milestones: Sequence[Milestone],
    now: datetime,
    latest_yield: float | None = None,
) -> dict[str, Any]:
    """Next milestone, next stage transition, expected harvest and final yield range."""
    total = plant.total_days(now)

    upcoming = next((m for m in milestones if m.status == MilestoneStatus.PENDING), None)
    next_milestone = None
    if upcoming is not None:
        next_milestone = {
            "milestone": upcoming.name,
            "estimated_days": max(0, upcoming.expected_day - total),
            "confidence": prediction_confidence(potential.strain_class, total, upcoming.expected_day),
            "indicators": list(upcoming.indicators),
        }

    remaining = days_to_harvest(plant, potential, now)
    expected_harvest = None
    if remaining is not None:
        expected_harvest = {
            "days_remaining": remaining,
            "estimated_date": (now + timedelta(days=remaining)).isoformat(),
            "confidence": harvest_confidence(milestones),
            "harvest_window_days": HARVEST_WINDOW_DAYS[potential.strain_class],
        }

    final_yield = None
    if latest_yield is not None:
        final_yield = {
            "estimated_g": latest_yield,
            "range_g": {
                "min": round(latest_yield * (1 - YIELD_RANGE_FRACTION), 1),
                "max": round(latest_yield * (1 + YIELD_RANGE_FRACTION), 1),
            },
            "confidence": FINAL_YIELD_CONFIDENCE,
        }

    return {
        "next_milestone": next_milestone,
        "stage_transition": next_stage_transition(plant, potential, now),
        "expected_harvest": expected_harvest,
        "final_yield": final_yield,
    }


def stage_progression(plant: PlantProfile, milestones: Sequence[Milestone], now: datetime) -> dict[str, Any]:
    days_in_stage = plant.days_in_stage(now)
    completed = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED)
    return {
        "stage_health": stage_health(plant.stage, days_in_stage),
        "time_in_stage": days_in_stage,
        "milestones_completed": completed,
        "total_milestones": len(milestones),
        "progress_pct": round(completed / len(milestones) * 100, 1) if milestones else 0.0,
    }
