"""
Recommendation Rules
====================

Nine pure evaluators, one per ``RecommendationCategory``. Each receives an
immutable ``RuleContext`` and returns a ``Recommendation`` or ``None``.

Rules never touch storage or the clock; the engine gathers everything up
front. Evaluation order is fixed by ``RULES`` and doubles as the tie-break
order when the engine sorts by score.

Recommendation ids are derived from the plant id, the category and the
inputs that drove the rule, so evaluating the same context twice yields the
same ids.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from app.domain.analytics import AnalyticsRecord
from app.domain.cultivation_metrics import sample_vpd
from app.domain.cultivation_records import EnvironmentSample
from app.domain.plant_profile import PlantProfile
from app.domain.recommendation import Recommendation, RecommendationAction
from app.domain.strain_profile import StrainAdjustment, classify_strain, strain_adjustment
from app.enums.growth import GrowthStage, Priority, RecommendationCategory, StrainClass

# ==================== Stage tables ====================

# (min, max) kPa before the strain offset
VPD_RANGES: dict[GrowthStage, tuple[float, float]] = {
    GrowthStage.SEEDLING: (0.4, 0.8),
    GrowthStage.VEGETATIVE: (0.8, 1.2),
    GrowthStage.FLOWERING: (1.0, 1.5),
    GrowthStage.LATE_FLOWERING: (1.2, 1.8),
}

# (day, night) °C before the strain offsets
TEMPERATURE_TARGETS: dict[GrowthStage, tuple[float, float]] = {
    GrowthStage.SEEDLING: (22.0, 20.0),
    GrowthStage.VEGETATIVE: (24.0, 22.0),
    GrowthStage.FLOWERING: (26.0, 22.0),
    GrowthStage.LATE_FLOWERING: (25.0, 20.0),
}

# (min, max) %RH before the strain offset
HUMIDITY_RANGES: dict[GrowthStage, tuple[float, float]] = {
    GrowthStage.SEEDLING: (65.0, 75.0),
    GrowthStage.VEGETATIVE: (50.0, 70.0),
    GrowthStage.FLOWERING: (40.0, 60.0),
    GrowthStage.LATE_FLOWERING: (35.0, 50.0),
}

NUTRIENT_FOCUS: dict[GrowthStage, str] = {
    GrowthStage.VEGETATIVE: "nitrogen",
    GrowthStage.FLOWERING: "phosphorus and potassium",
    GrowthStage.LATE_FLOWERING: "potassium",
}

_HUMIDITY_PREFERENCE = {
    StrainClass.INDICA: "lower",
    StrainClass.SATIVA: "higher",
    StrainClass.HYBRID: "moderate",
    StrainClass.AUTO: "consistent",
}

_TRAINING_BENEFIT = {
    StrainClass.INDICA: "bushy, even canopy",
    StrainClass.SATIVA: "height control",
    StrainClass.HYBRID: "balanced growth",
    StrainClass.AUTO: "minimal stress",
}

DEFICIENCY_STAGES = frozenset({GrowthStage.VEGETATIVE, GrowthStage.FLOWERING, GrowthStage.LATE_FLOWERING})
FEEDING_STAGES = frozenset({GrowthStage.VEGETATIVE, GrowthStage.FLOWERING})
HARVEST_STAGES = frozenset({GrowthStage.FLOWERING, GrowthStage.LATE_FLOWERING})

DECLINE_LOOKBACK = 3


def _stage_value(table: dict[GrowthStage, Any], stage: GrowthStage) -> Any:
    return table.get(stage, table[GrowthStage.VEGETATIVE])


def _fmt(value: float) -> str:
    return f"{value:g}"


# ==================== Context ====================


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at, gathered once per evaluation."""

    plant: PlantProfile
    strain_class: StrainClass
    adjustment: StrainAdjustment
    days_in_stage: int
    analytics: Optional[AnalyticsRecord] = None
    environment: Optional[EnvironmentSample] = None
    history: tuple[AnalyticsRecord, ...] = ()

    @classmethod
    def build(
        cls,
        plant: PlantProfile,
        now: datetime,
        analytics: Optional[AnalyticsRecord] = None,
        environment: Optional[EnvironmentSample] = None,
        history: tuple[AnalyticsRecord, ...] = (),
    ) -> RuleContext:
        strain_class = classify_strain(plant.strain)
        return cls(
            plant=plant,
            strain_class=strain_class,
            adjustment=strain_adjustment(strain_class),
            days_in_stage=plant.days_in_stage(now),
            analytics=analytics,
            environment=environment,
            history=tuple(history),
        )

    @property
    def stage(self) -> GrowthStage:
        return self.plant.stage

    @property
    def environmental_efficiency(self) -> Optional[float]:
        if self.analytics is None:
            return None
        return self.analytics.environmental_efficiency.overall_score

    @property
    def days_in_flower(self) -> int:
        """Late flowering is counted from the start of the strain's flowering window."""
        if self.stage == GrowthStage.LATE_FLOWERING:
            return self.adjustment.flowering_window[0] + self.days_in_stage
        return self.days_in_stage

    def growth_declining(self) -> bool:
        """True when the newest analytics growth rate is below the oldest of the last few records."""
        # history is newest first
        recent = [record.growth_rate for record in self.history[:DECLINE_LOOKBACK]]
        return len(recent) >= 2 and recent[0] < recent[-1]


def recommendation_id(plant_id: int, category: RecommendationCategory, inputs: dict[str, Any]) -> str:
    """Stable id for one (plant, category, inputs) evaluation."""
    canonical = json.dumps(
        {"plant_id": plant_id, "category": category.value, "inputs": inputs},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return "rec_" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:20]


def _build(
    ctx: RuleContext,
    category: RecommendationCategory,
    inputs: dict[str, Any],
    *,
    priority: Priority,
    title: str,
    description: str,
    confidence: float,
    action: RecommendationAction,
    reasoning: str,
    expected_benefit: str,
) -> Recommendation:
    fingerprint = {"stage": ctx.stage.value, "strain_class": ctx.strain_class.value, **inputs}
    return Recommendation(
        id=recommendation_id(ctx.plant.plant_id, category, fingerprint),
        plant_id=ctx.plant.plant_id,
        category=category,
        priority=priority,
        title=title,
        description=description,
        confidence=confidence,
        actions=(action,),
        reasoning=reasoning,
        expected_benefit=expected_benefit,
        strain_class=ctx.strain_class,
        stage=ctx.stage,
    )


# ==================== Environmental ====================


def evaluate_vpd(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.environment is None:
        return None
    current = sample_vpd(ctx.environment)
    if current is None:
        return None

    low, high = _stage_value(VPD_RANGES, ctx.stage)
    low = round(low + ctx.adjustment.vpd_offset, 2)
    high = round(high + ctx.adjustment.vpd_offset, 2)
    if low <= current <= high:
        return None

    too_low = current < low
    midpoint = (low + high) / 2
    target = f"{low:.2f}-{high:.2f} kPa"
    return _build(
        ctx,
        RecommendationCategory.VPD_OPTIMIZATION,
        {"vpd": current, "range": [low, high]},
        priority=Priority.HIGH if abs(current - midpoint) > 0.5 else Priority.MEDIUM,
        title="Optimize VPD for Current Growth Stage",
        description=f"Current VPD ({current:.2f} kPa) is {'low' if too_low else 'high'}. Target range: {target}",
        confidence=0.85,
        action=RecommendationAction(
            parameter="humidity",
            directive="decrease humidity" if too_low else "increase humidity",
            current_value=current,
            target_range=target,
            expected_benefit="Better nutrient uptake and growth rate",
        ),
        reasoning=(
            f"{ctx.strain_class.value.capitalize()} plants in {ctx.stage.value} do best around {target}; "
            f"they usually prefer {_HUMIDITY_PREFERENCE[ctx.strain_class]} humidity."
        ),
        expected_benefit="15-25% improvement in growth rate and nutrient efficiency",
    )


def evaluate_temperature(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.environment is None or ctx.environment.temperature is None:
        return None
    current = float(ctx.environment.temperature)

    day, night = _stage_value(TEMPERATURE_TARGETS, ctx.stage)
    target_day = day + ctx.adjustment.temp_day_offset
    target_night = night + ctx.adjustment.temp_night_offset
    delta = current - target_day
    if abs(delta) <= 3:
        return None

    too_hot = delta > 0
    return _build(
        ctx,
        RecommendationCategory.TEMPERATURE_OPTIMIZATION,
        {"temperature": current, "target_day": target_day},
        priority=Priority.HIGH if abs(delta) > 5 else Priority.MEDIUM,
        title="Temperature Optimization",
        description=(
            f"Current temperature ({_fmt(current)}°C) is {abs(delta):.1f}°C "
            f"{'above' if too_hot else 'below'} the {ctx.stage.value} day target of {_fmt(target_day)}°C"
        ),
        confidence=0.8,
        action=RecommendationAction(
            parameter="temperature",
            directive="decrease temperature" if too_hot else "increase temperature",
            current_value=current,
            target_range=f"{_fmt(target_night)}-{_fmt(target_day)}°C",
            expected_benefit="Steady metabolic activity and growth",
        ),
        reasoning=(
            f"{ctx.strain_class.value.capitalize()} plants prefer "
            f"{'cooler' if too_hot else 'warmer'} conditions during {ctx.stage.value}."
        ),
        expected_benefit="10-20% improvement in growth rate and stress resistance",
    )


def evaluate_humidity(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.environment is None or ctx.environment.humidity is None:
        return None
    current = float(ctx.environment.humidity)

    low, high = _stage_value(HUMIDITY_RANGES, ctx.stage)
    low += ctx.adjustment.humidity_offset
    high += ctx.adjustment.humidity_offset
    if low <= current <= high:
        return None

    too_dry = current < low
    midpoint = (low + high) / 2
    return _build(
        ctx,
        RecommendationCategory.HUMIDITY_OPTIMIZATION,
        {"humidity": current, "range": [low, high]},
        priority=Priority.HIGH if abs(current - midpoint) > 10 else Priority.MEDIUM,
        title="Humidity Optimization",
        description=f"Current humidity ({_fmt(current)}%) is outside the {ctx.stage.value} range",
        confidence=0.75,
        action=RecommendationAction(
            parameter="humidity",
            directive="increase humidity" if too_dry else "decrease humidity",
            current_value=current,
            target_range=f"{_fmt(low)}-{_fmt(high)}%",
            expected_benefit="Less mold and mildew pressure with healthy transpiration",
        ),
        reasoning=f"Humidity {'below' if too_dry else 'above'} {_fmt(low if too_dry else high)}% stresses plants in {ctx.stage.value}.",
        expected_benefit="Lower disease risk and improved plant health",
    )


# ==================== Nutrient ====================


def nutrient_efficiency(ctx: RuleContext) -> Optional[float]:
    """Observed growth rate relative to the strain's expected rate, capped at 1."""
    if ctx.analytics is None:
        return None
    expected = ctx.adjustment.expected_growth_rate
    if expected <= 0:
        return 1.0
    return round(min(1.0, ctx.analytics.growth_rate / expected), 4)


def evaluate_deficiency(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.analytics is None or ctx.stage not in DEFICIENCY_STAGES:
        return None
    growth = ctx.analytics.growth_rate
    expected = ctx.adjustment.expected_growth_rate
    efficiency = ctx.environmental_efficiency or 0.0
    # Slow growth under a poor climate is left to the environmental rules.
    if growth >= 0.5 * expected or efficiency < 0.6 or not ctx.growth_declining():
        return None

    nutrient = NUTRIENT_FOCUS[ctx.stage]
    return _build(
        ctx,
        RecommendationCategory.DEFICIENCY_PREVENTION,
        {"growth_rate": growth, "history": [r.growth_rate for r in ctx.history[:DECLINE_LOOKBACK]]},
        priority=Priority.HIGH,
        title="Prevent Nutrient Deficiency",
        description=(
            f"Growth has slowed to {growth:.2f} cm/day against an expected {expected:.2f} cm/day "
            f"while the climate is on target. Check {nutrient} availability."
        ),
        confidence=0.9,
        action=RecommendationAction(
            parameter="nutrients",
            directive=f"increase {nutrient}",
            current_value=growth,
            target_range=f">= {expected * 0.5:.2f} cm/day",
            expected_benefit="Prevent growth stunting and yield loss",
        ),
        reasoning=(
            f"{ctx.strain_class.value.capitalize()} plants have {ctx.adjustment.nutrient_needs} nutrient needs; "
            f"a declining growth trend under good conditions points to {nutrient} in {ctx.stage.value}."
        ),
        expected_benefit="Prevent 20-40% yield loss and restore healthy growth",
    )


def evaluate_feeding(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.stage not in FEEDING_STAGES:
        return None
    efficiency = nutrient_efficiency(ctx)
    if efficiency is None or efficiency >= 0.7:
        return None

    profile = ctx.adjustment.feeding_profile
    return _build(
        ctx,
        RecommendationCategory.FEEDING_OPTIMIZATION,
        {"nutrient_efficiency": efficiency},
        priority=Priority.MEDIUM,
        title="Optimize Feeding Schedule",
        description=(
            f"Low nutrient efficiency ({efficiency * 100:.1f}%). "
            f"Move to a {profile} feeding schedule for {ctx.strain_class.value} plants."
        ),
        confidence=0.8,
        action=RecommendationAction(
            parameter="feeding_schedule",
            directive=f"adjust to {profile} feeding",
            current_value=f"{efficiency * 100:.1f}% efficiency",
            target_range="70-90% efficiency",
            expected_benefit="Better nutrient uptake and growth",
        ),
        reasoning=f"{ctx.strain_class.value.capitalize()} plants respond well to {profile} feeding.",
        expected_benefit="15-25% improvement in growth rate and nutrient utilization",
    )


# ==================== Cultivation ====================


def evaluate_training(ctx: RuleContext) -> Optional[Recommendation]:
    plant = ctx.plant
    if ctx.stage != GrowthStage.VEGETATIVE or plant.height_cm is None or plant.node_count is None:
        return None
    if plant.height_cm <= 30 or plant.node_count < 6 or plant.has_training("lst"):
        return None

    method = ctx.adjustment.training_method
    return _build(
        ctx,
        RecommendationCategory.TRAINING_OPPORTUNITY,
        {"height_cm": plant.height_cm, "node_count": plant.node_count},
        priority=Priority.MEDIUM,
        title="Training Technique Recommendation",
        description=f"Plant is ready for {method}. Height: {_fmt(plant.height_cm)}cm, nodes: {plant.node_count}",
        confidence=0.85,
        action=RecommendationAction(
            parameter="training",
            directive=f"apply {method}",
            current_value="no low-stress training applied",
            target_range=f"{method} training",
            expected_benefit=_TRAINING_BENEFIT[ctx.strain_class],
        ),
        reasoning=f"{ctx.strain_class.value.capitalize()} plants respond well to {method}, and the plant has enough height and nodes.",
        expected_benefit="20-30% more yield from better light distribution",
    )


def evaluate_pruning(ctx: RuleContext) -> Optional[Recommendation]:
    efficiency = ctx.environmental_efficiency
    node_count = ctx.plant.node_count
    if efficiency is None or node_count is None or ctx.stage != GrowthStage.VEGETATIVE:
        return None
    if node_count <= 8 or efficiency >= 0.8:
        return None

    return _build(
        ctx,
        RecommendationCategory.PRUNING_NEED,
        {"node_count": node_count, "environmental_efficiency": efficiency},
        priority=Priority.LOW,
        title="Pruning and Defoliation",
        description="Consider selective defoliation to improve airflow and light penetration",
        confidence=0.7,
        action=RecommendationAction(
            parameter="pruning",
            directive="selective defoliation",
            current_value=f"{node_count} nodes",
            target_range="remove 20-30% of lower leaves",
            expected_benefit="Improved airflow and light distribution",
        ),
        reasoning="A high node count with a weak climate score suggests an overcrowded canopy.",
        expected_benefit="10-15% improvement in environmental efficiency and bud development",
    )


# ==================== Harvest ====================


def assess_trichomes(ctx: RuleContext) -> tuple[str, str]:
    """('harvest' | 'continue' | 'monitor', description) from the latest trichome check."""
    reading = ctx.plant.trichomes
    if reading is None:
        return "monitor", "No trichome check recorded yet"
    total = reading.clear_pct + reading.cloudy_pct + reading.amber_pct
    if total <= 0:
        return "monitor", "No trichomes counted in the last check"

    clear = reading.clear_pct / total * 100
    cloudy = reading.cloudy_pct / total * 100
    amber = reading.amber_pct / total * 100
    if amber > 30:
        return "harvest", f"High amber trichomes ({amber:.1f}%), peak potency window"
    if cloudy > 70:
        return "harvest", f"Mostly cloudy trichomes ({cloudy:.1f}%), good potency"
    if clear > 50:
        return "continue", f"Mostly clear trichomes ({clear:.1f}%), keep flowering"
    return "monitor", "Mixed trichome development, check again in a few days"


def evaluate_harvest_timing(ctx: RuleContext) -> Optional[Recommendation]:
    if ctx.analytics is None or ctx.stage not in HARVEST_STAGES:
        return None
    window_start, window_end = ctx.adjustment.flowering_window
    days_in_flower = ctx.days_in_flower
    if days_in_flower < window_start:
        return None

    verdict, trichome_text = assess_trichomes(ctx)
    directives = {
        "harvest": ("begin harvest preparation", "harvest within 3-7 days"),
        "continue": ("continue flowering", f"re-check trichomes before day {window_end}"),
        "monitor": ("inspect trichomes every 2-3 days", f"day {window_start}-{window_end} of flower"),
    }
    directive, target = directives[verdict]
    titles = {
        "harvest": "Harvest Window Reached",
        "continue": "Continue Flowering",
        "monitor": "Monitor Harvest Window",
    }
    return _build(
        ctx,
        RecommendationCategory.HARVEST_TIMING,
        {"days_in_flower": days_in_flower, "verdict": verdict, "trichomes": trichome_text},
        priority=Priority.HIGH,
        title=titles[verdict],
        description=f"{days_in_flower} days in flower. Trichome analysis: {trichome_text}",
        confidence=0.9,
        action=RecommendationAction(
            parameter="harvest",
            directive=directive,
            current_value=f"{days_in_flower} days in flower",
            target_range=target,
            expected_benefit="Peak potency and yield",
        ),
        reasoning=(
            f"{ctx.strain_class.value.capitalize()} plants usually flower for {window_start}-{window_end} days; "
            "trichome colour decides the exact day."
        ),
        expected_benefit="Maximum potency and yield at the right harvest moment",
    )


def evaluate_pre_harvest(ctx: RuleContext) -> Optional[Recommendation]:
    efficiency = ctx.environmental_efficiency
    if efficiency is None or ctx.stage != GrowthStage.LATE_FLOWERING or efficiency >= 0.8:
        return None

    return _build(
        ctx,
        RecommendationCategory.PRE_HARVEST_OPTIMIZATION,
        {"environmental_efficiency": efficiency},
        priority=Priority.MEDIUM,
        title="Pre-Harvest Optimization",
        description="Tune the environment for the final weeks of flowering to maximize resin production",
        confidence=0.75,
        action=RecommendationAction(
            parameter="environment",
            directive="optimize for resin production",
            current_value=f"{efficiency * 100:.1f}% efficiency",
            target_range="80-90% efficiency",
            expected_benefit="More resin and potency",
        ),
        reasoning="Late flowering decides final resin content; climate gains here show up directly in potency.",
        expected_benefit="15-25% increase in resin production and overall potency",
    )


Rule = Callable[[RuleContext], Optional[Recommendation]]

RULES: tuple[tuple[RecommendationCategory, Rule], ...] = (
    (RecommendationCategory.VPD_OPTIMIZATION, evaluate_vpd),
    (RecommendationCategory.TEMPERATURE_OPTIMIZATION, evaluate_temperature),
    (RecommendationCategory.HUMIDITY_OPTIMIZATION, evaluate_humidity),
    (RecommendationCategory.DEFICIENCY_PREVENTION, evaluate_deficiency),
    (RecommendationCategory.FEEDING_OPTIMIZATION, evaluate_feeding),
    (RecommendationCategory.TRAINING_OPPORTUNITY, evaluate_training),
    (RecommendationCategory.PRUNING_NEED, evaluate_pruning),
    (RecommendationCategory.HARVEST_TIMING, evaluate_harvest_timing),
    (RecommendationCategory.PRE_HARVEST_OPTIMIZATION, evaluate_pre_harvest),
)


def evaluate_all(ctx: RuleContext) -> list[Recommendation]:
    """Run every rule in order and keep the ones that fired."""
    results: list[Recommendation] = []
    for _category, rule in RULES:
        rec = rule(ctx)
        if rec is not None:
            results.append(rec)
    return results
