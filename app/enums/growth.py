"""
Growth-related Enumerations
============================

Enums shared by the analytics pipeline, the rule set and the feedback flow.
"""

from __future__ import annotations

from enum import Enum


class GrowthStage(str, Enum):
    """Growth stages for plants"""

    SEEDLING = "seedling"
    VEGETATIVE = "vegetative"
    FLOWERING = "flowering"
    LATE_FLOWERING = "late_flowering"
    HARVEST = "harvest"
    ARCHIVED = "archived"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (GrowthStage.HARVEST, GrowthStage.ARCHIVED)

    @property
    def is_flowering(self) -> bool:
        return self in (GrowthStage.FLOWERING, GrowthStage.LATE_FLOWERING)

    @classmethod
    def parse(cls, value: object, default: GrowthStage | None = None) -> GrowthStage:
        """Parse a stage label ("Vegetative", "late flowering", ...) into an enum member."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(text)
        except ValueError:
            if default is not None:
                return default
            raise


class StrainClass(str, Enum):
    """Broad genetic class used to pick yield tables and strain offsets."""

    INDICA = "indica"
    SATIVA = "sativa"
    HYBRID = "hybrid"
    AUTO = "auto"

    def __str__(self):
        return self.value


class GrowingMedium(str, Enum):
    """Normalized growing medium."""

    SOIL = "soil"
    COCO = "coco"
    HYDRO = "hydro"

    def __str__(self):
        return self.value


class Priority(str, Enum):
    """Recommendation priority"""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self):
        return self.value

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class Effectiveness(str, Enum):
    """Grower-reported outcome of an implemented recommendation."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    def __str__(self):
        return self.value

    @property
    def score(self) -> float:
        return _EFFECTIVENESS_SCORES[self]


_EFFECTIVENESS_SCORES = {
    Effectiveness.POSITIVE: 1.0,
    Effectiveness.NEUTRAL: 0.5,
    Effectiveness.NEGATIVE: 0.0,
}


class RecommendationCategory(str, Enum):
    """One member per rule evaluator; the rule set is closed over this enum."""

    VPD_OPTIMIZATION = "vpd_optimization"
    TEMPERATURE_OPTIMIZATION = "temperature_optimization"
    HUMIDITY_OPTIMIZATION = "humidity_optimization"
    DEFICIENCY_PREVENTION = "deficiency_prevention"
    FEEDING_OPTIMIZATION = "feeding_optimization"
    TRAINING_OPPORTUNITY = "training_opportunity"
    PRUNING_NEED = "pruning_need"
    HARVEST_TIMING = "harvest_timing"
    PRE_HARVEST_OPTIMIZATION = "pre_harvest_optimization"

    def __str__(self):
        return self.value

    @property
    def group(self) -> str:
        """Concern group: environmental, nutrient, cultivation or harvest."""
        return _CATEGORY_GROUPS[self]


_CATEGORY_GROUPS = {
    RecommendationCategory.VPD_OPTIMIZATION: "environmental",
    RecommendationCategory.TEMPERATURE_OPTIMIZATION: "environmental",
    RecommendationCategory.HUMIDITY_OPTIMIZATION: "environmental",
    RecommendationCategory.DEFICIENCY_PREVENTION: "nutrient",
    RecommendationCategory.FEEDING_OPTIMIZATION: "nutrient",
    RecommendationCategory.TRAINING_OPPORTUNITY: "cultivation",
    RecommendationCategory.PRUNING_NEED: "cultivation",
    RecommendationCategory.HARVEST_TIMING: "harvest",
    RecommendationCategory.PRE_HARVEST_OPTIMIZATION: "harvest",
}


class ActivityType(str, Enum):
    """Activity log event types the analytics pipeline understands."""

    WATERING = "watering"
    FEEDING = "feeding"
    TRAINING = "training"
    PRUNING = "pruning"
    MEASUREMENT = "measurement"
    TRICHOME_CHECK = "trichome_check"
    OBSERVATION = "observation"

    def __str__(self):
        return self.value


CARE_ACTIVITY_TYPES = frozenset(
    {ActivityType.WATERING, ActivityType.FEEDING, ActivityType.TRAINING, ActivityType.PRUNING}
)


class MilestoneStatus(str, Enum):
    """Where a plant stands relative to a lifecycle milestone."""

    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"

    def __str__(self):
        return self.value


class TrendDirection(str, Enum):
    """Direction of a metric between two analytics periods."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"

    def __str__(self):
        return self.value
