"""
Enums Module
============

Enumeration types for the GrowLab analytics pipeline.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.growth import (
    CARE_ACTIVITY_TYPES,
    ActivityType,
    Effectiveness,
    GrowingMedium,
    GrowthStage,
    Priority,
    RecommendationCategory,
    StrainClass,
)

__all__ = [
    "CARE_ACTIVITY_TYPES",
    "ActivityType",
    "Effectiveness",
    "GrowingMedium",
    "GrowthStage",
    "Priority",
    "RecommendationCategory",
    "StrainClass",
]
