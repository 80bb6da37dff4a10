"""
Domain Package
==============
Value objects and pure calculations for cultivation analytics. Nothing in
this package touches the database or the clock except through arguments.
"""

from .analytics import AnalyticsRecord, EnvironmentalEfficiency
from .cultivation_records import ActivityLogEntry, EnvironmentSample, HeightMeasurement
from .plant_profile import PlantProfile, TrichomeReading
from .recommendation import (
    FeedbackRecord,
    Recommendation,
    RecommendationAction,
    RecommendationHistoryEntry,
    RecommendationSet,
)

__all__ = [
    "AnalyticsRecord",
    "EnvironmentalEfficiency",
    "ActivityLogEntry",
    "EnvironmentSample",
    "HeightMeasurement",
    "PlantProfile",
    "TrichomeReading",
    "FeedbackRecord",
    "Recommendation",
    "RecommendationAction",
    "RecommendationHistoryEntry",
    "RecommendationSet",
]
