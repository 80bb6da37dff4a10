"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.analytics import AnalyticsRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.database.repositories.recommendations import RecommendationRepository

__all__ = [
    "AnalyticsRepository",
    "PlantRepository",
    "RecommendationRepository",
]
