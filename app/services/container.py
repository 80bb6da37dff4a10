from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.config import AppConfig
from app.services.ai.recommendation_engine import RecommendationEngine
from app.services.application.analytics_engine import AnalyticsEngine
from app.services.application.analytics_store import AnalyticsStore
from app.services.application.recommendation_feedback_service import RecommendationFeedbackService
from app.utils.cache import CacheRegistry, RecommendationCache
from app.workers.background_processor import BackgroundProcessor
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.analytics import AnalyticsRepository
from infrastructure.database.repositories.plants import PlantRepository
from infrastructure.database.repositories.recommendations import RecommendationRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the analytics services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    plant_repo: PlantRepository
    analytics_repo: AnalyticsRepository
    recommendation_repo: RecommendationRepository
    analytics_store: AnalyticsStore
    analytics_engine: AnalyticsEngine
    recommendation_cache: RecommendationCache
    cache_registry: CacheRegistry
    recommendation_engine: RecommendationEngine
    feedback_service: RecommendationFeedbackService
    scheduler: UnifiedScheduler
    background_processor: BackgroundProcessor

    @classmethod
    def build(cls, config: AppConfig, *, start_processor: Optional[bool] = None) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            start_processor: Start the background processor; defaults to ``config.scheduler_enabled``
        """
        logger.info("Building ServiceContainer (database=%s)", config.database_path)
        database = SQLiteDatabaseHandler(config.database_path)
        database.init_db()

        plant_repo = PlantRepository(database)
        analytics_repo = AnalyticsRepository(database)
        recommendation_repo = RecommendationRepository(database)

        analytics_store = AnalyticsStore(analytics_repo)
        analytics_engine = AnalyticsEngine(
            plant_repo,
            analytics_store,
            window_days=config.analytics_window_days,
            freshness_hours=config.analytics_freshness_hours,
        )

        recommendation_cache = RecommendationCache(
            enabled=config.recommendation_cache_enabled,
            ttl_seconds=config.recommendation_cache_ttl_seconds,
            maxsize=config.recommendation_cache_maxsize,
        )
        cache_registry = CacheRegistry()
        cache_registry.register("recommendations", recommendation_cache)

        recommendation_engine = RecommendationEngine(
            plant_repo,
            analytics_store,
            recommendation_repo,
            recommendation_cache,
            history_rows=config.recommendation_history_rows,
            default_confidence_threshold=config.recommendation_confidence_threshold,
        )
        feedback_service = RecommendationFeedbackService(recommendation_repo, recommendation_cache)

        scheduler = UnifiedScheduler(max_workers=config.scheduler_max_workers)
        background_processor = BackgroundProcessor.from_config(
            config,
            database=database,
            data_source=plant_repo,
            engine=analytics_engine,
            store=analytics_store,
            recommendation_engine=recommendation_engine,
            scheduler=scheduler,
        )

        container = cls(
            config=config,
            database=database,
            plant_repo=plant_repo,
            analytics_repo=analytics_repo,
            recommendation_repo=recommendation_repo,
            analytics_store=analytics_store,
            analytics_engine=analytics_engine,
            recommendation_cache=recommendation_cache,
            cache_registry=cache_registry,
            recommendation_engine=recommendation_engine,
            feedback_service=feedback_service,
            scheduler=scheduler,
            background_processor=background_processor,
        )

        if config.scheduler_enabled if start_processor is None else start_processor:
            background_processor.start()

        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        self.background_processor.stop()
        self.scheduler.stop(wait=True)
        self.database.close_all()
        logger.info("ServiceContainer shutdown complete.")
