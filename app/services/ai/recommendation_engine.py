"""
Recommendation Engine
=====================

Cache-or-compute front end for the recommendation rule set.

Flow for ``generate``:
1. Validate options (``RecommendationOptions``)
2. Return the cached ``RecommendationSet`` for (plant, options) if present
3. Otherwise gather plant profile, latest analytics, latest environment
   sample and recent analytics history, evaluate every rule, filter by
   confidence, rank by priority weight × confidence
4. Persist the surfaced recommendations so feedback can reference them
5. Cache and return, unless the plant was cleared while the set was being
   computed (the stale set is returned to this caller but not stored)

The cache is injected so that the feedback service and the background
processor can invalidate the same instance.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime
from typing import Any, Callable

from app.domain.exceptions import NotFoundError
from app.domain.recommendation import Recommendation, RecommendationSet
from app.schemas.recommendations import RecommendationOptions
from app.services.ai.recommendation_rules import RuleContext, evaluate_all
from app.services.application.analytics_store import AnalyticsStore
from app.services.protocols import CultivationDataSource
from app.utils.cache import RecommendationCache
from app.utils.time import utc_now
from app.utils.validation import validate_model
from infrastructure.database.repositories.recommendations import RecommendationRepository

logger = logging.getLogger(__name__)

HISTORY_ROWS = 30


def options_digest(options: RecommendationOptions) -> str:
    """Digest of the canonical JSON of the cache-relevant options."""
    canonical = json.dumps(options.cache_fields(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def rank(recommendations: list[Recommendation]) -> list[Recommendation]:
    """Stable sort by priority weight × confidence, highest first."""
    return sorted(recommendations, key=lambda rec: rec.score, reverse=True)


def overall_confidence(recommendations: list[Recommendation]) -> float:
    if not recommendations:
        return 0.0
    return round(sum(rec.confidence for rec in recommendations) / len(recommendations), 4)


class RecommendationEngine:
    """Generates ranked, confidence-filtered recommendations per plant."""

    def __init__(
        self,
        data_source: CultivationDataSource,
        store: AnalyticsStore,
        recommendations: RecommendationRepository,
        cache: RecommendationCache,
        *,
        history_rows: int = HISTORY_ROWS,
        default_confidence_threshold: float = 0.7,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.data_source = data_source
        self.store = store
        self.recommendations = recommendations
        self.cache = cache
        self.history_rows = int(history_rows)
        self.default_confidence_threshold = float(default_confidence_threshold)
        self._clock = clock

    def generate(
        self,
        plant_id: int,
        include_historical: bool = False,
        confidence_threshold: float | None = None,
        force_refresh: bool = False,
    ) -> RecommendationSet:
        """
        Produce the recommendation set for one plant.

        Args:
            plant_id: Plant to evaluate
            include_historical: Attach recent analytics rows to the result
            confidence_threshold: Minimum confidence (defaults to the configured value)
            force_refresh: Clear this plant's cache before computing

        Raises:
            ValidationError: options out of range
            NotFoundError: plant does not exist
        """
        options = validate_model(
            RecommendationOptions,
            {
                "include_historical": include_historical,
                "confidence_threshold": (
                    self.default_confidence_threshold if confidence_threshold is None else confidence_threshold
                ),
                "force_refresh": force_refresh,
            },
        )
        key = self.cache.make_key(plant_id, options_digest(options))

        if options.force_refresh:
            self.clear_plant_cache(plant_id)
        else:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Recommendation cache hit for plant %s", plant_id)
                return cached

        generation = self.cache.generation(plant_id)
        result = self._compute(plant_id, options)
        if not self.cache.set_if_generation(key, generation, result) and self.cache.enabled:
            logger.debug("Plant %s cache cleared during generation; result not cached", plant_id)
        return result

    def clear_plant_cache(self, plant_id: int) -> int:
        removed = self.cache.clear_plant(plant_id)
        if removed:
            logger.debug("Cleared %s cached recommendation sets for plant %s", removed, plant_id)
        return removed

    def get_cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()

    def _compute(self, plant_id: int, options: RecommendationOptions) -> RecommendationSet:
        plant = self.data_source.get_plant(plant_id)
        if plant is None:
            raise NotFoundError(f"Plant {plant_id} not found", detail={"plant_id": plant_id})

        now = self._clock()
        history = self.store.get_by_plant_id(plant_id, limit=self.history_rows)
        ctx = RuleContext.build(
            plant,
            now,
            analytics=history[0] if history else None,
            environment=self.data_source.get_latest_environment_sample(plant.tent_id),
            history=tuple(history),
        )

        candidates = evaluate_all(ctx)
        surfaced = rank([rec for rec in candidates if rec.confidence >= options.confidence_threshold])
        if surfaced:
            self.recommendations.save_surfaced(surfaced)

        logger.info(
            "Generated %s recommendations for plant %s (%s evaluated, threshold %.2f)",
            len(surfaced),
            plant_id,
            len(candidates),
            options.confidence_threshold,
        )
        return RecommendationSet(
            plant_id=plant_id,
            recommendations=tuple(surfaced),
            last_updated=now,
            confidence=overall_confidence(surfaced),
            historical_analytics=(
                tuple(record.to_dict() for record in history) if options.include_historical else None
            ),
        )
