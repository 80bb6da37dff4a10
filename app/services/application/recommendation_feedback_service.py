"""
Recommendation Feedback Service
===============================

Records what growers did with a surfaced recommendation and how it went.

Each submission is stored as an immutable feedback event. The per-
recommendation history entry keeps a snapshot of the recommendation and the
latest feedback, so effectiveness statistics count each recommendation once.
Submitting feedback invalidates the plant's cached recommendation sets.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from app.domain.exceptions import NotFoundError
from app.domain.recommendation import FeedbackRecord
from app.schemas.recommendations import MAX_FEEDBACK_NOTES_LENGTH, FeedbackRequest
from app.utils.cache import RecommendationCache
from app.utils.validation import sanitize_string, validate_model
from infrastructure.database.repositories.recommendations import RecommendationRepository

logger = logging.getLogger(__name__)


class RecommendationFeedbackService:
    """Feedback intake plus history and effectiveness reporting."""

    def __init__(self, repository: RecommendationRepository, cache: RecommendationCache) -> None:
        self.repository = repository
        self.cache = cache

    def submit_feedback(self, recommendation_id: str, payload: Mapping[str, Any] | None) -> FeedbackRecord:
        """
        Store feedback for a surfaced recommendation.

        Args:
            recommendation_id: Id from a ``RecommendationSet``
            payload: ``implemented``, ``effectiveness``, ``notes``, ``outcome``

        Returns:
            The stored FeedbackRecord

        Raises:
            ValidationError: malformed payload
            NotFoundError: the recommendation was never surfaced
        """
        request = validate_model(FeedbackRequest, payload)

        snapshot = self.repository.get_snapshot(recommendation_id)
        if snapshot is None:
            raise NotFoundError(
                f"Recommendation {recommendation_id} not found",
                detail={"recommendation_id": recommendation_id},
            )
        plant_id = int(snapshot["plant_id"])

        feedback = FeedbackRecord(
            recommendation_id=recommendation_id,
            plant_id=plant_id,
            implemented=request.implemented,
            effectiveness=request.effectiveness,
            notes=sanitize_string(request.notes, max_length=MAX_FEEDBACK_NOTES_LENGTH),
            outcome=dict(request.outcome),
        )
        feedback.feedback_id = self.repository.add_feedback(feedback)
        created = self.repository.record_history(feedback, snapshot.get("payload") or {})
        self.cache.clear_plant(plant_id)

        logger.info(
            "Feedback %s for recommendation %s (plant %s): implemented=%s effectiveness=%s%s",
            feedback.feedback_id,
            recommendation_id,
            plant_id,
            feedback.implemented,
            feedback.effectiveness,
            "" if created else " (history updated)",
        )
        return feedback

    def get_history(self, plant_id: int, limit: int = 50) -> dict[str, Any]:
        """History entries for a plant with implementation and effectiveness aggregates."""
        entries = self.repository.list_history(plant_id, limit=max(1, int(limit)))
        implemented = [entry for entry in entries if entry.implemented]
        rated = [entry.effectiveness.score for entry in entries if entry.effectiveness is not None]
        return {
            "plant_id": plant_id,
            "history": [entry.to_dict() for entry in entries],
            "total": len(entries),
            "implementation_rate": round(len(implemented) / len(entries), 4) if entries else 0.0,
            "average_effectiveness": round(sum(rated) / len(rated), 4) if rated else None,
        }

    def get_statistics(self) -> dict[str, Any]:
        overview = self.repository.history_overview()
        total = overview["total"]
        implemented = overview["implemented"]
        return {
            **overview,
            "implementation_rate": round(implemented / total, 4) if total else 0.0,
            "positive_rate": round(overview["positive"] / implemented, 4) if implemented else 0.0,
        }
