from __future__ import annotations

from typing import Any

from app.domain.recommendation import FeedbackRecord, Recommendation, RecommendationHistoryEntry
from infrastructure.database.ops.recommendations import RecommendationOperations


class RecommendationRepository:
    """Recommendation snapshots, feedback events and history entries."""

    def __init__(self, backend: RecommendationOperations) -> None:
        self._backend = backend

    def save_surfaced(self, recommendations: list[Recommendation]) -> None:
        for rec in recommendations:
            self._backend.upsert_recommendation(
                recommendation_id=rec.id,
                plant_id=rec.plant_id,
                category=rec.category.value,
                priority=rec.priority.value,
                confidence=rec.confidence,
                payload=rec.to_dict(),
            )

    def get_snapshot(self, recommendation_id: str) -> dict[str, Any] | None:
        """``{"plant_id": ..., "payload": {...}}`` for a surfaced recommendation, or None."""
        return self._backend.get_recommendation_row(recommendation_id)

    def add_feedback(self, feedback: FeedbackRecord) -> int:
        return self._backend.insert_feedback(
            recommendation_id=feedback.recommendation_id,
            plant_id=feedback.plant_id,
            implemented=feedback.implemented,
            effectiveness=feedback.effectiveness.value if feedback.effectiveness else None,
            notes=feedback.notes,
            outcome=feedback.outcome,
        )

    def record_history(self, feedback: FeedbackRecord, snapshot: dict[str, Any]) -> bool:
        return self._backend.save_history(
            recommendation_id=feedback.recommendation_id,
            plant_id=feedback.plant_id,
            recommendation=snapshot,
            implemented=feedback.implemented,
            effectiveness=feedback.effectiveness.value if feedback.effectiveness else None,
            notes=feedback.notes,
            outcome=feedback.outcome,
        )

    def list_history(self, plant_id: int, limit: int = 50) -> list[RecommendationHistoryEntry]:
        return [RecommendationHistoryEntry.from_row(row) for row in self._backend.list_history_rows(plant_id, limit)]

    def history_overview(self) -> dict[str, int]:
        return self._backend.get_history_overview()
