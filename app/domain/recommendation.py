"""
Recommendation value objects
============================

A ``Recommendation`` is produced by one rule evaluator. It lives in the
engine cache until it is surfaced, at which point a snapshot is persisted so
that feedback can refer to it by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from app.enums.growth import Effectiveness, GrowthStage, Priority, RecommendationCategory, StrainClass
from app.utils.time import coerce_datetime


@dataclass(frozen=True)
class RecommendationAction:
    """One step of a recommendation."""

    parameter: str
    directive: str
    current_value: Any = None
    target_range: str | None = None
    expected_benefit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameter": self.parameter,
            "directive": self.directive,
            "current_value": self.current_value,
            "target_range": self.target_range,
            "expected_benefit": self.expected_benefit,
        }


@dataclass(frozen=True)
class Recommendation:
    id: str
    plant_id: int
    category: RecommendationCategory
    priority: Priority
    title: str
    description: str
    confidence: float
    actions: tuple[RecommendationAction, ...] = ()
    reasoning: str = ""
    expected_benefit: str = ""
    strain_class: StrainClass | None = None
    stage: GrowthStage | None = None

    @property
    def score(self) -> float:
        """Sort key: priority weight × confidence."""
        return self.priority.weight * self.confidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plant_id": self.plant_id,
            "type": self.category.group,
            "category": self.category.value,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "actions": [action.to_dict() for action in self.actions],
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "expected_benefit": self.expected_benefit,
            "strain_class": self.strain_class.value if self.strain_class else None,
            "stage": self.stage.value if self.stage else None,
        }


@dataclass(frozen=True)
class RecommendationSet:
    """Result of one ``RecommendationEngine.generate`` call."""

    plant_id: int
    recommendations: tuple[Recommendation, ...]
    last_updated: datetime
    confidence: float
    historical_analytics: tuple[dict[str, Any], ...] | None = None

    @property
    def total_recommendations(self) -> int:
        return len(self.recommendations)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "plant_id": self.plant_id,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "last_updated": self.last_updated.isoformat(),
            "total_recommendations": self.total_recommendations,
            "confidence": self.confidence,
        }
        if self.historical_analytics is not None:
            data["historical_analytics"] = [dict(item) for item in self.historical_analytics]
        return data


@dataclass
class FeedbackRecord:
    recommendation_id: str
    plant_id: int
    implemented: bool
    effectiveness: Effectiveness | None = None
    notes: str | None = None
    outcome: dict[str, Any] = field(default_factory=dict)
    feedback_id: int | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedback_id": self.feedback_id,
            "recommendation_id": self.recommendation_id,
            "plant_id": self.plant_id,
            "implemented": self.implemented,
            "effectiveness": self.effectiveness.value if self.effectiveness else None,
            "notes": self.notes,
            "outcome": dict(self.outcome),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class RecommendationHistoryEntry:
    """Durable per-recommendation record: snapshot plus the latest feedback."""

    recommendation_id: str
    plant_id: int
    recommendation: dict[str, Any]
    implemented: bool = False
    effectiveness: Effectiveness | None = None
    notes: str | None = None
    outcome: dict[str, Any] = field(default_factory=dict)
    history_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> RecommendationHistoryEntry:
        effectiveness = row.get("effectiveness")
        return cls(
            history_id=row.get("history_id"),
            recommendation_id=str(row["recommendation_id"]),
            plant_id=int(row["plant_id"]),
            recommendation=row.get("recommendation") or {},
            implemented=bool(row.get("implemented")),
            effectiveness=Effectiveness(effectiveness) if effectiveness else None,
            notes=row.get("notes"),
            outcome=row.get("outcome") or {},
            created_at=coerce_datetime(row.get("created_at")),
            updated_at=coerce_datetime(row.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "history_id": self.history_id,
            "recommendation_id": self.recommendation_id,
            "plant_id": self.plant_id,
            "recommendation": dict(self.recommendation),
            "implemented": self.implemented,
            "effectiveness": self.effectiveness.value if self.effectiveness else None,
            "notes": self.notes,
            "outcome": dict(self.outcome),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
