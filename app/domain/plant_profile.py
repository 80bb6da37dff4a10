"""
PlantProfile - Read-only plant snapshot for the analytics pipeline
==================================================================

Holds plant identity, stage and cultivation context as data only. The
persistence layer owns plants; analytics code never writes them back.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.enums.growth import GrowthStage
from app.utils.time import coerce_datetime, days_between, utc_now


@dataclass(frozen=True)
class TrichomeReading:
    """Latest trichome check, as percentages of clear / cloudy / amber heads."""

    clear_pct: float = 0.0
    cloudy_pct: float = 0.0
    amber_pct: float = 0.0
    checked_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "clear_pct": self.clear_pct,
            "cloudy_pct": self.cloudy_pct,
            "amber_pct": self.amber_pct,
            "checked_at": self.checked_at.isoformat() if self.checked_at else None,
        }


@dataclass
class PlantProfile:
    """Thin plant state container."""

    plant_id: int
    name: str
    strain: str | None = None
    stage: GrowthStage = GrowthStage.SEEDLING
    growing_medium: str | None = "soil"
    planted_at: datetime | None = None
    stage_started_at: datetime | None = None
    tent_id: int | None = None
    height_cm: float | None = None
    node_count: int | None = None
    training_history: list[str] = field(default_factory=list)
    trichomes: TrichomeReading | None = None

    def __post_init__(self) -> None:
        self.stage = GrowthStage.parse(self.stage, default=GrowthStage.SEEDLING)
        self.planted_at = coerce_datetime(self.planted_at)
        self.stage_started_at = coerce_datetime(self.stage_started_at)

    def days_in_stage(self, now: datetime | None = None) -> int:
        """Whole days since the current stage began (falls back to planting date)."""
        start = self.stage_started_at or self.planted_at
        if start is None:
            return 0
        return max(0, int(days_between(start, now or utc_now())))

    def total_days(self, now: datetime | None = None) -> int:
        """Whole days since planting."""
        if self.planted_at is None:
            return 0
        return max(0, int(days_between(self.planted_at, now or utc_now())))

    def has_training(self, method: str) -> bool:
        needle = method.strip().lower()
        return any(needle in str(entry).lower() for entry in self.training_history)

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        return {
            "plant_id": self.plant_id,
            "name": self.name,
            "strain": self.strain,
            "stage": self.stage.value,
            "growing_medium": self.growing_medium,
            "planted_at": self.planted_at.isoformat() if self.planted_at else None,
            "stage_started_at": self.stage_started_at.isoformat() if self.stage_started_at else None,
            "tent_id": self.tent_id,
            "height_cm": self.height_cm,
            "node_count": self.node_count,
            "training_history": list(self.training_history),
            "trichomes": self.trichomes.to_dict() if self.trichomes else None,
            "days_in_stage": self.days_in_stage(now),
            "total_days": self.total_days(now),
        }
