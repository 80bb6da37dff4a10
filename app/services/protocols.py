"""
Service protocols (structural typing interfaces).

Protocols let the analytics services declare the *minimal* surface they
depend on without importing the concrete SQLite repositories, which keeps
tests trivially mockable.

At runtime ``PlantRepository`` satisfies ``CultivationDataSource`` via
structural subtyping; no explicit inheritance needed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from app.domain.cultivation_records import ActivityLogEntry, EnvironmentSample
from app.domain.plant_profile import PlantProfile


@runtime_checkable
class CultivationDataSource(Protocol):
    """Read-only view over plants and their raw samples."""

    def get_plant(self, plant_id: int) -> Optional[PlantProfile]:
        """Return a single plant profile, or ``None`` if not found."""
        ...

    def plant_exists(self, plant_id: int) -> bool:
        ...

    def list_active_plants(self) -> List[Dict[str, Any]]:
        """Return ``{"plant_id", "stage"}`` dicts for plants not in a terminal stage."""
        ...

    def get_environment_samples(
        self, tent_id: Optional[int], start: datetime, end: datetime
    ) -> List[EnvironmentSample]:
        """Return samples in [start, end], oldest first."""
        ...

    def get_latest_environment_sample(self, tent_id: Optional[int]) -> Optional[EnvironmentSample]:
        ...

    def get_activity_log(self, plant_id: int, start: datetime, end: datetime) -> List[ActivityLogEntry]:
        """Return activities in [start, end], oldest first."""
        ...
