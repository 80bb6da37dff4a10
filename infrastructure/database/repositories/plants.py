"""
Plant Repository
================

Read side of the cultivation data the analytics pipeline consumes: plant
profiles, tent environment samples and activity logs. Rows are converted to
domain objects here so services never see SQLite rows.

Also exposes the seeding writes used by the CLI and the test-suite.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.cultivation_records import ActivityLogEntry, EnvironmentSample
from app.domain.plant_profile import PlantProfile, TrichomeReading
from app.enums.growth import ActivityType, GrowthStage
from app.utils.time import coerce_datetime, utc_now
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler


class PlantRepository:
    """Plant, environment and activity access (satisfies ``CultivationDataSource``)."""

    def __init__(self, backend: SQLiteDatabaseHandler) -> None:
        self._backend = backend

    # Plant reads --------------------------------------------------------------
    def get_plant(self, plant_id: int) -> Optional[PlantProfile]:
        row = self._backend.get_plant_row(plant_id)
        if row is None:
            return None

        latest_height = self._backend.get_latest_activity_row(plant_id, ActivityType.MEASUREMENT.value)
        trichome_row = self._backend.get_latest_activity_row(plant_id, ActivityType.TRICHOME_CHECK.value)

        return PlantProfile(
            plant_id=int(row["plant_id"]),
            name=row["name"],
            strain=row.get("strain"),
            stage=GrowthStage.parse(row.get("stage"), default=GrowthStage.SEEDLING),
            growing_medium=row.get("growing_medium"),
            planted_at=row.get("planted_at"),
            stage_started_at=row.get("stage_started_at"),
            tent_id=row.get("tent_id"),
            height_cm=latest_height.get("value") if latest_height else None,
            node_count=row.get("node_count"),
            training_history=self._backend.get_activity_notes(plant_id, ActivityType.TRAINING.value),
            trichomes=self._to_trichomes(trichome_row),
        )

    def plant_exists(self, plant_id: int) -> bool:
        return self._backend.plant_exists(plant_id)

    def list_active_plants(self) -> List[Dict[str, Any]]:
        """``[{"plant_id": ..., "stage": ...}]`` for every plant not harvested or archived."""
        return self._backend.list_active_plant_rows()

    # Samples & logs -----------------------------------------------------------
    def get_environment_samples(
        self, tent_id: Optional[int], start: datetime, end: datetime
    ) -> List[EnvironmentSample]:
        if tent_id is None:
            return []
        return [self._to_sample(row) for row in self._backend.get_environment_rows(tent_id, start, end)]

    def get_latest_environment_sample(self, tent_id: Optional[int]) -> Optional[EnvironmentSample]:
        if tent_id is None:
            return None
        row = self._backend.get_latest_environment_row(tent_id)
        return self._to_sample(row) if row else None

    def get_activity_log(self, plant_id: int, start: datetime, end: datetime) -> List[ActivityLogEntry]:
        return [
            ActivityLogEntry(
                timestamp=coerce_datetime(row["timestamp"]) or utc_now(),
                activity_type=row["activity_type"],
                value=row.get("value"),
                notes=row.get("notes"),
                plant_id=row.get("plant_id"),
            )
            for row in self._backend.get_activity_rows(plant_id, start, end)
        ]

    # Writes -------------------------------------------------------------------
    def create_plant(self, **fields: Any) -> int:
        return self._backend.insert_plant(**fields)

    def update_stage(self, plant_id: int, stage: GrowthStage, stage_started_at: Optional[datetime] = None) -> bool:
        return self._backend.update_plant_stage(plant_id, stage.value, stage_started_at)

    def delete_plant(self, plant_id: int) -> bool:
        return self._backend.delete_plant(plant_id)

    def record_environment(self, **fields: Any) -> int:
        return self._backend.insert_environment_sample(**fields)

    def record_activity(self, **fields: Any) -> int:
        return self._backend.insert_activity(**fields)

    # Helpers ------------------------------------------------------------------
    @staticmethod
    def _to_sample(row: Dict[str, Any]) -> EnvironmentSample:
        return EnvironmentSample(
            timestamp=coerce_datetime(row["timestamp"]) or utc_now(),
            temperature=row.get("temperature"),
            humidity=row.get("humidity"),
            vpd=row.get("vpd"),
            co2=row.get("co2"),
            ppfd=row.get("ppfd"),
            tent_id=row.get("tent_id"),
        )

    @staticmethod
    def _to_trichomes(row: Optional[Dict[str, Any]]) -> Optional[TrichomeReading]:
        if not row or not row.get("payload"):
            return None
        try:
            payload = json.loads(row["payload"])
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict):
            return None
        return TrichomeReading(
            clear_pct=float(payload.get("clear", 0.0) or 0.0),
            cloudy_pct=float(payload.get("cloudy", 0.0) or 0.0),
            amber_pct=float(payload.get("amber", 0.0) or 0.0),
            checked_at=coerce_datetime(row.get("timestamp")),
        )
