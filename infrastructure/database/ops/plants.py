from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.exceptions import RepositoryError
from app.enums.growth import GrowthStage
from app.utils.time import iso_now, to_iso

logger = logging.getLogger(__name__)

TERMINAL_STAGES = tuple(stage.value for stage in GrowthStage if stage.is_terminal)


class PlantOperations:
    """Database operations for the plants table."""

    def insert_plant(
        self,
        *,
        name: str,
        strain: Optional[str] = None,
        stage: str = "seedling",
        growing_medium: Optional[str] = "soil",
        tent_id: Optional[int] = None,
        planted_at: Optional[datetime] = None,
        stage_started_at: Optional[datetime] = None,
        node_count: Optional[int] = None,
    ) -> int:
        try:
            with self.connection() as db:
                cursor = db.execute(
                    """
                    INSERT INTO plants (
                        name, strain, stage, growing_medium, tent_id,
                        planted_at, stage_started_at, node_count, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        strain,
                        stage,
                        growing_medium,
                        tent_id,
                        to_iso(planted_at) if planted_at else None,
                        to_iso(stage_started_at) if stage_started_at else None,
                        node_count,
                        iso_now(),
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            logger.error("insert_plant failed: %s", exc)
            raise RepositoryError("Failed to insert plant", detail={"name": name}) from exc

    def update_plant_stage(self, plant_id: int, stage: str, stage_started_at: Optional[datetime] = None) -> bool:
        try:
            with self.connection() as db:
                cursor = db.execute(
                    "UPDATE plants SET stage = ?, stage_started_at = ? WHERE plant_id = ?",
                    (stage, to_iso(stage_started_at) if stage_started_at else iso_now(), plant_id),
                )
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("update_plant_stage failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to update plant stage", detail={"plant_id": plant_id}) from exc

    def delete_plant(self, plant_id: int) -> bool:
        try:
            with self.connection() as db:
                cursor = db.execute("DELETE FROM plants WHERE plant_id = ?", (plant_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as exc:
            logger.error("delete_plant failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to delete plant", detail={"plant_id": plant_id}) from exc

    def get_plant_row(self, plant_id: int) -> Optional[Dict[str, Any]]:
        try:
            db = self.get_db()
            row = db.execute("SELECT * FROM plants WHERE plant_id = ?", (plant_id,)).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_plant_row failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load plant", detail={"plant_id": plant_id}) from exc

    def plant_exists(self, plant_id: int) -> bool:
        try:
            db = self.get_db()
            row = db.execute("SELECT 1 FROM plants WHERE plant_id = ?", (plant_id,)).fetchone()
            return row is not None
        except sqlite3.Error as exc:
            logger.error("plant_exists failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to check plant", detail={"plant_id": plant_id}) from exc

    def list_active_plant_rows(self) -> List[Dict[str, Any]]:
        """Plants not in a terminal stage, oldest id first."""
        try:
            db = self.get_db()
            rows = db.execute(
                f"""
                SELECT plant_id, stage FROM plants
                WHERE stage NOT IN ({", ".join("?" for _ in TERMINAL_STAGES)})
                ORDER BY plant_id
                """,
                TERMINAL_STAGES,
            ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            logger.error("list_active_plant_rows failed: %s", exc)
            raise RepositoryError("Failed to list active plants") from exc
