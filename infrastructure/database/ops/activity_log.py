from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.exceptions import RepositoryError
from app.utils.time import to_iso, utc_now

logger = logging.getLogger(__name__)


class ActivityOperations:
    """Database operations for the activity_logs table."""

    def insert_activity(
        self,
        *,
        plant_id: int,
        activity_type: str,
        timestamp: Optional[datetime] = None,
        value: Optional[float] = None,
        notes: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> int:
        try:
            with self.connection() as db:
                cursor = db.execute(
                    """
                    INSERT INTO activity_logs (plant_id, timestamp, activity_type, value, notes, payload)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        plant_id,
                        to_iso(timestamp or utc_now()),
                        activity_type,
                        value,
                        notes,
                        json.dumps(payload) if payload else None,
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            logger.error("insert_activity failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to insert activity", detail={"plant_id": plant_id}) from exc

    def get_activity_rows(self, plant_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Activities for a plant in [start, end], oldest first."""
        try:
            db = self.get_db()
            rows = db.execute(
                """
                SELECT * FROM activity_logs
                WHERE plant_id = ? AND timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp ASC, log_id ASC
                """,
                (plant_id, to_iso(start), to_iso(end)),
            ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            logger.error("get_activity_rows failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load activity log", detail={"plant_id": plant_id}) from exc

    def get_latest_activity_row(self, plant_id: int, activity_type: str) -> Optional[Dict[str, Any]]:
        try:
            db = self.get_db()
            row = db.execute(
                """
                SELECT * FROM activity_logs
                WHERE plant_id = ? AND activity_type = ?
                ORDER BY timestamp DESC, log_id DESC
                LIMIT 1
                """,
                (plant_id, activity_type),
            ).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_latest_activity_row failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load activity", detail={"plant_id": plant_id}) from exc

    def get_activity_notes(self, plant_id: int, activity_type: str) -> List[str]:
        """Notes of every activity of one type, oldest first (e.g. training methods applied)."""
        try:
            db = self.get_db()
            rows = db.execute(
                """
                SELECT notes FROM activity_logs
                WHERE plant_id = ? AND activity_type = ? AND notes IS NOT NULL
                ORDER BY timestamp ASC, log_id ASC
                """,
                (plant_id, activity_type),
            ).fetchall()
            return [row["notes"] for row in rows]
        except sqlite3.Error as exc:
            logger.error("get_activity_notes failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load activity notes", detail={"plant_id": plant_id}) from exc
