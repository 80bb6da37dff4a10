from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.domain.exceptions import RepositoryError
from app.utils.time import to_iso, utc_now

logger = logging.getLogger(__name__)


class EnvironmentOperations:
    """Database operations for the environment_logs table (tent climate samples)."""

    def insert_environment_sample(
        self,
        *,
        tent_id: Optional[int],
        timestamp: Optional[datetime] = None,
        temperature: Optional[float] = None,
        humidity: Optional[float] = None,
        vpd: Optional[float] = None,
        co2: Optional[float] = None,
        ppfd: Optional[float] = None,
    ) -> int:
        stamp = to_iso(timestamp or utc_now())
        try:
            with self.connection() as db:
                cursor = db.execute(
                    """
                    INSERT INTO environment_logs (tent_id, timestamp, temperature, humidity, vpd, co2, ppfd)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (tent_id, stamp, temperature, humidity, vpd, co2, ppfd),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            logger.error("insert_environment_sample failed: %s", exc)
            raise RepositoryError("Failed to insert environment sample", detail={"tent_id": tent_id}) from exc

    def get_environment_rows(self, tent_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Samples for a tent in [start, end], oldest first."""
        try:
            db = self.get_db()
            rows = db.execute(
                """
                SELECT * FROM environment_logs
                WHERE tent_id = ? AND timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp ASC
                """,
                (tent_id, to_iso(start), to_iso(end)),
            ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            logger.error("get_environment_rows failed for tent %s: %s", tent_id, exc)
            raise RepositoryError("Failed to load environment samples", detail={"tent_id": tent_id}) from exc

    def get_latest_environment_row(self, tent_id: int) -> Optional[Dict[str, Any]]:
        try:
            db = self.get_db()
            row = db.execute(
                "SELECT * FROM environment_logs WHERE tent_id = ? ORDER BY timestamp DESC LIMIT 1",
                (tent_id,),
            ).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_latest_environment_row failed for tent %s: %s", tent_id, exc)
            raise RepositoryError("Failed to load latest environment sample", detail={"tent_id": tent_id}) from exc
