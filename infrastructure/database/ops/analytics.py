from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Iterable

from app.domain.exceptions import RepositoryError
from app.utils.time import iso_now, to_iso

logger = logging.getLogger(__name__)


class AnalyticsOperations:
    """Persistence for computed analytics snapshots (analytics_data table)."""

    def insert_analytics_record(
        self,
        *,
        plant_id: int,
        calculation_date: datetime,
        yield_prediction: float,
        growth_rate: float,
        environmental_efficiency: dict[str, float],
        recommendations: list[dict[str, Any]],
    ) -> int:
        stamp = iso_now()
        try:
            with self.connection() as db:
                cursor = db.execute(
                    """
                    INSERT INTO analytics_data (
                        plant_id, calculation_date, yield_prediction, growth_rate,
                        environmental_efficiency, recommendations, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        plant_id,
                        to_iso(calculation_date),
                        yield_prediction,
                        growth_rate,
                        json.dumps(environmental_efficiency),
                        json.dumps(recommendations),
                        stamp,
                        stamp,
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            logger.error("insert_analytics_record failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to store analytics record", detail={"plant_id": plant_id}) from exc

    def get_analytics_row(self, analytics_id: int) -> dict[str, Any] | None:
        try:
            db = self.get_db()
            row = db.execute("SELECT * FROM analytics_data WHERE analytics_id = ?", (analytics_id,)).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_analytics_row failed for %s: %s", analytics_id, exc)
            raise RepositoryError("Failed to load analytics record", detail={"analytics_id": analytics_id}) from exc

    def get_analytics_rows(
        self,
        plant_id: int,
        *,
        limit: int = 10,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Newest-first snapshots for a plant."""
        query = "SELECT * FROM analytics_data WHERE plant_id = ?"
        params: list[Any] = [plant_id]
        if since is not None:
            query += " AND calculation_date >= ?"
            params.append(to_iso(since))
        query += " ORDER BY calculation_date DESC, analytics_id DESC LIMIT ?"
        params.append(int(limit))
        try:
            db = self.get_db()
            return [dict(row) for row in db.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            logger.error("get_analytics_rows failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load analytics history", detail={"plant_id": plant_id}) from exc

    def get_analytics_trend_rows(self, plant_id: int, since: datetime) -> list[dict[str, Any]]:
        """Oldest-first (calculation_date, metrics) rows used for charting."""
        try:
            db = self.get_db()
            rows = db.execute(
                """
                SELECT calculation_date, yield_prediction, growth_rate, environmental_efficiency
                FROM analytics_data
                WHERE plant_id = ? AND calculation_date >= ?
                ORDER BY calculation_date ASC, analytics_id ASC
                """,
                (plant_id, to_iso(since)),
            ).fetchall()
            return [dict(row) for row in rows]
        except sqlite3.Error as exc:
            logger.error("get_analytics_trend_rows failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load analytics trends", detail={"plant_id": plant_id}) from exc

    def delete_analytics_for_plant(self, plant_id: int, older_than: datetime | None = None) -> int:
        query = "DELETE FROM analytics_data WHERE plant_id = ?"
        params: list[Any] = [plant_id]
        if older_than is not None:
            query += " AND calculation_date < ?"
            params.append(to_iso(older_than))
        try:
            with self.connection() as db:
                return db.execute(query, params).rowcount
        except sqlite3.Error as exc:
            logger.error("delete_analytics_for_plant failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to delete analytics records", detail={"plant_id": plant_id}) from exc

    def delete_analytics_older_than(self, cutoff: datetime) -> int:
        try:
            with self.connection() as db:
                return db.execute(
                    "DELETE FROM analytics_data WHERE calculation_date < ?",
                    (to_iso(cutoff),),
                ).rowcount
        except sqlite3.Error as exc:
            logger.error("delete_analytics_older_than failed: %s", exc)
            raise RepositoryError("Failed to prune analytics records") from exc

    def delete_orphan_analytics(self) -> int:
        """Remove snapshots whose plant no longer exists."""
        try:
            with self.connection() as db:
                return db.execute(
                    """
                    DELETE FROM analytics_data
                    WHERE plant_id NOT IN (SELECT plant_id FROM plants)
                    """
                ).rowcount
        except sqlite3.Error as exc:
            logger.error("delete_orphan_analytics failed: %s", exc)
            raise RepositoryError("Failed to delete orphaned analytics records") from exc

    def get_latest_calculation_dates(self, plant_ids: Iterable[int]) -> dict[int, str]:
        """plant_id -> newest calculation_date for the given plants (plants without records omitted)."""
        ids = [int(pid) for pid in plant_ids]
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        try:
            db = self.get_db()
            rows = db.execute(
                f"""
                SELECT plant_id, MAX(calculation_date) AS latest
                FROM analytics_data
                WHERE plant_id IN ({placeholders})
                GROUP BY plant_id
                """,
                ids,
            ).fetchall()
            return {int(row["plant_id"]): row["latest"] for row in rows}
        except sqlite3.Error as exc:
            logger.error("get_latest_calculation_dates failed: %s", exc)
            raise RepositoryError("Failed to load latest calculation dates") from exc
