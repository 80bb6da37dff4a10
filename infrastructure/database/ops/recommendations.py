from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from app.domain.exceptions import RepositoryError
from app.utils.time import iso_now

logger = logging.getLogger(__name__)


def _decode(raw: Any, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Failed to decode recommendation JSON column")
        return default


class RecommendationOperations:
    """Surfaced recommendation snapshots, feedback events and per-recommendation history."""

    # --- Snapshots ------------------------------------------------------------
    def upsert_recommendation(
        self,
        *,
        recommendation_id: str,
        plant_id: int,
        category: str,
        priority: str,
        confidence: float,
        payload: dict[str, Any],
    ) -> None:
        stamp = iso_now()
        try:
            with self.connection() as db:
                db.execute(
                    """
                    INSERT INTO recommendations (
                        recommendation_id, plant_id, category, priority, confidence,
                        payload, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(recommendation_id) DO UPDATE SET
                        priority = excluded.priority,
                        confidence = excluded.confidence,
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (recommendation_id, plant_id, category, priority, confidence, json.dumps(payload), stamp, stamp),
                )
        except sqlite3.Error as exc:
            logger.error("upsert_recommendation failed for %s: %s", recommendation_id, exc)
            raise RepositoryError(
                "Failed to store recommendation", detail={"recommendation_id": recommendation_id}
            ) from exc

    def get_recommendation_row(self, recommendation_id: str) -> dict[str, Any] | None:
        try:
            db = self.get_db()
            row = db.execute(
                "SELECT * FROM recommendations WHERE recommendation_id = ?", (recommendation_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("get_recommendation_row failed for %s: %s", recommendation_id, exc)
            raise RepositoryError(
                "Failed to load recommendation", detail={"recommendation_id": recommendation_id}
            ) from exc
        if row is None:
            return None
        data = dict(row)
        data["payload"] = _decode(data.get("payload"), {})
        return data

    # --- Feedback -------------------------------------------------------------
    def insert_feedback(
        self,
        *,
        recommendation_id: str,
        plant_id: int,
        implemented: bool,
        effectiveness: str | None,
        notes: str | None,
        outcome: dict[str, Any] | None,
    ) -> int:
        try:
            with self.connection() as db:
                cursor = db.execute(
                    """
                    INSERT INTO recommendation_feedback (
                        recommendation_id, plant_id, implemented, effectiveness, notes, outcome, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        recommendation_id,
                        plant_id,
                        1 if implemented else 0,
                        effectiveness,
                        notes,
                        json.dumps(outcome) if outcome else None,
                        iso_now(),
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            logger.error("insert_feedback failed for %s: %s", recommendation_id, exc)
            raise RepositoryError(
                "Failed to store feedback", detail={"recommendation_id": recommendation_id}
            ) from exc

    # --- History --------------------------------------------------------------
    def save_history(
        self,
        *,
        recommendation_id: str,
        plant_id: int,
        recommendation: dict[str, Any],
        implemented: bool,
        effectiveness: str | None,
        notes: str | None,
        outcome: dict[str, Any] | None,
    ) -> bool:
        """Create the history entry for a recommendation or update the existing one.

        Returns:
            True when a new entry was created
        """
        stamp = iso_now()
        try:
            with self.connection() as db:
                existing = db.execute(
                    "SELECT history_id FROM recommendation_history WHERE recommendation_id = ?",
                    (recommendation_id,),
                ).fetchone()
                if existing is None:
                    db.execute(
                        """
                        INSERT INTO recommendation_history (
                            recommendation_id, plant_id, recommendation, implemented,
                            effectiveness, notes, outcome, created_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            recommendation_id,
                            plant_id,
                            json.dumps(recommendation),
                            1 if implemented else 0,
                            effectiveness,
                            notes,
                            json.dumps(outcome) if outcome else None,
                            stamp,
                            stamp,
                        ),
                    )
                    return True
                db.execute(
                    """
                    UPDATE recommendation_history
                    SET implemented = ?, effectiveness = ?, notes = ?, outcome = ?, updated_at = ?
                    WHERE recommendation_id = ?
                    """,
                    (
                        1 if implemented else 0,
                        effectiveness,
                        notes,
                        json.dumps(outcome) if outcome else None,
                        stamp,
                        recommendation_id,
                    ),
                )
                return False
        except sqlite3.Error as exc:
            logger.error("save_history failed for %s: %s", recommendation_id, exc)
            raise RepositoryError(
                "Failed to store recommendation history", detail={"recommendation_id": recommendation_id}
            ) from exc

    def list_history_rows(self, plant_id: int, limit: int = 50) -> list[dict[str, Any]]:
        try:
            db = self.get_db()
            rows = db.execute(
                """
                SELECT * FROM recommendation_history
                WHERE plant_id = ?
                ORDER BY created_at DESC, history_id DESC
                LIMIT ?
                """,
                (plant_id, int(limit)),
            ).fetchall()
        except sqlite3.Error as exc:
            logger.error("list_history_rows failed for plant %s: %s", plant_id, exc)
            raise RepositoryError("Failed to load recommendation history", detail={"plant_id": plant_id}) from exc
        result = []
        for row in rows:
            data = dict(row)
            data["recommendation"] = _decode(data.get("recommendation"), {})
            data["outcome"] = _decode(data.get("outcome"), {})
            result.append(data)
        return result

    def get_history_overview(self) -> dict[str, int]:
        try:
            db = self.get_db()
            row = db.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(CASE WHEN implemented = 1 THEN 1 ELSE 0 END), 0) AS implemented,
                    COALESCE(SUM(CASE WHEN effectiveness = 'positive' THEN 1 ELSE 0 END), 0) AS positive,
                    COALESCE(SUM(CASE WHEN effectiveness = 'neutral' THEN 1 ELSE 0 END), 0) AS neutral,
                    COALESCE(SUM(CASE WHEN effectiveness = 'negative' THEN 1 ELSE 0 END), 0) AS negative
                FROM recommendation_history
                """
            ).fetchone()
        except sqlite3.Error as exc:
            logger.error("get_history_overview failed: %s", exc)
            raise RepositoryError("Failed to load recommendation statistics") from exc
        return {key: int(row[key]) for key in ("total", "implemented", "positive", "neutral", "negative")}
