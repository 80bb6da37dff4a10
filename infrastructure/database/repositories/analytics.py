from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from app.domain.analytics import AnalyticsRecord
from infrastructure.database.ops.analytics import AnalyticsOperations


class AnalyticsRepository:
    """Expose analytics snapshot persistence as domain records."""

    def __init__(self, backend: AnalyticsOperations) -> None:
        self._backend = backend

    def insert(
        self,
        *,
        plant_id: int,
        calculation_date: datetime,
        yield_prediction: float,
        growth_rate: float,
        environmental_efficiency: dict[str, float],
        recommendations: list[dict[str, Any]],
    ) -> int:
        return self._backend.insert_analytics_record(
            plant_id=plant_id,
            calculation_date=calculation_date,
            yield_prediction=yield_prediction,
            growth_rate=growth_rate,
            environmental_efficiency=environmental_efficiency,
            recommendations=recommendations,
        )

    def get(self, analytics_id: int) -> AnalyticsRecord | None:
        row = self._backend.get_analytics_row(analytics_id)
        return AnalyticsRecord.from_row(row) if row else None

    def list_for_plant(self, plant_id: int, *, limit: int = 10, since: datetime | None = None) -> list[AnalyticsRecord]:
        return [
            AnalyticsRecord.from_row(row)
            for row in self._backend.get_analytics_rows(plant_id, limit=limit, since=since)
        ]

    def latest_for_plant(self, plant_id: int) -> AnalyticsRecord | None:
        rows = self._backend.get_analytics_rows(plant_id, limit=1)
        return AnalyticsRecord.from_row(rows[0]) if rows else None

    def trend_rows(self, plant_id: int, since: datetime) -> list[dict[str, Any]]:
        return self._backend.get_analytics_trend_rows(plant_id, since)

    def delete_for_plant(self, plant_id: int, older_than: datetime | None = None) -> int:
        return self._backend.delete_analytics_for_plant(plant_id, older_than)

    def delete_older_than(self, cutoff: datetime) -> int:
        return self._backend.delete_analytics_older_than(cutoff)

    def delete_orphans(self) -> int:
        return self._backend.delete_orphan_analytics()

    def latest_calculation_dates(self, plant_ids: Iterable[int]) -> dict[int, str]:
        return self._backend.get_latest_calculation_dates(plant_ids)
