"""Raw cultivation inputs: environment samples and activity log entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.enums.growth import CARE_ACTIVITY_TYPES, ActivityType


@dataclass(frozen=True)
class EnvironmentSample:
    """One timestamped tent reading. Any field may be missing."""

    timestamp: datetime
    temperature: float | None = None
    humidity: float | None = None
    vpd: float | None = None
    co2: float | None = None
    ppfd: float | None = None
    tent_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
            "humidity": self.humidity,
            "vpd": self.vpd,
            "co2": self.co2,
            "ppfd": self.ppfd,
            "tent_id": self.tent_id,
        }


@dataclass(frozen=True)
class ActivityLogEntry:
    """One grower activity. ``value`` holds the height in cm for measurements."""

    timestamp: datetime
    activity_type: str
    value: float | None = None
    notes: str | None = None
    plant_id: int | None = None

    @property
    def is_care(self) -> bool:
        try:
            return ActivityType(self.activity_type) in CARE_ACTIVITY_TYPES
        except ValueError:
            return False

    @property
    def is_height_measurement(self) -> bool:
        return self.activity_type == ActivityType.MEASUREMENT.value and self.value is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "activity_type": self.activity_type,
            "value": self.value,
            "notes": self.notes,
            "plant_id": self.plant_id,
        }


@dataclass(frozen=True)
class HeightMeasurement:
    timestamp: datetime
    height_cm: float


def height_measurements(entries: list[ActivityLogEntry]) -> list[HeightMeasurement]:
    """Extract chronologically sorted height measurements from an activity log."""
    points = [
        HeightMeasurement(timestamp=entry.timestamp, height_cm=float(entry.value))
        for entry in entries
        if entry.is_height_measurement
    ]
    return sorted(points, key=lambda p: p.timestamp)
