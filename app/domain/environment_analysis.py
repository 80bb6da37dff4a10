"""
Environment analysis
====================

Window-level views of a tent's climate against the stage optimum: how often
each metric stayed in range, how far its average sits from the optimal
midpoint, and how well the samples cover the window.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

from app.domain.cultivation_metrics import OptimalRange, sample_vpd
from app.domain.cultivation_records import EnvironmentSample
from app.enums.growth import GrowthStage, Priority

# Metric name -> reading taken from one sample
METRIC_READERS: dict[str, Callable[[EnvironmentSample], float | None]] = {
    "temperature": lambda s: s.temperature,
    "humidity": lambda s: s.humidity,
    "vpd": sample_vpd,
    "light": lambda s: s.ppfd,
    "co2": lambda s: s.co2,
}

ENVIRONMENT_METRICS: tuple[str, ...] = tuple(METRIC_READERS)

EXPECTED_READINGS_PER_DAY = 4


def metric_values(samples: Iterable[EnvironmentSample], metric: str) -> list[float]:
    reader = METRIC_READERS[metric]
    values: list[float] = []
    for sample in samples:
        value = reader(sample)
        if value is not None:
            values.append(float(value))
    return values


def time_in_range(metric: str, values: Sequence[float], optimal: OptimalRange) -> dict[str, Any]:
    """Share of readings inside [min, max] and the impact label it earns."""
    if not values:
        return {
            "in_range_pct": None,
            "impact": "unknown",
            "recommendation": "Insufficient data",
        }

    inside = sum(1 for v in values if optimal.minimum <= v <= optimal.maximum)
    pct = round(inside / len(values) * 100, 1)
    if pct > 80:
        impact = "positive"
    elif pct > 60:
        impact = "neutral"
    else:
        impact = "negative"

    if pct < 70:
        advice = f"Keep {metric} within {optimal.minimum:g}-{optimal.maximum:g}"
    else:
        advice = f"{metric.capitalize()} is well maintained"
    return {"in_range_pct": pct, "impact": impact, "recommendation": advice}


def deviation_from_optimal(values: Sequence[float], optimal: OptimalRange) -> dict[str, Any]:
    """Relative distance of the window average from the optimal midpoint."""
    if not values:
        return {"average": None, "optimal": optimal.optimal, "deviation_score": None, "status": "no_data"}

    average = sum(values) / len(values)
    score = abs(average - optimal.optimal) / optimal.optimal if optimal.optimal else 0.0
    if score < 0.1:
        status = "excellent"
    elif score < 0.2:
        status = "good"
    else:
        status = "needs_improvement"
    return {
        "average": round(average, 3),
        "optimal": optimal.optimal,
        "deviation_score": round(score, 4),
        "status": status,
    }


def data_coverage(sample_count: int, days: int) -> float:
    """Percent of the expected readings (four a day) actually present, capped at 100."""
    expected = max(1, days) * EXPECTED_READINGS_PER_DAY
    return round(min(100.0, sample_count / expected * 100), 1)


def environment_findings(
    stage: GrowthStage,
    correlations: dict[str, dict[str, Any]],
    deviations: dict[str, dict[str, Any]],
) -> list[dict[str, Any]]:
    """Metrics whose average is far off and which spent most of the window out of range."""
    findings: list[dict[str, Any]] = []
    for metric, deviation in deviations.items():
        correlation = correlations.get(metric) or {}
        if deviation["status"] == "needs_improvement" and correlation.get("impact") == "negative":
            findings.append(
                {
                    "metric": metric,
                    "priority": Priority.HIGH.value,
                    "issue": f"{metric} levels are off target for the {stage.value} stage",
                    "recommendation": correlation["recommendation"],
                }
            )
    return findings
