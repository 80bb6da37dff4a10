"""
Psychrometric Calculations
==========================

Pure air-science helpers used to fill in VPD when an environment sample
carries temperature and humidity but no explicit VPD reading.

Functions:
- calculate_svp_kpa: Saturation vapor pressure (helper)
- calculate_vpd_kpa: Vapor Pressure Deficit
"""

from __future__ import annotations

import math


def calculate_svp_kpa(temperature_c: float) -> float:
    """
    Calculate Saturation Vapor Pressure (SVP) in kPa using the Magnus formula.

    SVP = 0.6108 × exp(17.27 × T / (T + 237.3))
    """
    return 0.6108 * math.exp((17.27 * temperature_c) / (temperature_c + 237.3))


def calculate_vpd_kpa(temperature_c: float | None, relative_humidity: float | None) -> float | None:
    """
    Calculate air Vapor Pressure Deficit (VPD) in kPa.

    VPD = SVP × (1 - RH/100)

    Returns None when either input is missing or not a finite number.
    Humidity is clamped to 0-100 before use.
    """
    if temperature_c is None or relative_humidity is None:
        return None
    try:
        temp_c = float(temperature_c)
        rh = float(relative_humidity)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(temp_c) and math.isfinite(rh)):
        return None

    rh = max(0.0, min(100.0, rh))
    svp = calculate_svp_kpa(temp_c)
    return round(svp * (1.0 - rh / 100.0), 3)
