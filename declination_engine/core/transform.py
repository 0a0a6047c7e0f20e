# declination_engine/core/transform.py
# -*- coding: utf-8 -*-
"""
Coordinate transforms: ecliptic ↔ equatorial, obliquity, sidereal time.

Public API
----------
ecliptic_to_equatorial(longitude, latitude, obliquity) -> EquatorialPosition
equatorial_to_ecliptic(right_ascension, declination, obliquity) -> (lon, lat)
mean_obliquity(jd_tt) -> degrees                 (IAU 2006 polynomial)
obliquity(instant) -> degrees                    (mean obliquity of the instant)
gmst(jd_ut) -> degrees
local_sidereal_time(instant_or_jd, longitude) -> degrees
hour_angle(lst, right_ascension) -> degrees in (-180, 180]
equatorial_to_horizontal(ra, dec, latitude, lst) -> (altitude, azimuth)
great_circle_distance(lat1, lon1, lat2, lon2) -> degrees
great_circle_distance_km(lat1, lon1, lat2, lon2) -> km
equatorial_positions(instant) -> Dict[planet, EquatorialPosition]

Notes
-----
Mean obliquity is used throughout; nutation in obliquity (≤ ~9.2″) is not
applied, so out-of-bounds and circumpolar boundaries are classified against
the mean equator of date. All functions are pure; NaN inputs propagate.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple, Union
import math

from declination_engine.core.constants import (
    EARTH_RADIUS_KM,
    PLANET_IDS,
    clamp,
    delta_deg,
    wrap_deg,
)
from declination_engine.core.timescales import Instant, J2000

__all__ = [
    "EquatorialPosition",
    "ecliptic_to_equatorial",
    "equatorial_to_ecliptic",
    "mean_obliquity",
    "obliquity",
    "gmst",
    "local_sidereal_time",
    "hour_angle",
    "equatorial_to_horizontal",
    "great_circle_distance",
    "great_circle_distance_km",
    "equatorial_positions",
]


@dataclass(frozen=True)
class EquatorialPosition:
    right_ascension: float
    declination: float
    distance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── obliquity / sidereal time ────────────────────────────────────────────────
def mean_obliquity(jd_tt: float) -> float:
    T = (jd_tt - J2000) / 36525.0
    eps0 = 84381.406 \
         - 46.836769*T \
         - 0.0001831*(T**2) \
         + 0.00200340*(T**3) \
         - 0.000000576*(T**4) \
         - 0.0000000434*(T**5)
    return eps0 / 3600.0

def obliquity(instant: Instant) -> float:
    return mean_obliquity(instant.jd_tt)

def gmst(jd_ut: float) -> float:
    d = jd_ut - J2000
    T = d / 36525.0
    g = 280.46061837 + 360.98564736629 * d + 0.000387933 * (T*T) - (T*T*T) / 38710000.0
    return wrap_deg(g)

def local_sidereal_time(instant: Union[Instant, float], longitude: float) -> float:
    """LST in degrees for an east-positive geographic longitude."""
    jd_ut = instant.jd_ut if isinstance(instant, Instant) else float(instant)
    return wrap_deg(gmst(jd_ut) + longitude)

def hour_angle(lst: float, right_ascension: float) -> float:
    return delta_deg(right_ascension, lst)


# ── frame rotations ──────────────────────────────────────────────────────────
def ecliptic_to_equatorial(longitude: float, latitude: float, obliquity: float,
                           distance: Optional[float] = None) -> EquatorialPosition:
    """Ecliptic (λ,β) → Equatorial (α,δ), degrees."""
    eps = math.radians(obliquity)
    lam = math.radians(longitude)
    beta = math.radians(latitude)
    y = math.sin(lam) * math.cos(beta) * math.cos(eps) - math.sin(beta) * math.sin(eps)
    x = math.cos(lam) * math.cos(beta)
    alpha = wrap_deg(math.degrees(math.atan2(y, x)))
    s = math.sin(beta) * math.cos(eps) + math.cos(beta) * math.sin(eps) * math.sin(lam)
    delta = math.degrees(math.asin(clamp(s, -1.0, 1.0)))
    return EquatorialPosition(alpha, delta, distance)

def equatorial_to_ecliptic(right_ascension: float, declination: float, obliquity: float) -> Tuple[float, float]:
    """Equatorial (α,δ) → Ecliptic (λ,β), degrees."""
    eps = math.radians(obliquity)
    a = math.radians(right_ascension)
    d = math.radians(declination)
    y = math.sin(a) * math.cos(d) * math.cos(eps) + math.sin(d) * math.sin(eps)
    x = math.cos(a) * math.cos(d)
    lam = wrap_deg(math.degrees(math.atan2(y, x)))
    s = math.sin(d) * math.cos(eps) - math.cos(d) * math.sin(eps) * math.sin(a)
    beta = math.degrees(math.asin(clamp(s, -1.0, 1.0)))
    return lam, beta

def equatorial_to_horizontal(right_ascension: float, declination: float,
                             latitude: float, lst: float) -> Tuple[float, float]:
    """(altitude, azimuth) in degrees; azimuth from north through east."""
    H = math.radians(hour_angle(lst, right_ascension))
    phi = math.radians(latitude)
    dec = math.radians(declination)
    up = math.sin(phi) * math.sin(dec) + math.cos(phi) * math.cos(dec) * math.cos(H)
    east = -math.cos(dec) * math.sin(H)
    north = math.sin(dec) * math.cos(phi) - math.cos(dec) * math.sin(phi) * math.cos(H)
    # atan2 keeps full precision near the zenith where asin does not
    alt = math.degrees(math.atan2(up, math.hypot(east, north)))
    az = math.degrees(math.atan2(east, north))
    return alt, wrap_deg(az)


# ── distances ────────────────────────────────────────────────────────────────
def great_circle_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Central angle in degrees (haversine)."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lon2 - lon1)
    h = math.sin(dp / 2.0) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2.0) ** 2
    return math.degrees(2.0 * math.asin(math.sqrt(clamp(h, 0.0, 1.0))))

def great_circle_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return math.radians(great_circle_distance(lat1, lon1, lat2, lon2)) * EARTH_RADIUS_KM


# ── convenience ──────────────────────────────────────────────────────────────
def equatorial_positions(instant: Instant, ecliptic: Optional[Dict[str, Any]] = None) -> Dict[str, EquatorialPosition]:
    """Total map planet → EquatorialPosition at the instant's mean obliquity."""
    if ecliptic is None:
        from declination_engine.core.ephemeris import positions
        ecliptic = positions(instant)
    eps = obliquity(instant)
    return {
        p: ecliptic_to_equatorial(ecliptic[p].longitude, ecliptic[p].latitude, eps, ecliptic[p].distance)
        for p in PLANET_IDS
    }
