# declination_engine/core/constants.py
# -*- coding: utf-8 -*-
"""
Declination engine: core constants & small angle helpers

Purpose
-------
Single source of truth for:
- the planet set (order matters: every positions map follows it)
- zodiac sign names
- sampling defaults for ACG / paran / zenith / grid solvers
- tiny angle helpers (wrap/Δ/±180)

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Functions are pure; constants are immutable by convention.
"""

from __future__ import annotations
from typing import Dict, Tuple
import math

__all__ = [
    # bodies & signs
    "PLANET_IDS", "ZODIAC_SIGNS", "LUMINARIES",
    # numeric tolerances
    "EPS",
    # ACG
    "ACG_LON_STEP_DEG", "ACG_LAT_STEP_DEG", "ACG_MAX_LAT_DEG", "ACG_NEAR_ORB_DEG",
    "ACG_INTERSECTION_TOL_DEG",
    # zenith
    "DEFAULT_DECLINATION_ORB", "MAX_DECLINATION_ORB", "ZENITH_GAUSSIAN_SIGMA",
    # parans
    "PARAN_LAT_STEP_DEG", "PARAN_BISECTION_TOL_DEG", "PARAN_MAX_ITERATIONS",
    "PARAN_MAX_ORB_DEG", "PARAN_STRENGTH_THRESHOLD", "PARAN_LAT_RANGE",
    "PARAN_HIGH_LAT_DEG",
    # geospatial
    "ACG_SCORE_ORB_DEG", "PARAN_SCORE_ORB_DEG", "GRID_DEFAULTS",
    "EARTH_RADIUS_KM",
    # helpers
    "wrap_deg", "wrap_pm180", "delta_deg", "clamp",
    "DEFAULT_WEIGHTS",
]

# ── canonical bodies ─────────────────────────────────────────────────────────
PLANET_IDS: Tuple[str, ...] = (
    "sun", "moon", "mercury", "venus", "mars",
    "jupiter", "saturn", "uranus", "neptune", "pluto",
)

LUMINARIES: Tuple[str, ...] = ("sun", "moon")

ZODIAC_SIGNS: Tuple[str, ...] = (
    "aries", "taurus", "gemini", "cancer", "leo", "virgo",
    "libra", "scorpio", "sagittarius", "capricorn", "aquarius", "pisces",
)

EPS: float = 1e-10

# ── ACG sampling ─────────────────────────────────────────────────────────────
ACG_LON_STEP_DEG: float = 1.0
ACG_LAT_STEP_DEG: float = 0.5
ACG_MAX_LAT_DEG: float = 89.5
ACG_NEAR_ORB_DEG: float = 2.0
ACG_INTERSECTION_TOL_DEG: float = 1.0

# ── zenith bands ─────────────────────────────────────────────────────────────
DEFAULT_DECLINATION_ORB: float = 1.0
MAX_DECLINATION_ORB: float = 10.0
ZENITH_GAUSSIAN_SIGMA: float = 3.0

# ── parans ───────────────────────────────────────────────────────────────────
PARAN_LAT_STEP_DEG: float = 0.25
PARAN_BISECTION_TOL_DEG: float = 1e-6
PARAN_MAX_ITERATIONS: int = 100
PARAN_MAX_ORB_DEG: float = 1.0
PARAN_STRENGTH_THRESHOLD: float = 0.5
PARAN_LAT_RANGE: Tuple[float, float] = (-85.0, 85.0)
# Arctic/antarctic circle; parans beyond it get flagged
PARAN_HIGH_LAT_DEG: float = 66.5

# ── geospatial scoring ───────────────────────────────────────────────────────
ACG_SCORE_ORB_DEG: float = 2.0
PARAN_SCORE_ORB_DEG: float = 1.0
EARTH_RADIUS_KM: float = 6371.0

GRID_DEFAULTS: Dict[str, float] = {
    "lat_step": 5.0,
    "lon_step": 10.0,
    "lat_min": -85.0,
    "lat_max": 85.0,
    "lon_min": -180.0,
    "lon_max": 180.0,
}

DEFAULT_WEIGHTS: Dict[str, float] = {p: 1.0 for p in PLANET_IDS}


# ── angle helpers ────────────────────────────────────────────────────────────
def wrap_deg(x: float) -> float:
    """Normalize to [0, 360)."""
    x = math.fmod(x, 360.0)
    if x < 0.0:
        x += 360.0
    return 0.0 if x >= 360.0 else x

def wrap_pm180(x: float) -> float:
    """Normalize to [-180, 180)."""
    return wrap_deg(x + 180.0) - 180.0

def delta_deg(a: float, b: float) -> float:
    """Signed shortest arc b - a in (-180, 180]."""
    d = wrap_deg(b) - wrap_deg(a)
    if d > 180.0:
        d -= 360.0
    elif d <= -180.0:
        d += 360.0
    return d

def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x
