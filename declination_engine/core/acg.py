# declination_engine/core/acg.py
# -*- coding: utf-8 -*-
"""
Astrocartography (ACG) lines: MC/IC meridians and ASC/DSC horizon curves.

Public API
----------
planet_lines(planet, equ, gmst_deg, **sampling) -> List[ACGLine]    (MC, IC, ASC, DSC)
all_lines(equatorial, gmst_deg, **sampling)     -> List[ACGLine]    (PLANET_IDS × 4)
compute_acg(equatorial, gmst_deg, **sampling)   -> {"meta": {...}, "lines": [...]}
lines_near_location(lat, lon, lines, orb=2.0)   -> List[dict]
line_intersections(line_a, line_b, tolerance=1.0) -> List[(lat, lon)]
filter_lines(lines, planet=None, line_type=None) -> List[ACGLine]

Model
-----
- MC/IC: pure right-ascension meridian matching. The planet culminates where
  LST = α, so the MC is the meridian λ = α − GMST and the IC sits 180° away.
  Neither depends on latitude; points are sampled along the meridian.
- ASC/DSC: for every sampled longitude, H = LST − α and the horizon equation
  gives tan φ = −cos H / tan δ. sin H < 0 → rising (ASC), > 0 → setting (DSC).
  A second sweep over sampled latitudes solves cos H0 = −tan φ tan δ for the
  longitudes λ = α ∓ H0 − GMST, and the two sweeps are merged, so steep
  low-declination curves stay densely sampled in latitude too.
- Samples at the grazing singularity (sin H ≈ 0, where |δ| = 90 − |φ|) are
  skipped, as are samples whose latitude leaves the window (never clipped).
- A line whose planet cannot cross the horizon anywhere in the latitude
  window is tagged "circumpolar" with no points; a line left empty for any
  other reason is tagged "no_solution".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import math

from declination_engine.core.constants import (
    ACG_INTERSECTION_TOL_DEG,
    ACG_LAT_STEP_DEG,
    ACG_LON_STEP_DEG,
    ACG_MAX_LAT_DEG,
    ACG_NEAR_ORB_DEG,
    EPS,
    PLANET_IDS,
    delta_deg,
    wrap_deg,
    wrap_pm180,
)
from declination_engine.core.transform import EquatorialPosition, great_circle_distance

log = logging.getLogger(__name__)

__all__ = [
    "LINE_TYPES",
    "ACGLine",
    "planet_lines",
    "all_lines",
    "compute_acg",
    "lines_near_location",
    "line_intersections",
    "filter_lines",
]

LINE_TYPES: Tuple[str, ...] = ("MC", "IC", "ASC", "DSC")

STATUS_SOLVED = "solved"
STATUS_CIRCUMPOLAR = "circumpolar"
STATUS_NO_SOLUTION = "no_solution"

# |sin H| below this is treated as the grazing pole of the horizon equation
_SINGULAR_SIN_H = 1e-9


@dataclass(frozen=True)
class ACGLine:
    planet: str
    line_type: str
    points: Tuple[Tuple[float, float], ...]    # (lat, lon), ordered by lon
    status: str = STATUS_SOLVED

    @property
    def is_circumpolar(self) -> bool:
        return self.status == STATUS_CIRCUMPOLAR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "planet": self.planet,
            "line_type": self.line_type,
            "status": self.status,
            "is_circumpolar": self.is_circumpolar,
            "points": [{"lat": lat, "lon": lon} for lat, lon in self.points],
        }


# ── sampling helpers ─────────────────────────────────────────────────────────
def _frange(lo: float, hi: float, step: float) -> List[float]:
    n = int(math.floor((hi - lo) / step + 1e-9))
    return [round(lo + i * step, 10) for i in range(n + 1)]

def _lon_samples(step: float) -> List[float]:
    """[-180, 180) at `step`; -180 and +180 are one meridian."""
    n = int(math.ceil(360.0 / step - 1e-9))
    return [round(-180.0 + i * step, 10) for i in range(n)]

def _window(lat_window: Optional[Tuple[float, float]], max_latitude: float) -> Tuple[float, float]:
    if lat_window is None:
        return -max_latitude, max_latitude
    lo, hi = float(lat_window[0]), float(lat_window[1])
    return (lo, hi) if lo <= hi else (hi, lo)

def _min_abs_lat(lo: float, hi: float) -> float:
    return 0.0 if lo <= 0.0 <= hi else min(abs(lo), abs(hi))

def _never_crosses_horizon(declination: float, lo: float, hi: float) -> bool:
    """True when |δ| ≥ 90 − |φ| holds for every φ in [lo, hi]."""
    return abs(declination) >= 90.0 - _min_abs_lat(lo, hi) - EPS


# ── line builders ────────────────────────────────────────────────────────────
def _meridian_lines(planet: str, ra: float, gmst_deg: float,
                    lat_lo: float, lat_hi: float, lat_step: float) -> Tuple[ACGLine, ACGLine]:
    lon_mc = wrap_pm180(ra - gmst_deg)
    lon_ic = wrap_pm180(lon_mc + 180.0)
    lats = _frange(lat_lo, lat_hi, lat_step)
    mc = ACGLine(planet, "MC", tuple((lat, lon_mc) for lat in lats))
    ic = ACGLine(planet, "IC", tuple((lat, lon_ic) for lat in lats))
    return mc, ic

def _horizon_lines(planet: str, ra: float, dec: float, gmst_deg: float,
                   lat_lo: float, lat_hi: float, lon_step: float,
                   lat_step: float = ACG_LAT_STEP_DEG) -> Tuple[ACGLine, ACGLine]:
    if _never_crosses_horizon(dec, lat_lo, lat_hi):
        return (ACGLine(planet, "ASC", (), STATUS_CIRCUMPOLAR),
                ACGLine(planet, "DSC", (), STATUS_CIRCUMPOLAR))
    if abs(dec) < EPS:
        # on the celestial equator the horizon crossings are the H = ∓90° meridians
        lats = _frange(lat_lo, lat_hi, lat_step)
        lon_asc = wrap_pm180(ra - 90.0 - gmst_deg)
        lon_dsc = wrap_pm180(ra + 90.0 - gmst_deg)
        return (ACGLine(planet, "ASC", tuple((lat, lon_asc) for lat in lats)),
                ACGLine(planet, "DSC", tuple((lat, lon_dsc) for lat in lats)))

    asc: Dict[Tuple[float, float], Tuple[float, float]] = {}
    dsc: Dict[Tuple[float, float], Tuple[float, float]] = {}

    def _add(bucket: Dict[Tuple[float, float], Tuple[float, float]], phi: float, lam: float) -> None:
        bucket.setdefault((round(phi, 9), round(lam, 9)), (phi, lam))

    tan_d = math.tan(math.radians(dec))
    s = 1.0 if tan_d >= 0.0 else -1.0
    for lam in _lon_samples(lon_step):
        lst = wrap_deg(gmst_deg + lam)
        H = math.radians(delta_deg(ra, lst))
        sin_h, cos_h = math.sin(H), math.cos(H)
        if abs(sin_h) < _SINGULAR_SIN_H:
            continue
        # tan φ = −cos H / tan δ, kept in (−90, 90]
        phi = math.degrees(math.atan2(-cos_h * s, abs(tan_d)))
        if not (lat_lo <= phi <= lat_hi):
            continue
        _add(asc if sin_h < 0.0 else dsc, phi, lam)

    # Latitude sweep: where the curve runs steeply north-south (low |δ|) the
    # longitude samples alone leave gaps of many degrees of latitude.
    # cos H0 = −tan φ tan δ; rising at H = −H0, setting at H = +H0.
    for phi in _frange(lat_lo, lat_hi, lat_step):
        if abs(phi) >= 90.0:
            continue
        cos_h0 = -math.tan(math.radians(phi)) * tan_d
        if abs(cos_h0) > 1.0 or math.sqrt(1.0 - cos_h0 * cos_h0) < _SINGULAR_SIN_H:
            continue
        h0 = math.degrees(math.acos(cos_h0))
        _add(asc, phi, wrap_pm180(ra - h0 - gmst_deg))
        _add(dsc, phi, wrap_pm180(ra + h0 - gmst_deg))

    def _line(kind: str, bucket: Dict[Tuple[float, float], Tuple[float, float]]) -> ACGLine:
        if not bucket:
            return ACGLine(planet, kind, (), STATUS_NO_SOLUTION)
        pts = sorted(bucket.values(), key=lambda p: (p[1], p[0]))
        return ACGLine(planet, kind, tuple(pts))

    return _line("ASC", asc), _line("DSC", dsc)


def planet_lines(
    planet: str,
    equ: EquatorialPosition,
    gmst_deg: float,
    *,
    lon_step: float = ACG_LON_STEP_DEG,
    lat_step: float = ACG_LAT_STEP_DEG,
    max_latitude: float = ACG_MAX_LAT_DEG,
    lat_window: Optional[Tuple[float, float]] = None,
) -> List[ACGLine]:
    lo, hi = _window(lat_window, max_latitude)
    mc, ic = _meridian_lines(planet, equ.right_ascension, gmst_deg, lo, hi, lat_step)
    asc, dsc = _horizon_lines(planet, equ.right_ascension, equ.declination, gmst_deg, lo, hi, lon_step, lat_step)
    return [mc, ic, asc, dsc]

def all_lines(
    equatorial: Dict[str, EquatorialPosition],
    gmst_deg: float,
    **sampling: Any,
) -> List[ACGLine]:
    out: List[ACGLine] = []
    for planet in PLANET_IDS:
        out.extend(planet_lines(planet, equatorial[planet], gmst_deg, **sampling))
    return out

def compute_acg(
    equatorial: Dict[str, EquatorialPosition],
    gmst_deg: float,
    *,
    lon_step: float = ACG_LON_STEP_DEG,
    lat_step: float = ACG_LAT_STEP_DEG,
    max_latitude: float = ACG_MAX_LAT_DEG,
) -> Dict[str, Any]:
    """Build every line and wrap it with sampling metadata."""
    lines = all_lines(equatorial, gmst_deg, lon_step=lon_step, lat_step=lat_step, max_latitude=max_latitude)
    circumpolar = sorted({ln.planet for ln in lines if ln.is_circumpolar})
    log.debug("ACG: %d lines, circumpolar=%s", len(lines), circumpolar)
    return {
        "meta": {
            "gmst_deg": float(gmst_deg),
            "sampling": {"lon_step_deg": lon_step, "lat_step_deg": lat_step, "max_latitude_deg": max_latitude},
            "mc_ic_model": "ra_meridian",
            "circumpolar": circumpolar,
            "notes": [
                "MC/IC are right-ascension meridians and do not depend on latitude.",
                "ASC/DSC samples at the grazing singularity or outside the latitude window are skipped.",
            ],
        },
        "lines": [ln.to_dict() for ln in lines],
    }


# ── queries ──────────────────────────────────────────────────────────────────
def filter_lines(lines: Iterable[ACGLine], planet: Optional[str] = None,
                 line_type: Optional[str] = None) -> List[ACGLine]:
    return [
        ln for ln in lines
        if (planet is None or ln.planet == planet) and (line_type is None or ln.line_type == line_type)
    ]

def nearest_point(lat: float, lon: float, line: ACGLine) -> Optional[Tuple[float, Tuple[float, float]]]:
    """(distance°, (lat, lon)) of the closest line point, or None for an empty line."""
    best: Optional[Tuple[float, Tuple[float, float]]] = None
    for p in line.points:
        d = great_circle_distance(lat, lon, p[0], p[1])
        if best is None or d < best[0]:
            best = (d, p)
    return best

def lines_near_location(lat: float, lon: float, lines: Sequence[ACGLine],
                        orb: float = ACG_NEAR_ORB_DEG) -> List[Dict[str, Any]]:
    hits: List[Dict[str, Any]] = []
    for ln in lines:
        np_ = nearest_point(lat, lon, ln)
        if np_ is None or np_[0] > orb:
            continue
        hits.append({
            "planet": ln.planet,
            "line_type": ln.line_type,
            "distance_deg": np_[0],
            "nearest": {"lat": np_[1][0], "lon": np_[1][1]},
        })
    hits.sort(key=lambda h: (h["distance_deg"], PLANET_IDS.index(h["planet"]), LINE_TYPES.index(h["line_type"])))
    return hits

def line_intersections(line_a: ACGLine, line_b: ACGLine,
                       tolerance: float = ACG_INTERSECTION_TOL_DEG) -> List[Tuple[float, float]]:
    """Midpoints of point pairs closer than `tolerance`, de-duplicated within the same tolerance."""
    found: List[Tuple[float, float]] = []
    for pa in line_a.points:
        for pb in line_b.points:
            if abs(pa[0] - pb[0]) > tolerance or abs(delta_deg(pa[1], pb[1])) > tolerance / max(math.cos(math.radians(pa[0])), 1e-6):
                continue
            if great_circle_distance(pa[0], pa[1], pb[0], pb[1]) >= tolerance:
                continue
            mid = ((pa[0] + pb[0]) / 2.0, wrap_pm180(pa[1] + delta_deg(pa[1], pb[1]) / 2.0))
            if any(great_circle_distance(mid[0], mid[1], f[0], f[1]) < tolerance for f in found):
                continue
            found.append(mid)
    return found
