# declination_engine/core/paran.py
# -*- coding: utf-8 -*-
"""
Parans: latitudes where two planets are simultaneously angular.

Public API
----------
event_lst(equ, event, latitude) -> Optional[float]
find_parans_for_pair(planet1, equ1, planet2, equ2, **search) -> List[ParanPoint]
find_all_parans(equatorial, strength_threshold=0.5, executor=None, **search) -> ParanResult
paran_summary(parans) -> Dict[str, int]
paran_statistics(parans) -> Dict[str, Any]
parans_for_planet / parans_near_latitude / top_parans

Conventions
-----------
- Events: rise, set, culminate, anti_culminate. The sidereal time of an event
  at latitude φ is  culminate = α,  anti_culminate = α + 180°,
  rise = α − SDA(φ, δ),  set = α + SDA(φ, δ). Rise/set are undefined where the
  body is circumpolar or never rises.
- Culmination events do not depend on latitude, so a culminate/culminate
  combination is either everywhere or nowhere and is never searched.
- The LST difference of the two events is sampled over latitude; a root is
  bracketed only where it changes sign with both samples within ±90° (this
  rejects the ±180° wrap), then bisected to PARAN_BISECTION_TOL_DEG.
- Strength = 1 − |Δ LST| / max_orb, clamped to [0, 1].
- Parans beyond ±66.5° are still emitted but carry high_latitude=True and a
  warning, since they sit where one body is close to circumpolar.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from concurrent.futures import Executor
from itertools import combinations
from statistics import median
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from declination_engine.core.constants import (
    PARAN_BISECTION_TOL_DEG,
    PARAN_HIGH_LAT_DEG,
    PARAN_LAT_RANGE,
    PARAN_LAT_STEP_DEG,
    PARAN_MAX_ITERATIONS,
    PARAN_MAX_ORB_DEG,
    PARAN_SCORE_ORB_DEG,
    PARAN_STRENGTH_THRESHOLD,
    PLANET_IDS,
    clamp,
    delta_deg,
    wrap_deg,
)
from declination_engine.core.sda import semi_diurnal_arc
from declination_engine.core.transform import EquatorialPosition

log = logging.getLogger(__name__)

__all__ = [
    "EVENTS",
    "ParanPoint",
    "ParanResult",
    "event_lst",
    "find_parans_for_pair",
    "find_all_parans",
    "paran_summary",
    "paran_statistics",
    "parans_for_planet",
    "parans_near_latitude",
    "top_parans",
]

EVENTS: Tuple[str, ...] = ("rise", "set", "culminate", "anti_culminate")
_CULMINATIONS = frozenset({"culminate", "anti_culminate"})

# event → summary category; categories are ordered so pair keys are stable
_CATEGORY = {"rise": "rise", "set": "set", "culminate": "culminate", "anti_culminate": "culminate"}
_CATEGORY_ORDER = ("rise", "culminate", "set")
SUMMARY_KEYS: Tuple[str, ...] = (
    "rise_rise", "rise_culminate", "rise_set",
    "culminate_culminate", "culminate_set", "set_set",
)

_PARAN_COMBOS: Tuple[Tuple[str, str], ...] = tuple(
    (e1, e2) for e1 in EVENTS for e2 in EVENTS
    if not (e1 in _CULMINATIONS and e2 in _CULMINATIONS)
)


@dataclass(frozen=True)
class ParanPoint:
    planet1: str
    event1: str
    planet2: str
    event2: str
    latitude: float
    strength: float
    lst_difference: float = 0.0
    high_latitude: bool = False

    @property
    def category(self) -> str:
        a, b = sorted((_CATEGORY[self.event1], _CATEGORY[self.event2]), key=_CATEGORY_ORDER.index)
        return f"{a}_{b}"

    def involves(self, planet: str) -> bool:
        return planet in (self.planet1, self.planet2)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["category"] = self.category
        return d


@dataclass(frozen=True)
class ParanResult:
    parans: Tuple[ParanPoint, ...]
    summary: Dict[str, int]
    warnings: Tuple[str, ...] = ()
    search: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": {"search": dict(self.search), "warnings": list(self.warnings)},
            "summary": dict(self.summary),
            "parans": [p.to_dict() for p in self.parans],
        }


# ── event sidereal times ─────────────────────────────────────────────────────
def event_lst(equ: EquatorialPosition, event: str, latitude: float) -> Optional[float]:
    ra = equ.right_ascension
    if event == "culminate":
        return wrap_deg(ra)
    if event == "anti_culminate":
        return wrap_deg(ra + 180.0)
    arc = semi_diurnal_arc(latitude, equ.declination)
    if arc.sda is None:
        return None
    if event == "rise":
        return wrap_deg(ra - arc.sda)
    if event == "set":
        return wrap_deg(ra + arc.sda)
    raise ValueError(f"unknown event {event!r}")

def _lst_difference(equ1: EquatorialPosition, e1: str, equ2: EquatorialPosition, e2: str,
                    latitude: float) -> Optional[float]:
    l1 = event_lst(equ1, e1, latitude)
    l2 = event_lst(equ2, e2, latitude)
    if l1 is None or l2 is None:
        return None
    return delta_deg(l1, l2)


# ── root finding ─────────────────────────────────────────────────────────────
def _bisect(f, lo: float, hi: float, f_lo: float, tol: float, max_iter: int) -> float:
    for _ in range(max_iter):
        if hi - lo <= tol:
            break
        mid = 0.5 * (lo + hi)
        f_mid = f(mid)
        if f_mid is None:
            # domain edge inside the bracket; keep the defined side
            hi = mid
            continue
        if f_mid == 0.0:
            return mid
        if (f_lo < 0.0) == (f_mid < 0.0):
            lo, f_lo = mid, f_mid
        else:
            hi = mid
    return 0.5 * (lo + hi)

def _scan_roots(f, lat_low: float, lat_high: float, step: float,
                tol: float, max_iter: int) -> List[float]:
    roots: List[float] = []
    n = int((lat_high - lat_low) / step + 1e-9)
    prev_lat = lat_low
    prev = f(prev_lat)
    if prev == 0.0:
        roots.append(prev_lat)
    for i in range(1, n + 1):
        lat = lat_low + i * step
        cur = f(lat)
        if cur is not None and cur == 0.0:
            # a run of exact zeros (degenerate δ = 0 pairs) counts once
            if prev != 0.0:
                roots.append(lat)
        elif (prev is not None and cur is not None and prev != 0.0
              and prev * cur < 0.0 and abs(prev) < 90.0 and abs(cur) < 90.0):
            roots.append(_bisect(f, prev_lat, lat, prev, tol, max_iter))
        prev_lat, prev = lat, cur
    return roots


def find_parans_for_pair(
    planet1: str,
    equ1: EquatorialPosition,
    planet2: str,
    equ2: EquatorialPosition,
    *,
    lat_range: Tuple[float, float] = PARAN_LAT_RANGE,
    lat_step: float = PARAN_LAT_STEP_DEG,
    tolerance: float = PARAN_BISECTION_TOL_DEG,
    max_iterations: int = PARAN_MAX_ITERATIONS,
    max_orb: float = PARAN_MAX_ORB_DEG,
) -> List[ParanPoint]:
    if planet1 == planet2:
        raise ValueError("paran needs two distinct planets")
    lo, hi = min(lat_range), max(lat_range)
    out: List[ParanPoint] = []
    for e1, e2 in _PARAN_COMBOS:
        f = lambda lat, e1=e1, e2=e2: _lst_difference(equ1, e1, equ2, e2, lat)
        for root in _scan_roots(f, lo, hi, lat_step, tolerance, max_iterations):
            diff = f(root)
            if diff is None:
                continue
            out.append(ParanPoint(
                planet1=planet1, event1=e1, planet2=planet2, event2=e2,
                latitude=float(root),
                strength=clamp(1.0 - abs(diff) / max_orb, 0.0, 1.0),
                lst_difference=float(diff),
                high_latitude=abs(root) > PARAN_HIGH_LAT_DEG,
            ))
    return out


# ── all pairs ────────────────────────────────────────────────────────────────
def _pair_task(args: Tuple[str, EquatorialPosition, str, EquatorialPosition, Dict[str, Any]]) -> List[ParanPoint]:
    p1, q1, p2, q2, search = args
    return find_parans_for_pair(p1, q1, p2, q2, **search)

def find_all_parans(
    equatorial: Dict[str, EquatorialPosition],
    strength_threshold: float = PARAN_STRENGTH_THRESHOLD,
    *,
    executor: Optional[Executor] = None,
    planets: Sequence[str] = PLANET_IDS,
    **search: Any,
) -> ParanResult:
    """
    Every unordered pair of distinct planets. Pairs are independent, so an
    Executor may map them concurrently; order of the output does not depend
    on it (stable sort by strength over pair order).
    """
    tasks = [(a, equatorial[a], b, equatorial[b], search) for a, b in combinations(planets, 2)]
    mapper = executor.map if executor is not None else map
    found: List[ParanPoint] = []
    for pts in mapper(_pair_task, tasks):
        found.extend(p for p in pts if p.strength >= strength_threshold)
    found.sort(key=lambda p: -p.strength)

    warnings: List[str] = []
    for p in found:
        if p.high_latitude:
            w = f"paran_high_latitude:{p.planet1}/{p.planet2}"
            if w not in warnings:
                warnings.append(w)

    log.debug("parans: %d pairs → %d points (threshold %.2f)", len(tasks), len(found), strength_threshold)
    return ParanResult(
        parans=tuple(found),
        summary=paran_summary(found),
        warnings=tuple(warnings),
        search={
            "lat_range": list(search.get("lat_range", PARAN_LAT_RANGE)),
            "lat_step_deg": search.get("lat_step", PARAN_LAT_STEP_DEG),
            "strength_threshold": strength_threshold,
        },
    )


# ── reductions & queries ─────────────────────────────────────────────────────
def paran_summary(parans: Sequence[ParanPoint]) -> Dict[str, int]:
    counts = {k: 0 for k in SUMMARY_KEYS}
    for p in parans:
        counts[p.category] += 1
    counts["total"] = len(parans)
    return counts

def paran_statistics(parans: Sequence[ParanPoint]) -> Dict[str, Any]:
    if not parans:
        return {
            "total": 0, "average_strength": 0.0, "median_strength": 0.0,
            "latitude_range": None, "strongest": None,
            "hemispheres": {"northern": 0, "southern": 0},
        }
    strengths = [p.strength for p in parans]
    lats = [p.latitude for p in parans]
    strongest = max(parans, key=lambda p: p.strength)
    return {
        "total": len(parans),
        "average_strength": sum(strengths) / len(strengths),
        "median_strength": float(median(strengths)),
        "latitude_range": {"min": min(lats), "max": max(lats)},
        "strongest": strongest.to_dict(),
        "hemispheres": {
            "northern": sum(1 for x in lats if x > 0.0),
            "southern": sum(1 for x in lats if x < 0.0),
        },
    }

def parans_for_planet(parans: Sequence[ParanPoint], planet: str) -> List[ParanPoint]:
    return [p for p in parans if p.involves(planet)]

def parans_near_latitude(parans: Sequence[ParanPoint], latitude: float,
                         orb: float = PARAN_SCORE_ORB_DEG) -> List[ParanPoint]:
    hits = [p for p in parans if abs(p.latitude - latitude) <= orb]
    hits.sort(key=lambda p: abs(p.latitude - latitude))
    return hits

def top_parans(parans: Sequence[ParanPoint], n: int = 10) -> List[ParanPoint]:
    return sorted(parans, key=lambda p: -p.strength)[:max(0, int(n))]
