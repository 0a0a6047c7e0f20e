# declination_engine/core/geospatial.py
# -*- coding: utf-8 -*-
"""
Geospatial scoring grid & city ranking.

Public API
----------
ScoringInputs(zenith_lines, acg_lines, parans, weights, acg_orb=2.0, paran_orb=1.0, sigma=3.0)
score_location(lat, lon, inputs) -> GridCell
grid_axes(resolution=None, bounds=None, max_cells=None) -> (lats, lons)
score_grid(inputs, resolution=None, bounds=None, executor=None, max_cells=None) -> List[GridCell]
rank_cities(cities, inputs, tiers=None, limit=None, executor=None) -> List[RankedCity]
grid_statistics(grid) / top_cells(grid, n) / filter_by_dominant_factor(grid, factor)
latitude_score(lat, inputs) / optimal_latitude(inputs, lo, hi) / high_scoring_bands(inputs)
city_highlights(city, inputs) / ranking_summary(ranked) / group_by_country(ranked)

Scoring model
-------------
score = zenith + acg + paran, each scaled by the per-planet weight:
  zenith  inside the band → full weight; outside → Gaussian decay (σ = 3°)
          on the distance to the band edge.
  acg     per line: (1 − d/orb)·weight, d = great-circle distance (degrees)
          to the nearest line point, zero beyond the orb (2°).
  paran   per paran: (1 − |φ − φp|/orb)·mean(w1, w2)·strength within 1°.
A weight of 0 removes the planet entirely, including parans it is part of.

Cells and cities are independent, so grid rows and city scores are mapped
through an optional concurrent.futures Executor and merged in input order.
Ranking is a stable sort on score (desc) with ties broken by population
(desc) then city id (asc).
"""

from __future__ import annotations
from bisect import bisect_left, bisect_right
from concurrent.futures import Executor
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

from declination_engine.core.acg import ACGLine
from declination_engine.core.constants import (
    ACG_SCORE_ORB_DEG,
    GRID_DEFAULTS,
    PARAN_SCORE_ORB_DEG,
    PLANET_IDS,
    ZENITH_GAUSSIAN_SIGMA,
)
from declination_engine.core.paran import ParanPoint
from declination_engine.core.transform import great_circle_distance
from declination_engine.core.validators import InputError
from declination_engine.core.zenith import ZenithLine, score_latitude

log = logging.getLogger(__name__)

__all__ = [
    "ScoringInputs",
    "GridCell",
    "City",
    "RankedCity",
    "score_location",
    "grid_axes",
    "score_grid",
    "rank_cities",
    "grid_statistics",
    "top_cells",
    "filter_by_dominant_factor",
    "latitude_score",
    "optimal_latitude",
    "high_scoring_bands",
    "city_highlights",
    "ranking_summary",
    "group_by_country",
]

FACTORS: Tuple[str, ...] = ("zenith", "acg", "paran")

ZENITH_HIGHLIGHT_ORB = 1.5
ACG_HIGHLIGHT_ORB = 2.0
PARAN_HIGHLIGHT_ORB = 1.0
HIGHLIGHT_MIN_WEIGHT = 3.0

_LINE_NAMES = {"ASC": "Ascendant", "DSC": "Descendant", "MC": "Midheaven", "IC": "Imum Coeli"}

_GOLDEN = (math.sqrt(5.0) - 1.0) / 2.0


# ── inputs ───────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class _LineIndex:
    """ACG line points sorted by latitude for orb-window lookups."""
    planet: str
    line_type: str
    lats: Tuple[float, ...]
    points: Tuple[Tuple[float, float], ...]

def _index_line(line: ACGLine) -> _LineIndex:
    pts = tuple(sorted(line.points))
    return _LineIndex(line.planet, line.line_type, tuple(p[0] for p in pts), pts)


@dataclass(frozen=True)
class ScoringInputs:
    zenith_lines: Tuple[ZenithLine, ...]
    acg_lines: Tuple[ACGLine, ...]
    parans: Tuple[ParanPoint, ...]
    weights: Mapping[str, float]
    acg_orb: float = ACG_SCORE_ORB_DEG
    paran_orb: float = PARAN_SCORE_ORB_DEG
    sigma: float = ZENITH_GAUSSIAN_SIGMA
    _lines: Tuple[_LineIndex, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        bad = [p for p, w in self.weights.items() if not (isinstance(w, (int, float)) and math.isfinite(w) and w >= 0.0)]
        if bad:
            raise InputError([
                {"loc": ["weights", p], "msg": "weight must be a non-negative number", "type": "value_error.negative"}
                for p in bad
            ])
        for name in ("acg_orb", "paran_orb", "sigma"):
            if not getattr(self, name) > 0.0:
                raise InputError({"loc": [name], "msg": f"{name} must be positive", "type": "value_error"})
        object.__setattr__(self, "zenith_lines", tuple(self.zenith_lines))
        object.__setattr__(self, "acg_lines", tuple(self.acg_lines))
        object.__setattr__(self, "parans", tuple(self.parans))
        object.__setattr__(self, "_lines", tuple(
            _index_line(ln) for ln in self.acg_lines if ln.points and self.weight(ln.planet) > 0.0
        ))

    def weight(self, planet: str) -> float:
        return float(self.weights.get(planet, 0.0))


@dataclass(frozen=True)
class GridCell:
    latitude: float
    longitude: float
    score: float
    zenith: float = 0.0
    acg: float = 0.0
    paran: float = 0.0
    dominant_factor: str = "mixed"
    dominant_planet: Optional[str] = None

    @property
    def breakdown(self) -> Dict[str, float]:
        return {"zenith": self.zenith, "acg": self.acg, "paran": self.paran}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class City:
    id: str
    latitude: float
    longitude: float
    population: int = 0
    tier: Optional[str] = None
    name: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class RankedCity:
    city: City
    rank: int
    cell: GridCell
    highlights: Tuple[str, ...] = ()

    @property
    def score(self) -> float:
        return self.cell.score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "id": self.city.id,
            "name": self.city.name or self.city.id,
            "country": self.city.country,
            "latitude": self.city.latitude,
            "longitude": self.city.longitude,
            "population": self.city.population,
            "tier": self.city.tier,
            "score": self.cell.score,
            "breakdown": self.cell.breakdown,
            "dominant_factor": self.cell.dominant_factor,
            "dominant_planet": self.cell.dominant_planet,
            "highlights": list(self.highlights),
        }


# ── per-factor contributions ─────────────────────────────────────────────────
def _acg_score(lat: float, lon: float, inputs: ScoringInputs) -> Tuple[float, Optional[str]]:
    orb = inputs.acg_orb
    total = 0.0
    best: Tuple[float, Optional[str]] = (0.0, None)
    for ix in inputs._lines:
        lo = bisect_left(ix.lats, lat - orb)
        hi = bisect_right(ix.lats, lat + orb)
        if lo >= hi:
            continue
        d = min(great_circle_distance(lat, lon, p[0], p[1]) for p in ix.points[lo:hi])
        if d > orb:
            continue
        c = (1.0 - d / orb) * inputs.weight(ix.planet)
        total += c
        if c > best[0]:
            best = (c, ix.planet)
    return total, best[1]

def _paran_score(lat: float, inputs: ScoringInputs) -> Tuple[float, Optional[str]]:
    orb = inputs.paran_orb
    total = 0.0
    best: Tuple[float, Optional[ParanPoint]] = (0.0, None)
    for p in inputs.parans:
        w1, w2 = inputs.weight(p.planet1), inputs.weight(p.planet2)
        if w1 <= 0.0 or w2 <= 0.0:
            continue
        d = abs(lat - p.latitude)
        if d > orb:
            continue
        c = (1.0 - d / orb) * (w1 + w2) / 2.0 * p.strength
        total += c
        if c > best[0]:
            best = (c, p)
    bp = best[1]
    if bp is None:
        return total, None
    return total, bp.planet1 if inputs.weight(bp.planet1) >= inputs.weight(bp.planet2) else bp.planet2

def _dominant(scores: Dict[str, float]) -> str:
    top = max(scores.values())
    if top <= 0.0:
        return "mixed"
    leaders = [f for f in FACTORS if scores[f] == top]
    return leaders[0] if len(leaders) == 1 else "mixed"

def score_location(lat: float, lon: float, inputs: ScoringInputs) -> GridCell:
    z = score_latitude(lat, list(inputs.zenith_lines), inputs.weights, inputs.sigma)
    a, a_planet = _acg_score(lat, lon, inputs)
    p, p_planet = _paran_score(lat, inputs)
    parts = {"zenith": z["score"], "acg": a, "paran": p}
    factor = _dominant(parts)
    planet = {
        "zenith": z["contributions"][0]["planet"] if z["contributions"] else None,
        "acg": a_planet,
        "paran": p_planet,
    }.get(factor)
    return GridCell(
        latitude=float(lat),
        longitude=float(lon),
        score=parts["zenith"] + a + p,
        zenith=parts["zenith"],
        acg=a,
        paran=p,
        dominant_factor=factor,
        dominant_planet=planet,
    )


# ── grid ─────────────────────────────────────────────────────────────────────
def _axis(lo: float, hi: float, step: float) -> List[float]:
    n = int(math.floor((hi - lo) / step + 1e-9))
    return [round(lo + i * step, 10) for i in range(n + 1)]

def _score_row(args: Tuple[ScoringInputs, float, Sequence[float]]) -> List[GridCell]:
    inputs, lat, lons = args
    return [score_location(lat, lon, inputs) for lon in lons]

def _resolution(resolution: Any) -> Tuple[float, float]:
    if resolution is None:
        return GRID_DEFAULTS["lat_step"], GRID_DEFAULTS["lon_step"]
    try:
        if isinstance(resolution, (int, float)) and not isinstance(resolution, bool):
            lat_step = lon_step = float(resolution)
        else:
            lat_step, lon_step = (float(x) for x in resolution)
    except (TypeError, ValueError) as e:
        raise InputError({"loc": ["resolution"], "msg": "resolution must be a step or [lat_step, lon_step]", "type": "type_error"}) from e
    if not (math.isfinite(lat_step) and math.isfinite(lon_step) and lat_step > 0.0 and lon_step > 0.0):
        raise InputError({"loc": ["resolution"], "msg": "grid steps must be positive", "type": "value_error"})
    return lat_step, lon_step

def grid_axes(
    resolution: Any = None,
    bounds: Optional[Mapping[str, float]] = None,
    max_cells: Optional[int] = None,
) -> Tuple[List[float], List[float]]:
    """
    Latitude and longitude samples of a lattice. `resolution` is a single
    step or (lat_step, lon_step); `bounds` may override lat_min/lat_max/
    lon_min/lon_max. Raises InputError before any scoring work is done.
    """
    lat_step, lon_step = _resolution(resolution)
    b = {k: float(GRID_DEFAULTS[k]) for k in ("lat_min", "lat_max", "lon_min", "lon_max")}
    try:
        b.update({k: float(v) for k, v in (bounds or {}).items() if k in b})
    except (TypeError, ValueError) as e:
        raise InputError({"loc": ["bounds"], "msg": "bounds must be numbers", "type": "type_error.float"}) from e
    if b["lat_min"] > b["lat_max"] or b["lon_min"] > b["lon_max"]:
        raise InputError({"loc": ["bounds"], "msg": "bounds must satisfy min <= max", "type": "value_error"})
    if b["lat_min"] < -90.0 or b["lat_max"] > 90.0 or b["lon_min"] < -180.0 or b["lon_max"] > 180.0:
        raise InputError({"loc": ["bounds"], "msg": "bounds must lie within ±90 / ±180", "type": "value_error"})

    # count first so a tiny step never materialises a huge axis
    n_lat = int(math.floor((b["lat_max"] - b["lat_min"]) / lat_step + 1e-9)) + 1
    n_lon = int(math.floor((b["lon_max"] - b["lon_min"]) / lon_step + 1e-9)) + 1
    if max_cells is not None and n_lat * n_lon > max_cells:
        raise InputError({
            "loc": ["resolution"],
            "msg": f"grid of {n_lat * n_lon} cells exceeds the limit of {max_cells}",
            "type": "value_error.grid_too_large",
        })
    return _axis(b["lat_min"], b["lat_max"], lat_step), _axis(b["lon_min"], b["lon_max"], lon_step)

def score_grid(
    inputs: ScoringInputs,
    resolution: Any = None,
    bounds: Optional[Mapping[str, float]] = None,
    *,
    executor: Optional[Executor] = None,
    max_cells: Optional[int] = None,
) -> List[GridCell]:
    """Score the lattice from grid_axes. Cells come back row-major (latitude ascending, then longitude)."""
    lats, lons = grid_axes(resolution, bounds, max_cells)
    mapper = executor.map if executor is not None else map
    grid: List[GridCell] = []
    for row in mapper(_score_row, [(inputs, lat, lons) for lat in lats]):
        grid.extend(row)
    log.debug("grid: %d cells (%d rows × %d columns)", len(grid), len(lats), len(lons))
    return grid

def top_cells(grid: Sequence[GridCell], n: int = 10) -> List[GridCell]:
    return sorted(grid, key=lambda c: -c.score)[:max(0, int(n))]

def filter_by_dominant_factor(grid: Iterable[GridCell], factor: str) -> List[GridCell]:
    return [c for c in grid if c.dominant_factor == factor]

def grid_statistics(grid: Sequence[GridCell]) -> Dict[str, Any]:
    dominant = {f: 0 for f in FACTORS + ("mixed",)}
    if not grid:
        return {"total_cells": 0, "average_score": 0.0, "max_score": 0.0, "min_score": 0.0, "dominant": dominant}
    scores = [c.score for c in grid]
    for c in grid:
        dominant[c.dominant_factor] += 1
    return {
        "total_cells": len(grid),
        "average_score": sum(scores) / len(scores),
        "max_score": max(scores),
        "min_score": min(scores),
        "dominant": dominant,
    }


# ── latitude-only search ─────────────────────────────────────────────────────
def latitude_score(lat: float, inputs: ScoringInputs) -> float:
    """Zenith + paran score; both depend on latitude alone."""
    z = score_latitude(lat, list(inputs.zenith_lines), inputs.weights, inputs.sigma)["score"]
    return z + _paran_score(lat, inputs)[0]

def optimal_latitude(inputs: ScoringInputs, lo: float, hi: float, tolerance: float = 0.1) -> Dict[str, float]:
    """Golden-section search for the best latitude in [lo, hi] (assumes one peak in range)."""
    a, b = (lo, hi) if lo <= hi else (hi, lo)
    c = b - _GOLDEN * (b - a)
    d = a + _GOLDEN * (b - a)
    fc, fd = latitude_score(c, inputs), latitude_score(d, inputs)
    while b - a > tolerance:
        if fc > fd:
            b, d, fd = d, c, fc
            c = b - _GOLDEN * (b - a)
            fc = latitude_score(c, inputs)
        else:
            a, c, fc = c, d, fd
            d = a + _GOLDEN * (b - a)
            fd = latitude_score(d, inputs)
    best = (a + b) / 2.0
    return {"latitude": best, "score": latitude_score(best, inputs)}

def high_scoring_bands(
    inputs: ScoringInputs,
    lat_range: Tuple[float, float] = (-70.0, 70.0),
    step: float = 0.5,
    threshold_ratio: float = 0.5,
) -> List[Dict[str, Any]]:
    """Contiguous latitude runs whose score reaches `threshold_ratio` of the peak."""
    lats = _axis(min(lat_range), max(lat_range), step)
    scores = [latitude_score(lat, inputs) for lat in lats]
    peak = max(scores, default=0.0)
    if peak <= 0.0:
        return []
    cut = threshold_ratio * peak
    bands: List[Dict[str, Any]] = []
    run: List[int] = []
    for i, s in enumerate(scores + [-1.0]):
        if s >= cut:
            run.append(i)
            continue
        if run:
            best = max(run, key=lambda j: scores[j])
            bands.append({
                "lat_min": lats[run[0]],
                "lat_max": lats[run[-1]],
                "peak_latitude": lats[best],
                "peak_score": scores[best],
            })
            run = []
    bands.sort(key=lambda b: -b["peak_score"])
    return bands


# ── ranking ──────────────────────────────────────────────────────────────────
def _name(planet: str) -> str:
    return planet.capitalize()

def city_highlights(city: City, inputs: ScoringInputs) -> List[str]:
    out: List[str] = []
    for zl in inputs.zenith_lines:
        if inputs.weight(zl.planet) < HIGHLIGHT_MIN_WEIGHT:
            continue
        d = abs(city.latitude - zl.latitude)
        if d <= ZENITH_HIGHLIGHT_ORB:
            out.append(
                f"{_name(zl.planet)} zenith passes directly over this latitude" if d < 0.5
                else f"Near {_name(zl.planet)} zenith line ({d:.1f}° away)"
            )
    for ln in inputs.acg_lines:
        if inputs.weight(ln.planet) < HIGHLIGHT_MIN_WEIGHT or not ln.points:
            continue
        d = min(great_circle_distance(city.latitude, city.longitude, p[0], p[1]) for p in ln.points)
        if d <= ACG_HIGHLIGHT_ORB:
            out.append(f"Near {_name(ln.planet)} {_LINE_NAMES.get(ln.line_type, ln.line_type)} line")
    involved: List[str] = []
    for p in inputs.parans:
        if abs(city.latitude - p.latitude) <= PARAN_HIGHLIGHT_ORB:
            for planet in (p.planet1, p.planet2):
                if planet not in involved and inputs.weight(planet) > 0.0:
                    involved.append(planet)
    involved.sort(key=lambda q: (-inputs.weight(q), PLANET_IDS.index(q)))
    if len(involved) >= 2:
        out.append(f"Active paran zone with {_name(involved[0])}-{_name(involved[1])} interactions")
    elif involved:
        out.append(f"Paran activity involving {_name(involved[0])}")
    return out

def _score_city(args: Tuple[ScoringInputs, City]) -> GridCell:
    inputs, city = args
    return score_location(city.latitude, city.longitude, inputs)

def rank_cities(
    cities: Sequence[City],
    inputs: ScoringInputs,
    *,
    tiers: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
    executor: Optional[Executor] = None,
) -> List[RankedCity]:
    wanted = {t.lower() for t in tiers} if tiers else None
    pool = [c for c in cities if wanted is None or (c.tier or "").lower() in wanted]
    mapper = executor.map if executor is not None else map
    cells = list(mapper(_score_city, [(inputs, c) for c in pool]))

    order = sorted(range(len(pool)), key=lambda i: (-cells[i].score, -pool[i].population, pool[i].id))
    if limit is not None:
        order = order[:max(0, int(limit))]
    return [
        RankedCity(city=pool[i], rank=r, cell=cells[i], highlights=tuple(city_highlights(pool[i], inputs)))
        for r, i in enumerate(order, start=1)
    ]

def ranking_summary(ranked: Sequence[RankedCity]) -> Dict[str, Any]:
    by_tier: Dict[str, int] = {}
    for rc in ranked:
        key = rc.city.tier or "unknown"
        by_tier[key] = by_tier.get(key, 0) + 1
    scores = [rc.score for rc in ranked]
    return {
        "total": len(ranked),
        "by_tier": by_tier,
        "top_score": max(scores) if scores else 0.0,
        "average_score": sum(scores) / len(scores) if scores else 0.0,
    }

def group_by_country(ranked: Sequence[RankedCity]) -> Dict[str, List[RankedCity]]:
    groups: Dict[str, List[RankedCity]] = {}
    for rc in ranked:
        groups.setdefault(rc.city.country or "unknown", []).append(rc)
    return groups
