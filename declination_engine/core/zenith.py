# declination_engine/core/zenith.py
"""
Zenith bands: latitudes where a planet can pass (nearly) overhead.

A planet culminates at the zenith of the latitude equal to its declination;
the band is declination ± orb. Orbs are validated, not clamped: a
non-positive orb or one wider than MAX_DECLINATION_ORB raises InputError.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional
import math

from declination_engine.core.constants import (
    DEFAULT_DECLINATION_ORB,
    PLANET_IDS,
    ZENITH_GAUSSIAN_SIGMA,
)
from declination_engine.core.validators import InputError, parse_orb

__all__ = [
    "ZenithLine",
    "zenith_lines",
    "zenith_bands",
    "gaussian",
    "zenith_contribution",
    "score_latitude",
    "find_zenith_overlaps",
]


@dataclass(frozen=True)
class ZenithLine:
    planet: str
    latitude: float
    orb_min: float
    orb_max: float

    @property
    def orb(self) -> float:
        return self.latitude - self.orb_min

    def contains(self, latitude: float) -> bool:
        return self.orb_min <= latitude <= self.orb_max

    def distance_outside(self, latitude: float) -> float:
        """0 inside the band, else degrees to the nearest band edge."""
        if latitude < self.orb_min:
            return self.orb_min - latitude
        if latitude > self.orb_max:
            return latitude - self.orb_max
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _declination_of(planet: str, declinations: Mapping[str, Any]) -> float:
    v = declinations[planet]
    return float(getattr(v, "declination", v))

def zenith_lines(declinations: Mapping[str, Any], orb: float = DEFAULT_DECLINATION_ORB) -> List[ZenithLine]:
    """
    One band per planet, in PLANET_IDS order. `declinations` maps planet to a
    declination in degrees (an EquatorialPosition is accepted too).
    """
    orb = parse_orb(orb)
    missing = [p for p in PLANET_IDS if p not in declinations]
    if missing:
        raise InputError({"loc": ["declinations"], "msg": f"missing planets: {', '.join(missing)}", "type": "value_error.planet"})
    out: List[ZenithLine] = []
    for p in PLANET_IDS:
        dec = _declination_of(p, declinations)
        out.append(ZenithLine(p, dec, dec - orb, dec + orb))
    return out

def zenith_bands(lines: List[ZenithLine], weights: Mapping[str, float]) -> List[Dict[str, Any]]:
    """Bands of weighted planets only, strongest weight first."""
    rows = [
        {**ln.to_dict(), "weight": float(weights.get(ln.planet, 0.0))}
        for ln in lines if weights.get(ln.planet, 0.0) > 0.0
    ]
    rows.sort(key=lambda r: (-r["weight"], PLANET_IDS.index(r["planet"])))
    return rows


# ── scoring ──────────────────────────────────────────────────────────────────
def gaussian(x: float, mu: float, sigma: float) -> float:
    return math.exp(-((x - mu) ** 2) / (2.0 * sigma * sigma))

def zenith_contribution(latitude: float, line: ZenithLine, weight: float,
                        sigma: float = ZENITH_GAUSSIAN_SIGMA) -> float:
    """Full weight inside the band; Gaussian decay on the distance to the band edge outside."""
    if weight <= 0.0:
        return 0.0
    d = line.distance_outside(latitude)
    return weight if d == 0.0 else weight * gaussian(d, 0.0, sigma)

def score_latitude(latitude: float, lines: List[ZenithLine], weights: Mapping[str, float],
                   sigma: float = ZENITH_GAUSSIAN_SIGMA) -> Dict[str, Any]:
    contributions = []
    for ln in lines:
        c = zenith_contribution(latitude, ln, float(weights.get(ln.planet, 0.0)), sigma)
        if c > 0.0:
            contributions.append({"planet": ln.planet, "score": c, "in_band": ln.contains(latitude)})
    contributions.sort(key=lambda r: (-r["score"], PLANET_IDS.index(r["planet"])))
    return {"score": sum(c["score"] for c in contributions), "contributions": contributions}

def find_zenith_overlaps(lines: List[ZenithLine], weights: Optional[Mapping[str, float]] = None) -> List[Dict[str, Any]]:
    """
    Latitude zones where two or more bands overlap. Pairwise overlaps whose
    centres fall within one orb of each other are merged.
    """
    w = weights or {p: 1.0 for p in PLANET_IDS}
    active = [ln for ln in lines if w.get(ln.planet, 0.0) > 0.0]
    zones: List[Dict[str, Any]] = []
    for i, a in enumerate(active):
        for b in active[i + 1:]:
            lo = max(a.orb_min, b.orb_min)
            hi = min(a.orb_max, b.orb_max)
            if lo > hi:
                continue
            centre = (lo + hi) / 2.0
            merge_orb = max(a.orb, b.orb)
            zone = next((z for z in zones if abs(z["latitude"] - centre) <= merge_orb), None)
            if zone is None:
                zones.append({"latitude": centre, "lat_min": lo, "lat_max": hi, "planets": [a.planet, b.planet]})
                continue
            zone["lat_min"] = min(zone["lat_min"], lo)
            zone["lat_max"] = max(zone["lat_max"], hi)
            for p in (a.planet, b.planet):
                if p not in zone["planets"]:
                    zone["planets"].append(p)
            zone["latitude"] = (zone["lat_min"] + zone["lat_max"]) / 2.0
    for z in zones:
        z["planets"].sort(key=PLANET_IDS.index)
        z["combined_weight"] = sum(float(w.get(p, 0.0)) for p in z["planets"])
    zones.sort(key=lambda z: (-z["combined_weight"], z["latitude"]))
    return zones
