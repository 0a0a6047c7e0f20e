# declination_engine/core/oob.py
"""Out-of-bounds planets: |declination| beyond the Sun's maximum (the obliquity)."""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional

from declination_engine.core.constants import PLANET_IDS
from declination_engine.core.transform import EquatorialPosition


@dataclass(frozen=True)
class OOBStatus:
    planet: str
    declination: float
    is_oob: bool
    direction: Optional[str]    # "north" | "south" | None
    oob_degrees: float          # how far past the boundary (0 when in bounds)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def oob_status(planet: str, declination: float, obliquity: float) -> OOBStatus:
    excess = abs(declination) - obliquity
    if excess <= 0.0:
        return OOBStatus(planet, declination, False, None, 0.0)
    return OOBStatus(planet, declination, True, "north" if declination > 0 else "south", excess)

def check_all(equatorial: Mapping[str, EquatorialPosition], obliquity: float) -> Dict[str, OOBStatus]:
    return {p: oob_status(p, equatorial[p].declination, obliquity) for p in PLANET_IDS}

def oob_planets(statuses: Mapping[str, OOBStatus]) -> List[OOBStatus]:
    """Out-of-bounds planets only, furthest first."""
    hits = [s for s in statuses.values() if s.is_oob]
    hits.sort(key=lambda s: (-s.oob_degrees, PLANET_IDS.index(s.planet)))
    return hits
