# declination_engine/core/ephemeris.py
# -*- coding: utf-8 -*-
"""
Geocentric ephemeris from closed-form series (no kernels, no I/O).

Public API
----------
positions(instant) -> Dict[planet, EclipticPosition]
    Total over PLANET_IDS. Mean ecliptic & equinox of date; longitude in
    [0, 360), latitude in [-90, 90], distance (AU) > 0.
daily_motion(instant) -> Dict[planet, {"speed_deg_per_day", "retrograde"}]
precision_caveats(instant) -> List[str]

Sources
-------
- Mercury … Neptune: ERFA plan94 (Simon et al. 1994 heliocentric series)
  minus Earth's heliocentric vector (ERFA epv00), one light-time pass.
- Moon: ERFA moon98 (Meeus / ELP-2000 abridged, geocentric).
- Sun: reversed Earth vector, then the annual aberration constant applied to
  longitude (apparent position without nutation).
- Pluto: JPL approximate Keplerian elements (valid 1800–2050).
- ICRS vectors → ecliptic of date via the IAU 2006 precession matrix (ecm06).

Precision
---------
The series are fitted for roughly 1800–2200 (epv00 1900–2100). Outside that
range they stay defined but degrade; ERFA's range warnings are silenced and
precision_caveats() reports the condition instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, List, Sequence, Tuple
import logging
import math
import warnings as _warnings

import erfa  # pyERFA

from declination_engine.core.constants import PLANET_IDS, clamp, delta_deg, wrap_deg
from declination_engine.core.timescales import Instant, J2000

log = logging.getLogger(__name__)

__all__ = [
    "EclipticPosition",
    "positions",
    "positions_at",
    "daily_motion",
    "precision_caveats",
    "SUPPORTED_YEAR_RANGE",
]

SUPPORTED_YEAR_RANGE: Tuple[float, float] = (1800.0, 2200.0)

# AU light time in days
_LIGHT_TIME_DAY_PER_AU = 0.0057755183
# Annual aberration constant (arcsec)
_ABERRATION_ARCSEC = 20.4898
# J2000 obliquity used to lift Pluto's ecliptic elements into ICRS
_EPS_J2000 = math.radians(23.43928)

_PLAN94_INDEX: Dict[str, int] = {
    "mercury": 1, "venus": 2, "mars": 4, "jupiter": 5,
    "saturn": 6, "uranus": 7, "neptune": 8,
}

# (a, e, I, L, long.peri, long.node) and their rates per Julian century
_PLUTO_ELEMENTS: Tuple[Tuple[float, float], ...] = (
    (39.48211675, -0.00031596),
    (0.24882730, 0.00005170),
    (17.14001206, 0.00004818),
    (238.92903833, 145.20780515),
    (224.06891629, -0.04062942),
    (110.30393684, -0.01183482),
)


@dataclass(frozen=True)
class EclipticPosition:
    longitude: float
    latitude: float
    distance: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── vector helpers ───────────────────────────────────────────────────────────
def _vec(a: Any) -> List[float]:
    return [float(a[0]), float(a[1]), float(a[2])]

def _sub(a: Sequence[float], b: Sequence[float]) -> List[float]:
    return [a[0] - b[0], a[1] - b[1], a[2] - b[2]]

def _norm(a: Sequence[float]) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


# ── heliocentric sources (ICRS/J2000 equatorial, AU) ────────────────────────
def _earth_helio(jd_tt: float) -> List[float]:
    pvh, _pvb = erfa.epv00(jd_tt, 0.0)
    return _vec(pvh["p"])

def _plan94_helio(planet: str, jd_tt: float) -> List[float]:
    pv = erfa.plan94(jd_tt, 0.0, _PLAN94_INDEX[planet])
    return _vec(pv["p"])

def _kepler(M: float, e: float) -> float:
    E = M + e * math.sin(M)
    for _ in range(50):
        dE = (E - e * math.sin(E) - M) / (1.0 - e * math.cos(E))
        E -= dE
        if abs(dE) < 1e-12:
            break
    return E

def _pluto_helio(jd_tt: float) -> List[float]:
    T = (jd_tt - J2000) / 36525.0
    a, e, inc, L, varpi, node = (v0 + v1 * T for v0, v1 in _PLUTO_ELEMENTS)
    inc, node = math.radians(inc), math.radians(node)
    omega = math.radians(varpi) - node
    M = math.radians(wrap_deg(L - varpi))
    E = _kepler(M, e)
    xp = a * (math.cos(E) - e)
    yp = a * math.sqrt(1.0 - e * e) * math.sin(E)

    co, so = math.cos(omega), math.sin(omega)
    cn, sn = math.cos(node), math.sin(node)
    ci, si = math.cos(inc), math.sin(inc)
    x = (co * cn - so * sn * ci) * xp + (-so * cn - co * sn * ci) * yp
    y = (co * sn + so * cn * ci) * xp + (-so * sn + co * cn * ci) * yp
    z = (so * si) * xp + (co * si) * yp
    ce, se = math.cos(_EPS_J2000), math.sin(_EPS_J2000)
    return [x, ce * y - se * z, se * y + ce * z]

def _helio(planet: str, jd_tt: float) -> List[float]:
    if planet == "pluto":
        return _pluto_helio(jd_tt)
    return _plan94_helio(planet, jd_tt)


# ── geocentric assembly ─────────────────────────────────────────────────────
def _geocentric_icrs(planet: str, jd_tt: float, earth: List[float]) -> List[float]:
    if planet == "sun":
        return [-earth[0], -earth[1], -earth[2]]
    if planet == "moon":
        return _vec(erfa.moon98(jd_tt, 0.0)["p"])
    geo = _sub(_helio(planet, jd_tt), earth)
    # one light-time pass is ample at these series' precision
    tau = _norm(geo) * _LIGHT_TIME_DAY_PER_AU
    return _sub(_helio(planet, jd_tt - tau), earth)

def _to_ecliptic_of_date(p_icrs: List[float], rm: Any) -> EclipticPosition:
    p = erfa.rxp(rm, p_icrs)
    theta, phi = erfa.c2s(p)
    r = float(erfa.pm(p))
    lon = wrap_deg(math.degrees(float(theta)))
    lat = clamp(math.degrees(float(phi)), -90.0, 90.0)
    return EclipticPosition(lon, lat, r)

def positions_at(jd_tt: float) -> Dict[str, EclipticPosition]:
    with _warnings.catch_warnings():
        # out-of-range dates are reported by precision_caveats()
        _warnings.simplefilter("ignore", erfa.ErfaWarning)
        earth = _earth_helio(jd_tt)
        rm = erfa.ecm06(jd_tt, 0.0)
        out: Dict[str, EclipticPosition] = {}
        for planet in PLANET_IDS:
            pos = _to_ecliptic_of_date(_geocentric_icrs(planet, jd_tt, earth), rm)
            if planet == "sun":
                pos = replace(pos, longitude=wrap_deg(pos.longitude - _ABERRATION_ARCSEC / 3600.0 / pos.distance))
            out[planet] = pos
    return out

def positions(instant: Instant) -> Dict[str, EclipticPosition]:
    """Total map planet → EclipticPosition for the instant (TT)."""
    return positions_at(instant.jd_tt)


# ── diagnostics / extras ─────────────────────────────────────────────────────
def precision_caveats(instant: Instant) -> List[str]:
    lo, hi = SUPPORTED_YEAR_RANGE
    year = instant.year
    if lo <= year <= hi:
        return []
    log.debug("Ephemeris evaluated outside fitted range: year=%.1f", year)
    return [f"precision_caveat:{int(math.floor(year))}"]

def daily_motion(instant: Instant, step_days: float = 0.5) -> Dict[str, Dict[str, Any]]:
    """Central-difference longitude speed (deg/day) and retrograde flag per planet."""
    before = positions_at(instant.jd_tt - step_days)
    after = positions_at(instant.jd_tt + step_days)
    out: Dict[str, Dict[str, Any]] = {}
    for p in PLANET_IDS:
        speed = delta_deg(before[p].longitude, after[p].longitude) / (2.0 * step_days)
        out[p] = {"speed_deg_per_day": speed, "retrograde": speed < 0.0}
    return out
