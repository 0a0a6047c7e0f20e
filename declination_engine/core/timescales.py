# declination_engine/core/timescales.py
# -----------------------------------------------------------------------------
# Instant builder (ERFA aligned; no POSIX timestamp math for JDs)
#
# Public API:
#   build_instant(date_str, time_str, tz_name, dut1_seconds=0.0) -> Instant
#   instant_from_jd(jd_ut, delta_t=None) -> Instant
#   estimate_delta_t(year) -> seconds
#   julian_centuries(jd) -> T since J2000.0
#
# Guarantees:
#   • Local civil time → UTC via zoneinfo; DST ambiguity / gaps flagged.
#   • JD(UTC) from the proleptic Gregorian calendar via erfa.cal2jd.
#   • UT1 = UTC + DUT1; DUT1 must be within ±0.9 s (IERS).
#   • ΔT = 32.184 s + ΔAT (erfa.dat) − DUT1 while ERFA's leap-second table
#     covers the year; otherwise the Espenak–Meeus polynomial, flagged
#     "delta_t_estimated".
#   • Malformed input raises InputError; nothing else is raised.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo
import logging
import math
import warnings as _warnings

import erfa  # pyERFA

from declination_engine.core.validators import (
    InputError,
    parse_date,
    parse_time_str,
    parse_timezone,
)

log = logging.getLogger(__name__)

__all__ = [
    "Instant",
    "build_instant",
    "instant_from_jd",
    "estimate_delta_t",
    "julian_centuries",
    "J2000",
]

J2000: float = 2451545.0
TT_MINUS_TAI: float = 32.184

# ───────────────────────────── Dataclass ─────────────────────────────

@dataclass(frozen=True)
class Instant:
    jd_ut: float           # UT1
    jd_utc: float
    jd_tt: float
    delta_t: float         # TT − UT1 [s]
    dut1: float            # UT1 − UTC [s]
    tz_offset_seconds: int
    timezone: str
    utc_iso: str
    warnings: Tuple[str, ...] = ()

    @property
    def year(self) -> float:
        """Decimal Julian year of the instant (TT)."""
        return 2000.0 + (self.jd_tt - J2000) / 365.25

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["warnings"] = list(self.warnings)
        return d

# ───────────────────────────── ΔT ─────────────────────────────

def julian_centuries(jd: float) -> float:
    return (jd - J2000) / 36525.0

def estimate_delta_t(year: float) -> float:
    """
    TT − UT1 in seconds from the Espenak–Meeus polynomials (NASA eclipse
    canon). Used only where ERFA has no leap-second data for the year.
    """
    y = float(year)
    if 1800.0 <= y < 1860.0:
        t = y - 1800.0
        return (13.72 - 0.332447 * t + 0.0068612 * t**2 + 0.0041116 * t**3
                - 0.00037436 * t**4 + 0.0000121272 * t**5
                - 0.0000001699 * t**6 + 0.000000000875 * t**7)
    if 1860.0 <= y < 1900.0:
        t = y - 1860.0
        return (7.62 + 0.5737 * t - 0.251754 * t**2 + 0.01680668 * t**3
                - 0.0004473624 * t**4 + t**5 / 233174.0)
    if 1900.0 <= y < 1920.0:
        t = y - 1900.0
        return -2.79 + 1.494119 * t - 0.0598939 * t**2 + 0.0061966 * t**3 - 0.000197 * t**4
    if 1920.0 <= y < 1941.0:
        t = y - 1920.0
        return 21.20 + 0.84493 * t - 0.076100 * t**2 + 0.0020936 * t**3
    if 1941.0 <= y < 1961.0:
        t = y - 1950.0
        return 29.07 + 0.407 * t - t**2 / 233.0 + t**3 / 2547.0
    if 1961.0 <= y < 1986.0:
        t = y - 1975.0
        return 45.45 + 1.067 * t - t**2 / 260.0 - t**3 / 718.0
    if 1986.0 <= y < 2005.0:
        t = y - 2000.0
        return (63.86 + 0.3345 * t - 0.060374 * t**2 + 0.0017275 * t**3
                + 0.000651814 * t**4 + 0.00002373599 * t**5)
    if 2005.0 <= y < 2050.0:
        t = y - 2000.0
        return 62.92 + 0.32217 * t + 0.005589 * t**2
    u = (y - 1820.0) / 100.0
    if 2050.0 <= y < 2150.0:
        return -20.0 + 32.0 * u * u - 0.5628 * (2150.0 - y)
    return -20.0 + 32.0 * u * u

def _delta_t_seconds(utc: datetime, dut1: float, ws: List[str]) -> float:
    fd = (utc.hour * 3600 + utc.minute * 60 + utc.second + utc.microsecond / 1e6) / 86400.0
    with _warnings.catch_warnings():
        # "dubious year" means ERFA has no table entry: estimate instead
        _warnings.simplefilter("error", erfa.ErfaWarning)
        try:
            dat = float(erfa.dat(utc.year, utc.month, utc.day, fd))
            return TT_MINUS_TAI + dat - dut1
        except erfa.ErfaWarning:
            pass
    year = utc.year + (utc.timetuple().tm_yday - 1 + fd) / 365.25
    if "delta_t_estimated" not in ws:
        ws.append("delta_t_estimated")
    log.debug("ΔT estimated for year %.3f", year)
    return estimate_delta_t(year)

# ───────────────────────────── Time zone / UTC helpers ─────────────────────────────

def _fold_offsets(z: ZoneInfo, naive_local: datetime) -> Tuple[int, List[str]]:
    """
    Compute tz offset seconds for a naive local datetime.
    Ambiguous (repeated) wall times prefer fold=0 and warn; non-existent
    wall times are resolved forward by the pre-transition offset and warn.
    """
    ws: List[str] = []
    aware0 = naive_local.replace(tzinfo=z, fold=0)
    off0 = aware0.utcoffset()
    if off0 is None:
        raise InputError({"loc": ["timezone"], "msg": "timezone returned no UTC offset", "type": "value_error.tz"})
    off1 = naive_local.replace(tzinfo=z, fold=1).utcoffset()
    if off1 is not None and off1 != off0:
        back = aware0.astimezone(timezone.utc).astimezone(z).replace(tzinfo=None)
        ws.append("dst_ambiguous" if back == naive_local else "dst_nonexistent")
    return int(off0.total_seconds()), ws

def _jd_from_utc(utc: datetime) -> float:
    try:
        djm0, djm = erfa.cal2jd(utc.year, utc.month, utc.day)
    except erfa.ErfaError as e:
        raise InputError({"loc": ["birthDate"], "msg": f"calendar conversion failed: {e}", "type": "value_error.date"}) from e
    fd = (utc.hour * 3600 + utc.minute * 60 + utc.second + utc.microsecond / 1e6) / 86400.0
    return math.fsum((float(djm0), float(djm), fd))

# ───────────────────────────── Public API ─────────────────────────────

def build_instant(
    date_str: str,
    time_str: str,
    tz_name: str,
    dut1_seconds: float = 0.0,
) -> Instant:
    """Resolve a local civil birth moment into the Instant every solver keys on."""
    if isinstance(dut1_seconds, bool) or not isinstance(dut1_seconds, (int, float)):
        raise InputError({"loc": ["dut1"], "msg": "dut1 must be a number (seconds)", "type": "type_error.float"})
    if abs(dut1_seconds) > 0.9 + 1e-12:
        raise InputError({"loc": ["dut1"], "msg": f"dut1 out of range (|DUT1| ≤ 0.9 s): {dut1_seconds}", "type": "value_error.dut1"})

    d = parse_date(date_str)
    hh, mm, ss = parse_time_str(time_str)
    z = parse_timezone(tz_name)

    ws: List[str] = []
    naive = datetime(d.year, d.month, d.day, hh, mm, ss)
    tz_off, wz = _fold_offsets(z, naive)
    ws.extend(wz)
    try:
        utc = naive.replace(tzinfo=z, fold=0).astimezone(timezone.utc)
    except OverflowError as e:
        raise InputError({"loc": ["birthDate"], "msg": "date out of supported range", "type": "value_error.date"}) from e

    jd_utc = _jd_from_utc(utc)
    jd_ut = jd_utc + float(dut1_seconds) / 86400.0
    delta_t = _delta_t_seconds(utc, float(dut1_seconds), ws)
    jd_tt = jd_ut + delta_t / 86400.0

    return Instant(
        jd_ut=float(jd_ut),
        jd_utc=float(jd_utc),
        jd_tt=float(jd_tt),
        delta_t=float(delta_t),
        dut1=float(dut1_seconds),
        tz_offset_seconds=int(tz_off),
        timezone=str(tz_name).strip(),
        utc_iso=utc.strftime("%Y-%m-%dT%H:%M:%SZ"),
        warnings=tuple(ws),
    )

def instant_from_jd(jd_ut: float, delta_t: Optional[float] = None) -> Instant:
    """Build an Instant directly from JD(UT1); ΔT defaults to the polynomial estimate."""
    year = 2000.0 + (float(jd_ut) - J2000) / 365.25
    ws: Tuple[str, ...] = ()
    if delta_t is None:
        delta_t = estimate_delta_t(year)
        ws = ("delta_t_estimated",)
    iy, im, iday, fd = erfa.jd2cal(float(jd_ut), 0.0)
    secs = int(round(float(fd) * 86400.0))
    hh, rem = divmod(min(secs, 86399), 3600)
    mi, se = divmod(rem, 60)
    return Instant(
        jd_ut=float(jd_ut),
        jd_utc=float(jd_ut),
        jd_tt=float(jd_ut) + float(delta_t) / 86400.0,
        delta_t=float(delta_t),
        dut1=0.0,
        tz_offset_seconds=0,
        timezone="UTC",
        utc_iso="%04d-%02d-%02dT%02d:%02d:%02dZ" % (int(iy), int(im), int(iday), hh, mi, se),
        warnings=ws,
    )
