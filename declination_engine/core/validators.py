# declination_engine/core/validators.py
from __future__ import annotations

import math
import re
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Tuple, TypedDict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from declination_engine.core.constants import (
    PLANET_IDS,
    DEFAULT_DECLINATION_ORB,
    MAX_DECLINATION_ORB,
)

# ───────────────────────── errors ─────────────────────────

class InputError(ValueError):
    """Malformed caller input. Carries structured details via .errors()."""
    def __init__(self, details: str | Dict[str, Any] | List[Dict[str, Any]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "input_error"))
        elif isinstance(details, list):
            self._details = details
            super().__init__(self._details[0]["msg"] if self._details else "input_error")
        else:
            self._details = [{"loc": [], "msg": "input_error", "type": "value_error"}]
            super().__init__("input_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[Any] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(x):
        return None
    return x


# ───────────────────────── atomic parsers ─────────────────────────

_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?\s*$")

def parse_date(s: Any, loc: str = "date") -> date:
    if not isinstance(s, str):
        raise InputError(_err(loc, "required string 'YYYY-MM-DD'", "type_error.str"))
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise InputError(_err(loc, "date must be 'YYYY-MM-DD'", "value_error.date"))

def parse_time_str(s: Any, loc: str = "time") -> Tuple[int, int, int]:
    """Accept 'HH:MM' or 'HH:MM:SS'; return (hour, minute, second)."""
    if not isinstance(s, str):
        raise InputError(_err(loc, "required string 'HH:MM'", "type_error.str"))
    m = _TIME_RE.match(s)
    if not m:
        raise InputError(_err(loc, "time must be 'HH:MM' or 'HH:MM:SS'", "value_error.time"))
    hh = int(m.group("h")); mm = int(m.group("m")); ss = int(m.group("s") or 0)
    if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0 <= ss <= 59):
        raise InputError(_err(loc, "time fields out of range", "value_error.time"))
    return hh, mm, ss

def parse_timezone(tz: Any, loc: str = "timezone") -> ZoneInfo:
    if not isinstance(tz, str) or not tz.strip():
        raise InputError(_err(loc, "required string (IANA zone)", "type_error.str"))
    try:
        return ZoneInfo(tz.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise InputError(_err(loc, "must be a valid IANA zone like 'America/New_York'", "value_error.tz"))

def parse_latlon(lat: Any, lon: Any, lat_key="latitude", lon_key="longitude") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise InputError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    if not (-90.0 <= lat_f <= 90.0):
        raise InputError(_err(lat_key, "latitude must be between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise InputError(_err(lon_key, "longitude must be between -180 and 180"))
    return float(lat_f), float(lon_f)

def parse_orb(val: Any, default: float = DEFAULT_DECLINATION_ORB, loc: str = "orb") -> float:
    """Orb policy: reject (never clamp) non-positive or over-wide orbs."""
    if val is None:
        return float(default)
    x = _as_float(val)
    if x is None:
        raise InputError(_err(loc, "orb must be a finite number (degrees)", "type_error.float"))
    if x <= 0.0:
        raise InputError(_err(loc, "orb must be positive", "value_error.orb"))
    if x > MAX_DECLINATION_ORB:
        raise InputError(_err(loc, f"orb must not exceed {MAX_DECLINATION_ORB:g} degrees", "value_error.orb"))
    return x

def parse_weights(val: Any, defaults: Optional[Dict[str, float]] = None, loc: str = "weights") -> Dict[str, float]:
    """
    Return a weight map total over PLANET_IDS. Planets the caller omits keep
    their default; unknown planets and negative/non-finite weights are rejected.
    """
    base = {p: float((defaults or {}).get(p, 1.0)) for p in PLANET_IDS}
    if val is None:
        return base
    if not isinstance(val, dict):
        raise InputError(_err(loc, "weights must be an object of planet -> number", "type_error.dict"))
    errs: List[Dict[str, Any]] = []
    for k, v in val.items():
        key = str(k).strip().lower()
        if key not in base:
            errs.append(_err([loc, str(k)], "unknown planet", "value_error.planet"))
            continue
        x = _as_float(v)
        if x is None:
            errs.append(_err([loc, str(k)], "weight must be a finite number", "type_error.float"))
        elif x < 0.0:
            errs.append(_err([loc, str(k)], "weight must be non-negative", "value_error.negative"))
        else:
            base[key] = x
    if errs:
        raise InputError(errs)
    return base

def parse_cities(val: Any, loc: str = "cities") -> List[Dict[str, Any]]:
    """Normalize externally supplied city candidates ({id, latitude, longitude, population, tier})."""
    if not isinstance(val, list):
        raise InputError(_err(loc, "cities must be an array", "type_error.list"))
    out: List[Dict[str, Any]] = []
    for i, c in enumerate(val):
        if not isinstance(c, dict):
            raise InputError(_err([loc, i], "city must be an object", "type_error.dict"))
        cid = c.get("id")
        if cid is None or (isinstance(cid, str) and not cid.strip()):
            raise InputError(_err([loc, i, "id"], "required", "value_error"))
        lat, lon = parse_latlon(c.get("latitude"), c.get("longitude"),
                                lat_key=f"{loc}[{i}].latitude", lon_key=f"{loc}[{i}].longitude")
        pop = _as_float(c["population"]) if c.get("population") is not None else 0.0
        if pop is None or pop < 0:
            raise InputError(_err([loc, i, "population"], "population must be a non-negative number"))
        tier = c.get("tier")
        out.append({
            "id": str(cid),
            "name": str(c.get("name") or cid),
            "country": str(c["country"]) if c.get("country") is not None else None,
            "latitude": lat,
            "longitude": lon,
            "population": int(pop),
            "tier": str(tier).strip().lower() if tier is not None else None,
        })
    return out


# ───────────────────────── request payload ─────────────────────────

class BirthPayload(TypedDict, total=False):
    date: str
    time: str           # canonical 'HH:MM:SS'
    timezone: str
    latitude: Optional[float]
    longitude: Optional[float]
    orb: float
    weights: Dict[str, float]
    dut1: float

def parse_birth_payload(
    body: Dict[str, Any],
    *,
    default_orb: float = DEFAULT_DECLINATION_ORB,
    default_weights: Optional[Dict[str, float]] = None,
) -> BirthPayload:
    """
    Normalize {birthDate, birthTime, timezone} (+ optional latitude/longitude,
    orb, weights, dut1). 'date'/'time'/'tz' are accepted as aliases.
    All field errors are collected before raising.
    """
    if not isinstance(body, dict):
        raise InputError("payload must be an object")

    errs: List[Dict[str, Any]] = []
    out: BirthPayload = {}

    date_s = body.get("birthDate", body.get("date"))
    time_s = body.get("birthTime", body.get("time"))
    tz_s = body.get("timezone", body.get("tz"))

    for parse, raw, key in (
        (parse_date, date_s, "birthDate"),
        (parse_time_str, time_s, "birthTime"),
        (parse_timezone, tz_s, "timezone"),
    ):
        try:
            parsed = parse(raw, key)
        except InputError as e:
            errs.extend(e.errors())
            continue
        if key == "birthDate":
            out["date"] = parsed.strftime("%Y-%m-%d")
        elif key == "birthTime":
            out["time"] = "%02d:%02d:%02d" % parsed
        else:
            out["timezone"] = tz_s.strip()

    lat = body.get("latitude", body.get("lat"))
    lon = body.get("longitude", body.get("lon"))
    if lat is not None or lon is not None:
        try:
            out["latitude"], out["longitude"] = parse_latlon(lat, lon)
        except InputError as e:
            errs.extend(e.errors())
    else:
        out["latitude"] = out["longitude"] = None

    try:
        out["orb"] = parse_orb(body.get("orb"), default_orb)
    except InputError as e:
        errs.extend(e.errors())

    try:
        out["weights"] = parse_weights(body.get("weights"), default_weights)
    except InputError as e:
        errs.extend(e.errors())

    dut1 = body.get("dut1", 0.0)
    dut1_f = _as_float(dut1)
    if dut1_f is None or abs(dut1_f) > 0.9:
        errs.append(_err("dut1", "dut1 must be a number within ±0.9 s", "value_error.dut1"))
    else:
        out["dut1"] = dut1_f

    if errs:
        raise InputError(errs)
    return out


__all__ = [
    "InputError",
    "parse_date",
    "parse_time_str",
    "parse_timezone",
    "parse_latlon",
    "parse_orb",
    "parse_weights",
    "parse_cities",
    "parse_birth_payload",
    "BirthPayload",
]
