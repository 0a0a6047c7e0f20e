# declination_engine/core/dignity.py
# -*- coding: utf-8 -*-
"""
Essential dignity scoring (table driven) with sect.

Public API
----------
sign_position(longitude) -> (sign, degree_in_sign)
sign_rules(planet, sign) -> Tuple[str, ...]           static (planet, sign) facts
planet_rules(planet, longitude, sect, term_system) -> List[str]
score_rules(planet, rules, sign=None, degree=None) -> DignityScore
score_planet(planet, longitude, sect="day", term_system="egyptian") -> DignityScore
score_all(longitudes, sect, term_system="egyptian") -> Dict[planet, DignityScore]
sect_from_sun(sun_equ, lst, latitude) -> "day" | "night"
sect_from_altitude(altitude) -> "day" | "night"
rank_by_dignity(scores) -> List[DignityScore]

Rules and weights
-----------------
domicile +5, exaltation +4, triplicity +3, terms +2, face +1,
detriment −5, fall −4, peregrine −5 (only when no other essential rule
applies), sect +1 in sect / −1 out of sect (neutral planets: no rule).

Display indicator
-----------------
The indicator is the strongest rule present in the order R > E > d > f > '-',
not the sign of the total: a ruling planet shows 'R' even if other rules pull
its total below zero.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from declination_engine.core.constants import PLANET_IDS, ZODIAC_SIGNS, wrap_deg
from declination_engine.core.transform import EquatorialPosition, equatorial_to_horizontal
from declination_engine.core.validators import InputError

__all__ = [
    "RULE_WEIGHTS",
    "SIGN_RULE_TABLE",
    "DignityScore",
    "sign_position",
    "sign_rules",
    "planet_rules",
    "score_rules",
    "score_planet",
    "score_all",
    "sect_from_altitude",
    "sect_from_sun",
    "rank_by_dignity",
]

# ── weights ──────────────────────────────────────────────────────────────────
RULE_WEIGHTS: Dict[str, int] = {
    "domicile": 5,
    "exaltation": 4,
    "triplicity": 3,
    "terms": 2,
    "face": 1,
    "detriment": -5,
    "fall": -4,
    "peregrine": -5,
    "in_sect": 1,
    "out_of_sect": -1,
}

_RULE_LABEL: Dict[str, str] = {
    "domicile": "Domicile",
    "exaltation": "Exaltation",
    "triplicity": "Triplicity",
    "terms": "Terms",
    "face": "Face",
    "detriment": "Detriment",
    "fall": "Fall",
    "peregrine": "Peregrine",
    "in_sect": "In sect",
    "out_of_sect": "Out of sect",
}

_INDICATOR_PRIORITY: Tuple[Tuple[str, str], ...] = (
    ("domicile", "R"),
    ("exaltation", "E"),
    ("detriment", "d"),
    ("fall", "f"),
)

_ESSENTIAL_POSITIVE = frozenset({"domicile", "exaltation", "triplicity", "terms", "face"})

# ── classical tables ─────────────────────────────────────────────────────────
# Modern co-rulers follow the traditional ruler.
_DOMICILE: Dict[str, Tuple[str, ...]] = {
    "aries": ("mars",), "taurus": ("venus",), "gemini": ("mercury",),
    "cancer": ("moon",), "leo": ("sun",), "virgo": ("mercury",),
    "libra": ("venus",), "scorpio": ("mars", "pluto"), "sagittarius": ("jupiter",),
    "capricorn": ("saturn",), "aquarius": ("saturn", "uranus"), "pisces": ("jupiter", "neptune"),
}

_EXALTATION: Dict[str, str] = {
    "sun": "aries", "moon": "taurus", "mercury": "virgo", "venus": "pisces",
    "mars": "capricorn", "jupiter": "cancer", "saturn": "libra",
    "uranus": "scorpio", "neptune": "cancer", "pluto": "leo",
}

_DETRIMENT: Dict[str, Tuple[str, ...]] = {
    "sun": ("aquarius",), "moon": ("capricorn",),
    "mercury": ("sagittarius", "pisces"), "venus": ("aries", "scorpio"),
    "mars": ("taurus", "libra"), "jupiter": ("gemini", "virgo"),
    "saturn": ("cancer", "leo"), "uranus": ("leo",),
    "neptune": ("virgo",), "pluto": ("taurus",),
}

_FALL: Dict[str, str] = {
    "sun": "libra", "moon": "scorpio", "mercury": "pisces", "venus": "virgo",
    "mars": "cancer", "jupiter": "capricorn", "saturn": "aries",
    "uranus": "taurus", "neptune": "capricorn", "pluto": "aquarius",
}

_ELEMENT: Dict[str, str] = {
    "aries": "fire", "leo": "fire", "sagittarius": "fire",
    "taurus": "earth", "virgo": "earth", "capricorn": "earth",
    "gemini": "air", "libra": "air", "aquarius": "air",
    "cancer": "water", "scorpio": "water", "pisces": "water",
}

# Dorothean triplicity rulers: (day, night, participating)
_TRIPLICITY: Dict[str, Tuple[str, str, str]] = {
    "fire": ("sun", "jupiter", "saturn"),
    "earth": ("venus", "moon", "mars"),
    "air": ("saturn", "mercury", "jupiter"),
    "water": ("venus", "mars", "moon"),
}

# Terms (bounds): (ruler, end degree exclusive)
_Terms = Dict[str, Tuple[Tuple[str, int], ...]]

_EGYPTIAN_TERMS: _Terms = {
    "aries": (("jupiter", 6), ("venus", 12), ("mercury", 20), ("mars", 25), ("saturn", 30)),
    "taurus": (("venus", 8), ("mercury", 14), ("jupiter", 22), ("saturn", 27), ("mars", 30)),
    "gemini": (("mercury", 6), ("jupiter", 12), ("venus", 17), ("mars", 24), ("saturn", 30)),
    "cancer": (("mars", 7), ("venus", 13), ("mercury", 19), ("jupiter", 26), ("saturn", 30)),
    "leo": (("jupiter", 6), ("venus", 11), ("saturn", 18), ("mercury", 24), ("mars", 30)),
    "virgo": (("mercury", 7), ("venus", 17), ("jupiter", 21), ("mars", 28), ("saturn", 30)),
    "libra": (("saturn", 6), ("mercury", 14), ("jupiter", 21), ("venus", 28), ("mars", 30)),
    "scorpio": (("mars", 7), ("venus", 11), ("mercury", 19), ("jupiter", 24), ("saturn", 30)),
    "sagittarius": (("jupiter", 12), ("venus", 17), ("mercury", 21), ("saturn", 26), ("mars", 30)),
    "capricorn": (("mercury", 7), ("jupiter", 14), ("venus", 22), ("saturn", 26), ("mars", 30)),
    "aquarius": (("mercury", 7), ("venus", 13), ("jupiter", 20), ("mars", 25), ("saturn", 30)),
    "pisces": (("venus", 12), ("jupiter", 16), ("mercury", 19), ("mars", 28), ("saturn", 30)),
}

_PTOLEMAIC_TERMS: _Terms = {
    "aries": (("jupiter", 6), ("venus", 14), ("mercury", 21), ("mars", 26), ("saturn", 30)),
    "taurus": (("venus", 8), ("mercury", 15), ("jupiter", 22), ("saturn", 26), ("mars", 30)),
    "gemini": (("mercury", 7), ("jupiter", 14), ("venus", 21), ("saturn", 25), ("mars", 30)),
    "cancer": (("mars", 6), ("jupiter", 13), ("mercury", 20), ("venus", 27), ("saturn", 30)),
    "leo": (("saturn", 6), ("mercury", 13), ("venus", 19), ("jupiter", 25), ("mars", 30)),
    "virgo": (("mercury", 7), ("venus", 13), ("jupiter", 18), ("saturn", 24), ("mars", 30)),
    "libra": (("saturn", 6), ("venus", 11), ("jupiter", 19), ("mercury", 24), ("mars", 30)),
    "scorpio": (("mars", 6), ("jupiter", 14), ("venus", 21), ("mercury", 27), ("saturn", 30)),
    "sagittarius": (("jupiter", 8), ("venus", 14), ("mercury", 19), ("saturn", 25), ("mars", 30)),
    "capricorn": (("venus", 6), ("mercury", 12), ("jupiter", 19), ("mars", 25), ("saturn", 30)),
    "aquarius": (("saturn", 6), ("mercury", 12), ("venus", 20), ("jupiter", 25), ("mars", 30)),
    "pisces": (("venus", 8), ("jupiter", 14), ("mercury", 20), ("mars", 26), ("saturn", 30)),
}

TERM_SYSTEMS: Dict[str, _Terms] = {"egyptian": _EGYPTIAN_TERMS, "ptolemaic": _PTOLEMAIC_TERMS}

# Chaldean decans (faces), 10° each
_DECANS: Dict[str, Tuple[str, str, str]] = {
    "aries": ("mars", "sun", "venus"), "taurus": ("mercury", "moon", "saturn"),
    "gemini": ("jupiter", "mars", "sun"), "cancer": ("venus", "mercury", "moon"),
    "leo": ("saturn", "jupiter", "mars"), "virgo": ("sun", "venus", "mercury"),
    "libra": ("moon", "saturn", "jupiter"), "scorpio": ("mars", "sun", "venus"),
    "sagittarius": ("mercury", "moon", "saturn"), "capricorn": ("jupiter", "mars", "sun"),
    "aquarius": ("venus", "mercury", "moon"), "pisces": ("saturn", "jupiter", "mars"),
}

_SECT_OF: Dict[str, Optional[str]] = {
    "sun": "day", "jupiter": "day", "saturn": "day",
    "moon": "night", "venus": "night", "mars": "night",
    "mercury": None, "uranus": None, "neptune": None, "pluto": None,
}


def _build_sign_rule_table() -> Dict[Tuple[str, str], Tuple[str, ...]]:
    table: Dict[Tuple[str, str], Tuple[str, ...]] = {}
    for planet in PLANET_IDS:
        for sign in ZODIAC_SIGNS:
            tags: List[str] = []
            if planet in _DOMICILE[sign]:
                tags.append("domicile")
            if _EXALTATION.get(planet) == sign:
                tags.append("exaltation")
            if sign in _DETRIMENT.get(planet, ()):
                tags.append("detriment")
            if _FALL.get(planet) == sign:
                tags.append("fall")
            table[(planet, sign)] = tuple(tags)
    return table

# (planet, sign) → sign-level rule tags, in rule order
SIGN_RULE_TABLE: Dict[Tuple[str, str], Tuple[str, ...]] = _build_sign_rule_table()


@dataclass(frozen=True)
class DignityScore:
    planet: str
    total: int
    indicator: str
    breakdown: Tuple[str, ...]
    rules: Tuple[str, ...] = ()
    sign: Optional[str] = None
    degree: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["breakdown"] = list(self.breakdown)
        d["rules"] = list(self.rules)
        return d


# ── lookups ──────────────────────────────────────────────────────────────────
def sign_position(longitude: float) -> Tuple[str, float]:
    lon = wrap_deg(longitude)
    idx = min(int(lon // 30.0), 11)
    return ZODIAC_SIGNS[idx], lon - 30.0 * idx

def sign_rules(planet: str, sign: str) -> Tuple[str, ...]:
    return SIGN_RULE_TABLE[(planet, sign)]

def _term_ruler(sign: str, degree: float, term_system: str) -> str:
    terms = TERM_SYSTEMS[term_system][sign]
    for ruler, end in terms:
        if degree < end:
            return ruler
    return terms[-1][0]

def _triplicity_rulers(sign: str, sect: str) -> Tuple[str, str]:
    day, night, participating = _TRIPLICITY[_ELEMENT[sign]]
    return (day if sect == "day" else night), participating

def planet_rules(planet: str, longitude: float, sect: str = "day",
                 term_system: str = "egyptian", apply_sect: bool = True) -> List[str]:
    if planet not in PLANET_IDS:
        raise InputError({"loc": ["planet"], "msg": f"unknown planet {planet!r}", "type": "value_error.planet"})
    if term_system not in TERM_SYSTEMS:
        raise InputError({"loc": ["term_system"], "msg": "term_system must be 'egyptian' or 'ptolemaic'", "type": "value_error"})
    if sect not in ("day", "night"):
        raise InputError({"loc": ["sect"], "msg": "sect must be 'day' or 'night'", "type": "value_error"})

    sign, degree = sign_position(longitude)
    base = sign_rules(planet, sign)
    rules = [t for t in base if t in ("domicile", "exaltation")]
    if planet in _triplicity_rulers(sign, sect):
        rules.append("triplicity")
    if _term_ruler(sign, degree, term_system) == planet:
        rules.append("terms")
    if _DECANS[sign][min(int(degree // 10.0), 2)] == planet:
        rules.append("face")
    rules.extend(t for t in base if t in ("detriment", "fall"))
    if not rules:
        rules.append("peregrine")
    if apply_sect and _SECT_OF[planet] is not None:
        rules.append("in_sect" if _SECT_OF[planet] == sect else "out_of_sect")
    return rules

def _indicator(rules: Iterable[str]) -> str:
    present = set(rules)
    for tag, mark in _INDICATOR_PRIORITY:
        if tag in present:
            return mark
    return "-"

def _describe(tag: str) -> str:
    w = RULE_WEIGHTS[tag]
    return f"{_RULE_LABEL[tag]} ({w:+d})"


# ── scoring ──────────────────────────────────────────────────────────────────
def score_rules(planet: str, rules: Sequence[str], sign: Optional[str] = None,
                degree: Optional[float] = None) -> DignityScore:
    unknown = [r for r in rules if r not in RULE_WEIGHTS]
    if unknown:
        raise InputError({"loc": ["rules"], "msg": f"unknown rules: {unknown}", "type": "value_error"})
    return DignityScore(
        planet=planet,
        total=int(sum(RULE_WEIGHTS[r] for r in rules)),
        indicator=_indicator(rules),
        breakdown=tuple(_describe(r) for r in rules),
        rules=tuple(rules),
        sign=sign,
        degree=degree,
    )

def score_planet(planet: str, longitude: float, sect: str = "day",
                 term_system: str = "egyptian", apply_sect: bool = True) -> DignityScore:
    sign, degree = sign_position(longitude)
    rules = planet_rules(planet, longitude, sect, term_system, apply_sect)
    return score_rules(planet, rules, sign=sign, degree=degree)

def score_all(longitudes: Mapping[str, Any], sect: str = "day",
              term_system: str = "egyptian", apply_sect: bool = True) -> Dict[str, DignityScore]:
    """`longitudes` maps planet → degrees (or anything with a .longitude)."""
    out: Dict[str, DignityScore] = {}
    for p in PLANET_IDS:
        v = longitudes[p]
        out[p] = score_planet(p, float(getattr(v, "longitude", v)), sect, term_system, apply_sect)
    return out

def rank_by_dignity(scores: Mapping[str, DignityScore]) -> List[DignityScore]:
    return sorted(scores.values(), key=lambda s: (-s.total, PLANET_IDS.index(s.planet)))


# ── sect ─────────────────────────────────────────────────────────────────────
def sect_from_altitude(altitude: float) -> str:
    return "day" if altitude >= 0.0 else "night"

def sect_from_sun(sun: EquatorialPosition, lst: float, latitude: float) -> str:
    """Day when the Sun is on or above the local horizon at the birth instant."""
    alt, _az = equatorial_to_horizontal(sun.right_ascension, sun.declination, latitude, lst)
    return sect_from_altitude(alt)
