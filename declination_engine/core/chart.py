# declination_engine/core/chart.py
# -*- coding: utf-8 -*-
"""
Chart orchestration: one birth payload → every declination-geometry family.

Public API
----------
prepare(payload) -> ChartContext
compute_declination_chart(payload, families=ALL_FAMILIES, executor=None, **options) -> Dict
scoring_inputs(ctx, weights, orb=..., parans=None, executor=None, acg_sampling=None) -> ScoringInputs

Warnings are strings collected along the way (ΔT fallback, DST folds,
precision caveats, high-latitude parans, assumed sect); none of them abort.
"""

from __future__ import annotations
from concurrent.futures import Executor
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from declination_engine.core import acg as _acg
from declination_engine.core import dignity as _dignity
from declination_engine.core import oob as _oob
from declination_engine.core import zenith as _zenith
from declination_engine.core.constants import (
    DEFAULT_DECLINATION_ORB,
    PARAN_STRENGTH_THRESHOLD,
    PLANET_IDS,
)
from declination_engine.core.ephemeris import EclipticPosition, daily_motion, positions, precision_caveats
from declination_engine.core.geospatial import ScoringInputs
from declination_engine.core.paran import ParanResult, find_all_parans
from declination_engine.core.timescales import Instant, build_instant
from declination_engine.core.transform import (
    EquatorialPosition,
    equatorial_positions,
    gmst,
    local_sidereal_time,
    obliquity,
)
from declination_engine.core.validators import BirthPayload, InputError

log = logging.getLogger(__name__)

ALL_FAMILIES: Tuple[str, ...] = ("acg", "zenith", "parans", "dignities", "oob")


@dataclass(frozen=True)
class ChartContext:
    instant: Instant
    ecliptic: Dict[str, EclipticPosition]
    equatorial: Dict[str, EquatorialPosition]
    obliquity: float
    gmst_deg: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def declinations(self) -> Dict[str, float]:
        return {p: self.equatorial[p].declination for p in PLANET_IDS}

    def positions_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            p: {
                "longitude": self.ecliptic[p].longitude,
                "latitude": self.ecliptic[p].latitude,
                "distance_au": self.ecliptic[p].distance,
                "right_ascension": self.equatorial[p].right_ascension,
                "declination": self.equatorial[p].declination,
            }
            for p in PLANET_IDS
        }


def prepare(payload: BirthPayload) -> ChartContext:
    """Instant + positions in both frames; the shared input of every solver."""
    for key in ("date", "time", "timezone"):
        if key not in payload:
            raise InputError({"loc": [key], "msg": "required", "type": "value_error.missing"})
    inst = build_instant(payload["date"], payload["time"], payload["timezone"], payload.get("dut1", 0.0))
    ecl = positions(inst)
    equ = equatorial_positions(inst, ecl)
    ws: List[str] = list(inst.warnings) + precision_caveats(inst)
    return ChartContext(
        instant=inst,
        ecliptic=ecl,
        equatorial=equ,
        obliquity=obliquity(inst),
        gmst_deg=gmst(inst.jd_ut),
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        warnings=tuple(ws),
    )


def birth_sect(ctx: ChartContext) -> Tuple[str, List[str]]:
    """Sect from the Sun's altitude at the birthplace; day when no place was given."""
    if ctx.latitude is None or ctx.longitude is None:
        return "day", ["sect_assumed_day"]
    lst = local_sidereal_time(ctx.instant, ctx.longitude)
    return _dignity.sect_from_sun(ctx.equatorial["sun"], lst, ctx.latitude), []


def run_parans(ctx: ChartContext, threshold: float = PARAN_STRENGTH_THRESHOLD,
               executor: Optional[Executor] = None) -> ParanResult:
    return find_all_parans(ctx.equatorial, threshold, executor=executor)


def scoring_inputs(
    ctx: ChartContext,
    weights: Mapping[str, float],
    *,
    orb: float = DEFAULT_DECLINATION_ORB,
    parans: Optional[ParanResult] = None,
    executor: Optional[Executor] = None,
    acg_sampling: Optional[Mapping[str, float]] = None,
    **orbs: float,
) -> ScoringInputs:
    if parans is None:
        parans = run_parans(ctx, executor=executor)
    return ScoringInputs(
        zenith_lines=tuple(_zenith.zenith_lines(ctx.equatorial, orb)),
        acg_lines=tuple(_acg.all_lines(ctx.equatorial, ctx.gmst_deg, **dict(acg_sampling or {}))),
        parans=parans.parans,
        weights=dict(weights),
        **orbs,
    )


def compute_declination_chart(
    payload: BirthPayload,
    families: Sequence[str] = ALL_FAMILIES,
    *,
    executor: Optional[Executor] = None,
    paran_threshold: float = PARAN_STRENGTH_THRESHOLD,
    term_system: str = "egyptian",
    acg_sampling: Optional[Mapping[str, float]] = None,
) -> Dict[str, Any]:
    unknown = [f for f in families if f not in ALL_FAMILIES]
    if unknown:
        raise InputError({"loc": ["families"], "msg": f"unknown families: {unknown}", "type": "value_error"})

    t0 = perf_counter()
    ctx = prepare(payload)
    warnings: List[str] = list(ctx.warnings)
    out: Dict[str, Any] = {
        "timescales": ctx.instant.to_dict(),
        "obliquity_deg": ctx.obliquity,
        "gmst_deg": ctx.gmst_deg,
        "positions": ctx.positions_dict(),
        "motion": daily_motion(ctx.instant),
    }

    if "acg" in families:
        out["acg"] = _acg.compute_acg(ctx.equatorial, ctx.gmst_deg, **dict(acg_sampling or {}))

    if "zenith" in families:
        lines = _zenith.zenith_lines(ctx.equatorial, payload.get("orb", DEFAULT_DECLINATION_ORB))
        out["zenith"] = {
            "orb": payload.get("orb", DEFAULT_DECLINATION_ORB),
            "lines": [ln.to_dict() for ln in lines],
            "bands": _zenith.zenith_bands(lines, payload.get("weights") or {}),
            "overlaps": _zenith.find_zenith_overlaps(lines, payload.get("weights")),
        }

    if "parans" in families:
        pr = run_parans(ctx, paran_threshold, executor)
        warnings.extend(w for w in pr.warnings if w not in warnings)
        out["parans"] = pr.to_dict()

    if "dignities" in families:
        sect, sw = birth_sect(ctx)
        warnings.extend(sw)
        scores = _dignity.score_all(ctx.ecliptic, sect, term_system)
        out["dignities"] = {
            "sect": sect,
            "term_system": term_system,
            "planets": {p: scores[p].to_dict() for p in PLANET_IDS},
        }

    if "oob" in families:
        statuses = _oob.check_all(ctx.equatorial, ctx.obliquity)
        out["oob"] = {
            "obliquity_deg": ctx.obliquity,
            "planets": {p: statuses[p].to_dict() for p in PLANET_IDS},
            "out_of_bounds": [s.planet for s in _oob.oob_planets(statuses)],
        }

    out["warnings"] = warnings
    log.debug("chart %s families=%s in %.3fs", ctx.instant.utc_iso, list(families), perf_counter() - t0)
    return out
