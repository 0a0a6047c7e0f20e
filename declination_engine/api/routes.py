# declination_engine/api/routes.py
"""
Declination engine: API routes

- Timescales / positions
- ACG lines, zenith bands, parans, dignities (singly or all via /api/chart)
- Geospatial scoring grid and city ranking
- Ops: /api/health, /api/config

Notes:
- Every solver route takes the same birth payload
  {birthDate, birthTime, timezone, latitude?, longitude?, orb?, weights?, dut1?}.
- Results are memoised in a process-local LRU keyed by the normalised payload;
  the core is deterministic so a hit is byte-identical to a recompute.
- Grid/ranking may fan rows out over a thread pool (config grid.workers).
"""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from flask import Blueprint, current_app, jsonify, request

from declination_engine.version import VERSION
from declination_engine.utils.cache import LRUCache, content_key
from declination_engine.utils.config import load_config
from declination_engine.utils.ratelimit import rate_limit
from declination_engine.core import acg as _acg
from declination_engine.core import dignity as _dignity
from declination_engine.core import zenith as _zenith
from declination_engine.core.chart import (
    ALL_FAMILIES,
    birth_sect,
    compute_declination_chart,
    prepare,
    run_parans,
    scoring_inputs,
)
from declination_engine.core.geospatial import (
    City,
    grid_axes,
    grid_statistics,
    group_by_country,
    high_scoring_bands,
    rank_cities,
    ranking_summary,
    score_grid,
    top_cells,
)
from declination_engine.core.paran import paran_statistics, parans_near_latitude
from declination_engine.core.timescales import build_instant
from declination_engine.core.validators import (
    InputError,
    parse_birth_payload,
    parse_cities,
)

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)

_RL = lambda k, d: int(os.getenv(k, str(d)))
RL_LIGHT = _RL("ASTRO_RL_LIGHT_PER_MIN", 60)
RL_SOLVER = _RL("ASTRO_RL_SOLVER_PER_MIN", 24)
RL_GRID = _RL("ASTRO_RL_GRID_PER_MIN", 12)

_CACHE: Optional[LRUCache] = None


# ───────────────────────── helpers ─────────────────────────
def _json_error(code: str, details: Any = None, http: int = 400):
    out: Dict[str, Any] = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    return jsonify(out), http


def _cfg():
    cfg = current_app.config.get("ENGINE_CONFIG")
    if cfg is None:
        cfg = current_app.config["ENGINE_CONFIG"] = load_config()
    return cfg


def _cache() -> LRUCache:
    global _CACHE
    if _CACHE is None:
        _CACHE = LRUCache(int(_cfg().cache.capacity))
    return _CACHE


def reset_cache() -> None:
    global _CACHE
    _CACHE = None


def _body() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise InputError("JSON body must be an object")
    return data


def _payload(body: Dict[str, Any]):
    cfg = _cfg()
    return parse_birth_payload(body, default_orb=float(cfg.orb), default_weights=dict(cfg.weights))


def _opt_float(body: Dict[str, Any], key: str, default: float, lo: float, hi: float) -> float:
    raw = body.get(key)
    if raw is None:
        return float(default)
    try:
        x = float(raw)
    except (TypeError, ValueError):
        x = math.nan
    if isinstance(raw, bool) or not math.isfinite(x) or not (lo <= x <= hi):
        raise InputError({"loc": [key], "msg": f"{key} must be a number in [{lo:g}, {hi:g}]", "type": "value_error"})
    return x


def _memo(kind: str, key_parts: List[Any], compute):
    key = content_key(kind, *key_parts)
    cached = _cache().get(key)
    if cached is not None:
        return cached, True
    result = compute()
    _cache().set(key, result)
    return result, False


@contextmanager
def _executor() -> Iterator[Optional[ThreadPoolExecutor]]:
    workers = int(_cfg().grid.workers)
    if workers <= 1:
        yield None
        return
    with ThreadPoolExecutor(max_workers=workers) as ex:
        yield ex


def _grid_cost(req) -> float:
    """Grid requests cost one token per 1000 cells (min 1)."""
    body = req.get_json(silent=True) or {}
    res = body.get("resolution") if isinstance(body, dict) else None
    try:
        if isinstance(res, (int, float)) and not isinstance(res, bool):
            lat_step = lon_step = float(res)
        elif isinstance(res, (list, tuple)) and len(res) == 2:
            lat_step, lon_step = float(res[0]), float(res[1])
        else:
            return 1.0
        cells = (170.0 / lat_step + 1) * (360.0 / lon_step + 1)
    except (TypeError, ValueError, ZeroDivisionError):
        return 1.0
    return max(1.0, cells / 1000.0)


def _ok(result: Dict[str, Any], cached: bool):
    return jsonify({"ok": True, **result, "meta": {**result.get("meta", {}), "cached": cached}}), 200


# ───────────────────────── ops ─────────────────────────
@api.get("/api/health")
def health():
    return jsonify({"ok": True, "status": "up", "version": VERSION}), 200


@api.get("/api/config")
@rate_limit(RL_LIGHT)
def config_info():
    cfg = _cfg()
    return jsonify({
        "ok": True,
        "version": VERSION,
        "config_path": os.environ.get("ASTRO_CONFIG", "config/defaults.yaml"),
        "config": cfg,
        "families": list(ALL_FAMILIES),
        "cache": _cache().stats(),
    }), 200


# ───────────────────────── timescales / positions ─────────────────────────
@api.post("/api/timescales")
@rate_limit(RL_LIGHT)
def timescales_endpoint():
    try:
        p = _payload(_body())
        inst = build_instant(p["date"], p["time"], p["timezone"], p.get("dut1", 0.0))
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return jsonify({"ok": True, "timescales": inst.to_dict()}), 200


@api.post("/api/positions")
@rate_limit(RL_LIGHT)
def positions_endpoint():
    try:
        p = _payload(_body())

        def compute():
            ctx = prepare(p)
            return {
                "timescales": ctx.instant.to_dict(),
                "obliquity_deg": ctx.obliquity,
                "gmst_deg": ctx.gmst_deg,
                "positions": ctx.positions_dict(),
                "warnings": list(ctx.warnings),
            }

        result, hit = _memo("positions", [p], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


# ───────────────────────── solver families ─────────────────────────
@api.post("/api/acg")
@rate_limit(RL_SOLVER)
def acg_endpoint():
    try:
        body = _body()
        p = _payload(body)
        sampling = dict(_cfg().acg)

        def compute():
            ctx = prepare(p)
            out = _acg.compute_acg(ctx.equatorial, ctx.gmst_deg, **sampling)
            if ctx.latitude is not None:
                lines = _acg.all_lines(ctx.equatorial, ctx.gmst_deg, **sampling)
                out["near_location"] = _acg.lines_near_location(ctx.latitude, ctx.longitude, lines)
            out["warnings"] = list(ctx.warnings)
            return out

        result, hit = _memo("acg", [p, sampling], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


@api.post("/api/zenith")
@rate_limit(RL_SOLVER)
def zenith_endpoint():
    try:
        p = _payload(_body())

        def compute():
            ctx = prepare(p)
            lines = _zenith.zenith_lines(ctx.equatorial, p["orb"])
            out = {
                "orb": p["orb"],
                "lines": [ln.to_dict() for ln in lines],
                "bands": _zenith.zenith_bands(lines, p["weights"]),
                "overlaps": _zenith.find_zenith_overlaps(lines, p["weights"]),
                "warnings": list(ctx.warnings),
            }
            if ctx.latitude is not None:
                out["at_location"] = _zenith.score_latitude(ctx.latitude, lines, p["weights"])
            return out

        result, hit = _memo("zenith", [p], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


@api.post("/api/parans")
@rate_limit(RL_SOLVER)
def parans_endpoint():
    try:
        body = _body()
        p = _payload(body)
        threshold = _opt_float(body, "threshold", _cfg().parans.strength_threshold, 0.0, 1.0)

        def compute():
            ctx = prepare(p)
            with _executor() as ex:
                pr = run_parans(ctx, threshold, ex)
            out = pr.to_dict()
            out["statistics"] = paran_statistics(pr.parans)
            if ctx.latitude is not None:
                out["near_location"] = [x.to_dict() for x in parans_near_latitude(pr.parans, ctx.latitude)]
            out["warnings"] = list(ctx.warnings) + list(pr.warnings)
            return out

        result, hit = _memo("parans", [p, threshold], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


@api.post("/api/dignities")
@rate_limit(RL_SOLVER)
def dignities_endpoint():
    try:
        body = _body()
        p = _payload(body)
        term_system = str(body.get("termSystem") or _cfg().dignity.term_system).lower()
        sect_in = body.get("sect")

        def compute():
            ctx = prepare(p)
            warnings = list(ctx.warnings)
            if sect_in is not None:
                sect = str(sect_in).lower()
            else:
                sect, sw = birth_sect(ctx)
                warnings.extend(sw)
            scores = _dignity.score_all(ctx.ecliptic, sect, term_system)
            return {
                "sect": sect,
                "term_system": term_system,
                "planets": {k: v.to_dict() for k, v in scores.items()},
                "ranking": [s.planet for s in _dignity.rank_by_dignity(scores)],
                "warnings": warnings,
            }

        result, hit = _memo("dignities", [p, term_system, sect_in], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


@api.post("/api/chart")
@rate_limit(RL_SOLVER)
def chart_endpoint():
    try:
        body = _body()
        p = _payload(body)
        cfg = _cfg()
        families = body.get("families") or list(ALL_FAMILIES)
        if not isinstance(families, list):
            raise InputError({"loc": ["families"], "msg": "families must be an array", "type": "type_error.list"})
        families = [str(f).lower() for f in families]

        def compute():
            with _executor() as ex:
                return compute_declination_chart(
                    p, families,
                    executor=ex,
                    paran_threshold=float(cfg.parans.strength_threshold),
                    term_system=str(cfg.dignity.term_system),
                    acg_sampling=dict(cfg.acg),
                )

        result, hit = _memo("chart", [p, families, cfg.acg, cfg.parans, cfg.dignity], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


# ───────────────────────── geospatial ─────────────────────────
@api.post("/api/grid")
@rate_limit(RL_GRID, cost_fn=_grid_cost)
def grid_endpoint():
    try:
        body = _body()
        p = _payload(body)
        gcfg = _cfg().grid
        resolution = body.get("resolution", list(gcfg.resolution))
        bounds = body.get("bounds") or dict(gcfg.bounds)
        if not isinstance(bounds, dict):
            raise InputError({"loc": ["bounds"], "msg": "bounds must be an object", "type": "type_error.dict"})
        top_n = int(_opt_float(body, "top", 10, 0, 1000))
        grid_axes(resolution, bounds, int(gcfg.max_cells))
        sampling = dict(_cfg().acg)

        def compute():
            ctx = prepare(p)
            with _executor() as ex:
                inputs = scoring_inputs(ctx, p["weights"], orb=p["orb"], executor=ex, acg_sampling=sampling)
                grid = score_grid(inputs, resolution, bounds, executor=ex, max_cells=int(gcfg.max_cells))
            return {
                "cells": [c.to_dict() for c in grid],
                "statistics": grid_statistics(grid),
                "top": [c.to_dict() for c in top_cells(grid, top_n)],
                "latitude_bands": high_scoring_bands(inputs),
                "warnings": list(ctx.warnings),
            }

        result, hit = _memo("grid", [p, resolution, bounds, top_n, sampling], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)


@api.post("/api/cities/rank")
@rate_limit(RL_GRID)
def rank_cities_endpoint():
    try:
        body = _body()
        p = _payload(body)
        cities = [City(**c) for c in parse_cities(body.get("cities"))]
        tiers = body.get("tiers")
        if tiers is not None and not (isinstance(tiers, list) and all(isinstance(t, str) for t in tiers)):
            raise InputError({"loc": ["tiers"], "msg": "tiers must be an array of strings", "type": "type_error.list"})
        limit = body.get("limit")
        if limit is not None:
            limit = int(_opt_float(body, "limit", 0, 1, 100000))
        sampling = dict(_cfg().acg)

        def compute():
            ctx = prepare(p)
            with _executor() as ex:
                inputs = scoring_inputs(ctx, p["weights"], orb=p["orb"], executor=ex, acg_sampling=sampling)
                ranked = rank_cities(cities, inputs, tiers=tiers, limit=limit, executor=ex)
            return {
                "ranking": [rc.to_dict() for rc in ranked],
                "summary": ranking_summary(ranked),
                "by_country": {k: [rc.city.id for rc in v] for k, v in group_by_country(ranked).items()},
                "warnings": list(ctx.warnings),
            }

        result, hit = _memo("rank", [p, body.get("cities"), tiers, limit, sampling], compute)
    except InputError as e:
        return _json_error("validation_error", e.errors(), 400)
    return _ok(result, hit)
