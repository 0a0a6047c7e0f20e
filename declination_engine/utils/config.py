# declination_engine/utils/config.py
import os
import yaml

from declination_engine.core.constants import DEFAULT_WEIGHTS

class AttrDict(dict):
    """Dict that also supports attribute access: cfg.grid and cfg['grid'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e
    def __setattr__(self, key, value):
        self[key] = value

def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj

# Built-in engine defaults; the YAML file only needs to carry what it changes.
DEFAULTS = {
    "orb": 1.0,
    "acg": {"lon_step": 1.0, "lat_step": 0.5, "max_latitude": 89.5},
    "parans": {"strength_threshold": 0.5},
    "grid": {
        "resolution": [5.0, 10.0],
        "bounds": {"lat_min": -85.0, "lat_max": 85.0, "lon_min": -180.0, "lon_max": 180.0},
        "max_cells": 50000,
        "workers": 1,
    },
    "cache": {"capacity": 256},
    "dignity": {"term_system": "egyptian"},
    "weights": dict(DEFAULT_WEIGHTS),
}

# env var → (path into the config, caster)
_ENV_OVERRIDES = {
    "ASTRO_DEFAULT_ORB": (("orb",), float),
    "ASTRO_GRID_WORKERS": (("grid", "workers"), int),
    "ASTRO_MAX_GRID_CELLS": (("grid", "max_cells"), int),
    "ASTRO_CACHE_CAPACITY": (("cache", "capacity"), int),
}

def _merge(base, extra):
    out = dict(base)
    for k, v in (extra or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out

def _apply_env(data):
    for var, (path, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if not raw:
            continue
        try:
            value = cast(raw)
        except ValueError as e:
            raise ValueError(f"{var} must be a {cast.__name__}, got {raw!r}") from e
        node = data
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
    return data

def load_config(path: str = None):
    """
    Load YAML config from `path` (default: $ASTRO_CONFIG or config/defaults.yaml)
    merged over DEFAULTS. A missing file yields the defaults.
    Env overrides:
      - ASTRO_DEFAULT_ORB     (orb, degrees)
      - ASTRO_GRID_WORKERS    (grid.workers)
      - ASTRO_MAX_GRID_CELLS  (grid.max_cells)
      - ASTRO_CACHE_CAPACITY  (cache.capacity)
    Returns an AttrDict for convenient access.
    """
    path = path or os.getenv("ASTRO_CONFIG", "config/defaults.yaml")
    data = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    return _apply_env(_to_attr(_merge(DEFAULTS, data)))
