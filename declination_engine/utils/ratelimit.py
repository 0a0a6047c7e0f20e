from __future__ import annotations

"""
Per-client token-bucket limiter for the heavy solver routes.

- Buckets keyed by client IP + endpoint (X-Forwarded-For aware)
- Dynamic cost: grid and ranking calls can cost more than one token
- 429 carries the usual JSON error envelope and Retry-After
- Env toggles:
    ASTRO_RL_DISABLE     -> disable limiter entirely
    ASTRO_RL_ALLOWLIST   -> comma-separated client IPs to skip
"""

import math
import os
import time
from dataclasses import dataclass
from functools import wraps
from threading import RLock
from typing import Any, Callable, Dict, Optional

from flask import request, jsonify, make_response

__all__ = ["rate_limit", "endpoint_key", "reset"]

_buckets: Dict[str, "Bucket"] = {}
_lock = RLock()
_last_cleanup = 0.0

CLEANUP_INTERVAL_S = 30.0   # sweep at most this often
IDLE_EVICT_S = 180.0        # drop full buckets unused for this long


def _disabled() -> bool:
    return os.getenv("ASTRO_RL_DISABLE", "0").lower() in ("1", "true", "yes", "on")


def _allowlist() -> set:
    return {s.strip() for s in os.getenv("ASTRO_RL_ALLOWLIST", "").split(",") if s.strip()}


def _client_ip(req) -> str:
    xff = req.headers.get("X-Forwarded-For", "")
    return (xff.split(",")[0].strip() if xff else "") or (req.remote_addr or "anon")


def endpoint_key(req) -> str:
    return f"{_client_ip(req)}:{(req.endpoint or req.path) or '*'}"


@dataclass
class Bucket:
    tokens: float
    capacity: float
    rate: float         # tokens per second
    ts: float           # last refill (monotonic)

    def refill(self, now: float) -> None:
        if now > self.ts:
            self.tokens = min(self.capacity, self.tokens + (now - self.ts) * self.rate)
            self.ts = now


def reset() -> None:
    """Drop every bucket (tests, config reloads)."""
    global _last_cleanup
    with _lock:
        _buckets.clear()
        _last_cleanup = 0.0


def _cleanup(now: float) -> None:
    """
    Opportunistically evict idle, full buckets so memory stays bounded.
    Caller holds `_lock`.
    """
    global _last_cleanup
    if now - _last_cleanup < CLEANUP_INTERVAL_S:
        return
    _last_cleanup = now
    # `ts` only moves on requests, so it doubles as last-seen
    to_del = [
        k for k, b in _buckets.items()
        if b.tokens + (now - b.ts) * b.rate >= b.capacity and (now - b.ts) > IDLE_EVICT_S
    ]
    for k in to_del:
        _buckets.pop(k, None)


def rate_limit(
    max_per_minute: int,
    *,
    burst: Optional[int] = None,
    cost_fn: Optional[Callable[[Any], float]] = None,
):
    """
    Decorate a view with a token bucket of `max_per_minute` steady rate.
    `cost_fn(request)` may charge more than one token for expensive calls;
    a cost above the bucket capacity is capped at the capacity.
    """
    if max_per_minute <= 0:
        raise ValueError("max_per_minute must be > 0")
    limit = int(max_per_minute)
    capacity = float(burst if burst is not None else limit)
    rate = limit / 60.0

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if _disabled() or request.method in ("HEAD", "OPTIONS"):
                return f(*args, **kwargs)
            key = endpoint_key(request)
            if key.split(":", 1)[0] in _allowlist():
                return f(*args, **kwargs)

            now = time.monotonic()
            with _lock:
                _cleanup(now)
                b = _buckets.get(key)
                if b is None:
                    b = _buckets[key] = Bucket(capacity, capacity, rate, now)
                else:
                    b.refill(now)
                cost = min(capacity, max(0.0, float(cost_fn(request)) if cost_fn else 1.0))
                if b.tokens + 1e-12 < cost:
                    retry_after = max(1, math.ceil((cost - b.tokens) / b.rate))
                    resp = make_response(jsonify({
                        "ok": False,
                        "error": "rate_limited",
                        "details": {"retry_after_seconds": retry_after},
                    }), 429)
                    resp.headers["Retry-After"] = str(retry_after)
                    resp.headers["X-RateLimit-Limit"] = str(limit)
                    resp.headers["X-RateLimit-Remaining"] = "0"
                    return resp
                b.tokens -= cost
                remaining = max(0, int(b.tokens))

            resp = make_response(f(*args, **kwargs))
            resp.headers["X-RateLimit-Limit"] = str(limit)
            resp.headers["X-RateLimit-Remaining"] = str(remaining)
            return resp

        return wrapper

    return decorator
