# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the declination engine suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC (we always pass IANA zones explicitly).
- Disables the HTTP rate limiter for the endpoint tests.
- Provides the Sarasota 1986 regression chart as a session fixture.
"""

import os
import pytest
from hypothesis import settings, HealthCheck


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(autouse=True)
def no_rate_limit(monkeypatch):
    monkeypatch.setenv("ASTRO_RL_DISABLE", "1")


@pytest.fixture(scope="session")
def ensure_erfa():
    """Fail early if pyERFA is missing the routines the ephemeris uses."""
    import erfa
    for fn in ("plan94", "epv00", "moon98", "ecm06", "dat", "cal2jd", "jd2cal"):
        assert hasattr(erfa, fn), f"erfa.{fn} not available"
    return erfa


# Regression chart: 1986-02-28 16:20 EST, Sarasota FL.
SARASOTA = {
    "birthDate": "1986-02-28",
    "birthTime": "16:20",
    "timezone": "America/New_York",
    "latitude": 27.3364,
    "longitude": -82.5307,
}


@pytest.fixture(scope="session")
def sarasota_body():
    return dict(SARASOTA)


@pytest.fixture(scope="session")
def sarasota_payload(ensure_erfa):
    from declination_engine.core.validators import parse_birth_payload
    return parse_birth_payload(dict(SARASOTA))


@pytest.fixture(scope="session")
def sarasota_ctx(sarasota_payload):
    from declination_engine.core.chart import prepare
    return prepare(sarasota_payload)


@pytest.fixture(scope="session")
def sarasota_parans(sarasota_ctx):
    from declination_engine.core.paran import find_all_parans
    return find_all_parans(sarasota_ctx.equatorial)
