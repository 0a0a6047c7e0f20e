# tests/test_oob.py
from __future__ import annotations

import pytest

from declination_engine.core.constants import PLANET_IDS
from declination_engine.core.oob import check_all, oob_planets, oob_status
from declination_engine.core.transform import EquatorialPosition

EPS = 23.44


def test_in_bounds() -> None:
    s = oob_status("sun", -23.0, EPS)
    assert not s.is_oob
    assert s.direction is None and s.oob_degrees == 0.0

def test_exactly_on_the_boundary_is_in_bounds() -> None:
    assert not oob_status("venus", EPS, EPS).is_oob

@pytest.mark.parametrize("dec, direction", [(25.0, "north"), (-24.5, "south")])
def test_out_of_bounds_direction_and_excess(dec, direction) -> None:
    s = oob_status("moon", dec, EPS)
    assert s.is_oob and s.direction == direction
    assert s.oob_degrees == pytest.approx(abs(dec) - EPS)

def test_check_all_and_ordering() -> None:
    decs = {p: 0.0 for p in PLANET_IDS}
    decs.update(moon=27.0, mars=-24.0, pluto=-27.0)
    statuses = check_all({p: EquatorialPosition(0.0, d) for p, d in decs.items()}, EPS)
    assert list(statuses) == list(PLANET_IDS)
    # moon and pluto tie on excess; canonical order breaks it
    assert [s.planet for s in oob_planets(statuses)] == ["moon", "pluto", "mars"]
    assert statuses["mars"].to_dict()["direction"] == "south"

def test_sun_never_out_of_bounds(sarasota_ctx) -> None:
    statuses = check_all(sarasota_ctx.equatorial, sarasota_ctx.obliquity)
    assert not statuses["sun"].is_oob
