# tests/test_sda.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from declination_engine.core.sda import (
    is_circumpolar,
    never_rises,
    rise_set_latitude_limit,
    rise_set_latitude_range,
    semi_diurnal_arc,
)


def test_equator_gives_six_hour_arc() -> None:
    assert semi_diurnal_arc(0.0, 23.0).sda == pytest.approx(90.0)
    assert semi_diurnal_arc(45.0, 0.0).sda == pytest.approx(90.0)

def test_longer_arc_for_same_hemisphere() -> None:
    north = semi_diurnal_arc(45.0, 20.0)
    south = semi_diurnal_arc(45.0, -20.0)
    assert north.sda > 90.0 > south.sda
    assert north.sda + south.sda == pytest.approx(180.0)

def test_rise_and_set_hour_angles() -> None:
    arc = semi_diurnal_arc(30.0, 10.0)
    assert arc.rise_hour_angle == pytest.approx(-arc.sda)
    assert arc.set_hour_angle == pytest.approx(arc.sda)
    assert arc.crosses_horizon

def test_circumpolar_and_never_rises() -> None:
    assert is_circumpolar(70.0, 25.0)
    assert not never_rises(70.0, 25.0)
    assert never_rises(70.0, -25.0)
    assert semi_diurnal_arc(70.0, 25.0).sda is None
    assert not semi_diurnal_arc(70.0, 25.0).crosses_horizon

def test_poles() -> None:
    assert semi_diurnal_arc(90.0, 5.0).circumpolar
    assert semi_diurnal_arc(-90.0, 5.0).never_rises
    assert semi_diurnal_arc(90.0, -5.0).never_rises

def test_latitude_limit() -> None:
    assert rise_set_latitude_limit(-23.5) == pytest.approx(66.5)
    assert rise_set_latitude_range(23.5) == pytest.approx((-66.5, 66.5))


@given(
    lat=st.floats(min_value=-89.0, max_value=89.0, allow_nan=False),
    dec=st.floats(min_value=-30.0, max_value=30.0, allow_nan=False),
)
def test_arc_defined_exactly_inside_limit(lat: float, dec: float) -> None:
    arc = semi_diurnal_arc(lat, dec)
    limit = rise_set_latitude_limit(dec)
    if abs(lat) < limit - 1e-6:
        assert arc.sda is not None and 0.0 <= arc.sda <= 180.0
    elif abs(lat) > limit + 1e-6:
        assert arc.sda is None
        assert arc.circumpolar != arc.never_rises
