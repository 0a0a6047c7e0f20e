# tests/test_acg.py
from __future__ import annotations

import pytest
from hypothesis import given, settings, strategies as st

from declination_engine.core.acg import (
    ACGLine,
    LINE_TYPES,
    STATUS_CIRCUMPOLAR,
    STATUS_SOLVED,
    all_lines,
    compute_acg,
    filter_lines,
    line_intersections,
    lines_near_location,
    planet_lines,
)
from declination_engine.core.constants import PLANET_IDS, wrap_deg, wrap_pm180
from declination_engine.core.transform import EquatorialPosition, equatorial_to_horizontal

GMST = 100.0


def _by_type(lines):
    return {ln.line_type: ln for ln in lines}


def test_meridian_lines_are_ra_minus_gmst() -> None:
    lines = _by_type(planet_lines("mars", EquatorialPosition(30.0, 10.0), GMST))
    mc, ic = lines["MC"], lines["IC"]
    assert {lon for _lat, lon in mc.points} == {-70.0}
    assert {lon for _lat, lon in ic.points} == {110.0}
    # sampled pole to pole at 0.5°, independent of declination
    assert len(mc.points) == 359
    assert mc.points[0][0] == -89.5 and mc.points[-1][0] == 89.5

@pytest.mark.parametrize("dec", [23.0, -20.0, 0.5, -0.5])
def test_horizon_points_sit_on_the_horizon(dec: float) -> None:
    ra = 200.0
    lines = _by_type(planet_lines("venus", EquatorialPosition(ra, dec), GMST))
    for kind in ("ASC", "DSC"):
        ln = lines[kind]
        assert ln.status == STATUS_SOLVED and ln.points, kind
        for lat, lon in ln.points:
            alt, az = equatorial_to_horizontal(ra, dec, lat, wrap_deg(GMST + lon))
            assert alt == pytest.approx(0.0, abs=1e-6)
            # rising in the east, setting in the west
            assert (0.0 < az < 180.0) if kind == "ASC" else (180.0 < az < 360.0)

def test_horizon_points_ordered_by_longitude() -> None:
    ln = _by_type(planet_lines("sun", EquatorialPosition(10.0, -15.0), GMST))["ASC"]
    lons = [lon for _lat, lon in ln.points]
    assert lons == sorted(lons)

def test_equatorial_body_horizon_lines_are_meridians() -> None:
    lines = _by_type(planet_lines("moon", EquatorialPosition(50.0, 0.0), GMST))
    assert {lon for _lat, lon in lines["ASC"].points} == {wrap_pm180(50.0 - 90.0 - GMST)}
    assert {lon for _lat, lon in lines["DSC"].points} == {wrap_pm180(50.0 + 90.0 - GMST)}

def test_circumpolar_flag_in_high_latitude_window() -> None:
    lines = _by_type(planet_lines(
        "moon", EquatorialPosition(0.0, 28.0), GMST, lat_window=(65.0, 85.0)
    ))
    assert lines["ASC"].status == STATUS_CIRCUMPOLAR
    assert lines["DSC"].is_circumpolar and lines["DSC"].points == ()
    # meridians still exist
    assert lines["MC"].points and lines["MC"].status == STATUS_SOLVED

def test_all_lines_total(sarasota_ctx) -> None:
    lines = all_lines(sarasota_ctx.equatorial, sarasota_ctx.gmst_deg)
    assert len(lines) == 4 * len(PLANET_IDS)
    assert [(ln.planet, ln.line_type) for ln in lines] == [(p, t) for p in PLANET_IDS for t in LINE_TYPES]
    assert all(ln.points for ln in lines)

def test_compute_acg_envelope(sarasota_ctx) -> None:
    out = compute_acg(sarasota_ctx.equatorial, sarasota_ctx.gmst_deg, lon_step=5.0, lat_step=5.0)
    assert out["meta"]["mc_ic_model"] == "ra_meridian"
    assert out["meta"]["circumpolar"] == []
    assert len(out["lines"]) == 40
    first = out["lines"][0]
    assert set(first) == {"planet", "line_type", "status", "is_circumpolar", "points"}
    assert set(first["points"][0]) == {"lat", "lon"}

def test_lines_near_location_finds_meridian() -> None:
    lines = planet_lines("jupiter", EquatorialPosition(30.0, 10.0), GMST)
    hits = lines_near_location(10.0, -69.0, lines, orb=2.0)
    assert hits and hits[0]["planet"] == "jupiter" and hits[0]["line_type"] == "MC"
    assert hits[0]["distance_deg"] == pytest.approx(0.985, abs=0.01)
    assert lines_near_location(10.0, 30.0, filter_lines(lines, line_type="MC"), orb=2.0) == []

def test_line_intersections_of_crossing_lines() -> None:
    vertical = ACGLine("sun", "MC", tuple((lat / 2.0, 0.0) for lat in range(-20, 21)))
    horizontal = ACGLine("moon", "ASC", tuple((0.0, lon / 2.0) for lon in range(-20, 21)))
    hits = line_intersections(vertical, horizontal, tolerance=1.0)
    assert hits
    assert all(abs(lat) < 1.0 and abs(lon) < 1.0 for lat, lon in hits)

def test_mc_and_ic_never_intersect() -> None:
    mc, ic, _asc, _dsc = planet_lines("saturn", EquatorialPosition(123.0, -5.0), GMST)
    assert line_intersections(mc, ic) == []


@settings(max_examples=30)
@given(
    ra=st.floats(min_value=0.0, max_value=359.9, allow_nan=False),
    dec=st.floats(min_value=-28.0, max_value=28.0, allow_nan=False),
    gmst=st.floats(min_value=0.0, max_value=359.9, allow_nan=False),
)
def test_lines_stay_inside_latitude_window(ra: float, dec: float, gmst: float) -> None:
    for ln in planet_lines("mercury", EquatorialPosition(ra, dec), gmst, lon_step=5.0, lat_step=5.0):
        for lat, lon in ln.points:
            assert -89.5 <= lat <= 89.5
            assert -180.0 <= lon < 180.0


def test_antimeridian_sampled_once() -> None:
    ln = _by_type(planet_lines("sun", EquatorialPosition(270.0, -7.7), 0.0))["ASC"]
    lons = [lon for _lat, lon in ln.points]
    assert lons[0] == -180.0 and 180.0 not in lons
    assert len(set(ln.points)) == len(ln.points)

def test_low_declination_horizon_line_dense_in_latitude() -> None:
    lines = _by_type(planet_lines("mercury", EquatorialPosition(0.0, 0.73), 0.0))
    for kind in ("ASC", "DSC"):
        lats = sorted(lat for lat, _lon in lines[kind].points if -60.0 <= lat <= 60.0)
        assert lats[0] == -60.0 and lats[-1] == 60.0
        assert max(b - a for a, b in zip(lats, lats[1:])) <= 0.5 + 1e-9

def test_latitude_sweep_solves_rising_longitude() -> None:
    # cos H0 = −tan φ tan δ at φ = 10°, δ = −7.7° gives H0 ≈ 88.634°
    ln = _by_type(planet_lines("sun", EquatorialPosition(0.0, -7.7), 0.0))["ASC"]
    hits = [lon for lat, lon in ln.points if lat == 10.0]
    assert hits == [pytest.approx(-88.634, abs=1e-3)]

def test_sarasota_horizon_lines_have_no_latitude_gaps(sarasota_ctx) -> None:
    lines = all_lines(sarasota_ctx.equatorial, sarasota_ctx.gmst_deg)
    for ln in filter_lines(lines, line_type="ASC") + filter_lines(lines, line_type="DSC"):
        lats = sorted(lat for lat, _lon in ln.points if -60.0 <= lat <= 60.0)
        assert max(b - a for a, b in zip(lats, lats[1:])) <= 0.5 + 1e-9, (ln.planet, ln.line_type)
