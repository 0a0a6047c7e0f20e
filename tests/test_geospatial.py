# tests/test_geospatial.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, settings, strategies as st

from declination_engine.core.acg import ACGLine, planet_lines
from declination_engine.core.geospatial import (
    City,
    ScoringInputs,
    city_highlights,
    filter_by_dominant_factor,
    grid_axes,
    grid_statistics,
    group_by_country,
    high_scoring_bands,
    latitude_score,
    optimal_latitude,
    rank_cities,
    ranking_summary,
    score_grid,
    score_location,
    top_cells,
)
from declination_engine.core.paran import ParanPoint
from declination_engine.core.transform import EquatorialPosition
from declination_engine.core.validators import InputError
from declination_engine.core.zenith import ZenithLine

VENUS_BAND = ZenithLine("venus", 20.0, 19.0, 21.0)
MARS_MC = ACGLine("mars", "MC", tuple((lat / 2.0, 10.0) for lat in range(-179, 180)))
PARAN = ParanPoint("venus", "rise", "mars", "culminate", -30.0, 1.0)
WEIGHTS = {"venus": 4.0, "mars": 3.0}
BOUNDS = {"lat_min": -60, "lat_max": 60, "lon_min": -180, "lon_max": 180}


def _inputs(**weights) -> ScoringInputs:
    return ScoringInputs(
        zenith_lines=(VENUS_BAND,),
        acg_lines=(MARS_MC,),
        parans=(PARAN,),
        weights=dict(WEIGHTS, **weights),
    )


# ── single location ──────────────────────────────────────────────────────────
def test_inside_zenith_band_scores_full_weight() -> None:
    cell = score_location(20.0, 100.0, _inputs())
    assert cell.zenith == pytest.approx(4.0)
    assert cell.acg == 0.0 and cell.paran == 0.0
    assert cell.score == pytest.approx(4.0)
    assert (cell.dominant_factor, cell.dominant_planet) == ("zenith", "venus")

def test_on_acg_line_scores_line_weight() -> None:
    cell = score_location(0.0, 10.0, _inputs())
    assert cell.acg == pytest.approx(3.0)
    assert (cell.dominant_factor, cell.dominant_planet) == ("acg", "mars")
    # half an orb away: linear falloff
    assert score_location(0.0, 11.0, _inputs()).acg == pytest.approx(1.5, abs=1e-3)

def test_city_on_low_declination_rising_line_scores() -> None:
    # Sun rises at azimuth ~98° here; the horizon curve is steep near the equator
    sun_lines = planet_lines("sun", EquatorialPosition(0.0, -7.7), 0.0)
    inputs = ScoringInputs((), tuple(sun_lines), (), {"sun": 1.0})
    cell = score_location(10.0, -88.634, inputs)
    assert cell.acg > 0.99
    assert (cell.dominant_factor, cell.dominant_planet) == ("acg", "sun")

def test_paran_latitude_scores_mean_weight_times_strength() -> None:
    cell = score_location(-30.0, 100.0, _inputs())
    assert cell.paran == pytest.approx(3.5)
    assert (cell.dominant_factor, cell.dominant_planet) == ("paran", "venus")
    assert score_location(-30.5, 100.0, _inputs()).paran == pytest.approx(1.75)

def test_zero_weight_removes_planet_and_its_parans() -> None:
    inputs = _inputs(mars=0.0)
    assert score_location(0.0, 10.0, inputs).acg == 0.0
    assert score_location(-30.0, 100.0, inputs).paran == 0.0

def test_empty_inputs_score_zero_and_mixed() -> None:
    cell = score_location(0.0, 0.0, ScoringInputs((), (), (), {}))
    assert cell.score == 0.0
    assert (cell.dominant_factor, cell.dominant_planet) == ("mixed", None)
    assert set(cell.to_dict()) >= {"latitude", "longitude", "score", "zenith", "acg", "paran"}

@pytest.mark.parametrize("bad", [-1.0, float("nan"), float("inf"), "heavy"])
def test_bad_weight_is_input_error(bad) -> None:
    with pytest.raises(InputError) as ei:
        _inputs(venus=bad)
    assert ei.value.errors()[0]["loc"] == ["weights", "venus"]

def test_non_positive_orb_is_input_error() -> None:
    with pytest.raises(InputError):
        ScoringInputs((), (), (), {}, acg_orb=0.0)


@settings(max_examples=40)
@given(
    lat=st.floats(min_value=-60.0, max_value=60.0, allow_nan=False),
    lon=st.floats(min_value=-180.0, max_value=180.0, allow_nan=False),
    boost=st.floats(min_value=0.0, max_value=10.0, allow_nan=False),
)
def test_raising_a_weight_never_lowers_a_score(lat: float, lon: float, boost: float) -> None:
    base = score_location(lat, lon, _inputs()).score
    more = score_location(lat, lon, _inputs(venus=4.0 + boost)).score
    assert more >= base - 1e-12


# ── grid ─────────────────────────────────────────────────────────────────────
def test_grid_is_row_major_and_complete() -> None:
    grid = score_grid(_inputs(), resolution=30, bounds=BOUNDS)
    assert len(grid) == 5 * 13
    coords = [(c.latitude, c.longitude) for c in grid]
    assert coords == sorted(coords)
    assert coords[0] == (-60.0, -180.0) and coords[-1] == (60.0, 180.0)

def test_grid_accepts_separate_steps() -> None:
    grid = score_grid(_inputs(), resolution=[60, 90], bounds=BOUNDS)
    assert {c.latitude for c in grid} == {-60.0, 0.0, 60.0}
    assert {c.longitude for c in grid} == {-180.0, -90.0, 0.0, 90.0, 180.0}

def test_grid_with_executor_matches_serial() -> None:
    serial = score_grid(_inputs(), resolution=[10, 20], bounds=BOUNDS)
    with ThreadPoolExecutor(max_workers=3) as ex:
        threaded = score_grid(_inputs(), resolution=[10, 20], bounds=BOUNDS, executor=ex)
    assert threaded == serial

def test_grid_cell_limit() -> None:
    with pytest.raises(InputError) as ei:
        score_grid(_inputs(), resolution=30, bounds=BOUNDS, max_cells=10)
    assert ei.value.errors()[0]["type"] == "value_error.grid_too_large"

def test_grid_axes_checks_size_before_sampling() -> None:
    lats, lons = grid_axes([60, 90], BOUNDS)
    assert lats == [-60.0, 0.0, 60.0] and len(lons) == 5
    with pytest.raises(InputError):
        grid_axes(1e-9, max_cells=1000)

@pytest.mark.parametrize("resolution", [0, -5, "fine", [1.0], float("nan")])
def test_bad_resolution(resolution) -> None:
    with pytest.raises(InputError):
        score_grid(_inputs(), resolution=resolution, bounds=BOUNDS)

@pytest.mark.parametrize("bounds", [
    {"lat_min": 10, "lat_max": -10},
    {"lat_max": 95},
    {"lon_min": "west"},
])
def test_bad_bounds(bounds) -> None:
    with pytest.raises(InputError):
        score_grid(_inputs(), resolution=30, bounds=bounds)

def test_grid_reductions() -> None:
    grid = score_grid(_inputs(), resolution=[10, 30], bounds=dict(BOUNDS, lon_min=-170))
    stats = grid_statistics(grid)
    assert stats["total_cells"] == len(grid)
    assert sum(stats["dominant"].values()) == len(grid)
    assert stats["min_score"] <= stats["average_score"] <= stats["max_score"]
    best = top_cells(grid, 3)
    assert [c.score for c in best] == sorted((c.score for c in grid), reverse=True)[:3]
    acg = filter_by_dominant_factor(grid, "acg")
    assert acg and all(c.longitude == 10.0 for c in acg)
    assert grid_statistics([])["total_cells"] == 0


# ── latitude search ──────────────────────────────────────────────────────────
def test_latitude_score_ignores_longitude_factors() -> None:
    assert latitude_score(0.0, _inputs()) == pytest.approx(
        score_location(0.0, 10.0, _inputs()).zenith
    )

def test_optimal_latitude_lands_in_the_band() -> None:
    best = optimal_latitude(_inputs(), 10.0, 30.0)
    assert 18.9 <= best["latitude"] <= 21.1
    assert best["score"] == pytest.approx(4.0, rel=1e-3)

def test_high_scoring_bands() -> None:
    bands = high_scoring_bands(_inputs())
    assert len(bands) == 2
    zen, par = bands
    assert zen["lat_min"] <= 19.0 and zen["lat_max"] >= 21.0
    assert zen["peak_score"] == pytest.approx(4.0)
    assert par["peak_latitude"] == -30.0
    assert high_scoring_bands(ScoringInputs((), (), (), {})) == []


# ── cities ───────────────────────────────────────────────────────────────────
CITIES = [
    City("a", 20.0, 100.0, population=100, tier="minor", country="TH"),
    City("b", 20.0, 100.0, population=500, tier="major", country="TH"),
    City("a2", 20.0, 100.0, population=500, tier="Major", country="LA"),
    City("far", 50.0, -120.0, population=10_000_000, tier="major", country="CA"),
]

def test_ranking_order_and_tie_breaks() -> None:
    ranked = rank_cities(CITIES, _inputs())
    assert [rc.city.id for rc in ranked] == ["a2", "b", "a", "far"]
    assert [rc.rank for rc in ranked] == [1, 2, 3, 4]
    assert ranked[0].score == pytest.approx(4.0)

def test_ranking_is_stable_under_input_order() -> None:
    forward = [rc.city.id for rc in rank_cities(CITIES, _inputs())]
    backward = [rc.city.id for rc in rank_cities(list(reversed(CITIES)), _inputs())]
    assert forward == backward

def test_ranking_tiers_limit_and_executor() -> None:
    ranked = rank_cities(CITIES, _inputs(), tiers=["MAJOR"], limit=2)
    assert [rc.city.id for rc in ranked] == ["a2", "b"]
    with ThreadPoolExecutor(max_workers=2) as ex:
        threaded = rank_cities(CITIES, _inputs(), executor=ex)
    assert [rc.to_dict() for rc in threaded] == [rc.to_dict() for rc in rank_cities(CITIES, _inputs())]

def test_highlights() -> None:
    inputs = _inputs()
    assert city_highlights(City("z", 20.0, 100.0), inputs) == [
        "Venus zenith passes directly over this latitude",
    ]
    assert city_highlights(City("z", 20.8, 100.0), inputs) == ["Near Venus zenith line (0.8° away)"]
    assert city_highlights(City("m", 0.0, 10.5), inputs) == ["Near Mars Midheaven line"]
    assert city_highlights(City("p", -30.0, 50.0), inputs) == [
        "Active paran zone with Venus-Mars interactions",
    ]
    # low-weight planets are not highlighted
    assert city_highlights(City("z", 20.0, 100.0), _inputs(venus=1.0)) == []

def test_summary_and_grouping() -> None:
    ranked = rank_cities(CITIES, _inputs())
    summary = ranking_summary(ranked)
    assert summary["total"] == 4
    assert summary["by_tier"] == {"minor": 1, "major": 2, "Major": 1}
    assert summary["top_score"] == pytest.approx(4.0)
    groups = group_by_country(ranked)
    assert [rc.city.id for rc in groups["TH"]] == ["b", "a"]
    assert set(groups) == {"TH", "LA", "CA"}
    d = ranked[0].to_dict()
    assert d["rank"] == 1 and d["name"] == "a2" and d["highlights"]


# ── real chart ───────────────────────────────────────────────────────────────
def test_sarasota_grid_smoke(sarasota_ctx, sarasota_parans) -> None:
    from declination_engine.core.chart import scoring_inputs
    inputs = scoring_inputs(sarasota_ctx, {p: 1.0 for p in sarasota_ctx.equatorial}, parans=sarasota_parans)
    grid = score_grid(inputs, resolution=[20, 40], bounds={"lat_min": -60, "lat_max": 60})
    assert len(grid) == 7 * 10
    assert all(c.score >= 0.0 for c in grid)
    assert grid_statistics(grid)["max_score"] > 0.0

def test_scoring_inputs_follow_acg_sampling(sarasota_ctx, sarasota_parans) -> None:
    from declination_engine.core.chart import scoring_inputs
    weights = {p: 1.0 for p in sarasota_ctx.equatorial}
    coarse = scoring_inputs(sarasota_ctx, weights, parans=sarasota_parans,
                            acg_sampling={"lon_step": 5.0, "lat_step": 5.0})
    default = scoring_inputs(sarasota_ctx, weights, parans=sarasota_parans)
    assert (coarse.acg_lines[0].planet, coarse.acg_lines[0].line_type) == ("sun", "MC")
    assert len(coarse.acg_lines[0].points) == 36
    assert len(default.acg_lines[0].points) == 359
