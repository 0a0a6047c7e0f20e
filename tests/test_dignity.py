# tests/test_dignity.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from declination_engine.core.constants import PLANET_IDS
from declination_engine.core.dignity import (
    RULE_WEIGHTS,
    SIGN_RULE_TABLE,
    planet_rules,
    rank_by_dignity,
    score_all,
    score_planet,
    score_rules,
    sect_from_altitude,
    sect_from_sun,
    sign_position,
    sign_rules,
)
from declination_engine.core.transform import EquatorialPosition
from declination_engine.core.validators import InputError


@pytest.mark.parametrize("lon, sign, deg", [
    (0.0, "aries", 0.0),
    (360.0, "aries", 0.0),
    (-10.0, "pisces", 20.0),
    (125.0, "leo", 5.0),
    (359.5, "pisces", 29.5),
])
def test_sign_position(lon, sign, deg) -> None:
    s, d = sign_position(lon)
    assert s == sign
    assert d == pytest.approx(deg)

def test_sign_rule_table_is_total() -> None:
    assert len(SIGN_RULE_TABLE) == len(PLANET_IDS) * 12
    assert sign_rules("sun", "leo") == ("domicile",)
    assert sign_rules("saturn", "aries") == ("fall",)
    assert sign_rules("mercury", "virgo") == ("domicile", "exaltation")
    assert sign_rules("jupiter", "taurus") == ()


@pytest.mark.parametrize("rules, indicator", [
    (["domicile", "detriment", "fall", "out_of_sect"], "R"),
    (["exaltation", "detriment"], "E"),
    (["fall", "detriment"], "d"),
    (["fall"], "f"),
    (["triplicity", "terms"], "-"),
    (["peregrine"], "-"),
])
def test_indicator_priority(rules, indicator) -> None:
    assert score_rules("jupiter", rules).indicator == indicator

def test_indicator_is_not_the_sign_of_the_total() -> None:
    s = score_rules("jupiter", ["domicile", "detriment", "fall", "out_of_sect"])
    assert s.total == 5 - 5 - 4 - 1
    assert s.indicator == "R"
    assert s.breakdown == ("Domicile (+5)", "Detriment (-5)", "Fall (-4)", "Out of sect (-1)")

def test_unknown_rule_rejected() -> None:
    with pytest.raises(InputError):
        score_rules("sun", ["rulership"])

def test_sun_in_leo_by_day() -> None:
    s = score_planet("sun", 125.0, "day")
    assert s.rules == ("domicile", "triplicity", "in_sect")
    assert s.total == 9 and s.indicator == "R"
    assert (s.sign, s.degree) == ("leo", pytest.approx(5.0))

def test_sun_in_leo_by_night_loses_triplicity_and_sect() -> None:
    s = score_planet("sun", 125.0, "night")
    assert s.rules == ("domicile", "out_of_sect")
    assert s.total == 4

def test_peregrine_only_without_other_essential_rules() -> None:
    s = score_planet("mercury", 95.0)            # cancer 5°
    assert s.rules == ("peregrine",)             # mercury has no sect
    assert s.total == -5 and s.indicator == "-"

def test_detriment_alongside_minor_dignities() -> None:
    s = score_planet("saturn", 125.0, "day")     # leo 5°
    assert s.rules == ("triplicity", "face", "detriment", "in_sect")
    assert s.total == 0 and s.indicator == "d"

def test_term_systems_differ() -> None:
    egyptian = score_planet("venus", 128.0, "day", "egyptian")
    ptolemaic = score_planet("venus", 128.0, "day", "ptolemaic")
    assert egyptian.rules == ("terms", "out_of_sect")
    assert ptolemaic.rules == ("peregrine", "out_of_sect")
    assert (egyptian.total, ptolemaic.total) == (1, -6)

def test_sect_can_be_switched_off() -> None:
    assert "in_sect" not in planet_rules("sun", 125.0, "day", apply_sect=False)

@pytest.mark.parametrize("kwargs", [
    {"planet": "chiron", "longitude": 0.0},
    {"planet": "sun", "longitude": 0.0, "sect": "dusk"},
    {"planet": "sun", "longitude": 0.0, "term_system": "babylonian"},
])
def test_invalid_arguments(kwargs) -> None:
    with pytest.raises(InputError):
        planet_rules(**kwargs)

def test_score_all_and_rank() -> None:
    lons = {p: 125.0 for p in PLANET_IDS}
    scores = score_all(lons, "day")
    assert list(scores) == list(PLANET_IDS)
    ranked = rank_by_dignity(scores)
    assert ranked[0].planet == "sun"
    totals = [s.total for s in ranked]
    assert totals == sorted(totals, reverse=True)
    # ties keep canonical planet order
    for a, b in zip(ranked, ranked[1:]):
        if a.total == b.total:
            assert PLANET_IDS.index(a.planet) < PLANET_IDS.index(b.planet)

def test_score_all_accepts_ecliptic_positions(sarasota_ctx) -> None:
    scores = score_all(sarasota_ctx.ecliptic, "day")
    assert set(scores) == set(PLANET_IDS)
    d = scores["sun"].to_dict()
    assert set(d) == {"planet", "total", "indicator", "breakdown", "rules", "sign", "degree"}
    assert d["sign"] == "pisces"

def test_sect_from_sun_altitude() -> None:
    sun = EquatorialPosition(0.0, 0.0)
    assert sect_from_sun(sun, lst=0.0, latitude=0.0) == "day"
    assert sect_from_sun(sun, lst=180.0, latitude=0.0) == "night"
    assert sect_from_altitude(0.0) == "day"
    assert sect_from_altitude(-0.1) == "night"


@given(
    planet=st.sampled_from(PLANET_IDS),
    lon=st.floats(min_value=0.0, max_value=359.999, allow_nan=False),
    sect=st.sampled_from(["day", "night"]),
    system=st.sampled_from(["egyptian", "ptolemaic"]),
)
def test_total_is_sum_of_rule_weights(planet, lon, sect, system) -> None:
    s = score_planet(planet, lon, sect, system)
    assert s.total == sum(RULE_WEIGHTS[r] for r in s.rules)
    assert len(s.breakdown) == len(s.rules)
    assert ("peregrine" in s.rules) == (not set(s.rules) - {"peregrine", "in_sect", "out_of_sect"})
