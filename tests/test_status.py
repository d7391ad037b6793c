import math

import pytest

from sap_engine.ruleset import Threshold
from sap_engine.status import evaluate_nutrient_status, is_issue

BAND = {"low": 2000, "optimal_low": 3000, "optimal_high": 5000, "high": 6500}


def test_value_below_low_is_action():
    result = evaluate_nutrient_status(1500, BAND)
    assert result.status == "Action"
    assert result.severity == 25
    assert result.direction == "low"
    assert result.reason == "Very low"


def test_value_in_lower_watch_band():
    result = evaluate_nutrient_status(2500, BAND)
    assert (result.status, result.severity, result.direction) == ("Watch", 25, "low")
    assert result.reason == "Below optimal"


def test_value_in_upper_watch_band():
    result = evaluate_nutrient_status(5750, BAND)
    assert (result.status, result.severity, result.direction) == ("Watch", 25, "high")
    assert result.reason == "Above optimal"


def test_value_above_high_is_action():
    result = evaluate_nutrient_status(7800, BAND)
    assert (result.status, result.severity, result.direction) == ("Action", 20, "high")
    assert result.reason == "Very high"


def test_band_edges():
    assert evaluate_nutrient_status(2000, BAND).status == "Watch"
    assert evaluate_nutrient_status(2000, BAND).severity == 50
    assert evaluate_nutrient_status(3000, BAND).status == "OK"
    assert evaluate_nutrient_status(5000, BAND).status == "OK"
    assert evaluate_nutrient_status(6500, BAND).status == "Watch"
    assert evaluate_nutrient_status(6500, BAND).severity == 50


def test_severity_is_capped():
    assert evaluate_nutrient_status(-500, BAND).severity == 100
    assert evaluate_nutrient_status(0, BAND).severity == 100
    assert evaluate_nutrient_status(1_000_000, BAND).severity == 100


def _severities(values, status):
    results = [evaluate_nutrient_status(v, BAND) for v in values]
    return [r.severity for r in results if r.status == status]


def test_severity_monotonic_below_band():
    values = range(3000, -1000, -50)
    for status in ("Watch", "Action"):
        severities = _severities(values, status)
        assert severities == sorted(severities)
    assert _severities(values, "Action")[-1] == 100


def test_severity_monotonic_above_band():
    values = range(5000, 20000, 100)
    for status in ("Watch", "Action"):
        severities = _severities(values, status)
        assert severities == sorted(severities)
    assert _severities(values, "Action")[-1] == 100


@pytest.mark.parametrize(
    "band",
    [
        BAND,
        {"low": 0.3, "optimal_low": 0.6, "optimal_high": 2, "high": 4},
        {"low": 0, "optimal_low": 0, "optimal_high": 0, "high": 0},
    ],
)
def test_optimal_midpoint_is_ok(band):
    mid = (band["optimal_low"] + band["optimal_high"]) / 2
    result = evaluate_nutrient_status(mid, band)
    assert result.status == "OK"
    assert result.severity == 0


@pytest.mark.parametrize("value", [None, "", "n/a", math.nan, math.inf, True])
def test_missing_value_is_unknown(value):
    result = evaluate_nutrient_status(value, BAND)
    assert result.status == "Unknown"
    assert result.severity == 0
    assert result.reason == "No data"
    assert result.direction is None
    assert not is_issue(result)


@pytest.mark.parametrize("threshold", [None, {}, {"low": 1, "high": 2}, "bad"])
def test_missing_threshold_fails_open(threshold):
    result = evaluate_nutrient_status(1500, threshold)
    assert result.status == "OK"
    assert result.reason == "No threshold defined"


def test_zero_reference_gives_full_severity():
    zero_low = {"low": 0, "optimal_low": 0, "optimal_high": 10, "high": 20}
    result = evaluate_nutrient_status(-1, zero_low)
    assert (result.status, result.severity) == ("Action", 100)

    zero_high = {"low": 0, "optimal_low": 0, "optimal_high": 0, "high": 0}
    result = evaluate_nutrient_status(5, zero_high)
    assert (result.status, result.severity, result.direction) == ("Action", 100, "high")


def test_accepts_threshold_and_string_values():
    band = Threshold(2000, 3000, 5000, 6500)
    assert evaluate_nutrient_status("1500", band).severity == 25
    assert is_issue(evaluate_nutrient_status("1500", band))
