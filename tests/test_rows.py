import pytest

from sap_engine.evaluation import evaluate_status
from sap_engine.rows import (
    TableRow,
    build_table_rows,
    get_explanation,
    get_signal_explanation,
    group_nutrients,
    sort_rows_by_severity,
)


@pytest.fixture
def evaluated(corn_sample):
    return corn_sample, evaluate_status(corn_sample)


def test_ratio_rows(evaluated):
    sample, evaluation = evaluated
    groups = build_table_rows("ratios", sample, evaluation)
    assert len(groups) == 1
    group = groups[0]
    assert (group.group, group.name) == ("ratios", "Calculated Ratios")
    assert [r.key for r in group.rows] == ["K_Ca", "K_Mg", "K_over_CaMg", "NO3_NH4", "Ca_Mg"]
    k_ca = group.rows[0]
    assert k_ca.is_ratio
    assert k_ca.label == "K:Ca"
    assert k_ca.new_value == pytest.approx(3.0)
    assert k_ca.delta.delta == pytest.approx(-2.0)
    assert k_ca.leaf_signal.signal == "EXCESS"
    no3 = group.rows[3]
    assert no3.old_value is None
    assert no3.old_status.status == "Unknown"


def test_nutrient_rows_follow_ruleset_groups(evaluated):
    sample, evaluation = evaluated
    groups = build_table_rows("nutrients", sample, evaluation)
    assert [g.group for g in groups] == ["nitrogen", "cations"]
    assert groups[0].name == "Nitrogen System"
    assert [r.key for r in groups[0].rows] == ["Nitrogen_NO3", "Nitrogen_NH4"]

    potassium = groups[1].rows[0]
    assert potassium.label == "K"
    assert potassium.new_value == 1500
    assert potassium.new_status.status == "Action"
    assert potassium.leaf_signal.signal == "NEW LIMIT"
    assert not potassium.is_ratio
    assert groups[0].rows[0].old_status.status == "Unknown"


def test_sort_rows_by_severity(evaluated):
    sample, evaluation = evaluated
    rows = build_table_rows("ratios", sample, evaluation)[0].rows
    ordered = sort_rows_by_severity(rows)
    assert [r.max_severity for r in ordered] == sorted(
        (r.max_severity for r in rows), reverse=True
    )
    assert ordered[0].key == "K_over_CaMg"
    assert isinstance(ordered[0], TableRow)


def test_row_as_dict(evaluated):
    sample, evaluation = evaluated
    row = build_table_rows("nutrients", sample, evaluation)[1].rows[0]
    data = row.as_dict()
    assert data["new_status"]["status"] == "Action"
    assert data["delta"]["direction"] == "down"


def test_group_nutrients():
    groups = group_nutrients(["Zinc", "Potassium", "Foo", "Calcium"])
    assert [g["group"] for g in groups] == ["cations", "micros", "ungrouped"]
    assert groups[0]["nutrients"] == ["Potassium", "Calcium"]
    assert groups[-1] == {"group": "ungrouped", "name": "Other", "nutrients": ["Foo"]}


def test_get_explanation_for_nutrient(evaluated):
    sample, evaluation = evaluated
    payload = get_explanation(evaluation, "Potassium", "new", sample, crop="corn")
    assert payload["metric_label"] == "K"
    assert payload["leaf"] == "new"
    assert payload["value"] == 1500
    assert payload["values"] == {"new": 1500, "old": 2500}
    assert payload["status"]["severity"] == 25
    assert payload["threshold"] == {
        "low": 2000,
        "optimal_low": 3000,
        "optimal_high": 5000,
        "high": 6500,
    }
    assert payload["delta"]["delta_pct"] == pytest.approx(-40.0)
    assert payload["delta_concern"] == {"mobility": "mobile", "concern": None}
    assert payload["signal"]["signal"] == "NEW LIMIT"
    assert payload["is_ratio"] is False
    assert payload["ruleset_version"] == "v1"


def test_get_explanation_uses_leaf_threshold(evaluated):
    sample, evaluation = evaluated
    payload = get_explanation(evaluation, "Potassium", "old", sample)
    assert payload["threshold"]["low"] == 1500
    assert payload["status"]["status"] == "OK"


def test_get_explanation_for_ratio(evaluated):
    sample, evaluation = evaluated
    payload = get_explanation(evaluation, "K_Ca", "old", sample)
    assert payload["is_ratio"] is True
    assert payload["value"] == pytest.approx(5.0)
    assert payload["threshold"]["high"] == 3
    assert payload["delta"]["delta"] == pytest.approx(-2.0)


def test_get_explanation_missing_metric(evaluated):
    sample, evaluation = evaluated
    payload = get_explanation(evaluation, "Zinc", "new", sample)
    assert payload["status"]["status"] == "Unknown"
    assert payload["value"] is None
    assert payload["delta"] is None
    assert payload["signal"] is None


def test_get_signal_explanation(evaluated):
    sample, evaluation = evaluated
    payload = get_signal_explanation(evaluation, "Potassium", sample)
    assert payload["signal"]["signal"] == "NEW LIMIT"
    assert payload["interpretation"].startswith("Transport to new growth")
    assert payload["new_status"]["status"] == "Action"
    assert payload["old_status"]["status"] == "OK"

    quiet = get_signal_explanation(evaluation, "Magnesium", sample)
    assert quiet["interpretation"] == "No pattern detected"


def test_get_explanation_leaf_label_is_case_insensitive(evaluated):
    sample, evaluation = evaluated
    new = get_explanation(evaluation, "Potassium", "New", sample)
    assert new["leaf"] == "new"
    assert new["value"] == 1500
    old = get_explanation(evaluation, "Potassium", "Old Leaf", sample)
    assert old["leaf"] == "old"
    assert old["value"] == 2500
