from sap_engine.samples import build_sample_dates, extract_nutrients, latest_sample_date

RECORDS = [
    {"LabDate": "2024-06-10", "LeafAge": "New", "Potassium": "3200", "Calcium": 400, "Notes": "x"},
    {"LabDate": "2024-06-10", "LeafAge": "old leaf", "Potassium": 2800, "GrowthStage": "V8"},
    {"LabDate": "2024-06-01", "Potassium": 3000, "PlantType": "Soybeans"},
    {"LabDate": "2024-06-01", "Potassium": 2900},
    {"LabDate": "2024-06-01", "Potassium": 1},
]


def test_extract_nutrients():
    record = {"Potassium": "3200", "Brix": "n/a", "Notes": 5, "Zinc": 0}
    assert extract_nutrients(record) == {"Potassium": 3200.0, "Zinc": 0.0}


def test_records_are_paired_by_date():
    samples = build_sample_dates(RECORDS)
    assert [s["sample_date"] for s in samples] == ["2024-06-01", "2024-06-10"]

    june_10 = samples[1]
    assert june_10["new_leaf"] == {"Potassium": 3200.0, "Calcium": 400.0}
    assert june_10["old_leaf"] == {"Potassium": 2800.0}
    assert june_10["plant_type"] == "Corn"


def test_records_without_leaf_age_fill_new_then_old():
    june_1 = build_sample_dates(RECORDS)[0]
    assert june_1["new_leaf"] == {"Potassium": 3000.0}
    assert june_1["old_leaf"] == {"Potassium": 2900.0}
    assert june_1["plant_type"] == "Soybeans"


def test_missing_leaf_stays_none():
    samples = build_sample_dates([{"LabDate": "2024-07-01", "LeafAge": "old", "Potassium": 1}])
    assert samples[0]["new_leaf"] is None
    assert samples[0]["old_leaf"] == {"Potassium": 1.0}


def test_unparseable_dates_sort_last():
    records = [
        {"LabDate": "pending", "LeafAge": "new", "Potassium": 1},
        {"LabDate": "2024-05-01", "LeafAge": "new", "Potassium": 2},
    ]
    assert [s["sample_date"] for s in build_sample_dates(records)] == ["2024-05-01", "pending"]


def test_latest_sample_date():
    samples = build_sample_dates(RECORDS)
    assert latest_sample_date(samples)["sample_date"] == "2024-06-10"
    assert latest_sample_date([]) is None
    assert latest_sample_date([{"sample_date": "later"}]) is None
