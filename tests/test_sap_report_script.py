from pathlib import Path
import json
import subprocess
import sys

SCRIPT = Path(__file__).resolve().parents[1] / "scripts/sap_report.py"


def _run(*args):
    return subprocess.run(
        [sys.executable, str(SCRIPT), *map(str, args)],
        capture_output=True,
        text=True,
    )


def test_report_for_sample_dates(tmp_path: Path):
    samples = [
        {
            "sample_date": "2024-06-01",
            "new_leaf": {"Potassium": 4000},
            "old_leaf": {"Potassium": 4000},
        },
        {
            "sample_date": "2024-06-15",
            "new_leaf": {"Potassium": 1500},
            "old_leaf": {"Potassium": 1000},
        },
    ]
    file = tmp_path / "samples.json"
    file.write_text(json.dumps(samples))

    result = _run(file)
    assert result.returncode == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["ruleset"] == "v1"
    assert len(data["evaluations"]) == 1
    latest = data["evaluations"][0]
    assert latest["sample_date"] == "2024-06-15"
    assert latest["crop"] == "corn"
    status = latest["result"]["per_nutrient_status"]["new_leaf"]["Potassium"]
    assert status["status"] == "Action"
    assert latest["ranked_systems"][0] == "CATIONS"


def test_report_for_lab_records_with_trend(tmp_path: Path):
    records = [
        {"LabDate": "2024-06-01", "LeafAge": "new", "Potassium": 2000},
        {"LabDate": "2024-06-01", "LeafAge": "old", "Potassium": 3000},
        {"LabDate": "2024-06-15", "LeafAge": "new", "Potassium": 4000},
        {"LabDate": "2024-06-15", "LeafAge": "old", "Potassium": 3000},
    ]
    file = tmp_path / "records.json"
    out = tmp_path / "out" / "report.json"
    file.write_text(json.dumps(records))

    result = _run(file, "--all", "--trend", "Potassium", "--output", out)
    assert result.returncode == 0, result.stderr
    data = json.loads(out.read_text())
    assert [e["sample_date"] for e in data["evaluations"]] == ["2024-06-01", "2024-06-15"]
    assert data["trends"]["Potassium"]["trend"] == "up"
    assert data["trends"]["Potassium"]["change"] == 100


def test_crop_override(tmp_path: Path):
    file = tmp_path / "sample.json"
    file.write_text(json.dumps({"sample_date": "2024-06-01", "new_leaf": {"Potassium": 2000}}))
    result = _run(file, "--crop", "Soybeans")
    assert result.returncode == 0, result.stderr
    evaluation = json.loads(result.stdout)["evaluations"][0]
    assert evaluation["crop"] == "soybeans"
    status = evaluation["result"]["per_nutrient_status"]["new_leaf"]["Potassium"]
    assert status["severity"] == 20


def test_unknown_ruleset_fails(tmp_path: Path):
    file = tmp_path / "samples.json"
    file.write_text("[]")
    result = _run(file, "--ruleset", "nope")
    assert result.returncode != 0
    assert "nope" in result.stderr
