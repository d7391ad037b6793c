#!/usr/bin/env python3
"""Evaluate sap analysis samples and print the results as JSON."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Mapping

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
from scripts import ensure_repo_root_on_path

ROOT = ensure_repo_root_on_path()

from sap_engine import (
    build_sample_dates,
    evaluate_batch,
    evaluate_trend,
    latest_sample_date,
    load_ruleset,
    rank_systems,
)
from sap_engine.constants import DEFAULT_CROP, NEW_LEAF, TISSUES
from sap_engine.utils import normalize_key

_LOGGER = logging.getLogger(__name__)

RECORD_KEYS = {"LabDate", "LeafAge"}


def load_samples(path: Path) -> List[Dict[str, Any]]:
    """Return sample dates from ``path``.

    The file may hold a single sample date, a list of sample dates or a list
    of flat lab records which are paired by date first.
    """

    data = json.loads(path.read_text())
    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of samples in {path}")
    samples = [item for item in data if isinstance(item, Mapping)]
    if any(RECORD_KEYS & set(item) for item in samples):
        _LOGGER.info("Pairing %d lab records from %s", len(samples), path)
        return build_sample_dates(samples)
    return [dict(item) for item in samples]


def _crop_for(sample: Mapping[str, Any], override: str | None) -> str:
    crop = override or sample.get("crop") or sample.get("plant_type") or DEFAULT_CROP
    return normalize_key(crop)


def build_report(
    samples: List[Dict[str, Any]],
    ruleset_version: str = "v1",
    crop: str | None = None,
    evaluate_all: bool = False,
    trend: List[str] | None = None,
    tissue: str = NEW_LEAF,
    workers: int | None = None,
) -> Dict[str, Any]:
    """Return a JSON serializable report for ``samples``."""

    ruleset = load_ruleset(ruleset_version)
    if evaluate_all:
        selected = samples
    else:
        latest = latest_sample_date(samples)
        if latest is None and samples:
            latest = samples[-1]
        selected = [latest] if latest is not None else []

    evaluations = []
    # Samples of different crops cannot share a context, so batch per crop
    by_crop: Dict[str, List[int]] = {}
    for index, sample in enumerate(selected):
        by_crop.setdefault(_crop_for(sample, crop), []).append(index)

    results: Dict[int, Any] = {}
    for crop_key, indexes in by_crop.items():
        batch = [selected[i] for i in indexes]
        context = {"crop": crop_key}
        for index, result in zip(indexes, evaluate_batch(batch, context, ruleset, workers=workers)):
            results[index] = (crop_key, result)

    for index, sample in enumerate(selected):
        crop_key, result = results[index]
        evaluations.append(
            {
                "sample_date": sample.get("sample_date") or sample.get("date"),
                "crop": crop_key,
                "growth_stage": sample.get("growth_stage") or "",
                "result": result.as_dict(),
                "ranked_systems": [key for key, _ in rank_systems(result.system_status)],
            }
        )

    report: Dict[str, Any] = {
        "ruleset": ruleset.version,
        "evaluations": evaluations,
    }
    if trend:
        report["trends"] = {
            nutrient: evaluate_trend(samples, nutrient, tissue).as_dict() for nutrient in trend
        }
    return report


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Evaluate new/old leaf sap samples against a threshold ruleset"
    )
    parser.add_argument(
        "samples",
        type=Path,
        help="Path to JSON file with sample dates or raw lab records",
    )
    parser.add_argument("--crop", help="Crop override (defaults to the sample plant type)")
    parser.add_argument("--ruleset", default="v1", help="Ruleset version")
    parser.add_argument(
        "--all",
        action="store_true",
        help="Evaluate every sample date instead of only the latest",
    )
    parser.add_argument(
        "--trend",
        nargs="+",
        metavar="NUTRIENT",
        help="Nutrients to report trends for across all sample dates",
    )
    parser.add_argument(
        "--tissue",
        choices=TISSUES,
        default=NEW_LEAF,
        help="Leaf tissue used for trends",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Thread pool size for batch evaluation (0 uses the CPU count)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path to write the report JSON",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        samples = load_samples(args.samples)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    try:
        report = build_report(
            samples,
            ruleset_version=args.ruleset,
            crop=args.crop,
            evaluate_all=args.all,
            trend=args.trend,
            tissue=args.tissue,
            workers=args.workers,
        )
    except KeyError as exc:
        parser.error(str(exc))

    text = json.dumps(report, indent=2, ensure_ascii=False)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text)
        _LOGGER.info("Wrote report to %s", args.output)
    else:
        print(text)


if __name__ == "__main__":  # pragma: no cover
    main()
