"""Pair flat lab records into new/old leaf sample dates."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping

from .constants import NEW_LEAF, OLD_LEAF, SAP_NUTRIENTS
from .trend import parse_sample_date
from .utils import parse_number

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "extract_nutrients",
    "build_sample_dates",
    "latest_sample_date",
]

_NEW_AGES = {"new", "new leaf"}
_OLD_AGES = {"old", "old leaf"}


def extract_nutrients(record: Mapping[str, Any]) -> Dict[str, float]:
    """Return the numeric sap measurements found on ``record``."""

    nutrients: Dict[str, float] = {}
    for key in SAP_NUTRIENTS:
        value = parse_number(record.get(key))
        if value is not None:
            nutrients[key] = value
    return nutrients


def build_sample_dates(records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Return one sample date per ``LabDate`` with both leaves attached.

    ``LeafAge`` decides the tissue. Records without a recognised leaf age
    fill the new leaf first and then the old leaf; further records for the
    same date are dropped. The result is sorted by date, oldest first, with
    unparseable dates last.
    """

    by_date: Dict[str, Dict[str, Any]] = {}
    for record in records:
        if not isinstance(record, Mapping):
            continue
        lab_date = str(record.get("LabDate") or "")
        sample = by_date.setdefault(
            lab_date,
            {
                "sample_date": lab_date,
                "growth_stage": record.get("GrowthStage") or "",
                "plant_type": record.get("PlantType") or "Corn",
                "variety": record.get("Variety") or "",
                NEW_LEAF: None,
                OLD_LEAF: None,
            },
        )

        nutrients = extract_nutrients(record)
        leaf_age = str(record.get("LeafAge") or "").strip().lower()
        if leaf_age in _NEW_AGES:
            sample[NEW_LEAF] = nutrients
        elif leaf_age in _OLD_AGES:
            sample[OLD_LEAF] = nutrients
        elif sample[NEW_LEAF] is None:
            sample[NEW_LEAF] = nutrients
        elif sample[OLD_LEAF] is None:
            sample[OLD_LEAF] = nutrients
        else:
            _LOGGER.debug("Dropping extra record without leaf age for %s", lab_date)

    def _order(sample: Mapping[str, Any]) -> tuple[bool, date]:
        when = parse_sample_date(sample["sample_date"])
        return (when is None, when or date.min)

    return sorted(by_date.values(), key=_order)


def latest_sample_date(sample_dates: Iterable[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    """Return the most recent sample date or ``None`` when there is none."""

    dated = []
    for sample in sample_dates:
        when = parse_sample_date(sample.get("sample_date") or sample.get("date"))
        if when is not None:
            dated.append((when, sample))
    if not dated:
        return None
    return max(dated, key=lambda item: item[0])[1]
