"""Reshape evaluation results into grouped rows and drill-down payloads.

These helpers only rearrange data already produced by
:func:`sap_engine.evaluation.evaluate_status`; they carry no display logic and
can feed any front end.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping

from .constants import (
    DEFAULT_CROP,
    LEAF_LABELS,
    STATUS_UNKNOWN,
    TISSUES,
    NEW_LEAF,
    OLD_LEAF,
    format_nutrient_name,
    tissue_for_leaf,
)
from .evaluation import EvaluationResult
from .ratios import get_ratio_defs, is_ratio
from .ruleset import Threshold, default_ruleset
from .signals import Delta, LeafSignal, classify_delta_concern, compute_delta
from .status import StatusResult
from .systems import lookup_threshold, metric_values
from .utils import parse_number

__all__ = [
    "TableRow",
    "RowGroup",
    "RATIO_VIEW",
    "build_table_rows",
    "sort_rows_by_severity",
    "group_nutrients",
    "get_explanation",
    "get_signal_explanation",
]

RATIO_VIEW = "ratios"

UNKNOWN_STATUS = StatusResult(STATUS_UNKNOWN, 0, "No data", None)


@dataclass(slots=True)
class TableRow:
    """One metric compared across both leaves."""

    key: str
    label: str
    new_value: float | None
    old_value: float | None
    new_status: StatusResult
    old_status: StatusResult
    delta: Delta
    leaf_signal: LeafSignal
    is_ratio: bool

    @property
    def max_severity(self) -> int:
        return max(self.new_status.severity, self.old_status.severity)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class RowGroup:
    """Rows sharing a nutrient category."""

    group: str
    name: str
    rows: List[TableRow]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _status(evaluation: EvaluationResult, tissue: str, metric_id: str) -> StatusResult:
    return evaluation.per_nutrient_status.get(tissue, {}).get(metric_id) or UNKNOWN_STATUS


def _leaf(sample_date: Mapping[str, Any] | None, tissue: str) -> Mapping[str, Any]:
    values = (sample_date or {}).get(tissue)
    return values if isinstance(values, Mapping) else {}


def _ratio_rows(evaluation: EvaluationResult) -> List[TableRow]:
    rows: List[TableRow] = []
    for definition in get_ratio_defs():
        new_value = evaluation.derived.get(NEW_LEAF, {}).get(definition.id)
        old_value = evaluation.derived.get(OLD_LEAF, {}).get(definition.id)
        if new_value is None and old_value is None:
            continue
        rows.append(
            TableRow(
                key=definition.id,
                label=definition.label,
                new_value=new_value,
                old_value=old_value,
                new_status=_status(evaluation, NEW_LEAF, definition.id),
                old_status=_status(evaluation, OLD_LEAF, definition.id),
                delta=compute_delta(new_value, old_value),
                leaf_signal=evaluation.leaf_signals.get(definition.id) or LeafSignal(),
                is_ratio=True,
            )
        )
    return rows


def build_table_rows(
    view_mode: str,
    sample_date: Mapping[str, Any],
    evaluation: EvaluationResult,
    ruleset: Any = None,
) -> List[RowGroup]:
    """Return grouped comparison rows for a sample date.

    In ``ratios`` mode a single ``Calculated Ratios`` group lists every ratio
    present in either leaf. Any other mode lists the nutrients present in the
    sample under the ruleset's nutrient groups, in configured order; empty
    groups are left out.
    """

    if view_mode == RATIO_VIEW:
        return [RowGroup(RATIO_VIEW, "Calculated Ratios", _ratio_rows(evaluation))]

    rules = ruleset if ruleset is not None else default_ruleset()
    present = set(_leaf(sample_date, NEW_LEAF)) | set(_leaf(sample_date, OLD_LEAF))
    group_defs = getattr(rules, "nutrient_groups", None) or {}
    group_names = getattr(rules, "group_names", None) or {}

    groups: List[RowGroup] = []
    for group_key, members in group_defs.items():
        nutrients = [n for n in members if n in present]
        if not nutrients:
            continue
        rows = [
            TableRow(
                key=nutrient,
                label=format_nutrient_name(nutrient),
                new_value=parse_number(_leaf(sample_date, NEW_LEAF).get(nutrient)),
                old_value=parse_number(_leaf(sample_date, OLD_LEAF).get(nutrient)),
                new_status=_status(evaluation, NEW_LEAF, nutrient),
                old_status=_status(evaluation, OLD_LEAF, nutrient),
                delta=evaluation.deltas.get(nutrient) or Delta(),
                leaf_signal=evaluation.leaf_signals.get(nutrient) or LeafSignal(),
                is_ratio=False,
            )
            for nutrient in nutrients
        ]
        groups.append(RowGroup(group_key, group_names.get(group_key, group_key), rows))
    return groups


def sort_rows_by_severity(rows: Iterable[TableRow]) -> List[TableRow]:
    """Return ``rows`` ordered by their worse leaf severity, highest first."""
    return sorted(rows, key=lambda r: r.max_severity, reverse=True)


def group_nutrients(nutrients: Iterable[str], ruleset: Any = None) -> List[Dict[str, Any]]:
    """Return ``nutrients`` split into the ruleset's display groups.

    Nutrients not covered by any group are collected in a trailing
    ``ungrouped`` group named ``Other``.
    """

    rules = ruleset if ruleset is not None else default_ruleset()
    available = list(dict.fromkeys(nutrients))
    group_defs = getattr(rules, "nutrient_groups", None) or {}
    group_names = getattr(rules, "group_names", None) or {}

    result: List[Dict[str, Any]] = []
    included: set[str] = set()
    for group_key, members in group_defs.items():
        filtered = [n for n in members if n in available]
        if filtered:
            result.append(
                {"group": group_key, "name": group_names.get(group_key, group_key), "nutrients": filtered}
            )
            included.update(filtered)

    ungrouped = [n for n in available if n not in included]
    if ungrouped:
        result.append({"group": "ungrouped", "name": "Other", "nutrients": ungrouped})
    return result


def _metric_delta(
    evaluation: EvaluationResult, metric_id: str, values: Mapping[str, float | None]
) -> Delta | None:
    delta = evaluation.deltas.get(metric_id)
    if delta is None and is_ratio(metric_id):
        delta = compute_delta(values["new"], values["old"])
    return delta


def _threshold_dict(threshold: Any) -> Dict[str, float] | None:
    band = Threshold.from_mapping(threshold)
    return band.as_dict() if band else None


def get_explanation(
    evaluation: EvaluationResult,
    metric_id: str,
    leaf: str,
    sample_date: Mapping[str, Any] | None,
    ruleset: Any = None,
    crop: str | None = None,
) -> Dict[str, Any]:
    """Return the drill-down payload for one metric in one leaf.

    ``leaf`` is ``new`` or ``old`` (tissue keys are accepted too).
    """

    rules = ruleset if ruleset is not None else default_ruleset()
    tissue = tissue_for_leaf(leaf)
    values = metric_values(evaluation, metric_id, sample_date)
    delta = _metric_delta(evaluation, metric_id, values)
    threshold = lookup_threshold(rules, crop or DEFAULT_CROP, tissue, metric_id)
    status = evaluation.per_nutrient_status.get(tissue, {}).get(metric_id)
    signal = evaluation.leaf_signals.get(metric_id)

    return {
        "metric_id": metric_id,
        "metric_label": format_nutrient_name(metric_id),
        "leaf": LEAF_LABELS[tissue],
        "value": values[LEAF_LABELS[tissue]],
        "values": values,
        "status": (status or UNKNOWN_STATUS).as_dict(),
        "threshold": _threshold_dict(threshold),
        "delta": delta.as_dict() if delta else None,
        "delta_concern": classify_delta_concern(metric_id, delta, rules),
        "signal": signal.as_dict() if signal else None,
        "is_ratio": is_ratio(metric_id),
        "ruleset_version": getattr(rules, "version", None) or "v1",
    }


def get_signal_explanation(
    evaluation: EvaluationResult,
    metric_id: str,
    sample_date: Mapping[str, Any] | None,
) -> Dict[str, Any]:
    """Return the payload explaining the leaf signal of ``metric_id``."""

    signal = evaluation.leaf_signals.get(metric_id) or LeafSignal()
    values = metric_values(evaluation, metric_id, sample_date)
    delta = _metric_delta(evaluation, metric_id, values)
    statuses = {
        LEAF_LABELS[t]: evaluation.per_nutrient_status.get(t, {}).get(metric_id)
        for t in TISSUES
    }
    return {
        "metric_id": metric_id,
        "metric_label": format_nutrient_name(metric_id),
        "signal": signal.as_dict(),
        "delta": delta.as_dict() if delta else None,
        "values": values,
        "new_status": statuses["new"].as_dict() if statuses["new"] else None,
        "old_status": statuses["old"].as_dict() if statuses["old"] else None,
        "interpretation": signal.description or "No pattern detected",
    }
