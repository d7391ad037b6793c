"""Evaluate a paired new/old leaf sap sample end to end.

The evaluation runs leaf-first: ratios are derived for each tissue, every
value and ratio is classified against the ruleset, the two tissues are
compared metric by metric and finally the findings are rolled up into system
verdicts. Nothing is cached between calls; the same sample and ruleset always
yield the same :class:`EvaluationResult`.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from .constants import DEFAULT_CROP, NEW_LEAF, OLD_LEAF, TISSUES
from .ratios import compute_derived_metrics, get_ratio_defs
from .ruleset import default_ruleset
from .signals import Delta, LeafSignal, compute_delta, get_leaf_signal
from .status import StatusResult, evaluate_nutrient_status
from .systems import SystemStatus, build_system_status, lookup_threshold
from .utils import parse_leaf

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "EvaluationResult",
    "evaluate_status",
    "evaluate_batch",
]


@dataclass
class EvaluationResult:
    """Structured result of :func:`evaluate_status`."""

    per_nutrient_status: Dict[str, Dict[str, StatusResult]] = field(
        default_factory=lambda: {t: {} for t in TISSUES}
    )
    deltas: Dict[str, Delta] = field(default_factory=dict)
    leaf_signals: Dict[str, LeafSignal] = field(default_factory=dict)
    system_status: Dict[str, SystemStatus] = field(default_factory=dict)
    derived: Dict[str, Dict[str, float]] = field(
        default_factory=lambda: {t: {} for t in TISSUES}
    )

    def as_dict(self) -> Dict[str, Any]:
        """Return the result as a JSON serializable dictionary."""
        return asdict(self)


def _leaf(sample_date: Mapping[str, Any], tissue: str) -> Mapping[str, Any]:
    values = sample_date.get(tissue) if isinstance(sample_date, Mapping) else None
    return values if isinstance(values, Mapping) else {}


def evaluate_status(
    sample_date: Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
    ruleset: Any = None,
) -> EvaluationResult:
    """Return the full evaluation of one sample date.

    Parameters
    ----------
    sample_date : Mapping
        ``{"new_leaf": {...}, "old_leaf": {...}}``; non-numeric values are
        ignored.
    context : Mapping, optional
        ``{"crop": ..., "growth_stage": ...}``. The crop defaults to ``corn``.
    ruleset : object, optional
        Threshold provider exposing ``get_threshold`` and
        ``get_ratio_threshold``. Defaults to the packaged ``v1`` ruleset.
    """

    rules = ruleset if ruleset is not None else default_ruleset()
    crop = (context or {}).get("crop") or DEFAULT_CROP

    result = EvaluationResult(derived=compute_derived_metrics(sample_date))
    leaves = {tissue: parse_leaf(_leaf(sample_date, tissue)) for tissue in TISSUES}

    for tissue in TISSUES:
        statuses = result.per_nutrient_status[tissue]
        for nutrient, value in leaves[tissue].items():
            threshold = lookup_threshold(rules, crop, tissue, nutrient)
            statuses[nutrient] = evaluate_nutrient_status(value, threshold)

        for ratio_id, value in result.derived[tissue].items():
            threshold = lookup_threshold(rules, crop, tissue, ratio_id)
            if threshold is not None:
                statuses[ratio_id] = evaluate_nutrient_status(value, threshold)

    new_status = result.per_nutrient_status[NEW_LEAF]
    old_status = result.per_nutrient_status[OLD_LEAF]

    nutrients = list(_leaf(sample_date, NEW_LEAF))
    nutrients += [n for n in _leaf(sample_date, OLD_LEAF) if n not in nutrients]
    for nutrient in nutrients:
        result.deltas[nutrient] = compute_delta(
            leaves[NEW_LEAF].get(nutrient), leaves[OLD_LEAF].get(nutrient)
        )
        result.leaf_signals[nutrient] = get_leaf_signal(
            new_status.get(nutrient), old_status.get(nutrient)
        )

    for definition in get_ratio_defs():
        new_st = new_status.get(definition.id)
        old_st = old_status.get(definition.id)
        if new_st or old_st:
            result.leaf_signals[definition.id] = get_leaf_signal(new_st, old_st)

    result.system_status = build_system_status(result, rules, crop, sample_date)
    return result


def evaluate_batch(
    sample_dates: Iterable[Mapping[str, Any]],
    context: Mapping[str, Any] | None = None,
    ruleset: Any = None,
    *,
    workers: int | None = None,
) -> List[EvaluationResult]:
    """Evaluate many sample dates and return results in input order.

    Evaluations are independent, so with ``workers`` greater than one they
    are spread over a thread pool. ``workers=0`` picks a pool size from the
    CPU count.
    """

    samples = list(sample_dates)
    rules = ruleset if ruleset is not None else default_ruleset()
    if workers == 0:
        workers = min(32, (os.cpu_count() or 1))

    _LOGGER.debug("Evaluating %d sample dates with %s workers", len(samples), workers or 1)
    if not workers or workers <= 1 or len(samples) <= 1:
        return [evaluate_status(s, context, rules) for s in samples]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda s: evaluate_status(s, context, rules), samples))
