"""Derived sap ratios computed independently for each leaf tissue."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Tuple

from .constants import TISSUES
from .utils import parse_leaf

__all__ = [
    "RatioDefinition",
    "RATIO_DEFS",
    "RATIO_IDS",
    "get_ratio_defs",
    "is_ratio",
    "compute_ratio",
    "compute_derived_metrics",
]


@dataclass(frozen=True, slots=True)
class RatioDefinition:
    """A named ratio of one leaf's nutrient concentrations.

    ``inputs`` must all be present and non-zero for the ratio to resolve and
    every term in ``denominators`` must be positive.
    """

    id: str
    label: str
    inputs: Tuple[str, ...]
    denominators: Tuple[str, ...]
    compute: Callable[[Mapping[str, float]], float]


RATIO_DEFS: Tuple[RatioDefinition, ...] = (
    RatioDefinition(
        "K_Ca", "K:Ca", ("Potassium", "Calcium"), ("Calcium",),
        lambda leaf: leaf["Potassium"] / leaf["Calcium"],
    ),
    RatioDefinition(
        "K_Mg", "K:Mg", ("Potassium", "Magnesium"), ("Magnesium",),
        lambda leaf: leaf["Potassium"] / leaf["Magnesium"],
    ),
    RatioDefinition(
        "K_over_CaMg",
        "K/(Ca+Mg)",
        ("Potassium", "Calcium", "Magnesium"),
        ("Calcium", "Magnesium"),
        lambda leaf: leaf["Potassium"] / (leaf["Calcium"] + leaf["Magnesium"]),
    ),
    RatioDefinition(
        "NO3_NH4", "NO₃:NH₄", ("Nitrogen_NO3", "Nitrogen_NH4"), ("Nitrogen_NH4",),
        lambda leaf: leaf["Nitrogen_NO3"] / leaf["Nitrogen_NH4"],
    ),
    RatioDefinition(
        "Ca_Mg", "Ca:Mg", ("Calcium", "Magnesium"), ("Magnesium",),
        lambda leaf: leaf["Calcium"] / leaf["Magnesium"],
    ),
    # Sugars are reported in % and K in ppm, hence the scaling
    RatioDefinition(
        "Sugar_K", "Sugar:K", ("Sugars", "Potassium"), ("Potassium",),
        lambda leaf: (leaf["Sugars"] * 1000) / leaf["Potassium"],
    ),
)

RATIO_IDS = frozenset(d.id for d in RATIO_DEFS)


def get_ratio_defs() -> Tuple[RatioDefinition, ...]:
    """Return the configured ratio definitions in display order."""
    return RATIO_DEFS


def is_ratio(metric_id: str) -> bool:
    """Return ``True`` if ``metric_id`` names a derived ratio."""
    return metric_id in RATIO_IDS


def compute_ratio(definition: RatioDefinition, leaf: Mapping[str, float]) -> float | None:
    """Return ``definition`` evaluated on a parsed leaf or ``None``."""

    if any(name not in leaf for name in definition.inputs):
        return None
    # A zero reading counts as not measured
    if any(leaf[name] == 0 for name in definition.inputs):
        return None
    if any(leaf[name] <= 0 for name in definition.denominators):
        return None
    return float(definition.compute(leaf))


def compute_derived_metrics(sample_date: Mapping[str, Any]) -> Dict[str, Dict[str, float]]:
    """Return ``{tissue: {ratio_id: value}}`` for both leaves of a sample.

    Only ratios whose inputs are numeric and non-zero and whose denominator
    terms are all positive appear in the result.
    """

    result: Dict[str, Dict[str, float]] = {}
    for tissue in TISSUES:
        leaf = parse_leaf(sample_date.get(tissue) if isinstance(sample_date, Mapping) else None)
        ratios: Dict[str, float] = {}
        for definition in RATIO_DEFS:
            value = compute_ratio(definition, leaf)
            if value is not None:
                ratios[definition.id] = value
        result[tissue] = ratios
    return result
