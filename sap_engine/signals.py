"""New-leaf versus old-leaf comparison helpers.

Sap from young growth and from mature leaves of the same plant tells
different stories. A nutrient that is low in both tissues points to a supply
problem, while one that is low only in new growth points to a transport
limit. :func:`get_leaf_signal` names these patterns and :func:`compute_delta`
quantifies the gap between the two readings.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .constants import STATUS_OK, STATUS_UNKNOWN
from .status import StatusResult
from .utils import parse_number

__all__ = [
    "Delta",
    "LeafSignal",
    "compute_delta",
    "get_leaf_signal",
    "classify_delta_concern",
]


@dataclass(frozen=True, slots=True)
class Delta:
    """Difference between the new leaf and old leaf value."""

    delta: float | None = None
    delta_pct: float | None = None
    direction: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class LeafSignal:
    """Named interpretation of a joint new/old leaf pattern."""

    signal: str = ""
    color: str = "#94a3b8"
    description: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


SUPPLY_LOW = LeafSignal("SUPPLY LOW", "#dc2626", "Whole-plant deficiency - check root uptake")
EXCESS = LeafSignal("EXCESS", "#7c3aed", "Accumulation in both - reduce inputs or dilution issue")
NEW_LIMIT = LeafSignal("NEW LIMIT", "#f59e0b", "Transport to new growth limited - check mobility")
REMOB = LeafSignal("REMOB", "#0891b2", "Remobilizing from old leaves - normal or stress response")
NEW_BUILD = LeafSignal("NEW BUILD", "#8b5cf6", "Accumulating in new growth")
OLD_BUILD = LeafSignal("OLD BUILD", "#6366f1", "Stored in old tissue")
NO_SIGNAL = LeafSignal()

EMPTY_DELTA = Delta()


def compute_delta(new_value: Any, old_value: Any) -> Delta:
    """Return the new-minus-old difference of two leaf readings.

    ``delta_pct`` is relative to the old leaf; when the old value is zero it
    saturates at ``+100``/``-100`` (or ``0`` for no change). Any missing
    reading yields an all-``None`` delta.
    """

    new = parse_number(new_value)
    old = parse_number(old_value)
    if new is None or old is None:
        return EMPTY_DELTA

    delta = new - old
    if old != 0:
        delta_pct = delta / old * 100
    else:
        delta_pct = 100.0 if delta > 0 else (-100.0 if delta < 0 else 0.0)
    direction = "up" if delta > 0 else ("down" if delta < 0 else "none")
    return Delta(delta, delta_pct, direction)


def _flags(status: StatusResult | None) -> tuple[bool, bool, bool]:
    if status is None:
        return False, False, True
    return (
        status.direction == "low",
        status.direction == "high",
        status.status in (STATUS_OK, STATUS_UNKNOWN),
    )


def get_leaf_signal(
    new_status: StatusResult | None, old_status: StatusResult | None
) -> LeafSignal:
    """Return the signal describing the new/old status pair.

    Rules are evaluated in a fixed order and the first match wins, so a
    nutrient low in both leaves is always ``SUPPLY LOW`` even though the
    ``NEW LIMIT`` rule would also accept it.
    """

    new_low, new_high, new_ok = _flags(new_status)
    old_low, old_high, old_ok = _flags(old_status)

    if new_low and old_low:
        return SUPPLY_LOW
    if new_high and old_high:
        return EXCESS
    if new_low and (old_ok or old_high):
        return NEW_LIMIT
    if (new_ok or new_high) and old_low:
        return REMOB
    if new_high and old_ok:
        return NEW_BUILD
    if new_ok and old_high:
        return OLD_BUILD
    return NO_SIGNAL


def classify_delta_concern(metric_id: str, delta: Delta | None, ruleset: Any) -> Dict[str, Any]:
    """Return whether a leaf delta exceeds the ruleset's concern band.

    Delta bands are keyed by nutrient mobility. The result holds the
    ``mobility`` (``None`` when the nutrient has no band) and ``concern``:
    ``low`` when the new leaf trails the old one by more than the band allows,
    ``high`` when it leads by more, otherwise ``None``.
    """

    lookup = getattr(ruleset, "get_delta_threshold", None)
    band = lookup(metric_id) if callable(lookup) else None
    mobility_lookup = getattr(ruleset, "get_nutrient_mobility", None)
    mobility = mobility_lookup(metric_id) if band and callable(mobility_lookup) else None

    concern = None
    if band and delta is not None and delta.delta_pct is not None:
        if delta.delta_pct < band["concern_low"]:
            concern = "low"
        elif delta.delta_pct > band["concern_high"]:
            concern = "high"
    return {"mobility": mobility, "concern": concern}
