"""Classify a single sap value against its reference band."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from .constants import STATUS_ACTION, STATUS_OK, STATUS_UNKNOWN, STATUS_WATCH
from .ruleset import Threshold
from .utils import parse_number, round_half_up

__all__ = [
    "StatusResult",
    "MAX_SEVERITY",
    "WATCH_MAX_SEVERITY",
    "evaluate_nutrient_status",
    "is_issue",
]

MAX_SEVERITY = 100
WATCH_MAX_SEVERITY = 50


@dataclass(frozen=True, slots=True)
class StatusResult:
    """Status judgement for one value.

    ``severity`` is 0 for ``OK`` and ``Unknown``; ``direction`` is ``low`` or
    ``high`` for out-of-band values and ``None`` otherwise.
    """

    status: str
    severity: int
    reason: str
    direction: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


NO_DATA = StatusResult(STATUS_UNKNOWN, 0, "No data", None)
NO_THRESHOLD = StatusResult(STATUS_OK, 0, "No threshold defined", None)
OPTIMAL = StatusResult(STATUS_OK, 0, "Optimal", None)


def _clamp(severity: int) -> int:
    return max(0, min(MAX_SEVERITY, severity))


def _action_severity(distance: float, reference: float) -> int:
    # A zero or negative reference leaves no scale to measure against
    if reference <= 0:
        return MAX_SEVERITY
    return _clamp(round_half_up(distance / reference * 100))


def _watch_severity(distance: float, width: float) -> int:
    if width <= 0:
        return WATCH_MAX_SEVERITY
    return _clamp(round_half_up(distance / width * WATCH_MAX_SEVERITY))


def evaluate_nutrient_status(value: Any, threshold: Threshold | Any) -> StatusResult:
    """Return the status of ``value`` relative to ``threshold``.

    Bands are checked outermost first: below ``low`` or above ``high`` is an
    ``Action``; between ``low`` and ``optimal_low`` (or ``optimal_high`` and
    ``high``) is a ``Watch``; anything else is ``OK``. Action severity is the
    relative distance past the outer bound in percent, capped at 100. Watch
    severity scales the distance into the watch band onto 0-50.

    Missing values give ``Unknown``; a missing or incomplete threshold gives
    ``OK`` so that unconfigured metrics never raise alarms.
    """

    number = parse_number(value)
    if number is None:
        return NO_DATA

    band = Threshold.from_mapping(threshold)
    if band is None:
        return NO_THRESHOLD

    if number < band.low:
        severity = _action_severity(band.low - number, band.low)
        return StatusResult(STATUS_ACTION, severity, "Very low", "low")

    if number < band.optimal_low:
        severity = _watch_severity(band.optimal_low - number, band.optimal_low - band.low)
        return StatusResult(STATUS_WATCH, severity, "Below optimal", "low")

    if number > band.high:
        severity = _action_severity(number - band.high, band.high)
        return StatusResult(STATUS_ACTION, severity, "Very high", "high")

    if number > band.optimal_high:
        severity = _watch_severity(number - band.optimal_high, band.high - band.optimal_high)
        return StatusResult(STATUS_WATCH, severity, "Above optimal", "high")

    return OPTIMAL


def is_issue(result: StatusResult | None) -> bool:
    """Return ``True`` for ``Watch`` and ``Action`` results."""
    return result is not None and result.status not in (STATUS_OK, STATUS_UNKNOWN)
