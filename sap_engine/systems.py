"""Roll per-nutrient findings into physiological system verdicts."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Tuple

from .constants import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MED,
    CONFIDENCE_MULTIPLIERS,
    DEFAULT_SYSTEM_GROUPS,
    DEFAULT_SYSTEM_IMPORTANCE,
    LEAF_LABELS,
    STATUS_ACTION,
    STATUS_OK,
    STATUS_WATCH,
    SYSTEM_IMPORTANCE,
    TISSUES,
    format_nutrient_name,
)
from .ratios import is_ratio
from .ruleset import Threshold
from .status import is_issue
from .utils import parse_number

if TYPE_CHECKING:  # pragma: no cover
    from .evaluation import EvaluationResult

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "Issue",
    "SystemStatus",
    "build_system_status",
    "rank_systems",
    "lookup_threshold",
    "metric_values",
]


@dataclass(slots=True)
class Issue:
    """A non-optimal reading for one metric in one leaf."""

    id: str
    metric_id: str
    system: str
    leaf: str
    status: str
    severity: int
    label: str
    values: Dict[str, float | None]
    reason: str
    direction: str | None
    threshold: Dict[str, float] | None
    is_ratio: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class SystemStatus:
    """Summary verdict for one physiological system."""

    status: str = STATUS_OK
    reason: str = ""
    confidence: str = CONFIDENCE_HIGH
    issues: List[Issue] = field(default_factory=list)
    max_severity: int = 0
    score: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def lookup_threshold(ruleset: Any, crop: str | None, tissue: str, metric_id: str):
    """Return the band for ``metric_id`` or ``None`` if the ruleset has none.

    Rulesets lacking the relevant lookup method are treated as defining no
    thresholds at all.
    """

    if is_ratio(metric_id):
        lookup = getattr(ruleset, "get_ratio_threshold", None)
        if not callable(lookup):
            _LOGGER.debug("Ruleset has no ratio thresholds; %s unbounded", metric_id)
            return None
        return lookup(metric_id)
    lookup = getattr(ruleset, "get_threshold", None)
    if not callable(lookup):
        _LOGGER.debug("Ruleset has no nutrient thresholds; %s unbounded", metric_id)
        return None
    return lookup(crop, tissue, metric_id)


def metric_values(
    evaluation: "EvaluationResult", metric_id: str, sample_date: Mapping[str, Any] | None
) -> Dict[str, float | None]:
    """Return ``{"new": value, "old": value}`` for a nutrient or ratio."""

    values: Dict[str, float | None] = {}
    for tissue in TISSUES:
        if is_ratio(metric_id):
            value = evaluation.derived.get(tissue, {}).get(metric_id)
        else:
            leaf = (sample_date or {}).get(tissue)
            value = parse_number(leaf.get(metric_id)) if isinstance(leaf, Mapping) else None
        values[LEAF_LABELS[tissue]] = value
    return values


def _threshold_dict(threshold: Any) -> Dict[str, float] | None:
    band = Threshold.from_mapping(threshold)
    return band.as_dict() if band else None


def _system_groups(ruleset: Any) -> Mapping[str, List[str]]:
    groups = getattr(ruleset, "system_groups", None)
    if isinstance(groups, Mapping) and groups:
        return groups
    return DEFAULT_SYSTEM_GROUPS


def _importance(ruleset: Any, system: str) -> float:
    lookup = getattr(ruleset, "importance", None)
    if callable(lookup):
        return lookup(system)
    weights = getattr(ruleset, "system_importance", None)
    if not isinstance(weights, Mapping):
        weights = SYSTEM_IMPORTANCE
    weight = parse_number(weights.get(system))
    return DEFAULT_SYSTEM_IMPORTANCE if weight is None else weight


def _summarize(
    issues: List[Issue],
    max_severity: int,
    agreement_count: int,
    importance: float,
) -> SystemStatus:
    if any(i.status == STATUS_ACTION for i in issues):
        status = STATUS_ACTION
    elif issues:
        status = STATUS_WATCH
    else:
        status = STATUS_OK

    if not issues:
        confidence = CONFIDENCE_HIGH
    elif agreement_count > 0 or len(issues) >= 2:
        confidence = CONFIDENCE_MED
    else:
        confidence = CONFIDENCE_LOW

    score = max_severity * CONFIDENCE_MULTIPLIERS[confidence] * importance

    if not issues:
        reason = "All values in range"
    else:
        issues = sorted(issues, key=lambda i: i.severity, reverse=True)
        top = issues[0]
        word = "low" if top.direction == "low" else "high"
        reason = f"{format_nutrient_name(top.metric_id)} {word}"
        if len(issues) > 1:
            reason += f" (+{len(issues) - 1} more)"

    return SystemStatus(status, reason, confidence, issues, max_severity, score)


def build_system_status(
    evaluation: "EvaluationResult",
    ruleset: Any,
    crop: str | None,
    sample_date: Mapping[str, Any] | None,
) -> Dict[str, SystemStatus]:
    """Return a :class:`SystemStatus` for each configured system group.

    Every Watch/Action reading of a member metric becomes an :class:`Issue`.
    The verdict takes the worst issue status. Confidence is ``High`` with no
    issues, ``Med`` when both leaves agree on a problem or several issues
    exist, otherwise ``Low``. The score used for ranking is
    ``max_severity * confidence multiplier * system importance``.
    """

    result: Dict[str, SystemStatus] = {}
    for system, members in _system_groups(ruleset).items():
        issues: List[Issue] = []
        max_severity = 0
        agreement_count = 0

        for metric_id in members:
            ratio = is_ratio(metric_id)
            values = metric_values(evaluation, metric_id, sample_date)
            statuses = {
                tissue: evaluation.per_nutrient_status.get(tissue, {}).get(metric_id)
                for tissue in TISSUES
            }

            for tissue, status in statuses.items():
                if not is_issue(status):
                    continue
                leaf = LEAF_LABELS[tissue]
                name = format_nutrient_name(metric_id)
                reason = status.reason.lower()
                issues.append(
                    Issue(
                        id=f"{metric_id}_{leaf}_{status.direction or 'issue'}",
                        metric_id=metric_id,
                        system=system,
                        leaf=leaf,
                        status=status.status,
                        severity=status.severity,
                        label=f"{name} {reason} ({leaf} leaf)",
                        values=dict(values),
                        reason=f"{leaf.capitalize()} leaf {name} is {reason}",
                        direction=status.direction,
                        threshold=_threshold_dict(
                            lookup_threshold(ruleset, crop, tissue, metric_id)
                        ),
                        is_ratio=ratio,
                    )
                )
                max_severity = max(max_severity, status.severity)

            new_status, old_status = (statuses[t] for t in TISSUES)
            if (
                is_issue(new_status)
                and old_status is not None
                and new_status.status == old_status.status
            ):
                agreement_count += 1

        result[system] = _summarize(
            issues, max_severity, agreement_count, _importance(ruleset, system)
        )
    return result


def rank_systems(system_status: Mapping[str, SystemStatus]) -> List[Tuple[str, SystemStatus]]:
    """Return systems ordered by score, then maximum severity, highest first."""

    return sorted(
        system_status.items(),
        key=lambda item: (item[1].score, item[1].max_severity),
        reverse=True,
    )
