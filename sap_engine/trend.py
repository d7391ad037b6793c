"""Trend detection for a sap metric across several sample dates."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping

import pandas as pd

from .constants import NEW_LEAF
from .utils import parse_number

__all__ = [
    "TrendResult",
    "STABLE_CHANGE_PCT",
    "parse_sample_date",
    "evaluate_trend",
    "trend_table_df",
]

# Percent change at or below which a series counts as stable
STABLE_CHANGE_PCT = 10.0


@dataclass(slots=True)
class TrendResult:
    """Direction and magnitude of change for one metric."""

    trend: str
    change: float = 0.0
    slope: float | None = None
    values: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


INSUFFICIENT = "insufficient"


def parse_sample_date(value: Any) -> date | None:
    """Return ``value`` as a :class:`date` or ``None`` if it cannot be parsed."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _sample_date(sample: Mapping[str, Any]) -> Any:
    return sample.get("sample_date") or sample.get("date")


def _ols_slope(values: List[float]) -> float:
    """Return the least squares slope of ``values`` against their index."""

    n = len(values)
    x_mean = (n - 1) / 2
    y_mean = sum(values) / n
    numerator = 0.0
    denominator = 0.0
    for i, value in enumerate(values):
        numerator += (i - x_mean) * (value - y_mean)
        denominator += (i - x_mean) ** 2
    return numerator / denominator if denominator != 0 else 0.0


def evaluate_trend(
    sample_dates: Iterable[Mapping[str, Any]] | None,
    nutrient: str,
    tissue: str = NEW_LEAF,
) -> TrendResult:
    """Return the trend of ``nutrient`` in ``tissue`` over ``sample_dates``.

    Samples are ordered by date and those without a parseable date or a
    numeric value are skipped. ``change`` is the percent change from the
    first to the last point (0 when the first value is 0) and decides the
    direction: within +/-10% the series is ``stable``. ``slope`` is the
    least squares slope per sample step. Fewer than two usable points give an
    ``insufficient`` result.
    """

    points: List[tuple[date, float]] = []
    for sample in sample_dates or ():
        if not isinstance(sample, Mapping):
            continue
        when = parse_sample_date(_sample_date(sample))
        leaf = sample.get(tissue)
        value = parse_number(leaf.get(nutrient)) if isinstance(leaf, Mapping) else None
        if when is None or value is None:
            continue
        points.append((when, value))

    if len(points) < 2:
        return TrendResult(INSUFFICIENT, 0.0, None, [])

    points.sort(key=lambda p: p[0])
    series = [v for _, v in points]
    slope = _ols_slope(series)
    first, last = series[0], series[-1]
    change = (last - first) / first * 100 if first != 0 else 0.0

    trend = "stable"
    if abs(change) > STABLE_CHANGE_PCT:
        trend = "up" if change > 0 else "down"

    return TrendResult(
        trend,
        change,
        slope,
        [{"date": when.isoformat(), "value": value} for when, value in points],
    )


def trend_table_df(
    sample_dates: Iterable[Mapping[str, Any]],
    nutrients: Iterable[str],
    tissue: str = NEW_LEAF,
) -> "pd.DataFrame":
    """Return the trend of each nutrient as a :class:`pandas.DataFrame`.

    The frame is indexed by nutrient with ``trend``, ``change``, ``slope``,
    ``first``, ``last`` and ``points`` columns.
    """

    samples = list(sample_dates)
    rows = []
    for nutrient in nutrients:
        result = evaluate_trend(samples, nutrient, tissue)
        values = [p["value"] for p in result.values]
        rows.append(
            {
                "nutrient": nutrient,
                "trend": result.trend,
                "change": result.change,
                "slope": result.slope,
                "first": values[0] if values else None,
                "last": values[-1] if values else None,
                "points": len(values),
            }
        )
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows).set_index("nutrient")
