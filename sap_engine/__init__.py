"""Plant sap analysis engine.

Classifies new-leaf and old-leaf sap readings against crop reference bands,
compares the two tissues and summarises the findings per physiological
system.
"""

from __future__ import annotations

from . import constants, utils
from .evaluation import EvaluationResult, evaluate_batch, evaluate_status
from .ratios import RatioDefinition, compute_derived_metrics, get_ratio_defs, is_ratio
from .rows import (
    build_table_rows,
    get_explanation,
    get_signal_explanation,
    group_nutrients,
    sort_rows_by_severity,
)
from .ruleset import Ruleset, Threshold, default_ruleset, list_rulesets, load_ruleset
from .samples import build_sample_dates, latest_sample_date
from .signals import (
    Delta,
    LeafSignal,
    classify_delta_concern,
    compute_delta,
    get_leaf_signal,
)
from .status import StatusResult, evaluate_nutrient_status
from .systems import Issue, SystemStatus, build_system_status, rank_systems
from .trend import TrendResult, evaluate_trend, trend_table_df

__all__ = [
    "constants",
    "utils",
    "EvaluationResult",
    "evaluate_status",
    "evaluate_batch",
    "RatioDefinition",
    "compute_derived_metrics",
    "get_ratio_defs",
    "is_ratio",
    "build_table_rows",
    "sort_rows_by_severity",
    "group_nutrients",
    "get_explanation",
    "get_signal_explanation",
    "Ruleset",
    "Threshold",
    "load_ruleset",
    "list_rulesets",
    "default_ruleset",
    "build_sample_dates",
    "latest_sample_date",
    "Delta",
    "LeafSignal",
    "compute_delta",
    "get_leaf_signal",
    "classify_delta_concern",
    "StatusResult",
    "evaluate_nutrient_status",
    "Issue",
    "SystemStatus",
    "build_system_status",
    "rank_systems",
    "TrendResult",
    "evaluate_trend",
    "trend_table_df",
]
