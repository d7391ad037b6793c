"""Threshold rulesets for sap status evaluation.

A ruleset bundles the reference bands for every crop, tissue and metric along
with the grouping tables used to summarise results. Rulesets are plain data
loaded from ``data/rulesets/<version>.json`` (or ``.yaml``) and passed into the
evaluation functions explicitly, so several versions can be used side by side.

Structure of ``thresholds``::

    {crop: {tissue: {metric: {low, optimal_low, optimal_high, high}}}}
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, Mapping

from .constants import (
    DEFAULT_CROP,
    DEFAULT_SYSTEM_GROUPS,
    DEFAULT_SYSTEM_IMPORTANCE,
    NEW_LEAF,
    SYSTEM_IMPORTANCE,
)
from .utils import list_dataset_files, load_dataset, normalize_key, parse_number

_LOGGER = logging.getLogger(__name__)

RULESET_DIR = "rulesets"
DEFAULT_VERSION = "v1"

__all__ = [
    "Threshold",
    "Ruleset",
    "load_ruleset",
    "list_rulesets",
    "default_ruleset",
]


@dataclass(frozen=True, slots=True)
class Threshold:
    """Reference band for one nutrient or ratio."""

    low: float
    optimal_low: float
    optimal_high: float
    high: float

    @classmethod
    def from_mapping(cls, data: Any) -> "Threshold | None":
        """Return a threshold built from ``data`` or ``None`` if unusable."""

        if isinstance(data, Threshold):
            return data
        if not isinstance(data, Mapping):
            return None
        values = {}
        for name in ("low", "optimal_low", "optimal_high", "high"):
            number = parse_number(data.get(name))
            if number is None:
                return None
            values[name] = number
        return cls(**values)

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class Ruleset:
    """Versioned threshold configuration consumed by the evaluator."""

    version: str = DEFAULT_VERSION
    name: str = ""
    description: str = ""
    thresholds: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)
    ratios: Dict[str, Any] = field(default_factory=dict)
    nutrient_groups: Dict[str, list[str]] = field(default_factory=dict)
    group_names: Dict[str, str] = field(default_factory=dict)
    system_groups: Dict[str, list[str]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_SYSTEM_GROUPS)
    )
    system_importance: Dict[str, float] = field(
        default_factory=lambda: dict(SYSTEM_IMPORTANCE)
    )
    delta_thresholds: Dict[str, Dict[str, Dict[str, float]]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Ruleset":
        """Return a ruleset from a parsed dataset mapping.

        Missing sections fall back to empty tables, except the system groups
        and importance weights which fall back to the built-in defaults.
        """

        data = copy.deepcopy(dict(data))
        thresholds = {
            normalize_key(crop): tissues
            for crop, tissues in (data.get("thresholds") or {}).items()
            if isinstance(tissues, Mapping)
        }
        importance = dict(SYSTEM_IMPORTANCE)
        for key, value in (data.get("system_importance") or {}).items():
            weight = parse_number(value)
            if weight is not None:
                importance[str(key)] = weight
        return cls(
            version=str(data.get("version") or DEFAULT_VERSION),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            thresholds=thresholds,
            ratios=dict(data.get("ratios") or {}),
            nutrient_groups=dict(data.get("nutrient_groups") or {}),
            group_names=dict(data.get("group_names") or {}),
            system_groups=dict(data.get("system_groups") or copy.deepcopy(DEFAULT_SYSTEM_GROUPS)),
            system_importance=importance,
            delta_thresholds=dict(data.get("delta_thresholds") or {}),
        )

    def get_threshold(self, crop: str | None, tissue: str, nutrient: str) -> Threshold | None:
        """Return the band for ``nutrient`` in ``tissue`` of ``crop``.

        Unknown crops use the ``corn`` table and unknown tissues the new leaf
        table. ``None`` is returned when no band is defined for the nutrient.
        """

        crop_data = self.thresholds.get(normalize_key(crop or DEFAULT_CROP))
        if crop_data is None:
            crop_data = self.thresholds.get(DEFAULT_CROP, {})
        tissue_data = crop_data.get(tissue)
        if tissue_data is None:
            tissue_data = crop_data.get(NEW_LEAF, {})
        return Threshold.from_mapping(tissue_data.get(nutrient))

    def get_ratio_threshold(self, ratio_id: str) -> Threshold | None:
        """Return the band for a derived ratio if one is configured."""
        return Threshold.from_mapping(self.ratios.get(ratio_id))

    def get_nutrient_mobility(self, metric_id: str) -> str | None:
        """Return ``mobile`` or ``immobile`` when delta bands exist for ``metric_id``."""
        for mobility, bands in self.delta_thresholds.items():
            if isinstance(bands, Mapping) and metric_id in bands:
                return str(mobility)
        return None

    def get_delta_threshold(self, metric_id: str) -> Dict[str, float] | None:
        """Return ``{concern_low, concern_high}`` percent bands for ``metric_id``."""
        mobility = self.get_nutrient_mobility(metric_id)
        if mobility is None:
            return None
        band = self.delta_thresholds[mobility][metric_id]
        low = parse_number(band.get("concern_low")) if isinstance(band, Mapping) else None
        high = parse_number(band.get("concern_high")) if isinstance(band, Mapping) else None
        if low is None or high is None:
            return None
        return {"concern_low": low, "concern_high": high}

    def importance(self, system: str) -> float:
        """Return the ranking weight for ``system``."""
        return self.system_importance.get(system, DEFAULT_SYSTEM_IMPORTANCE)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def list_rulesets() -> list[str]:
    """Return ruleset versions available in the dataset directories."""

    versions = {
        PurePosixPath(name).stem for name in list_dataset_files(RULESET_DIR)
    }
    return sorted(versions)


def load_ruleset(version: str = DEFAULT_VERSION) -> Ruleset:
    """Return the ruleset stored as ``rulesets/<version>.json`` or ``.yaml``.

    A :class:`KeyError` is raised when no file exists for ``version``.
    """

    for suffix in (".json", ".yaml", ".yml"):
        data = load_dataset(f"{RULESET_DIR}/{version}{suffix}")
        if data:
            _LOGGER.debug("Loaded ruleset %s%s", version, suffix)
            if not isinstance(data, Mapping):
                raise ValueError(f"Ruleset {version} is not a mapping")
            ruleset = Ruleset.from_mapping(data)
            if not data.get("version"):
                ruleset.version = version
            return ruleset
    raise KeyError(f"Unknown ruleset: {version}")


def default_ruleset() -> Ruleset:
    """Return the packaged default ruleset."""
    return load_ruleset(DEFAULT_VERSION)
