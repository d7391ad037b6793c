"""Utility helpers for reading data files and parsing sap values."""

from __future__ import annotations

import json
import math
import os
from functools import lru_cache
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Mapping, TextIO, Union

import yaml

__all__ = [
    "load_data",
    "load_dataset",
    "clear_dataset_cache",
    "dataset_paths",
    "get_data_dir",
    "overlay_dir",
    "list_dataset_files",
    "deep_update",
    "normalize_key",
    "parse_number",
    "parse_leaf",
    "round_half_up",
]


PathType = Union[str, PathLike]

DATA_SUFFIXES = {".json", ".yaml", ".yml"}


def _open_text(path: Path) -> TextIO:
    return open(path, "r", encoding="utf-8")


def load_data(path: PathType) -> Any:
    """Return the parsed contents of ``path`` supporting JSON or YAML.

    A :class:`FileNotFoundError` is raised if the file does not exist and a
    :class:`ValueError` is raised when the contents cannot be decoded. The
    error message always includes the file path to aid debugging.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    try:
        with _open_text(p) as f:
            if p.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(f) or {}
            return json.load(f)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {p}: {exc}") from exc


def deep_update(base: Dict[str, Any], other: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``other`` into ``base`` and return ``base``."""

    for key, value in other.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, Mapping)
        ):
            deep_update(base[key], value)
        else:
            base[key] = value
    return base


# Packaged rulesets live in ``sap_engine/data``. The directory can be replaced
# with ``SAP_ENGINE_DATA_DIR``; files found in ``SAP_ENGINE_OVERLAY_DIR`` are
# merged over the defaults so a single threshold can be tuned without copying
# the whole ruleset.
DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_ENV = "SAP_ENGINE_DATA_DIR"
OVERLAY_ENV = "SAP_ENGINE_OVERLAY_DIR"


def get_data_dir() -> Path:
    """Return base dataset directory honoring ``SAP_ENGINE_DATA_DIR``."""

    env = os.getenv(DATA_ENV)
    return Path(env).expanduser() if env else DEFAULT_DATA_DIR


def overlay_dir() -> Path | None:
    """Return the overlay directory defined via ``SAP_ENGINE_OVERLAY_DIR``."""

    env = os.getenv(OVERLAY_ENV)
    return Path(env).expanduser() if env else None


def dataset_paths(include_overlay: bool = False) -> tuple[Path, ...]:
    """Return directories searched when loading datasets.

    The overlay directory, when requested and configured, comes first.
    """

    paths: list[Path] = []
    if include_overlay:
        ov = overlay_dir()
        if ov:
            paths.append(ov)
    paths.append(get_data_dir())
    return tuple(paths)


@lru_cache(maxsize=None)
def load_dataset(filename: str) -> Dict[str, Any]:
    """Return dataset ``filename`` merged with any overlay data.

    Results are cached; callers must not mutate the returned mapping. Use
    :func:`clear_dataset_cache` after changing the data environment variables.
    """

    data: Dict[str, Any] = {}
    base = get_data_dir() / filename
    if base.exists():
        data = load_data(base)

    overlay = overlay_dir()
    if overlay:
        overlay_path = overlay / filename
        if overlay_path.exists():
            extra = load_data(overlay_path)
            if isinstance(extra, dict) and isinstance(data, dict):
                deep_update(data, extra)
            else:
                data = extra

    return data


@lru_cache(maxsize=None)
def list_dataset_files(subdir: str = "") -> list[str]:
    """Return sorted dataset files below ``subdir`` in all search paths."""

    files: set[str] = set()
    for base in dataset_paths(include_overlay=True):
        root = base / subdir if subdir else base
        if not root.is_dir():
            continue
        for path in root.rglob("*"):
            if path.suffix.lower() in DATA_SUFFIXES and path.is_file():
                files.add(path.relative_to(base).as_posix())
    return sorted(files)


def clear_dataset_cache() -> None:
    """Clear cached dataset results loaded via :func:`load_dataset`."""

    load_dataset.cache_clear()
    list_dataset_files.cache_clear()


def normalize_key(key: str) -> str:
    """Return ``key`` normalized for case-insensitive dataset lookups.

    Whitespace, hyphens and underscores collapse to a single underscore.
    """

    value = str(key).casefold()
    for sep in ("_", "-"):
        value = value.replace(sep, " ")
    parts = [p for p in value.strip().split() if p]
    return "_".join(parts)


def parse_number(value: Any) -> float | None:
    """Return ``value`` as a finite float or ``None`` when it is not numeric.

    Strings are stripped before conversion. Booleans, ``NaN`` and infinite
    values count as missing.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_leaf(values: Mapping[str, Any] | None) -> Dict[str, float]:
    """Return the numeric entries of one leaf mapping."""

    if not isinstance(values, Mapping):
        return {}
    parsed: Dict[str, float] = {}
    for key, raw in values.items():
        number = parse_number(raw)
        if number is not None:
            parsed[str(key)] = number
    return parsed


def round_half_up(value: float) -> int:
    """Round to the nearest integer with ties going up (``2.5 -> 3``)."""

    return int(math.floor(value + 0.5))
