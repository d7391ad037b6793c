"""Central constants used across the sap engine."""

from __future__ import annotations

from typing import Dict, Tuple

NEW_LEAF = "new_leaf"
OLD_LEAF = "old_leaf"
TISSUES: Tuple[str, str] = (NEW_LEAF, OLD_LEAF)

# Short labels used in issue ids and explanation payloads
LEAF_LABELS: Dict[str, str] = {NEW_LEAF: "new", OLD_LEAF: "old"}

STATUS_OK = "OK"
STATUS_WATCH = "Watch"
STATUS_ACTION = "Action"
STATUS_UNKNOWN = "Unknown"

CONFIDENCE_LOW = "Low"
CONFIDENCE_MED = "Med"
CONFIDENCE_HIGH = "High"

CONFIDENCE_MULTIPLIERS: Dict[str, float] = {
    CONFIDENCE_HIGH: 0.0,
    CONFIDENCE_MED: 1.2,
    CONFIDENCE_LOW: 1.0,
}

DEFAULT_CROP = "corn"

# Relative weight of each physiological system when ranking verdicts
SYSTEM_IMPORTANCE: Dict[str, float] = {
    "N": 1.0,
    "CATIONS": 1.0,
    "SUGARS": 0.9,
    "MICROS": 0.7,
}
DEFAULT_SYSTEM_IMPORTANCE = 0.5

DEFAULT_SYSTEM_GROUPS: Dict[str, list[str]] = {
    "N": ["Nitrogen", "Nitrogen_NO3", "Nitrogen_NH4", "NO3_NH4"],
    "CATIONS": ["Potassium", "Calcium", "Magnesium", "K_over_CaMg", "K_Ca", "K_Mg", "Ca_Mg"],
    "MICROS": ["Boron", "Zinc", "Manganese", "Copper", "Iron", "Molybdenum"],
    "SUGARS": ["Brix", "Sugars", "EC"],
}

# Columns recognised as sap measurements on raw lab records
SAP_NUTRIENTS: Tuple[str, ...] = (
    "pH",
    "EC",
    "Brix",
    "Sugars",
    "Nitrogen",
    "Nitrogen_NH4",
    "Nitrogen_NO3",
    "Phosphorus",
    "Potassium",
    "Calcium",
    "Magnesium",
    "Sulfur",
    "Boron",
    "Iron",
    "Manganese",
    "Copper",
    "Zinc",
    "Molybdenum",
    "Chloride",
    "Sodium",
    "Silica",
    "Aluminum",
    "Cobalt",
    "Nickel",
    "Selenium",
    "KCa_Ratio",
    "N_Conversion_Efficiency",
)

NUTRIENT_LABELS: Dict[str, str] = {
    "Nitrogen": "Total N",
    "Nitrogen_NO3": "NO₃-N",
    "Nitrogen_NH4": "NH₄-N",
    "Phosphorus": "P",
    "Potassium": "K",
    "Calcium": "Ca",
    "Magnesium": "Mg",
    "Sulfur": "S",
    "Boron": "B",
    "Iron": "Fe",
    "Manganese": "Mn",
    "Copper": "Cu",
    "Zinc": "Zn",
    "Molybdenum": "Mo",
    "Chloride": "Cl",
    "Sodium": "Na",
    "Silica": "Si",
    "Aluminum": "Al",
    "Cobalt": "Co",
    "Nickel": "Ni",
    "Selenium": "Se",
    "Brix": "Brix",
    "Sugars": "Sugars",
    "EC": "EC",
    "pH": "pH",
    "N_Conversion_Efficiency": "N Conv. Eff.",
    "K_Ca": "K:Ca",
    "K_Mg": "K:Mg",
    "K_over_CaMg": "K/(Ca+Mg)",
    "NO3_NH4": "NO₃:NH₄",
    "Ca_Mg": "Ca:Mg",
    "Sugar_K": "Sugar:K",
}

__all__ = [
    "NEW_LEAF",
    "OLD_LEAF",
    "TISSUES",
    "LEAF_LABELS",
    "STATUS_OK",
    "STATUS_WATCH",
    "STATUS_ACTION",
    "STATUS_UNKNOWN",
    "CONFIDENCE_LOW",
    "CONFIDENCE_MED",
    "CONFIDENCE_HIGH",
    "CONFIDENCE_MULTIPLIERS",
    "DEFAULT_CROP",
    "SYSTEM_IMPORTANCE",
    "DEFAULT_SYSTEM_IMPORTANCE",
    "DEFAULT_SYSTEM_GROUPS",
    "SAP_NUTRIENTS",
    "NUTRIENT_LABELS",
    "format_nutrient_name",
    "tissue_for_leaf",
]


def format_nutrient_name(key: str) -> str:
    """Return the short display label for ``key`` or ``key`` itself."""
    return NUTRIENT_LABELS.get(key, key)


def tissue_for_leaf(leaf: str) -> str:
    """Return the tissue key for a ``new``/``old`` leaf label.

    Labels are matched case-insensitively and tissue keys are accepted as
    well. Only old-leaf labels select the old leaf; anything unrecognised
    falls back to the new leaf, like unknown tissues in threshold lookups.
    """
    key = str(leaf or "").strip().casefold().replace(" ", "_")
    if key in (OLD_LEAF, LEAF_LABELS[OLD_LEAF]):
        return OLD_LEAF
    return NEW_LEAF
