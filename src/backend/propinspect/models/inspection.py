"""Inspection and template document vocabulary.

Inspections and templates are stored as nested JSON documents. This module
holds the names shared by the scoring, completion and update code, plus the
normalization of legacy item shapes into a single ``ItemKind``.
"""

import math
from enum import Enum
from typing import Any


class ItemKind(str, Enum):
    """Canonical item type."""

    MAIN = "main"
    TEXT_INPUT = "text_input"
    SIGNATURE = "signature"


class SectionType(str, Enum):
    """Section layout type."""

    SINGLE = "single"
    MULTI = "multi"


# Score field for each main input selection index
SCORE_FIELDS: tuple[str, ...] = (
    "mainInputZeroValue",
    "mainInputOneValue",
    "mainInputTwoValue",
    "mainInputThreeValue",
    "mainInputFourValue",
)

NOTES_INPUT_TYPE = "oneaction_notes"
DEFAULT_MAIN_INPUT_TYPE = "TwoActions_thumbs"

MAIN_INPUT_TYPES: tuple[str, ...] = (
    "twoactions_checkmarkx",
    "twoactions_thumbs",
    "threeactions_checkmarkexclamationx",
    "threeactions_abc",
    "fiveactions_onetofive",
    "oneaction_notes",
)


def item_kind(item: dict[str, Any]) -> ItemKind:
    """Resolve an item's canonical kind.

    Legacy items without ``itemType`` are main items unless flagged with
    ``isTextInputItem``.
    """
    item_type = str(item.get("itemType") or "").lower()
    if item.get("isTextInputItem") or item_type == ItemKind.TEXT_INPUT.value:
        return ItemKind.TEXT_INPUT
    if item_type == ItemKind.SIGNATURE.value:
        return ItemKind.SIGNATURE
    return ItemKind.MAIN


def declared_kind(item: dict[str, Any]) -> ItemKind:
    """Kind declared by ``itemType`` alone, defaulting to main."""
    item_type = str(item.get("itemType") or "").lower()
    try:
        return ItemKind(item_type)
    except ValueError:
        return ItemKind.MAIN


def main_input_type(item: dict[str, Any]) -> str:
    """Lower-cased ``mainInputType`` or an empty string."""
    return str(item.get("mainInputType") or "").lower()


def is_number(value: Any) -> bool:
    """True for int/float values, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def selection_index(value: Any) -> int | None:
    """Map a ``mainInputSelection`` to a score field index, if it has one."""
    if not is_number(value):
        return None
    if isinstance(value, float):
        if math.isnan(value) or not value.is_integer():
            return None
        value = int(value)
    if 0 <= value < len(SCORE_FIELDS):
        return value
    return None


def selected_score(item: dict[str, Any]) -> float:
    """Value of the score field picked by the item's selection, or 0."""
    index = selection_index(item.get("mainInputSelection"))
    if index is None:
        return 0
    return item.get(SCORE_FIELDS[index]) or 0
