"""Completed inspection item classification.

An item is complete when any one of the rules below accepts it. Rules may
overlap, so the combined result is deduplicated by object identity.
"""

import re
from collections.abc import Callable, Iterable
from typing import Any

from propinspect.models.inspection import (
    NOTES_INPUT_TYPE,
    ItemKind,
    is_number,
    item_kind,
    main_input_type,
)
from propinspect.services.eligibility import DEFAULT_TABLE, DeficiencyEligibilityTable

CONDITIONAL_TITLE = re.compile(r"^if (yes|no)", re.IGNORECASE)

ItemRule = Callable[[dict[str, Any]], bool]


def main_input_rule(
    require_deficient_item_note_and_photo: bool,
    eligibility: DeficiencyEligibilityTable,
) -> ItemRule:
    """Build the rule for selectable main input items."""

    def is_complete(item: dict[str, Any]) -> bool:
        if item_kind(item) is not ItemKind.MAIN:
            return False
        if main_input_type(item) == NOTES_INPUT_TYPE:
            return False
        selection = item.get("mainInputSelection")
        if not item.get("mainInputSelected") or not is_number(selection):
            return False

        if require_deficient_item_note_and_photo and eligibility.is_deficient(
            item.get("mainInputType"), selection
        ):
            if item.get("notes") and not item.get("inspectorNotes"):
                return False
            if item.get("photos") and not item.get("photosData"):
                return False
        return True

    return is_complete


def is_na_complete(item: dict[str, Any]) -> bool:
    return bool(item.get("isItemNA"))


def is_text_input_complete(item: dict[str, Any]) -> bool:
    return item_kind(item) is ItemKind.TEXT_INPUT and bool(item.get("textInputValue"))


def is_signature_complete(item: dict[str, Any]) -> bool:
    return item_kind(item) is ItemKind.SIGNATURE and bool(item.get("signatureDownloadURL"))


def is_notes_complete(item: dict[str, Any]) -> bool:
    return main_input_type(item) == NOTES_INPUT_TYPE and bool(item.get("mainInputNotes"))


def is_conditional_text_item(item: dict[str, Any]) -> bool:
    """Optional "if yes" / "if no" follow-up text items."""
    if item_kind(item) is not ItemKind.TEXT_INPUT:
        return False
    return bool(CONDITIONAL_TITLE.match(str(item.get("title") or "").strip()))


def filter_completed_items(
    items: Iterable[dict[str, Any]],
    require_deficient_item_note_and_photo: bool = False,
    eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE,
) -> list[dict[str, Any]]:
    """Select the items that count as completed.

    Args:
        items: Inspection items.
        require_deficient_item_note_and_photo: Require notes and photos on
            deficient selections of items that declare them.
        eligibility: Deficient selections per main input type.

    Returns:
        Completed items, each listed once.

    Raises:
        TypeError: If any entry is not a dict.
    """
    items = list(items)
    for item in items:
        if not isinstance(item, dict):
            raise TypeError(f"inspection item must be a dict, got {type(item).__name__}")

    rules: list[ItemRule] = [
        main_input_rule(require_deficient_item_note_and_photo, eligibility),
        is_na_complete,
        is_text_input_complete,
        is_signature_complete,
        is_notes_complete,
        is_conditional_text_item,
    ]

    completed = []
    seen: set[int] = set()
    for rule in rules:
        for item in items:
            if id(item) not in seen and rule(item):
                seen.add(id(item))
                completed.append(item)
    return completed
