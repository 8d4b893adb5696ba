"""Default attributes for new or re-typed items and sections."""

import copy
from types import MappingProxyType
from typing import Any

from propinspect.models.inspection import (
    DEFAULT_MAIN_INPUT_TYPE,
    NOTES_INPUT_TYPE,
    ItemKind,
    is_number,
    item_kind,
)

ITEM_DEFAULTS = MappingProxyType({
    "isItemNA": False,
    "isTextInputItem": False,
    "mainInputSelected": False,
    "adminEdits": {},
    "photosData": {},
    "textInputValue": "",
    "signatureDownloadURL": "",
    "signatureTimestampKey": "",
})

MAIN_ITEM_DEFAULTS = MappingProxyType({"mainInputSelection": -1})
TEXT_INPUT_ITEM_DEFAULTS = MappingProxyType({"isTextInputItem": True})
SIGNATURE_ITEM_DEFAULTS = MappingProxyType({})

SECTION_DEFAULTS = MappingProxyType({"added_multi_section": False})

TYPE_DEFAULTS: dict[ItemKind, MappingProxyType] = {
    ItemKind.MAIN: MAIN_ITEM_DEFAULTS,
    ItemKind.TEXT_INPUT: TEXT_INPUT_ITEM_DEFAULTS,
    ItemKind.SIGNATURE: SIGNATURE_ITEM_DEFAULTS,
}


def item_defaults(kind: ItemKind) -> dict[str, Any]:
    """Base defaults layered with the defaults of one item kind."""
    defaults = copy.deepcopy(dict(ITEM_DEFAULTS))
    defaults.update(copy.deepcopy(dict(TYPE_DEFAULTS[kind])))
    return defaults


def apply_item_defaults(item: dict[str, Any], kind: ItemKind) -> dict[str, Any]:
    """Return a copy of ``item`` with the defaults of ``kind`` applied over it."""
    result = copy.deepcopy(item)
    result.update(item_defaults(kind))
    return result


def apply_section_defaults(section: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(section)
    result.update(SECTION_DEFAULTS)
    return result


def set_item_defaults(item: dict[str, Any]) -> dict[str, Any]:
    """Normalize a legacy inspection item.

    Returns only the attributes that need to change: a missing main input
    type, a stale selected flag on text items, or a missing selection.
    """
    updates: dict[str, Any] = {}
    kind = item_kind(item)

    if kind is ItemKind.MAIN and not item.get("mainInputType"):
        updates["mainInputType"] = DEFAULT_MAIN_INPUT_TYPE

    if kind is ItemKind.TEXT_INPUT and item.get("mainInputSelected"):
        updates["mainInputSelected"] = False

    input_type = updates.get("mainInputType") or item.get("mainInputType")
    if (
        kind is ItemKind.MAIN
        and input_type
        and str(input_type).lower() != NOTES_INPUT_TYPE
        and not is_number(item.get("mainInputSelection"))
    ):
        updates["mainInputSelection"] = -1

    return updates
