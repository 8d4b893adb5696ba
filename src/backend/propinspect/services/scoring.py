"""Inspection score calculation."""

import math
from collections.abc import Iterable
from typing import Any

from propinspect.models.inspection import SCORE_FIELDS, ItemKind, item_kind, selected_score


def item_score_weights(item: dict[str, Any]) -> tuple[float, float]:
    """Return the ``(earned, max)`` contribution of one item.

    Text input and signature items carry no weight.
    """
    if item_kind(item) is not ItemKind.MAIN:
        return 0, 0
    maximum = max(item.get(field) or 0 for field in SCORE_FIELDS)
    return selected_score(item), maximum


def calculate_score(items: Iterable[dict[str, Any]]) -> float:
    """Calculate an inspection's percentage score.

    Args:
        items: Resolved inspection items.

    Returns:
        Score from 0 to 100. Inspections with nothing to earn score 100.

    Raises:
        TypeError: If items is not an iterable of mappings.
    """
    if isinstance(items, (str, bytes)) or not isinstance(items, Iterable):
        raise TypeError("calculate_score requires an iterable of items")

    earned = 0
    total = 0
    for item in items:
        if not isinstance(item, dict):
            raise TypeError(f"inspection item must be a dict, got {type(item).__name__}")
        if item.get("isItemNA"):
            continue
        item_earned, item_max = item_score_weights(item)
        earned += item_earned
        total += item_max

    if total == 0:
        return 100
    result = earned / total
    if math.isnan(result):
        return 0
    return result * 100
