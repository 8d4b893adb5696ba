"""Deficiency eligibility table.

Maps a main input type to one boolean per selection index, telling whether
picking that selection makes the item deficient.
"""

from types import MappingProxyType
from collections.abc import Iterator, Mapping
from typing import Any

from propinspect.models.inspection import selection_index

DEFAULT_ELIGIBILITY: dict[str, tuple[bool, ...]] = {
    "twoactions_checkmarkx": (False, True),
    "twoactions_thumbs": (False, True),
    "threeactions_checkmarkexclamationx": (False, True, True),
    "threeactions_abc": (False, True, True),
    "fiveactions_onetofive": (True, True, True, True, False),
    "oneaction_notes": (False,),
}


class DeficiencyEligibilityTable(Mapping[str, tuple[bool, ...]]):
    """Read-only lookup of deficient selections per main input type."""

    def __init__(self, entries: Mapping[str, Any] | None = None):
        if entries is None:
            entries = DEFAULT_ELIGIBILITY
        table = {}
        for input_type, flags in entries.items():
            if not isinstance(input_type, str):
                raise TypeError(f"main input type must be a string, got {input_type!r}")
            table[input_type.lower()] = tuple(bool(flag) for flag in flags)
        self._table = MappingProxyType(table)

    def __getitem__(self, input_type: str) -> tuple[bool, ...]:
        return self._table[input_type.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"DeficiencyEligibilityTable({dict(self._table)!r})"

    def has_entry(self, input_type: str | None) -> bool:
        """Check whether a main input type has eligibility rules."""
        return bool(input_type) and input_type.lower() in self._table

    def is_deficient(self, input_type: str | None, selection: Any) -> bool:
        """Check whether a selection of a main input type is deficient."""
        if not self.has_entry(input_type):
            return False
        index = selection_index(selection)
        flags = self._table[input_type.lower()]
        if index is None or index >= len(flags):
            return False
        return flags[index]

    def is_item_deficient(self, item: Mapping[str, Any]) -> bool:
        """Check an item's current main input selection."""
        return self.is_deficient(item.get("mainInputType"), item.get("mainInputSelection"))


DEFAULT_TABLE = DeficiencyEligibilityTable()


def table_from_settings(settings) -> DeficiencyEligibilityTable:
    """Build the table configured by ``DEFICIENT_LIST_ELIGIBLE``, if set."""
    override = settings.deficient_list_eligible_table
    if override is None:
        return DEFAULT_TABLE
    return DeficiencyEligibilityTable(override)
