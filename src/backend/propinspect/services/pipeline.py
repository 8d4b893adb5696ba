"""Staged update pipeline shared by the inspection and template engines.

An engine threads one ``UpdateContext`` through an ordered list of stage
functions. Section and item patches are parsed into ``Upsert``/``Delete``
entries up front; absent keys are unchanged. Staged entries are only turned
back into the stored ``None``-means-delete shape by ``serialize_entries``.
"""

import copy
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from propinspect.models.inspection import is_number


class PatchError(ValueError):
    """Raised when an engine is called with an unusable document or patch."""

    pass


@dataclass(frozen=True)
class Upsert:
    """Create or partially update an entry."""

    value: dict[str, Any]


@dataclass(frozen=True)
class Delete:
    """Remove an entry."""

    pass


DELETE = Delete()

Entry = Union[Upsert, Delete]


@dataclass
class UpdateContext:
    """State threaded through the stages of an update."""

    current: dict[str, Any]
    changes: dict[str, Any]
    now: int
    updates: dict[str, Any] = field(default_factory=dict)
    sections: dict[str, Entry] = field(default_factory=dict)
    items: dict[str, Entry] = field(default_factory=dict)

    def staged(self, key: str, default: Any = None) -> Any:
        """Value of ``key`` after this update, staged or current."""
        if key in self.updates:
            return self.updates[key]
        return self.current.get(key, default)

    @property
    def has_updates(self) -> bool:
        return bool(self.updates or self.sections or self.items)


Stage = Callable[[UpdateContext], UpdateContext]


def run_stages(stages: Iterable[Stage], context: UpdateContext) -> UpdateContext:
    """Apply each stage in order."""
    for stage in stages:
        context = stage(context)
    return context


def resolve_now(now: Any) -> int:
    """Default ``now`` to the current unix time and validate it."""
    if now is None:
        return round(time.time())
    if not is_number(now) or now <= 0:
        raise PatchError(f"now must be a positive unix timestamp, got {now!r}")
    return now


def start_context(document: Any, changes: Any, now: Any, name: str) -> UpdateContext:
    """Validate engine arguments and build a context over copies of them."""
    if not isinstance(document, dict):
        raise PatchError(f"{name} must be a dict, got {type(document).__name__}")
    if not isinstance(changes, dict):
        raise PatchError(f"changes must be a dict, got {type(changes).__name__}")
    return UpdateContext(
        current=copy.deepcopy(document),
        changes=copy.deepcopy(changes),
        now=resolve_now(now),
    )


def parse_entries(patch: Mapping[str, Any] | None, name: str) -> dict[str, Entry]:
    """Parse a ``{id: dict | None}`` patch into tagged entries."""
    if patch is None:
        return {}
    if not isinstance(patch, Mapping):
        raise PatchError(f"{name} patch must be a dict, got {type(patch).__name__}")

    entries: dict[str, Entry] = {}
    for entry_id, value in patch.items():
        if value is None:
            entries[entry_id] = DELETE
        elif isinstance(value, Mapping):
            entries[entry_id] = Upsert(copy.deepcopy(dict(value)))
        else:
            raise PatchError(f"{name}.{entry_id} must be a dict or null")
    return entries


def has_diffs(current: Mapping[str, Any], changes: Mapping[str, Any]) -> bool:
    """Check if any attribute of ``changes`` differs from ``current``."""
    return any(
        key not in current or current[key] != value
        for key, value in changes.items()
    )


def merge_entries(
    current: Mapping[str, Any] | None,
    staged: Mapping[str, Entry],
) -> dict[str, dict[str, Any]]:
    """Merge staged entries over a copy of the current ones, dropping deletions."""
    merged = {entry_id: copy.deepcopy(value) for entry_id, value in (current or {}).items()}
    for entry_id, entry in staged.items():
        if isinstance(entry, Delete):
            merged.pop(entry_id, None)
        else:
            merged.setdefault(entry_id, {}).update(copy.deepcopy(entry.value))
    return merged


def deleted_ids(staged: Mapping[str, Entry]) -> set[str]:
    return {entry_id for entry_id, entry in staged.items() if isinstance(entry, Delete)}


def serialize_entries(staged: Mapping[str, Entry]) -> dict[str, dict[str, Any] | None]:
    """Convert staged entries to the stored shape, ``None`` meaning delete."""
    return {
        entry_id: None if isinstance(entry, Delete) else copy.deepcopy(entry.value)
        for entry_id, entry in staged.items()
    }
