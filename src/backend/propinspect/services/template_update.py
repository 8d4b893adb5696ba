"""Template update engine."""

import copy
from typing import Any

from propinspect.models.inspection import declared_kind, is_number
from propinspect.services.item_defaults import apply_section_defaults, item_defaults
from propinspect.services.pipeline import (
    DELETE,
    Delete,
    Stage,
    Upsert,
    UpdateContext,
    deleted_ids,
    has_diffs,
    merge_entries,
    parse_entries,
    run_stages,
    serialize_entries,
    start_context,
)

NESTED_KEYS = ("sections", "items")


def _item_type(item: dict[str, Any]) -> str:
    return str(item.get("itemType") or "").lower()


def copy_template_attributes(context: UpdateContext) -> UpdateContext:
    for key, value in context.changes.items():
        if key not in NESTED_KEYS:
            context.updates[key] = copy.deepcopy(value)
    return context


def upsert_sections(context: UpdateContext) -> UpdateContext:
    """Stage changed sections, adding defaults to new ones."""
    current_sections = context.current.get("sections") or {}
    for section_id, entry in parse_entries(context.changes.get("sections"), "sections").items():
        if not isinstance(entry, Upsert):
            continue
        section = current_sections.get(section_id)
        if not has_diffs(section or {}, entry.value):
            continue
        if section:
            context.sections[section_id] = entry
        else:
            context.sections[section_id] = Upsert(apply_section_defaults(entry.value))
    return context


def remove_sections(context: UpdateContext) -> UpdateContext:
    current_sections = context.current.get("sections") or {}
    for section_id, entry in parse_entries(context.changes.get("sections"), "sections").items():
        if isinstance(entry, Delete) and current_sections.get(section_id):
            context.sections[section_id] = DELETE
    return context


def upsert_items(context: UpdateContext) -> UpdateContext:
    """Stage changed items, adding defaults for the type of new ones."""
    current_items = context.current.get("items") or {}
    for item_id, entry in parse_entries(context.changes.get("items"), "items").items():
        if not isinstance(entry, Upsert):
            continue
        item = current_items.get(item_id)
        if not has_diffs(item or {}, entry.value):
            continue
        value = copy.deepcopy(entry.value)
        if not item:
            value.update(item_defaults(declared_kind(value)))
        context.items[item_id] = Upsert(value)
    return context


def reset_transitioned_items(context: UpdateContext) -> UpdateContext:
    """Re-apply defaults to items whose type changed."""
    current_items = context.current.get("items") or {}
    for item_id, entry in parse_entries(context.changes.get("items"), "items").items():
        if not isinstance(entry, Upsert) or not entry.value.get("itemType"):
            continue
        staged = context.items.get(item_id)
        if not isinstance(staged, Upsert):
            continue
        if _item_type(entry.value) != _item_type(current_items.get(item_id) or {}):
            staged.value.update(item_defaults(declared_kind(entry.value)))
    return context


def increment_item_versions(context: UpdateContext) -> UpdateContext:
    current_items = context.current.get("items") or {}
    for item_id, entry in context.items.items():
        if not isinstance(entry, Upsert):
            continue
        version = (current_items.get(item_id) or {}).get("version")
        entry.value["version"] = version + 1 if is_number(version) else 0
    return context


def remove_items(context: UpdateContext) -> UpdateContext:
    current_items = context.current.get("items") or {}
    for item_id, entry in parse_entries(context.changes.get("items"), "items").items():
        if isinstance(entry, Delete) and current_items.get(item_id):
            context.items[item_id] = DELETE
    return context


def remove_section_items(context: UpdateContext) -> UpdateContext:
    removed = deleted_ids(context.sections)
    for item_id, item in (context.current.get("items") or {}).items():
        if (item or {}).get("sectionId") in removed:
            context.items[item_id] = DELETE
    return context


def set_updated_at(context: UpdateContext) -> UpdateContext:
    if context.has_updates:
        context.updates["updatedAt"] = context.now
    return context


def set_completed_at(context: UpdateContext) -> UpdateContext:
    """Set ``completedAt`` once the template has a section and an item."""
    if context.current.get("completedAt"):
        return context
    sections = merge_entries(context.current.get("sections"), context.sections)
    items = merge_entries(context.current.get("items"), context.items)
    if sections and items:
        context.updates["completedAt"] = context.now
    return context


TEMPLATE_STAGES: tuple[Stage, ...] = (
    copy_template_attributes,
    upsert_sections,
    remove_sections,
    upsert_items,
    reset_transitioned_items,
    increment_item_versions,
    remove_items,
    remove_section_items,
    set_updated_at,
    set_completed_at,
)


def update_template(
    template: dict[str, Any],
    changes: dict[str, Any],
    now: int | None = None,
) -> dict[str, Any]:
    """Compute the updates a patch makes to a template.

    Args:
        template: Current template document.
        changes: User patch. ``sections`` and ``items`` map ids to partial
            entries, ``None`` requesting removal.
        now: Unix timestamp for date fields, defaults to the current time.

    Returns:
        Updates object with sections and items at the top level.

    Raises:
        PatchError: If the template, patch or timestamp is malformed.
    """
    context = run_stages(TEMPLATE_STAGES, start_context(template, changes, now, "template"))

    updates = dict(context.updates)
    if context.sections:
        updates["sections"] = serialize_entries(context.sections)
    if context.items:
        updates["items"] = serialize_entries(context.items)
    return updates
