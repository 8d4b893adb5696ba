"""Inspection update engine.

Turns a current inspection and a user patch into the minimal set of user and
system updates: staged sections and items, item counters, completion flags,
score and dates.
"""

from typing import Any

import structlog

from propinspect.models.inspection import SectionType
from propinspect.services.completion import filter_completed_items
from propinspect.services.eligibility import DEFAULT_TABLE, DeficiencyEligibilityTable
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
from propinspect.services.scoring import calculate_score

logger = structlog.get_logger()


def _template(context: UpdateContext) -> dict[str, Any]:
    return context.current.get("template") or {}


def merged_items(context: UpdateContext) -> list[dict[str, Any]]:
    """Current items with staged changes applied, excluding deletions."""
    merged = merge_entries(_template(context).get("items"), context.items)
    return [{**item, "id": item_id} for item_id, item in merged.items()]


def upsert_sections(context: UpdateContext) -> UpdateContext:
    current_sections = _template(context).get("sections") or {}
    for section_id, entry in parse_entries(context.changes.get("sections"), "sections").items():
        if isinstance(entry, Upsert) and has_diffs(current_sections.get(section_id) or {}, entry.value):
            context.sections[section_id] = entry
    return context


def remove_multi_sections(context: UpdateContext) -> UpdateContext:
    """Stage deletion of user added multi-section copies only."""
    current_sections = _template(context).get("sections") or {}
    for section_id, entry in parse_entries(context.changes.get("sections"), "sections").items():
        if not isinstance(entry, Delete):
            continue
        section = current_sections.get(section_id) or {}
        if (
            section.get("section_type") == SectionType.MULTI.value
            and section.get("added_multi_section") is True
        ):
            context.sections[section_id] = DELETE
        else:
            logger.debug("Ignoring removal of protected section", section_id=section_id)
    return context


def upsert_items(context: UpdateContext) -> UpdateContext:
    current_items = _template(context).get("items") or {}
    for item_id, entry in parse_entries(context.changes.get("items"), "items").items():
        if isinstance(entry, Upsert) and has_diffs(current_items.get(item_id) or {}, entry.value):
            context.items[item_id] = entry
    return context


def remove_section_items(context: UpdateContext) -> UpdateContext:
    removed = deleted_ids(context.sections)
    if not removed:
        return context
    for item_id, item in (_template(context).get("items") or {}).items():
        if (item or {}).get("sectionId") in removed:
            context.items[item_id] = DELETE
    return context


def set_total_items(context: UpdateContext) -> UpdateContext:
    item_ids = set(_template(context).get("items") or {}) | set(context.items)
    total_items = len(item_ids - deleted_ids(context.items))
    if context.current.get("totalItems") != total_items:
        context.updates["totalItems"] = total_items
    return context


def items_completed_stage(eligibility: DeficiencyEligibilityTable) -> Stage:
    def set_items_completed(context: UpdateContext) -> UpdateContext:
        completed = filter_completed_items(
            merged_items(context),
            bool(_template(context).get("requireDeficientItemNoteAndPhoto")),
            eligibility,
        )
        if context.current.get("itemsCompleted") != len(completed):
            context.updates["itemsCompleted"] = len(completed)
        return context

    return set_items_completed


def set_deficiencies_exist(context: UpdateContext) -> UpdateContext:
    deficiencies_exist = any(
        not item.get("isItemNA") and item.get("deficient") is True
        for item in merged_items(context)
    )
    if context.current.get("deficienciesExist") != deficiencies_exist:
        context.updates["deficienciesExist"] = deficiencies_exist
    return context


def set_completed(context: UpdateContext) -> UpdateContext:
    """Complete or un-complete the inspection from its item counters."""
    total_items = context.staged("totalItems", 0) or 0
    items_completed = context.staged("itemsCompleted", 0) or 0

    if context.current.get("inspectionCompleted"):
        if total_items > items_completed:
            context.updates["inspectionCompleted"] = False
    elif items_completed >= total_items:
        context.updates["inspectionCompleted"] = True
    return context


def set_completion_date(context: UpdateContext) -> UpdateContext:
    if context.staged("inspectionCompleted") and not context.current.get("completionDate"):
        context.updates["completionDate"] = context.now
    return context


def set_score(context: UpdateContext) -> UpdateContext:
    if context.staged("inspectionCompleted"):
        score = calculate_score(merged_items(context))
        if score != context.current.get("score"):
            context.updates["score"] = score
    elif context.current.get("score") != 0:
        context.updates["score"] = 0
    return context


def set_updated_last_date(context: UpdateContext) -> UpdateContext:
    if not context.current.get("inspectionCompleted") and context.updates.get("inspectionCompleted") is True:
        context.updates["updatedLastDate"] = context.now
    return context


def set_updated_at(context: UpdateContext) -> UpdateContext:
    if context.has_updates:
        context.updates["updatedAt"] = context.now
    return context


def inspection_stages(eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE) -> list[Stage]:
    """Ordered stages of an inspection update."""
    return [
        upsert_sections,
        remove_multi_sections,
        upsert_items,
        remove_section_items,
        set_total_items,
        items_completed_stage(eligibility),
        set_deficiencies_exist,
        set_completed,
        set_completion_date,
        set_score,
        set_updated_last_date,
        set_updated_at,
    ]


def update_inspection(
    inspection: dict[str, Any],
    changes: dict[str, Any],
    now: int | None = None,
    eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE,
) -> dict[str, Any]:
    """Compute the updates a patch makes to an inspection.

    Args:
        inspection: Current inspection document.
        changes: User patch with optional ``sections`` and ``items`` maps,
            ``None`` values requesting removal.
        now: Unix timestamp for date fields, defaults to the current time.
        eligibility: Deficient selections per main input type.

    Returns:
        Updates object; empty when the patch changes nothing. Staged items
        and sections are nested under ``template``.

    Raises:
        PatchError: If the inspection, patch or timestamp is malformed.
    """
    context = start_context(inspection, changes, now, "inspection")
    context = run_stages(inspection_stages(eligibility), context)

    updates = dict(context.updates)
    if context.items:
        updates.setdefault("template", {})["items"] = serialize_entries(context.items)
    if context.sections:
        updates.setdefault("template", {})["sections"] = serialize_entries(context.sections)
    return updates
