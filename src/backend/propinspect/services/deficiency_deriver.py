"""Deficient item derivation and sync.

Deficient items are derived from a completed inspection that tracks them:
every non-N/A main item whose selection is flagged deficient gets one
deficiency record per (property, inspection, item). When the inspection
changes, records for items that stopped being deficient are moved to the
archive, the remaining ones have their item proxies refreshed, and new ones
are created, reusing a matching archived record where one exists.
"""

import copy
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from propinspect.core.metrics import record_deficiency_operation
from propinspect.models.deficiency import (
    DERIVED_ATTRS,
    PROXY_ATTRS,
    DeficiencyState,
    default_deficiency,
)
from propinspect.models.inspection import (
    ItemKind,
    SectionType,
    is_number,
    item_kind,
    selected_score,
)
from propinspect.services.document_store import DocumentStore, DocumentStoreError
from propinspect.services.eligibility import DEFAULT_TABLE, DeficiencyEligibilityTable

logger = structlog.get_logger()

DEFICIENCY_ID_NAMESPACE = uuid.UUID("5d0f3c9e-6a4b-4f1e-9a57-2f2b5e8c1d34")


class DeficiencySyncError(Exception):
    """Raised when deficient items of an inspection cannot be synced."""

    pass


def deficiency_id_for(property_id: str, inspection_id: str, item_id: str) -> str:
    """Stable deficiency id for an inspection item."""
    return str(uuid.uuid5(DEFICIENCY_ID_NAMESPACE, f"{property_id}/{inspection_id}/{item_id}"))


def is_tracking_deficiencies(inspection: dict[str, Any] | None) -> bool:
    """Check if an inspection is completed and tracks deficient items."""
    if not inspection:
        return False
    template = inspection.get("template") or {}
    return bool(inspection.get("inspectionCompleted") and template.get("trackDeficientItems"))


def cleaned_photos_data(photos_data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Copy of the photos that have a download URL, or None if there are none."""
    cleaned = {
        photo_id: copy.deepcopy(photo)
        for photo_id, photo in (photos_data or {}).items()
        if isinstance(photo, dict) and photo.get("downloadURL")
    }
    return cleaned or None


def item_data_last_updated_date(
    item: dict[str, Any],
    updated_last_date: int | None,
) -> int | None:
    """Latest of the inspection's last update and the item's admin edits."""
    dates = [
        edit.get("edit_date")
        for edit in (item.get("adminEdits") or {}).values()
        if isinstance(edit, dict) and is_number(edit.get("edit_date"))
    ]
    if is_number(updated_last_date):
        dates.append(updated_last_date)
    return max(dates) if dates else None


def section_subtitle(
    item: dict[str, Any],
    section: dict[str, Any],
    items: dict[str, dict[str, Any]],
) -> str:
    """Value of a multi-section's leading text input item.

    The first text input item of the section, by index, labels the section
    when it comes before ``item``. Ties keep the first item found.
    """
    if section.get("section_type") != SectionType.MULTI.value:
        return ""

    section_items = sorted(
        (
            other
            for other in items.values()
            if other.get("sectionId") == item.get("sectionId")
        ),
        key=lambda other: other.get("index") or 0,
    )
    for other in section_items:
        if item_kind(other) is not ItemKind.TEXT_INPUT:
            continue
        if (other.get("index") or 0) < (item.get("index") or 0) and other.get("textInputValue"):
            return other["textInputValue"]
        return ""
    return ""


def is_deficient_item(item: dict[str, Any], eligibility: DeficiencyEligibilityTable) -> bool:
    return (
        item_kind(item) is ItemKind.MAIN
        and not item.get("isItemNA")
        and eligibility.is_item_deficient(item)
    )


def derive_deficiencies(
    inspection_id: str,
    inspection: dict[str, Any],
    eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE,
    now: int | None = None,
    state: str = DeficiencyState.REQUIRES_ACTION.value,
) -> dict[str, dict[str, Any]]:
    """Build the expected deficient items of an inspection, keyed by item id.

    Raises:
        DeficiencySyncError: If the inspection is not completed or does not
            track deficient items.
    """
    if not inspection_id:
        raise DeficiencySyncError("inspection id is required")
    if not is_tracking_deficiencies(inspection):
        raise DeficiencySyncError(
            f"inspection {inspection_id} is not completed with deficient items tracked"
        )
    if now is None:
        now = round(time.time())

    template = inspection.get("template") or {}
    sections = template.get("sections") or {}
    items = template.get("items") or {}

    result = {}
    for item_id, item in items.items():
        if not is_deficient_item(item, eligibility):
            continue

        section = sections.get(item.get("sectionId")) or {}
        photos_data = cleaned_photos_data(item.get("photosData"))

        deficiency = default_deficiency(state)
        deficiency.update({
            "inspection": inspection_id,
            "item": item_id,
            "createdAt": now,
            "updatedAt": now,
            "sectionTitle": section.get("title"),
            "sectionSubtitle": section_subtitle(item, section, items),
            "sectionType": section.get("section_type") or SectionType.SINGLE.value,
            "itemTitle": item.get("title"),
            "itemMainInputType": item.get("mainInputType"),
            "itemMainInputSelection": item.get("mainInputSelection"),
            "itemInspectorNotes": item.get("inspectorNotes"),
            "itemAdminEdits": copy.deepcopy(item.get("adminEdits")) or None,
            "itemPhotosData": photos_data,
            "hasItemPhotoData": photos_data is not None,
            "itemScore": selected_score(item),
            "itemDataLastUpdatedDate": item_data_last_updated_date(
                item, inspection.get("updatedLastDate")
            ),
        })
        if inspection.get("property"):
            deficiency["property"] = inspection["property"]
        result[item_id] = deficiency
    return result


def find_missing(current: dict[str, dict[str, Any]], expected: dict[str, dict[str, Any]]) -> list[str]:
    """Ids of current deficiencies whose item is no longer expected."""
    return [
        deficiency_id
        for deficiency_id, deficiency in current.items()
        if deficiency.get("item") not in expected
    ]


def find_matching(current: dict[str, dict[str, Any]], expected: dict[str, dict[str, Any]]) -> list[str]:
    """Ids of current deficiencies whose item is still expected."""
    return [
        deficiency_id
        for deficiency_id, deficiency in current.items()
        if deficiency.get("item") in expected
    ]


def find_new(current: dict[str, dict[str, Any]], expected: dict[str, dict[str, Any]]) -> list[str]:
    """Item ids that are expected but have no current deficiency."""
    tracked = {deficiency.get("item") for deficiency in current.values()}
    return [item_id for item_id in expected if item_id not in tracked]


def proxy_updates(expected: dict[str, Any], current: dict[str, Any]) -> dict[str, Any]:
    """Proxy and derived attributes of ``expected`` that differ from ``current``."""
    return {
        attr: copy.deepcopy(expected.get(attr))
        for attr in (*PROXY_ATTRS, *DERIVED_ATTRS)
        if expected.get(attr) != current.get(attr)
    }


@dataclass
class DeficiencySyncResult:
    """Record operations applied for one inspection write."""

    inspection_id: str
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    archived: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


class DeficiencySyncService:
    """Keeps deficiency records in step with their inspection."""

    def __init__(
        self,
        deficiencies: DocumentStore,
        archive: DocumentStore,
        eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE,
        default_state: str = DeficiencyState.REQUIRES_ACTION.value,
    ):
        """Initialize with the active and archive deficiency stores."""
        self.deficiencies = deficiencies
        self.archive = archive
        self.eligibility = eligibility
        self.default_state = default_state

    async def process_inspection_write(
        self,
        inspection_id: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        now: int | None = None,
    ) -> DeficiencySyncResult:
        """Apply an inspection write to its deficient items.

        Every record operation is keyed by (property, inspection, item) and
        safe to repeat with the same before/after pair.

        Args:
            inspection_id: Inspection document id.
            before: Inspection before the write, None if created.
            after: Inspection after the write, None if deleted.
            now: Unix timestamp for record dates.

        Returns:
            The record operations applied and any that failed.

        Raises:
            DeficiencySyncError: If the inspection has no property or the
                current deficiencies cannot be loaded.
        """
        if now is None:
            now = round(time.time())
        result = DeficiencySyncResult(inspection_id=inspection_id)

        if after is None:
            current = await self._current_deficiencies(inspection_id)
            for deficiency_id in current:
                await self._run(result, "archived", deficiency_id,
                                self._archive(deficiency_id, current[deficiency_id]))
            self._record(result)
            return result

        if not is_tracking_deficiencies(after):
            logger.debug("Inspection not tracking deficient items", inspection_id=inspection_id)
            return result

        if not after.get("property"):
            raise DeficiencySyncError(f"inspection {inspection_id} missing property reference")

        expected = derive_deficiencies(
            inspection_id, after, self.eligibility, now, self.default_state
        )
        current = await self._current_deficiencies(inspection_id)

        for deficiency_id in find_missing(current, expected):
            await self._run(result, "archived", deficiency_id,
                            self._archive(deficiency_id, current[deficiency_id]))

        for deficiency_id in find_matching(current, expected):
            deficiency = current[deficiency_id]
            updates = proxy_updates(expected[deficiency["item"]], deficiency)
            if not updates:
                continue
            updates["updatedAt"] = now
            await self._run(result, "updated", deficiency_id,
                            self._update(deficiency_id, updates))

        for item_id in find_new(current, expected):
            await self._run(result, "created", item_id,
                            self._create(after["property"], expected[item_id], now))

        self._record(result)
        return result

    async def _current_deficiencies(self, inspection_id: str) -> dict[str, dict[str, Any]]:
        try:
            return await self.deficiencies.query(inspection=inspection_id)
        except DocumentStoreError as e:
            raise DeficiencySyncError(
                f"failed to load deficient items of inspection {inspection_id}"
            ) from e

    async def _run(self, result: DeficiencySyncResult, action: str, key: str, operation) -> None:
        """Await one record operation, recording a failure without raising."""
        try:
            record_id = await operation
        except DocumentStoreError as e:
            logger.error(
                "Deficient item operation failed",
                inspection_id=result.inspection_id,
                action=action,
                key=key,
                error=str(e),
            )
            result.failed[key] = str(e)
            return
        getattr(result, action).append(record_id or key)
        logger.info(
            "Deficient item synced",
            inspection_id=result.inspection_id,
            action=action,
            deficiency_id=record_id or key,
        )

    async def _update(self, deficiency_id: str, updates: dict[str, Any]) -> str:
        await self.deficiencies.update_record(deficiency_id, updates)
        return deficiency_id

    async def _archive(self, deficiency_id: str, deficiency: dict[str, Any]) -> str:
        """Move a deficiency into the archive."""
        archived = copy.deepcopy(deficiency)
        archived["_collection"] = self.deficiencies.collection
        archived["archive"] = True

        if await self.archive.find_record(deficiency_id) is None:
            await self.archive.create_record(deficiency_id, archived)
        else:
            await self.archive.update_record(deficiency_id, archived)
        await self.deficiencies.remove_record(deficiency_id)
        return deficiency_id

    async def _create(self, property_id: str, deficiency: dict[str, Any], now: int) -> str:
        """Create a deficiency, restoring a matching archived one if present."""
        data = copy.deepcopy(deficiency)
        data["property"] = property_id

        archived = await self.archive.find_one(
            property=property_id,
            inspection=data["inspection"],
            item=data["item"],
        )
        if archived is not None:
            deficiency_id, archived_data = archived
            data["createdAt"] = archived_data.get("createdAt") or now
            logger.info(
                "Restoring archived deficient item",
                deficiency_id=deficiency_id,
                item_id=data["item"],
            )
        else:
            deficiency_id = deficiency_id_for(property_id, data["inspection"], data["item"])

        if await self.deficiencies.find_record(deficiency_id) is None:
            await self.deficiencies.create_record(deficiency_id, data)
        else:
            await self.deficiencies.update_record(deficiency_id, data)

        if archived is not None:
            await self.archive.remove_record(deficiency_id)
        return deficiency_id

    def _record(self, result: DeficiencySyncResult) -> None:
        record_deficiency_operation("created", len(result.created))
        record_deficiency_operation("updated", len(result.updated))
        record_deficiency_operation("archived", len(result.archived))
        record_deficiency_operation("failed", len(result.failed))
