"""Inspection Service applying user patches to stored inspections."""

import time
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from propinspect.core.config import settings
from propinspect.core.metrics import observe_update_engine, record_inspection_update
from propinspect.models.document import Collection
from propinspect.services.deficiency_deriver import DeficiencySyncError, DeficiencySyncService
from propinspect.services.document_store import (
    DocumentNotFoundError,
    DocumentStoreError,
    SQLDocumentStore,
)
from propinspect.services.eligibility import DEFAULT_TABLE, DeficiencyEligibilityTable
from propinspect.services.inspection_update import update_inspection
from propinspect.services.item_defaults import set_item_defaults

logger = structlog.get_logger()


def normalize_new_items(inspection: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Apply legacy item normalization to items the patch adds."""
    current_items = (inspection.get("template") or {}).get("items") or {}
    patch_items = changes.get("items")
    if not patch_items:
        return changes

    items = {}
    for item_id, item in patch_items.items():
        if isinstance(item, dict) and item_id not in current_items:
            item = {**item, **set_item_defaults(item)}
        items[item_id] = item
    return {**changes, "items": items}


class InspectionService:
    """Service for inspection update operations."""

    def __init__(
        self,
        db: AsyncSession,
        eligibility: DeficiencyEligibilityTable = DEFAULT_TABLE,
    ):
        """Initialize inspection service with database session."""
        self.db = db
        self.eligibility = eligibility
        self.inspections = SQLDocumentStore(db, Collection.INSPECTIONS)
        self.deficiency_sync = DeficiencySyncService(
            SQLDocumentStore(db, Collection.DEFICIENCIES),
            SQLDocumentStore(db, Collection.ARCHIVE),
            eligibility=eligibility,
            default_state=settings.default_deficiency_state,
        )

    async def get_inspection(self, inspection_id: str) -> dict[str, Any]:
        """Get an inspection by id.

        Raises:
            DocumentNotFoundError: If the inspection does not exist.
        """
        inspection = await self.inspections.find_record(inspection_id)
        if inspection is None:
            raise DocumentNotFoundError(Collection.INSPECTIONS, inspection_id)
        return inspection

    async def update_inspection_template(
        self,
        inspection_id: str,
        changes: dict[str, Any],
        now: int | None = None,
    ) -> dict[str, Any]:
        """Apply a sections/items patch to an inspection and persist it.

        Args:
            inspection_id: Inspection to update.
            changes: Patch with optional ``sections`` and ``items`` maps.
            now: Unix timestamp, defaults to the current time.

        Returns:
            The persisted updates, empty if the patch changed nothing.

        Raises:
            DocumentNotFoundError: If the inspection does not exist.
            PatchError: If the patch is malformed.
        """
        if now is None:
            now = round(time.time())
        inspection = await self.get_inspection(inspection_id)

        started = time.perf_counter()
        updates = update_inspection(
            inspection,
            normalize_new_items(inspection, changes),
            now,
            self.eligibility,
        )
        observe_update_engine("inspection", time.perf_counter() - started)

        if not updates:
            record_inspection_update("unchanged")
            logger.info("Inspection patch had no effect", inspection_id=inspection_id)
            return updates

        after = await self.inspections.update_record(inspection_id, updates)
        record_inspection_update("updated")
        logger.info(
            "Inspection updated",
            inspection_id=inspection_id,
            attributes=sorted(updates),
            completed=after.get("inspectionCompleted"),
        )

        await self.sync_deficiencies(inspection_id, inspection, after, now)
        return updates

    async def sync_deficiencies(
        self,
        inspection_id: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        now: int | None = None,
    ) -> None:
        """Sync deficient items after a write, logging any failure."""
        if not settings.deficiency_tracking_enabled:
            return
        try:
            result = await self.deficiency_sync.process_inspection_write(
                inspection_id, before, after, now
            )
        except (DeficiencySyncError, DocumentStoreError) as e:
            logger.error(
                "Deficient item sync failed",
                inspection_id=inspection_id,
                error=str(e),
            )
            return
        if result.has_failures:
            logger.warning(
                "Deficient item sync partially failed",
                inspection_id=inspection_id,
                failed=sorted(result.failed),
            )
