"""Inspection API endpoints."""

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette import status as http_status

from propinspect.api.errors import ApiError, document_response
from propinspect.core.deps import DbSession, EligibilityTable
from propinspect.core.metrics import record_inspection_update
from propinspect.services.document_store import DocumentNotFoundError
from propinspect.services.inspection_service import InspectionService
from propinspect.services.pipeline import PatchError

logger = structlog.get_logger()

router = APIRouter()


# ==================== Pydantic Schemas ====================

class InspectionSectionUpdate(BaseModel):
    """Changes to one inspection section."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1)
    index: int | None = None
    section_type: Literal["single", "multi"] | None = None
    added_multi_section: bool | None = None


class InspectionItemUpdate(BaseModel):
    """Changes to one inspection item."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    index: int | None = None
    sectionId: str | None = None
    itemType: Literal["main", "text_input", "signature"] | None = None
    isItemNA: bool | None = None
    isTextInputItem: bool | None = None
    deficient: bool | None = None
    inspectorNotes: str | None = None
    notes: bool | None = None
    photos: bool | None = None
    photosData: dict[str, dict[str, Any]] | None = None
    adminEdits: dict[str, dict[str, Any]] | None = None
    mainInputType: str | None = None
    mainInputSelected: bool | None = None
    mainInputSelection: int | None = None
    mainInputNotes: str | None = None
    mainInputZeroValue: float | None = None
    mainInputOneValue: float | None = None
    mainInputTwoValue: float | None = None
    mainInputThreeValue: float | None = None
    mainInputFourValue: float | None = None
    textInputValue: str | None = None
    signatureDownloadURL: str | None = None
    signatureTimestampKey: str | None = None
    version: int | None = None


class InspectionTemplateUpdate(BaseModel):
    """Patch to an inspection's template sections and items.

    A ``null`` section removes a user added multi-section with its items.
    """

    model_config = ConfigDict(extra="forbid")

    sections: dict[str, InspectionSectionUpdate | None] | None = None
    items: dict[str, InspectionItemUpdate] | None = None


# ==================== Endpoints ====================

@router.patch("/{inspection_id}/template")
async def update_inspection_template(
    inspection_id: str,
    body: InspectionTemplateUpdate,
    db: DbSession,
    eligibility: EligibilityTable,
) -> Response:
    """Update an inspection's sections and items.

    Responds 201 with the applied updates, or 204 when nothing changed.
    """
    changes = body.model_dump(exclude_unset=True)
    if not changes.get("sections") and not changes.get("items"):
        record_inspection_update("rejected")
        raise ApiError.single(
            http_status.HTTP_400_BAD_REQUEST,
            title="body missing update object",
            detail="Bad Request: inspection template update body required",
            pointer="body",
        )

    service = InspectionService(db, eligibility=eligibility)
    try:
        updates = await service.update_inspection_template(inspection_id, changes)
    except DocumentNotFoundError:
        raise ApiError.single(
            http_status.HTTP_404_NOT_FOUND,
            title="Inspection not found",
            pointer="inspection",
        )
    except PatchError as e:
        record_inspection_update("rejected")
        logger.warning("Rejected inspection patch", inspection_id=inspection_id, error=str(e))
        raise ApiError.single(http_status.HTTP_400_BAD_REQUEST, title="Invalid update", detail=str(e))

    if not updates:
        return Response(status_code=http_status.HTTP_204_NO_CONTENT)
    return document_response(inspection_id, "inspection", updates)
