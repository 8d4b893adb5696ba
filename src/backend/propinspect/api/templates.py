"""Template API endpoints."""

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette import status as http_status

from propinspect.api.errors import ApiError, document_response
from propinspect.core.deps import DbSession
from propinspect.core.metrics import record_template_update
from propinspect.services.document_store import DocumentNotFoundError
from propinspect.services.pipeline import PatchError
from propinspect.services.template_service import TemplateService, TemplateServiceError

logger = structlog.get_logger()

router = APIRouter()


# ==================== Pydantic Schemas ====================

class TemplateSectionUpdate(BaseModel):
    """Changes to one template section."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1)
    index: int | None = None
    section_type: Literal["single", "multi"] | None = None


class TemplateItemUpdate(BaseModel):
    """Changes to one template item."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    index: int | None = None
    sectionId: str | None = None
    itemType: Literal["main", "text_input", "signature"] | None = None
    mainInputType: str | None = None
    mainInputZeroValue: float | None = None
    mainInputOneValue: float | None = None
    mainInputTwoValue: float | None = None
    mainInputThreeValue: float | None = None
    mainInputFourValue: float | None = None
    notes: bool | None = None
    photos: bool | None = None


class TemplateUpdate(BaseModel):
    """Patch to a template; ``null`` sections or items are removed."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1)
    description: str | None = None
    category: str | None = None
    trackDeficientItems: bool | None = None
    requireDeficientItemNoteAndPhoto: bool | None = None
    sections: dict[str, TemplateSectionUpdate | None] | None = None
    items: dict[str, TemplateItemUpdate | None] | None = None


# ==================== Endpoints ====================

@router.patch("/{template_id}")
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    db: DbSession,
) -> Response:
    """Update a template.

    Responds 201 with the applied updates, or 204 when nothing changed.
    """
    changes: dict[str, Any] = body.model_dump(exclude_unset=True)
    if not changes:
        record_template_update("rejected")
        raise ApiError.single(
            http_status.HTTP_400_BAD_REQUEST,
            title="body missing update object",
            detail="Bad Request: template update body required",
            pointer="body",
        )

    service = TemplateService(db)
    try:
        updates = await service.update_template(template_id, changes)
    except DocumentNotFoundError:
        raise ApiError.single(
            http_status.HTTP_404_NOT_FOUND,
            title="Template not found",
            pointer="template",
        )
    except TemplateServiceError as e:
        logger.warning("Rejected template patch", template_id=template_id, error=str(e))
        raise ApiError(
            http_status.HTTP_400_BAD_REQUEST,
            [{"source": {"pointer": err.pointer}, "detail": err.detail} for err in e.errors],
        )
    except PatchError as e:
        record_template_update("rejected")
        raise ApiError.single(http_status.HTTP_400_BAD_REQUEST, title="Invalid update", detail=str(e))

    if not updates:
        return Response(status_code=http_status.HTTP_204_NO_CONTENT)
    return document_response(template_id, "template", updates)
