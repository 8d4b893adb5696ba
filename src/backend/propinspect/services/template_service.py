"""Template Service applying user patches to stored templates."""

import time
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from propinspect.core.metrics import observe_update_engine, record_template_update
from propinspect.models.document import Collection
from propinspect.models.inspection import MAIN_INPUT_TYPES, SCORE_FIELDS, ItemKind, SectionType, is_number
from propinspect.services.document_store import DocumentNotFoundError, SQLDocumentStore
from propinspect.services.template_update import update_template

logger = structlog.get_logger()


@dataclass
class FieldError:
    """A rejected attribute of a patch."""

    pointer: str
    detail: str


class TemplateServiceError(Exception):
    """Raised when a template patch is rejected."""

    def __init__(self, errors: list[FieldError]):
        super().__init__("; ".join(f"{e.pointer}: {e.detail}" for e in errors))
        self.errors = errors


def _is_int(value: Any) -> bool:
    return is_number(value) and float(value).is_integer()


def _validate_new_section(section_id: str, section: dict[str, Any]) -> list[FieldError]:
    pointer = f"sections.{section_id}"
    errors = []
    if not isinstance(section.get("title"), str) or not section["title"]:
        errors.append(FieldError(f"{pointer}.title", "new section requires a title"))
    if not _is_int(section.get("index")):
        errors.append(FieldError(f"{pointer}.index", "new section requires a numeric index"))
    if section.get("section_type") not in {t.value for t in SectionType}:
        errors.append(FieldError(f"{pointer}.section_type", "new section requires a single or multi type"))
    return errors


def _validate_new_item(item_id: str, item: dict[str, Any]) -> list[FieldError]:
    pointer = f"items.{item_id}"
    errors = []
    if not isinstance(item.get("title"), str) or not item["title"]:
        errors.append(FieldError(f"{pointer}.title", "new item requires a title"))
    if not _is_int(item.get("index")):
        errors.append(FieldError(f"{pointer}.index", "new item requires a numeric index"))
    if item.get("itemType") not in {k.value for k in ItemKind}:
        errors.append(FieldError(f"{pointer}.itemType", "new item requires a main, text_input or signature type"))
    if not isinstance(item.get("sectionId"), str) or not item["sectionId"]:
        errors.append(FieldError(f"{pointer}.sectionId", "new item requires a section"))
    for score_field in SCORE_FIELDS:
        if not is_number(item.get(score_field)):
            errors.append(FieldError(f"{pointer}.{score_field}", "new item requires every score value"))

    if item.get("itemType") == ItemKind.MAIN.value:
        if str(item.get("mainInputType") or "").lower() not in MAIN_INPUT_TYPES:
            errors.append(FieldError(f"{pointer}.mainInputType", "new main item requires a known input type"))
        for flag in ("notes", "photos"):
            if not isinstance(item.get(flag), bool):
                errors.append(FieldError(f"{pointer}.{flag}", f"new main item requires {flag} setting"))
    return errors


def validate_new_entries(template: dict[str, Any], changes: dict[str, Any]) -> list[FieldError]:
    """Check that sections and items a patch adds are complete."""
    errors = []
    current_sections = template.get("sections") or {}
    for section_id, section in (changes.get("sections") or {}).items():
        if isinstance(section, dict) and section_id not in current_sections:
            errors.extend(_validate_new_section(section_id, section))

    current_items = template.get("items") or {}
    for item_id, item in (changes.get("items") or {}).items():
        if isinstance(item, dict) and item_id not in current_items:
            errors.extend(_validate_new_item(item_id, item))
    return errors


class TemplateService:
    """Service for template update operations."""

    def __init__(self, db: AsyncSession):
        """Initialize template service with database session."""
        self.db = db
        self.templates = SQLDocumentStore(db, Collection.TEMPLATES)
        self.categories = SQLDocumentStore(db, Collection.TEMPLATE_CATEGORIES)

    async def update_template(
        self,
        template_id: str,
        changes: dict[str, Any],
        now: int | None = None,
    ) -> dict[str, Any]:
        """Apply a patch to a template and persist it.

        Raises:
            DocumentNotFoundError: If the template does not exist.
            TemplateServiceError: If new entries are incomplete or the
                category does not exist.
            PatchError: If the patch is malformed.
        """
        template = await self.templates.find_record(template_id)
        if template is None:
            raise DocumentNotFoundError(Collection.TEMPLATES, template_id)

        errors = validate_new_entries(template, changes)
        category_id = changes.get("category")
        if category_id and await self.categories.find_record(category_id) is None:
            errors.append(FieldError("category", f"category {category_id} does not exist"))
        if errors:
            record_template_update("rejected")
            raise TemplateServiceError(errors)

        started = time.perf_counter()
        updates = update_template(template, changes, now)
        observe_update_engine("template", time.perf_counter() - started)

        if not updates:
            record_template_update("unchanged")
            return updates

        await self.templates.update_record(template_id, updates)
        record_template_update("updated")
        logger.info("Template updated", template_id=template_id, attributes=sorted(updates))
        return updates
