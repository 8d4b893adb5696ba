"""Generic JSON document model backing every collection."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from propinspect.models.base import Base, TimestampMixin


class Collection:
    """Collection names used by the service."""

    INSPECTIONS = "inspections"
    TEMPLATES = "templates"
    TEMPLATE_CATEGORIES = "templateCategories"
    DEFICIENCIES = "deficiencies"
    ARCHIVE = "archives"


class DocumentRecord(Base, TimestampMixin):
    """One JSON document, addressed by (collection, id).

    The property/inspection/item columns mirror the matching document
    attributes so deficiency lookups can filter without scanning JSON.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    property_id: Mapped[str | None] = mapped_column(String(128), index=True)
    inspection_id: Mapped[str | None] = mapped_column(String(128), index=True)
    item_id: Mapped[str | None] = mapped_column(String(128), index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<DocumentRecord {self.collection}/{self.id}>"
