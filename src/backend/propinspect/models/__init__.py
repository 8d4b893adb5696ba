"""Database models and document vocabulary."""

from propinspect.models.base import Base, TimestampMixin
from propinspect.models.document import Collection, DocumentRecord
from propinspect.models.deficiency import DeficiencyState, PROXY_ATTRS, default_deficiency
from propinspect.models.inspection import ItemKind, SectionType, SCORE_FIELDS

__all__ = [
    "Base",
    "TimestampMixin",
    "Collection",
    "DocumentRecord",
    "DeficiencyState",
    "PROXY_ATTRS",
    "default_deficiency",
    "ItemKind",
    "SectionType",
    "SCORE_FIELDS",
]
