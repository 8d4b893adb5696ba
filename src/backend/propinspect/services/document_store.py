"""JSON document store backed by SQLAlchemy."""

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from propinspect.models.document import DocumentRecord

logger = structlog.get_logger()

# Document attribute -> indexed column
INDEXED_ATTRS: dict[str, str] = {
    "property": "property_id",
    "inspection": "inspection_id",
    "item": "item_id",
}


class DocumentStoreError(Exception):
    """Raised when a document store operation fails."""

    pass


def apply_updates(document: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Deep merge an updates object into a copy of a document.

    Nested mappings merge recursively, an empty mapping replaces the stored
    value and ``None`` removes the key.
    """
    result = copy.deepcopy(dict(document))
    for key, value in updates.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, Mapping) and not value:
            result[key] = {}
        elif isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = apply_updates(result[key], value)
        elif isinstance(value, Mapping):
            result[key] = apply_updates({}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class DocumentStore(ABC):
    """Interface for one collection of JSON documents."""

    collection: str

    @abstractmethod
    async def find_record(self, record_id: str) -> dict[str, Any] | None:
        """Get a document by id."""

    @abstractmethod
    async def create_record(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a document, failing if the id is taken."""

    @abstractmethod
    async def update_record(self, record_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        """Deep merge updates into an existing document."""

    @abstractmethod
    async def remove_record(self, record_id: str) -> bool:
        """Delete a document, returning whether it existed."""

    @abstractmethod
    async def query(self, **filters: str) -> dict[str, dict[str, Any]]:
        """Find documents by property, inspection or item id."""

    async def find_one(self, **filters: str) -> tuple[str, dict[str, Any]] | None:
        """First ``(id, document)`` matching the filters, if any."""
        for record_id, data in (await self.query(**filters)).items():
            return record_id, data
        return None


class SQLDocumentStore(DocumentStore):
    """Document store for one collection of the ``documents`` table."""

    def __init__(self, db: AsyncSession, collection: str):
        self.db = db
        self.collection = collection

    async def _get(self, record_id: str) -> DocumentRecord | None:
        result = await self.db.execute(
            select(DocumentRecord).where(
                DocumentRecord.collection == self.collection,
                DocumentRecord.id == record_id,
            )
        )
        return result.scalar_one_or_none()

    def _index(self, record: DocumentRecord, data: Mapping[str, Any]) -> None:
        for attr, column in INDEXED_ATTRS.items():
            value = data.get(attr)
            setattr(record, column, str(value) if value is not None else None)

    async def _commit(self, action: str, record_id: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Document store write failed",
                collection=self.collection,
                record_id=record_id,
                action=action,
                error=str(e),
            )
            raise DocumentStoreError(
                f"failed to {action} {self.collection}/{record_id}"
            ) from e

    async def find_record(self, record_id: str) -> dict[str, Any] | None:
        try:
            record = await self._get(record_id)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"failed to read {self.collection}/{record_id}") from e
        if record is None:
            return None
        return copy.deepcopy(record.data)

    async def create_record(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        if await self.find_record(record_id) is not None:
            raise DocumentStoreError(f"{self.collection}/{record_id} already exists")

        record = DocumentRecord(
            collection=self.collection,
            id=record_id,
            data=copy.deepcopy(data),
        )
        self._index(record, data)
        self.db.add(record)
        await self._commit("create", record_id)
        return copy.deepcopy(data)

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        try:
            record = await self._get(record_id)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"failed to read {self.collection}/{record_id}") from e
        if record is None:
            raise DocumentStoreError(f"{self.collection}/{record_id} does not exist")

        data = apply_updates(record.data, updates)
        # Reassign so the JSON column is flagged dirty
        record.data = data
        self._index(record, data)
        await self._commit("update", record_id)
        return copy.deepcopy(data)

    async def remove_record(self, record_id: str) -> bool:
        try:
            record = await self._get(record_id)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"failed to read {self.collection}/{record_id}") from e
        if record is None:
            return False
        await self.db.delete(record)
        await self._commit("remove", record_id)
        return True

    async def query(self, **filters: str) -> dict[str, dict[str, Any]]:
        query = select(DocumentRecord).where(DocumentRecord.collection == self.collection)
        for attr, value in filters.items():
            if attr not in INDEXED_ATTRS:
                raise ValueError(f"cannot query {self.collection} by {attr}")
            query = query.where(getattr(DocumentRecord, INDEXED_ATTRS[attr]) == str(value))

        try:
            result = await self.db.execute(query.order_by(DocumentRecord.id))
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"failed to query {self.collection}") from e
        return {record.id: copy.deepcopy(record.data) for record in result.scalars().all()}


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a required document does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection}/{record_id} not found")
        self.collection = collection
        self.record_id = record_id
