"""Tests for the deficient item sync service."""

import pytest

from propinspect.services.deficiency_deriver import (
    DeficiencySyncError,
    DeficiencySyncService,
    deficiency_id_for,
)
from propinspect.services.document_store import DocumentStoreError, apply_updates

from factories import NOW, main_item, make_inspection


def deficient(**attrs) -> dict:
    return {"mainInputSelected": True, "mainInputSelection": 1, **attrs}


def tracked(items: dict, **attrs) -> dict:
    return make_inspection(items=items, inspectionCompleted=True, updatedLastDate=NOW - 50, **attrs)


@pytest.fixture
def service(deficiencies, archive) -> DeficiencySyncService:
    return DeficiencySyncService(deficiencies, archive)


class FailingCreateStore:
    """Wraps a store, failing creates for one item."""

    def __init__(self, store, failing_item: str):
        self.store = store
        self.failing_item = failing_item
        self.collection = store.collection

    async def create_record(self, record_id, data):
        if data.get("item") == self.failing_item:
            raise DocumentStoreError("write rejected")
        return await self.store.create_record(record_id, data)

    def __getattr__(self, name):
        return getattr(self.store, name)


class TestDeficiencySyncService:
    """Tests for DeficiencySyncService.process_inspection_write."""

    @pytest.mark.asyncio
    async def test_creates_deficiencies(self, service, deficiencies):
        """New deficient items get a deterministic record id."""
        after = tracked({"item-1": main_item(**deficient()), "item-2": main_item()})

        result = await service.process_inspection_write("inspection-1", None, after, NOW)

        deficiency_id = deficiency_id_for("property-1", "inspection-1", "item-1")
        assert result.created == [deficiency_id]
        record = await deficiencies.find_record(deficiency_id)
        assert record["item"] == "item-1"
        assert record["property"] == "property-1"
        assert record["state"] == "requires-action"
        assert record["createdAt"] == NOW

    @pytest.mark.asyncio
    async def test_repeat_write_is_idempotent(self, service, deficiencies):
        after = tracked({"item-1": main_item(**deficient())})

        await service.process_inspection_write("inspection-1", None, after, NOW)
        result = await service.process_inspection_write("inspection-1", after, after, NOW + 10)

        assert result.created == []
        assert result.updated == []
        assert result.archived == []
        assert len(await deficiencies.query(inspection="inspection-1")) == 1

    @pytest.mark.asyncio
    async def test_updates_proxy_attributes(self, service, deficiencies):
        before = tracked({"item-1": main_item(**deficient())})
        await service.process_inspection_write("inspection-1", None, before, NOW)

        after = tracked({"item-1": main_item(**deficient(inspectorNotes="Cracked"))})
        result = await service.process_inspection_write("inspection-1", before, after, NOW + 10)

        deficiency_id = deficiency_id_for("property-1", "inspection-1", "item-1")
        assert result.updated == [deficiency_id]
        record = await deficiencies.find_record(deficiency_id)
        assert record["itemInspectorNotes"] == "Cracked"
        assert record["updatedAt"] == NOW + 10
        assert record["createdAt"] == NOW

    @pytest.mark.asyncio
    async def test_syncs_item_score(self, service, deficiencies):
        before = tracked({"item-1": main_item(mainInputType="threeactions_abc", **deficient())})
        await service.process_inspection_write("inspection-1", None, before, NOW)

        after = tracked({"item-1": main_item(
            mainInputType="threeactions_abc", mainInputTwoValue=2, **deficient(mainInputSelection=2)
        )})
        await service.process_inspection_write("inspection-1", before, after, NOW + 10)

        record = await deficiencies.find_record(deficiency_id_for("property-1", "inspection-1", "item-1"))
        assert record["itemMainInputSelection"] == 2
        assert record["itemScore"] == 2

    @pytest.mark.asyncio
    async def test_archives_resolved_deficiencies(self, service, deficiencies, archive):
        before = tracked({"item-1": main_item(**deficient())})
        await service.process_inspection_write("inspection-1", None, before, NOW)

        after = tracked({"item-1": main_item(mainInputSelected=True, mainInputSelection=0)})
        result = await service.process_inspection_write("inspection-1", before, after, NOW + 10)

        deficiency_id = deficiency_id_for("property-1", "inspection-1", "item-1")
        assert result.archived == [deficiency_id]
        assert await deficiencies.find_record(deficiency_id) is None
        archived = await archive.find_record(deficiency_id)
        assert archived["archive"] is True
        assert archived["_collection"] == "deficiencies"
        assert archived["item"] == "item-1"

    @pytest.mark.asyncio
    async def test_archives_deleted_and_na_items(self, service, deficiencies):
        before = tracked({
            "item-1": main_item(**deficient()),
            "item-2": main_item(**deficient()),
        })
        await service.process_inspection_write("inspection-1", None, before, NOW)

        after = tracked({"item-2": main_item(**deficient(isItemNA=True))})
        result = await service.process_inspection_write("inspection-1", before, after, NOW + 10)

        assert len(result.archived) == 2
        assert await deficiencies.query(inspection="inspection-1") == {}

    @pytest.mark.asyncio
    async def test_reoccurring_deficiency_restores_created_at(self, service, deficiencies, archive):
        deficient_inspection = tracked({"item-1": main_item(**deficient())})
        resolved_inspection = tracked({"item-1": main_item(mainInputSelected=True, mainInputSelection=0)})

        await service.process_inspection_write("inspection-1", None, deficient_inspection, NOW)
        await service.process_inspection_write(
            "inspection-1", deficient_inspection, resolved_inspection, NOW + 10
        )
        result = await service.process_inspection_write(
            "inspection-1", resolved_inspection, deficient_inspection, NOW + 20
        )

        deficiency_id = deficiency_id_for("property-1", "inspection-1", "item-1")
        assert result.created == [deficiency_id]
        record = await deficiencies.find_record(deficiency_id)
        assert record["createdAt"] == NOW
        assert record["updatedAt"] == NOW + 20
        assert await archive.find_record(deficiency_id) is None

    @pytest.mark.asyncio
    async def test_restores_archived_record_id(self, service, deficiencies, archive):
        """Archived records created elsewhere keep their own id."""
        await archive.create_record("legacy-id", {
            "property": "property-1",
            "inspection": "inspection-1",
            "item": "item-1",
            "createdAt": NOW - 1000,
            "archive": True,
        })
        after = tracked({"item-1": main_item(**deficient())})

        result = await service.process_inspection_write("inspection-1", None, after, NOW)

        assert result.created == ["legacy-id"]
        assert (await deficiencies.find_record("legacy-id"))["createdAt"] == NOW - 1000

    @pytest.mark.asyncio
    async def test_untracked_inspection_left_alone(self, service, deficiencies):
        after = tracked({"item-1": main_item(**deficient())})
        after["template"]["trackDeficientItems"] = False

        result = await service.process_inspection_write("inspection-1", None, after, NOW)

        assert result.created == []
        assert await deficiencies.query(inspection="inspection-1") == {}

    @pytest.mark.asyncio
    async def test_incomplete_inspection_left_alone(self, service, deficiencies):
        before = tracked({"item-1": main_item(**deficient())})
        await service.process_inspection_write("inspection-1", None, before, NOW)

        after = apply_updates(before, {"inspectionCompleted": False})
        result = await service.process_inspection_write("inspection-1", before, after, NOW + 10)

        assert result.archived == []
        assert len(await deficiencies.query(inspection="inspection-1")) == 1

    @pytest.mark.asyncio
    async def test_deleted_inspection_archives_everything(self, service, deficiencies, archive):
        before = tracked({"item-1": main_item(**deficient()), "item-2": main_item(**deficient())})
        await service.process_inspection_write("inspection-1", None, before, NOW)

        result = await service.process_inspection_write("inspection-1", before, None, NOW + 10)

        assert len(result.archived) == 2
        assert await deficiencies.query(inspection="inspection-1") == {}
        assert len(await archive.query(inspection="inspection-1")) == 2

    @pytest.mark.asyncio
    async def test_requires_property(self, service):
        after = tracked({"item-1": main_item(**deficient())})
        del after["property"]
        with pytest.raises(DeficiencySyncError):
            await service.process_inspection_write("inspection-1", None, after, NOW)

    @pytest.mark.asyncio
    async def test_incomplete_inspection_without_property(self, service, deficiencies):
        after = make_inspection(items={"item-1": main_item(**deficient())}, inspectionCompleted=False)
        del after["property"]

        result = await service.process_inspection_write("inspection-1", None, after, NOW)

        assert result.created == []
        assert result.failed == {}
        assert await deficiencies.query(inspection="inspection-1") == {}

    @pytest.mark.asyncio
    async def test_failed_record_does_not_stop_others(self, deficiencies, archive):
        service = DeficiencySyncService(FailingCreateStore(deficiencies, "item-1"), archive)
        after = tracked({"item-1": main_item(**deficient()), "item-2": main_item(**deficient())})

        result = await service.process_inspection_write("inspection-1", None, after, NOW)

        assert result.has_failures
        assert list(result.failed) == ["item-1"]
        assert result.created == [deficiency_id_for("property-1", "inspection-1", "item-2")]

        retry = DeficiencySyncService(deficiencies, archive)
        result = await retry.process_inspection_write("inspection-1", None, after, NOW)
        assert result.created == [deficiency_id_for("property-1", "inspection-1", "item-1")]
        assert len(await deficiencies.query(inspection="inspection-1")) == 2
