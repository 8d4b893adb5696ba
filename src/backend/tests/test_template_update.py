"""Tests for the template update engine."""

import copy

import pytest

from propinspect.services.item_defaults import ITEM_DEFAULTS
from propinspect.services.pipeline import PatchError
from propinspect.services.template_update import TEMPLATE_STAGES, update_template

from factories import NOW


def new_item(item_type: str = "main", **attrs) -> dict:
    item = {
        "title": "Outlets",
        "index": 1,
        "itemType": item_type,
        "sectionId": "section-1",
        "mainInputType": "TwoActions_checkmarkX",
        "mainInputZeroValue": 3,
        "mainInputOneValue": 0,
        "mainInputTwoValue": 0,
        "mainInputThreeValue": 0,
        "mainInputFourValue": 0,
        "notes": True,
        "photos": False,
    }
    item.update(attrs)
    return item


@pytest.fixture
def template() -> dict:
    return {
        "name": "Unit turn",
        "description": "Move out checklist",
        "completedAt": NOW - 1000,
        "sections": {
            "section-1": {"title": "Kitchen", "index": 0, "section_type": "single",
                          "added_multi_section": False},
            "section-2": {"title": "Bath", "index": 1, "section_type": "single",
                          "added_multi_section": False},
        },
        "items": {
            "item-1": {**new_item(), **ITEM_DEFAULTS, "mainInputSelection": -1, "version": 2},
            "item-2": {**new_item(sectionId="section-2"), "version": 0},
        },
    }


class TestTemplateAttributes:
    """Tests for top level attribute updates."""

    def test_scalar_attributes_copied(self, template):
        updates = update_template(template, {"name": "Move in", "trackDeficientItems": True}, NOW)
        assert updates == {"name": "Move in", "trackDeficientItems": True, "updatedAt": NOW}

    def test_empty_patch(self, template):
        assert update_template(template, {}, NOW) == {}

    def test_inputs_not_mutated(self, template):
        original = copy.deepcopy(template)
        changes = {"items": {"item-1": {"itemType": "text_input"}}, "sections": {"section-2": None}}
        original_changes = copy.deepcopy(changes)

        update_template(template, changes, NOW)

        assert template == original
        assert changes == original_changes


class TestTemplateSections:
    """Tests for section upserts and removals."""

    def test_new_section_defaults(self, template):
        section = {"title": "Living room", "index": 2, "section_type": "multi"}
        updates = update_template(template, {"sections": {"section-3": section}}, NOW)
        assert updates["sections"] == {"section-3": {**section, "added_multi_section": False}}
        assert updates["updatedAt"] == NOW

    def test_changed_section(self, template):
        updates = update_template(template, {"sections": {"section-1": {"title": "Galley"}}}, NOW)
        assert updates["sections"] == {"section-1": {"title": "Galley"}}

    def test_unchanged_section(self, template):
        assert update_template(template, {"sections": {"section-1": {"index": 0}}}, NOW) == {}

    def test_removed_section_cascades_to_items(self, template):
        updates = update_template(template, {"sections": {"section-2": None}}, NOW)
        assert updates["sections"] == {"section-2": None}
        assert updates["items"] == {"item-2": None}

    def test_removing_missing_section(self, template):
        assert update_template(template, {"sections": {"section-9": None}}, NOW) == {}


class TestTemplateItems:
    """Tests for item upserts, type transitions and versions."""

    def test_new_main_item_defaults(self, template):
        item = new_item()
        updates = update_template(template, {"items": {"item-3": item}}, NOW)
        assert updates["items"]["item-3"] == {
            **item,
            **ITEM_DEFAULTS,
            "mainInputSelection": -1,
            "version": 0,
        }

    def test_new_text_input_item_defaults(self, template):
        updates = update_template(template, {"items": {"item-3": new_item("text_input")}}, NOW)
        item = updates["items"]["item-3"]
        assert item["isTextInputItem"] is True
        assert item["textInputValue"] == ""
        assert "mainInputSelection" not in item
        assert item["version"] == 0

    def test_new_signature_item_defaults(self, template):
        updates = update_template(template, {"items": {"item-3": new_item("signature")}}, NOW)
        item = updates["items"]["item-3"]
        assert item["isTextInputItem"] is False
        assert item["signatureDownloadURL"] == ""

    def test_changed_item_version_increments(self, template):
        updates = update_template(template, {"items": {"item-1": {"title": "Switches"}}}, NOW)
        assert updates["items"] == {"item-1": {"title": "Switches", "version": 3}}

    def test_version_starts_at_zero_without_version(self, template):
        del template["items"]["item-2"]["version"]
        updates = update_template(template, {"items": {"item-2": {"title": "Tub"}}}, NOW)
        assert updates["items"]["item-2"]["version"] == 0

    def test_unchanged_item_keeps_version(self, template):
        assert update_template(template, {"items": {"item-1": {"title": "Outlets"}}}, NOW) == {}

    def test_type_transition_resets_defaults(self, template):
        updates = update_template(template, {"items": {"item-1": {"itemType": "text_input"}}}, NOW)
        assert updates["items"]["item-1"] == {
            "itemType": "text_input",
            **ITEM_DEFAULTS,
            "isTextInputItem": True,
            "version": 3,
        }

    def test_type_transition_to_main(self, template):
        template["items"]["item-2"]["itemType"] = "signature"
        updates = update_template(template, {"items": {"item-2": {"itemType": "main"}}}, NOW)
        assert updates["items"]["item-2"]["mainInputSelection"] == -1
        assert updates["items"]["item-2"]["version"] == 1

    def test_same_type_different_case_keeps_attributes(self, template):
        updates = update_template(
            template, {"items": {"item-1": {"itemType": "MAIN", "title": "Plugs"}}}, NOW
        )
        assert updates["items"]["item-1"] == {"itemType": "MAIN", "title": "Plugs", "version": 3}

    def test_removed_item(self, template):
        updates = update_template(template, {"items": {"item-1": None}}, NOW)
        assert updates == {"items": {"item-1": None}, "updatedAt": NOW}

    def test_removing_missing_item(self, template):
        assert update_template(template, {"items": {"item-9": None}}, NOW) == {}


class TestTemplateCompletedAt:
    """Tests for the set-once completedAt date."""

    def test_completed_once_sections_and_items_exist(self):
        template = {"name": "Empty"}
        changes = {
            "sections": {"section-1": {"title": "Kitchen", "index": 0, "section_type": "single"}},
            "items": {"item-1": new_item()},
        }
        assert update_template(template, changes, NOW)["completedAt"] == NOW

    def test_section_alone_does_not_complete(self):
        changes = {"sections": {"section-1": {"title": "Kitchen", "index": 0, "section_type": "single"}}}
        assert "completedAt" not in update_template({"name": "Empty"}, changes, NOW)

    def test_completed_at_never_recomputed(self, template):
        updates = update_template(template, {"sections": {"section-1": None, "section-2": None}}, NOW)
        assert "completedAt" not in updates

    def test_stage_order(self):
        assert [stage.__name__ for stage in TEMPLATE_STAGES] == [
            "copy_template_attributes",
            "upsert_sections",
            "remove_sections",
            "upsert_items",
            "reset_transitioned_items",
            "increment_item_versions",
            "remove_items",
            "remove_section_items",
            "set_updated_at",
            "set_completed_at",
        ]


class TestTemplateUpdatePreconditions:
    """Tests for malformed arguments."""

    def test_invalid_template(self):
        with pytest.raises(PatchError):
            update_template("template", {}, NOW)

    def test_invalid_section_entry(self, template):
        with pytest.raises(PatchError):
            update_template(template, {"sections": {"section-1": ["Kitchen"]}}, NOW)

    def test_invalid_now(self, template):
        with pytest.raises(PatchError):
            update_template(template, {}, -1)
