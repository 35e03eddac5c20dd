"""Tests for builder commands and undo/redo history."""
import pytest

from clinicforms.schemas.history import (
    AddElementCommand,
    BuilderState,
    ClearAllCommand,
    DeleteElementCommand,
    DuplicateElementCommand,
    ReorderElementsCommand,
    ResizeElementCommand,
    SelectElementCommand,
    SetSchemaCommand,
    UpdateElementCommand,
)
from clinicforms.services.history import CommandError, apply_command, redo, undo
from tests.conftest import make_schema


def with_elements(*types):
    state = BuilderState()
    for element_type in types:
        state = apply_command(state, AddElementCommand(element_type=element_type))
    return state


def names(state):
    return [el.name for el in state.builder_schema.elements]


class TestApplyCommand:

    def test_add_selects_new_element(self):
        state = apply_command(BuilderState(), AddElementCommand(element_type="text", label="Weight"))
        element = state.builder_schema.elements[0]
        assert element.name == "weight"
        assert state.selected_element_id == element.id
        assert state.can_undo
        assert not state.can_redo

    def test_add_at_index(self):
        state = with_elements("text", "number")
        state = apply_command(state, AddElementCommand(element_type="date", index=0))
        assert [el.type for el in state.builder_schema.elements] == ["date", "text", "number"]

    def test_add_unknown_type(self):
        with pytest.raises(CommandError):
            apply_command(BuilderState(), AddElementCommand(element_type="signature"))

    def test_original_state_is_untouched(self):
        state = with_elements("text")
        apply_command(state, ClearAllCommand())
        assert len(state.builder_schema.elements) == 1

    def test_update_merges_properties(self):
        state = with_elements("dropdown")
        element_id = state.builder_schema.elements[0].id
        state = apply_command(state, UpdateElementCommand(
            element_id=element_id,
            changes={"label": "Smoker", "required": True, "properties": {"options": ["Yes", "No"], "helpText": "Any tobacco"}},
        ))
        element = state.builder_schema.elements[0]
        assert element.label == "Smoker"
        assert element.required
        assert element.properties.options == ["Yes", "No"]
        assert element.properties.help_text == "Any tobacco"
        assert element.id == element_id

    def test_update_rejects_foreign_properties(self):
        state = with_elements("dropdown")
        element_id = state.builder_schema.elements[0].id
        with pytest.raises(CommandError):
            apply_command(state, UpdateElementCommand(element_id=element_id, changes={"properties": {"rows": 3}}))

    def test_update_missing_element(self):
        with pytest.raises(CommandError):
            apply_command(BuilderState(), UpdateElementCommand(element_id="nope", changes={"label": "X"}))

    def test_delete_clears_selection(self):
        state = with_elements("text", "number")
        selected = state.selected_element_id
        state = apply_command(state, DeleteElementCommand(element_id=selected))
        assert names(state) == ["text_input"]
        assert state.selected_element_id is None

    def test_reorder(self):
        state = with_elements("text", "number", "date")
        state = apply_command(state, ReorderElementsCommand(from_index=2, to_index=0))
        assert names(state) == ["date_picker", "text_input", "number_input"]
        with pytest.raises(CommandError):
            apply_command(state, ReorderElementsCommand(from_index=0, to_index=3))

    def test_duplicate_inserts_after_original(self):
        state = with_elements("text", "number")
        first_id = state.builder_schema.elements[0].id
        state = apply_command(state, DuplicateElementCommand(element_id=first_id))
        assert names(state) == ["text_input", "text_input_copy", "number_input"]
        assert state.selected_element_id == state.builder_schema.elements[1].id

    @pytest.mark.parametrize("width, expected", [(6, 6), (1, 1), (20, 12), (0, 12)])
    def test_resize(self, width, expected):
        state = with_elements("text")
        element_id = state.builder_schema.elements[0].id
        state = apply_command(state, ResizeElementCommand(element_id=element_id, width=width))
        assert state.builder_schema.elements[0].position.width == expected


class TestSelectionAndReset:

    def test_select_does_not_touch_history(self):
        state = with_elements("text", "number")
        first_id = state.builder_schema.elements[0].id
        selected = apply_command(state, SelectElementCommand(element_id=first_id))
        assert selected.selected_element_id == first_id
        assert selected.undo_stack == state.undo_stack
        assert apply_command(selected, SelectElementCommand()).selected_element_id is None

    def test_select_unknown_element(self):
        with pytest.raises(CommandError):
            apply_command(BuilderState(), SelectElementCommand(element_id="nope"))

    def test_set_schema_resets_history(self):
        state = with_elements("text", "number")
        schema = make_schema({"type": "date", "label": "Visit", "name": "visit"})
        state = apply_command(state, SetSchemaCommand(builder_schema=schema))
        assert names(state) == ["visit"]
        assert not state.can_undo
        assert not state.can_redo


class TestUndoRedo:

    def test_undo_then_redo(self):
        state = with_elements("text", "number")
        undone = undo(state)
        assert names(undone) == ["text_input"]
        assert undone.can_redo
        redone = redo(undone)
        assert names(redone) == ["text_input", "number_input"]
        assert not redone.can_redo

    def test_undo_clear_all(self):
        state = apply_command(with_elements("text", "header"), ClearAllCommand())
        assert names(state) == []
        assert names(undo(state)) == ["text_input", None]

    def test_new_command_discards_redo(self):
        state = undo(with_elements("text", "number"))
        state = apply_command(state, AddElementCommand(element_type="date"))
        assert not state.can_redo
        assert names(state) == ["text_input", "date_picker"]

    def test_nothing_to_undo_or_redo(self):
        state = BuilderState()
        assert undo(state) is state
        assert redo(state) is state

    def test_selection_dropped_when_element_disappears(self):
        state = with_elements("text")
        assert state.selected_element_id is not None
        assert undo(state).selected_element_id is None

    def test_history_limit(self):
        state = BuilderState()
        for _ in range(4):
            state = apply_command(state, AddElementCommand(element_type="text"), history_limit=2)
        assert len(state.undo_stack) == 2
        state = undo(undo(state))
        assert len(state.builder_schema.elements) == 2
        assert not state.can_undo
