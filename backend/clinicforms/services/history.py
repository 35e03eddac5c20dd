"""Builder command history.

Editing a schema is a sequence of commands applied to an immutable
``BuilderState``. Every mutating command pushes the previous schema onto
the undo stack; undo and redo move snapshots between the two stacks.
Nothing here touches a UI or holds global state.
"""

from typing import Optional, List, Dict, Any

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from clinicforms.config import get_settings
from clinicforms.schemas.builder import (
    BuilderSchema,
    ElementBase,
    Position,
    element_adapter,
    normalize_width,
)
from clinicforms.schemas.history import (
    BuilderState,
    AddElementCommand,
    UpdateElementCommand,
    DeleteElementCommand,
    ReorderElementsCommand,
    DuplicateElementCommand,
    ResizeElementCommand,
    SelectElementCommand,
    SetSchemaCommand,
    ClearAllCommand,
)
from clinicforms.services.elements import (
    calculate_next_position,
    clone_element,
    create_default_element,
    reorder_elements,
)

# Nested element keys whose values are merged rather than replaced
MERGED_KEYS = ("properties", "position", "prefill", "validation")


class CommandError(ValueError):
    """Raised when a command cannot be applied to the current state."""


def _snake_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {to_snake(key): value for key, value in data.items()}


def _index_of(elements: List[ElementBase], element_id: str) -> int:
    for index, element in enumerate(elements):
        if element.id == element_id:
            return index
    raise CommandError(f"Element {element_id} not found")


def _names(elements: List[ElementBase]) -> List[str]:
    return [el.name for el in elements if el.name]


def _with_schema(
    state: BuilderState,
    elements: List[ElementBase],
    selected_element_id: Optional[str],
    history_limit: int,
) -> BuilderState:
    """New state with ``elements`` as the current schema and the old one undoable."""
    undo_stack = (state.undo_stack + [state.builder_schema])[-history_limit:] if history_limit > 0 else []
    return BuilderState(
        builder_schema=BuilderSchema(elements=elements),
        selected_element_id=selected_element_id,
        undo_stack=undo_stack,
        redo_stack=[],
    )


def _update_element(element: ElementBase, changes: Dict[str, Any]) -> ElementBase:
    current = element.model_dump()
    changes = _snake_keys(changes)
    changes.pop("id", None)

    for key in MERGED_KEYS:
        if isinstance(changes.get(key), dict) and isinstance(current.get(key), dict):
            changes[key] = {**current[key], **_snake_keys(changes[key])}

    try:
        return element_adapter.validate_python({**current, **changes})
    except ValidationError as exc:
        raise CommandError(f"Invalid element update: {exc.errors()[0]['msg']}") from exc


def apply_command(state: BuilderState, command, history_limit: Optional[int] = None) -> BuilderState:
    """
    Apply one command and return the resulting state.

    ``state`` is never modified. Raises CommandError for a command that
    refers to a missing element or an out-of-range index.
    """
    if history_limit is None:
        history_limit = get_settings().history_limit

    elements = list(state.builder_schema.elements)

    if isinstance(command, SelectElementCommand):
        if command.element_id is not None:
            _index_of(elements, command.element_id)
        return state.model_copy(update={"selected_element_id": command.element_id})

    if isinstance(command, SetSchemaCommand):
        return BuilderState(builder_schema=command.builder_schema)

    if isinstance(command, AddElementCommand):
        try:
            element = create_default_element(command.element_type, _names(elements), command.label)
        except ValueError as exc:
            raise CommandError(f"Unknown element type: {command.element_type}") from exc
        if command.index is None or command.index >= len(elements):
            element.position = calculate_next_position(elements)
            elements.append(element)
        else:
            element.position = Position(row=command.index)
            elements.insert(command.index, element)
        return _with_schema(state, elements, element.id, history_limit)

    if isinstance(command, UpdateElementCommand):
        index = _index_of(elements, command.element_id)
        elements[index] = _update_element(elements[index], command.changes)
        return _with_schema(state, elements, state.selected_element_id, history_limit)

    if isinstance(command, DeleteElementCommand):
        index = _index_of(elements, command.element_id)
        del elements[index]
        selected = state.selected_element_id
        if selected == command.element_id:
            selected = None
        return _with_schema(state, elements, selected, history_limit)

    if isinstance(command, ReorderElementsCommand):
        if command.from_index >= len(elements) or command.to_index >= len(elements):
            raise CommandError("Reorder index out of range")
        elements = reorder_elements(elements, command.from_index, command.to_index)
        return _with_schema(state, elements, state.selected_element_id, history_limit)

    if isinstance(command, DuplicateElementCommand):
        index = _index_of(elements, command.element_id)
        copy = clone_element(elements[index], _names(elements))
        elements.insert(index + 1, copy)
        return _with_schema(state, elements, copy.id, history_limit)

    if isinstance(command, ResizeElementCommand):
        index = _index_of(elements, command.element_id)
        element = elements[index]
        width = normalize_width(command.width)
        elements[index] = element.model_copy(
            update={"position": element.position.model_copy(update={"width": width})}
        )
        return _with_schema(state, elements, state.selected_element_id, history_limit)

    if isinstance(command, ClearAllCommand):
        return _with_schema(state, [], None, history_limit)

    raise CommandError(f"Unsupported command: {getattr(command, 'action', command)!r}")


def _keep_selection(schema: BuilderSchema, selected_element_id: Optional[str]) -> Optional[str]:
    if selected_element_id and schema.get_element(selected_element_id):
        return selected_element_id
    return None


def undo(state: BuilderState) -> BuilderState:
    """Step back one snapshot; a no-op with nothing to undo."""
    if not state.undo_stack:
        return state
    previous = state.undo_stack[-1]
    return BuilderState(
        builder_schema=previous,
        selected_element_id=_keep_selection(previous, state.selected_element_id),
        undo_stack=state.undo_stack[:-1],
        redo_stack=state.redo_stack + [state.builder_schema],
    )


def redo(state: BuilderState) -> BuilderState:
    """Re-apply the last undone snapshot; a no-op with nothing to redo."""
    if not state.redo_stack:
        return state
    following = state.redo_stack[-1]
    return BuilderState(
        builder_schema=following,
        selected_element_id=_keep_selection(following, state.selected_element_id),
        undo_stack=state.undo_stack + [state.builder_schema],
        redo_stack=state.redo_stack[:-1],
    )
