"""Builder command history schemas.

Editor state is a plain value: the current schema, the selection and two
stacks of schema snapshots. Commands are tagged by ``action``.
"""

from typing import Optional, List, Dict, Any, Union, Literal, Annotated

from pydantic import BaseModel, Field

from clinicforms.schemas.builder import BuilderSchema


class BuilderState(BaseModel):
    """Serializable editor state."""
    builder_schema: BuilderSchema = Field(default_factory=BuilderSchema)
    selected_element_id: Optional[str] = None
    undo_stack: List[BuilderSchema] = []
    redo_stack: List[BuilderSchema] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)


class AddElementCommand(BaseModel):
    action: Literal["add_element"] = "add_element"
    element_type: str
    label: Optional[str] = None
    index: Optional[int] = Field(None, ge=0, description="Insert position; appends when omitted")


class UpdateElementCommand(BaseModel):
    action: Literal["update_element"] = "update_element"
    element_id: str
    changes: Dict[str, Any]


class DeleteElementCommand(BaseModel):
    action: Literal["delete_element"] = "delete_element"
    element_id: str


class ReorderElementsCommand(BaseModel):
    action: Literal["reorder_elements"] = "reorder_elements"
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class DuplicateElementCommand(BaseModel):
    action: Literal["duplicate_element"] = "duplicate_element"
    element_id: str


class ResizeElementCommand(BaseModel):
    action: Literal["resize_element"] = "resize_element"
    element_id: str
    width: int


class SelectElementCommand(BaseModel):
    action: Literal["select_element"] = "select_element"
    element_id: Optional[str] = None


class SetSchemaCommand(BaseModel):
    action: Literal["set_schema"] = "set_schema"
    builder_schema: BuilderSchema


class ClearAllCommand(BaseModel):
    action: Literal["clear_all"] = "clear_all"


BuilderCommand = Annotated[
    Union[
        AddElementCommand,
        UpdateElementCommand,
        DeleteElementCommand,
        ReorderElementsCommand,
        DuplicateElementCommand,
        ResizeElementCommand,
        SelectElementCommand,
        SetSchemaCommand,
        ClearAllCommand,
    ],
    Field(discriminator="action"),
]


class CommandRequest(BaseModel):
    """Apply one command, or undo/redo, to a client-held state."""
    state: BuilderState = Field(default_factory=BuilderState)
    command: Optional[BuilderCommand] = None
    operation: Literal["apply", "undo", "redo"] = "apply"
