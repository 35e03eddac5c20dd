"""Builder router: element catalogue, layout, validation, migration, calculations."""

from datetime import date
from typing import List, Dict, Any

from fastapi import APIRouter, HTTPException, status

from clinicforms.config import get_settings
from clinicforms.schemas.builder import ElementCreateRequest, LayoutRequest
from clinicforms.schemas.document import CalculationRequest, CalculationResponse
from clinicforms.schemas.history import BuilderState, CommandRequest
from clinicforms.schemas.prefill import PrefillFieldInfo
from clinicforms.schemas.template import SchemaValidationResult, MigrationResult
from clinicforms.services.calculation import (
    AVAILABLE_CALCULATIONS,
    execute_calculation,
    format_calculated_value,
)
from clinicforms.services.elements import create_default_element, element_type_catalogue
from clinicforms.services.history import CommandError, apply_command, undo, redo
from clinicforms.services.layout import describe_canvas_layout
from clinicforms.services.migration import migrate_legacy_schema
from clinicforms.services.prefill import get_all_prefill_fields
from clinicforms.services.validation import validate_schema

router = APIRouter()

settings = get_settings()


@router.get("/element-types")
async def list_element_types():
    """List element types with their labels and capabilities."""
    return element_type_catalogue()


@router.post("/elements")
async def create_element(request: ElementCreateRequest):
    """Create a new element with type defaults and a unique field name."""
    try:
        element = create_default_element(request.element_type, request.existing_names, request.label)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown element type: {request.element_type}"
        )
    return element.model_dump(by_alias=True, mode="json")


@router.post("/layout")
async def layout_elements(request: LayoutRequest):
    """Pack elements into canvas rows."""
    return {"rows": describe_canvas_layout(request.elements)}


@router.post("/validate", response_model=SchemaValidationResult)
async def validate_builder_schema(schema: Dict[str, Any]):
    """Validate a schema without saving it."""
    return validate_schema(schema)


@router.post("/migrate", response_model=MigrationResult)
async def migrate_schema(legacy_schema: Dict[str, Any]):
    """Convert a legacy variable template to an element schema."""
    return migrate_legacy_schema(legacy_schema)


@router.get("/calculations")
async def list_calculations():
    """List available calculations and the recommended recompute debounce."""
    return {
        "calculations": AVAILABLE_CALCULATIONS,
        "debounce_ms": settings.calculation_debounce_ms,
    }


@router.post("/calculate", response_model=CalculationResponse)
async def calculate(request: CalculationRequest):
    """Evaluate one calculation against the current form values."""
    value = execute_calculation(request.calculation, request.form_data, request.formula, today=date.today())
    return CalculationResponse(
        value=value,
        display=format_calculated_value(request.calculation, value),
    )


@router.post("/commands", response_model=BuilderState)
async def run_command(request: CommandRequest):
    """Apply a builder command, or undo/redo, and return the new state."""
    if request.operation == "undo":
        return undo(request.state)
    if request.operation == "redo":
        return redo(request.state)
    if request.command is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A command is required"
        )
    try:
        return apply_command(request.state, request.command, settings.history_limit)
    except CommandError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/prefill-fields", response_model=List[PrefillFieldInfo])
async def list_prefill_fields():
    """List every prefillable field grouped by source."""
    return get_all_prefill_fields()
