"""Legacy V1 -> V2 template migration.

A V1 template is ``{"variables": [...], "content": "..."}`` where each
variable is a bare name or ``{name, label?, required?, placeholder?}``.
Every variable becomes one full-width element on its own row. Element
types and prefill bindings are inferred from the variable name.
"""

import logging
import re
from typing import Optional, List, Dict, Any, Tuple

from clinicforms.schemas.builder import (
    GRID_COLUMNS,
    SCHEMA_VERSION,
    ELEMENT_MODELS,
    BuilderSchema,
    ElementType,
    LegacyVariable,
    Position,
    PrefillConfig,
    generate_element_id,
)
from clinicforms.schemas.template import MigrationResult
from clinicforms.services.elements import generate_unique_field_name

logger = logging.getLogger(__name__)

ALREADY_V2_WARNING = "Schema is already V2; no migration performed"
CONTENT_NOT_MIGRATED_WARNING = (
    "Template free-text content was not migrated; only variables were converted to fields"
)

DATE_HINTS = ("date", "dob", "birth")
NUMBER_HINTS = (
    "age", "weight", "height", "count", "quantity", "amount", "number", "dose", "duration",
)
PARAGRAPH_HINTS = (
    "notes", "description", "comments", "remarks", "history", "complaint",
    "examination", "findings", "diagnosis", "prescription", "advice", "instructions",
)

# Types whose properties accept a placeholder
PLACEHOLDER_TYPES = frozenset({
    ElementType.TEXT.value,
    ElementType.NUMBER.value,
    ElementType.PARAGRAPH.value,
})


def normalize_variable_name(raw_name: str) -> str:
    """
    Turn a V1 variable name into a valid field name.

    Example: "patient.firstName" -> "patient_first_name"
    """
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(raw_name).strip())
    name = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    if name and not name[0].isalpha():
        name = f"field_{name}"
    return name


def humanize_name(raw_name: str) -> str:
    """
    Label for a variable without one.

    Example: "date_of_birth" -> "Date Of Birth", "chiefComplaint" -> "Chief Complaint"
    """
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", str(raw_name))
    words = [w for w in re.split(r"[\s._\-]+", spaced) if w]
    return " ".join(word.capitalize() for word in words)


def infer_element_type(name: str) -> str:
    """Element type from substrings of the lower-cased field name."""
    lowered = name.lower()
    if any(hint in lowered for hint in DATE_HINTS):
        return ElementType.DATE.value
    if any(hint in lowered for hint in NUMBER_HINTS):
        return ElementType.NUMBER.value
    if any(hint in lowered for hint in PARAGRAPH_HINTS):
        return ElementType.PARAGRAPH.value
    return ElementType.TEXT.value


def infer_prefill(name: str) -> Optional[Tuple[str, str, bool]]:
    """
    ``(source, field, readonly)`` for a field name, or None.

    Rules are tried in order; the first match wins. A generic
    ``date_of_birth`` matches none of them.
    """
    n = name.lower()

    if "age" in n and "patient" in n:
        return ("patient", "patient_age", True)
    if "gender" in n:
        return ("patient", "patient_gender", True)
    if "phone" in n and "doctor" not in n:
        return ("patient", "patient_phone", True)
    if "email" in n and "patient" in n:
        return ("patient", "patient_email", True)
    if n == "patient_id":
        return ("patient", "patient_id", True)
    if n == "patient" or "patient_name" in n:
        return ("patient", "patient_name", True)
    if "clinic" in n:
        return ("doctor", "doctor_clinic", True)
    if n == "doctor" or "doctor_name" in n:
        return ("doctor", "doctor_name", True)
    if "appointment" in n and "date" in n:
        return ("appointment", "appointment_date", True)
    if "appointment" in n and "time" in n:
        return ("appointment", "appointment_time", True)
    if n == "date" or "current_date" in n or "today" in n:
        return ("system", "current_date", True)
    if n == "time" or "current_time" in n:
        return ("system", "current_time", True)
    if "place" in n or "location" in n:
        # A default the user may change
        return ("system", "place", False)
    return None


def _text_attribute(variable: Dict[str, Any], key: str, position: int, warnings: List[str]) -> Optional[str]:
    value = variable.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        warnings.append(f"Variable {position} has a non-text {key}; it was ignored")
        return None
    return value


def _coerce_variable(variable: Any, position: int, warnings: List[str]) -> Optional[LegacyVariable]:
    if isinstance(variable, str):
        return LegacyVariable(name=variable) if variable.strip() else None
    if isinstance(variable, dict) and isinstance(variable.get("name"), str) and variable["name"].strip():
        return LegacyVariable(
            name=variable["name"],
            label=_text_attribute(variable, "label", position, warnings),
            required=bool(variable.get("required", False)),
            placeholder=_text_attribute(variable, "placeholder", position, warnings),
        )
    return None


def is_v2_schema(schema: Any) -> bool:
    """Whether a stored schema is already in the element format."""
    if not isinstance(schema, dict):
        return False
    if schema.get("version") in (2, "2", "2.0"):
        return True
    return "elements" in schema and "variables" not in schema


def migrate_legacy_schema(legacy: Any) -> MigrationResult:
    """
    Convert a V1 template to a V2 schema and report what changed.

    Migrating a schema that is already V2 returns it untouched with
    ``migrated`` false.
    """
    if is_v2_schema(legacy):
        return MigrationResult(migrated_schema=legacy, warnings=[ALREADY_V2_WARNING], migrated=False)

    changes: List[str] = []
    warnings: List[str] = []

    variables = legacy.get("variables") if isinstance(legacy, dict) else None
    if not isinstance(variables, list):
        variables = []
        warnings.append("Legacy template has no variable list")

    elements = []
    used_names: List[str] = []

    for index, raw in enumerate(variables):
        variable = _coerce_variable(raw, index + 1, warnings)
        if variable is None:
            warnings.append(f"Variable {index + 1} has no usable name and was skipped")
            continue

        base_name = normalize_variable_name(variable.name) or f"field_{index + 1}"
        name = generate_unique_field_name(base_name, used_names)
        used_names.append(name)
        if name != variable.name:
            changes.append(f'Renamed variable "{variable.name}" to "{name}"')

        element_type = infer_element_type(name)
        label = variable.label or humanize_name(variable.name)

        properties: Dict[str, Any] = {}
        if variable.placeholder and element_type in PLACEHOLDER_TYPES:
            properties["placeholder"] = variable.placeholder

        prefill = None
        binding = infer_prefill(name)
        if binding:
            source, field, readonly = binding
            prefill = PrefillConfig(enabled=True, source=source, field=field, readonly=readonly)
            changes.append(
                f'Bound "{name}" to {source}.{field}' + (" (read-only)" if readonly else "")
            )

        element = ELEMENT_MODELS[element_type](
            id=generate_element_id(),
            type=element_type,
            label=label,
            name=name,
            required=variable.required,
            properties=properties,
            position=Position(row=len(elements), col=0, width=GRID_COLUMNS),
            prefill=prefill,
        )
        elements.append(element)
        changes.append(f'Created {element_type} field "{name}" ({label})')

    warnings.append(CONTENT_NOT_MIGRATED_WARNING)

    schema = BuilderSchema(version=SCHEMA_VERSION, elements=elements)
    logger.info("Migrated legacy template: %d variables -> %d elements", len(variables), len(elements))

    return MigrationResult(
        migrated_schema=schema.model_dump(by_alias=True, mode="json", exclude_none=True),
        changes=changes,
        warnings=warnings,
    )
