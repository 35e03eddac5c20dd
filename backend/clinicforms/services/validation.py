"""Schema validator.

Works on the raw JSON form of a schema so that every structural problem
is reported as a readable message instead of a single parse failure.
Errors block saving a template; warnings are advisory.
"""

import re
from typing import List, Dict, Any, Union

from pydantic import BaseModel, ValidationError

from clinicforms.schemas.builder import (
    CHOICE_TYPES,
    ELEMENT_TYPE_VALUES,
    FIELD_NAME_PATTERN,
    NON_DATA_TYPES,
    SCHEMA_VERSION,
    CalculationType,
    ElementType,
    PrefillSource,
    element_adapter,
    prefill_field_names,
)
from clinicforms.schemas.template import SchemaValidationResult
from clinicforms.services.calculation import (
    FIELD_REFERENCE_PATTERN,
    SAFE_EXPRESSION_PATTERN,
    formula_references,
    to_number,
)
from clinicforms.services.elements import ELEMENT_TYPE_LABELS, can_be_prefilled, can_be_required

CALCULATION_VALUES = frozenset(c.value for c in CalculationType)
PREFILL_SOURCE_VALUES = frozenset(s.value for s in PrefillSource)

# Checked by hand below, so parse errors for these are not repeated
EXPLICITLY_CHECKED_PROPERTIES = frozenset({"options", "calculation", "calculationFormula"})

BMI_INPUT_HINTS = ("weight", "height")
AGE_INPUT_HINTS = ("dob", "birth", "date_of_birth")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_options(prefix: str, type_label: str, properties: Dict[str, Any]) -> List[str]:
    options = properties.get("options")
    if not isinstance(options, list) or not options:
        return [f"{prefix}{type_label} must have at least one option"]

    errors = []
    if any(not isinstance(option, str) or not option.strip() for option in options):
        errors.append(f"{prefix}{type_label} options cannot be empty")

    seen = set()
    for option in options:
        if isinstance(option, str) and option.strip():
            if option in seen:
                errors.append(f'{prefix}Duplicate option "{option}"')
            seen.add(option)
    return errors


def _check_number_range(prefix: str, properties: Dict[str, Any]) -> List[str]:
    minimum = to_number(properties.get("min"))
    maximum = to_number(properties.get("max"))
    if minimum is not None and maximum is not None and minimum > maximum:
        return [f"{prefix}Minimum value ({properties['min']}) cannot be greater than maximum value ({properties['max']})"]
    return []


def _check_calculation(prefix, properties, known_names, errors, warnings):
    calculation = properties.get("calculation")
    if _is_blank(calculation):
        errors.append(f"{prefix}Calculated field must have a calculation type")
        return
    if not isinstance(calculation, str) or calculation not in CALCULATION_VALUES:
        errors.append(f'{prefix}Unknown calculation type "{calculation}"')
        return
    if calculation != CalculationType.CUSTOM.value:
        return

    formula = properties.get("calculationFormula", properties.get("calculation_formula"))
    if _is_blank(formula):
        errors.append(f"{prefix}Custom calculation requires a formula")
        return
    if not isinstance(formula, str):
        errors.append(f"{prefix}Formula must be text")
        return

    for reference in formula_references(formula):
        if reference not in known_names:
            warnings.append(f'{prefix}Formula references unknown field "{reference}"')

    remainder = FIELD_REFERENCE_PATTERN.sub("0", formula)
    if remainder.strip() and not SAFE_EXPRESSION_PATTERN.match(remainder):
        warnings.append(
            f"{prefix}Formula contains characters other than numbers, field references and + - * / ( )"
        )


def _check_prefill(prefix, element_type, prefill, errors, warnings):
    if not isinstance(prefill, dict):
        errors.append(f"{prefix}Prefill configuration must be an object")
        return
    source = prefill.get("source")
    field = prefill.get("field")
    if not isinstance(source, str) or source not in PREFILL_SOURCE_VALUES:
        errors.append(f'{prefix}Unknown prefill source "{source}"')
    elif field not in prefill_field_names(source):
        errors.append(f'{prefix}"{field}" is not a valid {source} prefill field')
    if prefill.get("enabled") and not can_be_prefilled(element_type):
        warnings.append(f"{prefix}{ELEMENT_TYPE_LABELS[element_type]} elements are not normally prefilled")


def _check_pattern(prefix, validation, errors):
    if not isinstance(validation, dict):
        errors.append(f"{prefix}Validation configuration must be an object")
        return
    pattern = validation.get("pattern")
    if _is_blank(pattern):
        return
    try:
        re.compile(pattern)
    except (re.error, TypeError):
        errors.append(f'{prefix}Invalid validation pattern "{pattern}"')


def _check_properties_shape(prefix, element, errors):
    """Report properties the element's type does not accept, or of the wrong kind."""
    try:
        element_adapter.validate_python(element)
    except ValidationError as exc:
        for error in exc.errors():
            loc = [str(part) for part in error["loc"]]
            if "properties" not in loc:
                continue
            rest = loc[loc.index("properties") + 1:]
            key = rest[0] if rest else None
            if key in EXPLICITLY_CHECKED_PROPERTIES:
                continue
            if error["type"] == "extra_forbidden":
                errors.append(f'{prefix}Property "{key}" is not valid for {element["type"]} elements')
            elif key:
                errors.append(f'{prefix}Invalid value for property "{key}": {error["msg"]}')
            else:
                errors.append(f"{prefix}Properties must be an object")


def validate_schema(schema: Union[Dict[str, Any], BaseModel]) -> SchemaValidationResult:
    """
    Validate a builder schema.

    Accepts a raw schema mapping or a parsed ``BuilderSchema``. Element
    messages are prefixed with the 1-based element position.
    """
    if isinstance(schema, BaseModel):
        schema = schema.model_dump(by_alias=True, mode="json")

    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(schema, dict):
        return SchemaValidationResult(valid=False, errors=["Schema must be an object"])

    if "version" in schema and schema["version"] != SCHEMA_VERSION:
        errors.append(f"Unsupported schema version: {schema['version']}")

    elements = schema.get("elements", [])
    if not isinstance(elements, list):
        errors.append("Elements must be a list")
        return SchemaValidationResult(valid=False, errors=errors, warnings=warnings)

    if not elements:
        warnings.append("Schema has no elements")

    known_names = {
        el.get("name") for el in elements
        if isinstance(el, dict) and isinstance(el.get("name"), str)
    }
    first_index_by_name: Dict[str, int] = {}
    names_by_hint = []
    calculations = []
    has_required_candidate = False
    has_required = False

    for index, element in enumerate(elements, start=1):
        prefix = f"Element {index}: "

        if not isinstance(element, dict):
            errors.append(f"{prefix}Element must be an object")
            continue

        element_type = element.get("type")
        if not isinstance(element_type, str) or element_type not in ELEMENT_TYPE_VALUES:
            errors.append(f'{prefix}Unknown element type "{element_type}"')
            continue

        type_label = ELEMENT_TYPE_LABELS[element_type]
        is_data = element_type not in NON_DATA_TYPES
        label = element.get("label")
        name = element.get("name")

        if label is None and element_type != ElementType.DIVIDER.value:
            errors.append(f"{prefix}{type_label} is missing a label")
        elif is_data and _is_blank(label):
            warnings.append(f"{prefix}{type_label} has no label")

        if is_data:
            if _is_blank(name):
                errors.append(f"{prefix}{type_label} is missing a field name")
            elif not isinstance(name, str) or not FIELD_NAME_PATTERN.match(name):
                errors.append(
                    f'{prefix}Field name "{name}" must start with a lowercase letter '
                    f"and contain only lowercase letters, numbers and underscores"
                )

        if isinstance(name, str) and name:
            names_by_hint.append(name.lower())
            if name in first_index_by_name:
                errors.append(
                    f'Duplicate field name "{name}" (elements {first_index_by_name[name]} and {index})'
                )
            else:
                first_index_by_name[name] = index

        if can_be_required(element_type):
            has_required_candidate = True
            if element.get("required"):
                has_required = True

        properties = element.get("properties") or {}
        if not isinstance(properties, dict):
            errors.append(f"{prefix}Properties must be an object")
            continue

        if element_type in CHOICE_TYPES:
            errors.extend(_check_options(prefix, type_label, properties))
        elif element_type == ElementType.NUMBER.value:
            errors.extend(_check_number_range(prefix, properties))
        elif element_type == ElementType.CALCULATED.value:
            _check_calculation(prefix, properties, known_names, errors, warnings)
            calculations.append(properties.get("calculation"))

        if element.get("prefill") is not None:
            _check_prefill(prefix, element_type, element["prefill"], errors, warnings)

        if element.get("validation") is not None:
            _check_pattern(prefix, element["validation"], errors)

        _check_properties_shape(prefix, element, errors)

    if has_required_candidate and not has_required:
        warnings.append("No required fields in schema")

    if CalculationType.BMI.value in calculations:
        missing = [hint for hint in BMI_INPUT_HINTS if not any(hint in n for n in names_by_hint)]
        if missing:
            warnings.append(
                "BMI calculation needs fields whose names contain " +
                " and ".join(f'"{hint}"' for hint in missing)
            )

    if CalculationType.AGE.value in calculations or CalculationType.AGE_MONTHS.value in calculations:
        if not any(hint in n for n in names_by_hint for hint in AGE_INPUT_HINTS):
            warnings.append('Age calculation needs a date of birth field (name containing "dob" or "birth")')

    return SchemaValidationResult(valid=not errors, errors=errors, warnings=warnings)
