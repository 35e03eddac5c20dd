"""Element catalogue and factory helpers for the document builder."""

import re
from typing import Optional, List, Iterable, Dict, Any

from clinicforms.schemas.builder import (
    GRID_COLUMNS,
    NON_DATA_TYPES,
    PATIENT_INFO_TYPES,
    ELEMENT_MODELS,
    ElementType,
    ElementBase,
    Position,
    generate_element_id,
)


ELEMENT_TYPE_LABELS: Dict[str, str] = {
    ElementType.TEXT.value: "Text Input",
    ElementType.NUMBER.value: "Number Input",
    ElementType.PARAGRAPH.value: "Paragraph",
    ElementType.DROPDOWN.value: "Dropdown",
    ElementType.RADIO.value: "Radio Buttons",
    ElementType.DATE.value: "Date Picker",
    ElementType.CALCULATED.value: "Calculated Field",
    ElementType.DIVIDER.value: "Divider",
    ElementType.HEADER.value: "Header",
    ElementType.IMAGE.value: "Image",
    ElementType.FOOTER.value: "Footer",
    ElementType.DOCUMENT_HEADER.value: "Document Header",
    ElementType.MEDICAL_HISTORY.value: "Medical History",
    ElementType.PATIENT_NAME.value: "Patient Name",
    ElementType.PATIENT_EMAIL.value: "Patient Email",
    ElementType.PATIENT_PHONE.value: "Patient Phone",
    ElementType.PATIENT_ADDRESS.value: "Patient Address",
    ElementType.PATIENT_AGE.value: "Patient Age",
    ElementType.PATIENT_GENDER.value: "Patient Gender",
    ElementType.PATIENT_BLOOD_GROUP.value: "Blood Group",
}

# Type-specific default properties for new elements
DEFAULT_PROPERTIES: Dict[str, Dict[str, Any]] = {
    ElementType.NUMBER.value: {"step": 1},
    ElementType.PARAGRAPH.value: {"rows": 4},
    ElementType.DROPDOWN.value: {"options": ["Option 1", "Option 2", "Option 3"]},
    ElementType.RADIO.value: {"options": ["Option 1", "Option 2", "Option 3"]},
    ElementType.CALCULATED.value: {"calculation": "bmi"},
    ElementType.HEADER.value: {"font_size": "large", "alignment": "left"},
    ElementType.FOOTER.value: {"content": "Footer Text", "alignment": "center"},
    ElementType.MEDICAL_HISTORY.value: {"format": "mixed"},
}

MAX_FIELD_NAME_LENGTH = 50


def is_input_element(element_type: str) -> bool:
    """Check if an element type holds a value."""
    return element_type not in NON_DATA_TYPES


def can_be_prefilled(element_type: str) -> bool:
    """Check if an element type accepts a prefill binding."""
    return element_type in (
        ElementType.TEXT.value,
        ElementType.NUMBER.value,
        ElementType.DATE.value,
        ElementType.DROPDOWN.value,
        ElementType.PARAGRAPH.value,
    )


def can_be_required(element_type: str) -> bool:
    """Calculated and patient-info values are derived, so never required."""
    return (
        is_input_element(element_type)
        and element_type != ElementType.CALCULATED.value
        and element_type not in PATIENT_INFO_TYPES
    )


def generate_field_name(label: str) -> str:
    """
    Generate a field name from a label.

    Example: "Blood Pressure (mmHg)" -> "blood_pressure_mmhg"
    """
    clean = re.sub(r"[^a-z0-9\s_]", "", label.lower())
    clean = re.sub(r"[\s_]+", "_", clean.strip()).strip("_")
    clean = clean[:MAX_FIELD_NAME_LENGTH].rstrip("_")
    if not clean:
        return "field"
    if not clean[0].isalpha():
        clean = f"field_{clean}"[:MAX_FIELD_NAME_LENGTH]
    return clean


def generate_unique_field_name(base_name: str, existing_names: Iterable[Optional[str]]) -> str:
    """Append _2, _3, ... to ``base_name`` until it is not taken."""
    taken = {name for name in existing_names if name}
    if base_name not in taken:
        return base_name
    counter = 2
    while f"{base_name}_{counter}" in taken:
        counter += 1
    return f"{base_name}_{counter}"


def create_default_element(
    element_type: str,
    existing_names: Iterable[Optional[str]] = (),
    label: Optional[str] = None,
) -> ElementBase:
    """
    Create a new element with default values.

    Data elements get a unique name derived from the label; decorative
    elements (divider, header, image, footer, documentHeader) get none.
    """
    element_type = ElementType(element_type).value
    label = label or ELEMENT_TYPE_LABELS[element_type]

    name = None
    if is_input_element(element_type):
        name = generate_unique_field_name(generate_field_name(label), existing_names)

    model = ELEMENT_MODELS[element_type]
    return model(
        id=generate_element_id(),
        type=element_type,
        label=label,
        name=name,
        required=False,
        properties=dict(DEFAULT_PROPERTIES.get(element_type, {})),
        position=Position(row=0, col=0, width=GRID_COLUMNS),
    )


def calculate_next_position(elements: List[ElementBase]) -> Position:
    """Position for an element appended after the current last one."""
    if not elements:
        return Position(row=0, col=0, width=GRID_COLUMNS)
    last = elements[-1]
    return Position(row=last.position.row + 1, col=0, width=GRID_COLUMNS)


def reorder_elements(elements: List[ElementBase], from_index: int, to_index: int) -> List[ElementBase]:
    """Move one element and renumber the row hints to match the new order."""
    result = list(elements)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return [
        el.model_copy(update={"position": el.position.model_copy(update={"row": index})})
        for index, el in enumerate(result)
    ]


def clone_element(element: ElementBase, existing_names: Iterable[Optional[str]]) -> ElementBase:
    """Copy an element with a new id and, for data elements, a unique ``_copy`` name."""
    name = None
    if element.name:
        base_name = re.sub(r"_copy(_\d+)?$", "", element.name)
        name = generate_unique_field_name(f"{base_name}_copy", existing_names)
    return element.model_copy(
        deep=True,
        update={
            "id": generate_element_id(),
            "name": name,
            "position": element.position.model_copy(update={"row": element.position.row + 1}),
        },
    )


def element_type_catalogue() -> List[Dict[str, Any]]:
    """Element types with their labels and capabilities."""
    return [
        {
            "type": element_type.value,
            "label": ELEMENT_TYPE_LABELS[element_type.value],
            "is_input": is_input_element(element_type.value),
            "can_be_prefilled": can_be_prefilled(element_type.value),
            "can_be_required": can_be_required(element_type.value),
        }
        for element_type in ElementType
    ]
