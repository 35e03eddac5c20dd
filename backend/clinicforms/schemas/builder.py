"""Builder schema types: elements, positions, prefill and validation config.

Elements form a tagged union keyed by ``type``. Each variant carries only
the properties that make sense for it, so a ``dropdown`` has ``options``
and a ``calculated`` field has ``calculation``/``calculationFormula``, but
neither accepts the other's properties. On the wire every key is camelCase
(``calculationFormula``, ``helpText``); Python code uses snake_case.
"""

import re
import secrets
import time
from enum import Enum as PyEnum
from typing import Optional, List, Dict, Any, Union, Literal, Annotated

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel


GRID_COLUMNS = 12
SCHEMA_VERSION = 2
FIELD_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class ElementType(str, PyEnum):
    """Every kind of element a template can contain."""
    TEXT = "text"
    NUMBER = "number"
    PARAGRAPH = "paragraph"
    DROPDOWN = "dropdown"
    RADIO = "radio"
    DATE = "date"
    CALCULATED = "calculated"
    DIVIDER = "divider"
    HEADER = "header"
    IMAGE = "image"
    FOOTER = "footer"
    DOCUMENT_HEADER = "documentHeader"
    MEDICAL_HISTORY = "medicalHistory"
    PATIENT_NAME = "patientName"
    PATIENT_EMAIL = "patientEmail"
    PATIENT_PHONE = "patientPhone"
    PATIENT_ADDRESS = "patientAddress"
    PATIENT_AGE = "patientAge"
    PATIENT_GENDER = "patientGender"
    PATIENT_BLOOD_GROUP = "patientBloodGroup"


ELEMENT_TYPE_VALUES = frozenset(t.value for t in ElementType)

# Decorative elements: no name, no value
NON_DATA_TYPES = frozenset({
    ElementType.DIVIDER.value,
    ElementType.HEADER.value,
    ElementType.IMAGE.value,
    ElementType.FOOTER.value,
    ElementType.DOCUMENT_HEADER.value,
})

PATIENT_INFO_TYPES = frozenset({
    ElementType.PATIENT_NAME.value,
    ElementType.PATIENT_EMAIL.value,
    ElementType.PATIENT_PHONE.value,
    ElementType.PATIENT_ADDRESS.value,
    ElementType.PATIENT_AGE.value,
    ElementType.PATIENT_GENDER.value,
    ElementType.PATIENT_BLOOD_GROUP.value,
})

CHOICE_TYPES = frozenset({ElementType.DROPDOWN.value, ElementType.RADIO.value})


class PrefillSource(str, PyEnum):
    """External data sources a field can be prefilled from."""
    PATIENT = "patient"
    DOCTOR = "doctor"
    APPOINTMENT = "appointment"
    SYSTEM = "system"


# Closed catalogue of prefill fields per source
PREFILL_FIELDS: Dict[str, List[Dict[str, str]]] = {
    PrefillSource.PATIENT.value: [
        {"value": "patient_name", "label": "Patient Name"},
        {"value": "patient_phone", "label": "Phone Number"},
        {"value": "patient_email", "label": "Email Address"},
        {"value": "patient_id", "label": "Patient ID"},
        {"value": "patient_age", "label": "Age"},
        {"value": "patient_gender", "label": "Gender"},
    ],
    PrefillSource.DOCTOR.value: [
        {"value": "doctor_name", "label": "Doctor Name"},
        {"value": "doctor_clinic", "label": "Clinic Name"},
        {"value": "doctor_id", "label": "Doctor ID"},
    ],
    PrefillSource.APPOINTMENT.value: [
        {"value": "appointment_date", "label": "Appointment Date"},
        {"value": "appointment_time", "label": "Appointment Time"},
        {"value": "appointment_id", "label": "Appointment ID"},
    ],
    PrefillSource.SYSTEM.value: [
        {"value": "current_date", "label": "Current Date"},
        {"value": "current_time", "label": "Current Time"},
        {"value": "place", "label": "Place/Location"},
    ],
}


def prefill_field_names(source: str) -> List[str]:
    """Field keys valid for a prefill source; empty for an unknown source."""
    return [f["value"] for f in PREFILL_FIELDS.get(str(getattr(source, "value", source)), [])]


class CalculationType(str, PyEnum):
    """Built-in calculators plus the custom formula mode."""
    BMI = "bmi"
    AGE = "age"
    AGE_MONTHS = "age_months"
    DAYS_BETWEEN = "days_between"
    CUSTOM = "custom"


Alignment = Literal["left", "center", "right"]
FontSize = Literal["small", "medium", "large"]


def generate_element_id() -> str:
    """Unique element id: millisecond timestamp plus a random suffix."""
    return f"el_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def normalize_width(value: Any) -> int:
    """Clamp a grid width into 1..12; anything unusable becomes full width."""
    try:
        width = int(value)
    except (TypeError, ValueError):
        return GRID_COLUMNS
    if width < 1 or width > GRID_COLUMNS:
        return GRID_COLUMNS
    return width


class BuilderModel(BaseModel):
    """Base for builder types: camelCase on the wire, snake_case in Python."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Position(BuilderModel):
    """Grid placement hint. ``row``/``col`` are advisory; ``width`` spans 1-12 columns."""
    row: int = 0
    col: int = 0
    width: int = GRID_COLUMNS

    @field_validator("width", mode="before")
    @classmethod
    def clamp_width(cls, value: Any) -> int:
        return normalize_width(value)


class PrefillConfig(BuilderModel):
    """Binds an element to one field of an external data source."""
    enabled: bool = False
    source: PrefillSource
    field: str
    readonly: bool = False

    @model_validator(mode="after")
    def check_field_belongs_to_source(self) -> "PrefillConfig":
        if self.field not in prefill_field_names(self.source):
            raise ValueError(
                f"'{self.field}' is not a valid {self.source.value} prefill field"
            )
        return self


class ValidationConfig(BuilderModel):
    """Input constraints for text-like elements."""
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Per-type properties
# ---------------------------------------------------------------------------

class PropertiesBase(BuilderModel):
    """Properties reject keys that do not belong to their element type."""

    class Config:
        extra = "forbid"


class TextProperties(PropertiesBase):
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[str] = None


class NumberProperties(PropertiesBase):
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = 1
    unit: Optional[str] = None


class ParagraphProperties(TextProperties):
    rows: int = 4


class ChoiceProperties(PropertiesBase):
    options: List[str] = Field(default_factory=list)
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[str] = None


class DateProperties(PropertiesBase):
    help_text: Optional[str] = None
    default_value: Optional[str] = None


class CalculatedProperties(PropertiesBase):
    calculation: Optional[CalculationType] = None
    calculation_formula: Optional[str] = None
    unit: Optional[str] = None
    help_text: Optional[str] = None


class HeaderProperties(PropertiesBase):
    font_size: FontSize = "large"
    alignment: Alignment = "left"


class DividerProperties(PropertiesBase):
    pass


class ImageProperties(PropertiesBase):
    src: Optional[str] = None
    alt: str = "Image"
    width: Optional[int] = 200
    height: Optional[int] = None
    alignment: Alignment = "center"
    caption: Optional[str] = None


class FooterProperties(PropertiesBase):
    content: str = "Footer Text"
    alignment: Alignment = "center"
    font_size: FontSize = "small"
    show_line: bool = True


class DocumentHeaderProperties(PropertiesBase):
    logo_src: Optional[str] = None
    doctor_name: Optional[str] = None
    designation: Optional[str] = None
    education: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    alignment: Alignment = "left"
    show_doctor_name: bool = True
    show_designation: bool = True
    show_education: bool = True
    show_phone: bool = True
    show_email: bool = True


class MedicalHistoryProperties(PropertiesBase):
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[str] = None
    format: Literal["mixed", "bullets", "numbered", "paragraph"] = "mixed"


class PatientInfoProperties(PropertiesBase):
    help_text: Optional[str] = None


# ---------------------------------------------------------------------------
# Elements
# ---------------------------------------------------------------------------

class ElementBase(BuilderModel):
    """Fields shared by every element variant."""
    id: str = Field(default_factory=generate_element_id)
    label: str = ""
    name: Optional[str] = None
    required: bool = False
    position: Position = Field(default_factory=Position)
    prefill: Optional[PrefillConfig] = None
    validation: Optional[ValidationConfig] = None

    @property
    def is_data_element(self) -> bool:
        """Whether the element holds a value in the form data."""
        return self.type not in NON_DATA_TYPES

    @property
    def is_readonly(self) -> bool:
        """Prefilled and locked: the server value always wins."""
        return bool(self.prefill and self.prefill.enabled and self.prefill.readonly)


class TextElement(ElementBase):
    type: Literal["text"] = "text"
    properties: TextProperties = Field(default_factory=TextProperties)


class NumberElement(ElementBase):
    type: Literal["number"] = "number"
    properties: NumberProperties = Field(default_factory=NumberProperties)


class ParagraphElement(ElementBase):
    type: Literal["paragraph"] = "paragraph"
    properties: ParagraphProperties = Field(default_factory=ParagraphProperties)


class ChoiceElement(ElementBase):
    type: Literal["dropdown", "radio"]
    properties: ChoiceProperties = Field(default_factory=ChoiceProperties)


class DateElement(ElementBase):
    type: Literal["date"] = "date"
    properties: DateProperties = Field(default_factory=DateProperties)


class CalculatedElement(ElementBase):
    type: Literal["calculated"] = "calculated"
    properties: CalculatedProperties = Field(default_factory=CalculatedProperties)


class DividerElement(ElementBase):
    type: Literal["divider"] = "divider"
    properties: DividerProperties = Field(default_factory=DividerProperties)


class HeaderElement(ElementBase):
    type: Literal["header"] = "header"
    properties: HeaderProperties = Field(default_factory=HeaderProperties)


class ImageElement(ElementBase):
    type: Literal["image"] = "image"
    properties: ImageProperties = Field(default_factory=ImageProperties)


class FooterElement(ElementBase):
    type: Literal["footer"] = "footer"
    properties: FooterProperties = Field(default_factory=FooterProperties)


class DocumentHeaderElement(ElementBase):
    type: Literal["documentHeader"] = "documentHeader"
    properties: DocumentHeaderProperties = Field(default_factory=DocumentHeaderProperties)


class MedicalHistoryElement(ElementBase):
    type: Literal["medicalHistory"] = "medicalHistory"
    properties: MedicalHistoryProperties = Field(default_factory=MedicalHistoryProperties)


class PatientInfoElement(ElementBase):
    type: Literal[
        "patientName",
        "patientEmail",
        "patientPhone",
        "patientAddress",
        "patientAge",
        "patientGender",
        "patientBloodGroup",
    ]
    properties: PatientInfoProperties = Field(default_factory=PatientInfoProperties)


Element = Annotated[
    Union[
        TextElement,
        NumberElement,
        ParagraphElement,
        ChoiceElement,
        DateElement,
        CalculatedElement,
        DividerElement,
        HeaderElement,
        ImageElement,
        FooterElement,
        DocumentHeaderElement,
        MedicalHistoryElement,
        PatientInfoElement,
    ],
    Field(discriminator="type"),
]

element_adapter = TypeAdapter(Element)

# Element type -> variant class
ELEMENT_MODELS: Dict[str, type] = {
    ElementType.TEXT.value: TextElement,
    ElementType.NUMBER.value: NumberElement,
    ElementType.PARAGRAPH.value: ParagraphElement,
    ElementType.DROPDOWN.value: ChoiceElement,
    ElementType.RADIO.value: ChoiceElement,
    ElementType.DATE.value: DateElement,
    ElementType.CALCULATED.value: CalculatedElement,
    ElementType.DIVIDER.value: DividerElement,
    ElementType.HEADER.value: HeaderElement,
    ElementType.IMAGE.value: ImageElement,
    ElementType.FOOTER.value: FooterElement,
    ElementType.DOCUMENT_HEADER.value: DocumentHeaderElement,
    ElementType.MEDICAL_HISTORY.value: MedicalHistoryElement,
    **{t: PatientInfoElement for t in PATIENT_INFO_TYPES},
}


class BuilderSchema(BuilderModel):
    """Ordered, versioned collection of elements describing a template."""
    version: Literal[2] = SCHEMA_VERSION
    elements: List[Element] = Field(default_factory=list)

    def data_elements(self) -> List[ElementBase]:
        """Elements that carry a named value."""
        return [el for el in self.elements if el.is_data_element]

    def get_element(self, element_id: str) -> Optional[ElementBase]:
        """Find an element by id."""
        for element in self.elements:
            if element.id == element_id:
                return element
        return None


class LegacyVariable(BuilderModel):
    """One entry of a V1 template's variable list."""
    name: str
    label: Optional[str] = None
    required: bool = False
    placeholder: Optional[str] = None


# Form values keyed by element name
FormData = Dict[str, Any]


class ElementCreateRequest(BaseModel):
    """Request for a new element with type defaults."""
    element_type: str
    label: Optional[str] = None
    existing_names: List[str] = []


class LayoutRequest(BaseModel):
    """Raw elements to pack into canvas rows."""
    elements: List[Dict[str, Any]] = []
