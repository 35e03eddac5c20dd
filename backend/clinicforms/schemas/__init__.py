"""Pydantic schemas for the builder model and request/response validation."""

from clinicforms.schemas.builder import (
    BuilderSchema,
    Element,
    ElementType,
    PrefillConfig,
    Position,
    ValidationConfig,
)
from clinicforms.schemas.prefill import (
    PrefillData,
    PatientRecord,
    DoctorRecord,
    AppointmentRecord,
    SystemRecord,
)
from clinicforms.schemas.template import (
    TemplateCreate,
    TemplateUpdate,
    TemplateResponse,
    TemplateListResponse,
    SchemaValidationResult,
    MigrationResult,
)
from clinicforms.schemas.document import (
    DocumentCreate,
    DocumentResponse,
    SubmissionResult,
    TamperViolation,
)

__all__ = [
    # Builder
    "BuilderSchema",
    "Element",
    "ElementType",
    "PrefillConfig",
    "Position",
    "ValidationConfig",
    # Prefill
    "PrefillData",
    "PatientRecord",
    "DoctorRecord",
    "AppointmentRecord",
    "SystemRecord",
    # Template
    "TemplateCreate",
    "TemplateUpdate",
    "TemplateResponse",
    "TemplateListResponse",
    "SchemaValidationResult",
    "MigrationResult",
    # Document
    "DocumentCreate",
    "DocumentResponse",
    "SubmissionResult",
    "TamperViolation",
]
