"""Document, submission and prefill request/response schemas."""

from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from clinicforms.schemas.prefill import PrefillData


class TamperViolation(BaseModel):
    """A submitted read-only value that disagrees with the server value."""
    field: str
    label: str
    expected: str
    received: str

    @property
    def message(self) -> str:
        return (
            f'Field "{self.label}" ({self.field}) is read-only and cannot be modified. '
            f'Expected: "{self.expected}", Received: "{self.received}"'
        )


class SubmissionResult(BaseModel):
    """
    Outcome of validating a submission.
    
    ``sanitized_values`` is always populated: read-only fields carry the
    server-recomputed values whether or not tampering was detected.
    """
    valid: bool
    sanitized_values: Dict[str, Any] = {}
    errors: List[str] = []
    tamper_violations: List[TamperViolation] = []
    prefill_data: Optional[PrefillData] = Field(None, description="Server-recomputed source data, when fetched")


class PrefillRequest(BaseModel):
    """Schema for requesting initial values for a new document."""
    template_id: int
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None
    doctor_id: Optional[int] = None
    place: Optional[str] = None


class PrefillResponse(BaseModel):
    """Initial form values plus the data they were resolved from."""
    form_data: Dict[str, Any]
    prefill_data: PrefillData
    readonly_fields: List[str]


class DocumentCreate(BaseModel):
    """Schema for creating a document from a V2 template."""
    template_id: int
    patient_id: int
    appointment_id: Optional[int] = None
    doctor_id: Optional[int] = None
    place: Optional[str] = None
    form_data: Dict[str, Any] = Field(default_factory=dict)


class DocumentResponse(BaseModel):
    """Schema for document responses."""
    id: int
    template_id: int
    patient_id: int
    doctor_id: Optional[int]
    appointment_id: Optional[int]
    document_name: str
    schema_snapshot: Dict[str, Any]
    form_data: Dict[str, Any]
    created_at: datetime
    
    class Config:
        from_attributes = True


class CalculationRequest(BaseModel):
    """Schema for evaluating one calculation against form values."""
    calculation: str
    form_data: Dict[str, Any] = Field(default_factory=dict)
    formula: Optional[str] = None


class CalculationResponse(BaseModel):
    value: Any
    display: str
