"""Prefill source records and the per-request PrefillData bag."""

from typing import Optional, List, Any

from pydantic import BaseModel, Field


class PatientRecord(BaseModel):
    """Patient fields available to prefill and patient-info elements."""
    id: str
    name: str
    phone: str = ""
    email: Optional[str] = None
    date_of_birth: Optional[str] = Field(None, description="ISO date, YYYY-MM-DD")
    gender: Optional[str] = None
    blood_group: Optional[str] = None
    address: Optional[str] = None


class DoctorRecord(BaseModel):
    """Doctor fields available to prefill."""
    id: str
    name: str
    clinic: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class AppointmentRecord(BaseModel):
    """Appointment fields available to prefill."""
    id: str
    appointment_date: str = Field(..., description="ISO date, YYYY-MM-DD")
    appointment_time: Optional[str] = Field(None, description="HH:MM, 24h")


class SystemRecord(BaseModel):
    """Clock and location values captured at resolution time."""
    current_date: str = Field(..., description="YYYY-MM-DD")
    current_time: str = Field(..., description="HH:MM, 24h")
    place: Optional[str] = None


class PrefillData(BaseModel):
    """
    Source records for one fill session.
    
    Built fresh for every fill or submission request and never persisted
    as an input. Any record may be missing; fields from a missing record
    resolve to ``None``.
    """
    patient: Optional[PatientRecord] = None
    doctor: Optional[DoctorRecord] = None
    appointment: Optional[AppointmentRecord] = None
    system: Optional[SystemRecord] = None


class PrefillFieldInfo(BaseModel):
    """Catalogue entry describing one prefillable field."""
    source: str
    value: str
    label: str


class PrefillSummaryEntry(BaseModel):
    """Resolved prefill binding for one element."""
    name: str
    label: str
    source: str
    field: str
    readonly: bool
    value: Optional[Any] = None


class PrefillSummary(BaseModel):
    """Prefill bindings of a schema grouped for display."""
    entries: List[PrefillSummaryEntry] = []
    readonly_fields: List[str] = []
    unresolved_fields: List[str] = []
