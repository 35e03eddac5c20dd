"""SQLAlchemy models."""

from clinicforms.models.doctor import Doctor
from clinicforms.models.patient import Patient
from clinicforms.models.appointment import Appointment
from clinicforms.models.template import Template
from clinicforms.models.document import Document

__all__ = [
    "Doctor",
    "Patient",
    "Appointment",
    "Template",
    "Document",
]
