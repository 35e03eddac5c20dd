"""Source-record fetchers that feed the prefill engine."""

import asyncio
import logging
from typing import Optional, Callable

from sqlalchemy.orm import Session

from clinicforms.database import SessionLocal
from clinicforms.models.patient import Patient
from clinicforms.models.doctor import Doctor
from clinicforms.models.appointment import Appointment
from clinicforms.schemas.prefill import PatientRecord, DoctorRecord, AppointmentRecord

logger = logging.getLogger(__name__)


class SourceFetcher:
    """
    Interface for loading prefill source records.

    Implementations return ``None`` for a missing row and never raise for
    one. Each method is awaited independently so the three lookups can
    run concurrently.
    """

    async def fetch_patient(self, patient_id) -> Optional[PatientRecord]:
        raise NotImplementedError

    async def fetch_doctor(self, doctor_id) -> Optional[DoctorRecord]:
        raise NotImplementedError

    async def fetch_appointment(self, appointment_id) -> Optional[AppointmentRecord]:
        raise NotImplementedError


def patient_to_record(patient: Patient) -> PatientRecord:
    """Map a patient row to its prefill record."""
    return PatientRecord(
        id=str(patient.id),
        name=patient.name,
        phone=patient.phone or "",
        email=patient.email or None,
        date_of_birth=patient.date_of_birth.isoformat() if patient.date_of_birth else None,
        gender=patient.gender or None,
        blood_group=patient.blood_group or None,
        address=patient.address or None,
    )


def doctor_to_record(doctor: Doctor) -> DoctorRecord:
    """Map a doctor row to its prefill record."""
    return DoctorRecord(
        id=str(doctor.id),
        name=doctor.name,
        clinic=doctor.clinic_name or None,
        designation=doctor.designation or None,
        phone=doctor.phone or None,
        email=doctor.email or None,
    )


def appointment_to_record(appointment: Appointment) -> AppointmentRecord:
    """Map an appointment row to its prefill record."""
    return AppointmentRecord(
        id=str(appointment.id),
        appointment_date=appointment.appointment_date.isoformat(),
        appointment_time=appointment.appointment_time or None,
    )


class DatabaseSourceFetcher(SourceFetcher):
    """
    Loads source records with SQLAlchemy.

    Every lookup opens its own session and runs in a worker thread, so
    concurrent fetches never share a session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _load(self, model, record_id, to_record):
        if record_id is None:
            return None
        try:
            key = int(record_id)
        except (TypeError, ValueError):
            logger.info("Ignoring non-numeric %s id %r", model.__tablename__, record_id)
            return None
        db = self.session_factory()
        try:
            row = db.query(model).filter(model.id == key).first()
            return to_record(row) if row else None
        finally:
            db.close()

    async def fetch_patient(self, patient_id) -> Optional[PatientRecord]:
        return await asyncio.to_thread(self._load, Patient, patient_id, patient_to_record)

    async def fetch_doctor(self, doctor_id) -> Optional[DoctorRecord]:
        return await asyncio.to_thread(self._load, Doctor, doctor_id, doctor_to_record)

    async def fetch_appointment(self, appointment_id) -> Optional[AppointmentRecord]:
        return await asyncio.to_thread(
            self._load, Appointment, appointment_id, appointment_to_record
        )


def get_source_fetcher() -> SourceFetcher:
    """Dependency that provides the database-backed fetcher."""
    return DatabaseSourceFetcher(SessionLocal)
