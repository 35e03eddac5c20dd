"""
Shared fixtures for all tests.

The application database is pointed at a throwaway SQLite file before
anything from ``clinicforms`` is imported; each test that needs tables
gets its own database under ``tmp_path``.
"""
import os
import tempfile

os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'clinicforms_app.db')}",
)

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from clinicforms.database import build_engine, init_db, get_db
from clinicforms.main import app
from clinicforms.models import Doctor, Patient, Appointment
from clinicforms.schemas.builder import BuilderSchema
from clinicforms.schemas.prefill import (
    PrefillData,
    PatientRecord,
    DoctorRecord,
    AppointmentRecord,
    SystemRecord,
)
from clinicforms.services.sources import SourceFetcher, DatabaseSourceFetcher, get_source_fetcher


FIXED_NOW = datetime(2024, 6, 15, 9, 30)


# ---------------------------------------------------------------------------
# Stub collaborators
# ---------------------------------------------------------------------------

class StubFetcher(SourceFetcher):
    """In-memory fetcher; ids listed in ``failing`` raise instead of returning."""

    def __init__(self, patients=None, doctors=None, appointments=None, failing=()):
        self.patients = patients or {}
        self.doctors = doctors or {}
        self.appointments = appointments or {}
        self.failing = set(failing)
        self.calls = []

    async def _get(self, kind, table, record_id):
        self.calls.append((kind, record_id))
        if kind in self.failing:
            raise RuntimeError(f"{kind} store unavailable")
        return table.get(str(record_id))

    async def fetch_patient(self, patient_id):
        return await self._get("patient", self.patients, patient_id)

    async def fetch_doctor(self, doctor_id):
        return await self._get("doctor", self.doctors, doctor_id)

    async def fetch_appointment(self, appointment_id):
        return await self._get("appointment", self.appointments, appointment_id)


def make_schema(*elements):
    """Parse raw element dicts into a BuilderSchema."""
    return BuilderSchema.model_validate({"version": 2, "elements": list(elements)})


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@pytest.fixture
def patient_record():
    return PatientRecord(
        id="1",
        name="Jane Roe",
        phone="555-0100",
        email="jane@example.com",
        date_of_birth="2000-06-15",
        gender="Female",
        blood_group="O+",
        address="12 Elm Street",
    )


@pytest.fixture
def doctor_record():
    return DoctorRecord(id="7", name="Dr. Smith", clinic="Riverside Clinic")


@pytest.fixture
def appointment_record():
    return AppointmentRecord(id="3", appointment_date="2024-06-15", appointment_time="10:30")


@pytest.fixture
def prefill_data(patient_record, doctor_record, appointment_record):
    """Prefill data as the server would recompute it on 2024-06-15 09:30."""
    return PrefillData(
        patient=patient_record,
        doctor=doctor_record,
        appointment=appointment_record,
        system=SystemRecord(current_date="2024-06-15", current_time="09:30", place="Ward 4"),
    )


@pytest.fixture
def stub_fetcher(patient_record, doctor_record, appointment_record):
    return StubFetcher(
        patients={"1": patient_record},
        doctors={"7": doctor_record},
        appointments={"3": appointment_record},
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    """One doctor, one patient born 2000-06-15 and one appointment."""
    doctor = Doctor(name="Dr. Smith", clinic_name="Riverside Clinic", designation="MD")
    db.add(doctor)
    db.flush()
    patient = Patient(
        doctor_id=doctor.id,
        name="Jane Roe",
        phone="555-0100",
        email="jane@example.com",
        date_of_birth=date(2000, 6, 15),
        gender="Female",
        blood_group="O+",
    )
    db.add(patient)
    db.flush()
    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=date(2024, 6, 15),
        appointment_time="10:30",
    )
    db.add(appointment)
    db.commit()
    return {"doctor": doctor, "patient": patient, "appointment": appointment}


@pytest.fixture
def client(session_factory):
    """API client bound to the per-test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_source_fetcher] = lambda: DatabaseSourceFetcher(session_factory)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
