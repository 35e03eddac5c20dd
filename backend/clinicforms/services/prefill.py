"""Prefill engine.

Resolves element values from the patient, doctor, appointment and system
sources, and enforces that read-only prefilled fields always carry the
server's value.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Iterable

from clinicforms.schemas.builder import (
    PREFILL_FIELDS,
    PATIENT_INFO_TYPES,
    BuilderSchema,
    ElementBase,
    ElementType,
    PrefillConfig,
    FormData,
)
from clinicforms.schemas.prefill import (
    PrefillData,
    SystemRecord,
    PrefillFieldInfo,
    PrefillSummary,
    PrefillSummaryEntry,
)
from clinicforms.schemas.document import TamperViolation
from clinicforms.services.calculation import calendar_age, parse_date
from clinicforms.services.sources import SourceFetcher

logger = logging.getLogger(__name__)


def get_all_prefill_fields() -> List[PrefillFieldInfo]:
    """Every prefillable field as a flat list."""
    return [
        PrefillFieldInfo(source=source, value=field["value"], label=field["label"])
        for source, fields in PREFILL_FIELDS.items()
        for field in fields
    ]


def is_field_readonly(prefill: Optional[PrefillConfig]) -> bool:
    """Check if a field is prefilled and locked."""
    return bool(prefill and prefill.enabled and prefill.readonly)


def get_system_data(place: Optional[str] = None, now: Optional[datetime] = None) -> SystemRecord:
    """Current date (YYYY-MM-DD) and time (HH:MM) plus the optional place."""
    now = now or datetime.now()
    return SystemRecord(
        current_date=now.strftime("%Y-%m-%d"),
        current_time=now.strftime("%H:%M"),
        place=place or None,
    )


def _reference_date(prefill_data: PrefillData, today: Optional[date]) -> date:
    if today:
        return today
    if prefill_data.system:
        system_date = parse_date(prefill_data.system.current_date)
        if system_date:
            return system_date
    return date.today()


def _patient_age(prefill_data: PrefillData, today: Optional[date]) -> Optional[int]:
    birth = parse_date(prefill_data.patient.date_of_birth)
    if birth is None:
        return None
    reference = _reference_date(prefill_data, today)
    if birth > reference:
        return None
    return calendar_age(birth, reference)


def resolve_prefill_field(
    prefill_data: PrefillData,
    source: str,
    field: str,
    today: Optional[date] = None,
) -> Any:
    """
    Value of one catalogue field, or None.

    Never raises: an absent source record or an unset field resolves to
    None.
    """
    source = getattr(source, "value", source)

    if source == "patient":
        patient = prefill_data.patient
        if not patient:
            return None
        if field == "patient_age":
            return _patient_age(prefill_data, today)
        return {
            "patient_name": patient.name,
            "patient_phone": patient.phone,
            "patient_email": patient.email,
            "patient_id": patient.id,
            "patient_gender": patient.gender,
        }.get(field)

    if source == "doctor":
        doctor = prefill_data.doctor
        if not doctor:
            return None
        return {
            "doctor_name": doctor.name,
            "doctor_clinic": doctor.clinic,
            "doctor_id": doctor.id,
        }.get(field)

    if source == "appointment":
        appointment = prefill_data.appointment
        if not appointment:
            return None
        return {
            "appointment_date": appointment.appointment_date,
            "appointment_time": appointment.appointment_time,
            "appointment_id": appointment.id,
        }.get(field)

    if source == "system":
        system = prefill_data.system
        if not system:
            return None
        return {
            "current_date": system.current_date,
            "current_time": system.current_time,
            "place": system.place,
        }.get(field)

    return None


def get_prefill_value(
    prefill_data: PrefillData,
    prefill: Optional[PrefillConfig],
    today: Optional[date] = None,
) -> Any:
    """Value for an element's prefill binding; None when disabled or unresolved."""
    if not prefill or not prefill.enabled:
        return None
    return resolve_prefill_field(prefill_data, prefill.source, prefill.field, today)


def resolve_patient_info(
    element_type: str,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> Any:
    """Value shown by a patient-info element (patientName, patientAge, ...)."""
    patient = prefill_data.patient
    if not patient or element_type not in PATIENT_INFO_TYPES:
        return None
    if element_type == ElementType.PATIENT_AGE.value:
        return _patient_age(prefill_data, today)
    return {
        ElementType.PATIENT_NAME.value: patient.name,
        ElementType.PATIENT_EMAIL.value: patient.email,
        ElementType.PATIENT_PHONE.value: patient.phone or None,
        ElementType.PATIENT_ADDRESS.value: patient.address,
        ElementType.PATIENT_GENDER.value: patient.gender,
        ElementType.PATIENT_BLOOD_GROUP.value: patient.blood_group,
    }.get(element_type)


def apply_prefill(
    elements: Iterable[ElementBase],
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Prefilled values keyed by element name; unresolved bindings are skipped."""
    values = {}
    for element in elements:
        if not element.name or not element.prefill or not element.prefill.enabled:
            continue
        value = get_prefill_value(prefill_data, element.prefill, today)
        if value is not None:
            values[element.name] = value
    return values


def build_initial_form_data(
    schema: BuilderSchema,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> FormData:
    """
    Starting values for a new document.

    Prefill values first, then default values of elements without an
    enabled prefill, then patient-info values.
    """
    form_data = apply_prefill(schema.elements, prefill_data, today)

    for element in schema.data_elements():
        if element.name in form_data:
            continue
        if element.type in PATIENT_INFO_TYPES:
            value = resolve_patient_info(element.type, prefill_data, today)
            if value is not None:
                form_data[element.name] = value
            continue
        if element.prefill and element.prefill.enabled:
            continue
        default = getattr(element.properties, "default_value", None)
        if default is not None:
            form_data[element.name] = default

    return form_data


def readonly_field_names(schema: BuilderSchema) -> List[str]:
    """Names of every read-only prefilled element."""
    return [el.name for el in schema.elements if el.name and is_field_readonly(el.prefill)]


def summarize_prefill(
    schema: BuilderSchema,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> PrefillSummary:
    """Resolved bindings of a schema, with read-only and unresolved names."""
    summary = PrefillSummary()
    for element in schema.elements:
        if not element.name or not element.prefill or not element.prefill.enabled:
            continue
        value = get_prefill_value(prefill_data, element.prefill, today)
        summary.entries.append(PrefillSummaryEntry(
            name=element.name,
            label=element.label,
            source=element.prefill.source.value,
            field=element.prefill.field,
            readonly=element.prefill.readonly,
            value=value,
        ))
        if element.prefill.readonly:
            summary.readonly_fields.append(element.name)
        if value is None:
            summary.unresolved_fields.append(element.name)
    return summary


async def fetch_prefill_data(
    fetcher: SourceFetcher,
    patient_id=None,
    doctor_id=None,
    appointment_id=None,
    place: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PrefillData:
    """
    Build PrefillData for one request.

    The patient, doctor and appointment lookups run concurrently. A
    failed lookup is logged and leaves its record empty; it never fails
    the other sources.
    """
    prefill_data = PrefillData(system=get_system_data(place, now))

    lookups = []
    if patient_id is not None:
        lookups.append(("patient", fetcher.fetch_patient(patient_id)))
    if doctor_id is not None:
        lookups.append(("doctor", fetcher.fetch_doctor(doctor_id)))
    if appointment_id is not None:
        lookups.append(("appointment", fetcher.fetch_appointment(appointment_id)))

    if not lookups:
        return prefill_data

    results = await asyncio.gather(*(coro for _, coro in lookups), return_exceptions=True)

    for (source, _), result in zip(lookups, results):
        if isinstance(result, Exception):
            logger.warning("Prefill source %s could not be fetched: %s", source, result)
            continue
        if result is None:
            logger.info("Prefill source %s not found", source)
            continue
        setattr(prefill_data, source, result)

    return prefill_data


def stringify_value(value: Any) -> str:
    """
    String form used by the read-only comparison.

    Mirrors loose string coercion: None is empty, booleans are
    lower-case, integral floats drop their ".0".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def check_readonly_fields(
    schema: BuilderSchema,
    submitted: FormData,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> List[TamperViolation]:
    """Every read-only field whose submitted value differs from the server value."""
    violations = []
    for element in schema.elements:
        if not element.name or not is_field_readonly(element.prefill):
            continue
        expected = stringify_value(get_prefill_value(prefill_data, element.prefill, today))
        received = stringify_value(submitted.get(element.name))
        if expected != received:
            violations.append(TamperViolation(
                field=element.name,
                label=element.label or element.name,
                expected=expected,
                received=received,
            ))
    return violations


def enforce_readonly_values(
    schema: BuilderSchema,
    values: FormData,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> FormData:
    """
    Copy of ``values`` with server-derived values forced in.

    Every read-only prefilled field takes the server value, whatever was
    submitted. Patient-info elements are derived from the patient record
    the same way.
    """
    enforced = dict(values)
    for element in schema.elements:
        if not element.name:
            continue
        if is_field_readonly(element.prefill):
            enforced[element.name] = get_prefill_value(prefill_data, element.prefill, today)
        elif element.type in PATIENT_INFO_TYPES:
            enforced[element.name] = resolve_patient_info(element.type, prefill_data, today)
    return enforced
