"""Submission boundary: the only path that produces a trusted document record."""

import logging
import math
import re
from datetime import date, datetime
from typing import Optional, List, Any

from clinicforms.schemas.builder import (
    CHOICE_TYPES,
    PATIENT_INFO_TYPES,
    BuilderSchema,
    ElementBase,
    ElementType,
    FormData,
)
from clinicforms.schemas.document import SubmissionResult
from clinicforms.schemas.prefill import PrefillData
from clinicforms.services.calculation import compute_calculated_fields, to_number
from clinicforms.services.prefill import (
    check_readonly_fields,
    enforce_readonly_values,
    fetch_prefill_data,
)
from clinicforms.services.sources import SourceFetcher

logger = logging.getLogger(__name__)

TEXT_LIKE_TYPES = frozenset({
    ElementType.TEXT.value,
    ElementType.PARAGRAPH.value,
    ElementType.MEDICAL_HISTORY.value,
})


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def check_value_constraints(element: ElementBase, value: Any) -> List[str]:
    """Length, pattern, numeric range and option checks for one non-empty value."""
    errors = []
    label = element.label or element.name
    rules = element.validation

    if element.type in TEXT_LIKE_TYPES and rules:
        text = str(value)
        if rules.min_length and len(text) < rules.min_length:
            errors.append(f"{label}: Minimum {rules.min_length} characters required")
        if rules.max_length and len(text) > rules.max_length:
            errors.append(f"{label}: Maximum {rules.max_length} characters allowed")
        if rules.pattern:
            try:
                matched = re.search(rules.pattern, text) is not None
            except re.error:
                # Broken patterns are a schema problem, reported by the validator
                matched = True
            if not matched:
                errors.append(f"{label}: {rules.message or 'Invalid format'}")

    elif element.type == ElementType.NUMBER.value:
        number = to_number(value)
        if number is None or math.isinf(number):
            errors.append(f"{label} must be a number")
        else:
            props = element.properties
            if props.min is not None and number < props.min:
                errors.append(f"{label}: Minimum value is {_format_bound(props.min)}")
            if props.max is not None and number > props.max:
                errors.append(f"{label}: Maximum value is {_format_bound(props.max)}")

    elif element.type in CHOICE_TYPES:
        if str(value) not in element.properties.options:
            errors.append(f"{label}: \"{value}\" is not one of the available options")

    return errors


def validate_submission(
    schema: BuilderSchema,
    submitted: FormData,
    prefill_data: PrefillData,
    today: Optional[date] = None,
) -> SubmissionResult:
    """
    Validate submitted values against a schema and server-side prefill data.

    ``prefill_data`` must be recomputed by the server for this request.
    The sanitized values always carry the server's read-only and
    patient-info values and freshly recomputed calculated fields, even
    when the submission is rejected.
    """
    submitted = submitted or {}
    violations = check_readonly_fields(schema, submitted, prefill_data, today)
    for violation in violations:
        logger.warning(
            "Read-only field %s was modified: expected %r, received %r",
            violation.field, violation.expected, violation.received,
        )

    data_names = {el.name for el in schema.data_elements() if el.name}
    sanitized = {key: value for key, value in submitted.items() if key in data_names}
    sanitized = enforce_readonly_values(schema, sanitized, prefill_data, today)
    sanitized.update(compute_calculated_fields(schema.elements, sanitized, today))

    errors = [violation.message for violation in violations]
    for element in schema.data_elements():
        if not element.name or element.type == ElementType.CALCULATED.value:
            continue
        if element.type in PATIENT_INFO_TYPES:
            continue
        value = sanitized.get(element.name)
        if _is_empty(value):
            if element.required:
                errors.append(f"{element.label or element.name} is required")
            continue
        if element.is_readonly:
            continue
        errors.extend(check_value_constraints(element, value))

    return SubmissionResult(
        valid=not errors,
        sanitized_values=sanitized,
        errors=errors,
        tamper_violations=violations,
    )


async def validate_submission_request(
    schema: BuilderSchema,
    submitted: FormData,
    fetcher: SourceFetcher,
    patient_id=None,
    appointment_id=None,
    doctor_id=None,
    place: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SubmissionResult:
    """
    Recompute prefill data from source records, then validate.

    Client-supplied prefill data is never consulted.
    """
    now = now or datetime.now()
    prefill_data = await fetch_prefill_data(
        fetcher,
        patient_id=patient_id,
        doctor_id=doctor_id,
        appointment_id=appointment_id,
        place=place,
        now=now,
    )
    result = validate_submission(schema, submitted, prefill_data, today=now.date())
    result.prefill_data = prefill_data
    return result
