"""Calculation engine for calculated fields.

Built-in clinical calculators (BMI, age, age in months, days between two
dates) and custom arithmetic formulas over other field values. A
calculation never raises for bad input: it returns a short placeholder
string the form can display instead of a number.
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Union, Callable, Sequence

from clinicforms.schemas.builder import CalculationType, FormData
from clinicforms.services.formula import FormulaError, evaluate_expression


CalculationResult = Union[int, float, str]

# Candidate field names per logical quantity, in lookup order
WEIGHT_FIELDS = ("weight", "weight_kg", "wt", "body_weight")
HEIGHT_FIELDS = ("height", "height_cm", "ht", "body_height")
DATE_OF_BIRTH_FIELDS = (
    "date_of_birth",
    "dob",
    "birth_date",
    "birthdate",
    "patient_dob",
    "patient_date_of_birth",
)
START_DATE_FIELDS = ("start_date", "from_date", "admission_date")
END_DATE_FIELDS = ("end_date", "to_date", "discharge_date")

FIELD_REFERENCE_PATTERN = re.compile(r"\{([^}]+)\}")
SAFE_EXPRESSION_PATTERN = re.compile(r"^[\d\s+\-*/().]+$")

# BMI upper bounds (exclusive) per category
BMI_CATEGORIES = (
    (18.5, "Underweight"),
    (25.0, "Normal"),
    (30.0, "Overweight"),
)

AVAILABLE_CALCULATIONS = [
    {
        "value": CalculationType.BMI.value,
        "label": "BMI",
        "description": "Calculates BMI from weight (kg) and height (cm)",
    },
    {
        "value": CalculationType.AGE.value,
        "label": "Age (Years)",
        "description": "Calculates age from date of birth",
    },
    {
        "value": CalculationType.AGE_MONTHS.value,
        "label": "Age (Months)",
        "description": "Calculates age in months from date of birth",
    },
    {
        "value": CalculationType.DAYS_BETWEEN.value,
        "label": "Days Between",
        "description": "Calculates days between start and end date",
    },
    {
        "value": CalculationType.CUSTOM.value,
        "label": "Custom Formula",
        "description": "Define a custom calculation using field values, e.g. {weight} / 2",
    },
]


def round_half_up(value: float, places: int) -> float:
    """Round to ``places`` decimals with halves going up (towards +inf)."""
    factor = 10 ** places
    scaled = value * factor
    if not math.isfinite(scaled):
        # Magnitudes this large carry no fractional digits
        return value
    return math.floor(scaled + 0.5) / factor


def _normalize_key(key: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(key).lower()).strip("_")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _lookup(data: FormData, candidates: Sequence[str]) -> Any:
    """
    First non-blank value among the candidate names.

    Exact keys are tried first in candidate order, then keys that match a
    candidate after lower-casing and collapsing punctuation to underscores.
    """
    for name in candidates:
        value = data.get(name)
        if not _is_blank(value):
            return value

    normalized = {}
    for key, value in data.items():
        normalized.setdefault(_normalize_key(key), value)
    for name in candidates:
        value = normalized.get(name)
        if not _is_blank(value):
            return value
    return None


def to_number(value: Any) -> Optional[float]:
    """Numeric value of a form entry, or None if it is not a number."""
    if isinstance(value, bool) or _is_blank(value):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(number):
        return None
    return number


def parse_date(value: Any) -> Optional[date]:
    """Parse a ``date``, ``datetime`` or ISO string; None when unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_blank(value):
        return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def find_numeric_field(data: FormData, candidates: Sequence[str]) -> Optional[float]:
    """Find a numeric value from a list of possible field names."""
    for name in candidates:
        number = to_number(_lookup(data, (name,)))
        if number is not None:
            return number
    return None


def find_date_field(data: FormData, candidates: Sequence[str]) -> Any:
    """Find a raw date value from a list of possible field names."""
    return _lookup(data, candidates)


def calendar_age(birth: date, today: date) -> int:
    """Whole years from ``birth`` to ``today``."""
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def calendar_age_months(birth: date, today: date) -> int:
    """Whole months from ``birth`` to ``today``."""
    months = (today.year - birth.year) * 12 + (today.month - birth.month)
    if today.day < birth.day:
        months -= 1
    return months


def calculate_bmi(data: FormData, today: Optional[date] = None) -> CalculationResult:
    """
    BMI from weight (kg) and height (cm), rounded to one decimal.

    Formula: weight / (height / 100) ** 2
    """
    weight = find_numeric_field(data, WEIGHT_FIELDS)
    height = find_numeric_field(data, HEIGHT_FIELDS)

    if weight is None or height is None:
        return "Enter weight and height"

    if weight <= 0 or height <= 0 or math.isinf(weight) or math.isinf(height):
        return "Invalid values"

    height_m = height / 100
    try:
        bmi = weight / (height_m * height_m)
    except (ZeroDivisionError, OverflowError):
        return "Invalid values"
    if not math.isfinite(bmi):
        return "Invalid values"
    return round_half_up(bmi, 1)


def bmi_category(bmi: float) -> str:
    """Category band for a BMI value."""
    for upper_bound, category in BMI_CATEGORIES:
        if bmi < upper_bound:
            return category
    return "Obese"


def _birth_date(data: FormData, today: Optional[date]):
    raw = find_date_field(data, DATE_OF_BIRTH_FIELDS)
    if raw is None:
        return None, "Enter date of birth"
    birth = parse_date(raw)
    if birth is None:
        return None, "Invalid date"
    if birth > (today or date.today()):
        return None, "Future date"
    return birth, None


def calculate_age(data: FormData, today: Optional[date] = None) -> CalculationResult:
    """Age in whole years from the date-of-birth field."""
    birth, problem = _birth_date(data, today)
    if problem:
        return problem
    return calendar_age(birth, today or date.today())


def calculate_age_in_months(data: FormData, today: Optional[date] = None) -> CalculationResult:
    """Age in whole months, useful for pediatric patients."""
    birth, problem = _birth_date(data, today)
    if problem:
        return problem
    return calendar_age_months(birth, today or date.today())


def calculate_days_between(data: FormData, today: Optional[date] = None) -> CalculationResult:
    """Absolute number of days between the start and end date fields."""
    raw_start = find_date_field(data, START_DATE_FIELDS)
    raw_end = find_date_field(data, END_DATE_FIELDS)

    if raw_start is None or raw_end is None:
        return "Enter both dates"

    start = parse_date(raw_start)
    end = parse_date(raw_end)
    if start is None or end is None:
        return "Invalid date"

    return abs((end - start).days)


def formula_references(formula: str) -> List[str]:
    """Field names referenced as ``{name}`` in a formula, in order of appearance."""
    names = []
    for match in FIELD_REFERENCE_PATTERN.finditer(formula or ""):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def _format_operand(number: float) -> str:
    # Plain decimal notation: exponents would fail the safe-character check
    if number == int(number) and abs(number) < 1e15:
        return str(int(number))
    text = format(Decimal(repr(number)), "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def substitute_formula(formula: str, data: FormData) -> str:
    """
    Replace ``{field}`` references with numeric values.

    Returns the expression, or a "Missing: ..." / "Invalid: ..." message
    prefixed with ``!`` when a reference cannot be resolved.
    """
    parts = []
    last_end = 0
    for match in FIELD_REFERENCE_PATTERN.finditer(formula):
        field_name = match.group(1).strip()
        value = data.get(field_name)
        if _is_blank(value):
            return f"!Missing: {field_name}"
        number = to_number(value)
        if number is None or math.isinf(number):
            return f"!Invalid: {field_name}"
        parts.append(formula[last_end:match.start()])
        parts.append(f"({_format_operand(number)})" if number < 0 else _format_operand(number))
        last_end = match.end()
    parts.append(formula[last_end:])
    return "".join(parts)


def evaluate_custom_formula(formula: str, data: FormData) -> CalculationResult:
    """
    Evaluate a custom formula such as ``{weight} / ({height} * {height} / 10000)``.

    After substitution only digits, whitespace, ``.`` and ``+ - * / ( )``
    may remain; anything else is rejected before parsing.
    """
    expression = substitute_formula(formula, data)
    if expression.startswith("!"):
        return expression[1:]

    if not SAFE_EXPRESSION_PATTERN.match(expression):
        return "Invalid formula"

    try:
        result = evaluate_expression(expression)
    except ZeroDivisionError:
        return "Calculation error"
    except (FormulaError, OverflowError):
        return "Formula error"

    if math.isnan(result) or math.isinf(result):
        return "Calculation error"

    return round_half_up(result, 2)


CALCULATION_REGISTRY: Dict[str, Callable[..., CalculationResult]] = {
    CalculationType.BMI.value: calculate_bmi,
    CalculationType.AGE.value: calculate_age,
    CalculationType.AGE_MONTHS.value: calculate_age_in_months,
    CalculationType.DAYS_BETWEEN.value: calculate_days_between,
}


def execute_calculation(
    calculation_type: Optional[str],
    data: FormData,
    formula: Optional[str] = None,
    today: Optional[date] = None,
) -> CalculationResult:
    """
    Run a built-in calculation or a custom formula against form data.

    Side-effect free and idempotent, so callers may recompute on every
    change and discard superseded results.
    """
    calculation_type = getattr(calculation_type, "value", calculation_type)

    if calculation_type == CalculationType.CUSTOM.value:
        if not formula or not formula.strip():
            return "No formula"
        return evaluate_custom_formula(formula, data)

    calculator = CALCULATION_REGISTRY.get(calculation_type)
    if calculator:
        return calculator(data, today=today)

    return "Unknown calculation"


def compute_calculated_fields(elements: List[Any], data: FormData, today: Optional[date] = None) -> Dict[str, CalculationResult]:
    """Values of every calculated element, keyed by element name."""
    results = {}
    for element in elements:
        if element.type == "calculated" and element.name:
            results[element.name] = execute_calculation(
                element.properties.calculation,
                data,
                element.properties.calculation_formula,
                today=today,
            )
    return results


def format_calculated_value(calculation_type: Optional[str], value: CalculationResult, unit: Optional[str] = None) -> str:
    """Display text for a calculated value: BMI with its category, age with "years"."""
    calculation_type = getattr(calculation_type, "value", calculation_type)
    if isinstance(value, str):
        return value
    if calculation_type == CalculationType.BMI.value:
        return f"{value:g} ({bmi_category(value)})"
    if calculation_type == CalculationType.AGE.value:
        return f"{value} years"
    if calculation_type == CalculationType.AGE_MONTHS.value:
        return f"{value} months"
    if calculation_type == CalculationType.DAYS_BETWEEN.value:
        return f"{value} days"
    text = f"{value:g}"
    return f"{text} {unit}" if unit else text
