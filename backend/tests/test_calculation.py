"""Tests for built-in calculators, custom formulas and display formatting."""
from datetime import date

import pytest

from clinicforms.services.calculation import (
    bmi_category,
    compute_calculated_fields,
    execute_calculation,
    format_calculated_value,
    formula_references,
    substitute_formula,
)
from tests.conftest import make_schema


# -------------------------------------------------------------------
# Built-in calculators
# -------------------------------------------------------------------

class TestBmi:

    def test_normal_example(self):
        value = execute_calculation("bmi", {"weight": 70, "height": 175})
        assert value == 22.9
        assert bmi_category(value) == "Normal"

    def test_underweight_example(self):
        value = execute_calculation("bmi", {"weight": 45, "height": 175})
        assert bmi_category(value) == "Underweight"

    @pytest.mark.parametrize("bmi, category", [
        (18.4, "Underweight"),
        (18.5, "Normal"),
        (24.9, "Normal"),
        (25.0, "Overweight"),
        (29.9, "Overweight"),
        (30.0, "Obese"),
    ])
    def test_category_bands(self, bmi, category):
        assert bmi_category(bmi) == category

    def test_string_inputs_and_alternate_names(self):
        assert execute_calculation("bmi", {"weight_kg": "70", "height_cm": "175"}) == 22.9

    def test_loose_key_matching(self):
        assert execute_calculation("bmi", {"Weight (kg)": "70", "Height_CM": 175}) == 22.9

    def test_missing_input(self):
        assert execute_calculation("bmi", {"weight": 70}) == "Enter weight and height"
        assert execute_calculation("bmi", {"weight": "", "height": 175}) == "Enter weight and height"

    def test_non_positive_input(self):
        assert execute_calculation("bmi", {"weight": 0, "height": 175}) == "Invalid values"
        assert execute_calculation("bmi", {"weight": 70, "height": -1}) == "Invalid values"


class TestAge:

    def test_day_before_birthday(self):
        data = {"date_of_birth": "2000-06-15"}
        assert execute_calculation("age", data, today=date(2024, 6, 14)) == 23

    def test_on_birthday(self):
        data = {"date_of_birth": "2000-06-15"}
        assert execute_calculation("age", data, today=date(2024, 6, 15)) == 24

    def test_months(self):
        data = {"dob": "2000-06-15"}
        assert execute_calculation("age_months", data, today=date(2024, 6, 14)) == 287
        assert execute_calculation("age_months", data, today=date(2024, 6, 15)) == 288

    def test_placeholders(self):
        today = date(2024, 6, 15)
        assert execute_calculation("age", {}, today=today) == "Enter date of birth"
        assert execute_calculation("age", {"dob": "yesterday"}, today=today) == "Invalid date"
        assert execute_calculation("age", {"dob": "2030-01-01"}, today=today) == "Future date"
        assert execute_calculation("age_months", {"dob": "2030-01-01"}, today=today) == "Future date"


class TestDaysBetween:

    def test_absolute_difference(self):
        assert execute_calculation("days_between", {"start_date": "2024-01-01", "end_date": "2024-01-31"}) == 30
        assert execute_calculation("days_between", {"from_date": "2024-01-31", "to_date": "2024-01-01"}) == 30

    def test_placeholders(self):
        assert execute_calculation("days_between", {"start_date": "2024-01-01"}) == "Enter both dates"
        assert execute_calculation(
            "days_between", {"admission_date": "2024-01-01", "discharge_date": "soon"}
        ) == "Invalid date"


# -------------------------------------------------------------------
# Custom formulas
# -------------------------------------------------------------------

class TestCustomFormula:

    def test_substitutes_field_values(self):
        assert execute_calculation("custom", {"weight": 70}, "{weight} / 2") == 35

    def test_rounds_to_two_decimals(self):
        assert execute_calculation("custom", {"a": 10, "b": 3}, "{a} / {b}") == 3.33

    def test_negative_values_keep_precedence(self):
        assert execute_calculation("custom", {"a": -3}, "{a} * 2") == -6
        assert substitute_formula("2 - {a}", {"a": -3}) == "2 - (-3)"

    def test_missing_and_invalid_references(self):
        assert execute_calculation("custom", {"a": 1}, "{a} + {b}") == "Missing: b"
        assert execute_calculation("custom", {"a": "abc"}, "{a} + 1") == "Invalid: a"

    def test_unsafe_characters_are_rejected(self):
        assert execute_calculation("custom", {"a": 1}, "{a} + abs(2)") == "Invalid formula"
        assert execute_calculation("custom", {}, "__import__('os').system('ls')") == "Invalid formula"
        assert execute_calculation("custom", {}, "2 ** 3") == "Formula error"

    def test_division_by_zero(self):
        assert execute_calculation("custom", {"a": 1, "b": 0}, "{a} / {b}") == "Calculation error"

    def test_syntax_error(self):
        assert execute_calculation("custom", {"a": 1}, "{a} +") == "Formula error"

    def test_empty_formula(self):
        assert execute_calculation("custom", {}, "") == "No formula"
        assert execute_calculation("custom", {}, None) == "No formula"

    def test_unknown_calculation(self):
        assert execute_calculation("cholesterol", {}) == "Unknown calculation"

    def test_formula_references(self):
        assert formula_references("{a} + {b} * {a}") == ["a", "b"]


# -------------------------------------------------------------------
# Schema-level recomputation and formatting
# -------------------------------------------------------------------

class TestComputeCalculatedFields:

    def test_all_calculated_elements(self):
        schema = make_schema(
            {"type": "number", "label": "Weight", "name": "weight"},
            {"type": "number", "label": "Height", "name": "height"},
            {"type": "calculated", "label": "BMI", "name": "bmi", "properties": {"calculation": "bmi"}},
            {
                "type": "calculated",
                "label": "Half weight",
                "name": "half",
                "properties": {"calculation": "custom", "calculationFormula": "{weight} / 2"},
            },
        )
        results = compute_calculated_fields(schema.elements, {"weight": 70, "height": 175})
        assert results == {"bmi": 22.9, "half": 35}


class TestFormatCalculatedValue:

    def test_bmi_with_category(self):
        assert format_calculated_value("bmi", 22.9) == "22.9 (Normal)"

    def test_age(self):
        assert format_calculated_value("age", 24) == "24 years"

    def test_custom_with_unit(self):
        assert format_calculated_value("custom", 35.0, "kg") == "35 kg"

    def test_placeholder_passes_through(self):
        assert format_calculated_value("bmi", "Enter weight and height") == "Enter weight and height"


class TestNonFiniteInputs:

    @pytest.mark.parametrize("weight", ["1e400", "inf", float("inf")])
    def test_bmi_with_infinite_weight(self, weight):
        assert execute_calculation("bmi", {"weight": weight, "height": 175}) == "Invalid values"

    def test_bmi_with_vanishing_height(self):
        assert execute_calculation("bmi", {"weight": 70, "height": "1e-300"}) == "Invalid values"

    def test_custom_result_too_large_to_round(self):
        assert execute_calculation("custom", {"a": "1e307"}, "{a} * 1") == 1e307

    def test_custom_result_overflowing(self):
        assert execute_calculation("custom", {"a": "1e308"}, "{a} * 10") == "Calculation error"
        assert execute_calculation("custom", {"a": "1e400"}, "{a} * 1") == "Invalid: a"

    def test_tiny_operands_keep_their_digits(self):
        data = {"a": 0.00000000004}
        assert substitute_formula("{a}", data) == "0.00000000004"
        assert execute_calculation("custom", data, "{a} * 100000000000") == 4
        assert execute_calculation("custom", data, "100000000000 / {a}") == pytest.approx(2.5e21)
