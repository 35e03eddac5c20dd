"""Tests for element defaults and naming helpers."""
import pytest

from clinicforms.schemas.builder import CalculationType, Position, TextElement
from clinicforms.services.elements import (
    can_be_prefilled,
    can_be_required,
    clone_element,
    create_default_element,
    element_type_catalogue,
    generate_field_name,
    generate_unique_field_name,
    reorder_elements,
)


class TestCreateDefaultElement:

    def test_dropdown_gets_three_options(self):
        element = create_default_element("dropdown")
        assert element.type == "dropdown"
        assert element.label == "Dropdown"
        assert element.name == "dropdown"
        assert element.properties.options == ["Option 1", "Option 2", "Option 3"]

    def test_calculated_defaults_to_bmi(self):
        element = create_default_element("calculated")
        assert element.properties.calculation == CalculationType.BMI
        assert element.name == "calculated_field"

    @pytest.mark.parametrize("element_type", ["divider", "header", "image", "footer", "documentHeader"])
    def test_decorative_elements_have_no_name(self, element_type):
        element = create_default_element(element_type)
        assert element.name is None
        assert not element.is_data_element

    def test_name_is_unique(self):
        element = create_default_element("text", ["text_input", "text_input_2"])
        assert element.name == "text_input_3"

    def test_custom_label_drives_name(self):
        element = create_default_element("number", label="Blood Pressure (mmHg)")
        assert element.name == "blood_pressure_mmhg"
        assert element.position.width == 12

    def test_ids_are_unique(self):
        assert create_default_element("text").id != create_default_element("text").id

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            create_default_element("signature")


class TestFieldNames:

    @pytest.mark.parametrize("label, name", [
        ("Patient Name", "patient_name"),
        ("Blood Pressure (mmHg)", "blood_pressure_mmhg"),
        ("  Spaced   out  ", "spaced_out"),
        ("1st Visit", "field_1st_visit"),
        ("!!!", "field"),
    ])
    def test_generate_field_name(self, label, name):
        assert generate_field_name(label) == name

    def test_long_labels_are_truncated(self):
        assert len(generate_field_name("word " * 30)) <= 50

    def test_unique_ignores_empty_names(self):
        assert generate_unique_field_name("notes", [None, "", "other"]) == "notes"
        assert generate_unique_field_name("notes", ["notes"]) == "notes_2"


class TestCloneAndReorder:

    def test_clone_gets_new_id_and_copy_name(self):
        original = TextElement(label="Weight", name="weight", position=Position(row=2, width=6))
        copy = clone_element(original, ["weight"])
        assert copy.id != original.id
        assert copy.name == "weight_copy"
        assert copy.label == "Weight"
        assert (copy.position.row, copy.position.width) == (3, 6)

    def test_clone_of_clone(self):
        original = TextElement(label="Weight", name="weight_copy")
        copy = clone_element(original, ["weight", "weight_copy"])
        assert copy.name == "weight_copy_2"

    def test_clone_decorative(self):
        header = create_default_element("header")
        assert clone_element(header, []).name is None

    def test_reorder_renumbers_rows(self):
        elements = [TextElement(label=label, name=label.lower()) for label in ("A", "B", "C")]
        result = reorder_elements(elements, 0, 2)
        assert [el.name for el in result] == ["b", "c", "a"]
        assert [el.position.row for el in result] == [0, 1, 2]
        # Input list untouched
        assert [el.name for el in elements] == ["a", "b", "c"]


class TestCapabilities:

    def test_catalogue_covers_every_type(self):
        catalogue = {entry["type"]: entry for entry in element_type_catalogue()}
        assert len(catalogue) == 20
        assert catalogue["calculated"]["is_input"]
        assert not catalogue["calculated"]["can_be_required"]
        assert not catalogue["patientAge"]["can_be_required"]
        assert not catalogue["divider"]["is_input"]

    def test_prefillable_types(self):
        assert can_be_prefilled("text")
        assert can_be_prefilled("dropdown")
        assert not can_be_prefilled("calculated")
        assert not can_be_prefilled("radio")
        assert can_be_required("number")
