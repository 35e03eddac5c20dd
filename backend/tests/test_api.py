"""API tests for the builder, template and document routers."""
import pytest

from clinicforms.services.migration import ALREADY_V2_WARNING


def v2_schema():
    return {
        "version": 2,
        "elements": [
            {
                "type": "documentHeader",
                "label": "Letterhead",
                "properties": {"doctorName": "Dr. Smith"},
            },
            {
                "type": "text",
                "label": "Patient Name",
                "name": "patient_name",
                "required": True,
                "prefill": {"enabled": True, "source": "patient", "field": "patient_name", "readonly": True},
            },
            {
                "type": "number",
                "label": "Age",
                "name": "patient_age",
                "prefill": {"enabled": True, "source": "patient", "field": "patient_age", "readonly": True},
            },
            {
                "type": "text",
                "label": "Clinic",
                "name": "clinic",
                "prefill": {"enabled": True, "source": "doctor", "field": "doctor_clinic", "readonly": True},
            },
            {"type": "number", "label": "Weight", "name": "weight", "required": True, "position": {"width": 6}},
            {"type": "number", "label": "Height", "name": "height", "required": True, "position": {"width": 6}},
            {"type": "calculated", "label": "BMI", "name": "bmi", "properties": {"calculation": "bmi"}},
            {"type": "footer", "label": "Footer", "properties": {"content": "Riverside Clinic"}},
        ],
    }


@pytest.fixture
def ids(seeded):
    return {key: record.id for key, record in seeded.items()}


@pytest.fixture
def template_id(client, ids):
    response = client.post("/api/templates", json={
        "name": "Vitals",
        "category": "consultation",
        "doctor_id": ids["doctor"],
        "template_schema": v2_schema(),
    })
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestBuilderEndpoints:

    def test_element_types(self, client):
        response = client.get("/api/builder/element-types")
        assert response.status_code == 200
        assert len(response.json()) == 20

    def test_create_element(self, client):
        response = client.post("/api/builder/elements", json={
            "element_type": "dropdown",
            "existing_names": ["dropdown"],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "dropdown_2"
        assert body["properties"]["options"] == ["Option 1", "Option 2", "Option 3"]

    def test_create_unknown_element(self, client):
        response = client.post("/api/builder/elements", json={"element_type": "signature"})
        assert response.status_code == 400

    def test_layout(self, client):
        response = client.post("/api/builder/layout", json={"elements": [
            {"id": "a", "position": {"width": 6}},
            {"id": "b", "position": {"width": 6}},
            {"id": "c", "position": {"width": 12}},
        ]})
        rows = response.json()["rows"]
        assert [row["kind"] for row in rows] == ["columns", "block"]
        assert rows[1]["element_id"] == "c"

    def test_validate(self, client):
        schema = v2_schema()
        schema["elements"][5]["name"] = "weight"
        response = client.post("/api/builder/validate", json=schema)
        body = response.json()
        assert not body["valid"]
        assert 'Duplicate field name "weight" (elements 5 and 6)' in body["errors"]

    def test_migrate(self, client):
        response = client.post("/api/builder/migrate", json={"variables": ["patient_name", "notes"]})
        body = response.json()
        assert [el["type"] for el in body["migrated_schema"]["elements"]] == ["text", "paragraph"]
        assert body["migrated"]

    def test_calculate(self, client):
        response = client.post("/api/builder/calculate", json={
            "calculation": "bmi",
            "form_data": {"weight": 70, "height": 175},
        })
        assert response.json() == {"value": 22.9, "display": "22.9 (Normal)"}

    def test_calculations_and_prefill_fields(self, client):
        assert client.get("/api/builder/calculations").json()["debounce_ms"] == 100
        assert len(client.get("/api/builder/prefill-fields").json()) == 15

    def test_command_then_undo(self, client):
        response = client.post("/api/builder/commands", json={
            "command": {"action": "add_element", "element_type": "text", "label": "Weight"},
        })
        assert response.status_code == 200
        state = response.json()
        assert state["builder_schema"]["elements"][0]["name"] == "weight"
        assert len(state["undo_stack"]) == 1

        response = client.post("/api/builder/commands", json={"state": state, "operation": "undo"})
        state = response.json()
        assert state["builder_schema"]["elements"] == []
        assert len(state["redo_stack"]) == 1

    def test_command_errors(self, client):
        assert client.post("/api/builder/commands", json={}).status_code == 400
        response = client.post("/api/builder/commands", json={
            "command": {"action": "delete_element", "element_id": "missing"},
        })
        assert response.status_code == 400


class TestTemplateEndpoints:

    def test_create_and_get(self, client, template_id):
        response = client.get(f"/api/templates/{template_id}")
        assert response.status_code == 200
        body = response.json()
        assert body["builder_version"] == 2
        assert len(body["template_schema"]["elements"]) == 8

    def test_invalid_schema_is_rejected(self, client):
        response = client.post("/api/templates", json={
            "name": "Broken",
            "template_schema": {"version": 2, "elements": [{"type": "dropdown", "label": "Smoker", "name": "smoker",
                                                            "properties": {"options": []}}]},
        })
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert "Element 1: Dropdown must have at least one option" in detail["errors"]

    def test_update_validates_schema(self, client, template_id):
        response = client.put(f"/api/templates/{template_id}", json={
            "template_schema": {"version": 2, "elements": [{"type": "mystery"}]},
        })
        assert response.status_code == 400

        response = client.put(f"/api/templates/{template_id}", json={"name": "Vitals v2"})
        assert response.json()["name"] == "Vitals v2"

    def test_delete_hides_from_list(self, client, template_id):
        assert client.delete(f"/api/templates/{template_id}").status_code == 200
        assert client.get("/api/templates").json() == []
        assert client.delete("/api/templates/9999").status_code == 404

    def test_legacy_template_migration(self, client):
        response = client.post("/api/templates", json={
            "name": "Old letter",
            "builder_version": 1,
            "template_schema": {"variables": ["patient_name", "diagnosis"], "content": "Dear {{patient_name}}"},
        })
        assert response.status_code == 201
        legacy_id = response.json()["id"]

        # Legacy templates cannot be filled until migrated
        assert client.post("/api/documents/prefill", json={"template_id": legacy_id}).status_code == 400

        response = client.post(f"/api/templates/{legacy_id}/migrate")
        assert response.status_code == 200
        body = response.json()
        assert body["template"]["builder_version"] == 2
        assert [el["name"] for el in body["template"]["template_schema"]["elements"]] == ["patient_name", "diagnosis"]
        assert body["changes"]

        again = client.post(f"/api/templates/{legacy_id}/migrate").json()
        assert again["warnings"] == [ALREADY_V2_WARNING]

    def test_missing_template(self, client):
        assert client.get("/api/templates/9999").status_code == 404
        assert client.post("/api/templates/9999/migrate").status_code == 404


class TestDocumentEndpoints:

    def prefill(self, client, template_id, ids):
        response = client.post("/api/documents/prefill", json={
            "template_id": template_id,
            "patient_id": ids["patient"],
            "appointment_id": ids["appointment"],
        })
        assert response.status_code == 200, response.text
        return response.json()

    def test_prefill(self, client, template_id, ids):
        body = self.prefill(client, template_id, ids)
        assert body["form_data"]["patient_name"] == "Jane Roe"
        assert body["form_data"]["clinic"] == "Riverside Clinic"
        assert body["readonly_fields"] == ["patient_name", "patient_age", "clinic"]
        assert body["prefill_data"]["appointment"]["appointment_time"] == "10:30"

    def test_create_document(self, client, template_id, ids):
        form_data = self.prefill(client, template_id, ids)["form_data"]
        form_data.update({"weight": 70, "height": 175})

        response = client.post("/api/documents", json={
            "template_id": template_id,
            "patient_id": ids["patient"],
            "form_data": form_data,
        })
        assert response.status_code == 201, response.text
        document = response.json()
        assert document["form_data"]["bmi"] == 22.9
        assert document["form_data"]["patient_name"] == "Jane Roe"
        assert document["doctor_id"] == ids["doctor"]
        assert document["document_name"] == "Vitals - Jane Roe"

        listed = client.get("/api/documents", params={"patient_id": ids["patient"]}).json()
        assert [d["id"] for d in listed] == [document["id"]]

        response = client.get(f"/api/documents/{document['id']}/docx")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert response.content[:2] == b"PK"

    def test_doctor_falls_back_to_patients_doctor(self, client, ids):
        response = client.post("/api/templates", json={"name": "Vitals", "template_schema": v2_schema()})
        assert response.status_code == 201, response.text
        unassigned_id = response.json()["id"]

        form_data = self.prefill(client, unassigned_id, ids)["form_data"]
        assert form_data["clinic"] == "Riverside Clinic"
        form_data.update({"weight": 70, "height": 175})

        response = client.post("/api/documents", json={
            "template_id": unassigned_id,
            "patient_id": ids["patient"],
            "form_data": form_data,
        })
        assert response.status_code == 201, response.text
        assert response.json()["doctor_id"] == ids["doctor"]

    def test_tampered_submission_is_rejected(self, client, template_id, ids):
        form_data = self.prefill(client, template_id, ids)["form_data"]
        form_data.update({"weight": 70, "height": 175, "patient_name": "John Doe"})

        response = client.post("/api/documents", json={
            "template_id": template_id,
            "patient_id": ids["patient"],
            "form_data": form_data,
        })
        assert response.status_code == 422
        violations = response.json()["detail"]["tamper_violations"]
        assert [(v["field"], v["expected"], v["received"]) for v in violations] == [
            ("patient_name", "Jane Roe", "John Doe"),
        ]
        assert client.get("/api/documents").json() == []

    def test_missing_required_values(self, client, template_id, ids):
        form_data = self.prefill(client, template_id, ids)["form_data"]
        response = client.post("/api/documents", json={
            "template_id": template_id,
            "patient_id": ids["patient"],
            "form_data": form_data,
        })
        assert response.status_code == 422
        assert "Weight is required" in response.json()["detail"]["errors"]

    def test_unknown_patient_and_document(self, client, template_id):
        response = client.post("/api/documents", json={"template_id": template_id, "patient_id": 9999})
        assert response.status_code == 404
        assert client.get("/api/documents/9999").status_code == 404
        assert client.get("/api/documents/9999/docx").status_code == 404
