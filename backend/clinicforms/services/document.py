"""Document service: creating immutable documents and rendering them to DOCX."""

import io
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from docx import Document as DocxDocument
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt
from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from clinicforms.config import get_settings
from clinicforms.models.document import Document
from clinicforms.models.patient import Patient
from clinicforms.models.template import Template
from clinicforms.schemas.builder import (
    GRID_COLUMNS,
    BuilderSchema,
    ElementBase,
    ElementType,
    FormData,
)
from clinicforms.schemas.document import DocumentCreate, PrefillRequest, PrefillResponse
from clinicforms.services.calculation import format_calculated_value
from clinicforms.services.layout import element_width, is_full_width_block, pack_rows
from clinicforms.services.prefill import (
    build_initial_form_data,
    fetch_prefill_data,
    readonly_field_names,
)
from clinicforms.services.sources import SourceFetcher
from clinicforms.services.submission import validate_submission_request

logger = logging.getLogger(__name__)

settings = get_settings()

FONT_SIZES = {"small": 10, "medium": 13, "large": 16}

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
}


def format_field_value(element: ElementBase, value: Any) -> str:
    """Printable text for a stored value."""
    if value is None or value == "":
        return ""
    if element.type == ElementType.CALCULATED.value:
        props = element.properties
        return format_calculated_value(props.calculation, value, props.unit)
    if element.type == ElementType.PATIENT_AGE.value and isinstance(value, int):
        return f"{value} years"
    if element.type == ElementType.NUMBER.value:
        text = f"{value:g}" if isinstance(value, float) else str(value)
        unit = element.properties.unit
        return f"{text} {unit}" if unit else text
    return str(value)


def _plan_cell(element: ElementBase, form_data: FormData, span: int) -> Dict[str, Any]:
    value = form_data.get(element.name) if element.name else None
    return {
        "element_id": element.id,
        "type": element.type,
        "span": span,
        "label": element.label,
        "text": format_field_value(element, value),
        "properties": element.properties.model_dump(),
    }


def build_document_plan(schema: BuilderSchema, form_data: FormData) -> List[Dict[str, Any]]:
    """
    Printable structure of a filled schema.

    Document headers come first and footers last, both in schema order
    and regardless of position. Everything else is packed into rows
    exactly as on the editor canvas: a lone full-width element is a
    ``block``, any other row is ``columns`` with per-cell spans.
    """
    headers = [el for el in schema.elements if el.type == ElementType.DOCUMENT_HEADER.value]
    footers = [el for el in schema.elements if el.type == ElementType.FOOTER.value]
    body = [
        el for el in schema.elements
        if el.type not in (ElementType.DOCUMENT_HEADER.value, ElementType.FOOTER.value)
    ]

    plan = []
    for element in headers:
        plan.append({"section": "header", "kind": "block", "cells": [_plan_cell(element, form_data, GRID_COLUMNS)]})

    for row in pack_rows(body):
        if is_full_width_block(row):
            plan.append({"section": "body", "kind": "block", "cells": [_plan_cell(row[0], form_data, GRID_COLUMNS)]})
        else:
            plan.append({
                "section": "body",
                "kind": "columns",
                "cells": [_plan_cell(el, form_data, element_width(el)) for el in row],
            })

    for element in footers:
        plan.append({"section": "footer", "kind": "block", "cells": [_plan_cell(element, form_data, GRID_COLUMNS)]})

    return plan


def _set_paragraph_border(paragraph, side: str) -> None:
    """Draw a single line on one side of a paragraph."""
    p_pr = paragraph._p.get_or_add_pPr()
    borders = p_pr.find(qn("w:pBdr"))
    if borders is None:
        borders = OxmlElement("w:pBdr")
        p_pr.append(borders)
    border = OxmlElement(f"w:{side}")
    border.set(qn("w:val"), "single")
    border.set(qn("w:sz"), "6")
    border.set(qn("w:space"), "1")
    border.set(qn("w:color"), "auto")
    borders.append(border)


def _paragraph(container, fresh: List[bool]):
    # Table cells start with one empty paragraph; use it before adding more
    if fresh[0] and container.paragraphs:
        fresh[0] = False
        return container.paragraphs[0]
    fresh[0] = False
    return container.add_paragraph()


def _write_cell(container, cell: Dict[str, Any], fresh: List[bool]) -> None:
    element_type = cell["type"]
    props = cell["properties"]

    if element_type == ElementType.DIVIDER.value:
        _set_paragraph_border(_paragraph(container, fresh), "bottom")
        return

    if element_type == ElementType.HEADER.value:
        paragraph = _paragraph(container, fresh)
        paragraph.alignment = ALIGNMENTS.get(props.get("alignment"), WD_ALIGN_PARAGRAPH.LEFT)
        run = paragraph.add_run(cell["label"])
        run.bold = True
        run.font.size = Pt(FONT_SIZES.get(props.get("font_size"), 16))
        return

    if element_type == ElementType.FOOTER.value:
        paragraph = _paragraph(container, fresh)
        if props.get("show_line"):
            _set_paragraph_border(paragraph, "top")
        paragraph.alignment = ALIGNMENTS.get(props.get("alignment"), WD_ALIGN_PARAGRAPH.CENTER)
        run = paragraph.add_run(props.get("content") or "")
        run.font.size = Pt(FONT_SIZES.get(props.get("font_size"), 10))
        return

    if element_type == ElementType.DOCUMENT_HEADER.value:
        alignment = ALIGNMENTS.get(props.get("alignment"), WD_ALIGN_PARAGRAPH.LEFT)
        lines = []
        if props.get("show_doctor_name") and props.get("doctor_name"):
            lines.append((props["doctor_name"], True))
        for key in ("designation", "education", "phone", "email"):
            if props.get(f"show_{key}") and props.get(key):
                lines.append((props[key], False))
        for text, bold in lines:
            paragraph = _paragraph(container, fresh)
            paragraph.alignment = alignment
            run = paragraph.add_run(text)
            run.bold = bold
        _set_paragraph_border(_paragraph(container, fresh), "bottom")
        return

    if element_type == ElementType.IMAGE.value:
        paragraph = _paragraph(container, fresh)
        paragraph.alignment = ALIGNMENTS.get(props.get("alignment"), WD_ALIGN_PARAGRAPH.CENTER)
        paragraph.add_run(props.get("caption") or f"[{props.get('alt') or 'Image'}]").italic = True
        return

    # Data elements: bold label followed by the value
    paragraph = _paragraph(container, fresh)
    paragraph.add_run(f"{cell['label']}: ").bold = True
    lines = cell["text"].splitlines() or [""]
    if element_type in (ElementType.PARAGRAPH.value, ElementType.MEDICAL_HISTORY.value) and len(lines) > 1:
        for index, line in enumerate(lines, start=1):
            if props.get("format") == "numbered":
                line = f"{index}. {line}"
            elif props.get("format") == "bullets":
                line = f"• {line}"
            container.add_paragraph(line)
    else:
        paragraph.add_run(lines[0] if len(lines) == 1 else " ".join(lines))


def render_docx(plan: List[Dict[str, Any]]) -> bytes:
    """Render a document plan with python-docx and return the file bytes."""
    doc = DocxDocument()
    section = doc.sections[0]
    usable_width = section.page_width - section.left_margin - section.right_margin

    for entry in plan:
        if entry["kind"] == "block":
            _write_cell(doc, entry["cells"][0], [False])
            continue

        cells = entry["cells"]
        table = doc.add_table(rows=1, cols=len(cells))
        table.autofit = False
        for index, cell in enumerate(cells):
            table_cell = table.cell(0, index)
            table_cell.width = int(usable_width * cell["span"] / GRID_COLUMNS)
            _write_cell(table_cell, cell, [True])

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class DocumentService:
    """Service for creating and rendering documents."""

    @staticmethod
    def get_v2_template(db: Session, template_id: int) -> Template:
        """Active V2 template or an HTTP error."""
        template = db.query(Template).filter(Template.id == template_id).first()
        if not template or not template.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Template not found"
            )
        if template.builder_version != 2:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Template must be migrated to the builder format first"
            )
        return template

    @staticmethod
    def parse_schema(schema_json: Dict[str, Any]) -> BuilderSchema:
        """Parse a stored schema, reporting a corrupt one as 400."""
        try:
            return BuilderSchema.model_validate(schema_json)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Template schema is invalid: {e.errors()[0]['msg']}"
            )

    @staticmethod
    def resolve_doctor_id(
        template: Template,
        requested_doctor_id: Optional[int],
        patient: Optional[Patient],
    ) -> Optional[int]:
        """Doctor whose record feeds prefill: the request's, else the template's, else the patient's."""
        if requested_doctor_id:
            return requested_doctor_id
        if template.doctor_id:
            return template.doctor_id
        return patient.doctor_id if patient else None

    @staticmethod
    async def prepare_form(
        db: Session,
        request: PrefillRequest,
        fetcher: SourceFetcher,
        now: Optional[datetime] = None,
    ) -> PrefillResponse:
        """Initial values for a new document from the template and source records."""
        template = DocumentService.get_v2_template(db, request.template_id)
        schema = DocumentService.parse_schema(template.schema_json)
        now = now or datetime.now()
        patient = None
        if request.patient_id is not None:
            patient = db.query(Patient).filter(Patient.id == request.patient_id).first()

        prefill_data = await fetch_prefill_data(
            fetcher,
            patient_id=request.patient_id,
            doctor_id=DocumentService.resolve_doctor_id(template, request.doctor_id, patient),
            appointment_id=request.appointment_id,
            place=request.place or settings.default_place,
            now=now,
        )

        return PrefillResponse(
            form_data=build_initial_form_data(schema, prefill_data, today=now.date()),
            prefill_data=prefill_data,
            readonly_fields=readonly_field_names(schema),
        )

    @staticmethod
    async def create_document(
        db: Session,
        document_data: DocumentCreate,
        fetcher: SourceFetcher,
        now: Optional[datetime] = None,
    ) -> Document:
        """
        Validate a submission and store it as an immutable document.

        Read-only values are recomputed from source records; any required,
        constraint or tamper error rejects the submission with 422.
        """
        template = DocumentService.get_v2_template(db, document_data.template_id)
        patient = db.query(Patient).filter(Patient.id == document_data.patient_id).first()
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found"
            )

        schema = DocumentService.parse_schema(template.schema_json)
        doctor_id = DocumentService.resolve_doctor_id(template, document_data.doctor_id, patient)

        result = await validate_submission_request(
            schema,
            document_data.form_data,
            fetcher,
            patient_id=document_data.patient_id,
            appointment_id=document_data.appointment_id,
            doctor_id=doctor_id,
            place=document_data.place or settings.default_place,
            now=now,
        )

        if not result.valid:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={
                    "message": "Submission is invalid",
                    "errors": result.errors,
                    "tamper_violations": [v.model_dump() for v in result.tamper_violations],
                },
            )

        db_document = Document(
            template_id=template.id,
            patient_id=patient.id,
            doctor_id=doctor_id,
            appointment_id=document_data.appointment_id,
            document_name=f"{template.name} - {patient.name}",
            schema_snapshot=schema.model_dump(by_alias=True, mode="json"),
            form_data=result.sanitized_values,
            prefill_snapshot=result.prefill_data.model_dump(mode="json") if result.prefill_data else {},
        )
        db.add(db_document)
        db.commit()
        db.refresh(db_document)

        logger.info("Document %s created from template %s", db_document.id, template.id)
        return db_document

    @staticmethod
    def get_document(db: Session, document_id: int) -> Optional[Document]:
        """Get a document by ID."""
        return db.query(Document).filter(Document.id == document_id).first()

    @staticmethod
    def get_documents(
        db: Session,
        patient_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        """Get documents, newest first, optionally for one patient."""
        query = db.query(Document)
        if patient_id is not None:
            query = query.filter(Document.patient_id == patient_id)
        return query.order_by(Document.id.desc()).offset(skip).limit(limit).all()

    @staticmethod
    def render_document_docx(document: Document) -> bytes:
        """Render a stored document from its own snapshots."""
        schema = BuilderSchema.model_validate(document.schema_snapshot)
        return render_docx(build_document_plan(schema, document.form_data))
