"""Document router: prefill, creation and DOCX export."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clinicforms.database import get_db
from clinicforms.schemas.document import (
    DocumentCreate,
    DocumentResponse,
    PrefillRequest,
    PrefillResponse,
)
from clinicforms.services.document import DocumentService
from clinicforms.services.sources import SourceFetcher, get_source_fetcher

router = APIRouter()

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@router.post("/prefill", response_model=PrefillResponse)
async def prefill_document(
    request: PrefillRequest,
    db: Session = Depends(get_db),
    fetcher: SourceFetcher = Depends(get_source_fetcher),
):
    """Initial form values and read-only field names for a new document."""
    return await DocumentService.prepare_form(db, request, fetcher)


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    document_data: DocumentCreate,
    db: Session = Depends(get_db),
    fetcher: SourceFetcher = Depends(get_source_fetcher),
):
    """Validate a submission and store it as a document."""
    return await DocumentService.create_document(db, document_data, fetcher)


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    patient_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """List documents, newest first."""
    return DocumentService.get_documents(db, patient_id, skip, limit)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    db: Session = Depends(get_db),
):
    """Get a document by ID."""
    document = DocumentService.get_document(db, document_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )
    return document


@router.get("/{document_id}/docx")
async def download_docx(
    document_id: int,
    db: Session = Depends(get_db),
):
    """Download a document rendered as DOCX."""
    document = DocumentService.get_document(db, document_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )
    content = DocumentService.render_document_docx(document)
    return Response(
        content=content,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="document_{document_id}.docx"'},
    )
