"""Template management router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from clinicforms.database import get_db
from clinicforms.schemas.template import (
    TemplateCreate,
    TemplateUpdate,
    TemplateResponse,
    TemplateListResponse,
    TemplateMigrationResponse,
)
from clinicforms.services.template import TemplateService

router = APIRouter()


@router.get("", response_model=List[TemplateListResponse])
async def list_templates(
    skip: int = 0,
    limit: int = 100,
    active_only: bool = True,
    doctor_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """List all templates."""
    templates = TemplateService.get_templates(db, skip, limit, active_only, doctor_id)
    return templates


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    """Get a template by ID."""
    template = TemplateService.get_template(db, template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return template


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: TemplateCreate,
    db: Session = Depends(get_db),
):
    """Create a template; V2 schemas must pass validation."""
    return TemplateService.create_template(db, template_data)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: int,
    template_data: TemplateUpdate,
    db: Session = Depends(get_db),
):
    """Update a template."""
    template = TemplateService.update_template(db, template_id, template_data)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return template


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    """Delete (deactivate) a template."""
    success = TemplateService.delete_template(db, template_id)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    return {"message": "Template deleted successfully"}


@router.post("/{template_id}/migrate", response_model=TemplateMigrationResponse)
async def migrate_template(
    template_id: int,
    db: Session = Depends(get_db),
):
    """Upgrade a legacy template to the builder format."""
    result = TemplateService.migrate_template(db, template_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Template not found"
        )
    template = TemplateService.get_template(db, template_id)
    return TemplateMigrationResponse(
        template=TemplateResponse.model_validate(template),
        changes=result.changes,
        warnings=result.warnings,
    )
