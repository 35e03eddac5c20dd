"""Template-related Pydantic schemas."""

from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import AliasChoices, BaseModel, Field


class SchemaValidationResult(BaseModel):
    """Outcome of validating a builder schema: errors block saving, warnings do not."""
    valid: bool
    errors: List[str] = []
    warnings: List[str] = []


class MigrationResult(BaseModel):
    """A V2 schema converted from a legacy template, with a change report."""
    migrated_schema: Dict[str, Any] = Field(..., description="The resulting V2 schema")
    changes: List[str] = []
    warnings: List[str] = []
    migrated: bool = True


class TemplateCreate(BaseModel):
    """Schema for creating a new template."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = "other"
    doctor_id: Optional[int] = None
    builder_version: int = Field(2, ge=1, le=2, description="1 for legacy variable templates")
    template_schema: Dict[str, Any] = Field(default_factory=lambda: {"version": 2, "elements": []})


class TemplateUpdate(BaseModel):
    """Schema for updating a template."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    template_schema: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class TemplateResponse(BaseModel):
    """Schema for template responses."""
    id: int
    doctor_id: Optional[int]
    name: str
    description: Optional[str]
    category: str
    builder_version: int
    template_schema: Dict[str, Any] = Field(..., validation_alias=AliasChoices("schema_json", "template_schema"))
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TemplateListResponse(BaseModel):
    """Schema for template list responses."""
    id: int
    name: str
    description: Optional[str]
    category: str
    builder_version: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TemplateMigrationResponse(BaseModel):
    """A stored template after migration, with the migration report."""
    template: TemplateResponse
    changes: List[str] = []
    warnings: List[str] = []
