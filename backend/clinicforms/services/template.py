"""Template service: storage of builder templates, gated by the schema validator."""

import logging
from typing import Optional, List, Dict, Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from clinicforms.models.template import Template
from clinicforms.schemas.template import TemplateCreate, TemplateUpdate, MigrationResult
from clinicforms.services.migration import ALREADY_V2_WARNING, migrate_legacy_schema
from clinicforms.services.validation import validate_schema

logger = logging.getLogger(__name__)


class TemplateService:
    """Service for template management."""

    @staticmethod
    def get_template(db: Session, template_id: int) -> Optional[Template]:
        """Get a template by ID."""
        return db.query(Template).filter(Template.id == template_id).first()

    @staticmethod
    def get_templates(
        db: Session,
        skip: int = 0,
        limit: int = 100,
        active_only: bool = True,
        doctor_id: Optional[int] = None,
    ) -> List[Template]:
        """Get all templates, optionally for one doctor."""
        query = db.query(Template)
        if active_only:
            query = query.filter(Template.is_active == True)
        if doctor_id is not None:
            query = query.filter(Template.doctor_id == doctor_id)
        return query.order_by(Template.id).offset(skip).limit(limit).all()

    @staticmethod
    def check_schema(schema: Dict[str, Any]) -> None:
        """Raise 400 with the validator's errors and warnings if the schema cannot be saved."""
        result = validate_schema(schema)
        if not result.valid:
            logger.info("Template schema rejected with %d errors", len(result.errors))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "message": "Template schema is invalid",
                    "errors": result.errors,
                    "warnings": result.warnings,
                },
            )

    @staticmethod
    def create_template(db: Session, template_data: TemplateCreate) -> Template:
        """
        Create a new template.

        V2 schemas must pass validation. Legacy V1 templates are stored as
        given so they can be migrated later.
        """
        if template_data.builder_version == 2:
            TemplateService.check_schema(template_data.template_schema)

        db_template = Template(
            doctor_id=template_data.doctor_id,
            name=template_data.name,
            description=template_data.description,
            category=template_data.category,
            builder_version=template_data.builder_version,
            schema_json=template_data.template_schema,
        )
        db.add(db_template)
        db.commit()
        db.refresh(db_template)

        return db_template

    @staticmethod
    def update_template(
        db: Session,
        template_id: int,
        template_data: TemplateUpdate
    ) -> Optional[Template]:
        """Update a template."""
        db_template = TemplateService.get_template(db, template_id)
        if not db_template:
            return None

        update_data = template_data.model_dump(exclude_unset=True)

        # Schema changes are validated against the template's format
        if "template_schema" in update_data:
            schema = update_data.pop("template_schema")
            if schema is not None:
                if db_template.builder_version == 2:
                    TemplateService.check_schema(schema)
                db_template.schema_json = schema

        for key, value in update_data.items():
            setattr(db_template, key, value)

        db.commit()
        db.refresh(db_template)
        return db_template

    @staticmethod
    def delete_template(db: Session, template_id: int) -> bool:
        """Soft delete a template (mark as inactive)."""
        db_template = TemplateService.get_template(db, template_id)
        if not db_template:
            return False

        db_template.is_active = False
        db.commit()
        return True

    @staticmethod
    def migrate_template(db: Session, template_id: int) -> Optional[MigrationResult]:
        """
        Upgrade a stored V1 template to the element schema.

        The migrated schema replaces the stored one only when migration
        actually happened.
        """
        db_template = TemplateService.get_template(db, template_id)
        if not db_template:
            return None

        if db_template.builder_version == 2:
            return MigrationResult(
                migrated_schema=db_template.schema_json,
                warnings=[ALREADY_V2_WARNING],
                migrated=False,
            )

        result = migrate_legacy_schema(db_template.schema_json)
        if result.migrated:
            db_template.schema_json = result.migrated_schema
            db_template.builder_version = 2
            db.commit()
            db.refresh(db_template)
            logger.info("Template %s migrated to V2 (%d changes)", template_id, len(result.changes))
        return result
