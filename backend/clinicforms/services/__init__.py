"""Service layer for business logic."""

from clinicforms.services.template import TemplateService
from clinicforms.services.document import DocumentService

__all__ = [
    "TemplateService",
    "DocumentService",
]
