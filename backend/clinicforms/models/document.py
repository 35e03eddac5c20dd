"""Document model: an immutable filled template."""

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicforms.database import Base


class Document(Base):
    """
    Document represents one filled template for one patient.
    
    It stores the schema snapshot that was used together with the
    sanitized form data it produced. Neither is re-derived after
    creation: documents are never updated or deleted.
    """
    
    __tablename__ = "documents"
    
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    
    template_id: Mapped[int] = mapped_column(
        ForeignKey("templates.id"),
        nullable=False,
        index=True
    )
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"),
        nullable=False,
        index=True
    )
    doctor_id: Mapped[Optional[int]] = mapped_column(ForeignKey("doctors.id"), nullable=True)
    appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id"),
        nullable=True
    )
    
    document_name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # Snapshots
    schema_snapshot: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    form_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    prefill_snapshot: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    
    # Relationships
    template: Mapped["Template"] = relationship("Template", back_populates="documents")
    
    def __repr__(self) -> str:
        return f"<Document(id={self.id}, template_id={self.template_id}, patient_id={self.patient_id})>"
