"""Doctor model, the owner of templates and documents."""

from datetime import datetime
from typing import Optional, List

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicforms.database import Base


class Doctor(Base):
    """A clinician account. Source record for the doctor prefill fields."""
    
    __tablename__ = "doctors"
    
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    clinic_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    designation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    
    # Relationships
    patients: Mapped[List["Patient"]] = relationship("Patient", back_populates="doctor")
    templates: Mapped[List["Template"]] = relationship("Template", back_populates="doctor")
    
    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, name='{self.name}')>"
