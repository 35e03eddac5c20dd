"""Template model for storing document builder templates."""

from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import String, Text, DateTime, Boolean, Integer, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicforms.database import Base


class Template(Base):
    """
    Template model representing a clinical document template.
    
    V2 templates store the structured element schema in ``schema_json``.
    Legacy V1 templates store ``{"variables": [...], "content": "..."}``
    there instead and carry ``builder_version = 1`` until migrated.
    """
    
    __tablename__ = "templates"
    
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    doctor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("doctors.id"),
        nullable=True,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), default="other")
    
    # Element schema (V2) or variable template (V1)
    schema_json: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    builder_version: Mapped[int] = mapped_column(Integer, default=2)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    
    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, 
        onupdate=datetime.utcnow,
        nullable=True
    )
    
    # Relationships
    doctor: Mapped[Optional["Doctor"]] = relationship("Doctor", back_populates="templates")
    documents: Mapped[List["Document"]] = relationship(
        "Document", 
        back_populates="template"
    )
    
    def __repr__(self) -> str:
        return f"<Template(id={self.id}, name='{self.name}', builder_version={self.builder_version})>"
