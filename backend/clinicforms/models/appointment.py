"""Appointment model."""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicforms.database import Base


class Appointment(Base):
    """A scheduled visit. Source record for the appointment prefill fields."""
    
    __tablename__ = "appointments"
    
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"),
        nullable=False,
        index=True
    )
    doctor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("doctors.id"),
        nullable=True,
        index=True
    )
    
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    # HH:MM, 24h
    appointment_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    chief_complaint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    
    # Relationships
    patient: Mapped["Patient"] = relationship("Patient", back_populates="appointments")
    
    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, date={self.appointment_date})>"
