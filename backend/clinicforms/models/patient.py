"""Patient model."""

from datetime import datetime, date
from typing import Optional, List

from sqlalchemy import String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicforms.database import Base


class Patient(Base):
    """
    Patient demographic record.
    
    Source record for the patient prefill fields and the patient-info
    elements (name, email, phone, address, age, gender, blood group).
    """
    
    __tablename__ = "patients"
    
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    doctor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("doctors.id"),
        nullable=True,
        index=True
    )
    
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    blood_group: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    
    # Relationships
    doctor: Mapped[Optional["Doctor"]] = relationship("Doctor", back_populates="patients")
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="patient"
    )
    
    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, name='{self.name}')>"
