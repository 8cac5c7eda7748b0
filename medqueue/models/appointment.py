from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Date, Text, Float,
    UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class AppointmentType(str, enum.Enum):
    IN_PERSON = "in_person"
    VIDEO_CALL = "video_call"

TOKEN_CONSTRAINT = "uq_appointments_doctor_day_token"

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint(
            "doctor_id", "appointment_day", "token_number",
            name=TOKEN_CONSTRAINT,
        ),
        Index("ix_appointments_doctor_day", "doctor_id", "appointment_day"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    # Doctor snapshot, copied at booking time
    doctor_name = Column(String(200), nullable=True)
    specialty = Column(String(100), nullable=True)
    clinic = Column(String(255), nullable=True)
    hospital = Column(String(255), nullable=True)

    # Appointment details
    appointment_date = Column(DateTime, nullable=False, index=True)
    appointment_day = Column(Date, nullable=False)
    appointment_time = Column(String(32), nullable=True)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)
    type = Column(SQLEnum(AppointmentType), nullable=False, default=AppointmentType.IN_PERSON)
    fee = Column(Float, nullable=False, default=0)
    reason = Column(Text, nullable=True)

    # FCFS queue position within (doctor_id, appointment_day)
    token_number = Column(Integer, nullable=False)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, "
            f"day='{self.appointment_day}', token={self.token_number})>"
        )

class TokenCounter(Base):
    """Last token handed out for one (doctor, day) booking scope."""
    __tablename__ = "token_counters"

    doctor_id = Column(Integer, ForeignKey("doctors.id"), primary_key=True)
    day = Column(Date, primary_key=True)
    last_token = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<TokenCounter(doctor_id={self.doctor_id}, day='{self.day}', last_token={self.last_token})>"
