from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Float, JSON,
    Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class VerificationStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Professional registry identifier (HPR id)
    registry_id = Column(String(64), nullable=False, unique=True)

    # Profile
    name = Column(String(200), nullable=False)
    specialty = Column(String(100), nullable=False)
    category = Column(String(100), nullable=True)
    qualifications = Column(JSON, nullable=False, default=list)
    clinic = Column(String(255), nullable=True)
    hospital = Column(String(255), nullable=True)
    price = Column(Float, nullable=False, default=0)
    experience_years = Column(Integer, nullable=False, default=0)
    languages = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    is_available = Column(Boolean, default=True)

    # Verification; written once, when leaving pending_verification
    verification_status = Column(
        SQLEnum(VerificationStatus),
        nullable=False,
        default=VerificationStatus.PENDING_VERIFICATION,
        index=True,
    )
    verification_notes = Column(Text, nullable=True)
    verification_date = Column(DateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor", foreign_keys=[user_id])
    verifier = relationship("User", foreign_keys=[verified_by])
    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', status='{self.verification_status}')>"
