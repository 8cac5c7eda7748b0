from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from ..models.doctor import VerificationStatus

class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    registry_id: str = Field(..., min_length=1, max_length=64)
    specialty: str = Field(..., min_length=1, max_length=100)
    category: Optional[str] = None
    qualifications: List[str] = []
    clinic: Optional[str] = None
    hospital: Optional[str] = None
    price: float = Field(0, ge=0)
    experience_years: int = Field(0, ge=0)
    languages: List[str] = []
    bio: Optional[str] = None

    @field_validator("registry_id")
    @classmethod
    def normalize_registry_id(cls, value: str) -> str:
        return value.strip()

    @field_validator("name", "specialty")
    @classmethod
    def strip_required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Must not be blank.")
        return value

class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    specialty: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = None
    qualifications: Optional[List[str]] = None
    clinic: Optional[str] = None
    hospital: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    experience_years: Optional[int] = Field(None, ge=0)
    languages: Optional[List[str]] = None
    bio: Optional[str] = None
    is_available: Optional[bool] = None

    @field_validator("name", "specialty")
    @classmethod
    def strip_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Must not be blank.")
        return value

class DoctorResponse(BaseModel):
    id: int
    user_id: int
    name: str
    specialty: str
    category: Optional[str] = None
    qualifications: List[str] = []
    clinic: Optional[str] = None
    hospital: Optional[str] = None
    price: float
    experience_years: int
    languages: List[str] = []
    bio: Optional[str] = None
    is_available: bool
    verification_status: VerificationStatus

    class Config:
        from_attributes = True

class DoctorAdminResponse(DoctorResponse):
    registry_id: str
    verification_notes: Optional[str] = None
    verification_date: Optional[datetime] = None
    verified_by: Optional[int] = None
    created_at: Optional[datetime] = None

class DoctorListResponse(BaseModel):
    count: int
    doctors: List[DoctorAdminResponse]

class VerificationDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

class VerificationRequest(BaseModel):
    decision: VerificationDecision
    notes: Optional[str] = Field(None, max_length=2000)

class VerificationResponse(BaseModel):
    detail: str
    doctor: DoctorAdminResponse
