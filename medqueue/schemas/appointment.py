from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field

from ..models.appointment import AppointmentStatus, AppointmentType

class AppointmentBook(BaseModel):
    doctor_id: int
    # Parsed by the booking service so malformed dates surface as validation_error
    appointment_date: str
    appointment_time: Optional[str] = Field(None, max_length=32)
    type: AppointmentType = AppointmentType.IN_PERSON
    fee: Optional[float] = Field(None, ge=0)
    reason: Optional[str] = Field(None, max_length=2000)

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    specialty: Optional[str] = None
    clinic: Optional[str] = None
    hospital: Optional[str] = None
    appointment_date: datetime
    appointment_day: date
    appointment_time: Optional[str] = None
    status: AppointmentStatus
    type: AppointmentType
    fee: float
    reason: Optional[str] = None
    token_number: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
