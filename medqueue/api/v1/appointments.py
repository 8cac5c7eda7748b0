from datetime import date
from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, get_patient_user
from ...services.booking_service import BookingService
from ...schemas.appointment import AppointmentBook, AppointmentResponse
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("/book", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    booking: AppointmentBook,
    current_user: User = Depends(get_patient_user),
    db: Session = Depends(get_db)
):
    """Book with a verified doctor; the response carries the day's token number."""
    return BookingService(db).book(
        current_user,
        booking.doctor_id,
        booking.appointment_date,
        appointment_type=booking.type,
        fee=booking.fee,
        reason=booking.reason,
        appointment_time=booking.appointment_time,
    )

@router.get("/me", response_model=List[AppointmentResponse])
def list_my_appointments(
    upcoming: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return BookingService(db).list_for_patient(current_user, upcoming_only=upcoming)

@router.get("/doctor/{doctor_id}", response_model=List[AppointmentResponse])
def list_doctor_day(
    doctor_id: int,
    day: date = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The token queue for one doctor on one day."""
    return BookingService(db).list_for_doctor_day(doctor_id, day, current_user)
