from datetime import date, datetime, time
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError, EligibilityError, NotFoundError, ValidationError
)
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus, AppointmentType
from ..models.doctor import Doctor
from ..models.user import User
from .token_allocator import TokenAllocator, booking_day, to_clinic_time

logger = logging.getLogger(__name__)


def parse_appointment_date(value) -> datetime:
    """Parse a booking date into a naive clinic-local datetime.

    Accepts ``date``, ``datetime`` or an ISO-8601 string, with or without a
    time part; a trailing ``Z`` means UTC.
    """
    if isinstance(value, datetime):
        return to_clinic_time(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("appointment_date is required.")

    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError("Invalid appointment_date. Use ISO date string.") from None
    return to_clinic_time(parsed)


class BookingService:
    """Eligibility check, token allocation and insert as one transaction."""

    def __init__(
        self,
        db: Session,
        allocator: Optional[TokenAllocator] = None,
        require_verified: Optional[bool] = None,
    ):
        self.db = db
        self.allocator = allocator or TokenAllocator(db)
        if require_verified is None:
            require_verified = settings.REQUIRE_VERIFIED_DOCTOR
        self.require_verified = require_verified

    def book(
        self,
        patient: User,
        doctor_id: int,
        appointment_date,
        appointment_type: AppointmentType = AppointmentType.IN_PERSON,
        fee: Optional[float] = None,
        reason: Optional[str] = None,
        appointment_time: Optional[str] = None,
    ) -> Appointment:
        when = parse_appointment_date(appointment_date)
        day = booking_day(when)

        try:
            # Shared lock: a concurrent decide() on this doctor waits for our commit
            doctor = self.db.execute(
                select(Doctor)
                .where(Doctor.id == doctor_id)
                .with_for_update(read=True)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if doctor is None:
                raise NotFoundError("Doctor not found")

            self._check_eligibility(doctor)

            appointment = Appointment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                doctor_name=doctor.name,
                specialty=doctor.specialty,
                clinic=doctor.clinic,
                hospital=doctor.hospital,
                appointment_date=when,
                appointment_day=day,
                appointment_time=appointment_time,
                status=AppointmentStatus.PENDING,
                type=AppointmentType(appointment_type),
                fee=fee if fee is not None else (doctor.price or 0),
                reason=reason,
            )
            token = self.allocator.assign(appointment)
            self.db.commit()
        except BaseException:
            # Includes cancellation mid-flight; the reserved token is released
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.id} booked: patient={patient.id} "
            f"doctor={doctor_id} day={day} token={token}"
        )
        return appointment

    def _check_eligibility(self, doctor: Doctor):
        if self.require_verified and not doctor.is_verified:
            raise EligibilityError(
                f"Doctor is {doctor.verification_status.value} and cannot accept bookings."
            )

    def list_for_doctor_day(self, doctor_id: int, day: date, user: User) -> List[Appointment]:
        """Queue for one doctor-day, in token order."""
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor not found")
        if user.role != UserRole.ADMIN and doctor.user_id != user.id:
            raise AuthorizationError("Only the doctor or an admin can view this schedule.")

        return list(self.db.execute(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id, Appointment.appointment_day == day)
            .order_by(Appointment.token_number)
        ).scalars())

    def list_for_patient(self, patient: User, upcoming_only: bool = False) -> List[Appointment]:
        query = select(Appointment).where(Appointment.patient_id == patient.id)
        if upcoming_only:
            today = datetime.now(tz=ZoneInfo(settings.CLINIC_TIMEZONE)).date()
            query = query.where(
                Appointment.appointment_day >= today,
                Appointment.status.in_([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]),
            )
        return list(self.db.execute(
            query.order_by(Appointment.appointment_day, Appointment.token_number)
        ).scalars())
