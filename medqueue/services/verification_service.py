from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    AuthorizationError, ConflictError, InvalidTransitionError,
    NotFoundError, ValidationError
)
from ..core.security import UserRole
from ..models.appointment import Appointment, TokenCounter
from ..models.doctor import Doctor, VerificationStatus
from ..models.user import User
from ..schemas.doctor import DoctorCreate, DoctorUpdate, VerificationDecision

logger = logging.getLogger(__name__)

DECISION_OUTCOMES = {
    VerificationDecision.APPROVE: VerificationStatus.VERIFIED,
    VerificationDecision.REJECT: VerificationStatus.REJECTED,
}

REQUIRED_PROFILE_FIELDS = {
    "name", "specialty", "price", "experience_years",
    "qualifications", "languages", "is_available",
}

class VerificationService:
    """Doctor registration and the admin verification workflow.

    A doctor starts in ``pending_verification`` and moves exactly once, to
    ``verified`` or ``rejected``. Only verified doctors are public and bookable.
    """

    def __init__(self, db: Session):
        self.db = db

    def submit_for_verification(self, user: User, doctor_data: DoctorCreate) -> Doctor:
        """Create the caller's doctor record in ``pending_verification``."""
        if user.role not in (UserRole.DOCTOR, UserRole.ADMIN):
            raise AuthorizationError(
                "Only doctor or admin users can create a doctor profile."
            )

        registry_id = (doctor_data.registry_id or "").strip()
        if not registry_id:
            raise ValidationError("registry_id is required.")

        existing = self.db.execute(
            select(Doctor.id).where(Doctor.user_id == user.id)
        ).first()
        if existing:
            raise ConflictError("Doctor profile already exists for this user.")

        bound = self.db.execute(
            select(Doctor.id).where(Doctor.registry_id == registry_id)
        ).first()
        if bound:
            raise ConflictError("This registry id is already registered to another doctor.")

        doctor = Doctor(
            user_id=user.id,
            registry_id=registry_id,
            name=doctor_data.name.strip(),
            specialty=doctor_data.specialty.strip(),
            category=doctor_data.category,
            qualifications=doctor_data.qualifications,
            clinic=doctor_data.clinic,
            hospital=doctor_data.hospital,
            price=doctor_data.price,
            experience_years=doctor_data.experience_years,
            languages=doctor_data.languages,
            bio=doctor_data.bio,
            verification_status=VerificationStatus.PENDING_VERIFICATION,
        )
        self.db.add(doctor)

        try:
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race on user_id or registry_id
            self.db.rollback()
            raise ConflictError(
                "Doctor profile already exists for this user or registry id."
            ) from exc

        self.db.refresh(doctor)
        logger.info(
            f"Doctor {doctor.id} submitted for verification by user {user.id}"
        )
        return doctor

    def decide(
        self,
        doctor_id: int,
        decision: VerificationDecision,
        notes: Optional[str],
        admin: User,
    ) -> Doctor:
        """Record the admin's one-time approve/reject decision."""
        if admin.role != UserRole.ADMIN:
            raise AuthorizationError("Only admin can verify doctors.")

        new_status = DECISION_OUTCOMES[VerificationDecision(decision)]

        # Compare-and-swap: only a pending doctor matches
        result = self.db.execute(
            update(Doctor)
            .where(
                Doctor.id == doctor_id,
                Doctor.verification_status == VerificationStatus.PENDING_VERIFICATION,
            )
            .values(
                verification_status=new_status,
                verification_notes=notes or "",
                verification_date=datetime.utcnow(),
                verified_by=admin.id,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            self.db.rollback()
            doctor = self.db.get(Doctor, doctor_id)
            if doctor is None:
                raise NotFoundError("Doctor not found")
            raise InvalidTransitionError(
                f"Doctor is already {doctor.verification_status.value}. Cannot re-verify."
            )

        self.db.commit()

        doctor = self.db.get(Doctor, doctor_id, populate_existing=True)
        logger.info(
            f"Doctor {doctor_id} {new_status.value} by admin {admin.id}"
        )
        return doctor

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor not found")
        return doctor

    def get_public_doctor(self, doctor_id: int) -> Doctor:
        """Doctor visible to the public; unverified doctors read as absent."""
        doctor = self.db.get(Doctor, doctor_id)
        if doctor is None or not doctor.is_verified:
            raise NotFoundError("Doctor not found")
        return doctor

    def get_doctor_for_user(self, user: User) -> Doctor:
        doctor = self.db.execute(
            select(Doctor).where(Doctor.user_id == user.id)
        ).scalar_one_or_none()
        if doctor is None:
            raise NotFoundError("Doctor profile not found for this user.")
        return doctor

    def list_public_doctors(self, specialty: Optional[str] = None) -> List[Doctor]:
        query = select(Doctor).where(
            Doctor.verification_status == VerificationStatus.VERIFIED
        )
        if specialty:
            query = query.where(Doctor.specialty == specialty)
        return list(self.db.execute(query.order_by(Doctor.id)).scalars())

    def list_doctors(
        self, admin: User, status: Optional[VerificationStatus] = None
    ) -> List[Doctor]:
        """Admin listing across all verification states."""
        if admin.role != UserRole.ADMIN:
            raise AuthorizationError("Only admin can view doctors by verification status.")

        query = select(Doctor)
        if status is not None:
            query = query.where(Doctor.verification_status == status)
        return list(self.db.execute(query.order_by(Doctor.id)).scalars())

    def update_doctor_profile(
        self, doctor_id: int, doctor_data: DoctorUpdate, user: User
    ) -> Doctor:
        """Owner or admin profile edit. Verification fields are not editable here."""
        doctor = self.get_doctor(doctor_id)

        if user.role != UserRole.ADMIN and doctor.user_id != user.id:
            raise AuthorizationError("Only the owning doctor or an admin can update this profile.")

        for field, value in doctor_data.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_PROFILE_FIELDS:
                continue
            setattr(doctor, field, value)

        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def delete_doctor(self, doctor_id: int, admin: User):
        """Remove a doctor profile that has never been booked."""
        if admin.role != UserRole.ADMIN:
            raise AuthorizationError("Only admin can delete doctor profiles.")

        try:
            # Exclusive lock: waits for in-flight bookings holding a share lock
            doctor = self.db.execute(
                select(Doctor).where(Doctor.id == doctor_id).with_for_update()
            ).scalar_one_or_none()
            if doctor is None:
                raise NotFoundError("Doctor not found")

            booked = self.db.execute(
                select(Appointment.id).where(Appointment.doctor_id == doctor_id).limit(1)
            ).first()
            if booked:
                raise ConflictError(
                    "Doctor has appointments and cannot be deleted."
                )

            self.db.execute(delete(TokenCounter).where(TokenCounter.doctor_id == doctor_id))
            self.db.delete(doctor)
            self.db.commit()
        except IntegrityError as exc:
            # An appointment was inserted before the delete reached the store
            self.db.rollback()
            raise ConflictError("Doctor has appointments and cannot be deleted.") from exc
        except BaseException:
            self.db.rollback()
            raise

        logger.info(f"Doctor {doctor_id} deleted by admin {admin.id}")
