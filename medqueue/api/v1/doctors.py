from typing import List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, get_doctor_user
from ...services.verification_service import VerificationService
from ...schemas.doctor import DoctorCreate, DoctorUpdate, DoctorResponse, DoctorAdminResponse
from ...models.user import User

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
def list_doctors(
    specialty: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List verified doctors."""
    return VerificationService(db).list_public_doctors(specialty=specialty)

@router.get("/me", response_model=DoctorAdminResponse)
def get_my_doctor_profile(
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """The caller's own doctor record, including verification status."""
    return VerificationService(db).get_doctor_for_user(current_user)

@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    return VerificationService(db).get_public_doctor(doctor_id)

@router.post("", response_model=DoctorAdminResponse, status_code=status.HTTP_201_CREATED)
def submit_doctor(
    doctor_data: DoctorCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a doctor profile; it starts in pending_verification."""
    return VerificationService(db).submit_for_verification(current_user, doctor_data)

@router.put("/{doctor_id}", response_model=DoctorAdminResponse)
def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update profile fields (owner or admin)."""
    return VerificationService(db).update_doctor_profile(doctor_id, doctor_data, current_user)

@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Admin only. Doctors with booked appointments cannot be deleted."""
    VerificationService(db).delete_doctor(doctor_id, current_user)
    return {"detail": "Doctor deleted"}
