from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...services.verification_service import VerificationService
from ...schemas.doctor import (
    DoctorListResponse, DoctorAdminResponse, VerificationDecision,
    VerificationRequest, VerificationResponse
)
from ...models.doctor import VerificationStatus
from ...models.user import User

router = APIRouter(prefix="/admin", tags=["Admin"])

def _listing(doctors) -> DoctorListResponse:
    return DoctorListResponse(
        count=len(doctors),
        doctors=[DoctorAdminResponse.model_validate(doctor) for doctor in doctors]
    )

@router.get("/doctors", response_model=DoctorListResponse)
def list_doctors(
    status: Optional[VerificationStatus] = None,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """All doctors, optionally filtered by verification status."""
    return _listing(VerificationService(db).list_doctors(admin, status=status))

@router.get("/doctors/pending", response_model=DoctorListResponse)
def list_pending_doctors(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return _listing(VerificationService(db).list_doctors(
        admin, status=VerificationStatus.PENDING_VERIFICATION
    ))

@router.post("/doctors/{doctor_id}/verify", response_model=VerificationResponse)
def verify_doctor(
    doctor_id: int,
    verification: VerificationRequest,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Approve or reject a pending doctor. The decision is final."""
    doctor = VerificationService(db).decide(
        doctor_id, verification.decision, verification.notes, admin
    )
    approved = verification.decision == VerificationDecision.APPROVE
    return VerificationResponse(
        detail="Doctor approved." if approved else "Doctor rejected.",
        doctor=DoctorAdminResponse.model_validate(doctor)
    )
