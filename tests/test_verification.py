from datetime import datetime

import pytest
from pydantic import ValidationError as SchemaError

from medqueue.core.exceptions import (
    AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)
from medqueue.core.security import UserRole
from medqueue.models.doctor import VerificationStatus
from medqueue.schemas.doctor import DoctorCreate, DoctorUpdate, VerificationDecision
from medqueue.services.booking_service import BookingService
from medqueue.services.verification_service import VerificationService


def _payload(**overrides):
    values = {
        "name": "Dr. Asha Rao",
        "registry_id": "HPR-12345",
        "specialty": "Dermatology",
        "price": 300,
    }
    values.update(overrides)
    return DoctorCreate(**values)


@pytest.fixture
def service(db):
    return VerificationService(db)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


def test_submit_creates_pending_doctor(service, make_user) -> None:
    user = make_user(UserRole.DOCTOR)

    doctor = service.submit_for_verification(user, _payload())

    assert doctor.id is not None
    assert doctor.user_id == user.id
    assert doctor.verification_status == VerificationStatus.PENDING_VERIFICATION
    assert doctor.verification_date is None
    assert doctor.verified_by is None


def test_submit_requires_doctor_or_admin_role(service, make_user) -> None:
    with pytest.raises(AuthorizationError):
        service.submit_for_verification(make_user(UserRole.PATIENT), _payload())


def test_submit_rejects_second_profile_for_user(service, make_user) -> None:
    user = make_user(UserRole.DOCTOR)
    service.submit_for_verification(user, _payload())

    with pytest.raises(ConflictError) as exception_info:
        service.submit_for_verification(user, _payload(registry_id="HPR-99999"))

    assert exception_info.value.kind == "conflict"


def test_submit_rejects_registry_id_bound_to_other_doctor(service, make_user) -> None:
    service.submit_for_verification(make_user(UserRole.DOCTOR), _payload())

    with pytest.raises(ConflictError):
        service.submit_for_verification(make_user(UserRole.DOCTOR), _payload())


def test_submit_rejects_blank_registry_id(service, make_user) -> None:
    payload = DoctorCreate.model_construct(
        name="Dr. Blank", registry_id="   ", specialty="ENT", price=0, experience_years=0,
        qualifications=[], languages=[],
    )

    with pytest.raises(ValidationError):
        service.submit_for_verification(make_user(UserRole.DOCTOR), payload)


@pytest.mark.parametrize(
    ("decision", "expected_status"),
    [
        (VerificationDecision.APPROVE, VerificationStatus.VERIFIED),
        (VerificationDecision.REJECT, VerificationStatus.REJECTED),
    ],
)
def test_decide_stamps_decision(service, make_doctor, admin, decision, expected_status) -> None:
    doctor = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)
    before = datetime.utcnow()

    decided = service.decide(doctor.id, decision, "Registry checked", admin)

    assert decided.verification_status == expected_status
    assert decided.verified_by == admin.id
    assert decided.verification_notes == "Registry checked"
    assert decided.verification_date >= before.replace(microsecond=0)


@pytest.mark.parametrize(
    "current_status", [VerificationStatus.VERIFIED, VerificationStatus.REJECTED]
)
@pytest.mark.parametrize(
    "decision", [VerificationDecision.APPROVE, VerificationDecision.REJECT]
)
def test_decide_is_one_way(service, make_doctor, admin, current_status, decision) -> None:
    doctor = make_doctor(status=current_status)

    with pytest.raises(InvalidTransitionError) as exception_info:
        service.decide(doctor.id, decision, None, admin)

    assert exception_info.value.kind == "invalid_transition"
    assert service.get_doctor(doctor.id).verification_status == current_status


def test_first_decision_is_final(service, make_doctor, admin) -> None:
    doctor = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)
    service.decide(doctor.id, VerificationDecision.REJECT, "Registry mismatch", admin)

    with pytest.raises(InvalidTransitionError):
        service.decide(doctor.id, VerificationDecision.APPROVE, "Second look", admin)

    reloaded = service.get_doctor(doctor.id)
    assert reloaded.verification_status == VerificationStatus.REJECTED
    assert reloaded.verification_notes == "Registry mismatch"


def test_decide_missing_doctor(service, admin) -> None:
    with pytest.raises(NotFoundError):
        service.decide(9999, VerificationDecision.APPROVE, None, admin)


def test_decide_requires_admin(service, make_doctor, make_user) -> None:
    doctor = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)

    with pytest.raises(AuthorizationError):
        service.decide(doctor.id, VerificationDecision.APPROVE, None, make_user(UserRole.DOCTOR))

    assert service.get_doctor(doctor.id).verification_status == VerificationStatus.PENDING_VERIFICATION


def test_public_reads_only_expose_verified(service, make_doctor) -> None:
    verified = make_doctor(status=VerificationStatus.VERIFIED)
    pending = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)
    rejected = make_doctor(status=VerificationStatus.REJECTED)

    assert [doctor.id for doctor in service.list_public_doctors()] == [verified.id]
    assert service.get_public_doctor(verified.id).id == verified.id
    for hidden in (pending, rejected):
        with pytest.raises(NotFoundError):
            service.get_public_doctor(hidden.id)


def test_public_listing_filters_by_specialty(service, make_doctor) -> None:
    make_doctor(specialty="Cardiology")
    pediatrician = make_doctor(specialty="Pediatrics")

    assert [doctor.id for doctor in service.list_public_doctors("Pediatrics")] == [pediatrician.id]


def test_admin_listing_by_status(service, make_doctor, admin) -> None:
    make_doctor(status=VerificationStatus.VERIFIED)
    pending = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)

    assert len(service.list_doctors(admin)) == 2
    assert [d.id for d in service.list_doctors(admin, VerificationStatus.PENDING_VERIFICATION)] == [pending.id]


def test_update_profile_by_owner(service, make_doctor) -> None:
    doctor = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)

    updated = service.update_doctor_profile(
        doctor.id, DoctorUpdate(clinic="New Clinic", price=750), doctor.user
    )

    assert updated.clinic == "New Clinic"
    assert updated.price == 750
    assert updated.verification_status == VerificationStatus.PENDING_VERIFICATION


def test_update_profile_by_stranger_is_forbidden(service, make_doctor, make_user) -> None:
    doctor = make_doctor()

    with pytest.raises(AuthorizationError):
        service.update_doctor_profile(doctor.id, DoctorUpdate(clinic="Elsewhere"), make_user(UserRole.DOCTOR))


def test_update_profile_by_admin(service, make_doctor, admin) -> None:
    doctor = make_doctor()

    updated = service.update_doctor_profile(doctor.id, DoctorUpdate(is_available=False), admin)

    assert updated.is_available is False


@pytest.mark.parametrize("field", ["name", "specialty"])
def test_blank_required_text_is_rejected(field) -> None:
    with pytest.raises(SchemaError):
        _payload(**{field: "   "})
    with pytest.raises(SchemaError):
        DoctorUpdate(**{field: "  "})


def test_required_text_is_stripped() -> None:
    payload = _payload(name="  Dr. Asha Rao ", specialty=" Dermatology ")

    assert (payload.name, payload.specialty) == ("Dr. Asha Rao", "Dermatology")


def test_delete_unbooked_doctor(service, make_doctor, admin) -> None:
    doctor = make_doctor(status=VerificationStatus.PENDING_VERIFICATION)

    service.delete_doctor(doctor.id, admin)

    with pytest.raises(NotFoundError):
        service.get_doctor(doctor.id)


def test_delete_requires_admin(service, make_doctor, make_user) -> None:
    owner = make_user(UserRole.DOCTOR)
    doctor = make_doctor(user=owner)

    with pytest.raises(AuthorizationError):
        service.delete_doctor(doctor.id, owner)

    assert service.get_doctor(doctor.id).id == doctor.id


def test_delete_missing_doctor(service, admin) -> None:
    with pytest.raises(NotFoundError):
        service.delete_doctor(9999, admin)


def test_delete_booked_doctor_conflicts(db, service, make_doctor, make_user, admin) -> None:
    doctor = make_doctor()
    appointment = BookingService(db).book(make_user(), doctor.id, "2024-06-01")

    with pytest.raises(ConflictError):
        service.delete_doctor(doctor.id, admin)

    assert service.get_doctor(doctor.id).id == doctor.id
    assert BookingService(db).allocator.current_token(doctor.id, appointment.appointment_day) == 1
