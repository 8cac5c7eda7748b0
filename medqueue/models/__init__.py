from .user import User
from .doctor import Doctor, VerificationStatus
from .appointment import Appointment, AppointmentStatus, AppointmentType, TokenCounter

__all__ = [
    "User",
    "Doctor",
    "VerificationStatus",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "TokenCounter",
]
