"""First-come-first-served token numbering per (doctor, calendar day).

Each booking scope has a ``token_counters`` row. Bumping it inside the
caller's transaction takes a row lock that serializes concurrent bookers for
that scope until commit. Under the lock the token is derived from the highest
appointment token the transaction can see, so only inserted appointments
consume numbers: a reservation committed without an appointment, or rolled
back, leaves no gap. The appointment insert is additionally guarded by the
(doctor_id, appointment_day, token_number) unique constraint; a violation is
retried up to ``TOKEN_ALLOCATION_MAX_ATTEMPTS`` times.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ContentionError
from ..models.appointment import Appointment, TokenCounter, TOKEN_CONSTRAINT

logger = logging.getLogger(__name__)


def to_clinic_time(value: datetime) -> datetime:
    """Naive datetime in the clinic time zone.

    Aware values are converted; naive values are taken as clinic-local.
    """
    if value.tzinfo is not None:
        value = value.astimezone(ZoneInfo(settings.CLINIC_TIMEZONE)).replace(tzinfo=None)
    return value


def booking_day(value) -> date:
    """Calendar day that scopes the token sequence for ``value``."""
    if isinstance(value, datetime):
        return to_clinic_time(value).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` interval covering ``day``."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def is_token_collision(exc: IntegrityError) -> bool:
    """True when ``exc`` is a violation of the per-day token uniqueness rule."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint == TOKEN_CONSTRAINT
    # SQLite names the columns rather than the constraint
    return "appointments.token_number" in str(exc.orig)


class TokenAllocator:
    def __init__(self, db: Session, max_attempts: Optional[int] = None):
        self.db = db
        if max_attempts is None:
            max_attempts = settings.TOKEN_ALLOCATION_MAX_ATTEMPTS
        self.max_attempts = max_attempts

    def allocate(self, doctor_id: int, day: date) -> int:
        """Lock the scope and return the next token inside the current transaction.

        The result is one greater than the highest token visible to this
        transaction. Calling it again without inserting an appointment returns
        the same number.
        """
        for attempt in range(1, self.max_attempts + 1):
            token = self._next_token(doctor_id, day)
            if token is not None:
                return token
            logger.debug(
                f"Token counter race for doctor={doctor_id} day={day} (attempt {attempt})"
            )
        raise self._exhausted(doctor_id, day)

    def assign(self, appointment: Appointment) -> int:
        """Allocate a token for ``appointment`` and insert it.

        ``appointment.doctor_id`` and ``appointment.appointment_day`` must be set.
        The caller owns the transaction and commits it.
        """
        doctor_id = appointment.doctor_id
        day = appointment.appointment_day

        for attempt in range(1, self.max_attempts + 1):
            token = self._next_token(doctor_id, day)
            if token is None:
                logger.debug(
                    f"Token counter race for doctor={doctor_id} day={day} (attempt {attempt})"
                )
                continue

            appointment.token_number = token
            try:
                with self.db.begin_nested():
                    self.db.add(appointment)
            except IntegrityError as exc:
                if not is_token_collision(exc):
                    raise
                logger.debug(
                    f"Token {token} already taken for doctor={doctor_id} day={day} "
                    f"(attempt {attempt})"
                )
                continue

            return token

        raise self._exhausted(doctor_id, day)

    def current_token(self, doctor_id: int, day: date) -> int:
        """Highest committed token for the scope, 0 when none."""
        return self._committed_max(doctor_id, day)

    def _next_token(self, doctor_id: int, day: date) -> Optional[int]:
        locked = self.db.execute(
            update(TokenCounter)
            .where(TokenCounter.doctor_id == doctor_id, TokenCounter.day == day)
            .values(last_token=TokenCounter.last_token + 1)
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount:
            # Read after the lock so the previous holder's insert is visible
            token = self._committed_max(doctor_id, day) + 1
            self.db.execute(
                update(TokenCounter)
                .where(TokenCounter.doctor_id == doctor_id, TokenCounter.day == day)
                .values(last_token=token)
                .execution_options(synchronize_session=False)
            )
            return token

        # First booking for this scope
        token = self._committed_max(doctor_id, day) + 1
        try:
            with self.db.begin_nested():
                self.db.add(TokenCounter(doctor_id=doctor_id, day=day, last_token=token))
        except IntegrityError:
            return None
        return token

    def _committed_max(self, doctor_id: int, day: date) -> int:
        return self.db.execute(
            select(func.coalesce(func.max(Appointment.token_number), 0))
            .where(Appointment.doctor_id == doctor_id, Appointment.appointment_day == day)
        ).scalar_one()

    def _exhausted(self, doctor_id: int, day: date) -> ContentionError:
        logger.warning(
            f"Token allocation gave up after {self.max_attempts} attempts "
            f"for doctor={doctor_id} day={day}"
        )
        return ContentionError(
            "Too many concurrent bookings for this doctor and day. Please try again."
        )
