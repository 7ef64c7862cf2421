"""SQL-backed booking store.

Every read and write is scoped by ``(booking_id, owner_id)``; a booking owned
by someone else is indistinguishable from a missing one.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from models import db
from models.booking import (
    Booking,
    STATUS_PENDING,
    STATUS_CONFIRMED,
    PAYMENT_PENDING,
    PAYMENT_PAID,
)
from services.errors import NotFound, PersistenceError, StoreUnavailable


@dataclass
class BookingDraft:
    user_id: int
    doctor_id: str
    doctor_name: str
    doctor_specialization: Optional[str]
    appointment_date: str
    appointment_time: str
    consultation_type: str
    fee: int
    notes: Optional[str] = None


@contextmanager
def _store_call():
    try:
        yield
    except IntegrityError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to save booking: {exc.orig}") from exc
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        db.session.rollback()
        raise StoreUnavailable() from exc


class SqlBookingStore:

    def insert(self, draft: BookingDraft) -> Booking:
        booking = Booking(
            user_id=draft.user_id,
            doctor_id=draft.doctor_id,
            doctor_name=draft.doctor_name,
            doctor_specialization=draft.doctor_specialization,
            appointment_date=draft.appointment_date,
            appointment_time=draft.appointment_time,
            consultation_type=draft.consultation_type,
            fee=draft.fee,
            notes=draft.notes,
            status=STATUS_PENDING,
            payment_status=PAYMENT_PENDING,
        )
        with _store_call():
            db.session.add(booking)
            db.session.commit()
        return booking

    def get_by_id(self, booking_id: str, owner_id: int) -> Booking:
        if not booking_id:
            raise NotFound()
        with _store_call():
            booking = Booking.query.filter_by(id=str(booking_id), user_id=owner_id).first()
        if booking is None:
            raise NotFound()
        return booking

    def update_session_reference(self, booking_id: str, owner_id: int, session_ref: str) -> bool:
        """Attach a checkout session to an unpaid booking.

        Returns ``False`` and leaves the row alone when the booking is paid by
        the time the write lands.
        """
        with _store_call():
            result = db.session.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.user_id == owner_id,
                    Booking.payment_status != PAYMENT_PAID,
                )
                .values(stripe_session_id=session_ref, updated_at=datetime.utcnow())
            )
            db.session.commit()
        if result.rowcount == 0:
            if self.get_by_id(booking_id, owner_id).is_paid:
                return False
            raise NotFound()
        return True

    def mark_confirmed_paid(self, booking_id: str, owner_id: int):
        """Move a booking to confirmed/paid.

        Returns ``(booking, transitioned)``. Only the call whose conditional
        UPDATE matched the row reports ``transitioned=True``; later calls leave
        the row, including ``paid_at``, untouched.
        """
        now = datetime.utcnow()
        with _store_call():
            result = db.session.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.user_id == owner_id,
                    Booking.payment_status != PAYMENT_PAID,
                )
                .values(
                    status=STATUS_CONFIRMED,
                    payment_status=PAYMENT_PAID,
                    paid_at=now,
                    updated_at=now,
                )
            )
            db.session.commit()
        transitioned = result.rowcount == 1

        with _store_call():
            booking = db.session.get(Booking, booking_id, populate_existing=True)
        if booking is None or booking.user_id != owner_id:
            raise NotFound()
        return booking, transitioned

    def list_for_owner(self, owner_id: int, status: Optional[str] = None):
        q = Booking.query.filter_by(user_id=owner_id)
        if status:
            q = q.filter_by(status=status)
        with _store_call():
            return q.order_by(Booking.created_at.desc()).all()
