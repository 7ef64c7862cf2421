"""Booking payment lifecycle.

A booking is created ``pending/pending``, gets a hosted checkout session, and
moves to ``confirmed/paid`` only after the payment provider says the session
currently stored on the booking is paid::

    create()  -> pending/pending
    resume()  -> pending/pending, with a fresh session reference
    verify()  -> confirmed/paid once the provider reports payment

Payment success is never inferred from the client's redirect. All three
operations are safe to retry: ``resume`` and ``verify`` short-circuit on a
paid booking, and the store's paid transition is conditional.
"""
from datetime import date
from typing import NamedTuple, Optional

from flask import current_app

from models.booking import Booking, CONSULTATION_TYPES
from services.booking_store import BookingDraft
from services.errors import BookingError, InvalidRequest, InvalidState
from services.notifications import Recipient


class DoctorSnapshot(NamedTuple):
    id: str
    name: str
    specialization: Optional[str] = None


class CheckoutStart(NamedTuple):
    booking_id: str
    checkout_url: str


class ResumeResult(NamedTuple):
    booking_id: str
    already_paid: bool
    checkout_url: Optional[str] = None


class VerifyResult(NamedTuple):
    booking: Booking
    paid: bool
    newly_paid: bool = False


def _require_text(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"{field} is required")
    return value.strip()


def _optional_text(value, field: str):
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{field} must be a string")
    return value.strip() or None


def _validate_fee(fee) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(fee, bool) or not isinstance(fee, int) or fee <= 0:
        raise InvalidRequest("fee must be a positive integer")
    return fee


def _validate_date(value) -> str:
    text = _require_text(value, "appointmentDate")
    try:
        date.fromisoformat(text)
    except ValueError:
        raise InvalidRequest("appointmentDate must be an ISO date (YYYY-MM-DD)") from None
    return text


class BookingLifecycleManager:

    def __init__(self, store, gateway, notifier=None, origin: str = "http://localhost:3000",
                 logger=None):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.origin = origin.rstrip("/")
        self._logger = logger

    @property
    def log(self):
        return self._logger or current_app.logger

    def _redirects(self, booking_id: str):
        return (
            f"{self.origin}/booking-success?booking_id={booking_id}",
            f"{self.origin}/booking-cancelled?booking_id={booking_id}",
        )

    def _open_session(self, booking: Booking, owner_id: int, customer_email: Optional[str]):
        mode = "Online" if booking.consultation_type == "online" else "In-person"
        success_url, cancel_url = self._redirects(booking.id)
        session = self.gateway.create_session(
            amount=booking.fee,
            name=f"Consultation with {booking.doctor_name}",
            description=(
                f"{mode} consultation on {booking.appointment_date} at {booking.appointment_time}"
            ),
            success_url=success_url,
            cancel_url=cancel_url,
            customer_email=customer_email,
            metadata={"booking_id": booking.id, "user_id": owner_id},
        )
        if not self.store.update_session_reference(booking.id, owner_id, session.id):
            # paid while the session was being opened; the new one is never used
            return None
        return session

    def create(self, owner_id: int, doctor: DoctorSnapshot, appointment_date, appointment_time,
               consultation_type, fee, notes=None, customer_email=None) -> CheckoutStart:
        if doctor is None:
            raise InvalidRequest("doctor is required")
        if consultation_type not in CONSULTATION_TYPES:
            raise InvalidRequest("consultationType must be 'online' or 'in-person'")
        draft = BookingDraft(
            user_id=owner_id,
            doctor_id=_require_text(doctor.id, "doctorId"),
            doctor_name=_require_text(doctor.name, "doctorName"),
            doctor_specialization=_optional_text(doctor.specialization, "doctorSpecialization"),
            appointment_date=_validate_date(appointment_date),
            appointment_time=_require_text(appointment_time, "appointmentTime"),
            consultation_type=consultation_type,
            fee=_validate_fee(fee),
            notes=_optional_text(notes, "notes"),
        )

        booking = self.store.insert(draft)
        booking_id = booking.id
        self.log.info("[CREATE-BOOKING-CHECKOUT] booking %s created for user %s", booking_id, owner_id)

        # A failure from here on leaves a pending booking without a session;
        # resume() repairs it.
        try:
            session = self._open_session(booking, owner_id, customer_email)
        except BookingError as exc:
            exc.booking_id = booking_id
            raise
        if session is None:
            raise InvalidState("Booking is already paid")
        self.log.info("[CREATE-BOOKING-CHECKOUT] session %s opened for booking %s",
                      session.id, booking_id)
        return CheckoutStart(booking_id=booking_id, checkout_url=session.url)

    def resume(self, owner_id: int, booking_id: str, customer_email=None) -> ResumeResult:
        booking = self.store.get_by_id(booking_id, owner_id)
        if booking.is_paid:
            self.log.info("[RESUME-BOOKING-CHECKOUT] booking %s already paid", booking.id)
            return ResumeResult(booking_id=booking.id, already_paid=True)

        # Hosted sessions are single-use, so always open a new one.
        previous = booking.stripe_session_id
        session = self._open_session(booking, owner_id, customer_email)
        if session is None:
            self.log.info("[RESUME-BOOKING-CHECKOUT] booking %s paid during resume", booking.id)
            return ResumeResult(booking_id=booking.id, already_paid=True)
        self.log.info("[RESUME-BOOKING-CHECKOUT] session %s replaces %s for booking %s",
                      session.id, previous, booking.id)
        return ResumeResult(booking_id=booking.id, already_paid=False, checkout_url=session.url)

    def verify(self, owner_id: int, booking_id: str, recipient: Optional[Recipient] = None) -> VerifyResult:
        booking = self.store.get_by_id(booking_id, owner_id)
        if booking.is_paid:
            return VerifyResult(booking=booking, paid=True)

        if not booking.stripe_session_id:
            raise InvalidState("No checkout session found for this booking")

        # Only the currently stored session counts; superseded ones are ignored.
        status = self.gateway.retrieve_session(booking.stripe_session_id)
        self.log.info("[VERIFY-BOOKING-PAYMENT] session %s paid=%s", status.id, status.paid)
        if not status.paid:
            return VerifyResult(booking=booking, paid=False)

        booking, transitioned = self.store.mark_confirmed_paid(booking.id, owner_id)
        if transitioned:
            self._notify(booking, recipient)
        return VerifyResult(booking=booking, paid=True, newly_paid=transitioned)

    def _notify(self, booking: Booking, recipient: Optional[Recipient]):
        if self.notifier is None:
            return
        if recipient is None or not recipient.email:
            self.log.warning("[VERIFY-BOOKING-PAYMENT] booking %s confirmed without a "
                             "notification recipient", booking.id)
            return
        try:
            self.notifier.booking_confirmed(booking.to_dict(), recipient)
        except Exception:
            # payment is already recorded; a lost email must not undo that
            self.log.exception("[VERIFY-BOOKING-PAYMENT] confirmation dispatch failed for %s",
                               booking.id)
