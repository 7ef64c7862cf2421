from flask import Blueprint, request, jsonify, current_app, g

from models.booking import BOOKING_STATUSES
from services.booking_lifecycle import BookingLifecycleManager, DoctorSnapshot
from services.booking_store import SqlBookingStore
from services.errors import BookingError
from services.notifications import Recipient
from utils.audit import log_event
from utils.auth_context import login_required

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")


def _redirect_origin() -> str:
    # Only redirect back to origins we serve
    origin = (request.headers.get("Origin") or "").rstrip("/")
    if origin and origin in current_app.config.get("ALLOWED_ORIGINS", []):
        return origin
    return current_app.config.get("APP_ORIGIN", "http://localhost:3000")


def _manager() -> BookingLifecycleManager:
    return BookingLifecycleManager(
        store=SqlBookingStore(),
        gateway=current_app.extensions["checkout_gateway"],
        notifier=current_app.extensions.get("booking_notifier"),
        origin=_redirect_origin(),
    )


def _error(exc: BookingError, tag: str):
    current_app.logger.warning("[%s] user %s: %s", tag, g.user.id, exc.message)
    body = {"error": exc.message, "retryable": exc.retryable}
    booking_id = getattr(exc, "booking_id", None)
    if booking_id:
        body["bookingId"] = booking_id
    return jsonify(body), exc.status_code


def _booking_id_from_body():
    data = request.get_json(silent=True) or {}
    booking_id = data.get("bookingId")
    if not isinstance(booking_id, str) or not booking_id.strip():
        return None
    return booking_id.strip()


@bookings_bp.post("/checkout")
@login_required
def create_booking_checkout():
    data = request.get_json(silent=True) or {}

    doctor_id = data.get("doctorId")
    if isinstance(doctor_id, int) and not isinstance(doctor_id, bool):
        doctor_id = str(doctor_id)
    doctor = DoctorSnapshot(
        id=doctor_id,
        name=data.get("doctorName"),
        specialization=data.get("doctorSpecialization"),
    )

    try:
        result = _manager().create(
            owner_id=g.user.id,
            doctor=doctor,
            appointment_date=data.get("appointmentDate"),
            appointment_time=data.get("appointmentTime"),
            consultation_type=data.get("consultationType"),
            fee=data.get("fee"),
            notes=data.get("notes"),
            customer_email=g.user.email,
        )
    except BookingError as exc:
        return _error(exc, "CREATE-BOOKING-CHECKOUT")

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=result.booking_id,
              metadata={"doctor_id": doctor.id, "fee": data.get("fee")})
    return jsonify(url=result.checkout_url, bookingId=result.booking_id), 200


@bookings_bp.post("/resume")
@login_required
def resume_booking_checkout():
    booking_id = _booking_id_from_body()
    if not booking_id:
        return jsonify(error="Booking ID is required", retryable=False), 400

    try:
        result = _manager().resume(g.user.id, booking_id, customer_email=g.user.email)
    except BookingError as exc:
        return _error(exc, "RESUME-BOOKING-CHECKOUT")

    if result.already_paid:
        return jsonify(alreadyPaid=True, bookingId=result.booking_id), 200

    log_event("BOOKING_RESUME", user_id=g.user.id, entity="booking", entity_id=result.booking_id)
    return jsonify(url=result.checkout_url, bookingId=result.booking_id), 200


@bookings_bp.post("/verify")
@login_required
def verify_booking_payment():
    booking_id = _booking_id_from_body()
    if not booking_id:
        return jsonify(error="Booking ID is required", retryable=False), 400

    recipient = Recipient(email=g.user.email, name=g.user.full_name)
    try:
        result = _manager().verify(g.user.id, booking_id, recipient=recipient)
    except BookingError as exc:
        return _error(exc, "VERIFY-BOOKING-PAYMENT")

    if not result.paid:
        return jsonify(success=False, message="Payment not completed"), 200

    if result.newly_paid:
        log_event("BOOKING_PAID", user_id=g.user.id, entity="booking", entity_id=result.booking.id,
                  metadata={"stripe_session_id": result.booking.stripe_session_id})
    return jsonify(success=True, booking=result.booking.to_dict()), 200


@bookings_bp.get("/me")
@login_required
def my_bookings():
    status = request.args.get("status")
    if status and status not in BOOKING_STATUSES:
        return jsonify(error="Invalid status filter", retryable=False), 400

    try:
        rows = SqlBookingStore().list_for_owner(g.user.id, status=status)
    except BookingError as exc:
        return _error(exc, "LIST-BOOKINGS")
    return jsonify([b.to_dict() for b in rows]), 200


@bookings_bp.get("/<booking_id>")
@login_required
def get_booking(booking_id: str):
    try:
        booking = SqlBookingStore().get_by_id(booking_id, g.user.id)
    except BookingError as exc:
        return _error(exc, "GET-BOOKING")
    return jsonify(booking.to_dict()), 200
