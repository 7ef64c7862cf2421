"""Booking confirmation emails, sent off the request thread."""
from concurrent.futures import ThreadPoolExecutor
from typing import NamedTuple, Optional

from utils.emailer import send_email


class Recipient(NamedTuple):
    email: str
    name: Optional[str] = None


def _confirmation_body(booking: dict, patient_name: str, brand: str) -> str:
    mode = "Online consultation" if booking["consultation_type"] == "online" else "In-person visit"
    lines = [
        f"Dear {patient_name},",
        "",
        "Your appointment has been booked.",
        "",
        f"Doctor: {booking['doctor_name']}",
        f"Specialization: {booking.get('doctor_specialization') or '-'}",
        f"Date: {booking['appointment_date']}",
        f"Time: {booking['appointment_time']}",
        f"Type: {mode}",
        f"Fee paid: {booking['fee']}",
        "",
        f"Booking reference: {booking['id']}",
        "",
        f"{brand}",
    ]
    return "\n".join(lines)


class EmailNotificationDispatcher:
    """Fire-and-forget confirmation mail.

    ``booking_confirmed`` only queues the job. The job runs in its own app
    context; whatever goes wrong there is logged and dropped.
    """

    def __init__(self, app, executor=None):
        self.app = app
        self.executor = executor or ThreadPoolExecutor(
            max_workers=app.config.get("NOTIFY_MAX_WORKERS", 2),
            thread_name_prefix="booking-notify",
        )

    def booking_confirmed(self, booking: dict, recipient: Recipient) -> None:
        future = self.executor.submit(self._send_confirmation, dict(booking), recipient)
        future.add_done_callback(self._log_crash)

    def _send_confirmation(self, booking: dict, recipient: Recipient) -> bool:
        with self.app.app_context():
            brand = self.app.config.get("BRAND_NAME", "MediConnect")
            subject = f"Booking Confirmed - {booking['doctor_name']}"
            body = _confirmation_body(booking, recipient.name or "Patient", brand)
            ok, err = send_email(recipient.email, subject, body)
            if ok:
                self.app.logger.info("[SEND-BOOKING-CONFIRMATION] sent to %s for booking %s",
                                     recipient.email, booking["id"])
            else:
                self.app.logger.warning("[SEND-BOOKING-CONFIRMATION] skipped for booking %s: %s",
                                        booking["id"], err)
            return ok

    def _log_crash(self, future):
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.app.logger.error("[SEND-BOOKING-CONFIRMATION] failed: %s", exc, exc_info=exc)

    def shutdown(self):
        self.executor.shutdown(wait=True)
