import uuid
from datetime import datetime
from models.db import db

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
BOOKING_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CANCELLED)

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"

CONSULTATION_TYPES = ("online", "in-person")


def _new_booking_id() -> str:
    return str(uuid.uuid4())


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.String(36), primary_key=True, default=_new_booking_id)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Doctor snapshot, not a live reference to a catalog row
    doctor_id = db.Column(db.String(64), nullable=False)
    doctor_name = db.Column(db.String(120), nullable=False)
    doctor_specialization = db.Column(db.String(120), nullable=True)

    appointment_date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    appointment_time = db.Column(db.String(20), nullable=False)  # e.g. "10:00 AM"
    consultation_type = db.Column(db.String(20), nullable=False)

    # whole currency units, fixed at creation
    fee = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    stripe_session_id = db.Column(db.String(255), nullable=True, index=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    payment_status = db.Column(db.String(20), nullable=False, default=PAYMENT_PENDING)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "payment_status != 'paid' OR status = 'confirmed'",
            name="ck_booking_paid_is_confirmed",
        ),
        db.CheckConstraint("fee > 0", name="ck_booking_fee_positive"),
        db.CheckConstraint(
            "consultation_type IN ('online', 'in-person')",
            name="ck_booking_consultation_type",
        ),
    )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_PAID

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "doctor_id": self.doctor_id,
            "doctor_name": self.doctor_name,
            "doctor_specialization": self.doctor_specialization,
            "appointment_date": self.appointment_date,
            "appointment_time": self.appointment_time,
            "consultation_type": self.consultation_type,
            "fee": self.fee,
            "notes": self.notes,
            "stripe_session_id": self.stripe_session_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
