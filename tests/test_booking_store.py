import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from models.booking import Booking
from services.booking_store import BookingDraft, SqlBookingStore
from services.errors import NotFound, PersistenceError, StoreUnavailable


def _draft(user_id, fee=800, **overrides):
    values = dict(
        user_id=user_id,
        doctor_id="1",
        doctor_name="Dr. A",
        doctor_specialization="Cardiology",
        appointment_date="2025-06-01",
        appointment_time="10:00 AM",
        consultation_type="online",
        fee=fee,
    )
    values.update(overrides)
    return BookingDraft(**values)


@pytest.fixture
def store(app):
    return SqlBookingStore()


def test_insert_creates_pending_booking(store, user):
    booking = store.insert(_draft(user.id))

    assert len(booking.id) == 36
    assert booking.status == "pending"
    assert booking.payment_status == "pending"
    assert booking.stripe_session_id is None
    assert booking.paid_at is None


def test_insert_constraint_violation_raises_persistence_error(store, user):
    with pytest.raises(PersistenceError) as exc_info:
        store.insert(_draft(user.id, fee=0))

    assert str(exc_info.value).startswith("Failed to save booking")
    assert exc_info.value.status_code == 500
    assert Booking.query.count() == 0


def test_get_by_id_is_scoped_to_owner(store, user, other_user):
    booking = store.insert(_draft(user.id))

    assert store.get_by_id(booking.id, user.id).id == booking.id
    with pytest.raises(NotFound) as foreign:
        store.get_by_id(booking.id, other_user.id)
    with pytest.raises(NotFound) as missing:
        store.get_by_id("does-not-exist", user.id)

    # same answer whether the row is foreign or absent
    assert str(foreign.value) == str(missing.value)


def test_update_session_reference_replaces_value(store, user):
    booking = store.insert(_draft(user.id))

    assert store.update_session_reference(booking.id, user.id, "cs_first") is True
    store.update_session_reference(booking.id, user.id, "cs_second")

    fresh = store.get_by_id(booking.id, user.id)
    assert fresh.stripe_session_id == "cs_second"
    assert fresh.status == "pending"
    assert fresh.payment_status == "pending"


def test_update_session_reference_rejects_foreign_owner(store, user, other_user):
    booking = store.insert(_draft(user.id))

    with pytest.raises(NotFound):
        store.update_session_reference(booking.id, other_user.id, "cs_hijack")

    assert store.get_by_id(booking.id, user.id).stripe_session_id is None


def test_update_session_reference_leaves_paid_booking_alone(store, user):
    booking = store.insert(_draft(user.id))
    store.update_session_reference(booking.id, user.id, "cs_paid")
    store.mark_confirmed_paid(booking.id, user.id)

    assert store.update_session_reference(booking.id, user.id, "cs_late") is False
    assert store.get_by_id(booking.id, user.id).stripe_session_id == "cs_paid"


def test_mark_confirmed_paid_is_idempotent(store, user):
    booking = store.insert(_draft(user.id))

    first, transitioned = store.mark_confirmed_paid(booking.id, user.id)
    paid_at = first.paid_at
    second, transitioned_again = store.mark_confirmed_paid(booking.id, user.id)

    assert transitioned is True
    assert transitioned_again is False
    assert second.status == "confirmed"
    assert second.payment_status == "paid"
    assert second.paid_at == paid_at


def test_mark_confirmed_paid_for_foreign_owner_is_not_found(store, user, other_user):
    booking = store.insert(_draft(user.id))

    with pytest.raises(NotFound):
        store.mark_confirmed_paid(booking.id, other_user.id)

    assert store.get_by_id(booking.id, user.id).payment_status == "pending"


def test_list_for_owner_only_returns_own_bookings(store, user, other_user):
    mine = store.insert(_draft(user.id))
    store.insert(_draft(other_user.id))
    paid = store.insert(_draft(user.id, doctor_name="Dr. B"))
    store.mark_confirmed_paid(paid.id, user.id)

    rows = store.list_for_owner(user.id)
    assert {b.id for b in rows} == {mine.id, paid.id}
    assert [b.id for b in store.list_for_owner(user.id, status="confirmed")] == [paid.id]


def test_database_outage_raises_store_unavailable(store, user, monkeypatch):
    def boom(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", boom)

    with pytest.raises(StoreUnavailable) as exc_info:
        store.insert(_draft(user.id))
    assert exc_info.value.retryable is True
