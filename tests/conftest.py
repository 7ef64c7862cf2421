import pytest

from app import create_app
from config import Config
from models import db
from models.user import User
from security.session import create_session
from services.checkout_gateway import SessionHandle, SessionStatus


class ConfigForTests(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    STRIPE_SECRET_KEY = "sk_test_dummy"
    APP_ORIGIN = "http://localhost:3000"
    ALLOWED_ORIGINS = ["http://localhost:3000", "https://app.mediconnect.test"]
    SMTP_HOST = None


class FakeGateway:
    """In-memory stand-in for Stripe checkout."""

    def __init__(self):
        self.created = []
        self.retrieved = []
        self.paid = set()
        self.fail_create = None

    def create_session(self, **kwargs):
        if self.fail_create is not None:
            raise self.fail_create
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append(dict(kwargs, id=session_id))
        return SessionHandle(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def retrieve_session(self, session_ref):
        self.retrieved.append(session_ref)
        return SessionStatus(id=session_ref, paid=session_ref in self.paid)

    def mark_paid(self, session_ref):
        self.paid.add(session_ref)


class RecordingNotifier:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def booking_confirmed(self, booking, recipient):
        self.calls.append((booking, recipient))
        if self.error is not None:
            raise self.error


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(gateway, notifier):
    app = create_app(ConfigForTests, gateway=gateway, notifier=notifier)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(email, full_name=None):
    # hash value is irrelevant for bearer-token tests
    user = User(email=email, password_hash="not-a-real-hash", full_name=full_name)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    return _make_user("patient@example.com", full_name="Asha Rao")


@pytest.fixture
def other_user(app):
    return _make_user("someone-else@example.com")


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_session(user.id)}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {create_session(other_user.id)}"}


@pytest.fixture
def booking_payload():
    return {
        "doctorId": "1",
        "doctorName": "Dr. A",
        "doctorSpecialization": "Dermatology",
        "appointmentDate": "2025-06-01",
        "appointmentTime": "10:00 AM",
        "consultationType": "online",
        "fee": 800,
    }
