from .errors import (
    BookingError,
    InvalidRequest,
    NotFound,
    InvalidState,
    PersistenceError,
    StoreUnavailable,
    GatewayUnavailable,
    PaymentGatewayError,
    ConfigurationError,
)
from .booking_store import SqlBookingStore, BookingDraft
from .checkout_gateway import StripeCheckoutGateway, SessionHandle, SessionStatus
from .notifications import EmailNotificationDispatcher, Recipient
from .booking_lifecycle import (
    BookingLifecycleManager,
    DoctorSnapshot,
    CheckoutStart,
    ResumeResult,
    VerifyResult,
)
