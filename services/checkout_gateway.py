"""Stripe hosted checkout, reduced to the two calls the booking flow needs."""
from typing import NamedTuple, Optional

import stripe

from services.errors import ConfigurationError, GatewayUnavailable, PaymentGatewayError


class SessionHandle(NamedTuple):
    id: str
    url: str


class SessionStatus(NamedTuple):
    id: str
    paid: bool


def _translate(exc: stripe.StripeError):
    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError)):
        return GatewayUnavailable()
    if isinstance(exc, stripe.APIError) and (exc.http_status or 500) >= 500:
        return GatewayUnavailable()
    if isinstance(exc, stripe.AuthenticationError):
        return ConfigurationError("Stripe rejected the configured secret key")
    return PaymentGatewayError(exc.user_message or "Payment provider rejected the request")


class StripeCheckoutGateway:
    """Creates one-time payment sessions and reports whether they were paid.

    ``amount`` is always whole currency units; conversion to the smallest
    unit happens here and nowhere else.
    """

    def __init__(self, secret_key: Optional[str], currency: str = "inr",
                 timeout: int = 15, max_network_retries: int = 2):
        self.secret_key = secret_key
        self.currency = currency.lower()
        self.timeout = timeout
        self.max_network_retries = max_network_retries
        self._http_client = None

    @classmethod
    def from_config(cls, config) -> "StripeCheckoutGateway":
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY"),
            currency=config.get("STRIPE_CURRENCY", "inr"),
            timeout=config.get("STRIPE_TIMEOUT_SECONDS", 15),
            max_network_retries=config.get("STRIPE_MAX_NETWORK_RETRIES", 2),
        )

    def _configure(self):
        if not self.secret_key:
            raise ConfigurationError("Stripe secret key missing (STRIPE_SECRET_KEY)")
        stripe.api_key = self.secret_key
        stripe.max_network_retries = self.max_network_retries
        if self._http_client is None:
            self._http_client = stripe.RequestsClient(timeout=self.timeout)
        stripe.default_http_client = self._http_client

    def _find_customer(self, email: str) -> Optional[str]:
        customers = stripe.Customer.list(email=email, limit=1)
        data = customers["data"]
        return data[0]["id"] if data else None

    def create_session(self, amount: int, name: str, description: str,
                       success_url: str, cancel_url: str,
                       customer_email: Optional[str] = None,
                       metadata: Optional[dict] = None) -> SessionHandle:
        self._configure()
        params = {
            "mode": "payment",
            "line_items": [{
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": name, "description": description},
                    "unit_amount": int(amount) * 100,
                },
                "quantity": 1,
            }],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {k: str(v) for k, v in (metadata or {}).items()},
        }
        try:
            if customer_email:
                customer_id = self._find_customer(customer_email)
                if customer_id:
                    params["customer"] = customer_id
                else:
                    params["customer_email"] = customer_email
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as exc:
            raise _translate(exc) from exc
        return SessionHandle(id=session["id"], url=session["url"])

    def retrieve_session(self, session_ref: str) -> SessionStatus:
        self._configure()
        try:
            session = stripe.checkout.Session.retrieve(session_ref)
        except stripe.StripeError as exc:
            raise _translate(exc) from exc
        return SessionStatus(id=session["id"], paid=session["payment_status"] == "paid")
