"""Payment gateway client: typed wrapper around the Stripe SDK.

Only this module talks to ``stripe``. Everything else sees ``CheckoutSession``
and ``WebhookEvent`` records and the storefront error taxonomy:

- stripe.InvalidRequestError with code ``resource_missing`` -> NotFoundError
- any other stripe.StripeError -> GatewayError (SDK message preserved)
- webhook verification failure -> SignatureError
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import stripe

from storefront.errors import GatewayError, NotFoundError, SignatureError
from storefront.webhooks.verification import DEFAULT_TOLERANCE_SECONDS, verify_stripe_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """The subset of a Stripe checkout session this backend reads back."""

    id: str
    payment_status: str | None = None
    amount_total: int | None = None
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """A verified gateway event. Transient, processed once, never stored."""

    kind: str
    event_id: str
    payload: dict[str, Any]
    signature: str
    body: bytes = field(repr=False)

    @property
    def subject_id(self) -> str:
        """Id of the object the event is about (session, payment intent, ...)."""
        return str(self.payload.get("id", ""))


@runtime_checkable
class PaymentGateway(Protocol):
    """What the checkout and webhook layers need from a payment provider."""

    async def create_checkout_session(self, params: dict[str, Any]) -> CheckoutSession:
        ...

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        ...

    def construct_event(self, body: bytes, signature: str | None, secret: str) -> WebhookEvent:
        ...


def _as_dict(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or plain mapping) into a plain dict."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _to_session(obj: Any) -> CheckoutSession:
    data = _as_dict(obj)
    details = data.get("customer_details") or {}
    metadata = data.get("metadata") or {}
    return CheckoutSession(
        id=data["id"],
        payment_status=data.get("payment_status"),
        amount_total=data.get("amount_total"),
        customer_email=details.get("email"),
        metadata={str(k): str(v) for k, v in metadata.items()},
    )


def parse_event(body: bytes, signature: str) -> WebhookEvent:
    """Parse a verified webhook body into a WebhookEvent."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise SignatureError("Invalid payload: body is not valid JSON") from None
    if not isinstance(payload, dict) or not payload.get("type"):
        raise SignatureError("Invalid payload: missing event type")

    obj = (payload.get("data") or {}).get("object") or {}
    return WebhookEvent(
        kind=str(payload["type"]),
        event_id=str(payload.get("id", "")),
        payload=obj if isinstance(obj, dict) else {},
        signature=signature,
        body=body,
    )


class StripeGateway:
    """Stripe-backed PaymentGateway using the SDK's async methods."""

    def __init__(
        self,
        api_key: str,
        client: Any | None = None,
        tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._api_key = api_key
        self._client = client
        self._tolerance = tolerance

    def _sessions(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise GatewayError("STRIPE_SECRET_KEY is not configured")
            self._client = stripe.StripeClient(api_key=self._api_key)
        # Newer SDKs namespace services under client.v1
        root = getattr(self._client, "v1", None) or self._client
        return root.checkout.sessions

    async def create_checkout_session(self, params: dict[str, Any]) -> CheckoutSession:
        sessions = self._sessions()
        try:
            session = await sessions.create_async(params=params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout session create failed: %s", e.user_message or e)
            raise GatewayError(e.user_message or str(e)) from e
        return _to_session(session)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        sessions = self._sessions()
        try:
            session = await sessions.retrieve_async(session_id)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                raise NotFoundError(e.user_message or str(e)) from e
            raise GatewayError(e.user_message or str(e)) from e
        except stripe.StripeError as e:
            logger.error("Stripe checkout session retrieve failed: %s", e.user_message or e)
            raise GatewayError(e.user_message or str(e)) from e
        return _to_session(session)

    def construct_event(self, body: bytes, signature: str | None, secret: str) -> WebhookEvent:
        """Verify the raw body against the signature header, then parse it."""
        verify_stripe_signature(body, signature, secret, tolerance=self._tolerance)
        return parse_event(body, signature or "")
