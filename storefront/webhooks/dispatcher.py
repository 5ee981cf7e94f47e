"""Webhook event processor: verifies Stripe events and dispatches by type.

Each request moves Unverified -> Verified or Unverified -> Rejected, both terminal.

Security contract:
- No configured secret -> Rejected (400) before any signature check
- Signature failure -> Rejected (400) with the verification message, no dispatch
- Verified -> 200 {"received": true}, whatever the dispatch outcome; Stripe
  retries non-2xx responses, so unknown event types and local handler errors
  must never fail the request
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from storefront.checkout.quiz import reconstruct_quiz
from storefront.errors import SignatureError, best_effort
from storefront.payments.gateway import PaymentGateway, WebhookEvent

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class WebhookState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass
class WebhookResult:
    """Outcome of processing one webhook request."""

    state: WebhookState
    status_code: int
    detail: str = ""
    event: WebhookEvent | None = None
    handled: bool = False

    @property
    def body(self) -> dict[str, Any] | str:
        if self.state is WebhookState.VERIFIED:
            return {"received": True}
        return self.detail


def _log_context(event: WebhookEvent) -> dict[str, Any]:
    return {
        "event_kind": event.kind,
        "event_id": event.event_id,
        "subject_id": event.subject_id,
    }


def handle_checkout_completed(event: WebhookEvent) -> None:
    session = event.payload
    quiz = reconstruct_quiz(session.get("metadata"))
    logger.info(
        "Payment approved for checkout session %s (amount_total=%s, quiz=%s)",
        event.subject_id,
        session.get("amount_total"),
        quiz,
        extra=_log_context(event),
    )


def handle_payment_succeeded(event: WebhookEvent) -> None:
    logger.info(
        "PaymentIntent succeeded: %s (amount=%s)",
        event.subject_id,
        event.payload.get("amount"),
        extra=_log_context(event),
    )


def handle_payment_failed(event: WebhookEvent) -> None:
    error = event.payload.get("last_payment_error") or {}
    logger.warning(
        "PaymentIntent failed: %s (%s)",
        event.subject_id,
        error.get("message", "no error message"),
        extra=_log_context(event),
    )


EVENT_HANDLERS: dict[str, Callable[[WebhookEvent], None]] = {
    CHECKOUT_COMPLETED: handle_checkout_completed,
    PAYMENT_SUCCEEDED: handle_payment_succeeded,
    PAYMENT_FAILED: handle_payment_failed,
}


def dispatch_event(
    event: WebhookEvent,
    handlers: dict[str, Callable[[WebhookEvent], None]] | None = None,
) -> bool:
    """Run the handler for the event type. Returns False for unhandled types."""
    handler = (handlers if handlers is not None else EVENT_HANDLERS).get(event.kind)
    if handler is None:
        logger.info("Unhandled webhook event: %s", event.kind, extra=_log_context(event))
        return False
    handler(event)
    return True


class WebhookProcessor:
    """Verifies inbound webhook requests and dispatches verified events."""

    def __init__(
        self,
        gateway: PaymentGateway,
        secret: str,
        handlers: dict[str, Callable[[WebhookEvent], None]] | None = None,
    ) -> None:
        self.gateway = gateway
        self.secret = secret
        self.handlers = dict(EVENT_HANDLERS if handlers is None else handlers)

    async def process(self, body: bytes, signature: str | None) -> WebhookResult:
        logger.debug("Webhook received (%d bytes)", len(body))

        if not self.secret:
            logger.error("Webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
            return WebhookResult(WebhookState.REJECTED, 400, "Webhook secret not configured")

        try:
            event = self.gateway.construct_event(body, signature, self.secret)
        except SignatureError as e:
            logger.error("Webhook verification failed: %s", e)
            return WebhookResult(WebhookState.REJECTED, 400, f"Webhook Error: {e}")

        handled = await best_effort(
            lambda: dispatch_event(event, self.handlers), f"dispatch of {event.kind}"
        )
        return WebhookResult(WebhookState.VERIFIED, 200, event=event, handled=bool(handled))
