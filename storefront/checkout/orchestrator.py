"""Checkout orchestration: cart + quiz -> Stripe checkout session.

Flow for create_checkout():
1. Reject empty carts (InvalidCartError, no gateway call)
2. Map cart items to Stripe line items (price passed through, already minor units)
3. Normalize the quiz into session metadata; best-effort append to the quiz log
4. Create the session; gateway failures surface as GatewayError
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from storefront.checkout.models import CartItem, QuizAnswers
from storefront.checkout.quiz import QuizLog, normalize_quiz, reconstruct_quiz
from storefront.config import Settings
from storefront.errors import InvalidCartError, best_effort
from storefront.payments.gateway import PaymentGateway

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/pages/success.html?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/pages/cancel.html"


@dataclass(frozen=True)
class PaymentStatus:
    """What the success page needs to know about a session."""

    status: str | None
    customer_email: str | None
    amount_total: int | None
    quiz: dict[str, Any]

    def to_response(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "customerEmail": self.customer_email,
            "amountTotal": self.amount_total,
            "quiz": self.quiz,
        }


def build_line_items(cart: Sequence[CartItem], currency: str) -> list[dict[str, Any]]:
    line_items = []
    for item in cart:
        product_data: dict[str, Any] = {"name": item.name}
        if item.description:
            product_data["description"] = item.description
        line_items.append(
            {
                "price_data": {
                    "currency": currency,
                    "product_data": product_data,
                    "unit_amount": item.price,
                },
                "quantity": item.quantity,
            }
        )
    return line_items


def build_session_params(
    settings: Settings,
    cart: Sequence[CartItem],
    metadata: dict[str, str],
    origin_url: str,
) -> dict[str, Any]:
    """Stripe ``checkout.sessions.create`` parameters for a one-time payment."""
    origin = origin_url.rstrip("/")
    params: dict[str, Any] = {
        "payment_method_types": list(settings.payment_method_types),
        "line_items": build_line_items(cart, settings.currency),
        "mode": "payment",
        "success_url": origin + SUCCESS_PATH,
        "cancel_url": origin + CANCEL_PATH,
        "locale": settings.checkout_locale,
        "billing_address_collection": "required",
        "shipping_address_collection": {
            "allowed_countries": list(settings.allowed_shipping_countries),
        },
    }
    # Stripe rejects an empty metadata mapping; omit it instead
    if metadata:
        params["metadata"] = dict(metadata)
    return params


class CheckoutOrchestrator:
    """Creates checkout sessions and reads their payment status back."""

    def __init__(self, settings: Settings, gateway: PaymentGateway, quiz_log: QuizLog) -> None:
        self.settings = settings
        self.gateway = gateway
        self.quiz_log = quiz_log

    async def create_checkout(
        self,
        cart: Sequence[CartItem] | None,
        quiz: QuizAnswers | None = None,
        origin_url: str | None = None,
    ) -> str:
        """Create a checkout session and return its Stripe id."""
        if not cart:
            raise InvalidCartError("Cart is empty")

        metadata = normalize_quiz(quiz)
        if quiz is not None:
            await best_effort(self.quiz_log.append(metadata), "quiz submission log append")

        params = build_session_params(
            self.settings, cart, metadata, origin_url or self.settings.public_url
        )
        session = await self.gateway.create_checkout_session(params)
        logger.info(
            "Checkout session created: %s (%d items, quiz=%s)",
            session.id,
            len(cart),
            bool(metadata),
            extra={"session_id": session.id},
        )
        return session.id

    async def get_status(self, session_id: str) -> PaymentStatus:
        """Retrieve a session; NotFoundError if Stripe has no such session."""
        session = await self.gateway.retrieve_checkout_session(session_id)
        return PaymentStatus(
            status=session.payment_status,
            customer_email=session.customer_email,
            amount_total=session.amount_total,
            quiz=reconstruct_quiz(session.metadata),
        )
