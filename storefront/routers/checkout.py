"""Checkout routes: session creation and payment status.

Errors are mapped by the app's exception handlers:
InvalidCartError -> 400, NotFoundError -> 404, GatewayError -> 500.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from storefront.checkout.models import CheckoutRequest

router = APIRouter(tags=["checkout"])


@router.post("/create-checkout-session")
async def create_checkout_session(body: CheckoutRequest, request: Request):
    orchestrator = request.app.state.orchestrator
    session_id = await orchestrator.create_checkout(
        body.items,
        body.quiz,
        origin_url=request.headers.get("origin"),
    )
    return {"id": session_id}


@router.get("/payment-status/{session_id}")
async def payment_status(session_id: str, request: Request):
    status = await request.app.state.orchestrator.get_status(session_id)
    return status.to_response()
