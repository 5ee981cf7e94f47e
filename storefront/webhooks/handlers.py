"""Webhook HTTP handler: FastAPI route for inbound Stripe webhooks.

The handler reads the raw body (signature verification needs the exact bytes,
never re-serialized JSON) and delegates to WebhookProcessor:
- 400 plain text on missing secret or verification failure
- 200 {"received": true} once verified
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from storefront.webhooks.dispatcher import WebhookProcessor, WebhookState
from storefront.webhooks.verification import SIGNATURE_HEADER

logger = logging.getLogger(__name__)


async def handle_webhook(request: Request, processor: WebhookProcessor) -> Response:
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    result = await processor.process(body, signature)
    if result.state is WebhookState.VERIFIED:
        logger.info(
            "WEBHOOK_AUDIT event=%s id=%s handled=%s",
            result.event.kind if result.event else "",
            result.event.event_id if result.event else "",
            result.handled,
        )
        return JSONResponse(result.body, status_code=result.status_code)
    return PlainTextResponse(result.detail, status_code=result.status_code)


def register_webhook_routes(app: FastAPI) -> None:
    """Register ``POST /webhook`` on the app. Expects app.state.webhook_processor."""

    @app.post("/webhook")
    async def stripe_webhook(request: Request):
        """Receive Stripe webhooks (signature-verified)."""
        return await handle_webhook(request, request.app.state.webhook_processor)

    logger.info("Webhook route registered: /webhook")
