"""Webhook inbound system.

Receives Stripe webhooks. Each webhook is signature-verified against the raw
body and dispatched by event type.
"""
