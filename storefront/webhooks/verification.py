"""Webhook signature verification: constant-time HMAC for Stripe.

Security contract:
- All verifications use hmac.compare_digest() (constant-time, no timing attacks)
- Verification failure -> SignatureError, no payload processing
- Missing secret -> verification always fails (fail-closed)
- Timestamp tolerance (default 300s) to prevent replay
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from storefront.errors import SignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"

DEFAULT_TOLERANCE_SECONDS = 300


def compute_signature(secret: str, timestamp: int, body: bytes) -> str:
    """HMAC-SHA256 hex digest of ``"<timestamp>." + body`` (Stripe v1 scheme)."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def _parse_header(signature_header: str) -> tuple[str | None, list[str]]:
    """Split ``t=<ts>,v1=<sig>[,v1=<sig>...]`` into (timestamp, v1 signatures)."""
    timestamp = None
    signatures: list[str] = []
    for item in signature_header.split(","):
        kv = item.strip().split("=", 1)
        if len(kv) != 2:
            continue
        key, value = kv
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_signature(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Verify a Stripe-Signature header against the raw request body.

    Stripe sends: Stripe-Signature header with format
    t=<timestamp>,v1=<signature>[,v1=<rotated signature>][,v0=<deprecated>]

    Raises:
        SignatureError: if the secret is missing, the header is malformed,
            the timestamp is outside tolerance, or no v1 signature matches.
    """
    if not secret:
        raise SignatureError("No webhook secret configured")
    if not signature_header:
        raise SignatureError("Missing signature header")

    timestamp_str, signatures = _parse_header(signature_header)
    if not timestamp_str:
        raise SignatureError("Unable to extract timestamp from header")
    if not signatures:
        raise SignatureError("No v1 signatures found in header")

    try:
        timestamp = int(timestamp_str)
    except ValueError:
        raise SignatureError("Invalid timestamp in header") from None

    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        logger.warning("Stripe webhook timestamp outside tolerance: %s", timestamp)
        raise SignatureError("Timestamp outside the tolerance zone")

    expected = compute_signature(secret, timestamp, body)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise SignatureError("No signatures found matching the expected signature for payload")
