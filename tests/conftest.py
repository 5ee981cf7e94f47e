"""Shared fixtures for the storefront test suite.

- settings: isolated Settings rooted in tmp_path (scheduler off, no .env)
- gateway: in-memory Stripe stand-in with real webhook verification
- make_generator: writes a fake generator CLI that the invoker runs for real
- read_quiz_log: parses a quiz JSONL log back into entries
- client: FastAPI TestClient over create_app()
"""

from __future__ import annotations

import json
import sys
import textwrap
import time
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.config import Settings
from storefront.errors import GatewayError, NotFoundError
from storefront.payments.gateway import CheckoutSession, StripeGateway
from storefront.webhooks.verification import compute_signature

WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway(StripeGateway):
    """Keeps created sessions in memory; webhook verification stays real."""

    def __init__(self) -> None:
        super().__init__(api_key="")
        self.created: list[dict[str, Any]] = []
        self.sessions: dict[str, CheckoutSession] = {}
        self.fail_with: str | None = None

    async def create_checkout_session(self, params: dict[str, Any]) -> CheckoutSession:
        if self.fail_with:
            raise GatewayError(self.fail_with)
        self.created.append(params)
        session = CheckoutSession(
            id=f"cs_test_{len(self.created)}",
            payment_status="unpaid",
            amount_total=sum(
                li["price_data"]["unit_amount"] * li["quantity"] for li in params["line_items"]
            ),
            metadata=dict(params.get("metadata") or {}),
        )
        self.sessions[session.id] = session
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        if self.fail_with:
            raise GatewayError(self.fail_with)
        try:
            return self.sessions[session_id]
        except KeyError:
            raise NotFoundError(f"No such checkout.session: '{session_id}'") from None


def sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a valid Stripe-Signature header for ``body``."""
    ts = timestamp or int(time.time())
    return f"t={ts},v1={compute_signature(secret, ts, body)}"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        stripe_secret_key="",
        stripe_publishable_key="pk_test_1234567890abcdefghijklmnop",
        stripe_webhook_secret=WEBHOOK_SECRET,
        whatsapp_phone="5511999999999",
        ga4_id="G-TEST",
        meta_pixel_id="",
        posts_dir=tmp_path / "posts",
        data_dir=tmp_path / "data",
        products_path=tmp_path / "products.csv",
        generator_dir=tmp_path,
        generator_python=sys.executable,
        generator_entrypoint=str(tmp_path / "generate_posts_cli.py"),
        scheduler_enabled=False,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_generator(settings: Settings):
    """Write the fake generator entry point. Returns its path."""

    def _make(source: str) -> Path:
        path = Path(settings.generator_entrypoint)
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def sign_webhook():
    return sign


@pytest.fixture
def read_quiz_log():
    """Load every entry of a quiz JSONL log; a missing file reads as empty."""

    def _read(path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        with path.open(encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read


@pytest.fixture
def app(settings: Settings, gateway: FakeGateway):
    return create_app(settings, gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
