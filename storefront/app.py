"""FastAPI application factory.

Wires the components together from a single Settings instance:
gateway -> orchestrator / webhook processor, invoker -> scheduler.
Components can be injected for tests; the scheduler only runs inside the
lifespan and only when ``settings.scheduler_enabled`` is set.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from storefront.checkout.orchestrator import CheckoutOrchestrator
from storefront.checkout.quiz import QuizLog
from storefront.config import Settings, get_settings
from storefront.errors import GatewayError, InvalidCartError, NotFoundError
from storefront.generation.invoker import ProcessInvoker
from storefront.generation.scheduler import GenerationScheduler
from storefront.payments.gateway import PaymentGateway, StripeGateway
from storefront.routers import checkout, config, posts
from storefront.webhooks.dispatcher import WebhookProcessor
from storefront.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)


def _mask_key(key: str) -> str:
    return key[:20] + "..." if key else "NOT SET"


def install_error_handlers(app: FastAPI) -> None:
    """Map the error taxonomy to HTTP responses."""

    @app.exception_handler(InvalidCartError)
    async def _invalid_cart(request: Request, exc: InvalidCartError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request body") if errors else "Invalid request body"
        return JSONResponse({"error": detail}, status_code=400)

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        # Unknown sessions are a failed retrieval like any other
        logger.warning("Not found on %s: %s", request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError):
        logger.error("Gateway error on %s: %s", request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)


def create_app(
    settings: Settings | None = None,
    gateway: PaymentGateway | None = None,
    invoker: ProcessInvoker | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    gateway = gateway or StripeGateway(
        settings.stripe_secret_key, tolerance=settings.webhook_tolerance_seconds
    )
    invoker = invoker or ProcessInvoker(settings)
    scheduler = GenerationScheduler(invoker, settings.scheduler_timezone)

    settings.posts_dir.mkdir(parents=True, exist_ok=True)
    settings.data_dir.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Stripe configured with publishable key: %s", _mask_key(settings.stripe_publishable_key))
        if settings.scheduler_enabled:
            scheduler.start()
        else:
            logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
        try:
            yield
        finally:
            scheduler.shutdown()

    app = FastAPI(title="Storefront Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = CheckoutOrchestrator(settings, gateway, QuizLog(settings.quiz_log_path))
    app.state.webhook_processor = WebhookProcessor(gateway, settings.stripe_webhook_secret)
    app.state.invoker = invoker
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    install_error_handlers(app)

    app.include_router(config.router)
    app.include_router(checkout.router)
    app.include_router(posts.router)
    register_webhook_routes(app)
    # Mounted after the router so /posts/list and /posts/generate win
    app.mount("/posts", StaticFiles(directory=settings.posts_dir), name="posts")

    return app
