"""Error taxonomy and the best-effort side-effect wrapper.

Propagation contract:
- InvalidCartError -> 4xx with a short message
- GatewayError / ProcessError -> 5xx carrying the upstream message
- NotFoundError -> 5xx like any failed retrieval, kept distinct for callers
- SignatureError -> 400, never dispatched
- LogAppendError -> logged locally, never surfaced
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for all storefront errors."""


class InvalidCartError(StorefrontError):
    """The submitted cart is empty or missing."""


class GatewayError(StorefrontError):
    """The payment provider rejected or failed a call."""


class NotFoundError(StorefrontError):
    """The payment provider has no record of the requested object."""


class SignatureError(StorefrontError):
    """A webhook failed signature verification."""


class ProcessError(StorefrontError):
    """The external generator exited with a nonzero status or failed to start."""


class LogAppendError(StorefrontError):
    """A quiz log entry could not be written."""


SideEffect = Union[Awaitable[Any], Callable[[], Any]]


async def best_effort(effect: SideEffect, what: str) -> Any:
    """Run a side effect whose failure must not affect the caller.

    Accepts an awaitable or a zero-argument callable (sync or async). Any
    exception is logged and swallowed; the return value is None on failure.
    """
    try:
        if callable(effect):
            effect = effect()
        if inspect.isawaitable(effect):
            return await effect
        return effect
    except Exception:
        logger.warning("Best-effort %s failed", what, exc_info=True)
        return None
