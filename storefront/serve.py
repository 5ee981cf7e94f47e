"""Process entry point: ``storefront`` console script or ``python -m storefront.serve``."""

from __future__ import annotations

import logging

import uvicorn

from storefront.app import create_app
from storefront.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    logging.getLogger(__name__).info("Server listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
