"""Storefront backend configuration.

Settings are read from the environment (and an optional ``.env`` file) once at
process start and passed explicitly to the components that need them.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven, immutable settings for the storefront backend."""

    # Stripe
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    webhook_tolerance_seconds: int = 300

    # Site config exposed to the frontend
    whatsapp_phone: str = ""
    ga4_id: str = ""
    meta_pixel_id: str = ""

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    public_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "https://powerchipbrasil.avila.inc",
        "https://avilaops.github.io",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Checkout constants
    currency: str = "brl"
    checkout_locale: str = "pt-BR"
    allowed_shipping_countries: list[str] = ["BR"]
    payment_method_types: list[str] = ["card"]

    # Filesystem
    posts_dir: Path = Path("posts")
    data_dir: Path = Path("data")
    products_path: Path = Path("products.csv")

    # External post generator
    generator_dir: Path = Path(".")
    generator_python: str = "python"
    generator_entrypoint: str = "generate_posts_cli.py"
    generator_brand: str = "Powerchip Brasil"

    # Weekly generation schedule
    scheduler_enabled: bool = True
    scheduler_timezone: str = "America/Sao_Paulo"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @property
    def quiz_log_path(self) -> Path:
        """Append-only JSONL log of quiz submissions."""
        return self.data_dir / "quiz_submissions.jsonl"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
