"""Checkout request models."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CartItem(BaseModel):
    """One cart line. ``price`` is already in minor units (centavos)."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


class QuizAnswers(BaseModel):
    """Buyer-preference quiz attached to a checkout. Every field is optional.

    The quiz never blocks a purchase: values that cannot be coerced are
    dropped and the field is treated as absent.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    brand: str | None = None
    year: str | None = None
    engine_power_hp: float | None = Field(default=None, alias="enginePowerHp")
    more_torque: bool | None = Field(default=None, alias="moreTorque")
    throttle_response: bool | None = Field(default=None, alias="throttleResponse")
    reduce_lag: bool | None = Field(default=None, alias="reduceLag")

    @field_validator("brand", "year", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else None
        # Frontends send the model year as a number
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value
        return None

    @field_validator("engine_power_hp", mode="before")
    @classmethod
    def _coerce_power(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    @field_validator("more_torque", "throttle_response", "reduce_lag", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
        return None


class CheckoutRequest(BaseModel):
    """Body of ``POST /create-checkout-session``."""

    items: list[CartItem] | None = None
    quiz: QuizAnswers | None = None

    @field_validator("quiz", mode="before")
    @classmethod
    def _ignore_non_object_quiz(cls, value: Any) -> Any:
        if isinstance(value, (dict, QuizAnswers)):
            return value
        return None
