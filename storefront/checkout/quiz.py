"""Quiz metadata normalization, reconstruction and the append-only quiz log.

The session metadata is the durable record of a buyer's quiz answers on the
Stripe side. The JSONL log is a redundant local copy for offline analysis.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from storefront.checkout.models import QuizAnswers
from storefront.errors import LogAppendError

logger = logging.getLogger(__name__)

MAX_BRAND_LENGTH = 50
MAX_YEAR_LENGTH = 10

# Quiz field -> session metadata key
BRAND_KEY = "vehicle_brand"
YEAR_KEY = "vehicle_year"
POWER_KEY = "engine_power_hp"
FLAG_KEYS = {
    "more_torque": "pref_more_torque",
    "throttle_response": "pref_throttle_response",
    "reduce_lag": "pref_reduce_lag",
}

# Wire (camelCase) names used in API responses
_FLAG_WIRE_NAMES = {
    "more_torque": "moreTorque",
    "throttle_response": "throttleResponse",
    "reduce_lag": "reduceLag",
}


def _format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return str(value)


def _parse_number(raw: str | None) -> int | float | None:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value) if value == int(value) else value


def normalize_quiz(quiz: QuizAnswers | None) -> dict[str, str]:
    """Build the session metadata mapping for a quiz.

    Absent fields are omitted. Brand and year are truncated to 50 and 10
    characters; flags are rendered as ``"true"``/``"false"``.
    """
    if quiz is None:
        return {}

    metadata: dict[str, str] = {}
    if quiz.brand:
        metadata[BRAND_KEY] = quiz.brand[:MAX_BRAND_LENGTH]
    if quiz.year:
        metadata[YEAR_KEY] = quiz.year[:MAX_YEAR_LENGTH]
    if quiz.engine_power_hp is not None:
        metadata[POWER_KEY] = _format_number(quiz.engine_power_hp)
    for field_name, key in FLAG_KEYS.items():
        flag = getattr(quiz, field_name)
        if flag is not None:
            metadata[key] = "true" if flag else "false"
    return metadata


def reconstruct_quiz(metadata: dict[str, str] | None) -> dict[str, Any]:
    """Rebuild quiz answers from session metadata.

    Missing strings and power become None; a flag is True only for the
    literal ``"true"``.
    """
    md = metadata or {}
    quiz: dict[str, Any] = {
        "brand": md.get(BRAND_KEY) or None,
        "year": md.get(YEAR_KEY) or None,
        "enginePowerHp": _parse_number(md.get(POWER_KEY)),
    }
    for field_name, key in FLAG_KEYS.items():
        quiz[_FLAG_WIRE_NAMES[field_name]] = md.get(key) == "true"
    return quiz


class QuizLog:
    """Append-only JSONL log of quiz submissions.

    Each entry is written with a single O_APPEND write so concurrent appends
    never interleave within a line. Ordering across appends is not guaranteed.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @staticmethod
    def make_entry(metadata: dict[str, str], now: datetime | None = None) -> dict[str, str]:
        # Millisecond UTC with a "Z" suffix, e.g. 2026-03-02T18:00:00.000Z
        stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        ts = stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return {"ts": ts, **metadata}

    def _write_line(self, line: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        try:
            os.write(fd, line)
        finally:
            os.close(fd)

    async def append(self, metadata: dict[str, str]) -> dict[str, str]:
        """Append one entry; raises LogAppendError if the write fails."""
        entry = self.make_entry(metadata)
        line = (json.dumps(entry, ensure_ascii=False) + "\n").encode("utf-8")
        try:
            await asyncio.to_thread(self._write_line, line)
        except OSError as e:
            raise LogAppendError(f"Could not write {self.path}: {e}") from e
        logger.debug("Quiz submission logged to %s", self.path)
        return entry
