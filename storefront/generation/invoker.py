"""External post generator invocation.

Runs the generator CLI as a subprocess:

    <python> generate_posts_cli.py --type <kind> --products <csv> \
        --brand <brand> --output-dir <posts dir> [extra args]

Both output streams are drained concurrently with process completion
(``communicate()``), so a chatty generator cannot deadlock on a full pipe.
Generation is unbounded in time; callers await it as a long-running call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront.config import Settings
from storefront.errors import ProcessError

logger = logging.getLogger(__name__)

JOB_KINDS = ("static", "carousel", "reels")

# Whatever JSON the generator printed; usually an object with a "status" key
JobResult = Any


@dataclass(frozen=True)
class GenerationJob:
    """One request to generate posts of a given kind."""

    kind: str
    count: int | None = None
    duration: int | None = None
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.kind not in JOB_KINDS:
            raise ValueError(f"Unknown generation kind: {self.kind!r}")

    def extra_args(self) -> list[str]:
        """Kind-specific CLI arguments; unrelated parameters are ignored."""
        if self.kind == "carousel" and self.count:
            return ["--count", str(self.count)]
        if self.kind == "reels" and self.duration:
            return ["--duration", str(self.duration)]
        return []


def classify_output(returncode: int, stdout: str, stderr: str) -> JobResult:
    """Turn a finished generator run into a JobResult or raise ProcessError."""
    if returncode != 0:
        raise ProcessError(stderr.strip() or stdout.strip() or f"generator exited with code {returncode}")

    out = stdout.strip()
    try:
        return json.loads(out)
    except ValueError:
        return {"status": "ok", "detail": out}


class ProcessInvoker:
    """Spawns the generator with the fixed base argument set."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def base_args(self, kind: str) -> list[str]:
        s = self.settings
        return [
            s.generator_entrypoint,
            "--type", kind,
            "--products", str(s.products_path),
            "--brand", s.generator_brand,
            "--output-dir", str(s.posts_dir),
        ]

    async def run(self, kind: str, extra_args: list[str] | None = None) -> JobResult:
        args = self.base_args(kind) + list(extra_args or [])
        logger.info("Starting generator: type=%s args=%s", kind, extra_args or [], extra={"job_kind": kind})

        try:
            proc = await asyncio.create_subprocess_exec(
                self.settings.generator_python,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.settings.generator_dir),
            )
        except OSError as e:
            raise ProcessError(f"Could not start generator: {e}") from e

        stdout, stderr = await proc.communicate()
        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")

        try:
            result = classify_output(proc.returncode, out, err)
        except ProcessError:
            logger.error("Generator failed: type=%s exit=%s", kind, proc.returncode, extra={"job_kind": kind})
            raise
        status = result.get("status") if isinstance(result, dict) else None
        logger.info("Generator finished: type=%s status=%s", kind, status, extra={"job_kind": kind})
        return result

    async def run_job(self, job: GenerationJob) -> JobResult:
        return await self.run(job.kind, job.extra_args())
