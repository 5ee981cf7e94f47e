"""Weekly post generation schedule.

Three independent triggers, all at 18:00 in the storefront's timezone:
- Monday    -> static post
- Wednesday -> carousel, 5 images
- Friday    -> reels, 30 seconds

Each firing calls the generator exactly once. A failing firing is logged and
never affects the scheduler or any later firing. Overlapping runs (a slow
generation still going at the next trigger time) are allowed; nothing is
queued or serialized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from storefront.generation.invoker import GenerationJob, JobResult, ProcessInvoker

logger = logging.getLogger(__name__)

_CRON_DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Generous bounds: a weekly trigger should never be skipped for running late,
# and concurrent runs of the same trigger must not be dropped.
_MISFIRE_GRACE_SECONDS = 3600
_MAX_OVERLAPPING_RUNS = 4


@dataclass(frozen=True)
class Trigger:
    """A weekly firing: ``weekday`` uses datetime.weekday() (Monday == 0)."""

    name: str
    weekday: int
    hour: int
    minute: int
    kind: str
    params: dict[str, int] = field(default_factory=dict)

    def make_job(self, now: datetime | None = None) -> GenerationJob:
        kwargs: dict[str, Any] = dict(self.params)
        if now is not None:
            kwargs["triggered_at"] = now
        return GenerationJob(kind=self.kind, **kwargs)

    def cron_trigger(self, tz: ZoneInfo) -> CronTrigger:
        return CronTrigger(
            day_of_week=_CRON_DAYS[self.weekday],
            hour=self.hour,
            minute=self.minute,
            second=0,
            timezone=tz,
        )


TRIGGERS: tuple[Trigger, ...] = (
    Trigger("weekly-static", weekday=0, hour=18, minute=0, kind="static"),
    Trigger("weekly-carousel", weekday=2, hour=18, minute=0, kind="carousel", params={"count": 5}),
    Trigger("weekly-reels", weekday=4, hour=18, minute=0, kind="reels", params={"duration": 30}),
)


def next_fire_time(trigger: Trigger, now: datetime, tz: ZoneInfo | None = None) -> datetime:
    """First designated instant strictly after ``now``, in ``tz``.

    ``now`` must be timezone-aware; it is converted to ``tz`` (defaults to
    now's own zone) before computing the local day and time.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    local = now.astimezone(tz) if tz is not None else now
    candidate = local.replace(hour=trigger.hour, minute=trigger.minute, second=0, microsecond=0)
    candidate += timedelta(days=(trigger.weekday - local.weekday()) % 7)
    if candidate <= local:
        candidate += timedelta(days=7)
    return candidate


class GenerationScheduler:
    """Registers the weekly triggers on an APScheduler AsyncIOScheduler."""

    def __init__(
        self,
        invoker: ProcessInvoker,
        timezone: str,
        triggers: tuple[Trigger, ...] = TRIGGERS,
    ) -> None:
        self.invoker = invoker
        self.tz = ZoneInfo(timezone)
        self.triggers = triggers
        self._scheduler = AsyncIOScheduler(timezone=self.tz)
        self._registered = False

    async def fire(self, trigger: Trigger) -> JobResult | None:
        """Run one firing. Never raises; returns None when the run failed."""
        job = trigger.make_job(datetime.now(self.tz))
        logger.info(
            "[%s] Generating %s post (%s)",
            trigger.name,
            trigger.kind,
            job.extra_args() or "no extra args",
            extra={"trigger": trigger.name, "job_kind": trigger.kind},
        )
        try:
            return await self.invoker.run_job(job)
        except Exception:
            logger.exception(
                "[%s] Scheduled generation failed",
                trigger.name,
                extra={"trigger": trigger.name, "job_kind": trigger.kind},
            )
            return None

    def register(self) -> None:
        if self._registered:
            return
        for trigger in self.triggers:
            self._scheduler.add_job(
                self.fire,
                trigger=trigger.cron_trigger(self.tz),
                args=[trigger],
                id=trigger.name,
                name=trigger.name,
                max_instances=_MAX_OVERLAPPING_RUNS,
                misfire_grace_time=_MISFIRE_GRACE_SECONDS,
                coalesce=True,
                replace_existing=True,
            )
        self._registered = True

    @property
    def jobs(self) -> list[Any]:
        return self._scheduler.get_jobs()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Register triggers and start firing. Needs a running event loop."""
        self.register()
        self._scheduler.start()
        for trigger in self.triggers:
            logger.info(
                "Scheduler active: %s next at %s",
                trigger.name,
                next_fire_time(trigger, datetime.now(self.tz)).isoformat(),
            )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
