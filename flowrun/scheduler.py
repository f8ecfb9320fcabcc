"""Periodic evaluation of template schedules."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from .constants import DEFAULT_SCHEDULER_INTERVAL_SECONDS, SCHEDULER_TRIGGER
from .contracts import ACTIVE_RUN_STATUSES, WorkflowRun
from .engine import RunEngine
from .errors import FlowrunError

logger = logging.getLogger(__name__)


class Scheduler:
    """Starts runs for templates whose schedule matches the current hour.

    At most one run per template is active at a time: a template whose
    previous run is still running or paused on a gate is skipped.
    """

    def __init__(
        self,
        engine: RunEngine,
        timezone: str | tzinfo = "UTC",
        interval_seconds: float = DEFAULT_SCHEDULER_INTERVAL_SECONDS,
    ) -> None:
        self._engine = engine
        self._store = engine.store
        self._tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self._interval = interval_seconds

    def _localize(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(self._tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self._tz)
        return now.astimezone(self._tz)

    async def tick(self, now: Optional[datetime] = None) -> list[WorkflowRun]:
        """Evaluate every scheduled template once and return the runs started."""
        now = self._localize(now)
        started: list[WorkflowRun] = []

        for template in await self._store.list_due_templates(now):
            active = await self._store.list_runs(
                template_id=template.id, statuses=ACTIVE_RUN_STATUSES
            )
            if active:
                logger.info(
                    f"Skipping scheduled run of '{template.name}': "
                    f"run {active[0].id} is still {active[0].status}"
                )
                continue

            try:
                run = await self._engine.start_run(
                    template.id,
                    template.account_id,
                    triggered_by=SCHEDULER_TRIGGER,
                    triggered_by_type=SCHEDULER_TRIGGER,
                )
            except FlowrunError as e:
                logger.error(f"Scheduled start of '{template.name}' failed: {e}")
                # The slot is spent even when the start fails.
                await self._mark_fired(template.id, now)
                continue

            await self._mark_fired(template.id, now)
            started.append(run)
            logger.info(f"Scheduler started run {run.id} for '{template.name}'")

        return started

    async def _mark_fired(self, template_id: str, now: datetime) -> None:
        template = await self._store.get_template(template_id)
        if template is None:
            return
        template.last_run_at = now
        if template.schedule is not None and template.schedule.type == "once":
            template.is_schedule_active = False
            logger.info(f"One-time schedule of '{template.name}' deactivated")
        await self._engine.save_template(template)

    async def run_forever(self, lifespan: Optional[float] = None) -> None:
        """Tick every ``interval_seconds``.

        Args:
            lifespan: Maximum time in seconds to keep ticking. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while lifespan is None or loop.time() - start_time < lifespan:
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(self._interval)
