"""Scheduled run creation."""

from datetime import date, datetime, timezone

import pytest

from flowrun import Scheduler
from flowrun.contracts import (
    DocumentOutputStep,
    GateResponse,
    HumanGateStep,
    Schedule,
    WorkflowTemplate,
)

ACCOUNT = "acct-1"
MONDAY_9AM = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


async def _scheduled(engine, schedule, steps=None, **kwargs) -> WorkflowTemplate:
    template = WorkflowTemplate(
        account_id=ACCOUNT,
        name="Weekly report",
        steps=steps if steps is not None else [DocumentOutputStep(id="doc", title="Report")],
        schedule=schedule,
        is_schedule_active=True,
        **kwargs,
    )
    return await engine.save_template(template)


@pytest.mark.asyncio
async def test_weekly_schedule_fires_once_per_slot(engine, store):
    template = await _scheduled(
        engine,
        Schedule(type="weekly", day_of_week=1, hour=9),
        steps=[HumanGateStep(id="review", title="Review")],
    )
    scheduler = Scheduler(engine)

    started = await scheduler.tick(MONDAY_9AM)
    assert len(started) == 1
    run = started[0]
    assert run.triggered_by == "scheduler"
    assert run.status == "paused"

    assert await scheduler.tick(MONDAY_9AM.replace(minute=30)) == []
    assert len(await store.list_runs(template_id=template.id)) == 1

    stored = await store.get_template(template.id)
    assert stored.last_run_at == MONDAY_9AM


@pytest.mark.asyncio
async def test_paused_run_suppresses_next_occurrence(engine, store):
    template = await _scheduled(
        engine,
        Schedule(type="weekly", day_of_week=1, hour=9),
        steps=[HumanGateStep(id="review", title="Review")],
    )
    scheduler = Scheduler(engine)
    [first] = await scheduler.tick(MONDAY_9AM)

    next_monday = datetime(2026, 10, 26, 9, 0, tzinfo=timezone.utc)
    assert await scheduler.tick(next_monday) == []

    await engine.resolve_gate(
        first.id, "review", None, GateResponse(action="approve", responded_by="u-1")
    )
    monday_after = datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc)
    started = await scheduler.tick(monday_after)

    assert len(started) == 1
    assert len(await store.list_runs(template_id=template.id)) == 2


@pytest.mark.asyncio
async def test_wrong_day_or_hour_does_not_fire(engine):
    await _scheduled(engine, Schedule(type="weekly", day_of_week=2, hour=9))
    scheduler = Scheduler(engine)

    assert await scheduler.tick(MONDAY_9AM) == []
    assert await scheduler.tick(datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc)) == []
    assert len(await scheduler.tick(datetime(2026, 10, 20, 9, 59, tzinfo=timezone.utc))) == 1


@pytest.mark.asyncio
async def test_daily_schedule_fires_every_day(engine):
    await _scheduled(engine, Schedule(type="daily", hour=6))
    scheduler = Scheduler(engine)

    for day in (19, 20, 21):
        started = await scheduler.tick(datetime(2026, 10, day, 6, 15, tzinfo=timezone.utc))
        assert len(started) == 1
        assert started[0].status == "completed"


@pytest.mark.asyncio
async def test_monthly_schedule_clamps_to_last_day(engine):
    await _scheduled(engine, Schedule(type="monthly", day_of_month=31, hour=8))
    scheduler = Scheduler(engine)

    assert await scheduler.tick(datetime(2026, 4, 29, 8, 0, tzinfo=timezone.utc)) == []
    assert len(await scheduler.tick(datetime(2026, 4, 30, 8, 0, tzinfo=timezone.utc))) == 1


@pytest.mark.asyncio
async def test_once_schedule_deactivates_after_firing(engine, store):
    template = await _scheduled(
        engine, Schedule(type="once", hour=14, run_date=date(2026, 10, 20))
    )
    scheduler = Scheduler(engine)

    assert await scheduler.tick(datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)) == []
    assert len(await scheduler.tick(datetime(2026, 10, 20, 14, 5, tzinfo=timezone.utc))) == 1

    stored = await store.get_template(template.id)
    assert stored.is_schedule_active is False
    assert await scheduler.tick(datetime(2026, 10, 20, 14, 0, tzinfo=timezone.utc)) == []


@pytest.mark.asyncio
async def test_inactive_deleted_and_ended_schedules_are_ignored(engine):
    paused = await _scheduled(engine, Schedule(type="daily", hour=9))
    paused.is_schedule_active = False
    await engine.save_template(paused)

    deleted = await _scheduled(engine, Schedule(type="daily", hour=9))
    await engine.delete_template(deleted.id)

    await _scheduled(engine, Schedule(type="daily", hour=9, end_date=date(2026, 10, 18)))
    await _scheduled(engine, Schedule(type="none", hour=9))

    assert await Scheduler(engine).tick(MONDAY_9AM) == []


@pytest.mark.asyncio
async def test_schedule_uses_configured_timezone(engine):
    await _scheduled(engine, Schedule(type="daily", hour=9))
    scheduler = Scheduler(engine, timezone="America/New_York")

    assert await scheduler.tick(MONDAY_9AM) == []
    # 13:00 UTC is 09:00 in New York during daylight saving time
    started = await scheduler.tick(datetime(2026, 10, 19, 13, 0, tzinfo=timezone.utc))
    assert len(started) == 1


@pytest.mark.asyncio
async def test_failing_template_does_not_stop_tick(engine, store):
    await _scheduled(engine, Schedule(type="daily", hour=9), steps=[])
    healthy = await _scheduled(engine, Schedule(type="daily", hour=9))

    started = await Scheduler(engine).tick(MONDAY_9AM)

    assert [run.template_id for run in started] == [healthy.id]
    assert len(await store.list_runs()) == 1


@pytest.mark.asyncio
async def test_failed_once_start_spends_its_slot(engine, store):
    template = await _scheduled(engine, Schedule(type="once", hour=9), steps=[])
    scheduler = Scheduler(engine)

    assert await scheduler.tick(MONDAY_9AM) == []
    stored = await store.get_template(template.id)
    assert stored.is_schedule_active is False
    assert stored.last_run_at == MONDAY_9AM

    assert await store.list_due_templates(MONDAY_9AM.replace(minute=1)) == []
    assert await store.list_due_templates(datetime(2026, 10, 20, 9, tzinfo=timezone.utc)) == []


@pytest.mark.asyncio
async def test_failed_daily_start_is_not_retried_within_the_hour(engine, store):
    template = await _scheduled(engine, Schedule(type="daily", hour=9), steps=[])
    scheduler = Scheduler(engine)

    await scheduler.tick(MONDAY_9AM)
    assert await store.list_due_templates(MONDAY_9AM.replace(minute=1)) == []

    next_day = datetime(2026, 10, 20, 9, tzinfo=timezone.utc)
    assert [t.id for t in await store.list_due_templates(next_day)] == [template.id]


@pytest.mark.asyncio
async def test_naive_last_run_at_does_not_stop_tick(engine):
    loaded = WorkflowTemplate.model_validate(
        {
            "account_id": ACCOUNT,
            "name": "Imported",
            "steps": [{"type": "document_output", "id": "doc", "title": "Report"}],
            "schedule": {"type": "daily", "hour": 9},
            "is_schedule_active": True,
            "last_run_at": "2026-10-18T09:00:00",
        }
    )
    assert loaded.last_run_at.tzinfo is not None
    await engine.save_template(loaded)
    healthy = await _scheduled(engine, Schedule(type="daily", hour=9))

    started = await Scheduler(engine).tick(MONDAY_9AM)

    assert sorted(run.template_id for run in started) == sorted([loaded.id, healthy.id])
