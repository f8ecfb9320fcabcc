from datetime import datetime, timezone

import pytest

from flowrun.contracts import HumanGateStep, Schedule, WorkflowRun, WorkflowTemplate
from flowrun.errors import ConcurrentModification, RunNotFound
from flowrun.persistence import InMemoryWorkflowStore, SQLiteWorkflowStore, get_repository
import flowrun.persistence as persistence


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryWorkflowStore()
    return SQLiteWorkflowStore(tmp_path / "flowrun.db")


def _run(template_id: str = "t-1", account_id: str = "acme", **kwargs) -> WorkflowRun:
    return WorkflowRun(
        template_id=template_id,
        account_id=account_id,
        steps_snapshot=[HumanGateStep(id="g", title="Approve")],
        triggered_by="user:u-1",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_template_crud_and_soft_delete(repo):
    template = WorkflowTemplate(
        account_id="acme",
        name="Weekly",
        steps=[HumanGateStep(id="g", title="Approve")],
        schedule=Schedule(type="daily", hour=9),
        is_schedule_active=True,
    )
    await repo.save_template(template)
    await repo.save_template(WorkflowTemplate(account_id="other", name="Theirs"))

    loaded = await repo.get_template(template.id)
    assert loaded.name == "Weekly"
    assert isinstance(loaded.steps[0], HumanGateStep)
    assert [t.id for t in await repo.list_templates(account_id="acme")] == [template.id]

    assert await repo.delete_template(template.id) is True
    assert await repo.delete_template("missing") is False

    deleted = await repo.get_template(template.id)
    assert deleted.deleted_at is not None
    assert deleted.is_schedule_active is False
    assert await repo.list_templates(account_id="acme") == []
    assert len(await repo.list_templates(account_id="acme", include_deleted=True)) == 1


@pytest.mark.asyncio
async def test_due_templates(repo):
    due = WorkflowTemplate(
        account_id="acme",
        name="Due",
        schedule=Schedule(type="daily", hour=9),
        is_schedule_active=True,
    )
    inactive = WorkflowTemplate(
        account_id="acme", name="Inactive", schedule=Schedule(type="daily", hour=9)
    )
    later = WorkflowTemplate(
        account_id="acme",
        name="Later",
        schedule=Schedule(type="daily", hour=17),
        is_schedule_active=True,
    )
    for t in (due, inactive, later):
        await repo.save_template(t)

    now = datetime(2026, 10, 19, 9, 10, tzinfo=timezone.utc)
    assert [t.id for t in await repo.list_due_templates(now)] == [due.id]


@pytest.mark.asyncio
async def test_save_run_checks_version(repo):
    run = _run()
    await repo.create_run(run)

    run.status = "paused"
    saved = await repo.save_run(run, 0)
    assert saved.version == 1

    stale = run.model_copy(update={"status": "cancelled"})
    with pytest.raises(ConcurrentModification):
        await repo.save_run(stale, 0)

    stored = await repo.get_run(run.id)
    assert stored.status == "paused"
    assert stored.version == 1

    with pytest.raises(RunNotFound):
        await repo.save_run(_run(), 0)


@pytest.mark.asyncio
async def test_list_runs_filters(repo):
    first = _run(started_at=datetime(2026, 10, 1, tzinfo=timezone.utc))
    second = _run(
        template_id="t-2",
        status="completed",
        started_at=datetime(2026, 10, 2, tzinfo=timezone.utc),
    )
    foreign = _run(account_id="other")
    for run in (second, first, foreign):
        await repo.create_run(run)

    assert [r.id for r in await repo.list_runs(account_id="acme")] == [first.id, second.id]
    assert [r.id for r in await repo.list_runs(template_id="t-2")] == [second.id]
    assert [r.id for r in await repo.list_runs(statuses=("running", "paused"), account_id="acme")] == [first.id]
    assert await repo.list_runs(statuses=()) == []
    assert await repo.get_run("missing") is None


@pytest.mark.asyncio
async def test_inmemory_store_returns_copies():
    repo = InMemoryWorkflowStore()
    run = _run()
    await repo.create_run(run)

    loaded = await repo.get_run(run.id)
    loaded.status = "cancelled"

    assert (await repo.get_run(run.id)).status == "running"


@pytest.mark.asyncio
async def test_sqlite_store_survives_reopen(tmp_path):
    path = tmp_path / "flowrun.db"
    run = _run()
    await SQLiteWorkflowStore(path).create_run(run)

    reopened = SQLiteWorkflowStore(path)
    assert (await reopened.get_run(run.id)).steps_snapshot[0].id == "g"


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("FLOWRUN_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("FLOWRUN_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setattr(persistence, "_repository_instance", None)

    assert isinstance(get_repository(), InMemoryWorkflowStore)
    assert isinstance(get_repository(f"sqlite://{tmp_path / 'x.db'}"), SQLiteWorkflowStore)
    with pytest.raises(ValueError):
        get_repository("mysql://localhost/db")
