import pytest

from flowrun.errors import ConcurrentModification
from flowrun.utils.retry import compute_backoff, retry_on_conflict


async def _no_sleep(attempt, base=1.5, jitter=0.5):
    return None


def test_compute_backoff_grows():
    assert 1.5 <= compute_backoff(1, jitter=0) <= 1.5
    assert compute_backoff(3, base=2, jitter=0) == 8


@pytest.mark.asyncio
async def test_retry_on_conflict_retries_until_success(monkeypatch):
    monkeypatch.setattr("flowrun.utils.retry.schedule_retry", _no_sleep)
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConcurrentModification("run-1", len(attempts))
        return "done"

    assert await retry_on_conflict(operation, attempts=3) == "done"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retry_on_conflict_gives_up(monkeypatch):
    monkeypatch.setattr("flowrun.utils.retry.schedule_retry", _no_sleep)
    calls = []

    async def operation():
        calls.append(1)
        raise ConcurrentModification("run-1", 0)

    with pytest.raises(ConcurrentModification):
        await retry_on_conflict(operation, attempts=2)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_other_errors_are_not_retried(monkeypatch):
    monkeypatch.setattr("flowrun.utils.retry.schedule_retry", _no_sleep)
    calls = []

    async def operation():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await retry_on_conflict(operation)
    assert len(calls) == 1
