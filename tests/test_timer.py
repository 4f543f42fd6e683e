from __future__ import annotations

import asyncio

import pytest

from orchestrator.timer import SLEEP_HISTORY_LIMIT, CancellableSleeper, system_clock


@pytest.mark.asyncio
async def test_sleep_times_out_normally() -> None:
    sleeper = CancellableSleeper()

    assert await sleeper.sleep(0.01) is True
    assert list(sleeper.history) == [0.01]


@pytest.mark.asyncio
async def test_cancel_wakes_pending_sleep_immediately() -> None:
    sleeper = CancellableSleeper()
    task = asyncio.create_task(sleeper.sleep(3600))
    await asyncio.sleep(0)

    sleeper.cancel()
    finished = await asyncio.wait_for(task, timeout=1)

    assert finished is False
    assert sleeper.cancelled is True


@pytest.mark.asyncio
async def test_cancelled_token_short_circuits_until_reset() -> None:
    sleeper = CancellableSleeper()
    sleeper.cancel()

    assert await sleeper.sleep(3600) is False

    sleeper.reset()
    assert sleeper.cancelled is False
    assert await sleeper.sleep(0) is True


def test_system_clock_is_timezone_aware() -> None:
    assert system_clock("Europe/Berlin")().tzinfo is not None
    assert system_clock("Not/AZone")().utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_sleep_history_keeps_only_recent_waits() -> None:
    sleeper = CancellableSleeper()

    for i in range(SLEEP_HISTORY_LIMIT * 20):
        await sleeper.sleep(0 if i % 2 else -1)
    await sleeper.sleep(0)

    assert len(sleeper.history) == SLEEP_HISTORY_LIMIT
    assert sleeper.history[-1] == 0.0
