import asyncio
import logging

import pytest

from piano_tutor.application.timers import AsyncioTimers


@pytest.mark.asyncio
async def test_call_later_fires():
    fired = asyncio.Event()
    AsyncioTimers().call_later(0.01, fired.set)
    await asyncio.wait_for(fired.wait(), timeout=1)


@pytest.mark.asyncio
async def test_cancelled_callback_does_not_fire():
    calls = []
    handle = AsyncioTimers().call_later(0.01, lambda: calls.append(1))
    handle.cancel()
    await asyncio.sleep(0.05)
    assert calls == []


@pytest.mark.asyncio
async def test_create_task_runs_coroutine():
    async def work():
        return 42

    task = AsyncioTimers().create_task(work())
    assert await task == 42


@pytest.mark.asyncio
async def test_failed_task_is_logged(caplog):
    async def boom():
        raise RuntimeError("detector exploded")

    with caplog.at_level(logging.ERROR):
        task = AsyncioTimers().create_task(boom())
        with pytest.raises(RuntimeError):
            await task
        await asyncio.sleep(0)
    assert "detector exploded" in caplog.text


@pytest.mark.asyncio
async def test_cancelled_task_is_not_logged(caplog):
    task = AsyncioTimers().create_task(asyncio.sleep(10))
    await asyncio.sleep(0)
    task.cancel()
    with caplog.at_level(logging.ERROR):
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)
    assert caplog.text == ""
