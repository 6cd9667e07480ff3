"""PeriodicTask: cadence, failure tolerance and cancellation."""

import asyncio

import pytest

from agentfield.tasks import PeriodicTask


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    @pytest.mark.asyncio
    async def test_runs_repeatedly(self):
        calls = []
        task = PeriodicTask("count", 0.01, lambda: calls.append(1))
        task.start()
        await asyncio.sleep(0.08)
        await task.stop()
        assert len(calls) >= 3

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        calls = []

        async def callback():
            calls.append(1)

        task = PeriodicTask("async", 0.01, callback)
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()
        assert calls

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_cadence(self):
        calls = []

        def callback():
            calls.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("failing", 0.01, callback)
        task.start()
        await asyncio.sleep(0.08)
        assert task.running
        await task.stop()
        assert task.failures == len(calls) >= 2

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        task = PeriodicTask("idle", 10.0, lambda: None)
        await task.stop()
        task.start()
        task.start()
        assert task.running
        await task.stop()
        await task.stop()
        assert not task.running
