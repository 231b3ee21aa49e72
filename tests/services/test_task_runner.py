"""Tests for photo_pipeline.services.task_runner: detached background tasks."""
import asyncio
import logging

import pytest

from photo_pipeline.services.task_runner import AsyncTaskRunner


class TestAsyncTaskRunner:

    def test_spawn_returns_before_work_finishes(self):
        runner = AsyncTaskRunner()
        gate = []

        async def work():
            await asyncio.sleep(0.01)
            gate.append("done")
            return 42

        async def scenario():
            task = runner.spawn(work(), "slow job")
            assert gate == []
            assert runner.pending == 1
            assert await runner.drain(timeout=1) is True
            return task

        task = asyncio.run(scenario())

        assert gate == ["done"]
        assert task.result() == 42
        assert runner.pending == 0

    def test_failures_are_logged_not_raised(self, caplog):
        runner = AsyncTaskRunner()

        async def broken():
            raise RuntimeError("storage exploded")

        async def scenario():
            runner.spawn(broken(), "broken job")
            await runner.drain(timeout=1)

        with caplog.at_level(logging.INFO):
            asyncio.run(scenario())

        assert "broken job failed: storage exploded" in caplog.text
        assert runner.pending == 0

    def test_drain_timeout_reports_unfinished(self):
        runner = AsyncTaskRunner()

        async def scenario():
            runner.spawn(asyncio.sleep(10), "sleeper")
            finished = await runner.drain(timeout=0.01)
            for task in list(runner._tasks):
                task.cancel()
            await asyncio.sleep(0)
            return finished

        assert asyncio.run(scenario()) is False

    def test_drain_with_nothing_pending(self):
        assert asyncio.run(AsyncTaskRunner().drain()) is True

    def test_spawn_outside_a_running_loop_raises(self):
        runner = AsyncTaskRunner()
        coro = asyncio.sleep(0)

        with pytest.raises(RuntimeError):
            runner.spawn(coro, "orphan")

        assert runner.pending == 0
        # spawn closes the coroutine it could not schedule
        assert coro.cr_frame is None
