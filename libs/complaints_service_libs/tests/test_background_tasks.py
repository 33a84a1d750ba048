"""Tests for DetachedTaskRunner failure isolation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from complaints_service_libs.background_tasks import DetachedTaskRunner


class TestDetachedTaskRunner:
    @pytest.fixture
    def on_failure(self) -> Mock:
        return Mock()

    @pytest.fixture
    def runner(self, on_failure: Mock) -> DetachedTaskRunner:
        return DetachedTaskRunner(on_failure=on_failure)

    async def test_runs_coroutine_function_with_arguments(
        self, runner: DetachedTaskRunner
    ) -> None:
        fn = AsyncMock()

        runner.spawn("publish", fn, 1, "two", correlation_id="cid", flag=True)
        assert await runner.drain(timeout=1)

        fn.assert_awaited_once_with(1, "two", flag=True)

    async def test_spawn_does_not_wait_for_completion(self, runner: DetachedTaskRunner) -> None:
        release = asyncio.Event()

        async def slow() -> None:
            await release.wait()

        task = runner.spawn("slow", slow)

        assert not task.done()
        assert runner.pending == 1
        release.set()
        assert await runner.drain(timeout=1)
        assert runner.pending == 0

    async def test_rejected_awaitable_is_logged_not_raised(
        self, runner: DetachedTaskRunner, on_failure: Mock
    ) -> None:
        error = RuntimeError("broker down")
        fn = AsyncMock(side_effect=error)

        task = runner.spawn("publish_status_changed", fn, correlation_id="cid")
        await runner.drain(timeout=1)

        assert task.exception() is None
        on_failure.assert_called_once_with("publish_status_changed", error)

    async def test_synchronous_raise_is_isolated(
        self, runner: DetachedTaskRunner, on_failure: Mock
    ) -> None:
        error = ValueError("raised before returning an awaitable")
        fn = Mock(side_effect=error)

        task = runner.spawn("publish_email", fn)
        await runner.drain(timeout=1)

        assert task.exception() is None
        on_failure.assert_called_once_with("publish_email", error)

    async def test_non_awaitable_result_is_accepted(
        self, runner: DetachedTaskRunner, on_failure: Mock
    ) -> None:
        fn = Mock(return_value="not awaitable")

        runner.spawn("sync_side_effect", fn)
        await runner.drain(timeout=1)

        fn.assert_called_once_with()
        on_failure.assert_not_called()

    async def test_failing_hook_does_not_escape(self) -> None:
        runner = DetachedTaskRunner(on_failure=Mock(side_effect=RuntimeError("hook")))

        task = runner.spawn("publish", AsyncMock(side_effect=RuntimeError("boom")))
        await runner.drain(timeout=1)

        assert task.exception() is None

    async def test_drain_reports_timeout(self, runner: DetachedTaskRunner) -> None:
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        runner.spawn("blocked", blocked)

        assert await runner.drain(timeout=0.01) is False
        release.set()
        assert await runner.drain(timeout=1) is True

    async def test_drain_without_tasks(self, runner: DetachedTaskRunner) -> None:
        assert await runner.drain() is True
