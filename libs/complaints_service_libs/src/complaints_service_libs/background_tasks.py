"""Detached background work for request handlers.

Side effects that must not delay or fail a response (event publishing, email
requests) are handed to a :class:`DetachedTaskRunner`. The runner schedules
them on the running event loop, keeps a strong reference until they finish and
turns every failure into a log record. A failure never reaches the caller.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from .logging_utils import create_service_logger

logger = create_service_logger("background-tasks")

FailureHook = Callable[[str, BaseException], None]


class DetachedTaskRunner:
    """Fire-and-forget scheduler with failure logging.

    Args:
        on_failure: Optional callback invoked with ``(operation, exception)``
            after a task failed. Used to count side-effect failures in metrics.
    """

    def __init__(self, on_failure: FailureHook | None = None) -> None:
        self._on_failure = on_failure
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        operation: str,
        fn: Callable[..., Any],
        *args: Any,
        correlation_id: str | None = None,
        **kwargs: Any,
    ) -> asyncio.Task[None]:
        """Schedule ``fn(*args, **kwargs)`` without awaiting it.

        ``fn`` is called inside the task, so a synchronous raise is handled the
        same way as a rejected awaitable. Must be called from a running loop.
        """
        task = asyncio.get_running_loop().create_task(
            self._run(operation, fn, args, kwargs, correlation_id),
            name=f"detached:{operation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        operation: str,
        fn: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        correlation_id: str | None,
    ) -> None:
        try:
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            logger.warning(
                f"Detached operation '{operation}' was cancelled",
                operation=operation,
                correlation_id=correlation_id,
            )
            raise
        except Exception as e:
            logger.error(
                f"Detached operation '{operation}' failed: {e}",
                operation=operation,
                correlation_id=correlation_id,
                error_type=type(e).__name__,
                exc_info=True,
            )
            if self._on_failure is not None:
                try:
                    self._on_failure(operation, e)
                except Exception as hook_error:
                    logger.error(f"Failure hook raised for '{operation}': {hook_error}")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for outstanding tasks. Returns False if some were still running at the timeout."""
        if not self._tasks:
            return True
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} detached task(s) still running after drain timeout")
        return not pending
