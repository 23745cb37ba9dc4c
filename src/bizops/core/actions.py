"""Pending/settled handles for console actions.

Every console mutation is scheduled on the running event loop and handed
back to the presentation layer as a PendingAction, so a view can show a
spinner while ``pending`` is True and an error once it settles with one.
Awaiting the handle re-raises the action's exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Generator
from typing import Any, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PendingAction(Generic[T]):
    """Awaitable wrapper around a scheduled action.

    Args:
        name: Short action name used in logs (e.g. "pipeline.advance").
        coro: The coroutine performing the action.
    """

    def __init__(self, name: str, coro: Coroutine[Any, Any, T]) -> None:
        self.name = name
        self._task: asyncio.Task[T] = asyncio.ensure_future(coro)
        self._task.add_done_callback(self._log_outcome)

    @property
    def pending(self) -> bool:
        return not self._task.done()

    @property
    def settled(self) -> bool:
        return self._task.done()

    @property
    def error(self) -> BaseException | None:
        """Exception the action settled with, None while pending or on success."""
        if not self._task.done() or self._task.cancelled():
            return None
        return self._task.exception()

    def result(self) -> T:
        return self._task.result()

    def __await__(self) -> Generator[Any, None, T]:
        return self._task.__await__()

    def _log_outcome(self, task: asyncio.Task[T]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("action.failed", action=self.name, error=str(exc))
        else:
            logger.debug("action.settled", action=self.name)
