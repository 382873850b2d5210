"""Single-flight call sites with cancellation on supersede or teardown."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class CallSite(Generic[T]):
    """At most one in-flight call per logical call site.

    Starting a new call cancels the previous one; a cancelled call resolves
    to ``None`` for its caller instead of raising.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def execute(
        self, call: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T | None:
        self.cancel()
        task = asyncio.ensure_future(call(*args, **kwargs))
        self._task = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return None
            # The caller itself was cancelled; take the call down with it.
            task.cancel()
            raise
        finally:
            if self._task is task and task.done():
                self._task = None

    def cancel(self) -> None:
        """Abort the in-flight call, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
