"""Cancellable delayed tasks for the device event loop."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field


@dataclass
class ScheduledTask:
    """Handle for a coroutine that runs once after a delay.

    Cancelling before the delay elapses guarantees the callback never runs.
    Once the callback has started it runs to completion.
    """

    delay: float
    callback: Callable[[], Awaitable[None]]
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _started: bool = field(default=False, init=False, repr=False)
    _cancelled: bool = field(default=False, init=False, repr=False)

    @classmethod
    def schedule(
        cls, delay: float, callback: Callable[[], Awaitable[None]]
    ) -> "ScheduledTask":
        """Create and start a task on the running loop."""
        handle = cls(delay=delay, callback=callback)
        handle._task = asyncio.get_running_loop().create_task(handle._run())
        return handle

    @property
    def pending(self) -> bool:
        """True while the delay has not elapsed and nothing was cancelled."""
        return (
            self._task is not None
            and not self._started
            and not self._cancelled
            and not self._task.done()
        )

    def cancel(self) -> bool:
        """Cancel if still waiting; return whether the callback was prevented."""
        if not self.pending:
            return False
        assert self._task is not None
        self._cancelled = True
        self._task.cancel()
        return True

    async def run_now(self) -> None:
        """Skip the remaining delay and await the callback."""
        if self.cancel():
            self._started = True
            await self.callback()
            return
        await self.wait()

    async def wait(self) -> None:
        """Wait for the task to finish, ignoring cancellation."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._started = True
        await self.callback()
