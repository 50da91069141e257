"""Single-shot async debouncer."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)


@dataclass
class Debouncer:
    """Run the most recently scheduled callback after a quiet period.

    Scheduling again before the delay elapses cancels the pending call.
    """

    delay_seconds: float
    name: str = "debounce"
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(
        self,
        callback: Callable[[], Awaitable[object]],
        delay_seconds: float | None = None,
    ) -> None:
        """Schedule ``callback``, replacing any pending one."""
        self.cancel()
        delay = self.delay_seconds if delay_seconds is None else delay_seconds
        self._task = asyncio.create_task(self._run(callback, delay))

    def cancel(self) -> None:
        task = self._task
        self._task = None
        # A callback may reschedule from inside its own task.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def drain(self) -> None:
        """Wait for the pending callback, if any, to finish."""
        while self._task is not None and not self._task.done():
            task = self._task
            try:
                await task
            except asyncio.CancelledError:
                if task is self._task:
                    raise

    async def _run(
        self, callback: Callable[[], Awaitable[object]], delay: float
    ) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except Exception:
            _logger.exception("Debounced %s callback failed", self.name)
