"""Cancellable one-shot async timer for scheduled retries."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RetryTimer:
    """
    One-shot asyncio timer that awaits ``handler`` after a delay.

    Re-triggering replaces the pending run; a handler may re-trigger its own
    timer (chained retries). Must be cancelled on teardown so no handler fires
    against a disposed owner.

    Usage:
        self._retry = RetryTimer(handler=self._retry_fetch)

        def on_transient_failure(self, delay_ms):
            self._retry.trigger(delay_ms)

        def close(self):
            self._retry.cancel()
    """

    def __init__(self, handler: Callable[[], Awaitable[None]]):
        self._handler = handler
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, delay_ms: float) -> asyncio.Task:
        """Schedule the handler after ``delay_ms``, replacing any pending run."""
        if self._task is not asyncio.current_task():
            self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(delay_ms))
        return self._task

    async def _run(self, delay_ms: float) -> None:
        await asyncio.sleep(delay_ms / 1000)
        await self._handler()

    def cancel(self) -> None:
        """Cancel pending trigger."""
        if self.pending and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait until no run is pending, following chained re-triggers."""
        while self.pending and self._task is not asyncio.current_task():
            task = self._task
            try:
                await task
            except asyncio.CancelledError:
                if asyncio.current_task().cancelling():
                    raise
            if self._task is task:
                break
