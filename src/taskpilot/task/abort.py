"""Cooperative cancellation for a single task."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from taskpilot.task.exceptions import TaskAbortedError
from taskpilot.task.models import AbortReason

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortSignal:
    """The per-task abort flag.

    Every suspension point of the loop goes through ``check``, ``guard`` or
    ``sleep`` so an abort unwinds the task promptly with TaskAbortedError.
    """

    def __init__(self, poll_interval: float = 0.1):
        self.poll_interval = poll_interval
        self._aborted = False
        self._reason: Optional[AbortReason] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Optional[AbortReason]:
        return self._reason

    def set(self, reason: AbortReason = AbortReason.USER_CANCELLED) -> bool:
        """Raise the flag.

        Returns:
            True if this call set it, False if it was already set
        """
        if self._aborted:
            return False
        self._aborted = True
        self._reason = reason
        logger.debug(f"Abort flag set ({reason.value})")
        return True

    def check(self) -> None:
        """Raise TaskAbortedError if the flag is set."""
        if self._aborted:
            raise TaskAbortedError("Task was aborted")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await something while watching the abort flag.

        The awaitable is wrapped in a task and raced against the flag. On
        abort the inner task is cancelled and TaskAbortedError is raised.

        Args:
            awaitable: Coroutine or future to await

        Returns:
            The awaitable's result
        """
        self.check()
        inner = asyncio.ensure_future(awaitable)
        try:
            while True:
                done, _ = await asyncio.wait({inner}, timeout=self.poll_interval)
                if done:
                    return inner.result()
                if self._aborted:
                    inner.cancel()
                    await asyncio.gather(inner, return_exceptions=True)
                    raise TaskAbortedError("Task was aborted")
        except asyncio.CancelledError:
            inner.cancel()
            raise

    async def sleep(self, seconds: float) -> None:
        """Sleep in poll-sized slices, raising on abort."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while True:
            self.check()
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            await asyncio.sleep(min(self.poll_interval, remaining))
