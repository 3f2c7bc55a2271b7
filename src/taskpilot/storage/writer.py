"""Ordered fire-and-forget persistence writes."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundWriter:
    """Runs persistence writes in the background, one at a time, in order.

    ``submit`` never blocks the caller. Failures are logged and dropped.
    """

    def __init__(self, name: str = "persistence"):
        self.name = name
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, description: str, write: Callable[[], Awaitable[None]]) -> None:
        """Schedule a write.

        Args:
            description: Short label used in log messages
            write: Zero-argument coroutine factory performing the write
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, skipping {self.name} write: {description}")
            return

        task = loop.create_task(self._run(description, write))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, description: str, write: Callable[[], Awaitable[None]]) -> None:
        async with self._lock:
            try:
                await write()
            except Exception as e:
                self.failures += 1
                logger.error(f"{self.name} write failed ({description}): {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait until every submitted write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
