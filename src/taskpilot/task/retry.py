"""Backoff policy for failed model requests."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from taskpilot.task.abort import AbortSignal

SleepFunc = Callable[[float, AbortSignal], Awaitable[None]]


async def abortable_sleep(delay: float, abort_signal: AbortSignal) -> None:
    await abort_signal.sleep(delay)


@dataclass
class RetryPolicy:
    """Exponential backoff: ``min(base_delay * 2**attempt, max_delay)``.

    ``attempt`` is the zero-based index of the retry, so the first retry waits
    ``base_delay`` seconds. After ``max_auto_retries`` automatic retries the
    user is asked whether to keep trying.
    """

    max_auto_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 600.0
    sleep: Optional[SleepFunc] = None

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** max(0, attempt)), self.max_delay)

    def should_auto_retry(self, attempt: int) -> bool:
        """Whether retry number ``attempt`` happens without asking."""
        return attempt < self.max_auto_retries

    async def wait(self, attempt: int, abort_signal: AbortSignal) -> float:
        """Sleep for the backoff of ``attempt``, observing the abort flag.

        Returns:
            The delay waited, in seconds
        """
        delay = self.delay_for(attempt)
        sleep = self.sleep or abortable_sleep
        await sleep(delay, abort_signal)
        return delay
