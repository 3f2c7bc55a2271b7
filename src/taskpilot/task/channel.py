"""Interactive message channel (ask/say) of a task."""

import asyncio
import logging
from typing import Callable, Optional

from taskpilot.task.abort import AbortSignal
from taskpilot.task.exceptions import AskInProgressError, AskTimeoutError
from taskpilot.task.models import (
    AskResponse,
    AskResult,
    AskType,
    ChatMessage,
    MessageKind,
    SayType,
    now_ms,
)

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ChatMessage], None]


class MessageChannel:
    """User-facing message list with partial coalescing and blocking asks.

    ``say`` never blocks. ``ask`` suspends until ``handle_response`` delivers
    an answer for its timestamp, the ask times out, or the task is aborted.
    Only one full ask may be pending at a time.

    ``handle_response`` must be called from the event loop running the task;
    other threads should go through ``loop.call_soon_threadsafe``.
    """

    def __init__(
        self,
        abort_signal: AbortSignal,
        ask_timeout: float = 3600.0,
        poll_interval: float = 0.1,
        on_message_added: Optional[MessageCallback] = None,
        on_message_updated: Optional[MessageCallback] = None,
    ):
        """Initialize the channel.

        Args:
            abort_signal: The task's abort flag, observed while waiting
            ask_timeout: Seconds an ask waits before failing
            poll_interval: Seconds between response/abort checks
            on_message_added: Called with a copy of each new message
            on_message_updated: Called with a copy of each in-place update
        """
        self.abort_signal = abort_signal
        self.ask_timeout = ask_timeout
        self.poll_interval = poll_interval
        self.on_message_added = on_message_added
        self.on_message_updated = on_message_updated

        self._messages: list[ChatMessage] = []
        self._last_ts = 0
        self._pending_ts: Optional[int] = None
        self._response: Optional[AskResult] = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def messages(self) -> list[ChatMessage]:
        return [m.model_copy(deep=True) for m in self._messages]

    @property
    def last_message(self) -> Optional[ChatMessage]:
        return self._messages[-1].model_copy(deep=True) if self._messages else None

    @property
    def pending_ask_ts(self) -> Optional[int]:
        """Timestamp of the ask currently waiting for a response."""
        return self._pending_ts

    def overwrite(self, messages: list[ChatMessage]) -> None:
        """Replace the message list, used when resuming a task."""
        self._messages = [m.model_copy(deep=True) for m in messages]
        for message in self._messages:
            message.partial = False
        if self._messages:
            self._last_ts = max(self._last_ts, max(m.ts for m in self._messages))

    def _next_ts(self) -> int:
        ts = max(now_ms(), self._last_ts + 1)
        self._last_ts = ts
        return ts

    def _open_partial(self, kind: MessageKind, type: str) -> Optional[ChatMessage]:
        """The last message if it is a partial of the given kind and type."""
        if not self._messages:
            return None
        last = self._messages[-1]
        if last.partial and last.kind == kind.value and last.type == type:
            return last
        return None

    def _append(self, message: ChatMessage) -> ChatMessage:
        self.finalize_partials()
        self._messages.append(message)
        self._notify(self.on_message_added, message)
        return message

    def _update(self, message: ChatMessage) -> ChatMessage:
        self._notify(self.on_message_updated, message)
        return message

    def _notify(self, callback: Optional[MessageCallback], message: ChatMessage) -> None:
        if callback:
            callback(message.model_copy(deep=True))

    def finalize_partials(self) -> None:
        """Mark a dangling partial message as complete.

        Called before appending a new message and when a stream is
        abandoned, so no message stays partial.
        """
        if self._messages and self._messages[-1].partial:
            last = self._messages[-1]
            last.partial = False
            self._update(last)

    # =========================================================================
    # Say
    # =========================================================================

    def say(
        self,
        type: SayType | str,
        text: Optional[str] = None,
        images: Optional[list[str]] = None,
        partial: bool = False,
        progress: Optional[str] = None,
    ) -> ChatMessage:
        """Post an informational message.

        A partial say following a partial say of the same type updates it in
        place. A non-partial say completes such a message instead of
        appending a new one.

        Returns:
            Copy of the message as stored
        """
        say_type = SayType(type)
        type = say_type.value
        open_partial = self._open_partial(MessageKind.SAY, type)

        if open_partial is not None:
            open_partial.text = text
            if images is not None:
                open_partial.images = list(images)
            open_partial.partial = partial
            open_partial.progress = progress
            return self._update(open_partial).model_copy(deep=True)

        message = ChatMessage(
            ts=self._next_ts(),
            kind=MessageKind.SAY,
            type=type,
            role=say_type.role,
            text=text,
            images=list(images or []),
            partial=partial,
            progress=progress,
        )
        return self._append(message).model_copy(deep=True)

    # =========================================================================
    # Ask
    # =========================================================================

    async def ask(
        self,
        type: AskType | str,
        text: Optional[str] = None,
        partial: bool = False,
        progress: Optional[str] = None,
    ) -> Optional[AskResult]:
        """Ask the user and wait for the answer.

        A partial ask only shows (or updates) the question and returns None
        immediately. A full ask records a pending ask keyed by its message
        timestamp and suspends until it is resolved.

        Args:
            type: Ask type
            text: Question text
            partial: Whether the question is still being streamed
            progress: Optional progress annotation

        Returns:
            The user's answer, or None for a partial ask

        Raises:
            AskInProgressError: Another full ask is already pending
            AskTimeoutError: No answer within ``ask_timeout`` seconds
            TaskAbortedError: The task was aborted before or while waiting
        """
        self.abort_signal.check()
        type = AskType(type).value
        open_partial = self._open_partial(MessageKind.ASK, type)

        if partial:
            if open_partial is not None:
                open_partial.text = text
                open_partial.progress = progress
                self._update(open_partial)
            else:
                self._append(
                    ChatMessage(
                        ts=self._next_ts(),
                        kind=MessageKind.ASK,
                        type=type,
                        text=text,
                        partial=True,
                        progress=progress,
                    )
                )
            return None

        if self._pending_ts is not None:
            raise AskInProgressError(
                f"Cannot ask '{type}' while ask {self._pending_ts} is pending"
            )

        # The ask is pending before observers see it, so they may answer
        # synchronously from their callback.
        self._response = None
        if open_partial is not None:
            open_partial.text = text
            open_partial.partial = False
            open_partial.progress = progress
            message = open_partial
        else:
            message = ChatMessage(
                ts=self._next_ts(),
                kind=MessageKind.ASK,
                type=type,
                text=text,
                progress=progress,
            )
        self._pending_ts = message.ts
        logger.debug(f"Ask '{type}' pending at {message.ts}")
        try:
            if open_partial is not None:
                self._update(message)
            else:
                self._append(message)
            return await self._wait_for_response(message.ts)
        finally:
            self._pending_ts = None
            self._response = None

    async def _wait_for_response(self, ask_ts: int) -> AskResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.ask_timeout
        while self._response is None:
            self.abort_signal.check()
            if loop.time() >= deadline:
                logger.error(f"Ask {ask_ts} timed out after {self.ask_timeout}s")
                raise AskTimeoutError(
                    f"No response after {self.ask_timeout} seconds",
                    ask_ts=ask_ts,
                    timeout=self.ask_timeout,
                )
            await asyncio.sleep(self.poll_interval)
        return self._response

    def handle_response(
        self,
        ask_ts: int,
        response: AskResponse | str,
        text: Optional[str] = None,
        images: Optional[list[str]] = None,
    ) -> bool:
        """Resolve the pending ask.

        Responses for a stale timestamp, or when nothing is pending, are
        logged and ignored.

        Returns:
            True if the response was accepted
        """
        if self._pending_ts is None:
            logger.warning(f"Ignoring response for ask {ask_ts}: no ask is pending")
            return False
        if ask_ts != self._pending_ts:
            logger.warning(
                f"Ignoring stale response for ask {ask_ts}: pending ask is {self._pending_ts}"
            )
            return False
        if self._response is not None:
            logger.warning(f"Ignoring duplicate response for ask {ask_ts}")
            return False

        self._response = AskResult(
            response=AskResponse(response),
            text=text,
            images=list(images or []),
        )
        return True
