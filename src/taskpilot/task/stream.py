"""Streaming response consumer: fragments in, assistant turn out."""

import json
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from taskpilot.providers.models import FragmentType, StreamFragment
from taskpilot.task.abort import AbortSignal
from taskpilot.task.channel import MessageChannel
from taskpilot.task.exceptions import StreamFragmentError
from taskpilot.task.history import ConversationHistory
from taskpilot.task.models import HistoryEntry, MessageRole, SayType, text_block, tool_use_block
from taskpilot.tools.models import ToolCall

logger = logging.getLogger(__name__)

# Assistant content recorded when the model produced nothing at all
EMPTY_RESPONSE_TEXT = "(no response)"

_END = object()


class ConsumerState(str, Enum):
    """Per-call state of the consumer."""

    WAITING_FIRST_FRAGMENT = "waiting_first_fragment"
    ACCUMULATING = "accumulating"
    DRAINED = "drained"


@dataclass
class AssistantTurn:
    """Result of a fully drained model stream."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.tool_calls


def parse_tool_arguments(raw: Any, tool_name: str = "") -> dict[str, Any]:
    """Parse tool call arguments into a dict.

    Malformed arguments fall back to an empty dict so the turn survives;
    the tool then fails its own validation with a useful message.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse arguments for '{tool_name}': {e}")
            return {}
        if isinstance(parsed, dict):
            return parsed
    logger.warning(f"Arguments for '{tool_name}' are not an object, using empty arguments")
    return {}


def new_tool_id() -> str:
    return f"toolu_{uuid.uuid4().hex[:24]}"


class StreamConsumer:
    """Turns one model stream into an assistant turn.

    Text deltas are forwarded to the channel as a partial ``text`` say.
    Usage fragments are reported through ``on_usage``. An ``error``
    fragment fails the call. The abort flag is checked before every
    fragment; on abort or failure the stream is closed and any partial
    message is finalized, and nothing is added to the history.
    """

    def __init__(
        self,
        channel: MessageChannel,
        history: ConversationHistory,
        abort_signal: AbortSignal,
        on_usage: Optional[Callable[[int, int], None]] = None,
    ):
        self.channel = channel
        self.history = history
        self.abort_signal = abort_signal
        self.on_usage = on_usage
        self.state = ConsumerState.WAITING_FIRST_FRAGMENT

    async def consume(self, stream: AsyncIterator[StreamFragment]) -> AssistantTurn:
        """Drain the stream.

        Raises:
            StreamFragmentError: The stream produced an error fragment
            TaskAbortedError: The task was aborted mid-stream
            Exception: Whatever the stream itself raised
        """
        self.state = ConsumerState.WAITING_FIRST_FRAGMENT
        turn = AssistantTurn()
        iterator = stream.__aiter__()

        try:
            while True:
                fragment = await self.abort_signal.guard(self._next(iterator))
                if fragment is _END:
                    break
                self.state = ConsumerState.ACCUMULATING
                self._apply(fragment, turn)
        except BaseException:
            await self._close(iterator)
            self.channel.finalize_partials()
            raise

        self.state = ConsumerState.DRAINED
        self._commit(turn)
        return turn

    @staticmethod
    async def _next(iterator: AsyncIterator[StreamFragment]) -> Any:
        try:
            return await iterator.__anext__()
        except StopAsyncIteration:
            return _END

    def _apply(self, fragment: StreamFragment, turn: AssistantTurn) -> None:
        if fragment.type == FragmentType.TEXT:
            if fragment.text:
                turn.text += fragment.text
                self.channel.say(SayType.TEXT, turn.text, partial=True)

        elif fragment.type == FragmentType.USAGE:
            turn.input_tokens += fragment.input_tokens
            turn.output_tokens += fragment.output_tokens
            if self.on_usage:
                self.on_usage(fragment.input_tokens, fragment.output_tokens)

        elif fragment.type == FragmentType.TOOL_USE:
            name = fragment.tool_name or ""
            turn.tool_calls.append(
                ToolCall(
                    id=fragment.tool_id or new_tool_id(),
                    name=name,
                    input=parse_tool_arguments(fragment.arguments, name),
                )
            )

        elif fragment.type == FragmentType.ERROR:
            raise StreamFragmentError(fragment.error or "Model stream reported an error")

    def _commit(self, turn: AssistantTurn) -> None:
        if turn.text:
            self.channel.say(SayType.TEXT, turn.text, partial=False)

        content: list[dict[str, Any]] = []
        if turn.text:
            content.append(text_block(turn.text))
        for call in turn.tool_calls:
            content.append(tool_use_block(call.id, call.name, call.input))
        if not content:
            content.append(text_block(EMPTY_RESPONSE_TEXT))

        self.history.append(HistoryEntry(role=MessageRole.ASSISTANT, content=content))
        logger.debug(
            f"Assistant turn: {len(turn.text)} chars, {len(turn.tool_calls)} tool calls"
        )

    async def _close(self, iterator: AsyncIterator[StreamFragment]) -> None:
        aclose = getattr(iterator, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(f"Error closing abandoned model stream: {e}")
