"""Model client contract consumed by the task loop."""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from taskpilot.providers.models import StreamFragment
from taskpilot.task.models import HistoryEntry


@runtime_checkable
class ModelClient(Protocol):
    """Produces a streamed response for a conversation.

    The returned iterator is one-shot and forward-only. The caller either
    drains it or closes it with ``aclose()`` when abandoning it.
    """

    def create_message(
        self,
        system_prompt: str,
        history: list[HistoryEntry],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StreamFragment]: ...
