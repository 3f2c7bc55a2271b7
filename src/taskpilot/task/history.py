"""Append-only conversation history sent to the model client."""

import logging
from typing import Callable, Optional

from taskpilot.task.models import HistoryEntry

logger = logging.getLogger(__name__)


class ConversationHistory:
    """Ordered record of user/assistant/tool turns.

    ``append`` is the only regular mutator. ``overwrite`` replaces the whole
    record and is used when resuming a persisted task. Every mutation calls
    ``on_change`` with a snapshot, which the task uses to schedule a
    background save.
    """

    def __init__(
        self,
        entries: Optional[list[HistoryEntry]] = None,
        on_change: Optional[Callable[[list[HistoryEntry]], None]] = None,
    ):
        self._entries: list[HistoryEntry] = list(entries or [])
        self.on_change = on_change

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.snapshot())

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry.model_copy(deep=True))
        logger.debug(f"History append: {entry.role} ({len(entry.content)} blocks)")
        self._changed()

    def overwrite(self, entries: list[HistoryEntry]) -> None:
        self._entries = [e.model_copy(deep=True) for e in entries]
        logger.debug(f"History overwritten with {len(entries)} entries")
        self._changed()

    def snapshot(self) -> list[HistoryEntry]:
        """Full ordered copy of the history."""
        return [e.model_copy(deep=True) for e in self._entries]

    def _changed(self) -> None:
        if self.on_change:
            self.on_change(self.snapshot())
