"""
Task storage for Taskpilot.

Provides file-based persistence for conversation history, chat messages
and task metadata.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from taskpilot.storage.paths import get_tasks_dir
from taskpilot.task.models import ChatMessage, HistoryEntry, TaskMetadata

logger = logging.getLogger(__name__)

HISTORY_FILE = "api_conversation_history.json"
MESSAGES_FILE = "ui_messages.json"
METADATA_FILE = "task_metadata.json"


@runtime_checkable
class TaskStore(Protocol):
    """Persistence collaborator of a task. Writes are best-effort."""

    async def save_history(self, task_id: str, entries: list[HistoryEntry]) -> None: ...

    async def save_messages(self, task_id: str, messages: list[ChatMessage]) -> None: ...

    async def save_metadata(self, task_id: str, metadata: TaskMetadata) -> None: ...

    async def load_history(self, task_id: str) -> list[HistoryEntry]: ...

    async def load_messages(self, task_id: str) -> list[ChatMessage]: ...


class FileTaskStore:
    """File-based task storage.

    Layout::

        <base>/<task_id>/api_conversation_history.json
        <base>/<task_id>/ui_messages.json
        <base>/<task_id>/task_metadata.json
    """

    def __init__(self, base_path: Path | str | None = None):
        """Initialize the task storage.

        Args:
            base_path: Directory for task folders. Defaults to ~/.taskpilot/tasks.
        """
        if base_path is None:
            self.base_path = get_tasks_dir()
        else:
            self.base_path = Path(base_path).expanduser().resolve()

    def task_dir(self, task_id: str) -> Path:
        return self.base_path / task_id

    def exists(self, task_id: str) -> bool:
        return self.task_dir(task_id).is_dir()

    def list_tasks(self) -> list[str]:
        """List stored task ids, newest first."""
        if not self.base_path.exists():
            return []
        dirs = [p for p in self.base_path.iterdir() if p.is_dir()]
        dirs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [p.name for p in dirs]

    # =========================================================================
    # Sync file access
    # =========================================================================

    def _write_json(self, task_id: str, filename: str, data: Any) -> Path:
        """Write JSON atomically via a temp file in the same directory."""
        directory = self.task_dir(task_id)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / filename

        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{filename}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return target

    def _read_json(self, task_id: str, filename: str) -> Any:
        path = self.task_dir(task_id) / filename
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def read_history(self, task_id: str) -> list[HistoryEntry]:
        data = self._read_json(task_id, HISTORY_FILE) or []
        return [HistoryEntry.model_validate(item) for item in data]

    def read_messages(self, task_id: str) -> list[ChatMessage]:
        data = self._read_json(task_id, MESSAGES_FILE) or []
        return [ChatMessage.model_validate(item) for item in data]

    def read_metadata(self, task_id: str) -> Optional[TaskMetadata]:
        data = self._read_json(task_id, METADATA_FILE)
        if data is None:
            return None
        return TaskMetadata.model_validate(data)

    # =========================================================================
    # TaskStore
    # =========================================================================

    async def save_history(self, task_id: str, entries: list[HistoryEntry]) -> None:
        data = [e.model_dump(mode="json") for e in entries]
        await asyncio.to_thread(self._write_json, task_id, HISTORY_FILE, data)

    async def save_messages(self, task_id: str, messages: list[ChatMessage]) -> None:
        data = [m.model_dump(mode="json") for m in messages]
        await asyncio.to_thread(self._write_json, task_id, MESSAGES_FILE, data)

    async def save_metadata(self, task_id: str, metadata: TaskMetadata) -> None:
        data = metadata.model_dump(mode="json")
        await asyncio.to_thread(self._write_json, task_id, METADATA_FILE, data)

    async def load_history(self, task_id: str) -> list[HistoryEntry]:
        return await asyncio.to_thread(self.read_history, task_id)

    async def load_messages(self, task_id: str) -> list[ChatMessage]:
        return await asyncio.to_thread(self.read_messages, task_id)
