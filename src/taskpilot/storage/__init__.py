"""Storage and path utilities for Taskpilot."""

from taskpilot.storage.paths import (
    find_project_config,
    get_global_config_path,
    get_taskpilot_home,
    get_tasks_dir,
)
from taskpilot.storage.task_store import FileTaskStore, TaskStore
from taskpilot.storage.writer import BackgroundWriter

__all__ = [
    "BackgroundWriter",
    "FileTaskStore",
    "TaskStore",
    "find_project_config",
    "get_global_config_path",
    "get_taskpilot_home",
    "get_tasks_dir",
]
