"""
Path utilities for Taskpilot.

Provides consistent path resolution for configuration and task storage.
"""

import os
from pathlib import Path


def get_taskpilot_home() -> Path:
    """
    Get the Taskpilot home directory.

    Resolution order:
    1. TASKPILOT_HOME environment variable
    2. Default: ~/.taskpilot

    Returns:
        Path to the Taskpilot home directory.
    """
    env_home = os.environ.get("TASKPILOT_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".taskpilot"


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.taskpilot/config.yaml
    """
    return get_taskpilot_home() / "config.yaml"


def get_tasks_dir() -> Path:
    """
    Get the directory holding persisted tasks.

    Returns:
        Path to ~/.taskpilot/tasks/
    """
    return get_taskpilot_home() / "tasks"


def find_project_config(start_path: Path | None = None) -> Path | None:
    """
    Find the project configuration file by traversing up the directory tree.

    Looks for .taskpilot/project.yaml starting from the given path
    (or current directory) and moving up to the root.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project config if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    current = start_path
    while current != current.parent:
        project_config = current / ".taskpilot" / "project.yaml"
        if project_config.exists():
            return project_config
        current = current.parent

    project_config = current / ".taskpilot" / "project.yaml"
    if project_config.exists():
        return project_config

    return None
