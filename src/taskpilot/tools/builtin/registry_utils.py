"""Setup of the built-in tool set."""

import logging
from pathlib import Path

from taskpilot.tools.base import Tool
from taskpilot.tools.builtin.command import ExecuteCommandTool
from taskpilot.tools.builtin.completion import AttemptCompletionTool
from taskpilot.tools.builtin.file import ListFilesTool, ReadFileTool, WriteToFileTool
from taskpilot.tools.builtin.followup import AskFollowupQuestionTool
from taskpilot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

BUILTIN_TOOLS: list[type[Tool]] = [
    ReadFileTool,
    ListFilesTool,
    WriteToFileTool,
    ExecuteCommandTool,
    AskFollowupQuestionTool,
    AttemptCompletionTool,
]


def register_builtin_tools(
    registry: ToolRegistry,
    workspace: Path | str | None = None,
) -> None:
    """Register all built-in tools.

    Args:
        registry: ToolRegistry to register tools in
        workspace: Directory the file and command tools operate in
    """
    for tool_class in BUILTIN_TOOLS:
        registry.register(tool_class(workspace))
    logger.info(f"Registered {len(BUILTIN_TOOLS)} built-in tools (workspace={workspace or '.'})")


def create_default_registry(workspace: Path | str | None = None) -> ToolRegistry:
    """Create a registry holding the built-in tools."""
    registry = ToolRegistry()
    register_builtin_tools(registry, workspace)
    return registry
