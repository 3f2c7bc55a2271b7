"""Built-in tools."""

from taskpilot.tools.builtin.command import ExecuteCommandTool
from taskpilot.tools.builtin.completion import AttemptCompletionTool
from taskpilot.tools.builtin.file import ListFilesTool, ReadFileTool, WriteToFileTool
from taskpilot.tools.builtin.followup import AskFollowupQuestionTool
from taskpilot.tools.builtin.registry_utils import create_default_registry, register_builtin_tools

__all__ = [
    "AskFollowupQuestionTool",
    "AttemptCompletionTool",
    "ExecuteCommandTool",
    "ListFilesTool",
    "ReadFileTool",
    "WriteToFileTool",
    "create_default_registry",
    "register_builtin_tools",
]
