"""Tool use system for Taskpilot."""

from taskpilot.tools.base import Tool, ToolExecutionError
from taskpilot.tools.executor import RegistryToolExecutor, ToolExecutor
from taskpilot.tools.models import (
    USER_INPUT_SENTINEL,
    ToolCall,
    ToolParameter,
    ToolResult,
    parse_user_input_request,
    request_user_input,
)
from taskpilot.tools.registry import ToolRegistry

__all__ = [
    "RegistryToolExecutor",
    "Tool",
    "ToolCall",
    "ToolExecutionError",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "USER_INPUT_SENTINEL",
    "parse_user_input_request",
    "request_user_input",
]
