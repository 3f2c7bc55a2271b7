"""Tool executor contract and the registry-backed implementation."""

import logging
from typing import Any, Protocol, runtime_checkable

from taskpilot.tools.base import ToolExecutionError
from taskpilot.tools.models import ToolCall
from taskpilot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class ToolExecutor(Protocol):
    """Runs a tool call and returns its text result.

    Raises on failure. A result starting with USER_INPUT_SENTINEL asks the
    task to put a question to the user instead.
    """

    async def execute_tool(self, call: ToolCall) -> str: ...

    def get_tool_definitions(self) -> list[dict[str, Any]]: ...


class RegistryToolExecutor:
    """Executes tool calls against a ToolRegistry."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        return self.registry.get_tool_definitions()

    async def execute_tool(self, call: ToolCall) -> str:
        """Execute a tool call.

        Args:
            call: Tool call to run

        Returns:
            Tool output text

        Raises:
            ToolExecutionError: Unknown tool, invalid input or failed execution
        """
        tool = self.registry.require(call.name)
        try:
            tool.validate_input(**call.input)
        except ValueError as e:
            raise ToolExecutionError(f"Invalid input for {call.name}: {e}") from e

        logger.info(f"Executing tool: {call.name} (id={call.id})")
        result = await tool.execute(**call.input, tool_call_id=call.id)

        if result.is_error:
            message = result.error or "Tool execution failed"
            if result.output:
                message = f"{message}\n\n{result.output}"
            raise ToolExecutionError(message, exit_code=result.exit_code)

        return result.output
