"""Tool registry: the set of tools a task may call, indexed by name."""

import logging
from collections.abc import Iterable, Iterator
from typing import Any, Optional

from taskpilot.tools.base import Tool, ToolExecutionError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-indexed collection of Tool instances.

    The registry answers two questions for a task: which definitions to
    advertise to the model, and which Tool handles a given call.
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> Tool:
        """Add a tool.

        Raises:
            ValueError: A tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")
        return tool

    def unregister(self, name: str) -> bool:
        removed = self._tools.pop(name, None)
        if removed is not None:
            logger.debug(f"Unregistered tool: {name}")
        return removed is not None

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        """Look up the tool handling a call.

        Raises:
            ToolExecutionError: No tool of that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(f"Unknown tool: {name}")
        return tool

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """Definitions of every registered tool, in registration order."""
        return [tool.get_tool_definition() for tool in self._tools.values()]

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry tools=[{', '.join(self._tools)}]>"
