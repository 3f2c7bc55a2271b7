"""Base classes for tool implementation."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from taskpilot.tools.models import ToolParameter, ToolResult


class ToolExecutionError(Exception):
    """Raised when tool execution fails."""

    def __init__(self, message: str, exit_code: Optional[int] = None):
        """Initialize error.

        Args:
            message: Error message
            exit_code: Optional exit code
        """
        super().__init__(message)
        self.exit_code = exit_code


class Tool(ABC):
    """Base class for all tools.

    Each tool defines:
    - Name and description (for the model to understand when to use it)
    - Input parameters (JSON schema)
    - Execution logic

    Whether a call needs approval is decided by the task configuration,
    not by the tool.

    Relative paths given to a tool resolve against its workspace.
    """

    def __init__(self, workspace: Path | str | None = None):
        """Initialize the tool.

        Args:
            workspace: Directory relative paths resolve against. Defaults to cwd.
        """
        self.workspace = Path(workspace).expanduser().resolve() if workspace else Path.cwd()
        self._validate_definition()

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name (must be unique)."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does (for the model)."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> list[ToolParameter]:
        """List of tool parameters."""
        pass

    def resolve_path(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.workspace / candidate
        return candidate.resolve()

    def get_input_schema(self) -> dict[str, Any]:
        """Get JSON schema for tool input.

        Returns:
            JSON schema describing tool parameters
        """
        properties = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum
            if param.default is not None:
                param_schema["default"] = param.default

            properties[param.name] = param_schema
            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def get_tool_definition(self) -> dict[str, Any]:
        """Get complete tool definition for the model client.

        Returns:
            Tool definition in Anthropic format
        """
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.get_input_schema(),
        }

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given parameters.

        Args:
            **kwargs: Tool parameters

        Returns:
            ToolResult with output or error

        Raises:
            ToolExecutionError: If execution fails critically
        """
        pass

    def validate_input(self, **kwargs) -> None:
        """Validate input parameters.

        Raises:
            ValueError: If parameters are invalid
        """
        param_names = {p.name for p in self.parameters}
        required_params = {p.name for p in self.parameters if p.required}
        provided = set(kwargs.keys())

        # Injected by the executor, not part of the schema
        internal_params = {"tool_call_id"}

        unknown = provided - param_names - internal_params
        if unknown:
            raise ValueError(f"Unknown parameters: {', '.join(sorted(unknown))}")

        missing = required_params - provided
        if missing:
            raise ValueError(f"Missing required parameters: {', '.join(sorted(missing))}")

    def _validate_definition(self) -> None:
        if not self.name:
            raise ValueError("Tool name cannot be empty")

        if not self.description:
            raise ValueError("Tool description cannot be empty")

        param_names = [p.name for p in self.parameters]
        if len(param_names) != len(set(param_names)):
            raise ValueError("Parameter names must be unique")

    def __str__(self) -> str:
        return f"Tool({self.name})"

    def __repr__(self) -> str:
        return f"<Tool name={self.name} workspace={self.workspace}>"
