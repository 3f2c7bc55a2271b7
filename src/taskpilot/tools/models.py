"""Data models for the tool use system."""

import json
from typing import Any, Optional

from pydantic import BaseModel, Field

# Prefix of a tool output that asks the task to put a question to the user
USER_INPUT_SENTINEL = "__USER_INPUT_REQUIRED__:"


class ToolParameter(BaseModel):
    """Defines a parameter for a tool."""

    name: str
    type: str  # "string", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    default: Optional[Any] = None
    enum: Optional[list[str]] = None


class ToolCall(BaseModel):
    """A tool use request parsed from an assistant turn."""

    id: str  # Tool use ID, echoed back in the tool result
    name: str
    input: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.name}({', '.join(f'{k}={v!r}' for k, v in self.input.items())})"


class ToolResult(BaseModel):
    """Represents the result of tool execution."""

    tool_call_id: str
    output: str
    error: Optional[str] = None
    exit_code: Optional[int] = None
    is_error: bool = False

    def __str__(self) -> str:
        if self.is_error:
            return f"Error: {self.error}"
        return self.output[:200] + ("..." if len(self.output) > 200 else "")


def request_user_input(question: str) -> str:
    """Build the output that makes the task ask the user a question."""
    return USER_INPUT_SENTINEL + json.dumps({"question": question}, ensure_ascii=False)


def parse_user_input_request(output: str) -> Optional[str]:
    """Extract the question from a user-input request.

    Returns:
        The question, or None if the output is an ordinary result
    """
    if not isinstance(output, str) or not output.startswith(USER_INPUT_SENTINEL):
        return None
    payload = output[len(USER_INPUT_SENTINEL) :]
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return payload.strip()
    if isinstance(data, dict):
        return str(data.get("question", ""))
    return str(data)
