"""
Provider data models for Taskpilot.

Defines the fragments a model client streams back to the task loop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FragmentType(str, Enum):
    """Kinds of streamed response fragments."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    USAGE = "usage"
    ERROR = "error"


@dataclass
class StreamFragment:
    """Single fragment of a streamed model response.

    ``tool_use`` fragments carry a complete call: ``arguments`` is either a
    dict or the raw JSON string the model produced.
    """

    type: FragmentType
    text: str = ""
    tool_id: str | None = None
    tool_name: str | None = None
    arguments: dict[str, Any] | str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    error: str | None = None

    @classmethod
    def text_delta(cls, text: str) -> "StreamFragment":
        """Create a text fragment."""
        return cls(type=FragmentType.TEXT, text=text)

    @classmethod
    def tool_use(
        cls,
        name: str,
        arguments: dict[str, Any] | str | None,
        tool_id: str | None = None,
    ) -> "StreamFragment":
        """Create a tool_use fragment."""
        return cls(
            type=FragmentType.TOOL_USE,
            tool_id=tool_id,
            tool_name=name,
            arguments=arguments,
        )

    @classmethod
    def usage(cls, input_tokens: int = 0, output_tokens: int = 0) -> "StreamFragment":
        """Create a usage fragment."""
        return cls(
            type=FragmentType.USAGE,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    @classmethod
    def failure(cls, error: str) -> "StreamFragment":
        """Create an error fragment."""
        return cls(type=FragmentType.ERROR, error=error)
