"""
Taskpilot - agentic task execution loop

Drives a multi-turn, tool-using coding assistant from a single instruction
to completion: streamed model output, blocking user prompts and
approval-gated tool execution over one linear conversation history.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("taskpilot")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
]
