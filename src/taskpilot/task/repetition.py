"""Detection of a model stuck repeating the same tool call."""

import json
from dataclasses import dataclass
from typing import Optional, Protocol

from taskpilot.tools.models import ToolCall


@dataclass
class RepetitionVerdict:
    """Outcome of a repetition check."""

    allowed: bool
    message: Optional[str] = None


class RepetitionStrategy(Protocol):
    """Decides whether a tool call may run given the calls before it."""

    def check(self, call: ToolCall) -> RepetitionVerdict: ...

    def reset(self) -> None: ...


def canonical_call(call: ToolCall) -> str:
    """Tool name and arguments as JSON with sorted keys, for structural comparison."""
    return json.dumps(
        {"name": call.name, "parameters": call.input},
        sort_keys=True,
        ensure_ascii=False,
        default=str,
    )


class ConsecutiveRepetitionDetector:
    """Blocks a call once it has been repeated ``limit`` times in a row.

    With the default limit of 3 the fourth consecutive identical call is
    blocked. After blocking, the detector forgets the call so the model can
    recover once the user steers it. A limit of 0 disables the check.
    """

    def __init__(self, limit: int = 3):
        self.limit = limit
        self._previous: Optional[str] = None
        self._repeats = 0

    def check(self, call: ToolCall) -> RepetitionVerdict:
        current = canonical_call(call)
        if current == self._previous:
            self._repeats += 1
        else:
            self._previous = current
            self._repeats = 0

        if self.limit > 0 and self._repeats >= self.limit:
            self.reset()
            return RepetitionVerdict(
                allowed=False,
                message=(
                    f"'{call.name}' was called {self.limit + 1} times in a row "
                    "with identical arguments."
                ),
            )
        return RepetitionVerdict(allowed=True)

    def reset(self) -> None:
        self._previous = None
        self._repeats = 0
