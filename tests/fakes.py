"""
Scripted collaborators for task tests.
"""

import asyncio
from typing import Any, Optional, Union

from taskpilot.providers.models import StreamFragment
from taskpilot.task.abort import AbortSignal
from taskpilot.task.loop import Task
from taskpilot.task.models import AskResponse, MessageKind, TaskEvent, TaskEventType
from taskpilot.tools.models import ToolCall

# Short poll interval so abort and ask resolution are observed quickly
TEST_POLL_INTERVAL = 0.01


def text(value: str) -> StreamFragment:
    return StreamFragment.text_delta(value)


def tool(
    name: str,
    arguments: Union[dict, str, None] = None,
    tool_id: Optional[str] = None,
) -> StreamFragment:
    return StreamFragment.tool_use(name=name, arguments=arguments or {}, tool_id=tool_id)


def usage(input_tokens: int = 10, output_tokens: int = 5) -> StreamFragment:
    return StreamFragment.usage(input_tokens=input_tokens, output_tokens=output_tokens)


def completion(result: str = "Done", tool_id: str = "toolu_done") -> list[StreamFragment]:
    return [tool("attempt_completion", {"result": result}, tool_id)]


class FakeModelClient:
    """Model client replaying scripted responses.

    Each script entry is used for one ``create_message`` call: a list of
    fragments (an Exception inside the list is raised at that point) or an
    Exception raised before the first fragment.
    """

    def __init__(self, scripts: Optional[list[Any]] = None):
        self.scripts = list(scripts or [])
        self.calls: list[dict[str, Any]] = []
        self.model = "fake/model"

    def create_message(self, system_prompt, history, tools):
        self.calls.append({"system_prompt": system_prompt, "history": history, "tools": tools})
        script = self.scripts.pop(0) if self.scripts else RuntimeError("No scripted response left")
        return self._stream(script)

    async def _stream(self, script):
        if isinstance(script, BaseException):
            raise script
        for fragment in script:
            await asyncio.sleep(0)
            if isinstance(fragment, BaseException):
                raise fragment
            yield fragment


class FakeToolExecutor:
    """Tool executor returning scripted outputs per tool name.

    A value may be a string, an Exception to raise, or an async callable
    taking the ToolCall.
    """

    def __init__(self, outputs: Optional[dict[str, Any]] = None):
        self.outputs = dict(outputs or {})
        self.calls: list[ToolCall] = []

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        names = set(self.outputs) | {"attempt_completion"}
        return [
            {
                "name": name,
                "description": f"{name} tool",
                "input_schema": {"type": "object", "properties": {}, "required": []},
            }
            for name in sorted(names)
        ]

    async def execute_tool(self, call: ToolCall) -> str:
        self.calls.append(call)
        output = self.outputs.get(call.name, f"{call.name} ok")
        if isinstance(output, BaseException):
            raise output
        if callable(output):
            return await output(call)
        return output


class Responder:
    """Event callback answering asks from a script.

    ``answers`` maps an ask type to a list of ``(response, text)`` tuples
    consumed in order. Unscripted asks get ``default``. Asks whose type is
    in ``hold`` are left unanswered.
    """

    def __init__(
        self,
        answers: Optional[dict[str, list[tuple[AskResponse, Optional[str]]]]] = None,
        default: tuple[AskResponse, Optional[str]] = (AskResponse.YES, None),
        hold: Optional[set[str]] = None,
    ):
        self.answers = {k: list(v) for k, v in (answers or {}).items()}
        self.default = default
        self.hold = set(hold or ())
        self.task: Optional[Task] = None
        self.asked: list[str] = []
        self.events: list[TaskEvent] = []
        self._answered: set[int] = set()

    def __call__(self, event: TaskEvent) -> None:
        self.events.append(event)
        if event.event_type not in (TaskEventType.MESSAGE_ADDED, TaskEventType.MESSAGE_UPDATED):
            return
        message = event.message
        if message is None or message.kind != MessageKind.ASK.value or message.partial:
            return
        if message.ts in self._answered:
            return
        self._answered.add(message.ts)
        self.asked.append(message.type)
        if message.type in self.hold:
            return

        scripted = self.answers.get(message.type)
        response, reply = scripted.pop(0) if scripted else self.default
        asyncio.get_running_loop().call_soon(self.task.handle_response, message.ts, response, reply)

    @property
    def statuses(self) -> list[str]:
        return [e.status.value for e in self.events if e.event_type == TaskEventType.STATUS_CHANGED]


class RecordingSleep:
    """Retry sleep that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float, abort_signal: AbortSignal) -> None:
        self.delays.append(delay)
        abort_signal.check()
