"""
Console session for running a task interactively.

Renders task messages with rich and answers asks from the terminal.
"""

import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.markdown import Markdown

from taskpilot.cli.output import console as default_console
from taskpilot.config.schema import Config
from taskpilot.providers.litellm_client import LiteLLMModelClient
from taskpilot.storage.task_store import FileTaskStore
from taskpilot.task.loop import Task
from taskpilot.task.models import (
    ApprovalMode,
    AskResponse,
    AskType,
    ChatMessage,
    MessageKind,
    SayType,
    TaskEvent,
    TaskEventType,
)
from taskpilot.tools.builtin.registry_utils import create_default_registry
from taskpilot.tools.executor import RegistryToolExecutor

logger = logging.getLogger(__name__)

ASK_PROMPTS = {
    AskType.FOLLOWUP.value: "Reply to continue, or press Enter to finish",
    AskType.COMMAND.value: "Run this command? [y/n or feedback]",
    AskType.TOOL.value: "Allow this tool call? [y/n or feedback]",
    AskType.COMPLETION_RESULT.value: "Accept this result? [Enter to accept, or feedback]",
    AskType.API_REQ_FAILED.value: "Retry the request? [y/n]",
    AskType.RESUME_TASK.value: "Resume this task? Type new instructions, or press Enter to stop",
    AskType.RESUME_COMPLETED_TASK.value: "This task was completed. Type new instructions, or press Enter to stop",
    AskType.MISTAKE_LIMIT_REACHED.value: "Guidance for the model? [feedback, y to continue, n to stop]",
}

# Asks where an empty answer means "no, stop"
EMPTY_MEANS_NO = {
    AskType.FOLLOWUP.value,
    AskType.RESUME_TASK.value,
    AskType.RESUME_COMPLETED_TASK.value,
}


def parse_answer(raw: str, ask_type: str = "") -> tuple[AskResponse, Optional[str]]:
    """Map a line typed by the user to an ask response.

    ``y``/``yes`` approve, ``n``/``no`` decline, anything else is free-text
    feedback. An empty line approves, except for asks where continuing
    needs new input.

    Returns:
        Tuple of (response, text)
    """
    answer = raw.strip()
    lowered = answer.lower()
    if not answer:
        if ask_type in EMPTY_MEANS_NO:
            return AskResponse.NO, None
        return AskResponse.YES, None
    if lowered in ("y", "yes"):
        return AskResponse.YES, None
    if lowered in ("n", "no"):
        return AskResponse.NO, None
    return AskResponse.MESSAGE, answer


class ConsoleSession:
    """Bridges a Task to the terminal.

    Attach it as the task's event callback. Finished messages are printed;
    each ask is answered by reading a line in a background thread and
    passing it to ``Task.handle_response``.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        prompt_func: Optional[Callable[[str], str]] = None,
        verbose: bool = False,
    ):
        self.console = console or default_console
        self.prompt_func = prompt_func or self._read_line
        self.verbose = verbose
        self.task: Optional[Task] = None
        self._rendered: set[int] = set()
        self._answering: set[int] = set()

    def attach(self, task: Task) -> None:
        self.task = task
        task.event_callback = self.handle_event

    def handle_event(self, event: TaskEvent) -> None:
        if event.event_type == TaskEventType.STATUS_CHANGED:
            logger.debug(f"Task status: {event.status}")
            return
        if event.message is None or event.message.partial:
            return

        message = event.message
        if message.ts not in self._rendered:
            self._rendered.add(message.ts)
            self.render(message)

        if message.kind == MessageKind.ASK.value and message.ts not in self._answering:
            self._answering.add(message.ts)
            asyncio.get_running_loop().create_task(self._answer(message))

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(self, message: ChatMessage) -> None:
        kind, type, text = message.kind, message.type, message.text or ""

        if kind == MessageKind.ASK.value:
            if type == AskType.COMMAND.value:
                self.console.print(f"\n[yellow]Command:[/yellow] [bold]{text}[/bold]")
            elif type == AskType.TOOL.value:
                self.console.print(f"\n[yellow]Tool request:[/yellow] {self._describe_tool(text)}")
            elif text:
                self.console.print(f"\n[cyan]?[/cyan] {text}")
            return

        if type == SayType.TEXT.value:
            self.console.print(Markdown(text))
        elif type == SayType.TASK.value:
            self.console.print(f"[bold]Task:[/bold] {text}")
        elif type == SayType.TOOL.value:
            self.console.print(f"[dim]→ {self._describe_tool(text)}[/dim]")
        elif type == SayType.ERROR.value:
            self.console.print(f"[red]✗[/red] {text}")
        elif type == SayType.COMPLETION_RESULT.value:
            self.console.print()
            self.console.print(Markdown(text))
        elif type == SayType.USER_FEEDBACK.value:
            self.console.print(f"[dim]You: {text}[/dim]")
        elif type == SayType.API_REQ_RETRY_DELAYED.value:
            self.console.print(f"[yellow]![/yellow] {text}")
        elif self.verbose:
            self.console.print(f"[dim]{type}: {text}[/dim]")

    @staticmethod
    def _describe_tool(text: str) -> str:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return text
        if not isinstance(data, dict):
            return text
        name = data.pop("tool", "?")
        if "content" in data and isinstance(data["content"], str) and len(data["content"]) > 80:
            data["content"] = f"<{len(data['content'])} chars>"
        args = ", ".join(f"{k}={v!r}" for k, v in data.items())
        return f"[bold]{name}[/bold]({args})"

    # =========================================================================
    # Answering
    # =========================================================================

    def _read_line(self, prompt: str) -> str:
        return self.console.input(f"[bold cyan]{prompt}[/bold cyan]: ")

    async def _answer(self, message: ChatMessage) -> None:
        prompt = ASK_PROMPTS.get(message.type, "Your answer")
        try:
            raw = await self._prompt_in_thread(prompt)
        except EOFError:
            raw = ""
        response, text = parse_answer(raw, message.type)
        if self.task is not None:
            self.task.handle_response(message.ts, response, text)

    def _prompt_in_thread(self, prompt: str) -> "asyncio.Future[str]":
        """Read a line without blocking the event loop.

        A daemon thread is used so an abandoned prompt never keeps the
        process alive after the task ends.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        def resolve(setter: Callable, value) -> None:
            if not future.done():
                setter(value)

        def worker() -> None:
            try:
                line = self.prompt_func(prompt)
            except BaseException as e:
                if not loop.is_closed():
                    loop.call_soon_threadsafe(resolve, future.set_exception, e)
                return
            if not loop.is_closed():
                loop.call_soon_threadsafe(resolve, future.set_result, line)

        threading.Thread(target=worker, name="taskpilot-prompt", daemon=True).start()
        return future


def build_task(
    config: Config,
    session: ConsoleSession,
    *,
    model: Optional[str] = None,
    workspace: Optional[Path] = None,
    task_id: Optional[str] = None,
    auto_approve: bool = False,
    no_confirm: bool = False,
) -> Task:
    """Wire a Task with the LiteLLM client, built-in tools and file store."""
    task_config = config.task.model_copy(deep=True)
    if auto_approve:
        task_config.approval_mode = ApprovalMode.AUTO
    if no_confirm:
        task_config.confirm_completion = False

    registry = create_default_registry(workspace)
    store = FileTaskStore(config.storage.path) if config.storage.enable else None

    task = Task(
        model_client=LiteLLMModelClient(config.providers, model=model),
        executor=RegistryToolExecutor(registry),
        config=task_config,
        system_prompt=config.system_prompt,
        task_id=task_id,
        store=store,
    )
    session.attach(task)
    return task
