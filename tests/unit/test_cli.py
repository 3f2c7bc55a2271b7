"""
Unit tests for CLI commands and the console session.
"""

import signal
import sys
from io import StringIO
from pathlib import Path

import pytest
import typer
from rich.console import Console
from typer.testing import CliRunner

from taskpilot import __version__
from taskpilot.cli import session as session_module
from taskpilot.cli.app import app
from taskpilot.cli.commands.run import EXIT_ABORTED, execute
from taskpilot.cli.session import ConsoleSession, parse_answer
from taskpilot.storage import FileTaskStore
from taskpilot.task.loop import TaskResult
from taskpilot.task.models import AbortReason, AskResponse, ChatMessage, TaskStatus
from tests.fakes import FakeModelClient, Responder, completion, text, tool


@pytest.fixture
def tasks_dir(mock_taskpilot_home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point task storage at a temporary directory."""
    path = tmp_path / "tasks"
    monkeypatch.setenv("TASKPILOT_STORAGE__PATH", str(path))
    return path


@pytest.fixture
def scripted_model(monkeypatch: pytest.MonkeyPatch):
    """Replace the LiteLLM client used by the CLI with a scripted one."""
    clients = []

    def install(*scripts):
        def factory(providers, model=None):
            client = FakeModelClient(list(scripts))
            clients.append(client)
            return client

        monkeypatch.setattr(session_module, "LiteLLMModelClient", factory)
        return clients

    return install


def test_version(cli_runner: CliRunner) -> None:
    """Test --version flag."""
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_help(cli_runner: CliRunner) -> None:
    """Test --help flag."""
    result = cli_runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "taskpilot" in result.stdout
    assert "run" in result.stdout
    assert "resume" in result.stdout
    assert "tasks" in result.stdout


def test_run_without_instruction(cli_runner: CliRunner) -> None:
    """Test run command without an instruction shows an error."""
    result = cli_runner.invoke(app, ["run"])
    assert result.exit_code == 1
    assert "An instruction is required" in result.stdout


def test_run_completes_task(cli_runner: CliRunner, tasks_dir: Path, tmp_path: Path, scripted_model) -> None:
    """A scripted run lists files, completes and is saved."""
    (tmp_path / "hello.txt").write_text("hi")
    scripted_model(
        [text("Looking around."), tool("list_files", {}, "call_1")],
        completion("Found hello.txt"),
    )

    result = cli_runner.invoke(
        app,
        ["run", "What files are here?", "--auto-approve", "--no-confirm", "--workspace", str(tmp_path)],
    )

    assert result.exit_code == 0, result.stdout
    assert "Found hello.txt" in result.stdout
    assert "Task completed (2 request(s)" in result.stdout
    assert "list_files x1" in result.stdout

    store = FileTaskStore(tasks_dir)
    [task_id] = store.list_tasks()
    assert task_id in result.stdout
    assert store.read_metadata(task_id).status == TaskStatus.COMPLETED


@pytest.mark.parametrize(
    "status, exit_code",
    [(TaskStatus.ERROR, 1), (TaskStatus.ABORTED, EXIT_ABORTED)],
)
def test_execute_exit_codes(status, exit_code, make_task) -> None:
    """Unsuccessful tasks exit non-zero."""
    task = make_task(FakeModelClient())

    async def runner():
        return TaskResult(task_id=task.task_id, status=status, error="boom")

    with pytest.raises(typer.Exit) as exc_info:
        execute(task, runner)

    assert exc_info.value.exit_code == exit_code


class InterruptOnAsk(Responder):
    """Leaves asks unanswered and presses Ctrl+C once the first one shows up."""

    interrupted = False

    def __call__(self, event) -> None:
        super().__call__(event)
        if self.asked and not self.interrupted:
            self.interrupted = True
            signal.raise_signal(signal.SIGINT)


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are unavailable on Windows")
def test_execute_ctrl_c_is_a_user_abort(make_task) -> None:
    """Ctrl+C while waiting on the user aborts the task as cancelled by the user."""
    responder = InterruptOnAsk(hold={"followup"})
    task = make_task(FakeModelClient([[text("Shall I go on?")]]), responder=responder)

    with pytest.raises(typer.Exit) as exc_info:
        execute(task, lambda: task.start("go"))

    assert exc_info.value.exit_code == EXIT_ABORTED
    assert task.status == TaskStatus.ABORTED
    assert task.abort_signal.reason == AbortReason.USER_CANCELLED


def test_resume_unknown_task(cli_runner: CliRunner, tasks_dir: Path) -> None:
    result = cli_runner.invoke(app, ["resume", "does-not-exist"])
    assert result.exit_code == 1
    assert "Task not found: does-not-exist" in result.stdout


def test_tasks_list_empty(cli_runner: CliRunner, tasks_dir: Path) -> None:
    result = cli_runner.invoke(app, ["tasks", "list"])
    assert result.exit_code == 0
    assert "No saved tasks" in result.stdout


def test_tasks_list_and_show(
    cli_runner: CliRunner,
    tasks_dir: Path,
    tmp_path: Path,
    scripted_model,
) -> None:
    scripted_model(completion("Everything is [fine]"))
    cli_runner.invoke(app, ["run", "check", "--no-confirm", "--workspace", str(tmp_path)])
    [task_id] = FileTaskStore(tasks_dir).list_tasks()

    listed = cli_runner.invoke(app, ["tasks", "list"])
    shown = cli_runner.invoke(app, ["tasks", "show", task_id])

    assert listed.exit_code == 0
    assert "completed" in listed.stdout
    assert shown.exit_code == 0
    assert "Status: completed" in shown.stdout
    assert "say:task check" in shown.stdout
    assert "Everything is [fine]" in shown.stdout


def test_tasks_show_unknown(cli_runner: CliRunner, tasks_dir: Path) -> None:
    result = cli_runner.invoke(app, ["tasks", "show", "nope"])
    assert result.exit_code == 1


# =============================================================================
# Console session
# =============================================================================


@pytest.mark.parametrize(
    "raw, ask_type, expected",
    [
        ("y", "tool", (AskResponse.YES, None)),
        (" YES ", "command", (AskResponse.YES, None)),
        ("n", "tool", (AskResponse.NO, None)),
        ("", "completion_result", (AskResponse.YES, None)),
        ("", "followup", (AskResponse.NO, None)),
        ("", "resume_task", (AskResponse.NO, None)),
        ("use pathlib", "tool", (AskResponse.MESSAGE, "use pathlib")),
    ],
)
def test_parse_answer(raw, ask_type, expected) -> None:
    assert parse_answer(raw, ask_type) == expected


class TestConsoleSession:
    """Tests for ConsoleSession."""

    @pytest.fixture
    def output(self) -> StringIO:
        return StringIO()

    def session(self, output: StringIO, answers=(), verbose: bool = False) -> ConsoleSession:
        pending = list(answers)
        return ConsoleSession(
            console=Console(file=output, width=120, color_system=None),
            prompt_func=lambda prompt: pending.pop(0) if pending else "",
            verbose=verbose,
        )

    def test_render_tool_request_shortens_content(self, output):
        session = self.session(output)
        message = ChatMessage(
            ts=1,
            kind="ask",
            type="tool",
            text='{"tool": "write_to_file", "path": "a.py", "content": "' + "x" * 200 + '"}',
        )

        session.render(message)

        assert "write_to_file(path='a.py', content='<200 chars>')" in output.getvalue()

    def test_render_command(self, output):
        self.session(output).render(ChatMessage(ts=1, kind="ask", type="command", text="pytest -q"))
        assert "Command: pytest -q" in output.getvalue()

    def test_bookkeeping_messages_only_when_verbose(self, output):
        message = ChatMessage(ts=1, kind="say", type="api_req_started", text="{}")

        self.session(output).render(message)
        assert output.getvalue() == ""

        self.session(output, verbose=True).render(message)
        assert "api_req_started" in output.getvalue()

    @pytest.mark.asyncio
    async def test_answers_asks_from_prompt(self, output, make_task):
        client = FakeModelClient([completion("v1", "c1"), completion("v2", "c2")])
        task = make_task(client)
        session = self.session(output, answers=["add a test", ""])
        session.attach(task)

        result = await task.start("do it")

        assert result.status == TaskStatus.COMPLETED
        assert result.completion_result == "v2"
        assert "add a test" in client.calls[1]["history"][-1].content[0]["content"]
        rendered = output.getvalue()
        assert "Task: do it" in rendered
        assert "You: add a test" in rendered
