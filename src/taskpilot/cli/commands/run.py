"""
taskpilot run - Run a new task.

Usage:
    taskpilot run "Fix the failing test in tests/test_api.py"
    taskpilot run "Summarize README.md" --model sonnet
    taskpilot run "Tidy imports" --auto-approve --no-confirm
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Annotated, Awaitable, Callable

import typer

from taskpilot.cli.output import console, print_error, print_info, print_success, print_warning, setup_logging
from taskpilot.cli.session import ConsoleSession, build_task
from taskpilot.config import Config, ConfigurationError, load_config
from taskpilot.task import AbortReason, Task, TaskResult, TaskStatus

app = typer.Typer(
    name="run",
    help="Run a new task.",
    invoke_without_command=True,
)

EXIT_ABORTED = 130


def load_cli_config(workspace: Path | None, verbose: bool) -> Config:
    """Load configuration and set up logging for a CLI command."""
    try:
        config = load_config(project_path=workspace)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    level = "DEBUG" if verbose else config.logging.level
    setup_logging(level, config.logging.file)
    return config


def _abort_on_sigint(task: Task) -> bool:
    """Route Ctrl+C to a user abort of the task instead of cancelling the loop."""
    if sys.platform == "win32":
        return False
    try:
        asyncio.get_running_loop().add_signal_handler(
            signal.SIGINT, task.abort, AbortReason.USER_CANCELLED
        )
        return True
    except (NotImplementedError, RuntimeError):
        return False


def execute(task: Task, runner: Callable[[], Awaitable[TaskResult]]) -> TaskResult:
    """Run a task to completion, aborting it on Ctrl+C.

    Raises:
        typer.Exit: With 0 on completion, 130 on abort and 1 on error
    """

    async def main() -> TaskResult:
        _abort_on_sigint(task)
        return await runner()

    try:
        result = asyncio.run(main())
    except KeyboardInterrupt:
        task.abort(AbortReason.USER_CANCELLED)
        print_warning("Task cancelled")
        raise typer.Exit(EXIT_ABORTED)

    report(result)
    if result.status == TaskStatus.COMPLETED:
        return result
    if result.status == TaskStatus.ABORTED:
        raise typer.Exit(EXIT_ABORTED)
    raise typer.Exit(1)


def report(result: TaskResult) -> None:
    """Print the final status line of a task."""
    usage = result.token_usage
    summary = (
        f"{result.api_requests} request(s), "
        f"{usage.input_tokens} tokens in, {usage.output_tokens} tokens out"
    )

    console.print()
    if result.status == TaskStatus.COMPLETED:
        print_success(f"Task completed ({summary})")
    elif result.status == TaskStatus.ABORTED:
        print_warning(f"Task aborted ({summary})")
    else:
        print_error(f"Task failed: {result.error or 'unknown error'}")

    if result.tool_usage:
        tools = ", ".join(f"{name} x{count}" for name, count in sorted(result.tool_usage.items()))
        console.print(f"[dim]Tools: {tools}[/dim]")
    print_info(f"Task ID: [bold]{result.task_id}[/bold]")


# noinspection PyUnusedLocal
@app.callback(invoke_without_command=True)
def run(
    ctx: typer.Context,
    instruction: Annotated[
        str | None,
        typer.Argument(help="What the task should accomplish."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model name or alias to use."),
    ] = None,
    auto_approve: Annotated[
        bool,
        typer.Option("--auto-approve", help="Run tools without asking for approval."),
    ] = False,
    no_confirm: Annotated[
        bool,
        typer.Option("--no-confirm", help="Finish without confirming the completion result."),
    ] = False,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Directory the tools operate in."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logs and request details."),
    ] = False,
) -> None:
    """
    Run a new task.

    The model works through the instruction with the built-in tools,
    asking before it runs commands or writes files unless
    [bold]--auto-approve[/bold] is given.
    """
    if not instruction:
        print_error("An instruction is required")
        console.print('Usage: taskpilot run "Your instruction here"')
        raise typer.Exit(1)

    config = load_cli_config(workspace, verbose)
    session = ConsoleSession(verbose=verbose)
    task = build_task(
        config,
        session,
        model=model,
        workspace=workspace,
        auto_approve=auto_approve,
        no_confirm=no_confirm,
    )

    if verbose:
        console.print(f"[dim]Model: {task.model_client.model}[/dim]")
    execute(task, lambda: task.start(instruction))
