"""
taskpilot resume - Continue a saved task.

Usage:
    taskpilot resume 3f2a9c0d...
"""

from pathlib import Path
from typing import Annotated

import typer

from taskpilot.cli.commands.run import execute, load_cli_config
from taskpilot.cli.output import print_error
from taskpilot.cli.session import ConsoleSession, build_task
from taskpilot.storage import FileTaskStore

app = typer.Typer(
    name="resume",
    help="Continue a saved task.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def resume(
    task_id: Annotated[str, typer.Argument(help="ID of the task to resume.")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model name or alias to use."),
    ] = None,
    auto_approve: Annotated[
        bool,
        typer.Option("--auto-approve", help="Run tools without asking for approval."),
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
    """Continue a saved task from where it stopped."""
    config = load_cli_config(workspace, verbose)
    if not config.storage.enable:
        print_error("Task storage is disabled; nothing to resume")
        raise typer.Exit(1)
    if not FileTaskStore(config.storage.path).exists(task_id):
        print_error(f"Task not found: {task_id}")
        raise typer.Exit(1)

    session = ConsoleSession(verbose=verbose)
    task = build_task(
        config,
        session,
        model=model,
        workspace=workspace,
        task_id=task_id,
        auto_approve=auto_approve,
    )
    execute(task, task.resume)
