"""
taskpilot tasks - Inspect saved tasks.

Usage:
    taskpilot tasks list
    taskpilot tasks show <task_id>
"""

from typing import Annotated

import typer
from rich.markup import escape

from taskpilot.cli.output import console, print_error, print_info, print_panel, print_table
from taskpilot.config import ConfigurationError, load_config
from taskpilot.storage import FileTaskStore

app = typer.Typer(
    name="tasks",
    help="Inspect saved tasks.",
    no_args_is_help=True,
)


def _store() -> FileTaskStore:
    try:
        config = load_config()
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)
    return FileTaskStore(config.storage.path)


@app.command("list")
def list_tasks(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of tasks to show."),
    ] = 20,
) -> None:
    """List saved tasks, newest first."""
    store = _store()
    task_ids = store.list_tasks()[:limit]
    if not task_ids:
        print_info("No saved tasks")
        return

    rows = []
    for task_id in task_ids:
        metadata = store.read_metadata(task_id)
        if metadata is None:
            rows.append([task_id, "unknown", "-", "-"])
            continue
        rows.append(
            [
                task_id,
                metadata.status.value,
                metadata.updated_at.strftime("%Y-%m-%d %H:%M"),
                metadata.token_usage.total_tokens,
            ]
        )
    print_table(["ID", "Status", "Updated", "Tokens"], rows, title="Tasks")


@app.command("show")
def show_task(
    task_id: Annotated[str, typer.Argument(help="ID of the task.")],
) -> None:
    """Show the messages of a saved task."""
    store = _store()
    if not store.exists(task_id):
        print_error(f"Task not found: {task_id}")
        raise typer.Exit(1)

    metadata = store.read_metadata(task_id)
    if metadata is not None:
        lines = [
            f"Status: {metadata.status.value}",
            f"API requests: {metadata.api_requests}",
            f"Tokens: {metadata.token_usage.input_tokens} in / {metadata.token_usage.output_tokens} out",
        ]
        if metadata.error:
            lines.append(f"Error: {metadata.error}")
        print_panel("\n".join(lines), title=task_id)

    for message in store.read_messages(task_id):
        if not message.text:
            continue
        console.print(f"[dim]{message.kind}:{message.type}[/dim] {escape(message.text)}")
