"""
Main Typer application for the taskpilot CLI.

This module defines the root CLI application and registers all command groups.
"""

from typing import Annotated

import typer

from taskpilot import __version__
from taskpilot.cli.commands import resume, run, tasks
from taskpilot.cli.output import print_info

# Create the main Typer app
app = typer.Typer(
    name="taskpilot",
    help="Run agentic coding tasks with any LiteLLM-supported model.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"taskpilot version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold blue]taskpilot[/bold blue] - agentic task runner

    Streams a model's work on a task, runs its tool calls with your
    approval, and keeps every task on disk so it can be resumed.
    """


# Register command groups
app.add_typer(run.app, name="run")
app.add_typer(resume.app, name="resume")
app.add_typer(tasks.app, name="tasks")


if __name__ == "__main__":
    app()
