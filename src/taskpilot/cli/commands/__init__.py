"""CLI command modules."""

from taskpilot.cli.commands import resume, run, tasks

__all__ = ["resume", "run", "tasks"]
