"""Command line interface for Taskpilot."""
