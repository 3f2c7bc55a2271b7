"""Workspace file tools."""

import logging
from pathlib import Path

from taskpilot.tools.base import Tool
from taskpilot.tools.models import ToolParameter, ToolResult

logger = logging.getLogger(__name__)

# Directories list_files never descends into
IGNORED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", "dist", "build"}

MAX_LISTED_ENTRIES = 200


def _failure(tool_call_id: str, message: str) -> ToolResult:
    return ToolResult(tool_call_id=tool_call_id, output="", error=message, is_error=True)


class ReadFileTool(Tool):
    """Read a text file, optionally a line range, with line numbers."""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return (
            "Read the contents of a file in the workspace. "
            "Output is prefixed with line numbers (e.g. '1 | import os'), "
            "which makes it easy to reference exact lines. "
            "Use start_line/end_line to read part of a large file."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="path",
                type="string",
                description="Path of the file, relative to the workspace or absolute",
            ),
            ToolParameter(
                name="start_line",
                type="integer",
                description="First line to read (1-based). Default: 1",
                required=False,
            ),
            ToolParameter(
                name="end_line",
                type="integer",
                description="Last line to read (inclusive). Default: end of file",
                required=False,
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)

        path = kwargs["path"]
        tool_call_id = kwargs.get("tool_call_id", "unknown")
        start_line = kwargs.get("start_line") or 1
        end_line = kwargs.get("end_line")

        logger.info(f"Reading file: {path}")
        file_path = self.resolve_path(path)

        if not file_path.exists():
            return _failure(tool_call_id, f"File not found: {path}")
        if not file_path.is_file():
            return _failure(tool_call_id, f"Not a file: {path}")

        try:
            lines = file_path.read_text(encoding="utf-8").splitlines()
        except UnicodeDecodeError:
            return _failure(tool_call_id, f"Not a UTF-8 text file: {path}")
        except PermissionError:
            logger.warning(f"File permission denied: {path}")
            return _failure(tool_call_id, f"Permission denied: {path}")

        start = max(1, int(start_line))
        end = len(lines) if end_line is None else min(len(lines), int(end_line))
        if lines and start > len(lines):
            return _failure(
                tool_call_id, f"start_line {start} is past the end of {path} ({len(lines)} lines)"
            )

        width = len(str(end)) if end else 1
        numbered = [f"{n:>{width}} | {lines[n - 1]}" for n in range(start, end + 1)]
        header = f"File: {path} (lines {start}-{end} of {len(lines)})" if lines else f"File: {path} (empty)"
        return ToolResult(tool_call_id=tool_call_id, output="\n".join([header, *numbered]))


class ListFilesTool(Tool):
    """List directory entries, skipping hidden and build directories."""

    @property
    def name(self) -> str:
        return "list_files"

    @property
    def description(self) -> str:
        return (
            "List files and directories at a path in the workspace. "
            "Directories are shown with a trailing '/'. "
            "Set recursive to true to walk subdirectories; "
            f"at most {MAX_LISTED_ENTRIES} entries are returned."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="path",
                type="string",
                description="Directory to list. Default: workspace root",
                required=False,
                default=".",
            ),
            ToolParameter(
                name="recursive",
                type="boolean",
                description="List subdirectories too. Default: false",
                required=False,
                default=False,
            ),
        ]

    def _walk(self, root: Path, recursive: bool) -> list[str]:
        entries: list[str] = []
        pending = [root]
        while pending and len(entries) < MAX_LISTED_ENTRIES:
            current = pending.pop(0)
            for item in sorted(current.iterdir(), key=lambda p: (not p.is_dir(), p.name)):
                if item.name.startswith(".") or item.name in IGNORED_DIRS:
                    continue
                rel = item.relative_to(root).as_posix()
                if item.is_dir():
                    entries.append(rel + "/")
                    if recursive:
                        pending.append(item)
                else:
                    entries.append(rel)
                if len(entries) >= MAX_LISTED_ENTRIES:
                    break
        return entries

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)

        path = kwargs.get("path") or "."
        recursive = bool(kwargs.get("recursive", False))
        tool_call_id = kwargs.get("tool_call_id", "unknown")

        logger.info(f"Listing directory: {path} (recursive={recursive})")
        dir_path = self.resolve_path(path)

        if not dir_path.exists():
            return _failure(tool_call_id, f"Directory not found: {path}")
        if not dir_path.is_dir():
            return _failure(tool_call_id, f"Not a directory: {path}")

        try:
            entries = self._walk(dir_path, recursive)
        except PermissionError:
            logger.warning(f"Directory permission denied: {path}")
            return _failure(tool_call_id, f"Permission denied: {path}")

        if not entries:
            return ToolResult(tool_call_id=tool_call_id, output="No files found.")

        output = "\n".join(entries)
        if len(entries) >= MAX_LISTED_ENTRIES:
            output += f"\n\n(Listing truncated at {MAX_LISTED_ENTRIES} entries)"
        return ToolResult(tool_call_id=tool_call_id, output=output)


class WriteToFileTool(Tool):
    """Create or overwrite a file with the given content."""

    @property
    def name(self) -> str:
        return "write_to_file"

    @property
    def description(self) -> str:
        return (
            "Write complete content to a file. The file is created if it does not exist "
            "and overwritten if it does; missing parent directories are created. "
            "Always provide the full intended content of the file, without truncation."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="path",
                type="string",
                description="Path of the file to write, relative to the workspace or absolute",
            ),
            ToolParameter(
                name="content",
                type="string",
                description="The full content to write",
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)

        path = kwargs["path"]
        content = kwargs["content"]
        tool_call_id = kwargs.get("tool_call_id", "unknown")

        logger.info(f"Writing file: {path}")
        file_path = self.resolve_path(path)
        existed = file_path.exists()

        if existed and not file_path.is_file():
            return _failure(tool_call_id, f"Not a file: {path}")

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
        except PermissionError:
            logger.warning(f"File permission denied: {path}")
            return _failure(tool_call_id, f"Permission denied: {path}")

        line_count = len(content.splitlines())
        verb = "Updated" if existed else "Created"
        return ToolResult(
            tool_call_id=tool_call_id,
            output=f"{verb} {path} ({line_count} lines)",
        )
