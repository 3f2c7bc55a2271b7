"""Shell command tool."""

import asyncio
import logging
from typing import Optional

from taskpilot.tools.base import Tool
from taskpilot.tools.models import ToolParameter, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
MAX_TIMEOUT = 600
MAX_OUTPUT_CHARS = 20000


class ExecuteCommandTool(Tool):
    """Run a shell command in the workspace.

    Output is captured (stdout and stderr combined) and truncated to
    MAX_OUTPUT_CHARS. The process is killed when the timeout expires or the
    calling task is cancelled.
    """

    def __init__(self, workspace=None, default_timeout: int = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout
        super().__init__(workspace)

    @property
    def name(self) -> str:
        return "execute_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command in the workspace and return its output and exit code. "
            "Use this to run builds, tests, linters, package managers or git. "
            "Commands run non-interactively; avoid commands that wait for input. "
            f"Default timeout: {self.default_timeout}s."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="command",
                type="string",
                description="The shell command to execute, e.g. 'pytest -q' or 'git status'",
            ),
            ToolParameter(
                name="cwd",
                type="string",
                description="Working directory, relative to the workspace. Default: workspace root",
                required=False,
            ),
            ToolParameter(
                name="timeout",
                type="integer",
                description=f"Timeout in seconds (max {MAX_TIMEOUT})",
                required=False,
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)

        command = kwargs["command"]
        tool_call_id = kwargs.get("tool_call_id", "unknown")
        timeout = min(int(kwargs.get("timeout") or self.default_timeout), MAX_TIMEOUT)
        cwd = self.resolve_path(kwargs["cwd"]) if kwargs.get("cwd") else self.workspace

        if not cwd.is_dir():
            return ToolResult(
                tool_call_id=tool_call_id,
                output="",
                error=f"Working directory not found: {cwd}",
                is_error=True,
            )

        logger.info(f"Executing command: {command[:100]}")
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.warning(f"Command timeout: {command[:100]}")
            return ToolResult(
                tool_call_id=tool_call_id,
                output="",
                error=f"Command timed out after {timeout} seconds",
                exit_code=-1,
                is_error=True,
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        output = stdout.decode("utf-8", errors="replace")
        if len(output) > MAX_OUTPUT_CHARS:
            output = output[:MAX_OUTPUT_CHARS] + "\n... (output truncated)"

        exit_code = process.returncode
        text = output.strip() or "(no output)"
        if exit_code != 0:
            return ToolResult(
                tool_call_id=tool_call_id,
                output=text,
                error=f"Command failed with exit code {exit_code}",
                exit_code=exit_code,
                is_error=True,
            )
        return ToolResult(tool_call_id=tool_call_id, output=text, exit_code=exit_code)

    async def _kill(self, process: asyncio.subprocess.Process) -> Optional[int]:
        if process.returncode is None:
            process.kill()
            return await process.wait()
        return process.returncode
