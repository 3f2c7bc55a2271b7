"""Tool the model calls when it believes the task is done."""

from taskpilot.tools.base import Tool
from taskpilot.tools.models import ToolParameter, ToolResult


class AttemptCompletionTool(Tool):
    """Present the final result of the task.

    Calls to this tool are handled by the task orchestrator and never
    reach ``execute`` during a task run.
    """

    @property
    def name(self) -> str:
        return "attempt_completion"

    @property
    def description(self) -> str:
        return (
            "Present the result of your work to the user once the task is complete. "
            "Formulate the result so it is final and does not end with a question "
            "or an offer for further assistance."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="result",
                type="string",
                description="The final result of the task",
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)
        return ToolResult(
            tool_call_id=kwargs.get("tool_call_id", "unknown"),
            output=str(kwargs["result"]),
        )
