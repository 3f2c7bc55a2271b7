"""Tool that lets the model ask the user a question."""

from taskpilot.tools.base import Tool
from taskpilot.tools.models import ToolParameter, ToolResult, request_user_input


class AskFollowupQuestionTool(Tool):
    """Ask the user a clarifying question.

    The tool itself does nothing but return a user-input request; the task
    turns it into a followup ask and uses the answer as the tool result.
    """

    @property
    def name(self) -> str:
        return "ask_followup_question"

    @property
    def description(self) -> str:
        return (
            "Ask the user a question to gather information needed to complete the task. "
            "Use this only when the answer cannot be found with the other tools."
        )

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(
                name="question",
                type="string",
                description="A clear, specific question for the user",
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        self.validate_input(**kwargs)
        question = str(kwargs["question"]).strip()
        tool_call_id = kwargs.get("tool_call_id", "unknown")
        if not question:
            return ToolResult(
                tool_call_id=tool_call_id,
                output="",
                error="question must not be empty",
                is_error=True,
            )
        return ToolResult(tool_call_id=tool_call_id, output=request_user_input(question))
