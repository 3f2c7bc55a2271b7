"""Text templates for model-facing tool results and user-facing notices."""

import json
from typing import Any, Optional


def _tagged(tag: str, body: Optional[str]) -> str:
    return f"<{tag}>\n{body or ''}\n</{tag}>"


def tool_denied() -> str:
    return "The user denied this operation."


def tool_denied_with_feedback(feedback: Optional[str]) -> str:
    return f"The user denied this operation and provided the following feedback:\n{_tagged('feedback', feedback)}"


def tool_approved_with_feedback(feedback: Optional[str]) -> str:
    return f"The user approved this operation and provided the following context:\n{_tagged('feedback', feedback)}"


def tool_error(error: Optional[str]) -> str:
    return f"The tool execution failed with the following error:\n{_tagged('error', error)}"


def tool_not_allowed(tool_name: str, reason: str) -> str:
    return f"The tool '{tool_name}' cannot be used: {reason}"


def tool_repetition(tool_name: str, limit: int) -> str:
    return (
        f"You called '{tool_name}' with identical arguments more than {limit} times in a row. "
        "The call was not executed. Try a different approach or different arguments."
    )


def missing_tool_parameter(tool_name: str, param_name: str) -> str:
    return (
        f"Missing value for required parameter '{param_name}' of '{tool_name}'. "
        "Please retry with a complete response."
    )


def no_tools_used(completion_tool: str = "attempt_completion") -> str:
    return (
        "[ERROR] You did not use a tool in your previous response! Please retry with a tool use.\n\n"
        "# Next Steps\n\n"
        f"If you have completed the user's task, use the {completion_tool} tool.\n"
        "If you require additional information from the user, use the ask_followup_question tool.\n"
        "Otherwise, if you have not completed the task and do not need additional information, "
        "then proceed with the next step of the task.\n"
        "(This is an automated message, so do not respond to it conversationally.)"
    )


def too_many_mistakes(feedback: Optional[str]) -> str:
    return (
        "You seem to be having trouble proceeding. The user has provided the following "
        f"feedback to help guide you:\n{_tagged('feedback', feedback)}"
    )


def completion_feedback(feedback: Optional[str]) -> str:
    return (
        "The user has provided feedback on the results. Consider their input to continue "
        f"the task, and then attempt completion again.\n{_tagged('feedback', feedback)}"
    )


def followup_answer(answer: Optional[str]) -> str:
    return _tagged("answer", answer)


def tool_interrupted() -> str:
    return "The task was interrupted before this tool call finished. Its outcome is unknown."


def resume_notice(was_completed: bool) -> str:
    if was_completed:
        return "[TASK RESUMPTION] This task was completed earlier and the user has added new instructions."
    return (
        "[TASK RESUMPTION] This task was interrupted. The workspace may have changed since; "
        "re-check the state of the project before continuing."
    )


def user_message(text: str) -> str:
    return _tagged("user_message", text)


# =============================================================================
# User-facing text
# =============================================================================


def mistake_limit_question(limit: int) -> str:
    return (
        f"The model made {limit} consecutive mistakes. This may indicate a failure in its "
        "thought process or an inability to use a tool properly. Provide guidance to continue, "
        "or answer no to stop the task."
    )


def api_request_failed(error: str) -> str:
    return f"API request failed: {error}\n\nRetry?"


def retry_countdown(attempt: int, delay: float, error: str) -> str:
    return f"{error}\n\nRetry attempt {attempt} in {delay:g} seconds..."


def describe_tool_call(tool_name: str, arguments: dict[str, Any]) -> str:
    """JSON description of a tool call, shown in tool approval asks and status messages."""
    return json.dumps({"tool": tool_name, **arguments}, ensure_ascii=False, default=str)
