"""Tool execution orchestrator: approval, repetition checks, execution, result folding."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from taskpilot.task import responses
from taskpilot.task.abort import AbortSignal
from taskpilot.task.channel import MessageChannel
from taskpilot.task.exceptions import MistakeLimitError, TaskAbortedError
from taskpilot.task.models import AskResponse, AskResult, AskType, SayType, TaskConfig, tool_result_block
from taskpilot.task.repetition import ConsecutiveRepetitionDetector, RepetitionStrategy
from taskpilot.tools.executor import ToolExecutor
from taskpilot.tools.models import ToolCall, parse_user_input_request

logger = logging.getLogger(__name__)

COMMAND_TOOLS = {"execute_command"}


@dataclass
class BatchOutcome:
    """Result of running the tool calls of one assistant turn."""

    tool_results: list[dict[str, Any]] = field(default_factory=list)
    completed: bool = False
    completion_result: Optional[str] = None


class ToolOrchestrator:
    """Runs the tool calls of an assistant turn in order.

    Owns the consecutive-mistake counter and per-tool usage counts. Every
    call yields exactly one tool result block unless the batch completes
    the task or is aborted, in which case the caller discards it.
    """

    def __init__(
        self,
        channel: MessageChannel,
        executor: ToolExecutor,
        abort_signal: AbortSignal,
        config: Optional[TaskConfig] = None,
        repetition: Optional[RepetitionStrategy] = None,
    ):
        """Initialize the orchestrator.

        Args:
            channel: Message channel for status, approvals and followups
            executor: Tool executor collaborator
            abort_signal: The task's abort flag
            config: Approval and limit settings
            repetition: Repetition strategy. Defaults to a consecutive detector
                        using ``config.repetition_limit``
        """
        self.channel = channel
        self.executor = executor
        self.abort_signal = abort_signal
        self.config = config or TaskConfig()
        self.repetition = repetition or ConsecutiveRepetitionDetector(self.config.repetition_limit)
        self.consecutive_mistakes = 0
        self.tool_usage: dict[str, int] = {}

    # =========================================================================
    # Mistake counter
    # =========================================================================

    @property
    def mistake_limit_reached(self) -> bool:
        limit = self.config.consecutive_mistake_limit
        return limit > 0 and self.consecutive_mistakes >= limit

    def record_mistake(self) -> None:
        self.consecutive_mistakes += 1
        logger.debug(f"Consecutive mistakes: {self.consecutive_mistakes}")

    def reset_mistakes(self) -> None:
        self.consecutive_mistakes = 0

    async def ask_for_guidance(self) -> Optional[str]:
        """Ask the user how to proceed after too many mistakes.

        Returns:
            The user's guidance text, or None if they chose to continue as is

        Raises:
            MistakeLimitError: The user declined to continue
        """
        answer = await self.channel.ask(
            AskType.MISTAKE_LIMIT_REACHED,
            responses.mistake_limit_question(self.config.consecutive_mistake_limit),
        )
        if answer.response == AskResponse.NO:
            raise MistakeLimitError(
                "Stopped after too many consecutive mistakes",
                mistakes=self.consecutive_mistakes,
            )

        self.reset_mistakes()
        if answer.response == AskResponse.MESSAGE and answer.text:
            self.channel.say(SayType.USER_FEEDBACK, answer.text, images=answer.images)
            return answer.text
        return None

    # =========================================================================
    # Batch
    # =========================================================================

    async def execute_batch(self, calls: list[ToolCall]) -> BatchOutcome:
        """Run the calls of one assistant turn.

        Raises:
            TaskAbortedError: The task was aborted; the batch must be discarded
            MistakeLimitError: The user gave up at the mistake limit
        """
        outcome = BatchOutcome()
        skip_reason: Optional[str] = None

        for call in calls:
            self.abort_signal.check()

            if skip_reason:
                outcome.tool_results.append(tool_result_block(call.id, skip_reason, is_error=True))
                continue

            if call.name == self.config.completion_tool:
                completed = await self._attempt_completion(call, outcome)
                if completed:
                    return outcome
                skip_reason = (
                    f"Skipped because {self.config.completion_tool} was called "
                    "earlier in this response."
                )
                continue

            rejected = await self._run_call(call, outcome)
            if rejected:
                skip_reason = "Skipped because the user rejected a previous tool call in this response."

        return outcome

    async def _run_call(self, call: ToolCall, outcome: BatchOutcome) -> bool:
        """Run a regular tool call.

        Returns:
            True if the user rejected the call
        """
        results = outcome.tool_results

        verdict = self.repetition.check(call)
        if not verdict.allowed:
            logger.warning(f"Blocked repeated tool call: {call.name}")
            self.record_mistake()
            if self.mistake_limit_reached:
                guidance = await self.ask_for_guidance()
                if guidance:
                    results.append(
                        tool_result_block(call.id, responses.too_many_mistakes(guidance), is_error=True)
                    )
                    return False
            self.channel.say(SayType.ERROR, verdict.message)
            results.append(
                tool_result_block(
                    call.id,
                    responses.tool_repetition(call.name, self.config.repetition_limit),
                    is_error=True,
                )
            )
            return False

        allowed, reason = self.config.is_tool_allowed(call.name)
        if not allowed:
            logger.warning(f"Tool not allowed: {call.name} ({reason})")
            self.record_mistake()
            results.append(
                tool_result_block(call.id, responses.tool_not_allowed(call.name, reason), is_error=True)
            )
            return False

        approval_feedback: Optional[AskResult] = None
        description = responses.describe_tool_call(call.name, call.input)
        if self.config.requires_approval(call.name):
            answer = await self._ask_approval(call, description)
            if answer.response != AskResponse.YES:
                logger.info(f"Tool denied by user: {call.name}")
                if answer.text:
                    self.channel.say(SayType.USER_FEEDBACK, answer.text, images=answer.images)
                    content = responses.tool_denied_with_feedback(answer.text)
                else:
                    content = responses.tool_denied()
                results.append(
                    tool_result_block(call.id, content, is_error=True, images=answer.images)
                )
                return True
            if answer.text:
                self.channel.say(SayType.USER_FEEDBACK, answer.text, images=answer.images)
                approval_feedback = answer
        else:
            self.channel.say(SayType.TOOL, description)

        results.append(await self._execute(call, approval_feedback))
        return False

    async def _ask_approval(self, call: ToolCall, description: str) -> AskResult:
        if call.name in COMMAND_TOOLS:
            return await self.channel.ask(AskType.COMMAND, str(call.input.get("command", "")))
        return await self.channel.ask(AskType.TOOL, description)

    async def _execute(
        self,
        call: ToolCall,
        approval_feedback: Optional[AskResult] = None,
    ) -> dict[str, Any]:
        logger.info(f"Executing tool: {call}")
        try:
            output = await self.abort_signal.guard(self.executor.execute_tool(call))
        except TaskAbortedError:
            raise
        except Exception as e:
            self.record_mistake()
            logger.warning(f"Tool '{call.name}' failed: {e}")
            self.channel.say(SayType.ERROR, f"Error executing {call.name}: {e}")
            return tool_result_block(call.id, responses.tool_error(str(e)), is_error=True)

        self.reset_mistakes()
        self.tool_usage[call.name] = self.tool_usage.get(call.name, 0) + 1

        images: list[str] = []
        question = parse_user_input_request(output)
        if question is not None:
            answer = await self.channel.ask(AskType.FOLLOWUP, question)
            if answer.text or answer.images:
                self.channel.say(SayType.USER_FEEDBACK, answer.text or "", images=answer.images)
            output = responses.followup_answer(answer.text)
            images = list(answer.images)

        if approval_feedback is not None:
            output = f"{output}\n\n{responses.tool_approved_with_feedback(approval_feedback.text)}"
            images.extend(approval_feedback.images)

        return tool_result_block(call.id, output, images=images)

    # =========================================================================
    # Completion
    # =========================================================================

    async def _attempt_completion(self, call: ToolCall, outcome: BatchOutcome) -> bool:
        """Handle the completion tool.

        Returns:
            True if the task is complete
        """
        result = call.input.get("result")
        if not isinstance(result, str) or not result.strip():
            self.record_mistake()
            self.channel.say(
                SayType.ERROR,
                f"The model tried to use {call.name} without a value for the required parameter 'result'. Retrying...",
            )
            outcome.tool_results.append(
                tool_result_block(
                    call.id,
                    responses.missing_tool_parameter(call.name, "result"),
                    is_error=True,
                )
            )
            return False

        self.channel.say(SayType.COMPLETION_RESULT, result)

        if not self.config.confirm_completion:
            outcome.completed = True
            outcome.completion_result = result
            return True

        answer = await self.channel.ask(AskType.COMPLETION_RESULT, "")
        if answer.response == AskResponse.YES:
            outcome.completed = True
            outcome.completion_result = result
            return True

        feedback = answer.text or "The user did not accept this result."
        if answer.text or answer.images:
            self.channel.say(SayType.USER_FEEDBACK, answer.text or "", images=answer.images)
        self.reset_mistakes()
        outcome.tool_results.append(
            tool_result_block(call.id, responses.completion_feedback(feedback), images=answer.images)
        )
        return False
