"""Task state machine and main execution loop."""

import asyncio
import json
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

from taskpilot.providers.exceptions import classify_error, should_retry
from taskpilot.storage.writer import BackgroundWriter
from taskpilot.task import responses
from taskpilot.task.abort import AbortSignal
from taskpilot.task.channel import MessageChannel
from taskpilot.task.exceptions import ApiRequestFailedError, TaskAbortedError, TaskStateError
from taskpilot.task.history import ConversationHistory
from taskpilot.task.models import (
    AbortReason,
    AskResponse,
    AskType,
    ChatMessage,
    HistoryEntry,
    MessageKind,
    MessageRole,
    SayType,
    TaskConfig,
    TaskEvent,
    TaskEventType,
    TaskMetadata,
    TaskStatus,
    TokenUsage,
    text_block,
    tool_result_block,
    user_content,
)
from taskpilot.task.orchestrator import ToolOrchestrator
from taskpilot.task.repetition import RepetitionStrategy
from taskpilot.task.retry import RetryPolicy
from taskpilot.task.stream import AssistantTurn, StreamConsumer
from taskpilot.tools.executor import ToolExecutor

if TYPE_CHECKING:
    from taskpilot.providers.client import ModelClient
    from taskpilot.storage.task_store import TaskStore

logger = logging.getLogger(__name__)

RESUME_ASKS = {AskType.RESUME_TASK.value, AskType.RESUME_COMPLETED_TASK.value}


@dataclass
class TaskResult:
    """Result of a task run."""

    task_id: str
    status: TaskStatus
    completion_result: Optional[str] = None
    error: Optional[str] = None
    api_requests: int = 0
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    tool_usage: dict[str, int] = field(default_factory=dict)
    abort_reason: Optional[AbortReason] = None

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class Task:
    """A single agentic task.

    Lifecycle: IDLE -> PROCESSING -> {COMPLETED, ERROR, ABORTED}. The loop:
    1. Append the pending user/tool turn to the history
    2. Stream an assistant turn from the model client (with retries)
    3. Run its tool calls through the orchestrator
    4. Queue the tool results as the next turn and repeat

    It ends on an accepted completion, a no-tool turn the user does not
    follow up on, an unrecovered error, or abort().

    ``handle_response`` and ``abort`` must be called on the event loop
    running the task; from other threads use ``loop.call_soon_threadsafe``.
    """

    def __init__(
        self,
        model_client: "ModelClient",
        executor: ToolExecutor,
        config: Optional[TaskConfig] = None,
        system_prompt: str = "",
        task_id: Optional[str] = None,
        store: Optional["TaskStore"] = None,
        event_callback: Optional[Callable[[TaskEvent], None]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        repetition: Optional[RepetitionStrategy] = None,
    ):
        """Initialize the task.

        Args:
            model_client: Streams assistant turns
            executor: Runs tool calls
            config: Task settings
            system_prompt: System prompt sent with every request
            task_id: ID of the task. Pass an existing ID to resume it
            store: Optional persistence collaborator
            event_callback: Optional callback receiving TaskEvent updates
            retry_policy: Backoff policy. Defaults to one built from config
            repetition: Repetition strategy for the orchestrator
        """
        self.config = config or TaskConfig()
        self.model_client = model_client
        self.executor = executor
        self.system_prompt = system_prompt
        self.task_id = task_id or uuid.uuid4().hex
        self.store = store
        self.event_callback = event_callback
        self.retry_policy = retry_policy or RetryPolicy(
            max_auto_retries=self.config.max_auto_retries,
            max_delay=self.config.max_backoff,
        )

        self.status = TaskStatus.IDLE
        self.token_usage = TokenUsage()
        self.api_requests = 0
        self.completion_result: Optional[str] = None
        self.error: Optional[str] = None
        self.created_at = datetime.now()

        self.abort_signal = AbortSignal(self.config.poll_interval)
        self.writer = BackgroundWriter(f"task {self.task_id}")
        self.channel = MessageChannel(
            self.abort_signal,
            ask_timeout=self.config.ask_timeout,
            poll_interval=self.config.poll_interval,
            on_message_added=self._on_message_added,
            on_message_updated=self._on_message_updated,
        )
        self.history = ConversationHistory(on_change=self._persist_history)
        self.orchestrator = ToolOrchestrator(
            self.channel,
            executor,
            self.abort_signal,
            config=self.config,
            repetition=repetition,
        )

    # =========================================================================
    # Public state
    # =========================================================================

    @property
    def messages(self) -> list[ChatMessage]:
        return self.channel.messages

    @property
    def pending_ask_ts(self) -> Optional[int]:
        return self.channel.pending_ask_ts

    @property
    def consecutive_mistakes(self) -> int:
        return self.orchestrator.consecutive_mistakes

    def result(self) -> TaskResult:
        return TaskResult(
            task_id=self.task_id,
            status=self.status,
            completion_result=self.completion_result,
            error=self.error,
            api_requests=self.api_requests,
            token_usage=self.token_usage.model_copy(),
            tool_usage=dict(self.orchestrator.tool_usage),
            abort_reason=self.abort_signal.reason,
        )

    # =========================================================================
    # External control
    # =========================================================================

    def handle_response(
        self,
        ask_ts: int,
        response: AskResponse | str,
        text: Optional[str] = None,
        images: Optional[list[str]] = None,
    ) -> bool:
        """Deliver the user's answer to the pending ask.

        Returns:
            True if accepted, False for stale or unexpected responses
        """
        return self.channel.handle_response(ask_ts, response, text, images)

    def abort(self, reason: AbortReason = AbortReason.USER_CANCELLED) -> bool:
        """Cancel the task.

        The task moves to ABORTED immediately. Every suspension point of the
        running loop observes the flag and unwinds.

        Returns:
            False if the task had already finished
        """
        if self.status.is_terminal:
            return False
        logger.info(f"Aborting task {self.task_id} ({reason.value})")
        self.abort_signal.set(reason)
        self._set_status(TaskStatus.ABORTED)
        return True

    # =========================================================================
    # Events and persistence
    # =========================================================================

    def _emit_event(self, event_type: TaskEventType, **kwargs: Any) -> None:
        """Emit an event if callback is configured."""
        if self.event_callback:
            try:
                self.event_callback(TaskEvent(event_type=event_type, task_id=self.task_id, **kwargs))
            except Exception as e:
                logger.warning(f"Event callback error: {e}")

    def _set_status(self, status: TaskStatus) -> bool:
        if self.status.is_terminal:
            return False
        previous = self.status
        self.status = status
        logger.info(f"Task {self.task_id}: {previous.value} -> {status.value}")
        self._emit_event(TaskEventType.STATUS_CHANGED, status=status)
        return True

    def _on_message_added(self, message: ChatMessage) -> None:
        self._emit_event(TaskEventType.MESSAGE_ADDED, message=message)
        self._persist_messages()

    def _on_message_updated(self, message: ChatMessage) -> None:
        self._emit_event(TaskEventType.MESSAGE_UPDATED, message=message)
        if not message.partial:
            self._persist_messages()

    def _on_usage(self, input_tokens: int, output_tokens: int) -> None:
        self.token_usage.add(input_tokens, output_tokens)
        self._emit_event(TaskEventType.TOKEN_USAGE_UPDATED, token_usage=self.token_usage.model_copy())

    def _persist_history(self, entries: list[HistoryEntry]) -> None:
        if self.store is None:
            return
        store = self.store
        self.writer.submit("history", lambda: store.save_history(self.task_id, entries))

    def _persist_messages(self) -> None:
        if self.store is None:
            return
        store = self.store
        messages = self.channel.messages
        self.writer.submit("messages", lambda: store.save_messages(self.task_id, messages))

    def _persist_metadata(self) -> None:
        if self.store is None:
            return
        store = self.store
        metadata = TaskMetadata(
            task_id=self.task_id,
            status=self.status,
            created_at=self.created_at,
            updated_at=datetime.now(),
            api_requests=self.api_requests,
            token_usage=self.token_usage.model_copy(),
            tool_usage=dict(self.orchestrator.tool_usage),
            completion_result=self.completion_result,
            error=self.error,
        )
        self.writer.submit("metadata", lambda: store.save_metadata(self.task_id, metadata))

    # =========================================================================
    # Entry points
    # =========================================================================

    async def start(self, text: str, images: Optional[list[str]] = None) -> TaskResult:
        """Run a new task from the user's instruction.

        Raises:
            TaskStateError: The task was already started
        """
        self._require_idle("start")
        logger.info(f"Starting task {self.task_id}")
        self._set_status(TaskStatus.PROCESSING)

        async def first_turn() -> Optional[HistoryEntry]:
            self.channel.say(SayType.TASK, text, images=images)
            return HistoryEntry.user(f"<task>\n{text}\n</task>", images)

        return await self._run(first_turn)

    async def resume(self) -> TaskResult:
        """Continue a persisted task.

        The saved history and messages are restored and the user is asked
        whether to resume. Free text continues the loop; any other answer
        finishes the task as completed.

        Raises:
            TaskStateError: Not idle, no store, or nothing saved for this ID
        """
        self._require_idle("resume")
        if self.store is None:
            raise TaskStateError("Cannot resume without a task store", task_id=self.task_id)

        history = await self.store.load_history(self.task_id)
        messages = await self.store.load_messages(self.task_id)
        if not history and not messages:
            raise TaskStateError(f"No saved state for task {self.task_id}", task_id=self.task_id)

        logger.info(f"Resuming task {self.task_id} ({len(history)} turns)")
        self._set_status(TaskStatus.PROCESSING)

        async def first_turn() -> Optional[HistoryEntry]:
            return await self._prepare_resume(history, messages)

        return await self._run(first_turn)

    def _require_idle(self, action: str) -> None:
        if self.status != TaskStatus.IDLE:
            raise TaskStateError(
                f"Cannot {action} task in state {self.status.value}",
                task_id=self.task_id,
            )

    async def _prepare_resume(
        self,
        history: list[HistoryEntry],
        messages: list[ChatMessage],
    ) -> Optional[HistoryEntry]:
        while messages and messages[-1].kind == MessageKind.ASK.value and messages[-1].type in RESUME_ASKS:
            messages = messages[:-1]
        self.channel.overwrite(messages)

        was_completed = bool(messages) and messages[-1].type == AskType.COMPLETION_RESULT.value
        ask_type = AskType.RESUME_COMPLETED_TASK if was_completed else AskType.RESUME_TASK

        answer = await self.channel.ask(ask_type)
        if answer.response != AskResponse.MESSAGE or not (answer.text or answer.images):
            self.history.overwrite(history)
            return None

        self.channel.say(SayType.USER_FEEDBACK, answer.text or "", images=answer.images)
        notice = responses.resume_notice(was_completed)
        feedback = f"{notice}\n\n{responses.user_message(answer.text or '')}"

        # Tool calls of an interrupted batch get results in the same turn
        carried: list[dict[str, Any]] = []
        last = history[-1] if history else None
        if last is not None and last.role == MessageRole.ASSISTANT.value:
            carried = [
                tool_result_block(block["id"], responses.tool_interrupted(), is_error=True)
                for block in last.blocks_of("tool_use")
            ]
        elif last is not None:
            # Interrupted before the model answered, fold into the new turn
            history = history[:-1]
            carried = list(last.content)

        self.history.overwrite(history)
        content = carried + user_content(feedback, answer.images)
        if any(block.get("type") == "tool_result" for block in carried):
            return HistoryEntry.tool(content)
        return HistoryEntry(role=MessageRole.USER, content=content)

    # =========================================================================
    # Loop
    # =========================================================================

    async def _run(self, first_turn) -> TaskResult:
        try:
            entry = await first_turn()
            if entry is None:
                self._complete(None)
            else:
                await self._loop(entry)
        except TaskAbortedError:
            logger.info(f"Task {self.task_id} aborted")
            self._set_status(TaskStatus.ABORTED)
        except asyncio.CancelledError:
            self.abort(AbortReason.SHUTDOWN)
            raise
        except Exception as e:
            if self.abort_signal.aborted:
                self._set_status(TaskStatus.ABORTED)
            else:
                logger.error(f"Task {self.task_id} failed: {e}", exc_info=True)
                self.error = str(e)
                self.channel.say(SayType.ERROR, str(e))
                self._set_status(TaskStatus.ERROR)
        finally:
            self.channel.finalize_partials()
            self._persist_metadata()
            await self.writer.drain()

        return self.result()

    def _complete(self, completion_result: Optional[str]) -> None:
        self.completion_result = completion_result
        self._set_status(TaskStatus.COMPLETED)

    async def _loop(self, first: HistoryEntry) -> None:
        queue: deque[HistoryEntry] = deque([first])

        while queue:
            self.abort_signal.check()
            entry = queue.popleft()

            if self.orchestrator.mistake_limit_reached:
                guidance = await self.orchestrator.ask_for_guidance()
                if guidance:
                    entry = entry.model_copy(deep=True)
                    entry.content.append(text_block(responses.too_many_mistakes(guidance)))

            self.abort_signal.check()
            self.history.append(entry)

            turn = await self._request_assistant_turn()
            self.abort_signal.check()

            if turn.is_empty:
                self.orchestrator.record_mistake()
                queue.append(HistoryEntry.user(responses.no_tools_used(self.config.completion_tool)))
                continue

            if not turn.tool_calls:
                next_entry = await self._handle_no_tool_turn(turn)
                if next_entry is None:
                    self._complete(turn.text or None)
                    return
                queue.append(next_entry)
                continue

            outcome = await self.orchestrator.execute_batch(turn.tool_calls)
            self.abort_signal.check()

            if outcome.completed:
                self._complete(outcome.completion_result)
                return

            queue.append(HistoryEntry.tool(outcome.tool_results))

    def _tool_definitions(self) -> list[dict[str, Any]]:
        definitions = []
        for definition in self.executor.get_tool_definitions():
            allowed, _ = self.config.is_tool_allowed(definition.get("name", ""))
            if allowed:
                definitions.append(definition)
        return definitions

    async def _request_assistant_turn(self) -> AssistantTurn:
        """Stream one assistant turn, retrying transport failures.

        Retriable failures are retried automatically with exponential
        backoff up to ``max_auto_retries`` times; after that, or for
        non-retriable failures, the user is asked whether to retry.

        Raises:
            ApiRequestFailedError: The user declined to retry
        """
        attempt = 0
        while True:
            self.abort_signal.check()
            self.api_requests += 1
            say_type = SayType.API_REQ_RETRIED if attempt else SayType.API_REQ_STARTED
            self.channel.say(say_type, json.dumps({"request": self.api_requests, "attempt": attempt}))

            consumer = StreamConsumer(self.channel, self.history, self.abort_signal, on_usage=self._on_usage)
            try:
                stream = self.model_client.create_message(
                    self.system_prompt,
                    self.history.snapshot(),
                    self._tool_definitions(),
                )
                turn = await consumer.consume(stream)
            except TaskAbortedError:
                raise
            except Exception as e:
                failure = classify_error(e)
                logger.warning(
                    f"Model request failed ({failure.value}, state={consumer.state.value}, "
                    f"attempt={attempt}): {e}"
                )

                if should_retry(failure) and self.retry_policy.should_auto_retry(attempt):
                    delay = self.retry_policy.delay_for(attempt)
                    self.channel.say(
                        SayType.API_REQ_RETRY_DELAYED,
                        responses.retry_countdown(attempt + 1, delay, str(e)),
                    )
                    await self.retry_policy.wait(attempt, self.abort_signal)
                    attempt += 1
                    continue

                answer = await self.channel.ask(AskType.API_REQ_FAILED, responses.api_request_failed(str(e)))
                if answer.response != AskResponse.YES:
                    raise ApiRequestFailedError(
                        f"Model request failed: {e}",
                        attempts=attempt + 1,
                    ) from e
                attempt += 1
                continue

            if turn.is_empty:
                self.channel.say(SayType.ERROR, "The model returned an empty response.")
            self.channel.say(
                SayType.API_REQ_FINISHED,
                json.dumps({"tokensIn": turn.input_tokens, "tokensOut": turn.output_tokens}),
            )
            return turn

    async def _handle_no_tool_turn(self, turn: AssistantTurn) -> Optional[HistoryEntry]:
        """Decide what follows an assistant turn without tool calls.

        The user is always asked; ``confirm_completion`` only covers the
        completion tool's result.

        Returns:
            The next user turn, or None when the task is complete
        """
        answer = await self.channel.ask(AskType.FOLLOWUP, turn.text or None)
        if answer.response != AskResponse.MESSAGE or not (answer.text or answer.images):
            return None

        self.orchestrator.reset_mistakes()
        self.channel.say(SayType.USER_FEEDBACK, answer.text or "", images=answer.images)
        return HistoryEntry.user(responses.user_message(answer.text or ""), answer.images)
