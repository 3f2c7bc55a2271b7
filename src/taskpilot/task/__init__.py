"""Agentic task execution: history, ask/say channel, streaming, tools and the main loop."""

from taskpilot.task.abort import AbortSignal
from taskpilot.task.channel import MessageChannel
from taskpilot.task.exceptions import (
    ApiRequestFailedError,
    AskInProgressError,
    AskTimeoutError,
    MistakeLimitError,
    StreamFragmentError,
    TaskAbortedError,
    TaskError,
    TaskStateError,
)
from taskpilot.task.history import ConversationHistory
from taskpilot.task.loop import Task, TaskResult
from taskpilot.task.models import (
    AbortReason,
    ApprovalMode,
    AskResponse,
    AskResult,
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
)
from taskpilot.task.orchestrator import BatchOutcome, ToolOrchestrator
from taskpilot.task.repetition import ConsecutiveRepetitionDetector, RepetitionStrategy
from taskpilot.task.retry import RetryPolicy
from taskpilot.task.stream import AssistantTurn, ConsumerState, StreamConsumer

__all__ = [
    # Loop
    "Task",
    "TaskResult",
    # Components
    "AbortSignal",
    "AssistantTurn",
    "BatchOutcome",
    "ConsecutiveRepetitionDetector",
    "ConsumerState",
    "ConversationHistory",
    "MessageChannel",
    "RepetitionStrategy",
    "RetryPolicy",
    "StreamConsumer",
    "ToolOrchestrator",
    # Models
    "AbortReason",
    "ApprovalMode",
    "AskResponse",
    "AskResult",
    "AskType",
    "ChatMessage",
    "HistoryEntry",
    "MessageKind",
    "MessageRole",
    "SayType",
    "TaskConfig",
    "TaskEvent",
    "TaskEventType",
    "TaskMetadata",
    "TaskStatus",
    "TokenUsage",
    # Exceptions
    "ApiRequestFailedError",
    "AskInProgressError",
    "AskTimeoutError",
    "MistakeLimitError",
    "StreamFragmentError",
    "TaskAbortedError",
    "TaskError",
    "TaskStateError",
]
