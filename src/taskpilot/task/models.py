"""Data models for task execution."""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    """Task lifecycle state."""

    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.ABORTED)


class MessageKind(str, Enum):
    """Whether a chat message blocks for a response."""

    ASK = "ask"
    SAY = "say"


class MessageRole(str, Enum):
    """Role of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class AskType(str, Enum):
    """Blocking prompt types."""

    FOLLOWUP = "followup"
    COMMAND = "command"
    TOOL = "tool"
    COMPLETION_RESULT = "completion_result"
    API_REQ_FAILED = "api_req_failed"
    RESUME_TASK = "resume_task"
    RESUME_COMPLETED_TASK = "resume_completed_task"
    MISTAKE_LIMIT_REACHED = "mistake_limit_reached"


class SayType(str, Enum):
    """Informational message types."""

    TASK = "task"
    TEXT = "text"
    TOOL = "tool"
    ERROR = "error"
    API_REQ_STARTED = "api_req_started"
    API_REQ_FINISHED = "api_req_finished"
    API_REQ_RETRIED = "api_req_retried"
    API_REQ_RETRY_DELAYED = "api_req_retry_delayed"
    COMPLETION_RESULT = "completion_result"
    USER_FEEDBACK = "user_feedback"

    @property
    def role(self) -> "MessageRole":
        """Who the message speaks for."""
        if self in (SayType.TASK, SayType.USER_FEEDBACK):
            return MessageRole.USER
        return MessageRole.ASSISTANT


class AskResponse(str, Enum):
    """How the user answered a pending ask."""

    YES = "yes_button_clicked"
    NO = "no_button_clicked"
    MESSAGE = "message_response"


class AbortReason(str, Enum):
    """Why a task was aborted."""

    USER_CANCELLED = "user_cancelled"
    SHUTDOWN = "shutdown"


class ApprovalMode(str, Enum):
    """Tool execution approval mode."""

    AUTO = "auto"  # Nothing is asked
    MANUAL = "manual"  # Tools on the approval list are asked
    DISABLED = "disabled"  # No tools allowed


# Tools that mutate the workspace and need approval in manual mode
DEFAULT_APPROVAL_TOOLS = [
    "write_to_file",
    "apply_diff",
    "edit_file",
    "insert_content",
    "search_and_replace",
    "execute_command",
]


def now_ms() -> int:
    """Current wall clock in milliseconds."""
    return int(time.time() * 1000)


# =============================================================================
# Content blocks
# =============================================================================


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def image_block(data_url: str) -> dict[str, Any]:
    """Build an image block from a ``data:<mime>;base64,<data>`` URL."""
    media_type = "image/png"
    data = data_url
    if data_url.startswith("data:") and "," in data_url:
        header, data = data_url.split(",", 1)
        media_type = header[5:].split(";", 1)[0] or media_type
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


def tool_use_block(tool_id: str, name: str, input: dict[str, Any]) -> dict[str, Any]:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": input}


def tool_result_block(
    tool_use_id: str,
    content: str,
    is_error: bool = False,
    images: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Build a tool result block.

    Args:
        tool_use_id: ID of the tool_use block this answers
        content: Result text
        is_error: Whether the tool failed or was rejected
        images: Optional data URLs attached by the user

    Returns:
        Content block dict
    """
    block: dict[str, Any] = {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": content,
    }
    if is_error:
        block["is_error"] = True
    if images:
        block["images"] = list(images)
    return block


def user_content(text: str, images: Optional[list[str]] = None) -> list[dict[str, Any]]:
    """Text plus optional images as a list of content blocks."""
    blocks = [text_block(text)]
    for image in images or []:
        blocks.append(image_block(image))
    return blocks


# =============================================================================
# Messages and history
# =============================================================================


class ChatMessage(BaseModel):
    """A user-facing ask/say message.

    Messages are immutable once ``partial`` is False. A partial message is
    updated in place by the channel until it is finalized.
    """

    ts: int = Field(description="Timestamp in ms, strictly increasing per task")
    kind: MessageKind = Field(description="ask or say")
    type: str = Field(description="AskType or SayType value")
    role: MessageRole = Field(default=MessageRole.ASSISTANT)
    text: Optional[str] = Field(default=None)
    images: list[str] = Field(default_factory=list)
    partial: bool = Field(default=False)
    progress: Optional[str] = Field(
        default=None,
        description="Optional progress annotation (e.g. retry countdown)",
    )

    model_config = ConfigDict(use_enum_values=True)


class HistoryEntry(BaseModel):
    """One {role, content} turn sent to the model client."""

    role: MessageRole
    content: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)

    @classmethod
    def user(cls, text: str, images: Optional[list[str]] = None) -> "HistoryEntry":
        return cls(role=MessageRole.USER, content=user_content(text, images))

    @classmethod
    def tool(cls, results: list[dict[str, Any]]) -> "HistoryEntry":
        return cls(role=MessageRole.TOOL, content=list(results))

    def blocks_of(self, block_type: str) -> list[dict[str, Any]]:
        return [b for b in self.content if b.get("type") == block_type]


class TokenUsage(BaseModel):
    """Cumulative token counters. Never decremented."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, input_tokens: int = 0, output_tokens: int = 0) -> None:
        self.input_tokens += max(0, input_tokens or 0)
        self.output_tokens += max(0, output_tokens or 0)


class AskResult(BaseModel):
    """Resolution of a pending ask."""

    response: AskResponse
    text: Optional[str] = None
    images: list[str] = Field(default_factory=list)


# =============================================================================
# Events
# =============================================================================


class TaskEventType(str, Enum):
    """Task events delivered to the event callback."""

    STATUS_CHANGED = "status_changed"
    MESSAGE_ADDED = "message_added"
    MESSAGE_UPDATED = "message_updated"
    TOKEN_USAGE_UPDATED = "token_usage_updated"


class TaskEvent(BaseModel):
    """Event emitted during task execution for UI updates."""

    event_type: TaskEventType = Field(description="Type of event")
    task_id: str = Field(description="Task the event belongs to")
    status: Optional[TaskStatus] = Field(default=None)
    message: Optional[ChatMessage] = Field(default=None)
    token_usage: Optional[TokenUsage] = Field(default=None)
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


# =============================================================================
# Configuration
# =============================================================================


class TaskConfig(BaseModel):
    """Configuration for task execution."""

    approval_mode: ApprovalMode = Field(
        default=ApprovalMode.MANUAL,
        description="Tool approval mode: auto, manual, or disabled",
    )

    allowed_tools: Optional[list[str]] = Field(
        default=None,
        description="Whitelist of allowed tool names (None = all)",
    )

    blocked_tools: Optional[list[str]] = Field(
        default=None,
        description="Blacklist of blocked tool names",
    )

    approval_required_tools: list[str] = Field(
        default_factory=lambda: list(DEFAULT_APPROVAL_TOOLS),
        description="Tools that need user approval in manual mode",
    )

    consecutive_mistake_limit: int = Field(
        default=3,
        ge=0,
        description="Consecutive mistakes before asking the user (0 = unlimited)",
    )

    repetition_limit: int = Field(
        default=3,
        ge=0,
        description="Identical consecutive tool calls allowed (0 = unlimited)",
    )

    ask_timeout: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds to wait for a response to an ask",
    )

    poll_interval: float = Field(
        default=0.1,
        gt=0,
        description="Seconds between abort checks while suspended",
    )

    max_auto_retries: int = Field(
        default=3,
        ge=0,
        description="Automatic model request retries before asking the user",
    )

    max_backoff: float = Field(
        default=600.0,
        gt=0,
        description="Upper bound of the retry backoff in seconds",
    )

    confirm_completion: bool = Field(
        default=True,
        description="Ask the user to confirm completion results",
    )

    completion_tool: str = Field(
        default="attempt_completion",
        description="Name of the tool that ends the task",
    )

    def is_tool_allowed(self, tool_name: str) -> tuple[bool, str]:
        """Check if a tool is allowed to execute.

        Args:
            tool_name: Name of the tool

        Returns:
            Tuple of (allowed, reason) - reason is empty string if allowed
        """
        if tool_name == self.completion_tool:
            return True, ""

        if self.approval_mode == ApprovalMode.DISABLED:
            return False, "Tool use is disabled"

        if self.blocked_tools and tool_name in self.blocked_tools:
            return False, f"Tool '{tool_name}' is blocked"

        if self.allowed_tools and tool_name not in self.allowed_tools:
            return False, f"Tool '{tool_name}' not in allowed list"

        return True, ""

    def requires_approval(self, tool_name: str) -> bool:
        """Whether a tool call must be approved by the user first."""
        if self.approval_mode != ApprovalMode.MANUAL:
            return False
        return tool_name in self.approval_required_tools


class TaskMetadata(BaseModel):
    """Summary of a task, persisted when it finishes."""

    task_id: str
    status: TaskStatus
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    api_requests: int = 0
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    tool_usage: dict[str, int] = Field(default_factory=dict)
    completion_result: Optional[str] = None
    error: Optional[str] = None
