"""
Task exceptions for Taskpilot.

Defines the errors raised by the task execution loop.
"""


class TaskError(Exception):
    """Base exception for task errors."""

    def __init__(self, message: str, task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class TaskAbortedError(TaskError):
    """The task was cancelled. Not a failure; ends in the aborted state."""

    pass


class TaskStateError(TaskError):
    """An operation is not valid in the task's current state."""

    pass


class AskTimeoutError(TaskError):
    """No response arrived for a pending ask in time."""

    def __init__(self, message: str, ask_ts: int, timeout: float):
        super().__init__(message)
        self.ask_ts = ask_ts
        self.timeout = timeout


class AskInProgressError(TaskError):
    """A second full ask was raised while one is still pending."""

    pass


class ApiRequestFailedError(TaskError):
    """The model request failed and the user declined to retry."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class MistakeLimitError(TaskError):
    """The consecutive mistake limit was reached and the user gave up."""

    def __init__(self, message: str, mistakes: int = 0):
        super().__init__(message)
        self.mistakes = mistakes


class StreamFragmentError(TaskError):
    """The model stream produced an error fragment."""

    pass
