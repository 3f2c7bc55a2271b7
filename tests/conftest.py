"""
Pytest configuration and fixtures for taskpilot tests.
"""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any, Callable, Optional

# Use LiteLLM's bundled model cost map instead of fetching it over the network at import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
from typer.testing import CliRunner

from taskpilot.storage.task_store import FileTaskStore
from taskpilot.task.loop import Task
from taskpilot.task.models import TaskConfig
from taskpilot.task.retry import RetryPolicy
from tests.fakes import TEST_POLL_INTERVAL, FakeModelClient, FakeToolExecutor, RecordingSleep, Responder


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_taskpilot_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Provide an isolated ~/.taskpilot directory and a clean environment."""
    home = tmp_path / ".taskpilot"
    home.mkdir()
    for key in list(os.environ):
        if key.startswith("TASKPILOT_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("TASKPILOT_HOME", str(home))
    yield home


@pytest.fixture
def store(tmp_path: Path) -> FileTaskStore:
    """Provide a file task store in a temporary directory."""
    return FileTaskStore(tmp_path / "tasks")


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def task_config() -> TaskConfig:
    """Task configuration with a short poll interval."""
    return TaskConfig(poll_interval=TEST_POLL_INTERVAL, ask_timeout=5.0)


@pytest.fixture
def make_task(task_config: TaskConfig, recording_sleep: RecordingSleep) -> Callable[..., Task]:
    """Factory wiring a Task to the fakes.

    ``make_task(client, executor=None, responder=None, config_overrides=None, **kwargs)``
    """

    def factory(
        client: FakeModelClient,
        executor: Optional[FakeToolExecutor] = None,
        responder: Optional[Responder] = None,
        config_overrides: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> Task:
        config = task_config.model_copy(update=config_overrides or {})
        responder = responder or Responder()
        task = Task(
            model_client=client,
            executor=executor or FakeToolExecutor(),
            config=config,
            system_prompt="You are a test assistant.",
            event_callback=responder,
            retry_policy=RetryPolicy(
                max_auto_retries=config.max_auto_retries,
                max_delay=config.max_backoff,
                sleep=recording_sleep,
            ),
            **kwargs,
        )
        responder.task = task
        return task

    return factory
