"""
Pydantic configuration schema for Taskpilot.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from taskpilot.task.models import TaskConfig

DEFAULT_MODEL = "anthropic/claude-sonnet-4-20250514"

DEFAULT_SYSTEM_PROMPT = """You are a capable software engineering assistant working inside the \
user's workspace. Accomplish the user's task step by step using the tools provided. \
Use one or more tools per turn and wait for their results before continuing. \
If you need information only the user can give, use ask_followup_question. \
When the task is done, call attempt_completion with a summary of the result. \
Do not end your turn without using a tool unless the task is complete."""

# =============================================================================
# Provider Configuration
# =============================================================================


class ProviderConfig(BaseModel):
    """Provider and model configuration."""

    model_config = ConfigDict(extra="allow")

    default: str = DEFAULT_MODEL
    aliases: dict[str, str] = Field(default_factory=dict)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Task persistence configuration."""

    enable: bool = True
    path: str = "~/.taskpilot/tasks"


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file: str | None = None


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for Taskpilot.

    Configuration can be loaded from YAML files, environment variables,
    and CLI flags, merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
