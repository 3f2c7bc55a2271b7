"""
LiteLLM model client for Taskpilot.

Streams completions through LiteLLM and converts them into the fragment
stream consumed by the task loop.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import litellm
from litellm import acompletion

from taskpilot.providers.models import StreamFragment
from taskpilot.task.models import HistoryEntry, MessageRole

if TYPE_CHECKING:
    from taskpilot.config.schema import ProviderConfig

logger = logging.getLogger(__name__)

# Configure LiteLLM defaults
litellm.drop_params = True  # Drop unsupported params per-provider


def to_openai_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert Anthropic-style tool definitions to OpenAI function tools.

    Args:
        tools: Definitions with ``name``, ``description`` and ``input_schema``

    Returns:
        LiteLLM ``tools`` parameter
    """
    converted = []
    for tool in tools:
        if tool.get("type") == "function":
            converted.append(tool)
            continue
        converted.append(
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get(
                        "input_schema", {"type": "object", "properties": {}}
                    ),
                },
            }
        )
    return converted


def _image_url(block: dict[str, Any]) -> str:
    source = block.get("source", {})
    return f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"


def _user_content(blocks: list[dict[str, Any]]) -> str | list[dict[str, Any]]:
    """Plain string for text-only content, content parts when images exist."""
    if all(b.get("type") == "text" for b in blocks):
        return "\n\n".join(b.get("text", "") for b in blocks)

    parts: list[dict[str, Any]] = []
    for block in blocks:
        if block.get("type") == "text":
            parts.append({"type": "text", "text": block.get("text", "")})
        elif block.get("type") == "image":
            parts.append({"type": "image_url", "image_url": {"url": _image_url(block)}})
    return parts


def to_litellm_messages(
    system_prompt: str,
    history: list[HistoryEntry],
) -> list[dict[str, Any]]:
    """Convert conversation history to LiteLLM (OpenAI format) messages.

    Assistant ``tool_use`` blocks become ``tool_calls``. Each tool entry
    becomes one ``tool`` message per result, followed by a user message for
    any text or images that accompanied the results.
    """
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    for entry in history:
        role = MessageRole(entry.role)

        if role == MessageRole.USER:
            extra = [b for b in entry.content if b.get("type") in ("text", "image")]
            if extra:
                messages.append({"role": "user", "content": _user_content(extra)})

        elif role == MessageRole.ASSISTANT:
            text = "".join(b.get("text", "") for b in entry.blocks_of("text"))
            message: dict[str, Any] = {"role": "assistant", "content": text or None}
            tool_calls = [
                {
                    "id": b["id"],
                    "type": "function",
                    "function": {
                        "name": b["name"],
                        "arguments": json.dumps(b.get("input", {})),
                    },
                }
                for b in entry.blocks_of("tool_use")
            ]
            if tool_calls:
                message["tool_calls"] = tool_calls
            messages.append(message)

        else:
            trailing: list[dict[str, Any]] = []
            for block in entry.content:
                if block.get("type") == "tool_result":
                    content = block.get("content", "")
                    if block.get("is_error"):
                        content = f"[ERROR] {content}"
                    messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": block["tool_use_id"],
                            "content": content,
                        }
                    )
                    for image in block.get("images", []):
                        trailing.append({"type": "image_url", "image_url": {"url": image}})
                elif block.get("type") == "text":
                    trailing.append({"type": "text", "text": block.get("text", "")})
                elif block.get("type") == "image":
                    trailing.append({"type": "image_url", "image_url": {"url": _image_url(block)}})
            if trailing:
                if all(p["type"] == "text" for p in trailing):
                    messages.append(
                        {"role": "user", "content": "\n\n".join(p["text"] for p in trailing)}
                    )
                else:
                    messages.append({"role": "user", "content": trailing})

    return messages


class LiteLLMModelClient:
    """
    Model client backed by LiteLLM streaming completions.

    Text deltas are forwarded as they arrive. Tool call deltas are
    accumulated by index and emitted once the stream ends.
    """

    def __init__(self, config: "ProviderConfig", model: str | None = None):
        """
        Initialize the client.

        Args:
            config: Provider configuration.
            model: Model name or alias overriding the configured default.
        """
        self.config = config
        self.model = self._resolve_model(model)

    def _resolve_model(self, model: str | None) -> str:
        """
        Resolve model name from alias or default.

        Args:
            model: Model name, alias, or None for default.

        Returns:
            The fully resolved model identifier.
        """
        if model is None or model == "default":
            return self.config.default

        if model in self.config.aliases:
            resolved = self.config.aliases[model]
            logger.debug(f"Resolved alias '{model}' to '{resolved}'")
            return resolved

        return model

    def build_request(
        self,
        system_prompt: str,
        history: list[HistoryEntry],
        tools: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Build the acompletion keyword arguments."""
        request_kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": to_litellm_messages(system_prompt, history),
            "temperature": self.config.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if self.config.max_tokens:
            request_kwargs["max_tokens"] = self.config.max_tokens
        if tools:
            request_kwargs["tools"] = to_openai_tools(tools)
        return request_kwargs

    async def create_message(
        self,
        system_prompt: str,
        history: list[HistoryEntry],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StreamFragment]:
        """
        Stream a response for the conversation.

        Yields:
            StreamFragment for text deltas, usage and completed tool calls.
        """
        request_kwargs = self.build_request(system_prompt, history, tools)
        logger.info(f"Requesting completion from {self.model} ({len(history)} turns)")

        response = await acompletion(**request_kwargs)
        pending_calls: dict[int, dict[str, Any]] = {}

        async for chunk in response:  # type: ignore
            usage = getattr(chunk, "usage", None)
            if usage:
                yield StreamFragment.usage(
                    input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                )

            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta

            if delta.content:
                yield StreamFragment.text_delta(delta.content)

            for call in getattr(delta, "tool_calls", None) or []:
                index = call.index if call.index is not None else len(pending_calls)
                slot = pending_calls.setdefault(index, {"id": None, "name": "", "arguments": ""})
                if call.id:
                    slot["id"] = call.id
                if call.function is not None:
                    if call.function.name:
                        slot["name"] = call.function.name
                    if call.function.arguments:
                        slot["arguments"] += call.function.arguments

        for index in sorted(pending_calls):
            slot = pending_calls[index]
            yield StreamFragment.tool_use(
                name=slot["name"],
                arguments=slot["arguments"] or "{}",
                tool_id=slot["id"],
            )
