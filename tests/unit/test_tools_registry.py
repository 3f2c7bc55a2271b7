"""Tests for tool base class, registry and the registry-backed executor."""

import pytest

from taskpilot.tools.base import Tool, ToolExecutionError
from taskpilot.tools.builtin import create_default_registry
from taskpilot.tools.executor import RegistryToolExecutor, ToolExecutor
from taskpilot.tools.models import ToolCall, ToolParameter, ToolResult
from taskpilot.tools.registry import ToolRegistry


class SimpleTool(Tool):
    """Simple safe tool for testing."""

    @property
    def name(self) -> str:
        return "simple_tool"

    @property
    def description(self) -> str:
        return "A simple safe tool"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(name="input", type="string", description="Input"),
            ToolParameter(
                name="mode",
                type="string",
                description="Mode",
                required=False,
                default="fast",
                enum=["fast", "slow"],
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        if kwargs["input"] == "fail":
            return ToolResult(
                tool_call_id=kwargs.get("tool_call_id", "unknown"),
                output="partial output",
                error="It failed",
                exit_code=2,
                is_error=True,
            )
        return ToolResult(
            tool_call_id=kwargs.get("tool_call_id", "unknown"),
            output=f"got {kwargs['input']} ({kwargs.get('tool_call_id')})",
        )


class SecondTool(SimpleTool):
    """Second tool sharing SimpleTool behaviour."""

    @property
    def name(self) -> str:
        return "second_tool"


class TestTool:
    """Tests for the Tool base class."""

    def test_input_schema(self):
        schema = SimpleTool().get_input_schema()

        assert schema["required"] == ["input"]
        assert schema["properties"]["mode"] == {
            "type": "string",
            "description": "Mode",
            "enum": ["fast", "slow"],
            "default": "fast",
        }

    def test_tool_definition(self):
        definition = SimpleTool().get_tool_definition()
        assert definition["name"] == "simple_tool"
        assert definition["input_schema"]["type"] == "object"

    def test_validate_input(self):
        tool = SimpleTool()
        tool.validate_input(input="x", tool_call_id="call_1")

        with pytest.raises(ValueError, match="Missing required parameters: input"):
            tool.validate_input()
        with pytest.raises(ValueError, match="Unknown parameters: extra"):
            tool.validate_input(input="x", extra=1)

    def test_resolve_path_against_workspace(self, tmp_path):
        tool = SimpleTool(tmp_path)

        assert tool.resolve_path("a/b.txt") == tmp_path.resolve() / "a" / "b.txt"
        assert tool.resolve_path(str(tmp_path / "c")) == (tmp_path / "c").resolve()


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_lookup(self):
        registry = create_default_registry()

        assert len(registry) == 6
        assert "read_file" in registry
        assert registry.get("missing") is None
        assert registry.names == [
            "read_file",
            "list_files",
            "write_to_file",
            "execute_command",
            "ask_followup_question",
            "attempt_completion",
        ]

    def test_require(self):
        registry = ToolRegistry([SimpleTool()])

        assert registry.require("simple_tool").name == "simple_tool"
        with pytest.raises(ToolExecutionError, match="Unknown tool: other"):
            registry.require("other")

    def test_duplicate_registration(self):
        registry = create_default_registry()

        with pytest.raises(ValueError, match="already registered"):
            registry.register(registry.get("read_file"))

    def test_unregister(self):
        registry = create_default_registry()

        assert registry.unregister("execute_command") is True
        assert registry.unregister("execute_command") is False
        assert "execute_command" not in [d["name"] for d in registry.get_tool_definitions()]

    def test_workspace_is_shared(self, tmp_path):
        registry = create_default_registry(tmp_path)
        assert {t.workspace for t in registry} == {tmp_path.resolve()}


class TestRegistryToolExecutor:
    """Tests for RegistryToolExecutor."""

    @pytest.fixture
    def executor(self):
        registry = create_default_registry()
        registry.register(SimpleTool())
        registry.register(SecondTool())
        return RegistryToolExecutor(registry)

    def test_implements_protocol(self, executor):
        assert isinstance(executor, ToolExecutor)

    @pytest.mark.asyncio
    async def test_execute(self, executor):
        output = await executor.execute_tool(ToolCall(id="call_9", name="simple_tool", input={"input": "x"}))
        assert output == "got x (call_9)"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        with pytest.raises(ToolExecutionError, match="Unknown tool"):
            await executor.execute_tool(ToolCall(id="c", name="nope"))

    @pytest.mark.asyncio
    async def test_invalid_input(self, executor):
        with pytest.raises(ToolExecutionError, match="Invalid input for simple_tool"):
            await executor.execute_tool(ToolCall(id="c", name="simple_tool", input={}))

    @pytest.mark.asyncio
    async def test_failed_result_raises(self, executor):
        with pytest.raises(ToolExecutionError) as exc_info:
            await executor.execute_tool(ToolCall(id="c", name="second_tool", input={"input": "fail"}))

        assert exc_info.value.exit_code == 2
        assert "It failed" in str(exc_info.value)
        assert "partial output" in str(exc_info.value)

    def test_definitions(self, executor):
        names = [d["name"] for d in executor.get_tool_definitions()]
        assert names[-2:] == ["simple_tool", "second_tool"]
