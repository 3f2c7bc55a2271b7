"""Tests for the tool orchestrator."""

import asyncio

import pytest

from taskpilot.task.abort import AbortSignal
from taskpilot.task.channel import MessageChannel
from taskpilot.task.exceptions import MistakeLimitError
from taskpilot.task.models import AskResponse, ApprovalMode, TaskConfig
from taskpilot.task.orchestrator import ToolOrchestrator
from taskpilot.task.repetition import RepetitionVerdict
from taskpilot.tools.models import ToolCall
from tests.fakes import TEST_POLL_INTERVAL, FakeToolExecutor


def call(name: str, tool_id: str = "toolu_1", **arguments) -> ToolCall:
    return ToolCall(id=tool_id, name=name, input=arguments)


class AutoAnswer:
    """Answers every ask of a channel with scripted responses."""

    def __init__(self, channel: MessageChannel, *answers):
        self.channel = channel
        self.answers = list(answers)
        self.asked: list[str] = []

    def __call__(self, message) -> None:
        if message.kind != "ask" or message.partial:
            return
        self.asked.append(message.type)
        response, text = self.answers.pop(0) if self.answers else (AskResponse.YES, None)
        asyncio.get_running_loop().call_soon(self.channel.handle_response, message.ts, response, text)


def build(config=None, outputs=None, answers=(), repetition=None):
    signal = AbortSignal(TEST_POLL_INTERVAL)
    holder = {}
    channel = MessageChannel(
        signal,
        poll_interval=TEST_POLL_INTERVAL,
        on_message_added=lambda m: holder["answer"](m),
    )
    holder["answer"] = AutoAnswer(channel, *answers)
    executor = FakeToolExecutor(outputs)
    orchestrator = ToolOrchestrator(
        channel,
        executor,
        signal,
        config=config or TaskConfig(poll_interval=TEST_POLL_INTERVAL),
        repetition=repetition,
    )
    return orchestrator, executor, holder["answer"]


class TestApproval:
    """Tests for approval handling."""

    @pytest.mark.asyncio
    async def test_denial_leaves_mistakes_unchanged(self):
        orchestrator, executor, answers = build(answers=[(AskResponse.NO, None)])
        orchestrator.consecutive_mistakes = 2

        outcome = await orchestrator.execute_batch([call("write_to_file", path="a", content="b")])

        assert orchestrator.consecutive_mistakes == 2
        assert executor.calls == []
        assert answers.asked == ["tool"]
        [block] = outcome.tool_results
        assert block["is_error"] is True
        assert block["content"] == "The user denied this operation."

    @pytest.mark.asyncio
    async def test_read_only_tools_run_without_asking(self):
        orchestrator, executor, answers = build()

        outcome = await orchestrator.execute_batch([call("read_file", path="a")])

        assert answers.asked == []
        assert [c.name for c in executor.calls] == ["read_file"]
        assert orchestrator.tool_usage == {"read_file": 1}
        assert outcome.completed is False

    @pytest.mark.asyncio
    async def test_custom_approval_list(self):
        config = TaskConfig(poll_interval=TEST_POLL_INTERVAL, approval_required_tools=["read_file"])
        orchestrator, _, answers = build(config=config)

        await orchestrator.execute_batch([call("read_file", path="a"), call("write_to_file", "t2")])

        assert answers.asked == ["tool"]

    @pytest.mark.asyncio
    async def test_disabled_mode_blocks_everything_but_completion(self):
        config = TaskConfig(poll_interval=TEST_POLL_INTERVAL, approval_mode=ApprovalMode.DISABLED)
        orchestrator, executor, _ = build(config=config)

        outcome = await orchestrator.execute_batch([call("read_file"), call("attempt_completion", "t2", result="ok")])

        assert executor.calls == []
        assert outcome.tool_results[0]["is_error"] is True
        assert outcome.completed is True
        assert outcome.completion_result == "ok"


class TestMistakes:
    """Tests for the consecutive mistake counter."""

    @pytest.mark.asyncio
    async def test_error_counts_and_success_resets(self):
        orchestrator, _, _ = build(outputs={"broken": ValueError("nope")})

        await orchestrator.execute_batch([call("broken", "t1"), call("broken", "t2", x=1)])
        assert orchestrator.consecutive_mistakes == 2

        await orchestrator.execute_batch([call("read_file", "t3")])
        assert orchestrator.consecutive_mistakes == 0

    @pytest.mark.asyncio
    async def test_disallowed_tool_is_a_mistake(self):
        config = TaskConfig(poll_interval=TEST_POLL_INTERVAL, allowed_tools=["read_file"])
        orchestrator, executor, _ = build(config=config)

        outcome = await orchestrator.execute_batch([call("list_files")])

        assert executor.calls == []
        assert orchestrator.consecutive_mistakes == 1
        assert "cannot be used" in outcome.tool_results[0]["content"]

    def test_limit_of_zero_never_triggers(self):
        config = TaskConfig(poll_interval=TEST_POLL_INTERVAL, consecutive_mistake_limit=0)
        orchestrator, _, _ = build(config=config)
        orchestrator.consecutive_mistakes = 50

        assert orchestrator.mistake_limit_reached is False

    @pytest.mark.asyncio
    async def test_guidance_resets_counter(self):
        orchestrator, _, _ = build(answers=[(AskResponse.MESSAGE, "try grep")])
        orchestrator.consecutive_mistakes = 3

        guidance = await orchestrator.ask_for_guidance()

        assert guidance == "try grep"
        assert orchestrator.consecutive_mistakes == 0

    @pytest.mark.asyncio
    async def test_declined_guidance_raises(self):
        orchestrator, _, _ = build(answers=[(AskResponse.NO, None)])
        orchestrator.consecutive_mistakes = 3

        with pytest.raises(MistakeLimitError) as exc_info:
            await orchestrator.ask_for_guidance()

        assert exc_info.value.mistakes == 3

    @pytest.mark.asyncio
    async def test_custom_repetition_strategy(self):
        class RejectAll:
            def check(self, tool_call):
                return RepetitionVerdict(allowed=False, message="no repeats here")

            def reset(self):
                pass

        orchestrator, executor, _ = build(repetition=RejectAll())

        outcome = await orchestrator.execute_batch([call("read_file")])

        assert executor.calls == []
        assert outcome.tool_results[0]["is_error"] is True
        assert orchestrator.consecutive_mistakes == 1


class TestCompletion:
    """Tests for the completion tool inside a batch."""

    @pytest.mark.asyncio
    async def test_accepted_completion_stops_the_batch(self):
        orchestrator, executor, answers = build()

        outcome = await orchestrator.execute_batch(
            [call("attempt_completion", "c1", result="Done"), call("read_file", "t2")]
        )

        assert outcome.completed is True
        assert outcome.completion_result == "Done"
        assert answers.asked == ["completion_result"]
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_declined_completion_becomes_feedback(self):
        orchestrator, _, _ = build(answers=[(AskResponse.NO, None)])
        orchestrator.consecutive_mistakes = 2

        outcome = await orchestrator.execute_batch([call("attempt_completion", "c1", result="Done")])

        assert outcome.completed is False
        assert "did not accept" in outcome.tool_results[0]["content"]
        assert orchestrator.consecutive_mistakes == 0

    @pytest.mark.asyncio
    async def test_blank_result_is_missing(self):
        orchestrator, _, answers = build()

        outcome = await orchestrator.execute_batch([call("attempt_completion", "c1", result="   ")])

        assert outcome.completed is False
        assert answers.asked == []
        assert orchestrator.consecutive_mistakes == 1
        assert "'result'" in outcome.tool_results[0]["content"]
