"""Tests for the conversation loop."""

from collections.abc import Sequence

import pytest

from code_agent.errors import UnknownContentBlockError
from code_agent.models.conversation import Conversation, LoopState
from code_agent.models.llm import LLMMessage, LLMToolDefinition, TextBlock, ToolResultBlock, ToolUseBlock
from code_agent.services.agent import Agent
from code_agent.tools.registry import create_default_registry


class ScriptedGateway:
    """Gateway returning canned model turns and recording what it was sent."""

    def __init__(self, turns: list[LLMMessage]):
        self.turns = list(turns)
        self.sent: list[tuple[LLMMessage, ...]] = []
        self.tool_names: list[list[str]] = []

    async def complete(self, conversation: Conversation, tools: Sequence[LLMToolDefinition]) -> LLMMessage:
        self.sent.append(conversation.turns)
        self.tool_names.append([tool.name for tool in tools])
        return self.turns.pop(0)


class RecordingOutput:
    def __init__(self):
        self.texts: list[str] = []
        self.errors: list[tuple[str, str]] = []

    def model_text(self, text: str) -> None:
        self.texts.append(text)

    def tool_error(self, name: str, message: str) -> None:
        self.errors.append((name, message))


def _reader(*lines: str):
    remaining = list(lines)
    return lambda: remaining.pop(0) if remaining else None


def _text(text: str) -> LLMMessage:
    return LLMMessage(role="assistant", content=[TextBlock(text=text)])


def _tool_use(tool_id: str, name: str, **tool_input) -> ToolUseBlock:
    return ToolUseBlock(id=tool_id, name=name, input=tool_input)


@pytest.fixture
def output():
    return RecordingOutput()


class TestAgentLoop:
    """Tests for Agent.run."""

    @pytest.mark.asyncio
    async def test_end_of_input_without_backend_call(self, tmp_path, output):
        """Test that exhausted input ends the loop before the backend is called."""
        gateway = ScriptedGateway([])
        agent = Agent(gateway, create_default_registry(tmp_path), _reader(), output)

        conversation = await agent.run()

        assert len(conversation) == 0
        assert gateway.sent == []
        assert agent.state is LoopState.AWAITING_HUMAN_INPUT

    @pytest.mark.asyncio
    async def test_text_reply_waits_for_human(self, tmp_path, output):
        """Test that a turn without tool uses returns control to the operator."""
        gateway = ScriptedGateway([_text("Hi there"), _text("Bye")])
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("hello", "goodbye"), output)

        conversation = await agent.run()

        assert output.texts == ["Hi there", "Bye"]
        assert [turn.role for turn in conversation] == ["user", "assistant", "user", "assistant"]
        assert len(gateway.sent) == 2
        assert gateway.tool_names[0] == ["read_file", "list_files", "edit_file"]

    @pytest.mark.asyncio
    async def test_full_history_sent_each_call(self, tmp_path, output):
        """Test that every backend call sees the entire conversation so far."""
        gateway = ScriptedGateway([_text("one"), _text("two")])
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("first", "second"), output)

        await agent.run()

        assert len(gateway.sent[0]) == 1
        assert len(gateway.sent[1]) == 3
        assert gateway.sent[1][0].content[0].text == "first"

    @pytest.mark.asyncio
    async def test_tool_results_follow_tool_uses(self, tmp_path, output):
        """Test that tool results are batched in order into the next user turn."""
        (tmp_path / "a.txt").write_text("alpha")
        (tmp_path / "b.txt").write_text("beta")
        gateway = ScriptedGateway(
            [
                LLMMessage(
                    role="assistant",
                    content=[
                        TextBlock(text="Reading both files."),
                        _tool_use("t1", "read_file", path="a.txt"),
                        _tool_use("t2", "read_file", path="b.txt"),
                    ],
                ),
                _text("Done."),
            ]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("read a and b"), output)

        conversation = await agent.run()

        turns = conversation.turns
        assert [turn.role for turn in turns] == ["user", "assistant", "user", "assistant"]
        results = turns[2].content
        assert all(isinstance(block, ToolResultBlock) for block in results)
        assert [(r.tool_use_id, r.content, r.is_error) for r in results] == [
            ("t1", "alpha", False),
            ("t2", "beta", False),
        ]
        # The second call happened without reading new human input
        assert gateway.sent[1][-1] is turns[2]
        assert output.texts == ["Reading both files.", "Done."]

    @pytest.mark.asyncio
    async def test_unknown_tool_does_not_stop_loop(self, tmp_path, output):
        """Test that a hallucinated tool name is answered and the loop continues."""
        gateway = ScriptedGateway(
            [
                LLMMessage(role="assistant", content=[_tool_use("t1", "delete_everything")]),
                _text("Sorry, that tool does not exist."),
            ]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("clean up"), output)

        conversation = await agent.run()

        result = conversation.turns[2].content[0]
        assert result.tool_use_id == "t1"
        assert result.content == "tool not found"
        assert result.is_error is True
        assert len(gateway.sent) == 2
        assert output.errors == [("delete_everything", "tool not found")]

    @pytest.mark.asyncio
    async def test_chained_tool_turns(self, tmp_path, output):
        """Test several autonomous tool rounds before control returns to the operator."""
        gateway = ScriptedGateway(
            [
                LLMMessage(role="assistant", content=[_tool_use("t1", "edit_file", path="x.txt", old_str="", new_str="1")]),
                LLMMessage(role="assistant", content=[_tool_use("t2", "edit_file", path="x.txt", old_str="1", new_str="2")]),
                _text("x.txt now holds 2"),
            ]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("make x.txt"), output)

        conversation = await agent.run()

        assert [turn.role for turn in conversation] == ["user", "assistant", "user", "assistant", "user", "assistant"]
        assert (tmp_path / "x.txt").read_text() == "2"
        assert conversation.turns[4].content[0].content == "OK"

    @pytest.mark.asyncio
    async def test_tool_failure_reported_to_model(self, tmp_path, output):
        """Test that a failing tool yields an error result rather than an exception."""
        gateway = ScriptedGateway(
            [
                LLMMessage(role="assistant", content=[_tool_use("t1", "read_file", path="missing.txt")]),
                _text("That file does not exist."),
            ]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("show missing.txt"), output)

        conversation = await agent.run()

        result = conversation.turns[2].content[0]
        assert result.is_error is True
        assert result.content == "File not found"

    @pytest.mark.asyncio
    async def test_blank_input_is_skipped(self, tmp_path, output):
        """Test that whitespace-only lines are not sent to the backend."""
        gateway = ScriptedGateway([_text("Hello")])
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("", "   ", "hi"), output)

        conversation = await agent.run()

        assert len(gateway.sent) == 1
        assert conversation.turns[0].content[0].text == "hi"

    @pytest.mark.asyncio
    async def test_unexpected_block_is_fatal(self, tmp_path, output):
        """Test that a model turn with an unhandled block kind aborts the loop."""
        gateway = ScriptedGateway(
            [LLMMessage(role="assistant", content=[ToolResultBlock(tool_use_id="t0", content="?")])]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("hi"), output)

        with pytest.raises(UnknownContentBlockError):
            await agent.run()

    @pytest.mark.asyncio
    async def test_alternation_holds_over_session(self, tmp_path, output):
        """Test that every tool use turn is followed by a matching result turn."""
        gateway = ScriptedGateway(
            [
                LLMMessage(
                    role="assistant",
                    content=[_tool_use("t1", "list_files"), _tool_use("t2", "nope"), _tool_use("t3", "read_file")],
                ),
                _text("ok"),
                LLMMessage(role="assistant", content=[_tool_use("t4", "list_files", path="missing")]),
                _text("done"),
            ]
        )
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("one", "two"), output)

        conversation = await agent.run()

        turns = conversation.turns
        for index, turn in enumerate(turns):
            tool_uses = turn.tool_uses()
            if turn.role == "assistant" and tool_uses:
                following = turns[index + 1]
                assert following.role == "user"
                assert [r.tool_use_id for r in following.content] == [t.id for t in tool_uses]
        assert [turn.role for turn in turns] == ["user", "assistant", "user", "assistant"] * 2

    @pytest.mark.asyncio
    async def test_empty_model_turn_returns_to_operator(self, tmp_path, output):
        """Test that an empty model turn is recorded and control goes back to the operator."""
        gateway = ScriptedGateway([LLMMessage(role="assistant", content=[]), _text("Still here.")])
        agent = Agent(gateway, create_default_registry(tmp_path), _reader("hi", "hello?"), output)

        conversation = await agent.run()

        assert [turn.role for turn in conversation] == ["user", "assistant", "user", "assistant"]
        assert conversation.turns[1].content == []
        assert output.texts == ["Still here."]
