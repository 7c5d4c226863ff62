"""Conversation transcript and loop state models."""

from enum import Enum

from code_agent.errors import ConversationStateError
from code_agent.models.llm import LLMMessage, TextBlock, ToolResultBlock, ToolUseBlock


class LoopState(str, Enum):
    """States of the conversation loop."""

    AWAITING_HUMAN_INPUT = "awaiting_human_input"
    AWAITING_MODEL_RESPONSE = "awaiting_model_response"
    DISPATCHING_TOOLS = "dispatching_tools"


class Conversation:
    """Append-only transcript of turns exchanged with the backend.

    Turns alternate between ``user`` and ``assistant``, starting with ``user``.
    Tool use blocks in an assistant turn must be answered, in order and by id,
    by the tool results of the very next user turn. Any append that would
    break this raises ConversationStateError.
    """

    def __init__(self) -> None:
        self._turns: list[LLMMessage] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(self._turns)

    @property
    def turns(self) -> tuple[LLMMessage, ...]:
        return tuple(self._turns)

    @property
    def last_turn(self) -> LLMMessage | None:
        return self._turns[-1] if self._turns else None

    def pending_tool_uses(self) -> list[ToolUseBlock]:
        """Tool uses of the last assistant turn that still await results."""
        last = self.last_turn
        if last is None or last.role != "assistant":
            return []
        return last.tool_uses()

    def append_user_text(self, text: str) -> LLMMessage:
        """Append a human-authored turn holding a single text block."""
        if self.pending_tool_uses():
            raise ConversationStateError("Cannot add human input while tool uses are unanswered")
        turn = LLMMessage(role="user", content=[TextBlock(text=text)])
        self._append(turn)
        return turn

    def append_model_turn(self, turn: LLMMessage) -> LLMMessage:
        """Append an assistant turn exactly as the backend produced it."""
        if turn.role != "assistant":
            raise ConversationStateError(f"Model turn must have role 'assistant', got {turn.role!r}")
        if turn.tool_results():
            raise ConversationStateError("Model turn cannot carry tool results")
        self._append(turn)
        return turn

    def append_tool_results(self, results: list[ToolResultBlock]) -> LLMMessage:
        """Append the user turn answering every pending tool use."""
        expected = [tool_use.id for tool_use in self.pending_tool_uses()]
        actual = [result.tool_use_id for result in results]
        if not expected:
            raise ConversationStateError("No tool uses are awaiting results")
        if actual != expected:
            raise ConversationStateError(f"Tool results {actual} do not answer tool uses {expected} in order")
        turn = LLMMessage(role="user", content=list(results))
        self._append(turn)
        return turn

    def _append(self, turn: LLMMessage) -> None:
        last = self.last_turn
        if last is None:
            if turn.role != "user":
                raise ConversationStateError("Conversation must start with a user turn")
        elif last.role == turn.role:
            raise ConversationStateError(f"Two consecutive {turn.role!r} turns")
        self._turns.append(turn)
