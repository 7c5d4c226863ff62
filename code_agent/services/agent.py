"""Conversation loop driving turns between the operator, the model and the tools."""

from collections.abc import Callable
from typing import Protocol

from code_agent.errors import UnknownContentBlockError
from code_agent.models.conversation import Conversation, LoopState
from code_agent.models.llm import LLMMessage, TextBlock, ToolResultBlock, ToolUseBlock
from code_agent.services.llm import ModelGateway
from code_agent.tools.registry import ToolsRegistry
from code_agent.utils.logging import get_logger

logger = get_logger(__name__)

UserMessageReader = Callable[[], str | None]


class AgentOutput(Protocol):
    """Where the loop surfaces model text and tool failures to the operator."""

    def model_text(self, text: str) -> None: ...

    def tool_error(self, name: str, message: str) -> None: ...


class Agent:
    """State machine alternating between human input, model turns and tool dispatch.

    The loop starts by waiting for human input. Each model turn is appended to
    the conversation as received; when it requests tools, every tool use is
    dispatched in order and the results go back to the model as one user turn,
    without asking the operator for input. The loop ends when the input source
    is exhausted while waiting for the operator.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: ToolsRegistry,
        read_user_message: UserMessageReader,
        output: AgentOutput,
    ):
        self.gateway = gateway
        self.registry = registry
        self.read_user_message = read_user_message
        self.output = output
        self.conversation = Conversation()
        self.state = LoopState.AWAITING_HUMAN_INPUT
        self._queued: list[ToolUseBlock] = []

    async def run(self) -> Conversation:
        """Run until the operator's input ends and return the final conversation.

        Raises:
            UnknownContentBlockError: If a model turn holds a block the loop cannot handle
        """
        logger.info(f"Starting agent loop with {len(self.registry.get_tool_names())} tools")

        while True:
            if self.state is LoopState.AWAITING_HUMAN_INPUT:
                if not self._await_human_input():
                    break
            elif self.state is LoopState.AWAITING_MODEL_RESPONSE:
                await self._await_model_response()
            elif self.state is LoopState.DISPATCHING_TOOLS:
                self._dispatch_tools()
            else:
                raise AssertionError(f"Unhandled loop state: {self.state}")

        logger.info(f"Agent loop finished after {len(self.conversation)} turns")
        return self.conversation

    def _transition(self, state: LoopState) -> None:
        logger.debug(f"Loop state {self.state.value} -> {state.value}")
        self.state = state

    def _await_human_input(self) -> bool:
        """Read one line from the operator; False once input is exhausted."""
        user_input = self.read_user_message()
        if user_input is None:
            logger.info("Input stream closed")
            return False

        # Blank lines would produce an empty text block, which the backend rejects
        if not user_input.strip():
            return True

        self.conversation.append_user_text(user_input)
        self._transition(LoopState.AWAITING_MODEL_RESPONSE)
        return True

    async def _await_model_response(self) -> None:
        turn = await self.gateway.complete(self.conversation, self.registry.definitions())
        if not turn.content:
            logger.warning("Model returned an empty turn")
        self._queued = self._scan(turn)
        self.conversation.append_model_turn(turn)

        if self._queued:
            logger.info(f"Model requested {len(self._queued)} tool calls")
            self._transition(LoopState.DISPATCHING_TOOLS)
        else:
            self._transition(LoopState.AWAITING_HUMAN_INPUT)

    def _scan(self, turn: LLMMessage) -> list[ToolUseBlock]:
        """Surface text blocks and collect tool uses, in emission order."""
        tool_uses: list[ToolUseBlock] = []
        for block in turn.content:
            if isinstance(block, TextBlock):
                self.output.model_text(block.text)
            elif isinstance(block, ToolUseBlock):
                tool_uses.append(block)
            else:
                raise UnknownContentBlockError(block.type)
        return tool_uses

    def _dispatch_tools(self) -> None:
        results: list[ToolResultBlock] = []
        for tool_use in self._queued:
            result = self.registry.dispatch(tool_use.id, tool_use.name, tool_use.input)
            if result.is_error:
                self.output.tool_error(tool_use.name, result.content)
            results.append(result)

        self._queued = []
        self.conversation.append_tool_results(results)
        self._transition(LoopState.AWAITING_MODEL_RESPONSE)
