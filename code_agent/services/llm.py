"""Model gateway: one request/response exchange with the backend per call."""

from collections.abc import Sequence
from typing import Protocol

from code_agent.clients.anthropic import AnthropicClient
from code_agent.models.conversation import Conversation
from code_agent.models.llm import LLMMessage, LLMToolDefinition, LLMUsage
from code_agent.utils.logging import get_logger

logger = get_logger(__name__)


class ModelGateway(Protocol):
    """Anything able to produce the model's next turn for a conversation."""

    async def complete(self, conversation: Conversation, tools: Sequence[LLMToolDefinition]) -> LLMMessage: ...


class LLMService:
    """Model gateway backed by the Anthropic Messages API."""

    def __init__(self, client: AnthropicClient):
        """Initialize LLM service.

        Args:
            client: Anthropic client used for every exchange
        """
        self.client = client
        self.usage = LLMUsage()

    async def complete(self, conversation: Conversation, tools: Sequence[LLMToolDefinition]) -> LLMMessage:
        """Send the whole conversation plus the tool catalog and return the model's turn.

        The backend keeps no state between calls, so every call resends the
        full history. The returned turn always has role ``assistant`` and holds
        only text and tool use blocks, ready to be resent as history.
        """
        logger.debug(f"Calling LLM with {len(conversation)} turns and {len(tools)} tools")
        response = await self.client.create_message(messages=list(conversation.turns), tools=list(tools))

        self.usage.add(response.usage)
        logger.debug(
            f"Token usage - Input: {response.usage.input_tokens}, Output: {response.usage.output_tokens}, "
            f"Cache hits: {response.usage.cache_read_input_tokens}"
        )

        return LLMMessage(role="assistant", content=response.content)
