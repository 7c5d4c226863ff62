"""Anthropic API client with rate limiting and error handling."""

import asyncio
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from anthropic import Anthropic, APIConnectionError, APIStatusError
from anthropic.types import Message
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from code_agent.errors import ConfigurationError, UnknownContentBlockError
from code_agent.models.llm import (
    ContentBlock,
    LLMMessage,
    LLMResponse,
    LLMToolDefinition,
    LLMUsage,
    TextBlock,
    ToolUseBlock,
)
from code_agent.utils.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_AFTER_SECONDS = 120

T = TypeVar("T")


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-3-7-sonnet-latest"
    max_tokens: int = 1024
    temperature: float | None = None
    system_prompt: str | None = None
    max_retries: int = 3
    retry_delay: float = 1.0
    timeout: float = 600.0
    requests_per_minute: int = 50
    extra_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> "AnthropicConfig":
        """Build a config from ``CODE_AGENT_*`` environment variables.

        Keyword overrides that are not None win over the environment.
        """
        config = cls()
        if model := os.getenv("CODE_AGENT_MODEL"):
            config.model = model
        if max_tokens := os.getenv("CODE_AGENT_MAX_TOKENS"):
            try:
                config.max_tokens = int(max_tokens)
            except ValueError as e:
                raise ConfigurationError(f"CODE_AGENT_MAX_TOKENS must be an integer, got {max_tokens!r}") from e
        if system_prompt := os.getenv("CODE_AGENT_SYSTEM_PROMPT"):
            config.system_prompt = system_prompt

        return replace(config, **{key: value for key, value in overrides.items() if value is not None})


class AnthropicRateLimiter:
    """Client-side request rate limiter using the limits library."""

    def __init__(self, requests_per_minute: int = 50):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def wait_for_slot(self, identifier: str = "anthropic") -> None:
        """Block until one more request fits in the current window."""
        while not self.limiter.hit(self.request_limit, identifier):
            window_stats = self.limiter.get_window_stats(self.request_limit, identifier)
            wait_time = max(0.1, window_stats.reset_time - time.time())
            logger.warning(f"Request rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and retries."""

    api_key: str
    client: Anthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter

    def __init__(self, api_key: str | None = None, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration

        Raises:
            ConfigurationError: If no API key is available
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key
        self.config = config or AnthropicConfig()

        # Retries are handled by _request_with_retries, not by the SDK
        self.client = Anthropic(api_key=self.api_key, max_retries=0, timeout=self.config.timeout)
        self.rate_limiter = AnthropicRateLimiter(self.config.requests_per_minute)

    async def create_message(
        self,
        messages: list[LLMMessage],
        tools: list[LLMToolDefinition] | None = None,
    ) -> LLMResponse:
        """Send the full conversation to Claude and return its next turn.

        Args:
            messages: Entire conversation history, oldest turn first
            tools: Tool catalog available to Claude

        Returns:
            Normalized response with converted content blocks

        Raises:
            UnknownContentBlockError: If the response holds a block we cannot represent
        """
        request_params: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": self._request_messages(messages),
        }
        if tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in tools]
        if self.config.system_prompt:
            request_params["system"] = self.config.system_prompt
        if self.config.temperature is not None:
            request_params["temperature"] = self.config.temperature
        if self.config.extra_headers:
            request_params["extra_headers"] = self.config.extra_headers

        await self.rate_limiter.wait_for_slot()

        logger.debug(
            f"Making Anthropic API call with model: {self.config.model}, "
            f"{len(messages)} messages, {len(tools) if tools else 0} tools"
        )
        response: Message = await self._request_with_retries(lambda: self.client.messages.create(**request_params))

        usage = LLMUsage(requests=1)
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                cache_creation_input_tokens=response.usage.cache_creation_input_tokens or 0,
                cache_read_input_tokens=response.usage.cache_read_input_tokens or 0,
                requests=1,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return LLMResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    @staticmethod
    def _request_messages(messages: list[LLMMessage]) -> list[dict[str, Any]]:
        """Serialize the history for the API.

        Empty assistant turns are rejected by the API, so they are left out and
        the user turns around them merged to keep roles alternating.
        """
        request_messages: list[dict[str, Any]] = []
        for message in messages:
            if not message.content:
                logger.debug(f"Omitting empty {message.role} turn from request")
                continue
            dumped = message.model_dump(exclude_none=True)
            if request_messages and request_messages[-1]["role"] == dumped["role"]:
                request_messages[-1]["content"].extend(dumped["content"])
            else:
                request_messages.append(dumped)
        return request_messages

    async def _request_with_retries(self, call: Callable[[], T]) -> T:
        """Execute an Anthropic API request, retrying transient failures.

        Rate limiting (429), overload and server errors (>= 500) and connection
        failures are retried with exponential backoff. Anything else, or the
        last failed attempt, propagates to the caller.
        """
        for attempt in range(self.config.max_retries):
            last_attempt = attempt == self.config.max_retries - 1
            try:
                return call()

            except APIStatusError as e:
                if last_attempt:
                    raise

                if e.status_code == 429:
                    retry_after = self._retry_after(e)
                    if retry_after >= MAX_RETRY_AFTER_SECONDS:
                        raise
                    logger.warning(f"Rate limited by Anthropic, retrying in {retry_after}s")
                    await asyncio.sleep(retry_after)
                    continue

                if e.status_code >= 500:
                    delay = self.config.retry_delay * (2**attempt)
                    logger.warning(f"Anthropic server error {e.status_code}, retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue

                raise

            except APIConnectionError as e:
                if last_attempt:
                    raise
                delay = self.config.retry_delay * (2**attempt)
                logger.warning(f"Connection to Anthropic failed ({e}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        raise RuntimeError(f"Failed to complete request after {self.config.max_retries} attempts")

    @staticmethod
    def _retry_after(error: APIStatusError) -> int:
        headers = getattr(error.response, "headers", None) or {}
        try:
            return int(headers.get("retry-after", 60))
        except (TypeError, ValueError):
            return 60

    def _convert_content_blocks(self, anthropic_content: list[Any]) -> list[ContentBlock]:
        """Convert response content into the blocks we send back as conversation history.

        Raises:
            UnknownContentBlockError: For any block that is neither text nor tool use
        """
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)
            block_type = block_dict.get("type")

            if block_type == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_type == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.error(f"Unknown content block type: {block_type}")
                raise UnknownContentBlockError(block_type)

        return converted_blocks
