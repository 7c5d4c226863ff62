"""Exceptions for failures the agent cannot recover from."""


class AgentError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(AgentError):
    """Raised when required configuration (e.g. the API key) is missing or invalid."""


class ProtocolError(AgentError):
    """Raised when the backend or the loop breaks the conversation contract."""


class UnknownContentBlockError(ProtocolError):
    """Raised when the backend emits a content block of an unrecognized kind."""

    def __init__(self, block_type: object):
        self.block_type = block_type
        super().__init__(f"Unknown content type {block_type!r}")


class ConversationStateError(ProtocolError):
    """Raised when a turn would break role alternation or tool use/result pairing."""
