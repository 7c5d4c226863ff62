"""Local tools the model can invoke."""

from code_agent.tools.base import ToolDefinition, ToolError, ToolErrorKind
from code_agent.tools.registry import ToolsRegistry, create_default_registry

__all__ = ["ToolDefinition", "ToolError", "ToolErrorKind", "ToolsRegistry", "create_default_registry"]
