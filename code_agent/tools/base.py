"""Base types and definitions for tools."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ToolErrorKind(str, Enum):
    """Categories of recoverable tool failures."""

    EMPTY_PATH = "empty_path"
    NOT_FOUND = "not_found"
    NO_OP = "no_op"
    NOT_FOUND_IN_FILE = "not_found_in_file"
    INVALID_INPUT = "invalid_input"
    IO_ERROR = "io_error"


@dataclass(frozen=True)
class ToolError:
    """A failed tool invocation, reported back to the model rather than raised."""

    kind: ToolErrorKind
    message: str

    @classmethod
    def empty_path(cls) -> "ToolError":
        return cls(ToolErrorKind.EMPTY_PATH, "Path cannot be empty")

    @classmethod
    def not_found(cls, message: str = "File not found") -> "ToolError":
        return cls(ToolErrorKind.NOT_FOUND, message)

    @classmethod
    def no_op(cls, message: str) -> "ToolError":
        return cls(ToolErrorKind.NO_OP, message)

    @classmethod
    def from_os_error(cls, error: OSError) -> "ToolError":
        return cls(ToolErrorKind.IO_ERROR, error.strerror or str(error))


ToolOutcome = str | ToolError
ToolHandler = Callable[[Any], ToolOutcome]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of a tool available to the model."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)
