"""Read file tool."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from code_agent.tools.base import ToolDefinition, ToolError, ToolErrorKind, ToolOutcome


class ReadFileInput(BaseModel):
    """Input schema for the read_file tool."""

    model_config = ConfigDict(json_schema_extra={"required": ["path"]})

    path: str = Field(
        default="",
        description="The relative path of a file in the working directory.",
    )


def create_read_file_tool(root: Path) -> ToolDefinition:
    def read_file_handler(params: ReadFileInput) -> ToolOutcome:
        if not params.path:
            return ToolError.empty_path()

        target = root / params.path
        try:
            return target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ToolError.not_found()
        except OSError as e:
            return ToolError.from_os_error(e)
        except UnicodeDecodeError:
            return ToolError(ToolErrorKind.IO_ERROR, f"File is not valid UTF-8 text: {params.path}")

    return ToolDefinition(
        name="read_file",
        description=(
            "Read the contents of a given relative file path. Use this when you want to see what's inside a file. "
            "Do not use this with directory names."
        ),
        input_schema_class=ReadFileInput,
        handler=read_file_handler,
    )
