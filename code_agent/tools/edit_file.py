"""Edit file tool."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from code_agent.tools.base import ToolDefinition, ToolError, ToolErrorKind, ToolOutcome
from code_agent.utils.logging import get_logger

logger = get_logger(__name__)


class EditFileInput(BaseModel):
    """Input schema for the edit_file tool."""

    model_config = ConfigDict(json_schema_extra={"required": ["path", "old_str", "new_str"]})

    path: str = Field(default="", description="The path to the file")
    old_str: str = Field(
        default="",
        description=(
            "Text to search for - must match exactly. Every occurrence is replaced. "
            "Leave empty to create a new file."
        ),
    )
    new_str: str = Field(default="", description="Text to replace old_str with")


def create_new_file(root: Path, path: str, content: str) -> ToolOutcome:
    """Create ``path`` (and any missing parent directories) holding ``content``."""
    target = root / path
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as e:
        return ToolError.from_os_error(e)

    logger.info(f"Created file {target}")
    return f"Successfully created file {path}"


def create_edit_file_tool(root: Path) -> ToolDefinition:
    def edit_file_handler(params: EditFileInput) -> ToolOutcome:
        if not params.path:
            return ToolError.empty_path()
        if not params.old_str and not params.new_str:
            return ToolError.no_op("old_str and new_str cannot both be empty")
        if params.old_str == params.new_str:
            return ToolError.no_op("old_str and new_str cannot be the same")

        target = root / params.path
        if not target.exists():
            if not params.old_str:
                return create_new_file(root, params.path, params.new_str)
            return ToolError.not_found()

        try:
            content = target.read_text(encoding="utf-8")
        except OSError as e:
            return ToolError.from_os_error(e)
        except UnicodeDecodeError:
            return ToolError(ToolErrorKind.IO_ERROR, f"File is not valid UTF-8 text: {params.path}")

        if params.old_str and params.old_str not in content:
            return ToolError(ToolErrorKind.NOT_FOUND_IN_FILE, "old_str not found in file")

        # An empty old_str inserts new_str between every character, like str.replace
        new_content = content.replace(params.old_str, params.new_str)

        try:
            target.write_text(new_content, encoding="utf-8")
        except OSError as e:
            return ToolError.from_os_error(e)

        return "OK"

    return ToolDefinition(
        name="edit_file",
        description=(
            "Make edits to a text file. Replaces every occurrence of 'old_str' with 'new_str' in the given file. "
            "'old_str' and 'new_str' MUST be different from each other. If the file specified with path doesn't "
            "exist and 'old_str' is empty, it will be created."
        ),
        input_schema_class=EditFileInput,
        handler=edit_file_handler,
    )
