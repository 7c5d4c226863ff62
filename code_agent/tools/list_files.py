"""List files tool."""

import json
import os
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from code_agent.tools.base import ToolDefinition, ToolError, ToolOutcome


class ListFilesInput(BaseModel):
    """Input schema for the list_files tool."""

    path: str = Field(
        default=".",
        description="Optional relative path to list files from. Defaults to current directory if not provided.",
    )


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def walk_entries(directory: Path) -> list[str]:
    """Recursively collect entries below ``directory`` as POSIX paths relative to it.

    Directories carry a trailing ``/``. Hidden names are skipped, and hidden
    directories are not descended into, matching a shell ``**/*`` glob.
    """
    entries: list[str] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if not _is_hidden(d))
        relative_dir = PurePosixPath(Path(dirpath).relative_to(directory).as_posix())
        for name in dirnames:
            entries.append(f"{relative_dir / name}/")
        for name in sorted(filenames):
            if not _is_hidden(name):
                entries.append(str(relative_dir / name))
    return sorted(entries)


def create_list_files_tool(root: Path) -> ToolDefinition:
    def list_files_handler(params: ListFilesInput) -> ToolOutcome:
        requested = params.path or "."
        directory = root / requested
        if not directory.exists():
            return ToolError.not_found("Directory not found")
        # A regular file has nothing below it
        if not directory.is_dir():
            return json.dumps([])

        prefix = PurePosixPath(Path(requested).as_posix())
        files = [str(prefix / entry) + ("/" if entry.endswith("/") else "") for entry in walk_entries(directory)]
        return json.dumps(files)

    return ToolDefinition(
        name="list_files",
        description=(
            "List files and directories at a given path. If no path is provided, lists files in the current directory."
        ),
        input_schema_class=ListFilesInput,
        handler=list_files_handler,
    )
