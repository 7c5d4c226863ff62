"""Terminal input and output for the agent."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape


class ConsoleIO:
    """Line-oriented operator channel rendered with rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(highlight=False)

    def show_banner(self) -> None:
        self.console.print("Chat with Claude (use 'ctrl-c' to quit)")

    def read_user_message(self) -> str | None:
        """Prompt for one line of input; None when the input stream has ended."""
        try:
            return self.console.input("[bold blue]You[/bold blue]: ")
        except EOFError:
            return None

    def model_text(self, text: str) -> None:
        self.console.print(f"[bold yellow]Claude[/bold yellow]: {escape(text)}")

    def tool_call(self, name: str, tool_input: dict[str, Any]) -> None:
        self.console.print(f"[bold green]tool[/bold green]: {escape(name)}({escape(json.dumps(tool_input))})")

    def tool_error(self, name: str, message: str) -> None:
        self.console.print(f"[bold red]Error[/bold red]: {escape(name)}: {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error[/bold red]: {escape(message)}")
