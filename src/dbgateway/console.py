from typing import Any

from rich.console import Console
from rich.theme import Theme

custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
})

console = Console(theme=custom_theme)


def print_result(data: Any) -> None:
    """Prints a gateway result as pretty JSON."""
    console.print_json(data=data, default=str)


def print_error(message: str) -> None:
    console.print(f"[error]✘ {message}[/error]")


def print_warning(message: str) -> None:
    console.print(f"[warning]{message}[/warning]")
