"""Console output helpers for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Prints human-readable or JSON output.

    Messages go to stderr so that JSON data on stdout stays parseable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(message, highlight=False)

    def success(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}", highlight=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def print_table(self, title: str, columns: list[str], rows: list[list[str]]) -> None:
        """Print rows as a table, or as a list of objects in JSON mode."""
        if self.json_output:
            self.output_json([dict(zip(columns, row)) for row in rows])
            return
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a key/value summary block."""
        if self.json_output:
            self.output_json(dict(items))
            return
        if self.quiet:
            return
        self.console.print(f"[bold]{title}[/bold]")
        for key, value in items:
            self.console.print(f"  {key}: {value}", highlight=False)
