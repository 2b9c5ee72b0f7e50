"""Output formatting for the command line interface."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats user facing output as text (rich) or JSON.

    Errors and warnings go to stderr; everything else to stdout. In quiet
    mode only errors and JSON documents are printed.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        no_color: bool = False,
    ):
        """Initialize the formatter.

        Args:
            json_output: Emit machine readable JSON instead of text
            quiet: Suppress non-essential output
            no_color: Disable colors and styles
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(no_color=no_color, highlight=False)
        self.err_console = Console(stderr=True, no_color=no_color, highlight=False)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(message, markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error. Never suppressed."""
        self.err_console.print(f"[red]Error:[/red] {message}")

    def output_json(self, data: Any) -> None:
        """Print data as an indented JSON document."""
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
        show_header: bool = True,
    ) -> None:
        """Print rows as a table.

        Args:
            data: Rows, one dict per row
            columns: Keys to show, in order
            headers: Optional column titles keyed by column
            show_header: Print the header row
        """
        if self.json_output:
            self.output_json(data)
            return

        headers = headers or {}
        table = Table(show_header=show_header, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self._silent:
            return
        self.console.print(f"\n[bold]{title}[/bold]")
        for label, value in items:
            self.console.print(f"  {label}: {value}", markup=False)

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
