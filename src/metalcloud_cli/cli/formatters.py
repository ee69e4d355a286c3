"""
Output formatters for the Metal Cloud CLI.

Commands describe their output as a :class:`Table` (column schema plus rows of
raw values). :class:`OutputFormatter` renders it as a Rich table for humans,
a tabulate grid, or as JSON, CSV or YAML for scripts. Cell styling is applied
only to the human readable formats so structured output stays clean.
"""

import csv
import io
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import click
import yaml
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table as RichTable
from rich.text import Text
from tabulate import tabulate

console = Console()

OUTPUT_FORMATS = ["text", "table", "json", "csv", "yaml"]
STRUCTURED_FORMATS = {"json", "csv", "yaml"}

# Width used when stdout is not a terminal so piped tables are not folded
NON_TERMINAL_WIDTH = 240


def format_option(default: str = "text"):
    """Shared ``--format`` option for commands that print results."""
    return click.option(
        "--format",
        "-f",
        "output_format",
        type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
        default=default,
        show_default=True,
        help="Output format",
    )


@dataclass
class SchemaField:
    """A table column.

    ``style`` maps a raw cell value to a Rich style name (or None) and is
    only used for human readable output.
    """

    name: str
    style: Optional[Callable[[Any], Optional[str]]] = None


@dataclass
class StyledValue:
    """A cell value carrying its own style, for styles that depend on more
    than the value itself."""

    value: Any
    style: Optional[str] = None

    def __str__(self) -> str:
        return "" if self.value is None else str(self.value)


def plain(value: Any) -> Any:
    return value.value if isinstance(value, StyledValue) else value


@dataclass
class Table:
    schema: List[SchemaField]
    rows: List[List[Any]] = field(default_factory=list)

    @property
    def headers(self) -> List[str]:
        return [f.name for f in self.schema]

    def records(self) -> List[Dict[str, Any]]:
        """Rows as ``{column: value}`` mappings."""
        return [
            dict(zip(self.headers, [plain(v) for v in row])) for row in self.rows
        ]


class OutputFormatter:
    """Renders tables and raw objects in the requested format."""

    def __init__(self, format_type: str = "text", quiet: bool = False):
        self.format_type = (format_type or "text").lower()
        self.quiet = quiet
        if self.format_type not in OUTPUT_FORMATS:
            raise click.BadParameter(
                f"format '{format_type}' not supported yet",
                param_hint="--format",
            )

    @property
    def is_structured(self) -> bool:
        return self.format_type in STRUCTURED_FORMATS

    def output(self, text: str) -> None:
        """Echo rendered output, honouring ``--quiet`` for human formats."""
        if self.quiet and not self.is_structured:
            return
        click.echo(text.rstrip("\n"))

    def render(self, table: Table, title: Optional[str] = None) -> str:
        """Render a table with one line per row."""
        if self.format_type in STRUCTURED_FORMATS:
            return self._render_structured(table)
        if self.format_type == "table":
            return self._render_grid(table.headers, table.rows, title)
        return self._render_rich(table, title)

    def render_transposed(self, table: Table, title: Optional[str] = None) -> str:
        """Render a table as Property/Value pairs, for single-record views."""
        if self.format_type in STRUCTURED_FORMATS:
            return self._render_structured(table)

        if self.format_type == "table":
            rows = []
            for record in table.records():
                rows.extend([k, v] for k, v in record.items())
            return self._render_grid(["Property", "Value"], rows, title)

        rich_table = RichTable(title=title, show_header=True, header_style="bold")
        rich_table.add_column("Property", style="cyan", no_wrap=True)
        rich_table.add_column("Value")
        for index, row in enumerate(table.rows):
            if index:
                rich_table.add_section()
            for schema_field, value in zip(table.schema, row):
                rich_table.add_row(schema_field.name, self._styled(schema_field, value))
        return self._capture(rich_table)

    def render_raw_object(self, obj: Any, kind: str = "") -> str:
        """Dump a whole API object, e.g. for ``--raw``."""
        data = obj.model_dump() if isinstance(obj, BaseModel) else obj
        if self.format_type == "json":
            return json.dumps(data, indent=2, default=str)
        if self.format_type == "csv":
            raise click.BadParameter(
                f"{kind or 'object'} cannot be rendered as csv, use json or yaml",
                param_hint="--format",
            )
        return yaml.safe_dump(
            json.loads(json.dumps(data, default=str)), sort_keys=False
        )

    def _render_structured(self, table: Table) -> str:
        records = table.records()
        if self.format_type == "json":
            return json.dumps(records, indent=2, default=str)
        if self.format_type == "yaml":
            return yaml.safe_dump(
                json.loads(json.dumps(records, default=str)), sort_keys=False
            )

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(table.headers)
        for row in table.rows:
            writer.writerow(["" if plain(v) is None else plain(v) for v in row])
        return buffer.getvalue()

    def _render_grid(
        self, headers: List[str], rows: List[List[Any]], title: Optional[str]
    ) -> str:
        grid = tabulate(
            [[plain(v) for v in row] for row in rows],
            headers=headers,
            tablefmt="grid",
        )
        if title:
            return f"{title}\n{grid}"
        return grid

    def _render_rich(self, table: Table, title: Optional[str]) -> str:
        rich_table = RichTable(title=title, header_style="bold")
        for schema_field in table.schema:
            rich_table.add_column(schema_field.name)
        for row in table.rows:
            rich_table.add_row(
                *[self._styled(f, v) for f, v in zip(table.schema, row)]
            )
        return self._capture(rich_table)

    def _styled(self, schema_field: SchemaField, value: Any) -> Text:
        if isinstance(value, StyledValue):
            return Text(str(value), style=value.style or "")
        text = "" if value is None else str(value)
        style = schema_field.style(value) if schema_field.style else None
        return Text(text, style=style or "")

    def _capture(self, renderable: Any) -> str:
        buffer = io.StringIO()
        out = Console(
            file=buffer,
            force_terminal=console.is_terminal,
            color_system=console.color_system,
            width=console.width if console.is_terminal else NON_TERMINAL_WIDTH,
        )
        out.print(renderable)
        return buffer.getvalue()
