"""Export command for the tk CLI."""

from __future__ import annotations

import csv
import io
from pathlib import Path

import orjson
import typer

from tk.constants import EXPORT_CSV_FIELDS
from tk.models import ticket_to_dict, ticket_to_row

from ._helpers import TICKETS_DIR_HELP, fail, get_storage

_EXPORT_FORMATS = ("json", "csv")


def register(app: typer.Typer) -> None:
    """Register the export command."""

    @app.command()
    def export(
        format_type: str = typer.Option(
            "json",
            "--format",
            "-f",
            help="Export format: json or csv",
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write to this file instead of stdout",
        ),
        tickets_dir: str | None = typer.Option(
            None,
            "--tickets-dir",
            help=TICKETS_DIR_HELP,
        ),
    ) -> None:
        """Export all tickets.

        Supported formats:
        - json: indented JSON array with one object per ticket
        - csv: one row per ticket; list fields are joined with ";"
        """
        try:
            if format_type not in _EXPORT_FORMATS:
                msg = (
                    f"unknown export format '{format_type}' "
                    f"(valid: {', '.join(_EXPORT_FORMATS)})"
                )
                raise ValueError(msg)

            tickets = get_storage(tickets_dir).list()

            if format_type == "json":
                data = orjson.dumps(
                    [ticket_to_dict(t) for t in tickets],
                    option=orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE,
                ).decode()
            else:
                buffer = io.StringIO()
                writer = csv.DictWriter(
                    buffer,
                    fieldnames=EXPORT_CSV_FIELDS,
                    lineterminator="\n",
                )
                writer.writeheader()
                writer.writerows(ticket_to_row(t) for t in tickets)
                data = buffer.getvalue()

            if output is None:
                typer.echo(data, nl=False)
            else:
                output.write_text(data, encoding="utf-8")
                typer.echo(f"✓ Exported {len(tickets)} ticket(s) to {output}", err=True)

        except Exception as e:
            raise fail(e) from None
