"""Export command for writing a ClickHouse table to a flat file."""

import json
from pathlib import Path

import click
from rich.console import Console

from chbridge.cli_options import connection_options, load_settings
from chbridge.database import discover_schema
from chbridge.errors import BridgeError, FileAccessError, ValidationError
from chbridge.models import TransferPhase, find_table
from chbridge.transfer import default_export_path, transfer_db_to_file

console = Console()

PHASE_MESSAGES = {
    TransferPhase.CONNECTING: "[dim]  Connecting...[/dim]",
    TransferPhase.TRANSFERRING: "[dim]  Streaming rows...[/dim]",
}


def print_phase(phase: TransferPhase) -> None:
    message = PHASE_MESSAGES.get(phase)
    if message:
        console.print(message)


@click.command()
@click.argument("table", type=str, required=True)
@connection_options
@click.option(
    "--column",
    "-c",
    "columns",
    multiple=True,
    help="Column to export, in output order (repeatable)",
)
@click.option(
    "--all-columns",
    is_flag=True,
    default=False,
    help="Export every column of TABLE in catalog order",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: <output_dir>/<TABLE>_export.csv)",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Result format; json prints the transfer result as one object",
)
def export(
    table: str,
    config_path: Path | None,
    connection_json: str | None,
    host: str | None,
    port: int | None,
    database: str | None,
    user: str | None,
    token: str | None,
    secure: bool | None,
    columns: tuple[str, ...],
    all_columns: bool,
    output: Path | None,
    output_format: str,
) -> None:
    """Export selected columns of a ClickHouse table to a CSV file.

    Arguments:
        TABLE: Name of the table to export (required)

    Examples:
        # Export two columns
        chbridge export events -c id -c name --host localhost

        # Export every column into a chosen file
        chbridge export events --all-columns -o events.csv

        # Machine-readable result
        chbridge export events -c id --format json
    """
    as_json = output_format.lower() == "json"
    try:
        config, profile = load_settings(
            config_path, connection_json, host, port, database, user, token, secure
        )

        if all_columns and columns:
            raise ValidationError("Use either --column or --all-columns, not both")

        selected: list[str] = list(columns)
        if all_columns:
            if not as_json:
                console.print(f"[dim]  Discovering columns of {table}...[/dim]")
            selected = find_table(discover_schema(profile), table).select_all().column_names

        destination = output or default_export_path(config.output_dir, table)
        if selected:
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FileAccessError(f"Cannot create {destination.parent}: {e}") from e

    except BridgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort() from e

    if not as_json:
        console.print(f"[cyan]Exporting {table} from {profile.describe()}...[/cyan]")
    result = transfer_db_to_file(
        profile, table, selected, destination, on_status=None if as_json else print_phase
    )

    if as_json:
        click.echo(json.dumps(result.to_dict()))
        if not result.succeeded:
            raise click.Abort()
        return

    if not result.succeeded:
        console.print(f"[red]Error:[/red] {result.message}")
        if result.record_count:
            console.print(f"[dim]  {result.record_count} record(s) written before the failure[/dim]")
        raise click.Abort()

    console.print(f"[green]✓ Successfully exported {result.record_count} records[/green]")
    console.print(f"[dim]  Output file: {destination}[/dim]")
