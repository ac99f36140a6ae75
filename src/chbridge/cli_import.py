"""Import command for loading a flat file into a new ClickHouse table."""

import json
from pathlib import Path

import click
from rich.console import Console

from chbridge.cli_options import connection_options, load_settings
from chbridge.errors import BridgeError
from chbridge.models import TransferPhase
from chbridge.transfer import transfer_file_path_to_db

console = Console()


def print_phase(phase: TransferPhase) -> None:
    if phase is TransferPhase.CONNECTING:
        console.print("[dim]  Connecting...[/dim]")
    elif phase is TransferPhase.TRANSFERRING:
        console.print("[dim]  Inserting rows...[/dim]")


@click.command(name="import")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@connection_options
@click.option(
    "--delimiter",
    "-d",
    default=None,
    help="Field delimiter (default from config, else ',')",
)
@click.option(
    "--batch-size",
    type=int,
    default=1,
    show_default=True,
    help="Rows per INSERT statement",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Result format; json prints the transfer result as one object",
)
def import_file(
    file_path: Path,
    config_path: Path | None,
    connection_json: str | None,
    host: str | None,
    port: int | None,
    database: str | None,
    user: str | None,
    token: str | None,
    secure: bool | None,
    delimiter: str | None,
    batch_size: int,
    output_format: str,
) -> None:
    """Import a delimited file into a new ClickHouse table.

    The first line of FILE_PATH is the header. Every column is created as
    String, and each run creates a new table named import_<timestamp>_<suffix>.

    Arguments:
        FILE_PATH: Path to the delimited file (required)

    Examples:
        # Import a CSV file
        chbridge import data.csv --host localhost --database analytics

        # Tab-separated file, 500 rows per insert
        chbridge import data.tsv --delimiter $'\\t' --batch-size 500

        # Machine-readable result
        chbridge import data.csv --format json
    """
    try:
        config, profile = load_settings(
            config_path, connection_json, host, port, database, user, token, secure
        )
    except BridgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort() from e

    effective_delimiter = delimiter if delimiter is not None else config.flatfile.delimiter

    as_json = output_format.lower() == "json"
    if not as_json:
        console.print(f"[cyan]Importing {file_path.name} into {profile.describe()}...[/cyan]")
    result = transfer_file_path_to_db(
        profile,
        file_path,
        effective_delimiter,
        batch_size=batch_size,
        on_status=None if as_json else print_phase,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict()))
        if not result.succeeded:
            raise click.Abort()
        return

    if not result.succeeded:
        console.print(f"[red]Error:[/red] {result.message}")
        if result.destination:
            console.print(
                f"[dim]  Table {result.destination} kept with {result.record_count} record(s)[/dim]"
            )
        raise click.Abort()

    console.print(f"[green]✓ Successfully imported {result.record_count} records[/green]")
    console.print(f"[dim]  Table: {result.destination}[/dim]")
    console.print(f"[dim]  Source file: {file_path}[/dim]")
