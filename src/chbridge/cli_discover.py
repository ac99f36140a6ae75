"""Discover command for listing ClickHouse tables and columns."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from chbridge.cli_options import connection_options, load_settings
from chbridge.database import discover_schema
from chbridge.errors import BridgeError
from chbridge.models import TableDescriptor
from chbridge.type_mapping import is_nullable, unwrap_type

console = Console()


def render_tables(tables: list[TableDescriptor]) -> None:
    """Print one rich table per discovered table."""
    if not tables:
        console.print("[yellow]No tables found[/yellow]")
        return

    for table in tables:
        grid = Table(title=f"{table.name} ({len(table.columns)} columns)")
        grid.add_column("Column", style="cyan")
        grid.add_column("Type")
        grid.add_column("Base type")
        grid.add_column("Nullable")
        grid.add_column("Flat file type", style="dim")
        for column in table.columns:
            grid.add_row(
                column.name,
                column.type,
                unwrap_type(column.type),
                "yes" if is_nullable(column.type) else "no",
                column.flat_type,
            )
        console.print(grid)

    console.print(f"\n[green]Summary: {len(tables)} table(s)[/green]")


@click.command()
@connection_options
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format",
)
def discover(
    config_path: Path | None,
    connection_json: str | None,
    host: str | None,
    port: int | None,
    database: str | None,
    user: str | None,
    token: str | None,
    secure: bool | None,
    output_format: str,
) -> None:
    """List the tables and columns of a ClickHouse database.

    Examples:
        # Show tables as rich tables
        chbridge discover --host localhost --database analytics

        # JSON output for scripts
        chbridge discover --config chbridge.yaml --format json
    """
    try:
        _, profile = load_settings(
            config_path, connection_json, host, port, database, user, token, secure
        )
        tables = discover_schema(profile)
    except BridgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort() from e

    if output_format.lower() == "json":
        click.echo(json.dumps({"tables": [table.to_dict() for table in tables]}, indent=2))
    else:
        render_tables(tables)
