"""Command-line interface for chbridge."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from chbridge import __version__
from chbridge.cli_discover import discover
from chbridge.cli_export import export
from chbridge.cli_import import import_file


def configure_logging(verbose: bool) -> None:
    """Route log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Move tables between ClickHouse and delimited flat files.

    Discover a database's tables and columns, export selected columns of a
    table to a CSV file, or import a delimited file into a new table.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)


# Register commands
main.add_command(discover)
main.add_command(export)
main.add_command(import_file)
