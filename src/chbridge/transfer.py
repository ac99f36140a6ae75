"""Transfers between ClickHouse tables and delimited flat files."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from chbridge.config import ConnectionProfile, validate_delimiter
from chbridge.database import ClickHouseConnection, generate_table_name
from chbridge.errors import BridgeError, FileAccessError, ValidationError
from chbridge.flatfile import DelimitedFileWriter, DelimitedLineReader
from chbridge.models import (
    ColumnDescriptor,
    TransferDirection,
    TransferPhase,
    TransferRequest,
    TransferResult,
)

logger = logging.getLogger(__name__)

StatusCallback = Callable[[TransferPhase], None]


def _notify(on_status: StatusCallback | None, phase: TransferPhase) -> None:
    if on_status is not None:
        on_status(phase)


def _column_names(columns: Sequence[ColumnDescriptor | str]) -> list[str]:
    names = [column.name if isinstance(column, ColumnDescriptor) else column for column in columns]
    if not names:
        raise ValidationError("At least one column must be selected")
    if any(not name for name in names):
        raise ValidationError("Column names cannot be empty")
    return names


def default_export_path(output_dir: Path, table_name: str) -> Path:
    """Destination file for an export of table_name.

    Examples:
        >>> default_export_path(Path("output"), "events").as_posix()
        'output/events_export.csv'
    """
    return output_dir / f"{table_name}_export.csv"


def transfer_db_to_file(
    profile: ConnectionProfile,
    table_name: str,
    columns: Sequence[ColumnDescriptor | str],
    destination: Path,
    on_status: StatusCallback | None = None,
) -> TransferResult:
    """Export selected columns of a table to a delimited file.

    The destination is truncated and gets a header line followed by one
    line per row. Validation happens before any connection or file is
    opened, so an empty projection has no side effects.

    Args:
        profile: Connection settings
        table_name: Source table, as reported by discovery
        columns: Ordered projection (descriptors or names)
        destination: Output file path
        on_status: Optional progress callback

    Returns:
        TransferResult with the number of rows written
    """
    writer: DelimitedFileWriter | None = None
    try:
        column_names = _column_names(columns)
        _notify(on_status, TransferPhase.CONNECTING)

        with (
            ClickHouseConnection(profile, stage="read") as db,
            db.stream_rows(table_name, column_names) as rows,
            DelimitedFileWriter(destination, column_names) as writer,
        ):
            _notify(on_status, TransferPhase.TRANSFERRING)
            for row in rows:
                writer.write_row(row)

    except BridgeError as e:
        record_count = writer.record_count if writer else 0
        logger.warning("Export of %s stopped after %d record(s): %s", table_name, record_count, e)
        _notify(on_status, TransferPhase.FAILED)
        return TransferResult.failure(e, record_count=record_count, destination=str(destination))

    record_count = writer.record_count
    logger.info("Exported %d record(s) from %s to %s", record_count, table_name, destination)
    _notify(on_status, TransferPhase.COMPLETED)
    return TransferResult.success(record_count, destination=str(destination))


def transfer_file_to_db(
    profile: ConnectionProfile,
    lines: Iterable[str],
    delimiter: str,
    batch_size: int = 1,
    on_status: StatusCallback | None = None,
) -> TransferResult:
    """Import delimited lines into a newly created ClickHouse table.

    Every run creates its own table; running twice on the same input gives
    two tables.

    Args:
        profile: Connection settings
        lines: File lines; the first one is the header
        delimiter: Single-character field delimiter
        batch_size: Rows per INSERT statement
        on_status: Optional progress callback

    Returns:
        TransferResult with the number of rows inserted and the table name
    """
    record_count = 0
    table_name: str | None = None
    try:
        validate_delimiter(delimiter)
        if batch_size < 1:
            raise ValidationError(f"Batch size must be at least 1, got {batch_size}")
        reader = DelimitedLineReader(lines, delimiter)
        _notify(on_status, TransferPhase.CONNECTING)

        with ClickHouseConnection(profile, stage="write") as db:
            table_name = generate_table_name()
            sink = db.create_text_table(table_name, reader.header, batch_size=batch_size)
            _notify(on_status, TransferPhase.TRANSFERRING)
            for fields in reader:
                record_count += sink.write(fields)
            record_count += sink.flush()

    except BridgeError as e:
        logger.warning("Import stopped after %d record(s): %s", record_count, e)
        _notify(on_status, TransferPhase.FAILED)
        return TransferResult.failure(e, record_count=record_count, destination=table_name)

    logger.info("Imported %d record(s) into %s", record_count, table_name)
    _notify(on_status, TransferPhase.COMPLETED)
    return TransferResult.success(record_count, destination=table_name)


def transfer_file_path_to_db(
    profile: ConnectionProfile,
    path: Path,
    delimiter: str,
    batch_size: int = 1,
    on_status: StatusCallback | None = None,
) -> TransferResult:
    """Import a staged file into a newly created ClickHouse table.

    Args:
        profile: Connection settings
        path: Path of the file to import (UTF-8, optional BOM)
        delimiter: Single-character field delimiter
        batch_size: Rows per INSERT statement
        on_status: Optional progress callback

    Returns:
        TransferResult with the number of rows inserted and the table name
    """
    if not path.is_file():
        return TransferResult.failure(ValidationError(f"File not found: {path}"))

    try:
        source = open(path, encoding="utf-8-sig", newline="")
    except OSError as e:
        return TransferResult.failure(
            FileAccessError(f"Cannot read {path}: {e}", stage="read")
        )

    with source:
        return transfer_file_to_db(
            profile, source, delimiter, batch_size=batch_size, on_status=on_status
        )


def run_transfer(
    request: TransferRequest, on_status: StatusCallback | None = None
) -> TransferResult:
    """Run a transfer request in its direction.

    Args:
        request: Transfer parameters
        on_status: Optional progress callback

    Returns:
        TransferResult for the request
    """
    if request.direction is TransferDirection.DB_TO_FILE:
        if not request.table_name or request.destination is None:
            return TransferResult.failure(
                ValidationError("Export requires a table name and a destination")
            )
        return transfer_db_to_file(
            request.profile,
            request.table_name,
            request.columns,
            request.destination,
            on_status=on_status,
        )

    if request.lines is None:
        return TransferResult.failure(ValidationError("Import requires file lines"))
    return transfer_file_to_db(
        request.profile,
        request.lines,
        request.delimiter,
        batch_size=request.batch_size,
        on_status=on_status,
    )
