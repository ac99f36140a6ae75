"""ClickHouse operations for chbridge."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver.exceptions import (
    ClickHouseError,
    OperationalError,
    StreamFailureError,
)

from chbridge.config import ConnectionProfile
from chbridge.errors import BridgeError, DatabaseConnectionError, QueryError, ValidationError
from chbridge.models import ColumnDescriptor, TableDescriptor
from chbridge.type_mapping import (
    quote_identifier,
    quote_literal,
    render_value,
    to_native_type,
)

logger = logging.getLogger(__name__)

CATALOG_QUERY = """
    SELECT table, name, type
    FROM system.columns
    WHERE database = {database:String}
    ORDER BY table, position
"""

TABLE_ENGINE = "MergeTree() ORDER BY tuple()"


def _wrap_error(error: ClickHouseError, stage: str) -> BridgeError:
    """Translate a driver exception into a chbridge error for the given stage."""
    # Server exceptions reported mid-stream subclass OperationalError.
    if isinstance(error, StreamFailureError):
        return QueryError(str(error), stage=stage)
    if isinstance(error, OperationalError):
        return DatabaseConnectionError(str(error), stage=stage)
    return QueryError(str(error), stage=stage)


class ClickHouseConnection:
    """ClickHouse connection handler scoped to a single request."""

    def __init__(self, profile: ConnectionProfile, stage: str | None = None) -> None:
        """Initialize database connection.

        Args:
            profile: Connection settings
            stage: Stage name attached to connection errors
        """
        self.profile = profile
        self.stage = stage
        self.client: Any = None

    def __enter__(self) -> ClickHouseConnection:
        """Enter context manager."""
        logger.debug("Connecting to %s", self.profile.describe())
        try:
            self.client = clickhouse_connect.get_client(**self.profile.to_client_kwargs())
        except (ClickHouseError, OSError) as e:
            raise DatabaseConnectionError(
                f"Cannot connect to {self.profile.describe()}: {e}", stage=self.stage
            ) from e
        logger.info("Connected to %s", self.profile.describe())
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context manager."""
        if self.client:
            self.client.close()
            self.client = None
            logger.debug("Closed connection to %s", self.profile.describe())

    def _require_client(self) -> Any:
        if not self.client:
            raise RuntimeError("Database connection not established")
        return self.client

    def catalog_rows(self) -> list[tuple[str, str, str]]:
        """Fetch (table, column, type) rows for the configured database.

        Rows are ordered by table, then by column position.

        Raises:
            DatabaseConnectionError: If the catalog cannot be queried
        """
        client = self._require_client()
        try:
            result = client.query(CATALOG_QUERY, parameters={"database": self.profile.database})
        except ClickHouseError as e:
            raise DatabaseConnectionError(str(e), stage="discovery") from e
        return [tuple(row) for row in result.result_rows]

    @contextmanager
    def stream_rows(
        self, table_name: str, column_names: Sequence[str]
    ) -> Iterator[Iterator[dict[str, str]]]:
        """Run a projection query and stream its rows as text.

        The query is issued when the context is entered so that a rejected
        statement fails before any destination is opened.

        Args:
            table_name: Table to read, as reported by discovery
            column_names: Non-empty ordered list of columns to project

        Yields:
            Lazy iterator of {column name: text value} mappings

        Raises:
            ValidationError: If column_names is empty
            QueryError: If the database rejects the query
        """
        if not column_names:
            raise ValidationError("At least one column must be selected")

        client = self._require_client()
        query = "SELECT {} FROM {}".format(
            ", ".join(quote_identifier(name) for name in column_names),
            quote_identifier(table_name),
        )
        logger.debug("Executing: %s", query)

        try:
            stream = client.query_rows_stream(query)
        except ClickHouseError as e:
            raise _wrap_error(e, "read") from e

        with stream:
            yield _render_rows(stream, list(column_names))

    def create_text_table(
        self, table_name: str, column_names: Sequence[str], batch_size: int = 1
    ) -> TableSink:
        """Create a table whose columns are all text and return a sink for it.

        Args:
            table_name: Name of the new table
            column_names: Column names in file order
            batch_size: Rows per INSERT statement

        Returns:
            TableSink writing into the new table

        Raises:
            QueryError: If the table cannot be created
        """
        client = self._require_client()
        column_defs = ", ".join(
            f"{quote_identifier(name)} {to_native_type()}" for name in column_names
        )
        statement = (
            f"CREATE TABLE {quote_identifier(table_name)} ({column_defs}) ENGINE = {TABLE_ENGINE}"
        )
        logger.debug("Executing: %s", statement)

        try:
            client.command(statement)
        except ClickHouseError as e:
            raise _wrap_error(e, "write") from e

        logger.info("Created table %s with %d column(s)", table_name, len(column_names))
        return TableSink(client, table_name, batch_size=batch_size)


def _render_rows(rows: Iterable[Sequence[Any]], column_names: list[str]) -> Iterator[dict[str, str]]:
    try:
        for values in rows:
            yield {name: render_value(value) for name, value in zip(column_names, values)}
    except ClickHouseError as e:
        raise _wrap_error(e, "read") from e


class TableSink:
    """Inserts rows of raw text fields into a table.

    Rows are buffered until batch_size is reached; a batch size of 1 issues
    one INSERT per row.
    """

    def __init__(self, client: Any, table_name: str, batch_size: int = 1) -> None:
        if batch_size < 1:
            raise ValidationError(f"Batch size must be at least 1, got {batch_size}")
        self.client = client
        self.table_name = table_name
        self.batch_size = batch_size
        self._pending: list[Sequence[str]] = []

    def write(self, fields: Sequence[str]) -> int:
        """Queue a row, flushing when the batch is full.

        Returns:
            Number of rows the database acknowledged by this call
        """
        self._pending.append(fields)
        if len(self._pending) >= self.batch_size:
            return self.flush()
        return 0

    def flush(self) -> int:
        """Insert all queued rows.

        Returns:
            Number of rows acknowledged

        Raises:
            QueryError: If the insert is rejected; queued rows are discarded
        """
        if not self._pending:
            return 0

        rows = self._pending
        self._pending = []
        values = ", ".join(
            "(" + ", ".join(quote_literal(field) for field in row) + ")" for row in rows
        )
        statement = f"INSERT INTO {quote_identifier(self.table_name)} VALUES {values}"

        try:
            self.client.command(statement)
        except ClickHouseError as e:
            raise _wrap_error(e, "write") from e

        logger.debug("Inserted %d row(s) into %s", len(rows), self.table_name)
        return len(rows)


def generate_table_name(prefix: str = "import") -> str:
    """Generate a table name for an import run.

    The millisecond timestamp plus a short random suffix makes collisions
    unlikely but not impossible.

    Examples:
        >>> generate_table_name().startswith("import_")
        True
    """
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(2)}"


def discover_schema(profile: ConnectionProfile) -> list[TableDescriptor]:
    """List the tables and columns of the profile's database.

    Tables appear in first-seen catalog order with their columns in physical
    order. Every column starts unselected.

    Args:
        profile: Connection settings

    Returns:
        List of TableDescriptor

    Raises:
        DatabaseConnectionError: If the server cannot be reached or queried
    """
    with ClickHouseConnection(profile, stage="discovery") as db:
        rows = db.catalog_rows()

    tables: dict[str, TableDescriptor] = {}
    for table_name, column_name, column_type in rows:
        table = tables.setdefault(table_name, TableDescriptor(name=table_name))
        table.columns.append(ColumnDescriptor(name=column_name, type=column_type))

    logger.info("Discovered %d table(s) in %s", len(tables), profile.database)
    return list(tables.values())
