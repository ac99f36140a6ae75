"""Table, column and transfer models shared by chbridge components."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from chbridge.config import ConnectionProfile
from chbridge.errors import BridgeError, ValidationError
from chbridge.type_mapping import to_flat_type


@dataclass
class ColumnDescriptor:
    """A column as reported by the database catalog.

    The selected flag is owned by the caller and only matters when
    projecting columns for an export.
    """

    name: str
    type: str
    selected: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("Column name cannot be empty")

    @property
    def flat_type(self) -> str:
        """Type of this column once written to a flat file."""
        return to_flat_type(self.type)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "selected": self.selected}


@dataclass
class TableDescriptor:
    """A table and its columns in catalog order."""

    name: str
    columns: list[ColumnDescriptor] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def selected_columns(self) -> list[ColumnDescriptor]:
        """Selected columns in catalog order."""
        return [column for column in self.columns if column.selected]

    def select(self, *names: str) -> TableDescriptor:
        """Mark the named columns as selected.

        Args:
            *names: Column names to select

        Returns:
            This table, for chaining

        Raises:
            ValidationError: If a name is not a column of this table
        """
        by_name = {column.name: column for column in self.columns}
        unknown = [name for name in names if name not in by_name]
        if unknown:
            raise ValidationError(
                f"Table '{self.name}' has no column(s): {', '.join(unknown)}"
            )
        for name in names:
            by_name[name].selected = True
        return self

    def select_all(self) -> TableDescriptor:
        for column in self.columns:
            column.selected = True
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": [column.to_dict() for column in self.columns]}


def find_table(tables: Iterable[TableDescriptor], name: str) -> TableDescriptor:
    """Find a table by name in a discovery result.

    Raises:
        ValidationError: If no table has that name
    """
    for table in tables:
        if table.name == name:
            return table
    raise ValidationError(f"Table '{name}' not found")


class TransferDirection(str, Enum):
    """Direction of a transfer."""

    DB_TO_FILE = "db_to_file"
    FILE_TO_DB = "file_to_db"


class TransferPhase(str, Enum):
    """Progress states reported while a transfer runs."""

    CONNECTING = "connecting"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferRequest:
    """Everything needed to run one transfer.

    For db_to_file, table_name, columns and destination are used; for
    file_to_db, lines and delimiter are.
    """

    direction: TransferDirection
    profile: ConnectionProfile
    table_name: str | None = None
    columns: Sequence[ColumnDescriptor | str] = ()
    destination: Path | None = None
    lines: Iterable[str] | None = None
    delimiter: str = ","
    batch_size: int = 1


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a single transfer.

    record_count only includes records the sink acknowledged. On failure,
    whatever reached the destination before the error stays there.
    """

    record_count: int
    succeeded: bool
    message: str | None = None
    error_kind: str | None = None
    stage: str | None = None
    destination: str | None = None

    @classmethod
    def success(cls, record_count: int, destination: str | None = None) -> TransferResult:
        return cls(record_count=record_count, succeeded=True, destination=destination)

    @classmethod
    def failure(
        cls, error: BridgeError, record_count: int = 0, destination: str | None = None
    ) -> TransferResult:
        return cls(
            record_count=record_count,
            succeeded=False,
            message=str(error),
            error_kind=error.kind,
            stage=error.stage,
            destination=destination,
        )

    @property
    def status(self) -> str:
        return "success" if self.succeeded else "failure"

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped body for transport layers."""
        if self.succeeded:
            return {
                "status": self.status,
                "recordCount": self.record_count,
                "destination": self.destination,
            }
        return {
            "status": self.status,
            "recordCount": self.record_count,
            "error": self.message,
            "kind": self.error_kind,
            "stage": self.stage,
            "destination": self.destination,
        }
