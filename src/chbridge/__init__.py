"""Move tabular data between ClickHouse and delimited flat files.

This package provides both a CLI tool and programmatic API for discovering
a ClickHouse database's schema and transferring tables to and from flat
files.

CLI Usage:
    chbridge discover --host <host> --database <db>
    chbridge export <table> -c <column> [-c <column> ...]
    chbridge import <file> [--delimiter <char>]

Programmatic Usage:
    from pathlib import Path
    from chbridge import ConnectionProfile, discover_schema, transfer_db_to_file

    profile = ConnectionProfile(host="localhost", database="analytics")
    table = discover_schema(profile)[0].select("id", "name")
    result = transfer_db_to_file(
        profile, table.name, table.selected_columns, Path("events.csv")
    )
    print(result.record_count)
"""

__version__ = "0.1.0"

# Export main API functions
from chbridge.config import BridgeConfig, ConnectionProfile, FlatFileOptions, parse_profile_json
from chbridge.database import discover_schema, generate_table_name
from chbridge.errors import (
    BridgeError,
    DatabaseConnectionError,
    FileAccessError,
    QueryError,
    ValidationError,
)
from chbridge.models import (
    ColumnDescriptor,
    TableDescriptor,
    TransferDirection,
    TransferPhase,
    TransferRequest,
    TransferResult,
    find_table,
)
from chbridge.transfer import (
    default_export_path,
    run_transfer,
    transfer_db_to_file,
    transfer_file_path_to_db,
    transfer_file_to_db,
)

__all__ = [
    "__version__",
    # Configuration
    "BridgeConfig",
    "ConnectionProfile",
    "FlatFileOptions",
    "parse_profile_json",
    # Models
    "ColumnDescriptor",
    "TableDescriptor",
    "TransferDirection",
    "TransferPhase",
    "TransferRequest",
    "TransferResult",
    "find_table",
    # Operations
    "discover_schema",
    "generate_table_name",
    "default_export_path",
    "run_transfer",
    "transfer_db_to_file",
    "transfer_file_path_to_db",
    "transfer_file_to_db",
    # Errors
    "BridgeError",
    "DatabaseConnectionError",
    "FileAccessError",
    "QueryError",
    "ValidationError",
]
