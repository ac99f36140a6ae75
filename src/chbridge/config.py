"""Configuration handling for chbridge."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from chbridge.errors import ValidationError

DEFAULT_PORT = 8123
DEFAULT_DELIMITER = ","
DEFAULT_OUTPUT_DIR = "output"


@dataclass(frozen=True)
class ConnectionProfile:
    """Connection settings for one ClickHouse server.

    A profile belongs to the request that built it and is never persisted.
    """

    host: str
    port: int = DEFAULT_PORT
    database: str = "default"
    username: str = "default"
    token: str = field(default="", repr=False)
    secure: bool = False

    @classmethod
    def from_mapping(cls, data: Any) -> ConnectionProfile:
        """Build a profile from a JSON-shaped mapping.

        Args:
            data: Mapping with host, port, database, username, token and
                optional secure keys

        Returns:
            ConnectionProfile instance

        Raises:
            ValidationError: If a field is missing or has the wrong type

        Examples:
            >>> ConnectionProfile.from_mapping({"host": "localhost", "port": "8123"}).port
            8123
        """
        if not isinstance(data, dict):
            raise ValidationError("Connection config must be a mapping")

        host = data.get("host")
        if not isinstance(host, str) or not host.strip():
            raise ValidationError("Connection config must contain a non-empty 'host'")

        port = _parse_port(data.get("port", DEFAULT_PORT))

        strings = {}
        for key, default in (("database", "default"), ("username", "default"), ("token", "")):
            value = data.get(key)
            if value is None:
                value = default
            if not isinstance(value, str):
                raise ValidationError(f"Connection config '{key}' must be a string")
            strings[key] = value

        secure = data.get("secure", False)
        if not isinstance(secure, bool):
            raise ValidationError("Connection config 'secure' must be true or false")

        return cls(host=host.strip(), port=port, secure=secure, **strings)

    def to_client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for clickhouse_connect.get_client."""
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "password": self.token,
            "secure": self.secure,
        }

    def describe(self) -> str:
        """Credential-free description for logs and console output."""
        return f"{self.username}@{self.host}:{self.port}/{self.database}"


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Connection config 'port' must be an integer")
    if isinstance(value, str):
        if not value.strip().isdigit():
            raise ValidationError(f"Connection config 'port' must be an integer, got '{value}'")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError("Connection config 'port' must be an integer")
    if not 1 <= value <= 65535:
        raise ValidationError(f"Connection config 'port' out of range: {value}")
    return value


def parse_profile_json(text: str) -> ConnectionProfile:
    """Parse a JSON connection configuration into a profile.

    The document is parsed once; callers pass the resulting profile along
    instead of re-reading the raw text.

    Args:
        text: JSON object text, e.g. '{"host": "localhost", "port": 8123}'

    Returns:
        ConnectionProfile instance

    Raises:
        ValidationError: If the text is not valid JSON or the fields are invalid
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Connection config is not valid JSON: {e}") from e
    return ConnectionProfile.from_mapping(data)


@dataclass(frozen=True)
class FlatFileOptions:
    """Settings for delimited flat files."""

    delimiter: str = DEFAULT_DELIMITER

    def __post_init__(self) -> None:
        validate_delimiter(self.delimiter)


def validate_delimiter(delimiter: Any) -> str:
    """Check that a delimiter is exactly one character.

    Raises:
        ValidationError: If the delimiter is not a single character
    """
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ValidationError(f"Delimiter must be a single character, got {delimiter!r}")
    if delimiter in "\r\n":
        raise ValidationError("Delimiter cannot be a line break")
    return delimiter


class BridgeConfig:
    """Configuration file contents for the chbridge CLI."""

    def __init__(
        self,
        connection: dict[str, Any] | None = None,
        flatfile: FlatFileOptions | None = None,
        output_dir: Path | None = None,
    ) -> None:
        """Initialize configuration.

        Args:
            connection: Raw connection settings, validated once merged with
                command-line overrides
            flatfile: Flat file options (default delimiter ',')
            output_dir: Directory for exported files (default 'output')
        """
        self.connection = connection or {}
        self.flatfile = flatfile or FlatFileOptions()
        self.output_dir = output_dir or Path(DEFAULT_OUTPUT_DIR)

    def profile(self, overrides: dict[str, Any] | None = None) -> ConnectionProfile:
        """Build the connection profile, applying non-None overrides.

        Args:
            overrides: Values taken from command-line options or environment

        Returns:
            ConnectionProfile instance

        Raises:
            ValidationError: If the merged settings are invalid
        """
        merged = dict(self.connection)
        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value
        return ConnectionProfile.from_mapping(merged)

    @classmethod
    def from_yaml(cls, config_path: Path) -> BridgeConfig:
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            BridgeConfig instance

        Raises:
            ValidationError: If the file is missing or invalid

        Example YAML structure:
            clickhouse:
              host: localhost
              port: 8123
              database: analytics
              username: default
              token: secret
            flatfile:
              delimiter: ","
            output_dir: exports
        """
        if not config_path.exists():
            raise ValidationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Config file is not valid YAML: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("Config file must contain a mapping")

        connection = data.get("clickhouse") or {}
        if not isinstance(connection, dict):
            raise ValidationError("'clickhouse' section must be a mapping")

        flatfile_data = data.get("flatfile") or {}
        if not isinstance(flatfile_data, dict):
            raise ValidationError("'flatfile' section must be a mapping")
        flatfile = FlatFileOptions(delimiter=flatfile_data.get("delimiter", DEFAULT_DELIMITER))

        output_dir = data.get("output_dir")
        if output_dir is not None and not isinstance(output_dir, str):
            raise ValidationError("'output_dir' must be a string")

        return cls(
            connection=connection,
            flatfile=flatfile,
            output_dir=Path(output_dir) if output_dir else None,
        )
