"""Connection options shared by the chbridge commands."""

from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click

from chbridge.config import BridgeConfig, ConnectionProfile, parse_profile_json

_CONNECTION_OPTIONS = [
    click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        envvar="CHBRIDGE_CONFIG",
        default=None,
        help="YAML configuration file (or set CHBRIDGE_CONFIG env var)",
    ),
    click.option(
        "--connection-json",
        envvar="CLICKHOUSE_CONNECTION_JSON",
        default=None,
        help="Connection settings as a JSON object, replacing the config file's",
    ),
    click.option("--host", envvar="CLICKHOUSE_HOST", default=None, help="ClickHouse host"),
    click.option(
        "--port", envvar="CLICKHOUSE_PORT", type=int, default=None, help="HTTP port (default 8123)"
    ),
    click.option("--database", envvar="CLICKHOUSE_DATABASE", default=None, help="Database name"),
    click.option("--user", envvar="CLICKHOUSE_USER", default=None, help="Username"),
    click.option(
        "--token", envvar="CLICKHOUSE_TOKEN", default=None, help="Password or access token"
    ),
    click.option(
        "--secure/--no-secure", default=None, help="Use HTTPS for the connection"
    ),
]


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the connection options to a command."""
    for option in reversed(_CONNECTION_OPTIONS):
        func = option(func)
    return func


def load_settings(
    config_path: Path | None,
    connection_json: str | None,
    host: str | None,
    port: int | None,
    database: str | None,
    user: str | None,
    token: str | None,
    secure: bool | None,
) -> tuple[BridgeConfig, ConnectionProfile]:
    """Load the config file and build the profile with option overrides.

    A JSON connection object replaces the config file's connection section;
    the individual options then override single fields.

    Raises:
        ValidationError: If the config file or the merged settings are invalid
    """
    config = BridgeConfig.from_yaml(config_path) if config_path else BridgeConfig()
    if connection_json:
        parsed = parse_profile_json(connection_json)
        config.connection = asdict(parsed)
    profile = config.profile(
        {
            "host": host,
            "port": port,
            "database": database,
            "username": user,
            "token": token,
            "secure": secure,
        }
    )
    return config, profile
