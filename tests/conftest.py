"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import platform
from typing import Any

import pytest
from click.testing import CliRunner

from chbridge.config import ConnectionProfile
from tests.fake_clickhouse import FakeClickHouseClient


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner.

    Returns:
        CliRunner instance for testing CLI commands
    """
    return CliRunner()


@pytest.fixture
def profile() -> ConnectionProfile:
    """Connection profile pointing at the fake server."""
    return ConnectionProfile(host="localhost", database="test", username="tester", token="secret")


@pytest.fixture
def fake_clickhouse(monkeypatch: pytest.MonkeyPatch) -> FakeClickHouseClient:
    """Replace clickhouse_connect.get_client with an in-memory fake.

    Returns:
        The fake client every connection receives
    """
    client = FakeClickHouseClient()

    def get_client(**kwargs: Any) -> FakeClickHouseClient:
        client.connect_kwargs.append(kwargs)
        if client.connect_error:
            raise client.connect_error
        return client

    monkeypatch.setattr("chbridge.database.clickhouse_connect.get_client", get_client)
    return client


def should_skip_clickhouse_tests() -> tuple[bool, str | None]:
    """Check if ClickHouse container tests should be skipped.

    Testcontainers has issues on Windows/macOS with Docker socket mounting.
    Only run ClickHouse tests on Linux (locally or in CI).
    """
    system = platform.system()

    if system in ("Windows", "Darwin"):
        return True, f"ClickHouse tests not supported on {system} (testcontainers limitation)"

    try:
        import docker

        client = docker.from_env()
        client.ping()
        return False, None
    except Exception as e:
        return True, f"Docker is not available: {e}"


@pytest.fixture(scope="session")
def clickhouse_profile():
    """Provide a profile for a ClickHouse server running in Docker."""
    skip, reason = should_skip_clickhouse_tests()
    if skip:
        pytest.skip(reason)

    from testcontainers.clickhouse import ClickHouseContainer

    container = ClickHouseContainer("clickhouse/clickhouse-server:24.8-alpine")
    container.with_exposed_ports(8123)
    container.start()

    try:
        yield ConnectionProfile(
            host=container.get_container_host_ip(),
            port=int(container.get_exposed_port(8123)),
            database=container.dbname,
            username=container.username,
            token=container.password,
        )
    finally:
        container.stop()
