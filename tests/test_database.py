"""Tests for ClickHouse operations against an in-memory client."""

import re

import pytest
from clickhouse_connect.driver.exceptions import (
    DatabaseError,
    OperationalError,
    StreamFailureError,
)

from chbridge.config import ConnectionProfile
from chbridge.database import (
    ClickHouseConnection,
    TableSink,
    discover_schema,
    generate_table_name,
)
from chbridge.errors import DatabaseConnectionError, QueryError, ValidationError
from tests.fake_clickhouse import FakeClickHouseClient


class TestClickHouseConnection:
    """Test suite for the scoped connection handler."""

    def test_connects_with_profile(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        with ClickHouseConnection(profile) as db:
            assert db.client is fake_clickhouse

        assert fake_clickhouse.connect_kwargs == [profile.to_client_kwargs()]
        assert fake_clickhouse.close_count == 1

    def test_closed_when_body_raises(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        with pytest.raises(ValueError):
            with ClickHouseConnection(profile):
                raise ValueError("boom")

        assert fake_clickhouse.close_count == 1

    def test_connect_failure(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.connect_error = OperationalError("connection refused")

        with pytest.raises(DatabaseConnectionError, match="connection refused") as excinfo:
            with ClickHouseConnection(profile, stage="read"):
                pass

        assert excinfo.value.kind == "ConnectionError"
        assert excinfo.value.stage == "read"
        assert "secret" not in str(excinfo.value)
        assert fake_clickhouse.close_count == 0

    def test_auth_failure_is_connection_error(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.connect_error = DatabaseError("Authentication failed")

        with pytest.raises(DatabaseConnectionError, match="Authentication failed"):
            with ClickHouseConnection(profile):
                pass

    def test_requires_open_connection(self, profile: ConnectionProfile) -> None:
        with pytest.raises(RuntimeError, match="not established"):
            ClickHouseConnection(profile).catalog_rows()


class TestDiscoverSchema:
    """Test suite for schema discovery."""

    def test_single_table_scenario(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        """Test discovery of t(a Int32, b String)."""
        fake_clickhouse.add_table("t", [("a", "Int32"), ("b", "String")])

        tables = discover_schema(profile)

        assert [table.to_dict() for table in tables] == [
            {
                "name": "t",
                "columns": [
                    {"name": "a", "type": "Int32", "selected": False},
                    {"name": "b", "type": "String", "selected": False},
                ],
            }
        ]

    def test_groups_tables_in_catalog_order(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.add_table("users", [("id", "UInt64"), ("email", "String")])
        fake_clickhouse.add_table("events", [("z", "Int8"), ("a", "Date"), ("m", "Float64")])

        tables = discover_schema(profile)

        assert [table.name for table in tables] == ["events", "users"]
        assert tables[0].column_names == ["z", "a", "m"]
        assert all(not c.selected for table in tables for c in table.columns)

    def test_binds_database_parameter(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        discover_schema(profile)

        query, parameters = fake_clickhouse.queries[0]
        assert "system.columns" in query
        assert "{database:String}" in query
        assert "ORDER BY table, position" in query
        assert parameters == {"database": "test"}

    def test_empty_database(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        assert discover_schema(profile) == []

    def test_query_failure_is_connection_error(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.query_error = DatabaseError("Not enough privileges")

        with pytest.raises(DatabaseConnectionError, match="discovery failed"):
            discover_schema(profile)

        assert fake_clickhouse.close_count == 1

    def test_fresh_result_each_call(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        """Test selections on one result do not leak into the next."""
        fake_clickhouse.add_table("t", [("a", "Int32")])

        first = discover_schema(profile)
        first[0].select_all()
        second = discover_schema(profile)

        assert second[0].selected_columns == []


class TestStreamRows:
    """Test suite for reading projected rows."""

    def test_rows_rendered_as_text(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.add_table(
            "t",
            [("a", "Int32"), ("b", "Nullable(String)")],
            [{"a": 1, "b": "x"}, {"a": 2, "b": None}],
        )

        with ClickHouseConnection(profile) as db, db.stream_rows("t", ["b", "a"]) as rows:
            assert list(rows) == [{"b": "x", "a": "1"}, {"b": "", "a": "2"}]

        assert fake_clickhouse.queries[-1][0] == "SELECT `b`, `a` FROM `t`"
        assert fake_clickhouse.streams[-1].closed

    def test_empty_projection(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        with ClickHouseConnection(profile) as db:
            with pytest.raises(ValidationError):
                with db.stream_rows("t", []):
                    pass

        assert fake_clickhouse.queries == []

    def test_unknown_table(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        with ClickHouseConnection(profile) as db:
            with pytest.raises(QueryError, match="read failed: Table default.nope does not exist"):
                with db.stream_rows("nope", ["a"]):
                    pass

    def test_error_while_streaming(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.add_table("t", [("a", "Int32")], [{"a": 1}, {"a": 2}])
        fake_clickhouse.stream_error = (1, DatabaseError("Memory limit exceeded"))

        seen = []
        with ClickHouseConnection(profile) as db:
            with pytest.raises(QueryError, match="Memory limit"):
                with db.stream_rows("t", ["a"]) as rows:
                    for row in rows:
                        seen.append(row)

        assert seen == [{"a": "1"}]
        assert fake_clickhouse.streams[-1].closed

    def test_server_exception_while_streaming(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.add_table("t", [("a", "Int32")], [{"a": 1}, {"a": 2}])
        fake_clickhouse.stream_error = (
            1,
            StreamFailureError(
                "Code: 395. DB::Exception: Value passed to 'throwIf' function is non-zero"
            ),
        )

        with ClickHouseConnection(profile) as db:
            with pytest.raises(QueryError, match="read failed: Code: 395") as excinfo:
                with db.stream_rows("t", ["a"]) as rows:
                    list(rows)

        assert not isinstance(excinfo.value, DatabaseConnectionError)
        assert excinfo.value.kind == "QueryError"

    def test_dropped_connection_while_streaming(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.add_table("t", [("a", "Int32")], [{"a": 1}])
        fake_clickhouse.stream_error = (0, OperationalError("connection reset"))

        with ClickHouseConnection(profile) as db:
            with pytest.raises(DatabaseConnectionError, match="read failed"):
                with db.stream_rows("t", ["a"]) as rows:
                    list(rows)


class TestTableSink:
    """Test suite for creating and filling import tables."""

    def test_create_text_table(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        with ClickHouseConnection(profile) as db:
            db.create_text_table("import_1", ["id", "full name"])

        assert fake_clickhouse.commands == [
            "CREATE TABLE `import_1` (`id` String, `full name` String) "
            "ENGINE = MergeTree() ORDER BY tuple()"
        ]

    def test_create_failure(
        self, fake_clickhouse: FakeClickHouseClient, profile: ConnectionProfile
    ) -> None:
        fake_clickhouse.fail_command = lambda cmd: DatabaseError("Syntax error")

        with ClickHouseConnection(profile) as db:
            with pytest.raises(QueryError, match="write failed: Syntax error"):
                db.create_text_table("import_1", ["id"])

    def test_one_insert_per_row(self, fake_clickhouse: FakeClickHouseClient) -> None:
        fake_clickhouse.add_table("t", [("a", "String"), ("b", "String")])
        sink = TableSink(fake_clickhouse, "t")

        assert sink.write(["1", "x"]) == 1
        assert sink.write(["2", "y"]) == 1
        assert sink.flush() == 0

        assert fake_clickhouse.commands == [
            "INSERT INTO `t` VALUES ('1', 'x')",
            "INSERT INTO `t` VALUES ('2', 'y')",
        ]

    def test_batched_inserts(self, fake_clickhouse: FakeClickHouseClient) -> None:
        fake_clickhouse.add_table("t", [("a", "String")])
        sink = TableSink(fake_clickhouse, "t", batch_size=2)

        acknowledged = [sink.write([str(i)]) for i in range(3)]
        acknowledged.append(sink.flush())

        assert acknowledged == [0, 2, 0, 1]
        assert fake_clickhouse.commands == [
            "INSERT INTO `t` VALUES ('0'), ('1')",
            "INSERT INTO `t` VALUES ('2')",
        ]

    def test_quotes_escaped(self, fake_clickhouse: FakeClickHouseClient) -> None:
        fake_clickhouse.add_table("t", [("a", "String")])
        sink = TableSink(fake_clickhouse, "t")

        sink.write(["it's"])

        assert fake_clickhouse.commands == ["INSERT INTO `t` VALUES ('it''s')"]
        assert fake_clickhouse.rows("t") == [{"a": "it's"}]

    def test_failed_insert_not_counted(self, fake_clickhouse: FakeClickHouseClient) -> None:
        fake_clickhouse.add_table("t", [("a", "String")])
        sink = TableSink(fake_clickhouse, "t")

        with pytest.raises(QueryError, match="Expected 1 values, got 2"):
            sink.write(["1", "2"])
        assert sink.flush() == 0

    def test_invalid_batch_size(self, fake_clickhouse: FakeClickHouseClient) -> None:
        with pytest.raises(ValidationError, match="Batch size"):
            TableSink(fake_clickhouse, "t", batch_size=0)


class TestGenerateTableName:
    """Test suite for import table names."""

    def test_format(self) -> None:
        assert re.fullmatch(r"import_\d{13}_[0-9a-f]{4}", generate_table_name())

    def test_prefix(self) -> None:
        assert generate_table_name("staging").startswith("staging_")

    def test_names_differ(self) -> None:
        assert len({generate_table_name() for _ in range(20)}) > 1
