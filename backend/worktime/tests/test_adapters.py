"""
Backend adapter tests: placeholder handling, result shape, schema setup,
error translation and transaction release.
"""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy.exc import OperationalError

from worktime.database.adapters import EmbeddedStore, ServerStore, normalize_value, rewrite_placeholders
from worktime.database.query import WhereClause, insert_statement
from worktime.errors import ConflictError, StorageError


class TestPlaceholders:
    """Test cases for rewriting $n placeholders for SQLite."""

    def test_sequential(self):
        sql, params = rewrite_placeholders("SELECT * FROM t WHERE a = $1 AND b = $2", ["x", "y"])
        assert sql == "SELECT * FROM t WHERE a = ? AND b = ?"
        assert params == ("x", "y")

    def test_reordered_and_repeated(self):
        sql, params = rewrite_placeholders("UPDATE t SET a = $2, b = $2 WHERE id = $1", ["id-1", "v"])
        assert sql == "UPDATE t SET a = ?, b = ? WHERE id = ?"
        assert params == ("v", "v", "id-1")

    def test_double_digit_placeholders(self):
        values = [str(i) for i in range(1, 12)]
        sql, params = rewrite_placeholders("SELECT $11, $1", values)
        assert sql == "SELECT ?, ?"
        assert params == ("11", "1")

    def test_missing_parameter(self):
        with pytest.raises(StorageError):
            rewrite_placeholders("SELECT * FROM t WHERE a = $3", ["only-one"])


class TestQueryComposition:
    """Test cases for parameter-bound WHERE clauses."""

    def test_scoped_clause(self):
        where = WhereClause.scoped("org-1", alias="tl")
        where.add_if(None, "status = {}")
        where.add_if("pending", "status = {}")
        assert where.sql() == "tl.organization_id = $1 AND tl.deleted_at IS NULL AND tl.status = $2"
        assert where.params == ["org-1", "pending"]

    def test_filter_values_never_reach_sql_text(self):
        hostile = "x'; DROP TABLE time_logs; --"
        where = WhereClause.scoped("org-1").add("project_id = {}", hostile)
        assert hostile not in where.sql()
        assert where.params[-1] == hostile

    def test_in_clause(self):
        where = WhereClause().is_in("id", ["a", "b", "c"])
        assert where.sql() == "id IN ($1, $2, $3)"
        with pytest.raises(ValueError):
            WhereClause().is_in("id", [])

    def test_insert_statement(self):
        sql, params = insert_statement("projects", {"id": "P1", "name": "Core"})
        assert sql == "INSERT INTO projects (id, name) VALUES ($1, $2)"
        assert params == ["P1", "Core"]


def test_normalize_value():
    assert normalize_value(UUID("12345678-1234-5678-1234-567812345678")) == "12345678-1234-5678-1234-567812345678"
    assert normalize_value(Decimal("87.50")) == 87.5
    assert normalize_value(datetime(2024, 3, 1, 9, tzinfo=timezone.utc)) == "2024-03-01T09:00:00+00:00"
    assert normalize_value("plain") == "plain"


class TestEmbeddedStore:
    """Test cases for the SQLite-backed store."""

    async def test_rows_are_plain_dicts(self, store):
        await store.query(
            "INSERT INTO organizations (id, name, slug) VALUES ($1, $2, $3)", ["org-1", "Acme", "acme"])
        result = await store.query("SELECT id, slug FROM organizations WHERE slug = $1", ["acme"])
        assert result.rows == [{"id": "org-1", "slug": "acme"}]
        assert result.row_count == 1
        assert result.first() == {"id": "org-1", "slug": "acme"}

    async def test_update_reports_affected_rows(self, store):
        await store.query(
            "INSERT INTO organizations (id, name, slug) VALUES ($1, $2, $3)", ["org-1", "Acme", "acme"])
        result = await store.query("UPDATE organizations SET plan = $1 WHERE id = $2", ["pro", "org-1"])
        assert result.row_count == 1
        assert result.rows == []

    async def test_unique_violation_is_conflict(self, store):
        insert = "INSERT INTO organizations (id, name, slug) VALUES ($1, $2, $3)"
        await store.query(insert, ["org-1", "Acme", "acme"])
        with pytest.raises(ConflictError):
            await store.query(insert, ["org-2", "Acme Again", "acme"])

    async def test_foreign_keys_enforced(self, store):
        with pytest.raises(ConflictError):
            await store.query(
                """INSERT INTO users (id, organization_id, email, password_hash, first_name, last_name)
                   VALUES ($1, $2, $3, $4, $5, $6)""",
                ["u-1", "missing-org", "a@acme.io", "h", "A", "B"],
            )

    async def test_malformed_query_is_storage_error(self, store):
        with pytest.raises(StorageError):
            await store.query("SELECT * FROM no_such_table")

    async def test_schema_setup_is_idempotent(self, tmp_path):
        path = str(tmp_path / "twice.sqlite")
        first = EmbeddedStore(path)
        await first.start()
        await first.ensure_schema()
        await first.query("INSERT INTO organizations (id, name, slug) VALUES ($1, $2, $3)", ["o", "O", "o"])
        await first.close()

        second = EmbeddedStore(path)
        await second.start()
        await second.ensure_schema()
        result = await second.query("SELECT COUNT(*) AS total FROM organizations")
        await second.close()
        assert result.first()["total"] == 1

    async def test_parent_directory_created(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "db.sqlite"
        store = EmbeddedStore(str(path))
        await store.start()
        await store.ensure_schema()
        await store.close()
        assert path.exists()

    def test_params_adapted_for_sqlite(self):
        sql, params = EmbeddedStore(":memory:").prepare(
            "INSERT INTO t VALUES ($1, $2, $3)",
            [True, datetime(2024, 3, 1, tzinfo=timezone.utc), {"a": 1}],
        )
        assert params == (1, "2024-03-01T00:00:00+00:00", '{"a": 1}')


class FakeResult:
    returns_rows = False
    rowcount = 1


class FakeTransaction:
    def __init__(self, log):
        self.log = log

    async def commit(self):
        self.log.append("commit")

    async def rollback(self):
        self.log.append("rollback")


class FakeConnection:
    def __init__(self, log, fail_with=None):
        self.log = log
        self.fail_with = fail_with

    async def begin(self):
        self.log.append("begin")
        return FakeTransaction(self.log)

    async def exec_driver_sql(self, statement, params=None):
        self.log.append(("execute", statement, params))
        if self.fail_with is not None:
            raise self.fail_with
        return FakeResult()

    async def close(self):
        self.log.append("close")


class FakeEngine:
    """Stands in for an asyncpg-backed AsyncEngine."""

    def __init__(self, fail_with=None):
        self.log = []
        self.fail_with = fail_with

    async def connect(self):
        self.log.append("connect")
        return FakeConnection(self.log, self.fail_with)

    async def dispose(self):
        self.log.append("dispose")


class TestServerStoreTransaction:
    """Test cases for connection handling on the server store."""

    async def test_statements_pass_through_with_native_placeholders(self):
        engine = FakeEngine()
        store = ServerStore("postgresql+asyncpg://u:p@db/wt", engine=engine)
        async with store.transaction() as tx:
            result = await tx.query("UPDATE time_logs SET status = $1 WHERE id = $2", ["approved", "t-1"])
        assert result.row_count == 1
        assert ("execute", "UPDATE time_logs SET status = $1 WHERE id = $2", ("approved", "t-1")) in engine.log
        assert engine.log[-2:] == ["commit", "close"]

    async def test_failure_rolls_back_and_releases(self):
        engine = FakeEngine(fail_with=OperationalError("SELECT 1", {}, Exception("connection lost")))
        store = ServerStore("postgresql+asyncpg://u:p@db/wt", engine=engine)
        with pytest.raises(StorageError):
            async with store.transaction() as tx:
                await tx.query("SELECT 1")
        assert "commit" not in engine.log
        assert engine.log[-2:] == ["rollback", "close"]
        assert engine.log.count("close") == 1

    async def test_cancellation_rolls_back_and_releases(self):
        engine = FakeEngine()
        store = ServerStore("postgresql+asyncpg://u:p@db/wt", engine=engine)
        with pytest.raises(asyncio.CancelledError):
            async with store.transaction():
                raise asyncio.CancelledError()
        assert engine.log[-2:] == ["rollback", "close"]

    async def test_close_disposes_engine(self):
        engine = FakeEngine()
        store = ServerStore("postgresql+asyncpg://u:p@db/wt", engine=engine)
        await store.close()
        assert engine.log == ["dispose"]
        assert not store.started
