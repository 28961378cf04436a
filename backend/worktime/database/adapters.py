"""
Backend adapters: one query interface over the server and embedded stores.

Callers write SQL once with PostgreSQL-style positional placeholders
(``$1``, ``$2``, ...) and get back plain dict rows plus a row count. The
server store executes that text natively on asyncpg; the embedded store
rewrites it for SQLite and keeps its own schema.
"""
import json
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import event, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..errors import ConflictError, StorageError, WorktimeError
from .models import Base, CORE_TABLES

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$(\d+)")


@dataclass
class QueryResult:
    """Rows as field-keyed dicts, plus the row count."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


def normalize_value(value: Any) -> Any:
    """Convert driver-specific column values to plain JSON-friendly types."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def rewrite_placeholders(sql: str, params: Sequence[Any]) -> Tuple[str, Tuple[Any, ...]]:
    """
    Rewrite ``$n`` placeholders to SQLite ``?`` markers.

    Parameters are reordered to follow the order in which placeholders appear,
    so ``$2 ... $1 ... $2`` binds ``(p2, p1, p2)``.
    """
    order: List[int] = []

    def _replace(match):
        order.append(int(match.group(1)) - 1)
        return "?"

    statement = _PLACEHOLDER.sub(_replace, sql)
    if any(index < 0 or index >= len(params) for index in order):
        raise StorageError(
            f"Statement references ${max(order) + 1} but only {len(params)} parameters were bound"
        )
    return statement, tuple(params[index] for index in order)


@contextmanager
def storage_errors(action: str):
    """Translate driver and SQLAlchemy failures into the error taxonomy."""
    try:
        yield
    except WorktimeError:
        raise
    except IntegrityError as exc:
        logger.info(f"Integrity violation during {action}: {exc.orig}")
        raise ConflictError("Record conflicts with existing data") from exc
    except (SQLAlchemyError, OSError) as exc:
        logger.error(f"Database error during {action}: {exc}")
        raise StorageError(f"Database operation failed: {exc}") from exc


class BackendAdapter(ABC):
    """Uniform query/execute interface over a physical store."""

    name = "abstract"
    # Whether sensitive fields are written as ciphertext by this store.
    encrypts_at_rest = False

    def __init__(self, echo: bool = False, engine: Optional[AsyncEngine] = None):
        self.echo = echo
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageError(f"{self.name} store is not started")
        return self._engine

    @property
    def started(self) -> bool:
        return self._engine is not None

    @abstractmethod
    def _create_engine(self) -> AsyncEngine:
        """Build the async engine for this store."""

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Make sure the core tables are usable."""

    @abstractmethod
    def transaction(self):
        """Async context manager yielding an object with a ``query`` method."""

    def prepare(self, sql: str, params: Sequence[Any]) -> Tuple[str, Tuple[Any, ...]]:
        """Translate statement text and parameters for the underlying driver."""
        return sql, tuple(params)

    def is_valid_id(self, value: Any) -> bool:
        """Whether ``value`` can be compared against this store's key columns."""
        return value is not None

    async def start(self) -> None:
        if self._engine is None:
            with storage_errors("engine creation"):
                self._engine = self._create_engine()
        logger.info(f"Using {self.name} store")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info(f"{self.name} store connection closed")

    async def _execute_on(self, conn: AsyncConnection, sql: str, params: Sequence[Any]) -> QueryResult:
        statement, bound = self.prepare(sql, params)
        started = time.perf_counter()
        if bound:
            result = await conn.exec_driver_sql(statement, bound)
        else:
            result = await conn.exec_driver_sql(statement)

        if result.returns_rows:
            rows = [
                {key: normalize_value(value) for key, value in row.items()}
                for row in result.mappings().all()
            ]
            outcome = QueryResult(rows=rows, row_count=len(rows))
        else:
            outcome = QueryResult(rows=[], row_count=result.rowcount)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"Executed query ({self.name}) in {duration_ms:.1f}ms, rows={outcome.row_count}: {statement}")
        return outcome

    async def query(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Run one statement in its own short transaction."""
        with storage_errors("query"):
            async with self.engine.begin() as conn:
                return await self._execute_on(conn, sql, params)


class _ConnectionHandle:
    """Query interface bound to one checked-out connection."""

    def __init__(self, adapter: BackendAdapter, conn: AsyncConnection):
        self._adapter = adapter
        self._conn = conn

    async def query(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        with storage_errors("transactional query"):
            return await self._adapter._execute_on(self._conn, sql, params)


class ServerStore(BackendAdapter):
    """Networked PostgreSQL store reached through asyncpg."""

    name = "server"
    encrypts_at_rest = False

    def __init__(self, url: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        super().__init__(echo=echo, engine=engine)
        self.url = url

    def _create_engine(self) -> AsyncEngine:
        # asyncpg takes $n placeholders natively, so statements pass through unchanged.
        return create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)

    def is_valid_id(self, value: Any) -> bool:
        # Key columns are UUID; any other text can never match a row.
        if value is None:
            return False
        try:
            UUID(str(value))
        except ValueError:
            return False
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_ConnectionHandle]:
        """
        Check out one connection and run the enclosed statements atomically.

        Commits on success, rolls back on any exception (including
        cancellation) and releases the connection exactly once.
        """
        with storage_errors("connection checkout"):
            conn = await self.engine.connect()
        try:
            with storage_errors("begin transaction"):
                trans = await conn.begin()
            try:
                yield _ConnectionHandle(self, conn)
                with storage_errors("commit"):
                    await trans.commit()
            except BaseException:
                try:
                    await trans.rollback()
                except SQLAlchemyError as rollback_exc:
                    logger.error(f"Rollback failed: {rollback_exc}")
                raise
        finally:
            await conn.close()

    async def ensure_schema(self) -> None:
        """The server schema is owned by migrations; only verify it is present."""

        def _missing_tables(sync_conn) -> List[str]:
            existing = set(inspect(sync_conn).get_table_names())
            return [table for table in CORE_TABLES if table not in existing]

        with storage_errors("schema verification"):
            async with self.engine.connect() as conn:
                missing = await conn.run_sync(_missing_tables)

        if missing:
            raise StorageError(f"Server database is missing required tables: {', '.join(missing)}")
        logger.info("Server schema verified")


def _enable_foreign_keys(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class EmbeddedStore(BackendAdapter):
    """Local SQLite file used in offline/portable deployments."""

    name = "embedded"
    encrypts_at_rest = True

    def __init__(self, path: str, echo: bool = False, engine: Optional[AsyncEngine] = None):
        super().__init__(echo=echo, engine=engine)
        self.path = path if path == ":memory:" else os.path.expanduser(path)

    def _create_engine(self) -> AsyncEngine:
        if self.path == ":memory:":
            engine = create_async_engine(
                "sqlite+aiosqlite:///:memory:",
                echo=self.echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            engine = create_async_engine(f"sqlite+aiosqlite:///{self.path}", echo=self.echo)
        event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
        return engine

    @staticmethod
    def adapt_param(value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value

    def prepare(self, sql: str, params: Sequence[Any]) -> Tuple[str, Tuple[Any, ...]]:
        statement, bound = rewrite_placeholders(sql, params)
        return statement, tuple(self.adapt_param(value) for value in bound)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["EmbeddedStore"]:
        # No separate transaction primitive: statements run one after another.
        yield self

    async def ensure_schema(self) -> None:
        """Create any missing tables and indexes. Safe to run on every start."""

        def _create_missing(sync_conn) -> List[str]:
            existing = set(inspect(sync_conn).get_table_names())
            created = []
            for table in Base.metadata.sorted_tables:
                if table.name not in existing:
                    created.append(table.name)
                table.create(sync_conn, checkfirst=True)
                for index in table.indexes:
                    index.create(sync_conn, checkfirst=True)
            return created

        with storage_errors("schema initialization"):
            async with self.engine.begin() as conn:
                created = await conn.run_sync(_create_missing)

        if created:
            logger.info(f"Embedded schema initialized, created tables: {', '.join(created)}")
        else:
            logger.info("Embedded schema verified")
