"""Driver proxy base class.

Manifesto:
    Every backend exposes the same capability set. The abstract base class
    implements it once, on top of a handful of hooks (open a connection,
    create a cursor, translate driver errors), so consumers never depend
    on a specific driver module.

Features:
    - Lazy, idempotent ``connect()`` and explicit ``close()``
    - Query counter and in-memory query log driven by ``DatabaseSettings``
    - Result-shape helpers: ``get_one``, ``get_row``, ``get_column``, ``get_all``
    - ``insert`` / ``update`` builders running the table-data filter
    - Transaction-conflict retry on every statement
    - Advisory locks, transactions, schema introspection
    - User and privilege helpers (MySQL syntax)

Guardrails:
    ❌ DON'T: Interpolate values into SQL text
    ✅ DO: Pass them as ``params`` so they go through binding

    ❌ DON'T: Share a proxy across processes
    ✅ DO: Obtain proxies through ``dbproxy.registry.get()``

Tags:
    dbproxy, database, abstract-base, proxy-pattern

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from numbers import Number
from typing import Any

from dbproxy.config import DatabaseSettings, get_settings
from dbproxy.dialect import Dialect, get_dialect
from dbproxy.dsn import TargetInfo, normalize_driver, parse_target
from dbproxy.errors import (
    DatabaseProxyError,
    LockError,
    QueryError,
    UnsupportedDriverError,
    UnsupportedOperationError,
    redact,
)
from dbproxy.filters import filter_table_data
from dbproxy.logging import get_logger
from dbproxy.retry import TransactionRetry
from dbproxy.statement import Statement
from dbproxy.types import ColumnDefinition, Row, TableDefinition

logger = get_logger(__name__)

_NUMERIC = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")


class Proxy(ABC):
    """
    Abstract base class for driver proxies.

    Args:
        target: Target identifier the proxy connects to.
        settings: Policy source; the process-wide settings when omitted.
            Read at each use, never copied.
        retry: Retry engine; built from ``settings`` when omitted.
    """

    def __init__(
        self,
        target: str,
        *,
        settings: DatabaseSettings | None = None,
        retry: TransactionRetry | None = None,
    ):
        self.target = target
        self._settings = settings
        self._retry = retry or TransactionRetry(settings)
        self._dialect = self._resolve_dialect()
        self._info: TargetInfo | None = None
        self._conn: Any = None

        self.query_counter = 0
        self.query_log: list[str] = []

    # ── Hooks ────────────────────────────────────────────────────────────

    @abstractmethod
    def _open(self, info: TargetInfo) -> Any:
        """Open a DB-API connection for ``info``.

        Raises:
            ConnectionError: Handshake failed or required fields are missing.
        """
        ...

    @abstractmethod
    def _translate_error(self, error: Exception) -> DatabaseProxyError:
        """Map a driver exception to ``ConnectionError`` or ``QueryError``."""
        ...

    def _cursor(self, connection: Any) -> Any:
        return connection.cursor()

    def _control_cursor(self, connection: Any) -> Any:
        return self._cursor(connection)

    def _escape_string(self, value: str) -> str:
        return self.dialect.escape_string(value)

    def _close_connection(self, connection: Any) -> None:
        connection.close()

    def _resolve_dialect(self) -> Dialect:
        scheme = self.target.partition(":")[0]
        try:
            return get_dialect(normalize_driver(scheme))
        except ValueError:
            raise UnsupportedDriverError(self.target) from None

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings or get_settings()

    @property
    def dialect(self) -> Dialect:
        """SQL dialect of the backend."""
        return self._dialect

    @property
    def info(self) -> TargetInfo:
        """Parsed target identifier."""
        if self._info is None:
            self._info = parse_target(self.target)
        return self._info

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> Any:
        """Live DB-API connection, opened on first use."""
        if self._conn is None:
            self.connect()
        return self._conn

    def connect(self) -> bool:
        """Open the connection if it is not open yet."""
        if self._conn is not None:
            return True

        info = self.info
        try:
            self._conn = self._open(info)
        except DatabaseProxyError as e:
            logger.error(
                "database_connect_failed",
                target=info.redacted,
                driver=info.driver,
                error=e.message,
            )
            raise e.with_context(target=info.redacted, driver=info.driver)

        logger.info("database_connected", target=info.redacted, driver=info.driver)
        return True

    def close(self) -> None:
        """Close the connection; the next operation reconnects."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            self._close_connection(conn)

    def __enter__(self) -> Proxy:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_dbms(self) -> str:
        """Canonical backend name (``mysql``, ``pgsql``, ``sqlite``)."""
        return self.dialect.name

    # ── Statement plumbing ───────────────────────────────────────────────

    def _new_statement(self, query: str) -> Statement:
        return Statement(
            self.connection,
            query,
            self.dialect,
            cursor_factory=self._cursor,
            translate_error=self._translate_error,
        )

    def _statement(self, query: str, params: Sequence[Any] | None = None) -> Statement:
        statement = self._new_statement(query).bind(params)

        settings = self.settings
        if settings.query_log:
            self.query_log.append(statement.interpolated())
        if settings.query_counter:
            self.query_counter += 1
        return statement

    def _run(self, statement: Statement) -> int:
        try:
            return statement.execute()
        except QueryError as e:
            return self._retry.handle(statement, e)

    def _fetch(self, query: str, params: Sequence[Any] | None = None) -> list[Row]:
        statement = self._statement(query, params)
        try:
            self._run(statement)
            return statement.fetch_rows()
        finally:
            statement.close()

    def _control(self, query: str) -> None:
        """Run a session control statement; not counted, not logged."""
        statement = Statement(
            self.connection,
            query,
            self.dialect,
            cursor_factory=self._control_cursor,
            translate_error=self._translate_error,
        )
        try:
            statement.execute()
        finally:
            statement.close()

    # ── Queries ──────────────────────────────────────────────────────────

    def query(self, query: str, params: Sequence[Any] | None = None) -> int:
        """Execute a statement and return the affected row count."""
        statement = self._statement(query, params)
        try:
            return self._run(statement)
        finally:
            statement.close()

    def get_all(self, query: str, params: Sequence[Any] | None = None) -> list[Row]:
        return self._fetch(query, params)

    def get_row(self, query: str, params: Sequence[Any] | None = None) -> Row | None:
        """Single row, or None when the result is empty.

        Raises:
            QueryError: The result has more than one row.
        """
        rows = self._fetch(query, params)
        if not rows:
            return None
        if len(rows) > 1:
            raise QueryError("ambiguous row result").with_context(query=query, params=params)
        return rows[0]

    def get_one(self, query: str, params: Sequence[Any] | None = None) -> Any:
        """Single scalar, or None when the result is empty.

        Raises:
            QueryError: More than one row, or a row with other than one column.
        """
        rows = self._fetch(query, params)
        if not rows:
            return None
        if len(rows) > 1:
            raise QueryError("ambiguous row result").with_context(query=query, params=params)
        row = rows[0]
        if len(row) != 1:
            raise QueryError("ambiguous column result").with_context(query=query, params=params)
        return next(iter(row.values()))

    def get_column(self, query: str, params: Sequence[Any] | None = None) -> list[Any]:
        """Values of the single result column, in row order."""
        rows = self._fetch(query, params)
        if rows and len(rows[0]) != 1:
            raise QueryError("ambiguous column result").with_context(query=query, params=params)
        return [next(iter(row.values())) for row in rows]

    def insert(self, table: str, data: Mapping[str, Any]) -> int:
        """Insert one row built from ``data`` after filtering."""
        data = filter_table_data(self.get_table_definition, table, data, self.settings)
        if not data:
            raise QueryError("Nothing to insert: empty payload").with_context(table=table)

        columns = ", ".join(self.quote_identifier(column) for column in data)
        placeholders = ", ".join("?" for _ in data)
        query = f"INSERT INTO {self.quote_identifier(table)} ({columns}) VALUES ({placeholders})"
        return self.query(query, list(data.values()))

    def update(self, table: str, data: Mapping[str, Any], where: str) -> int:
        """Update rows matching ``where``, a literal SQL condition."""
        data = filter_table_data(self.get_table_definition, table, data, self.settings)
        if not data:
            raise QueryError("Nothing to update: empty payload").with_context(table=table)

        assignments = ", ".join(f"{self.quote_identifier(column)} = ?" for column in data)
        query = f"UPDATE {self.quote_identifier(table)} SET {assignments} WHERE {where}"
        return self.query(query, list(data.values()))

    # ── Quoting ──────────────────────────────────────────────────────────

    def quote(self, value: Any, quotes: bool = True) -> Any:
        """Render ``value`` as an SQL literal.

        Sequences and mappings are quoted element-wise and returned as a
        list or dict.
        """
        if isinstance(value, Mapping):
            return {key: self.quote(item, quotes) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.quote(item, quotes) for item in value]
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, Number):
            return str(value)
        if isinstance(value, str) and _NUMERIC.match(value):
            return value

        escaped = self.escape(value)
        return f"'{escaped}'" if quotes else escaped

    def quote_identifier(self, name: str) -> str:
        return self.dialect.quote_identifier(name)

    def escape(self, value: Any) -> Any:
        """Backend string escaping, applied element-wise to containers."""
        if isinstance(value, Mapping):
            return {key: self.escape(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.escape(item) for item in value]
        if value is None:
            return ""
        if isinstance(value, bytes):
            value = value.decode()
        return self._escape_string(str(value))

    def _string_literal(self, value: str) -> str:
        # Always delimited, even when the value looks numeric
        return f"'{self._escape_string(value)}'"

    # ── Introspection ────────────────────────────────────────────────────

    def get_tables(self) -> list[str]:
        query, params = self.dialect.tables_query(self.info.database)
        return [next(iter(row.values())) for row in self.get_all(query, params)]

    def get_table_definition(self, table: str) -> TableDefinition:
        query, params = self.dialect.table_definition_query(table, self.info.database)
        rows = self.get_all(query, params)
        return TableDefinition(
            table=table,
            columns=tuple(ColumnDefinition.from_row(row, self.dialect.parse_default) for row in rows),
        )

    def get_columns(self, table: str) -> list[str]:
        return self.get_table_definition(table).names

    def get_table_indexes(self, table: str) -> list[Row]:
        query, params = self.dialect.indexes_query(table, self.info.database)
        return self.get_all(query, params)

    def get_insert_id(self, table: str | None = None, column: str = "id") -> Any:
        """Most recently generated identity value of this session.

        ``table`` and ``column`` are required on sequence-based backends
        (pgsql) and ignored elsewhere.
        """
        query, params = self.dialect.insert_id_query(table or "", column)
        return self.get_one(query, params)

    # ── Advisory locks ───────────────────────────────────────────────────

    def get_lock(self, identifier: str, timeout: int = 10) -> bool:
        """Acquire the named advisory lock, waiting up to ``timeout`` seconds.

        Raises:
            LockError: Not obtained within the timeout.
            UnsupportedOperationError: The backend has no advisory locks.
        """
        style = self.dialect.lock_style
        if style is None:
            raise UnsupportedOperationError(
                f"Advisory locks are not supported by {self.get_dbms()}"
            )

        query, params = self.dialect.lock_query(identifier, timeout)
        if style == "polling":
            deadline = time.monotonic() + timeout
            while not self.get_one(query, params):
                if time.monotonic() >= deadline:
                    raise LockError("Could not get a lock on the database").with_context(
                        metadata={"identifier": identifier, "timeout": timeout}
                    )
                time.sleep(self.settings.lock_poll_interval)
            return True

        if not self.get_one(query, params):
            raise LockError("Could not get a lock on the database").with_context(
                metadata={"identifier": identifier, "timeout": timeout}
            )
        return True

    def release_lock(self, identifier: str) -> bool:
        if self.dialect.lock_style is None:
            raise UnsupportedOperationError(
                f"Advisory locks are not supported by {self.get_dbms()}"
            )
        query, params = self.dialect.release_lock_query(identifier)
        return bool(self.get_one(query, params))

    # ── Transactions ─────────────────────────────────────────────────────

    def transaction_begin(self, name: str | None = None) -> None:
        self._control(self.dialect.begin_statement())

    def transaction_commit(self, name: str | None = None) -> None:
        self._control("COMMIT")

    def transaction_rollback(self, name: str | None = None) -> None:
        self._control("ROLLBACK")

    @contextmanager
    def transaction(self, name: str | None = None) -> Iterator[Proxy]:
        """Commit on success, roll back on any exception."""
        self.transaction_begin(name)
        try:
            yield self
        except BaseException:
            self.transaction_rollback(name)
            raise
        self.transaction_commit(name)

    # ── Databases, users and privileges ──────────────────────────────────

    def _require_mysql(self, operation: str) -> None:
        if self.dialect.name != "mysql":
            raise UnsupportedOperationError(f"{operation} is not supported by {self.get_dbms()}")

    def _account(self, user: str, host: str) -> str:
        return f"{self.quote_identifier(user)}@{self._string_literal(host)}"

    def create_database(self, database: str) -> int:
        if self.dialect.name == "sqlite":
            raise UnsupportedOperationError("create_database is not supported by sqlite")
        return self.query(f"CREATE DATABASE {self.quote_identifier(database)}")

    def drop_database(self, database: str) -> int:
        if self.dialect.name == "sqlite":
            raise UnsupportedOperationError("drop_database is not supported by sqlite")
        return self.query(f"DROP DATABASE {self.quote_identifier(database)}")

    def create_user(
        self,
        user: str,
        host: str = "%",
        password: str | None = None,
        password_hashed: bool = False,
    ) -> int:
        """Create ``user``@``host``; a random password is used when none is given."""
        self._require_mysql("create_user")
        password = password or secrets.token_hex(16)
        identified = "IDENTIFIED BY PASSWORD" if password_hashed else "IDENTIFIED BY"
        self.query(f"CREATE USER {self._account(user, host)} {identified} {self._string_literal(password)}")
        return self.query("FLUSH PRIVILEGES")

    def drop_user(self, user: str, host: str = "%") -> int:
        self._require_mysql("drop_user")
        account = self._account(user, host)
        self.query(f"REVOKE ALL PRIVILEGES, GRANT OPTION FROM {account}")
        self.query(f"DROP USER {account}")
        return self.query("FLUSH PRIVILEGES")

    def update_user_password(
        self,
        user: str,
        host: str = "%",
        password: str | None = None,
        password_hashed: bool = False,
    ) -> int:
        self._require_mysql("update_user_password")
        password = password or secrets.token_hex(16)
        value = self._string_literal(password)
        if not password_hashed:
            value = f"PASSWORD({value})"
        self.query(f"SET PASSWORD FOR {self._account(user, host)} = {value}")
        return self.query("FLUSH PRIVILEGES")

    def grant_all_privileges(self, database: str, user: str, host: str = "%") -> int:
        self._require_mysql("grant_all_privileges")
        self.query(
            f"GRANT ALL PRIVILEGES ON {self.quote_identifier(database)}.* "
            f"TO {self._account(user, host)}"
        )
        return self.query("FLUSH PRIVILEGES")

    def revoke_all_privileges(self, database: str, user: str, host: str = "%") -> int:
        self._require_mysql("revoke_all_privileges")
        self.query(
            f"REVOKE ALL PRIVILEGES ON {self.quote_identifier(database)}.* "
            f"FROM {self._account(user, host)}"
        )
        return self.query("FLUSH PRIVILEGES")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({redact(self.target)!r})"


__all__ = [
    "Proxy",
]
