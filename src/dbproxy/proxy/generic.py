"""Generic DB-API proxy.

One proxy class for every target of the form ``<driver>:<dsn-body>``:

==========  =====================  ===========================================
Driver      Module                 Target example
==========  =====================  ===========================================
sqlite      ``sqlite3`` (stdlib)   ``sqlite:/var/lib/app.db``, ``sqlite::memory:``
pgsql       ``psycopg2``           ``pgsql:host=db;port=5432;dbname=app;user=u;password=p``
mysql       ``mysql.connector``    ``mysql:host=db;dbname=app;user=u;password=p``
==========  =====================  ===========================================

Third-party drivers are import-guarded: a missing module raises
:class:`~dbproxy.errors.ConfigurationError` at ``connect()`` time.

Every connection runs in autocommit mode; ``transaction_begin`` issues an
explicit ``BEGIN`` / ``START TRANSACTION``. Transaction names are ignored.
"""

from __future__ import annotations

from typing import Any

from dbproxy.dialect import Dialect, MySQLDialect
from dbproxy.dsn import TargetInfo, normalize_driver
from dbproxy.errors import (
    ConfigurationError,
    ConnectionError,
    DatabaseProxyError,
    QueryError,
    UnsupportedDriverError,
)

from .base import Proxy
from .mysql import connect_mysql, translate_mysql_error

PGSQL_DEFAULT_PORT = 5432


def translate_sqlite_error(error: Exception) -> DatabaseProxyError:
    import sqlite3

    if isinstance(error, sqlite3.ProgrammingError) and "closed" in str(error):
        return ConnectionError(f"Connection to database lost: {error}", cause=error)
    return QueryError(str(error), code=getattr(error, "sqlite_errorname", None), cause=error)


def translate_pgsql_error(error: Exception) -> DatabaseProxyError:
    import psycopg2

    code = getattr(error, "pgcode", None)
    if code is None and isinstance(error, (psycopg2.InterfaceError, psycopg2.OperationalError)):
        return ConnectionError(f"Connection to database lost: {error}", cause=error)
    message = (getattr(error, "pgerror", None) or str(error)).strip()
    text = f"{code}: {message}" if code else message
    return QueryError(text, code=code, cause=error)


class GenericProxy(Proxy):
    """DB-API proxy for sqlite, PostgreSQL and MySQL targets."""

    def _resolve_dialect(self) -> Dialect:
        if normalize_driver(self.target.partition(":")[0]) == "mysql":
            return MySQLDialect(information_schema=True)
        return super()._resolve_dialect()

    def _open(self, info: TargetInfo) -> Any:
        opener = getattr(self, f"_open_{info.driver}", None)
        if opener is None:
            raise UnsupportedDriverError(self.target)
        return opener(info)

    def _open_sqlite(self, info: TargetInfo) -> Any:
        import sqlite3

        path = info.path or ":memory:"
        try:
            return sqlite3.connect(
                path,
                timeout=float(info.options.get("timeout", 5.0)),
                isolation_level=None,
                check_same_thread=False,
                uri=path.startswith("file:"),
            )
        except sqlite3.Error as e:
            raise ConnectionError(f"Could not connect to database: {e}", cause=e) from e

    def _open_pgsql(self, info: TargetInfo) -> Any:
        try:
            import psycopg2
        except ImportError:
            raise ConfigurationError(
                "psycopg2 is required for PostgreSQL. Install with: pip install psycopg2-binary"
            ) from None

        if not info.database:
            raise ConnectionError("Could not connect to database: DSN incorrect (no dbname)")

        kwargs: dict[str, Any] = {
            "dbname": info.database,
            "host": info.socket or info.host,
            "port": info.port or PGSQL_DEFAULT_PORT,
            **info.options,
        }
        if info.username:
            kwargs["user"] = info.username
        if info.password:
            kwargs["password"] = info.password

        try:
            conn = psycopg2.connect(**kwargs)
            conn.autocommit = True
            conn.set_client_encoding(self.settings.charset)
        except psycopg2.Error as e:
            raise ConnectionError(f"Could not connect to database: {e}", cause=e) from e
        return conn

    def _open_mysql(self, info: TargetInfo) -> Any:
        return connect_mysql(info, self.settings.charset)

    def _translate_error(self, error: Exception) -> DatabaseProxyError:
        driver = self.dialect.name
        if driver == "sqlite":
            return translate_sqlite_error(error)
        if driver == "pgsql":
            return translate_pgsql_error(error)
        return translate_mysql_error(error)

    def _cursor(self, connection: Any) -> Any:
        if self.dialect.name == "mysql":
            return connection.cursor(prepared=True)
        return connection.cursor()

    def _control_cursor(self, connection: Any) -> Any:
        return connection.cursor()


__all__ = [
    "GenericProxy",
    "translate_pgsql_error",
    "translate_sqlite_error",
]
