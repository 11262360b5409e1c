"""SQL dialect knowledge for every supported backend.

A ``Dialect`` answers the backend-specific questions the proxies ask:
how identifiers and strings are quoted, which DB-API paramstyle the driver
expects, how the catalog is queried for tables, columns and indexes, how
the last generated identity is fetched, which advisory lock primitives
exist and which error codes mean "transaction conflict, try again".

Manifesto:
    Proxies implement the capability set once. Everything that differs per
    backend lives here as data or as small SQL-producing methods, so adding
    a backend is a new dialect class plus a registry entry.

    - **One interface:** ``Dialect`` protocol for all backend knowledge
    - **Placeholders are always ``?``:** catalog queries are written in qmark
      style and translated by the statement layer
    - **Normalized catalog rows:** every table-definition query returns the
      columns ``Field``, ``Type``, ``Null``, ``Default``

Architecture::

    ┌──────────────┐ ┌────────────────────┐ ┌──────────────────┐
    │ MySQL        │ │ PostgreSQL (pgsql) │ │ SQLite           │
    │ `ident`      │ │ "ident"            │ │ "ident"          │
    │ SHOW         │ │ information_schema │ │ pragma_table_info│
    │ GET_LOCK     │ │ pg_try_advisory_*  │ │ (no locks)       │
    │ errno 1213   │ │ 40P01, 40001       │ │ (no conflicts)   │
    └──────────────┘ └────────────────────┘ └──────────────────┘

Examples:
    >>> from dbproxy.dialect import get_dialect
    >>> get_dialect("mysql").quote_identifier("app.user")
    '`app`.`user`'
    >>> get_dialect("pgsql").quote_identifier('we"ird')
    '"we""ird"'

Tags:
    dialect, sql, abstraction, portability, database, dbproxy

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from typing import Any, Protocol, runtime_checkable

Query = tuple[str, list[Any]]

_PG_DEFAULT_LITERAL = re.compile(r"^'(?P<value>(?:[^']|'')*)'(?:::[\w\s]+)?$")
_QUOTED_LITERAL = re.compile(r"^'(?P<value>(?:[^']|'')*)'$")


def _quote_parts(name: str, char: str) -> str:
    """Double ``char`` inside each dot-separated part and wrap the part."""
    doubled = char * 2
    return ".".join(f"{char}{part.replace(char, doubled)}{char}" for part in name.split("."))


@runtime_checkable
class Dialect(Protocol):
    """Backend knowledge contract.

    Methods returning ``Query`` give the SQL text (``?`` placeholders)
    together with its parameter list.
    """

    @property
    def name(self) -> str:
        """Canonical driver name (``'mysql'``, ``'pgsql'``, ``'sqlite'``)."""
        ...

    paramstyle: str
    conflict_codes: frozenset[int | str]
    backslash_escapes: bool
    lock_style: str | None

    def quote_identifier(self, name: str) -> str:
        """Quote a ``schema.table.column`` style identifier."""
        ...

    def escape_string(self, value: str) -> str:
        """Escape a string for embedding between single quotes."""
        ...

    def begin_statement(self) -> str:
        ...

    def tables_query(self, database: str | None) -> Query:
        ...

    def table_definition_query(self, table: str, database: str | None) -> Query:
        ...

    def indexes_query(self, table: str, database: str | None) -> Query:
        ...

    def insert_id_query(self, table: str, column: str) -> Query:
        ...

    def lock_query(self, identifier: str, timeout: int) -> Query:
        ...

    def release_lock_query(self, identifier: str) -> Query:
        ...

    def parse_default(self, value: Any) -> Any:
        """Turn a catalog default expression into a plain value."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class MySQLDialect:
    """MySQL / MariaDB: backtick identifiers.

    Catalog lookups use ``SHOW`` commands by default, or
    ``information_schema`` restricted to ``DATABASE()`` when
    ``information_schema=True``. ``paramstyle`` is ``"qmark"`` for
    server-side prepared cursors and ``"format"`` for client-side ones.
    """

    conflict_codes: frozenset[int | str] = frozenset({1213})
    backslash_escapes = True
    lock_style: str | None = "blocking"

    _ESCAPES = {
        "\\": "\\\\",
        "\0": "\\0",
        "\n": "\\n",
        "\r": "\\r",
        "'": "\\'",
        '"': '\\"',
        "\x1a": "\\Z",
    }

    def __init__(self, information_schema: bool = False, paramstyle: str = "qmark"):
        self.information_schema = information_schema
        self.paramstyle = paramstyle

    @property
    def name(self) -> str:
        return "mysql"

    def quote_identifier(self, name: str) -> str:
        return _quote_parts(name, "`")

    def escape_string(self, value: str) -> str:
        return "".join(self._ESCAPES.get(char, char) for char in value)

    def begin_statement(self) -> str:
        return "START TRANSACTION"

    # -- Catalog -----------------------------------------------------------

    def tables_query(self, database: str | None) -> Query:  # noqa: ARG002
        if self.information_schema:
            return (
                "SELECT table_name AS `Table` FROM information_schema.tables "
                "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
                "ORDER BY table_name",
                [],
            )
        return "SHOW TABLES", []

    def table_definition_query(self, table: str, database: str | None) -> Query:  # noqa: ARG002
        if self.information_schema:
            return (
                "SELECT column_name AS `Field`, column_type AS `Type`, "
                "is_nullable AS `Null`, column_default AS `Default` "
                "FROM information_schema.columns "
                "WHERE table_schema = DATABASE() AND table_name = ? "
                "ORDER BY ordinal_position",
                [table],
            )
        return f"SHOW COLUMNS FROM {self.quote_identifier(table)}", []

    def indexes_query(self, table: str, database: str | None) -> Query:  # noqa: ARG002
        if self.information_schema:
            return (
                "SELECT index_name AS `Key_name`, non_unique AS `Non_unique`, "
                "column_name AS `Column_name`, seq_in_index AS `Seq_in_index` "
                "FROM information_schema.statistics "
                "WHERE table_schema = DATABASE() AND table_name = ? "
                "ORDER BY index_name, seq_in_index",
                [table],
            )
        return f"SHOW INDEXES FROM {self.quote_identifier(table)}", []

    def insert_id_query(self, table: str, column: str) -> Query:  # noqa: ARG002
        # Session scoped, table and column are irrelevant
        return "SELECT LAST_INSERT_ID()", []

    # -- Locks -------------------------------------------------------------

    def lock_query(self, identifier: str, timeout: int) -> Query:
        return "SELECT GET_LOCK(?, ?)", [identifier, timeout]

    def release_lock_query(self, identifier: str) -> Query:
        return "SELECT RELEASE_LOCK(?)", [identifier]

    def parse_default(self, value: Any) -> Any:
        return value


class PostgreSQLDialect:
    """PostgreSQL: double-quoted identifiers, ``information_schema`` catalog.

    Catalog lookups are restricted to the ``public`` schema of the
    connected database.
    """

    paramstyle = "format"
    conflict_codes: frozenset[int | str] = frozenset({"40P01", "40001"})
    backslash_escapes = False
    lock_style: str | None = "polling"

    @property
    def name(self) -> str:
        return "pgsql"

    def quote_identifier(self, name: str) -> str:
        return _quote_parts(name, '"')

    def escape_string(self, value: str) -> str:
        return value.replace("'", "''")

    def begin_statement(self) -> str:
        return "BEGIN"

    def tables_query(self, database: str | None) -> Query:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_type = 'BASE TABLE' AND table_catalog = ? "
            "AND table_schema = 'public' ORDER BY table_name",
            [database],
        )

    def table_definition_query(self, table: str, database: str | None) -> Query:
        return (
            'SELECT column_name AS "Field", '
            "CASE WHEN character_maximum_length IS NULL THEN data_type "
            "ELSE data_type || '(' || character_maximum_length || ')' END AS \"Type\", "
            'is_nullable AS "Null", '
            'column_default AS "Default" '
            "FROM information_schema.columns "
            "WHERE table_name = ? AND table_catalog = ? AND table_schema = 'public' "
            "ORDER BY ordinal_position",
            [table, database],
        )

    def indexes_query(self, table: str, database: str | None) -> Query:  # noqa: ARG002
        return (
            'SELECT indexname AS "Key_name", indexdef AS "Definition" '
            "FROM pg_indexes WHERE schemaname = 'public' AND tablename = ? "
            "ORDER BY indexname",
            [table],
        )

    def insert_id_query(self, table: str, column: str) -> Query:
        # The owning sequence is resolved through pg_depend so that tables
        # inheriting a serial column from a parent table still resolve.
        return (
            "SELECT currval(("
            "SELECT sn.nspname || '.' || s.relname "
            "FROM pg_class s "
            "JOIN pg_namespace sn ON sn.oid = s.relnamespace "
            "JOIN pg_depend d ON d.refobjid = s.oid AND d.refclassid = 'pg_class'::regclass "
            "JOIN pg_attrdef ad ON ad.oid = d.objid AND d.classid = 'pg_attrdef'::regclass "
            "JOIN pg_attribute col ON col.attrelid = ad.adrelid AND col.attnum = ad.adnum "
            "JOIN pg_class tbl ON tbl.oid = ad.adrelid "
            "JOIN pg_namespace n ON n.oid = tbl.relnamespace "
            "WHERE s.relkind = 'S' "
            "AND d.deptype IN ('a', 'n') "
            "AND n.nspname = 'public' "
            "AND tbl.relname = ? "
            "AND col.attname = ?"
            "))",
            [table, column],
        )

    def lock_query(self, identifier: str, timeout: int) -> Query:  # noqa: ARG002
        return "SELECT pg_try_advisory_lock(hashtext(?))", [identifier]

    def release_lock_query(self, identifier: str) -> Query:
        return "SELECT pg_advisory_unlock(hashtext(?))", [identifier]

    def parse_default(self, value: Any) -> Any:
        if isinstance(value, str):
            match = _PG_DEFAULT_LITERAL.match(value)
            if match:
                return match.group("value").replace("''", "'")
        return value


class SQLiteDialect:
    """SQLite: double-quoted identifiers, ``pragma_*`` table functions."""

    paramstyle = "qmark"
    conflict_codes: frozenset[int | str] = frozenset()
    backslash_escapes = False
    lock_style: str | None = None

    @property
    def name(self) -> str:
        return "sqlite"

    def quote_identifier(self, name: str) -> str:
        return _quote_parts(name, '"')

    def escape_string(self, value: str) -> str:
        return value.replace("'", "''")

    def begin_statement(self) -> str:
        return "BEGIN"

    def tables_query(self, database: str | None) -> Query:  # noqa: ARG002
        return (
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
            [],
        )

    def table_definition_query(self, table: str, database: str | None) -> Query:  # noqa: ARG002
        # Primary key columns are reported as NOT NULL
        return (
            'SELECT name AS "Field", lower(type) AS "Type", '
            "CASE WHEN \"notnull\" = 0 AND pk = 0 THEN 'YES' ELSE 'NO' END AS \"Null\", "
            'dflt_value AS "Default" '
            "FROM pragma_table_info(?) ORDER BY cid",
            [table],
        )

    def indexes_query(self, table: str, database: str | None) -> Query:  # noqa: ARG002
        return (
            'SELECT name AS "Key_name", "unique" AS "Unique", origin AS "Origin" '
            "FROM pragma_index_list(?) ORDER BY seq",
            [table],
        )

    def insert_id_query(self, table: str, column: str) -> Query:  # noqa: ARG002
        return "SELECT last_insert_rowid()", []

    def lock_query(self, identifier: str, timeout: int) -> Query:
        raise NotImplementedError("sqlite has no advisory locks")

    def release_lock_query(self, identifier: str) -> Query:
        raise NotImplementedError("sqlite has no advisory locks")

    def parse_default(self, value: Any) -> Any:
        if isinstance(value, str):
            match = _QUOTED_LITERAL.match(value)
            if match:
                return match.group("value").replace("''", "'")
        return value


# =========================================================================
# Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "mysql": MySQLDialect(),
    "pgsql": PostgreSQLDialect(),
    "sqlite": SQLiteDialect(),
}


def get_dialect(driver: str) -> Dialect:
    """Get a dialect by canonical driver name.

    Raises:
        ValueError: If ``driver`` is not recognised.
    """
    key = driver.lower()
    if key not in _DIALECTS:
        raise ValueError(f"Unknown dialect '{driver}'. Supported: {sorted(_DIALECTS)}")
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "Query",
    "MySQLDialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
]
