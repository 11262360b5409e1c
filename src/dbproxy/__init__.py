"""
dbproxy: a driver-abstracted SQL execution layer.

One API surface (``query``, ``insert``, ``update``, ``get_one`` / ``get_row``
/ ``get_column`` / ``get_all``, schema introspection, advisory locks,
transactions) dispatching to a backend driver chosen by parsing a target
identifier.

Manifesto:
    Application code should not care which driver module talks to the
    database. It asks the registry for a proxy by target, binds values as
    parameters, and receives typed errors and immutable rows.

    - **One proxy per target per process:** the registry is fork-safe
    - **Typed binding:** parameter wire types are inferred, never declared
    - **Bounded retries:** transaction conflicts are retried with
      incremental backoff, everything else surfaces immediately

Architecture::

    dbproxy.get(target)
         │
         ▼
    ConnectionRegistry ──► DriverRegistry (pattern → factory)
         │
         ▼
    Proxy (MySQLProxy | GenericProxy)
         │   filter_table_data (insert / update)
         ▼
    Statement ── bind ── execute ──► TransactionRetry on conflict
         │
         ▼
    list[Row]

Examples:
    >>> import dbproxy
    >>> db = dbproxy.get("sqlite::memory:", make_default=True)
    >>> db.query("CREATE TABLE user (id INTEGER PRIMARY KEY, name TEXT)")
    0
    >>> db.insert("user", {"name": "ada"})
    1
    >>> db.get_row("SELECT * FROM user WHERE id = ?", [db.get_insert_id()])
    Row({'id': 1, 'name': 'ada'})

Tags:
    dbproxy, database, sql, mysql, postgresql, sqlite, registry

Doc-Types:
    package-overview, architecture-map
"""

from dbproxy.config import DatabaseSettings, get_settings, settings
from dbproxy.errors import (
    ConfigurationError,
    ConnectionError,
    DatabaseProxyError,
    LockError,
    QueryError,
    RetryError,
    UnsupportedDriverError,
    UnsupportedOperationError,
)
from dbproxy.proxy import GenericProxy, MySQLProxy, Proxy
from dbproxy.registry import (
    ConnectionRegistry,
    DriverRegistry,
    connection_registry,
    driver_registry,
    get,
    reset,
)
from dbproxy.retry import TransactionRetry, set_error_reporter
from dbproxy.types import ColumnDefinition, Row, TableDefinition

__version__ = "0.1.0"

__all__ = [
    # Config
    "DatabaseSettings",
    "settings",
    "get_settings",
    # Errors
    "DatabaseProxyError",
    "ConnectionError",
    "QueryError",
    "LockError",
    "RetryError",
    "ConfigurationError",
    "UnsupportedDriverError",
    "UnsupportedOperationError",
    # Proxies
    "Proxy",
    "MySQLProxy",
    "GenericProxy",
    # Registry
    "DriverRegistry",
    "ConnectionRegistry",
    "driver_registry",
    "connection_registry",
    "get",
    "reset",
    # Retry
    "TransactionRetry",
    "set_error_reporter",
    # Types
    "Row",
    "ColumnDefinition",
    "TableDefinition",
]
