"""Prepared statement wrapper.

A ``Statement`` owns one query text and its bound parameters for one
execute-then-fetch cycle. It is created by a proxy, bound, executed (and,
on a transaction conflict, re-executed by the retry engine with the same
parameters), then drained into ``Row`` objects.

Binding
-------
Parameters are positional and always written as ``?`` in the query text.
``?`` characters inside quoted literals and comments are not placeholders.
Before execution the query is rewritten to the driver's DB-API paramstyle.

Each parameter gets a wire type, in this precedence::

    bool        -> INTEGER (normalized to 0 / 1)
    int         -> INTEGER
    float       -> FLOAT
    None, str   -> STRING
    anything else is rejected with QueryError("unsupported parameter type")

The caller's parameter list is copied, never modified.

Decoding
--------
Rows are keyed by the bare column names of the cursor description. DB-API
drivers do not report the source table, so when two selected columns share a
name the one later in select order wins.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from dbproxy.dialect import Dialect
from dbproxy.errors import DatabaseProxyError, QueryError
from dbproxy.logging import get_logger
from dbproxy.types import ParamType, Row

logger = get_logger(__name__)

ErrorTranslator = Callable[[Exception], DatabaseProxyError]
CursorFactory = Callable[[Any], Any]


# ── Placeholder scanning ─────────────────────────────────────────────────


def split_placeholders(query: str, *, backslash_escapes: bool = False) -> list[str]:
    """Split ``query`` on ``?`` placeholders.

    Returns the text segments around the placeholders, so the placeholder
    count is ``len(segments) - 1``. Quoted literals (``'…'``, ``"…"``,
    `````…`````), ``-- …`` line comments and ``/* … */`` block comments are
    copied verbatim.
    """
    segments: list[str] = []
    current: list[str] = []
    i = 0
    length = len(query)

    while i < length:
        char = query[i]

        if char in ("'", '"', "`"):
            end = i + 1
            while end < length:
                if backslash_escapes and query[end] == "\\" and char != "`":
                    end += 2
                    continue
                if query[end] == char:
                    break
                end += 1
            current.append(query[i:end + 1])
            i = end + 1
        elif char == "-" and query.startswith("--", i):
            end = query.find("\n", i)
            end = length if end == -1 else end
            current.append(query[i:end])
            i = end
        elif char == "/" and query.startswith("/*", i):
            end = query.find("*/", i + 2)
            end = length if end == -1 else end + 2
            current.append(query[i:end])
            i = end
        elif char == "?":
            segments.append("".join(current))
            current = []
            i += 1
        else:
            current.append(char)
            i += 1

    segments.append("".join(current))
    return segments


def infer_type(value: Any) -> tuple[ParamType, Any]:
    """Return the wire type of ``value`` and the value to send."""
    if isinstance(value, bool):
        return ParamType.INTEGER, int(value)
    if isinstance(value, int):
        return ParamType.INTEGER, value
    if isinstance(value, float):
        return ParamType.FLOAT, value
    if value is None or isinstance(value, str):
        return ParamType.STRING, value
    raise QueryError(f"unsupported parameter type: {type(value).__name__}")


def _default_translate(error: Exception) -> DatabaseProxyError:
    return QueryError(str(error), cause=error)


class Statement:
    """
    One prepared query bound to one connection.

    Args:
        connection: Live DB-API connection.
        query: Query text with ``?`` placeholders.
        dialect: Dialect of the connection (paramstyle, literal rules).
        cursor_factory: Creates a cursor from the connection.
        translate_error: Maps driver exceptions to ``ConnectionError`` or
            ``QueryError``.
    """

    def __init__(
        self,
        connection: Any,
        query: str,
        dialect: Dialect,
        *,
        cursor_factory: CursorFactory | None = None,
        translate_error: ErrorTranslator | None = None,
    ):
        self.connection = connection
        self.query = query
        self.dialect = dialect
        self._cursor_factory = cursor_factory or (lambda conn: conn.cursor())
        self._translate_error = translate_error or _default_translate
        self._segments = split_placeholders(query, backslash_escapes=dialect.backslash_escapes)
        self._cursor: Any = None

        self.params: tuple[Any, ...] = ()
        self.types: tuple[ParamType, ...] = ()
        self.rowcount = 0

    @property
    def placeholder_count(self) -> int:
        return len(self._segments) - 1

    def bind(self, params: Sequence[Any] | None = None) -> Statement:
        """Infer wire types and attach ``params``.

        Raises:
            QueryError: Wrong container, unsupported value type, or a
                parameter count that does not match the placeholders.
        """
        if params is None:
            params = ()
        if isinstance(params, (str, bytes, Mapping)) or not isinstance(params, Sequence):
            raise QueryError(
                f"Parameters must be a sequence, got {type(params).__name__}"
            ).with_context(query=self.query)

        if len(params) != self.placeholder_count:
            raise QueryError(
                f"Query has {self.placeholder_count} placeholder(s) but "
                f"{len(params)} parameter(s) were given"
            ).with_context(query=self.query, params=list(params))

        types = []
        values = []
        for value in params:
            try:
                param_type, wire_value = infer_type(value)
            except QueryError as e:
                raise e.with_context(query=self.query, params=list(params)) from None
            types.append(param_type)
            values.append(wire_value)

        self.types = tuple(types)
        self.params = tuple(values)
        return self

    @property
    def driver_query(self) -> str:
        """Query text in the driver's paramstyle."""
        if self.dialect.paramstyle == "qmark" or not self._segments[1:]:
            return "?".join(self._segments)
        return "%s".join(segment.replace("%", "%%") for segment in self._segments)

    def interpolated(self) -> str:
        """Query text with parameters rendered inline, for the query log only."""
        parts = [self._segments[0]]
        for value, segment in zip(self.params, self._segments[1:]):
            if value is None:
                parts.append("NULL")
            elif isinstance(value, str):
                parts.append(f'"{value}"')
            else:
                parts.append(str(value))
            parts.append(segment)
        return "".join(parts)

    def execute(self) -> int:
        """Execute with the bound parameters and return the affected row count.

        Safe to call again after a failure; each call uses a fresh cursor.
        """
        self.close()
        try:
            self._cursor = self._cursor_factory(self.connection)
            if self.params:
                self._cursor.execute(self.driver_query, self.params)
            else:
                self._cursor.execute(self.driver_query)
        except DatabaseProxyError:
            raise
        except Exception as e:
            raise self._translate_error(e).with_context(
                query=self.query, params=list(self.params)
            ) from e

        self.rowcount = max(getattr(self._cursor, "rowcount", 0) or 0, 0)
        logger.debug("statement_executed", query=self.query, rowcount=self.rowcount)
        return self.rowcount

    def columns(self) -> list[str]:
        """Names of the result columns; empty for statements without results."""
        if self._cursor is None or self._cursor.description is None:
            return []
        return [str(column[0]) for column in self._cursor.description]

    def fetch_rows(self) -> list[Row]:
        """Drain the result set into rows and release the cursor."""
        if self._cursor is None:
            raise QueryError("Statement has not been executed").with_context(query=self.query)

        names = self.columns()
        if not names:
            self.close()
            return []

        try:
            raw_rows = self._cursor.fetchall()
        except Exception as e:
            raise self._translate_error(e).with_context(
                query=self.query, params=list(self.params)
            ) from e
        finally:
            self.close()

        return [Row(zip(names, raw)) for raw in raw_rows]

    def close(self) -> None:
        """Close the current cursor, if any."""
        if self._cursor is not None:
            cursor, self._cursor = self._cursor, None
            close = getattr(cursor, "close", None)
            if close is not None:
                close()

    def __repr__(self) -> str:
        return f"Statement({self.query!r}, params={list(self.params)!r})"


__all__ = [
    "Statement",
    "split_placeholders",
    "infer_type",
]
