"""
Structured error types for dbproxy.

Every failure that crosses the capability-set API surfaces as a subclass of
``DatabaseProxyError``. Each error carries a category for routing, a
retryable flag, structured context (target, query text, parameters) and an
optional chained cause.

Manifesto:
    - **Typed hierarchy:** Callers catch ``QueryError`` or ``ConnectionError``,
      never a bare driver exception
    - **Explicit retry semantics:** Only the transaction-conflict class of
      ``QueryError`` is ever retried, and only by the retry engine
    - **Rich context:** Errors carry the query and parameters untouched so
      callers can log or re-dispatch them
    - **Error chaining:** The driver exception is preserved as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                   DatabaseProxyError                      │
        │         (category, retryable, context, cause)             │
        ├──────────────────────────────────────────────────────────┤
        │                                                           │
        │  ConnectionError       QueryError        ConfigurationError│
        │  (CONNECTION)          (QUERY, code)     (CONFIG)          │
        │                            │                  │            │
        │                        LockError      UnsupportedDriverError│
        │                        RetryError                          │
        │                                                           │
        │  UnsupportedOperationError (UNSUPPORTED)                  │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> error = QueryError("Deadlock found", code=1213)
    >>> error.code
    1213
    >>> error.with_context(query="UPDATE t SET a = ?", params=[1]).context.query
    'UPDATE t SET a = ?'

Guardrails:
    ❌ DON'T: Let driver exceptions (``sqlite3.Error``, ``psycopg2.Error``) escape
    ✅ DO: Wrap them in ``QueryError``/``ConnectionError`` with ``cause=``

    ❌ DON'T: Catch ``DatabaseProxyError`` to retry arbitrary failures
    ✅ DO: Leave conflict retries to ``dbproxy.retry.TransactionRetry``

Tags:
    error-handling, exception-hierarchy, retry-logic, dbproxy

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONNECTION = "CONNECTION"      # Handshake, DSN parsing, lost link
    QUERY = "QUERY"                # Statement-level failures
    LOCK = "LOCK"                  # Advisory lock not obtained
    CONFIG = "CONFIG"              # No usable target / unknown driver
    UNSUPPORTED = "UNSUPPORTED"    # Capability missing on this backend
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialized by ``to_dict()``. ``params`` is stored
    as given; it is never normalized or mutated.
    """

    target: str | None = None
    driver: str | None = None
    query: str | None = None
    params: list[Any] | None = None
    table: str | None = None
    attempt: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["target", "driver", "query", "params", "table", "attempt"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DatabaseProxyError(Exception):
    """
    Base exception for all dbproxy errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override both per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DatabaseProxyError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("Failed").with_context(query=sql, params=params)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONNECTION ERRORS
# =============================================================================


class ConnectionError(DatabaseProxyError):  # noqa: A001
    """
    Target could not be parsed or the handshake failed.

    Never retried by this layer; fatal to the calling operation. The name
    shadows the builtin inside this package only.
    """

    default_category = ErrorCategory.CONNECTION
    default_retryable = False


# =============================================================================
# QUERY ERRORS
# =============================================================================


class QueryError(DatabaseProxyError):
    """
    Statement-level failure.

    ``code`` is the backend error code when one was reported: the MySQL
    errno (``int``), the PostgreSQL SQLSTATE (``str``) or the sqlite error
    name (``str``).
    """

    default_category = ErrorCategory.QUERY
    default_retryable = False

    def __init__(self, message: str, *, code: int | str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.code is not None:
            result["code"] = self.code
        return result


class LockError(QueryError):
    """Advisory lock not obtained within the timeout."""

    default_category = ErrorCategory.LOCK


class RetryError(QueryError):
    """Report payload for one observed transaction retry."""

    def __init__(self, message: str, *, attempt: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempt = attempt
        self.context.attempt = attempt


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(DatabaseProxyError):
    """No usable target identifier could be resolved."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class UnsupportedDriverError(ConfigurationError):
    """No registered driver pattern matches the target identifier."""

    def __init__(self, target: str, message: str | None = None):
        self.target = target
        super().__init__(message or f"No driver registered for target: {redact(target)}")
        self.context.target = redact(target)


class UnsupportedOperationError(DatabaseProxyError):
    """Capability not implemented by the active backend."""

    default_category = ErrorCategory.UNSUPPORTED
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def redact(target: str | None) -> str | None:
    """Mask the password part of a URL-form target for logs and messages."""
    if not target or "://" not in target or "@" not in target:
        return target
    scheme, rest = target.split("://", 1)
    credentials, location = rest.rsplit("@", 1)
    if ":" not in credentials:
        return target
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{location}"


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DatabaseProxyError",
    "ConnectionError",
    "QueryError",
    "LockError",
    "RetryError",
    "ConfigurationError",
    "UnsupportedDriverError",
    "UnsupportedOperationError",
    "redact",
]
