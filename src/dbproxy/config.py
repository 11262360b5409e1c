"""Process-wide database policy.

``DatabaseSettings`` holds the knobs every proxy, statement and retry
operation consults: query logging and counting, the table-data filter
switches, the session charset and the transaction retry policy.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Assignments are type-checked, so
      ``settings.transaction_max_retry = -1`` fails immediately
    - **Environment-driven:** Reads ``DBPROXY_*`` env vars and ``.env``
    - **Live reads:** Components read the instance at the moment of use;
      mutating a field affects the next operation, not one in flight
    - **Sensible defaults:** Counting on, logging off, no retries

Examples:
    >>> from dbproxy.config import settings
    >>> settings.auto_discard = True
    >>> settings.transaction_max_retry = 3

    A proxy can be given its own instance instead of the global one::

        proxy = MySQLProxy(target, settings=DatabaseSettings(auto_trim=True))

Tags:
    settings, configuration, pydantic, environment, dbproxy

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Policy shared by all proxies in the process.

    Fields
    ──────
    query_log                 : Keep ``proxy.query_log`` of executed queries
    query_counter             : Increment ``proxy.query_counter`` per statement
    auto_trim                 : Truncate strings to the column's declared length
    auto_discard              : Drop payload keys that are not table columns
    auto_null                 : Fill absent nullable columns with NULL
    charset                   : Session character set set on connect
    transaction_max_retry     : Retries on a transaction conflict (0 = off)
    transaction_retry_delay   : Maximum backoff between retries, microseconds
    transaction_retry_report  : Send each retry to the error reporter
    transaction_retry_code    : Override the dialect's conflict error code
    lock_poll_interval        : Seconds between advisory lock attempts (pgsql)
    """

    model_config = SettingsConfigDict(
        env_prefix="DBPROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    # ── Observability ────────────────────────────────────────────
    query_log: bool = False
    query_counter: bool = True

    # ── Table-data filter ────────────────────────────────────────
    auto_trim: bool = False
    auto_discard: bool = False
    auto_null: bool = False

    # ── Session ──────────────────────────────────────────────────
    charset: str = "utf8"

    # ── Transaction retry ────────────────────────────────────────
    transaction_max_retry: int = Field(default=0, ge=0)
    transaction_retry_delay: int = Field(
        default=500_000,
        ge=0,
        description="Upper bound of the incremental backoff, in microseconds",
    )
    transaction_retry_report: bool = True
    transaction_retry_code: int | str | None = None

    # ── Locks ────────────────────────────────────────────────────
    lock_poll_interval: float = Field(default=0.1, gt=0)

    @property
    def filtering_enabled(self) -> bool:
        """Whether any table-data filter policy is active."""
        return self.auto_trim or self.auto_discard or self.auto_null


# Global settings, mutated by direct assignment
settings = DatabaseSettings()


def get_settings() -> DatabaseSettings:
    """Return the process-wide settings instance."""
    return settings


__all__ = [
    "DatabaseSettings",
    "settings",
    "get_settings",
]
