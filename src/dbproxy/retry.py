"""Transaction-conflict retry with bounded incremental backoff.

When a statement fails with the backend's "transaction conflict" code
(MySQL deadlock errno 1213, PostgreSQL SQLSTATE ``40P01``/``40001``, or the
code set in ``settings.transaction_retry_code``), the same statement is
re-executed with the same parameters up to ``transaction_max_retry`` times.

The wait before retry ``x`` (1-based) grows linearly up to the cap::

    delay_us = min(max_delay, floor(max_delay / max_retries * x))

Example:
    >>> from dbproxy.retry import IncrementalBackoff
    >>> backoff = IncrementalBackoff(max_retries=4, max_delay=500_000)
    >>> [backoff.next_delay(x) for x in range(1, 5)]
    [125000, 250000, 375000, 500000]

Every intermediate failure is logged as ``transaction_retry`` and, when
``transaction_retry_report`` is on, handed to the error reporter as a
``RetryError``. Only the final failure propagates to the caller.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from dbproxy.config import DatabaseSettings, get_settings
from dbproxy.errors import QueryError, RetryError
from dbproxy.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class ErrorReporter(Protocol):
    """Anything able to receive a retry report."""

    def report_exception(self, error: Exception) -> Any:
        ...


_reporter: ErrorReporter | None = None


def set_error_reporter(reporter: ErrorReporter | None) -> None:
    """Install the process-wide error reporter (``None`` removes it)."""
    global _reporter
    _reporter = reporter


def get_error_reporter() -> ErrorReporter | None:
    return _reporter


def compute_delay(attempt: int, max_retries: int, max_delay: int) -> int:
    """Backoff before retry ``attempt`` (1-based), in microseconds."""
    if max_retries <= 0:
        return 0
    return min(max_delay, int(max_delay / max_retries * attempt))


@dataclass
class IncrementalBackoff:
    """Linear backoff capped at ``max_delay``.

    Attributes:
        max_retries: Maximum number of re-executions
        max_delay: Delay of the last retry, microseconds
    """

    max_retries: int = 0
    max_delay: int = 500_000

    def next_delay(self, attempt: int) -> int:
        return compute_delay(attempt, self.max_retries, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return attempt <= self.max_retries


class TransactionRetry:
    """
    Re-executes a statement that failed on a transaction conflict.

    Args:
        settings: Policy source, read at each ``handle`` call. Defaults to
            the process-wide settings.
        reporter: Report sink. Defaults to the one installed with
            ``set_error_reporter``.
        sleep: Blocking sleep taking seconds.
    """

    def __init__(
        self,
        settings: DatabaseSettings | None = None,
        reporter: ErrorReporter | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        self._settings = settings
        self._reporter = reporter
        self._sleep = sleep

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings or get_settings()

    @property
    def reporter(self) -> ErrorReporter | None:
        return self._reporter or get_error_reporter()

    def retryable_codes(self, statement: Any) -> frozenset[int | str]:
        override = self.settings.transaction_retry_code
        if override is not None:
            return frozenset({override, str(override)})
        return frozenset(statement.dialect.conflict_codes)

    def is_retryable(self, statement: Any, error: Exception) -> bool:
        code = getattr(error, "code", None)
        if code is None:
            return False
        codes = self.retryable_codes(statement)
        return code in codes or str(code) in codes

    def handle(self, statement: Any, error: QueryError) -> int:
        """Retry ``statement`` after ``error``.

        Returns:
            The affected row count of the first successful re-execution.

        Raises:
            QueryError: ``error`` itself when it is not a retryable conflict
                or retries are disabled, otherwise the last failure.
        """
        if not self.is_retryable(statement, error):
            raise error

        settings = self.settings
        backoff = IncrementalBackoff(
            max_retries=settings.transaction_max_retry,
            max_delay=settings.transaction_retry_delay,
        )
        if backoff.max_retries == 0:
            raise error

        last_error = error
        attempt = 1
        while backoff.should_retry(attempt):
            delay = backoff.next_delay(attempt)
            logger.warning(
                "transaction_retry",
                attempt=attempt,
                delay_us=delay,
                code=last_error.code,
                query=statement.query,
            )
            self._sleep(delay / 1_000_000)
            self._report(last_error, attempt, statement)

            try:
                return statement.execute()
            except QueryError as e:
                last_error = e
                if not self.is_retryable(statement, e):
                    raise
            attempt += 1

        logger.error(
            "transaction_retry_exhausted",
            attempts=backoff.max_retries,
            code=last_error.code,
            query=statement.query,
        )
        raise last_error

    def _report(self, error: QueryError, attempt: int, statement: Any) -> None:
        reporter = self.reporter
        if not self.settings.transaction_retry_report or reporter is None:
            return
        report = RetryError(
            f"Transaction retry #{attempt}: {error.message}",
            attempt=attempt,
            code=error.code,
            cause=error,
        ).with_context(query=statement.query, params=list(statement.params))
        reporter.report_exception(report)


__all__ = [
    "ErrorReporter",
    "IncrementalBackoff",
    "TransactionRetry",
    "compute_delay",
    "get_error_reporter",
    "set_error_reporter",
]
