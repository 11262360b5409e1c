"""Driver dispatch and the per-process connection registry.

Manifesto:
    Consumers never construct proxies by class name. A target identifier is
    matched against an ordered list of driver patterns, and the resulting
    proxy is cached so repeated lookups share one connection per process.

Features:
    - ``DriverRegistry``: ordered ``pattern -> factory`` table, first match wins
    - ``ConnectionRegistry``: cache keyed by target, with a default target
    - Fork safety: each entry remembers its owner token (the pid by default);
      a mismatch discards the inherited proxy and builds a fresh one
    - Module-level ``get()`` / ``reset()`` over a global registry

Examples:
    >>> import dbproxy
    >>> db = dbproxy.get("sqlite::memory:", make_default=True)
    >>> dbproxy.get() is db
    True

Tags:
    dbproxy, database, registry, factory, singleton, fork-safety

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dbproxy.config import DatabaseSettings
from dbproxy.errors import ConfigurationError, UnsupportedDriverError, redact
from dbproxy.logging import get_logger

from .proxy import GenericProxy, MySQLProxy, Proxy

logger = get_logger(__name__)

ProxyFactory = Callable[..., Proxy]


class DriverRegistry:
    """
    Ordered mapping of target patterns to proxy factories.

    Pre-registered drivers, in match order:
    - ``^mysqli?://``: :class:`MySQLProxy`
    - ``^(sqlite|pgsql|postgres(ql)?|mysql):``: :class:`GenericProxy`
    """

    def __init__(self):
        self._drivers: list[tuple[re.Pattern[str], ProxyFactory]] = []
        self._register_defaults()

    def _register_defaults(self) -> None:
        self.register(r"^mysqli?://", MySQLProxy)
        self.register(r"^(sqlite|pgsql|postgres(ql)?|mysql):", GenericProxy)

    def register(self, pattern: str, factory: ProxyFactory, first: bool = False) -> None:
        """Register a driver; ``first=True`` gives it precedence over existing ones."""
        entry = (re.compile(pattern, re.IGNORECASE), factory)
        if first:
            self._drivers.insert(0, entry)
        else:
            self._drivers.append(entry)

    def resolve(self, target: str) -> ProxyFactory:
        """Return the factory of the first pattern matching ``target``."""
        for pattern, factory in self._drivers:
            if pattern.search(target):
                return factory
        raise UnsupportedDriverError(target)

    def create(self, target: str, **kwargs: Any) -> Proxy:
        return self.resolve(target)(target, **kwargs)

    def list_patterns(self) -> list[str]:
        return [pattern.pattern for pattern, _ in self._drivers]


@dataclass
class _Entry:
    proxy: Proxy
    owner: Any


class ConnectionRegistry:
    """
    Process-wide cache of proxies, one per target.

    Args:
        drivers: Driver table used to build proxies.
        settings: Passed to every proxy; the global settings when omitted.
        owner_token: Identifies the current process. ``os.getpid`` by default.
    """

    def __init__(
        self,
        drivers: DriverRegistry | None = None,
        *,
        settings: DatabaseSettings | None = None,
        owner_token: Callable[[], Any] = os.getpid,
    ):
        self.drivers = drivers or DriverRegistry()
        self.settings = settings
        self.owner_token = owner_token
        self.default_target: str | None = None
        self._entries: dict[str, _Entry] = {}

    def get(self, target: str | None = None, make_default: bool = False) -> Proxy:
        """Return the proxy for ``target``, creating it on first use.

        Raises:
            ConfigurationError: No target given and no default designated.
            UnsupportedDriverError: No driver pattern matches ``target``.
        """
        if target is None:
            if self.default_target is None:
                raise ConfigurationError("No target given and no default target designated")
            target = self.default_target

        owner = self.owner_token()
        entry = self._entries.get(target)
        if entry is not None and entry.owner != owner:
            # The inherited handle belongs to the parent process; never close it here
            logger.info(
                "connection_discarded_after_fork",
                target=redact(target),
                owner=entry.owner,
                current=owner,
            )
            del self._entries[target]
            entry = None

        if entry is None:
            proxy = self.drivers.create(target, settings=self.settings)
            logger.debug("proxy_created", target=redact(target), driver=type(proxy).__name__)
            entry = _Entry(proxy=proxy, owner=owner)
            self._entries[target] = entry

        if make_default:
            self.default_target = target
        return entry.proxy

    def reset(self) -> None:
        """Forget every cached proxy and the default target, without closing."""
        self._entries.clear()
        self.default_target = None

    def targets(self) -> list[str]:
        return list(self._entries)


# Global registries
driver_registry = DriverRegistry()
connection_registry = ConnectionRegistry(driver_registry)


def get(target: str | None = None, make_default: bool = False) -> Proxy:
    """
    Get the proxy for a target from the global registry.

    Usage:
        db = get("mysql://app:secret@db/app", make_default=True)
        db = get()
    """
    return connection_registry.get(target, make_default)


def reset() -> None:
    """Clear the global registry."""
    connection_registry.reset()


__all__ = [
    "DriverRegistry",
    "ConnectionRegistry",
    "driver_registry",
    "connection_registry",
    "get",
    "reset",
]
