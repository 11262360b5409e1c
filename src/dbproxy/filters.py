"""Table-data filter applied to insert and update payloads.

Three independent policies, each switched on in ``DatabaseSettings``:

    auto_trim      Truncate strings to the column's declared length
    auto_discard   Keep only keys that are declared columns of the table
    auto_null      Fill nullable columns missing from the payload

With all three off the payload is returned untouched and the schema is not
queried. Otherwise the table definition is loaded fresh on every call.

Auto-null and defaults:
    A missing nullable column is filled with ``None``. In discard mode a
    declared default is used instead of ``None`` when the column has one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from dbproxy.config import DatabaseSettings
from dbproxy.types import TableDefinition, declared_length

DefinitionLoader = Callable[[str], TableDefinition]


def filter_table_data(
    load_definition: DefinitionLoader,
    table: str,
    data: Mapping[str, Any],
    settings: DatabaseSettings,
) -> dict[str, Any]:
    """Apply the enabled policies to ``data`` for ``table``.

    Args:
        load_definition: Returns the current definition of a table.
        table: Target table name.
        data: Column/value payload. Not modified.
        settings: Policy switches.
    """
    if not settings.filtering_enabled:
        return dict(data)
    if not data:
        return {}

    definition = load_definition(table)
    result: dict[str, Any] = {} if settings.auto_discard else dict(data)

    for column in definition:
        if column.name in data:
            value = data[column.name]
            if settings.auto_trim and isinstance(value, str):
                limit = column.max_length
                if limit is not None:
                    value = value[:limit]
            result[column.name] = value
        elif settings.auto_null and column.nullable:
            if settings.auto_discard and column.default is not None:
                result[column.name] = column.default
            else:
                result[column.name] = None

    return result


__all__ = [
    "declared_length",
    "filter_table_data",
]
