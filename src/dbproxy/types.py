"""Value types shared by statements, proxies and the table-data filter."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

_BOUNDED_TYPE = re.compile(r"^(?:varchar|character varying|char|character)\s*\(\s*(\d+)\s*\)")

# Size classes of the MySQL text and blob types
_SIZE_CLASSES = {
    "tinytext": 256,
    "tinyblob": 256,
    "text": 65536,
    "blob": 65536,
    "mediumtext": 16777216,
    "mediumblob": 16777216,
    "longtext": 4294967296,
    "longblob": 4294967296,
}


def declared_length(column_type: str) -> int | None:
    """Maximum length implied by a declared column type, or None if unbounded."""
    column_type = column_type.strip().lower()
    match = _BOUNDED_TYPE.match(column_type)
    if match:
        return int(match.group(1))
    return _SIZE_CLASSES.get(column_type)


class ParamType(str, Enum):
    """Wire type inferred for a bound parameter."""

    INTEGER = "i"
    FLOAT = "d"
    STRING = "s"  # also carries NULL


class Row(Mapping[str, Any]):
    """Immutable result row keyed by bare column name.

    Built from ``(name, value)`` pairs in select order; when two pairs share
    a name the later one wins. Compares equal to a ``dict`` with the same
    items.
    """

    __slots__ = ("_data",)

    def __init__(self, items: Iterable[tuple[str, Any]] | Mapping[str, Any] = ()):
        if isinstance(items, Mapping):
            items = items.items()
        data: dict[str, Any] = {}
        for key, value in items:
            data[key] = value
        object.__setattr__(self, "_data", data)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Row is immutable")

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Row({self._data!r})"

    def to_dict(self) -> dict[str, Any]:
        """Mutable copy of the row."""
        return dict(self._data)


@dataclass(frozen=True)
class ColumnDefinition:
    """One declared column of a table."""

    name: str
    type: str
    nullable: bool
    default: Any = None

    @property
    def max_length(self) -> int | None:
        return declared_length(self.type)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], parse_default: Any = None) -> ColumnDefinition:
        """Build from a normalized catalog row (``Field``/``Type``/``Null``/``Default``)."""
        default = row.get("Default")
        if parse_default is not None:
            default = parse_default(default)
        return cls(
            name=row["Field"],
            type=str(row["Type"] or "").lower(),
            nullable=str(row["Null"]).upper() == "YES",
            default=default,
        )


@dataclass(frozen=True)
class TableDefinition:
    """Ordered column descriptors of one table."""

    table: str
    columns: tuple[ColumnDefinition, ...] = ()

    def __iter__(self) -> Iterator[ColumnDefinition]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.columns]

    def get(self, name: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None


__all__ = [
    "ParamType",
    "Row",
    "ColumnDefinition",
    "TableDefinition",
    "declared_length",
]
