"""Tests for dbproxy.filters: trim, discard and auto-null policies."""

from __future__ import annotations

import pytest

from dbproxy.config import DatabaseSettings
from dbproxy.filters import filter_table_data
from dbproxy.types import ColumnDefinition, TableDefinition

USER = TableDefinition(
    table="user",
    columns=(
        ColumnDefinition("id", "integer", False),
        ColumnDefinition("name", "varchar(3)", False),
        ColumnDefinition("email", "text", True),
        ColumnDefinition("status", "varchar(10)", True, default="new"),
    ),
)


class _Loader:
    def __init__(self, definition: TableDefinition = USER):
        self.definition = definition
        self.calls: list[str] = []

    def __call__(self, table: str) -> TableDefinition:
        self.calls.append(table)
        return self.definition


def _settings(**flags) -> DatabaseSettings:
    return DatabaseSettings(_env_file=None, **flags)


class TestDisabled:
    def test_payload_untouched_and_schema_not_loaded(self):
        loader = _Loader()
        data = {"name": "abcdef", "extra": 1}
        assert filter_table_data(loader, "user", data, _settings()) == data
        assert loader.calls == []

    def test_result_is_a_copy(self):
        data = {"name": "x"}
        result = filter_table_data(_Loader(), "user", data, _settings())
        result["name"] = "y"
        assert data == {"name": "x"}


class TestTrim:
    def test_truncates_to_declared_length(self):
        result = filter_table_data(_Loader(), "user", {"name": "abcdef"}, _settings(auto_trim=True))
        assert result == {"name": "abc"}

    def test_unbounded_and_non_string_values_kept(self):
        data = {"id": 123456, "email": "a" * 50}
        assert filter_table_data(_Loader(), "user", data, _settings(auto_trim=True)) == data

    def test_unknown_keys_kept_without_discard(self):
        result = filter_table_data(_Loader(), "user", {"name": "x", "extra": 1}, _settings(auto_trim=True))
        assert result == {"name": "x", "extra": 1}


class TestDiscard:
    def test_drops_unknown_keys(self):
        result = filter_table_data(_Loader(), "user", {"name": "x", "extra": 1}, _settings(auto_discard=True))
        assert result == {"name": "x"}

    def test_caller_payload_not_modified(self):
        data = {"name": "x", "extra": 1}
        filter_table_data(_Loader(), "user", data, _settings(auto_discard=True))
        assert data == {"name": "x", "extra": 1}


class TestAutoNull:
    def test_fills_nullable_with_none(self):
        result = filter_table_data(_Loader(), "user", {"name": "x"}, _settings(auto_null=True))
        assert result == {"name": "x", "email": None, "status": None}

    def test_fills_default_in_discard_mode(self):
        result = filter_table_data(
            _Loader(), "user", {"name": "x"}, _settings(auto_null=True, auto_discard=True)
        )
        assert result == {"name": "x", "email": None, "status": "new"}

    def test_present_values_not_overwritten(self):
        result = filter_table_data(_Loader(), "user", {"name": "x", "email": "a@b"}, _settings(auto_null=True))
        assert result["email"] == "a@b"


class TestEmptyPayload:
    @pytest.mark.parametrize("flag", ["auto_trim", "auto_discard", "auto_null"])
    def test_empty_stays_empty(self, flag):
        loader = _Loader()
        assert filter_table_data(loader, "user", {}, _settings(**{flag: True})) == {}
        assert loader.calls == []
