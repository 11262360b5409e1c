"""Test support helpers for dbproxy tests."""
