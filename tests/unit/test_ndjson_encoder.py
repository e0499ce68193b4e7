"""Tests for the NDJSON encoder."""

import json

import pytest

from perflog.core.encoding.ndjson import encode_entries
from perflog.core.formatters import FORMAT_FAILURE

pytestmark = pytest.mark.core


def test_encode_empty_returns_empty_string() -> None:
    assert encode_entries([]) == ""


def test_encode_one_record_per_line(make_entry) -> None:
    body = encode_entries([make_entry(message="a", n=1), make_entry(message="b")])
    lines = body.splitlines()
    assert body.endswith("\n")
    assert [json.loads(line)["message"] for line in lines] == ["a", "b"]
    assert json.loads(lines[0])["n"] == 1


def test_unserialisable_entry_degrades_to_failure_line(make_entry) -> None:
    loop: dict = {}
    loop["self"] = loop
    broken = make_entry(cycle=loop)
    body = encode_entries([make_entry(message="a"), broken])
    first, second = (json.loads(line) for line in body.splitlines())
    assert first["message"] == "a"
    assert second == {"error": FORMAT_FAILURE, "timestamp": broken.timestamp}
