"""Tests for JSON and binary I/O utilities."""

import json
import tempfile
from pathlib import Path

import pytest

from rag_engine.utils.json_io import (
    read_json_safe,
    validate_json_structure,
    write_bytes_atomic,
    write_json_safe,
)


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def test_read_json_safe_valid(temp_dir):
    json_file = temp_dir / "test.json"
    data = {"key": "value", "number": 42}
    json_file.write_text(json.dumps(data))

    result, error = read_json_safe(json_file)
    assert error is None
    assert result == data


def test_read_json_safe_missing_file(temp_dir):
    json_file = temp_dir / "missing.json"
    default = {"default": True}

    result, error = read_json_safe(json_file, default=default)
    assert result == default
    assert error is not None


def test_read_json_safe_corrupt(temp_dir):
    json_file = temp_dir / "corrupt.json"
    json_file.write_text("{ invalid json }")

    result, error = read_json_safe(json_file, default={})
    assert result == {}
    assert error is not None
    assert "json" in error.lower()


def test_write_json_safe_creates_dirs(temp_dir):
    json_file = temp_dir / "nested" / "dir" / "test.json"
    data = {"test": "data"}

    success, error = write_json_safe(json_file, data)

    assert success is True
    assert error is None
    assert json.loads(json_file.read_text()) == data


def test_write_json_safe_keeps_unicode(temp_dir):
    json_file = temp_dir / "unicode.json"
    success, _ = write_json_safe(json_file, {"text": "naïve café"})

    assert success is True
    assert "naïve café" in json_file.read_text(encoding="utf-8")


def test_write_json_safe_unserializable(temp_dir):
    json_file = temp_dir / "bad.json"
    success, error = write_json_safe(json_file, {"value": object()})

    assert success is False
    assert "serialize" in error
    assert not json_file.exists()


def test_write_bytes_atomic_replaces_existing(temp_dir):
    target = temp_dir / "vectors.bin"
    target.write_bytes(b"old")

    success, error = write_bytes_atomic(target, b"\x00\x01\x02\x03")

    assert success is True
    assert error is None
    assert target.read_bytes() == b"\x00\x01\x02\x03"
    assert not (temp_dir / "vectors.bin.tmp").exists()


def test_write_bytes_atomic_failure_leaves_target(temp_dir):
    # A directory squatting on the target path makes the rename fail.
    target = temp_dir / "occupied"
    target.mkdir()

    success, error = write_bytes_atomic(target, b"data")

    assert success is False
    assert error is not None
    assert target.is_dir()
    assert not (temp_dir / "occupied.tmp").exists()


def test_validate_json_structure():
    assert validate_json_structure({"a": 1, "b": 2}, ["a", "b"]) == (True, [])
    assert validate_json_structure({"a": 1}, ["a", "b"]) == (False, ["b"])
    assert validate_json_structure([1, 2], ["a"]) == (False, ["Data is not an object"])
