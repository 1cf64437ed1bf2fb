"""JSON and binary file I/O helpers for the index artifacts.

Reads report errors as ``(value, error_message)`` tuples so callers decide
whether a failure is fatal. Writes go through a temporary sibling file and
``os.replace`` so a crash never leaves a half-written artifact behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple


def read_json_safe(
    path: Path,
    default: Any = None,
    encoding: str = "utf-8"
) -> Tuple[Any, Optional[str]]:
    """Read JSON content safely, returning data and optional error message.

    Args:
        path: Path to the JSON file to read.
        default: Value returned when reading or parsing fails.
        encoding: Text encoding for file read.

    Returns:
        Tuple of (data, error_message). error_message is None on success.
    """
    try:
        payload = path.read_text(encoding=encoding)
    except FileNotFoundError:
        return default, f"JSON file not found: {path}"
    except Exception as exc:
        return default, f"Cannot read {path}: {exc}"

    try:
        return json.loads(payload), None
    except json.JSONDecodeError as exc:
        return default, f"Failed to parse JSON at {path}: {exc}"


def write_bytes_atomic(path: Path, data: bytes) -> Tuple[bool, Optional[str]]:
    """Write bytes to ``path`` via a temp file and atomic rename.

    Returns:
        Tuple of (success, error_message).
    """
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
        return True, None
    except Exception as exc:
        try:
            tmp_path.unlink()
        except OSError:
            pass
        return False, f"Failed to write {path}: {exc}"


def write_json_safe(
    path: Path,
    data: Any,
    indent: Optional[int] = None,
    ensure_ascii: bool = False,
    encoding: str = "utf-8"
) -> Tuple[bool, Optional[str]]:
    """Serialize ``data`` as JSON and write it atomically.

    Returns:
        Tuple of (success, error_message).
    """
    try:
        text = json.dumps(data, indent=indent, ensure_ascii=ensure_ascii)
    except (TypeError, ValueError) as exc:
        return False, f"Failed to serialize JSON for {path}: {exc}"
    return write_bytes_atomic(path, (text + "\n").encode(encoding))


def validate_json_structure(
    data: Any,
    required_keys: Iterable[str]
) -> Tuple[bool, List[str]]:
    """Validate that a JSON object contains all required keys.

    Returns:
        Tuple of (is_valid, missing_keys). A non-dict payload reports
        ``["Data is not an object"]``.
    """
    if not isinstance(data, dict):
        return False, ["Data is not an object"]

    missing = [key for key in required_keys if key not in data]
    return not missing, missing


__all__ = ["read_json_safe", "write_json_safe", "write_bytes_atomic", "validate_json_structure"]
