"""Centralized path utilities for RAG engine runtime state."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

STATE_ENV_VAR = "RAG_ENGINE_STATE_DIR"


def resolve_state_root(config_dir: Optional[str] = None) -> Path:
    """Return the directory used for runtime state.

    Priority:
        1. RAG_ENGINE_STATE_DIR environment variable (absolute or relative).
        2. `<config_dir>/.rag_engine` if config_dir provided.
        3. Current working directory `.rag_engine`.
    """
    env_path = os.getenv(STATE_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser().resolve()

    base = Path(config_dir).resolve() if config_dir else Path.cwd().resolve()
    return base / ".rag_engine"


def ensure_directory(path: Path) -> Path:
    """Create the directory if it does not exist and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def index_dir(state_root: Path, create: bool = True) -> Path:
    """Return the directory holding the index artifacts under ``state_root``."""
    target = Path(state_root) / "index"
    if create:
        ensure_directory(target)
    return target
