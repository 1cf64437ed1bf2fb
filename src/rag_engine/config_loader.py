"""Configuration loader for rag.yaml."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigLoadError
from .schemas import RetrievalSettings

CONFIG_FILE = "rag.yaml"


def load_config_manifest(config_dir: Optional[str]) -> Optional[Dict[str, Any]]:
    """Load rag.yaml (optional).

    Returns:
        Parsed YAML mapping, or None when the file (or config_dir) is absent

    Raises:
        ConfigLoadError: If the file exists but is not a valid YAML mapping
    """
    if not config_dir:
        return None
    path = Path(config_dir) / CONFIG_FILE
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(CONFIG_FILE, f"Invalid YAML: {e}")
    except OSError as e:
        raise ConfigLoadError(CONFIG_FILE, str(e))
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigLoadError(CONFIG_FILE, "Top-level value must be a mapping")
    return data


def parse_settings(data: Optional[Dict[str, Any]]) -> RetrievalSettings:
    """Validate raw config data into RetrievalSettings (None -> defaults)."""
    try:
        return RetrievalSettings.model_validate(data or {})
    except ValidationError as e:
        raise ConfigLoadError(CONFIG_FILE, f"Invalid settings: {e}")


def load_settings(config_dir: Optional[str]) -> RetrievalSettings:
    """Load and validate settings from ``<config_dir>/rag.yaml``, defaulting when absent."""
    return parse_settings(load_config_manifest(config_dir))
