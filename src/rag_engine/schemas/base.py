"""Common schema utilities and base classes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SchemaBase(BaseModel):
    """Base model with common config for RAG engine schemas.

    Strings are kept verbatim: chunk text must survive a persist/load cycle
    byte for byte, including leading and trailing whitespace.
    """

    model_config = ConfigDict(populate_by_name=True)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
