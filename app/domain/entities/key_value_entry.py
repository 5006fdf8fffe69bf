"""Domain entity representing a durable key-value entry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class KeyValueEntry:
    """JSON value stored under ``key`` with a monotonically increasing version."""

    key: str
    value: Any
    version: int
    updated_at: datetime | None = None


__all__ = ["KeyValueEntry"]
