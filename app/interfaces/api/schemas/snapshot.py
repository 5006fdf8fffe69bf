"""Schemas for cached business snapshot endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class SnapshotRead(BaseModel):
    name: str
    records: list[dict[str, Any]]


class SnapshotReplace(BaseModel):
    records: list[dict[str, Any]]


class SnapshotReplaceResponse(BaseModel):
    name: str
    count: int
    version: int


__all__ = ["SnapshotRead", "SnapshotReplace", "SnapshotReplaceResponse"]
