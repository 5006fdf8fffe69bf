"""Schemas for backup export and restore."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.domain.entities import BackupDocument, BackupEncryption


class BackupExportRequest(BaseModel):
    keys: list[str] | None = Field(
        default=None, description="Entries to export; every entry when omitted"
    )
    metadata: dict[str, str] = Field(default_factory=dict)
    password: str | None = Field(
        default=None, description="Encrypts the payload when given"
    )


class BackupEncryptionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    algorithm: str
    kdf: str
    iterations: int = Field(..., ge=1)
    salt: str
    nonce: str


class BackupDocumentSchema(BaseModel):
    """Transport form of a backup document."""

    model_config = ConfigDict(from_attributes=True)

    format_version: int
    created_at: datetime
    keys: list[str]
    entry_count: int = 0
    payload: str
    sha256: str = Field(..., min_length=64, max_length=64)
    original_size: int = Field(..., ge=0)
    compressed_size: int = Field(..., ge=0)
    metadata: dict[str, str] = Field(default_factory=dict)
    encryption: BackupEncryptionSchema | None = None

    def to_entity(self) -> BackupDocument:
        return BackupDocument(
            format_version=self.format_version,
            created_at=self.created_at,
            keys=list(self.keys),
            payload=self.payload,
            sha256=self.sha256,
            original_size=self.original_size,
            compressed_size=self.compressed_size,
            metadata=dict(self.metadata),
            encryption=BackupEncryption(**self.encryption.model_dump())
            if self.encryption
            else None,
        )


class BackupRestoreRequest(BaseModel):
    document: BackupDocumentSchema
    overwrite: bool = True
    password: str | None = None


class BackupRestoreResponse(BaseModel):
    restored_keys: list[str]


__all__ = [
    "BackupDocumentSchema",
    "BackupEncryptionSchema",
    "BackupExportRequest",
    "BackupRestoreRequest",
    "BackupRestoreResponse",
]
