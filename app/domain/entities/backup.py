"""Domain entities describing an exported backup."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

BACKUP_FORMAT_VERSION = 1


@dataclass
class BackupEncryption:
    """Parameters needed to decrypt a password-protected payload.

    ``salt`` and ``nonce`` are base64 encoded.
    """

    algorithm: str
    kdf: str
    iterations: int
    salt: str
    nonce: str


@dataclass
class BackupDocument:
    """Compressed snapshot of key-value entries with integrity metadata."""

    format_version: int
    created_at: datetime
    keys: list[str]
    payload: str
    sha256: str
    original_size: int
    compressed_size: int
    metadata: dict[str, str] = field(default_factory=dict)
    encryption: BackupEncryption | None = None

    @property
    def entry_count(self) -> int:
        return len(self.keys)

    @property
    def encrypted(self) -> bool:
        return self.encryption is not None


__all__ = ["BackupDocument", "BackupEncryption", "BACKUP_FORMAT_VERSION"]
