"""Export and restore of the key-value store as a checksummed document."""

from __future__ import annotations

import base64
import binascii
import gzip
import hashlib
import json
import logging
import os
from collections.abc import Callable, Sequence
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy.orm import Session

from app.domain.entities import BackupDocument, BackupEncryption
from app.domain.entities.backup import BACKUP_FORMAT_VERSION
from app.domain.exceptions import BackupIntegrityError
from app.infrastructure.repositories import KeyValueRepository
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

ENCRYPTION_ALGORITHM = "AES-256-GCM"
KEY_DERIVATION = "PBKDF2-HMAC-SHA256"
KDF_ITERATIONS = 100_000
_SALT_BYTES = 16
_NONCE_BYTES = 12


def export_backup(
    session: Session,
    keys: Sequence[str] | None = None,
    *,
    metadata: dict[str, str] | None = None,
    password: str | None = None,
    clock: Callable[[], Any] = now_in_app_timezone,
) -> BackupDocument:
    """Serialize the selected entries (all when ``keys`` is ``None``).

    With a ``password`` the compressed payload is encrypted with AES-GCM under
    a PBKDF2-derived key; the checksum and sizes still describe the plaintext.
    """

    entries = KeyValueRepository(session).list_entries(keys)
    content = {"entries": [{"key": entry.key, "value": entry.value} for entry in entries]}
    raw = json.dumps(content, sort_keys=True, ensure_ascii=False, default=str).encode("utf-8")
    compressed = gzip.compress(raw)
    checksum = hashlib.sha256(raw).hexdigest()

    body = compressed
    encryption = None
    if password:
        salt = os.urandom(_SALT_BYTES)
        nonce = os.urandom(_NONCE_BYTES)
        key = _derive_key(password, salt, KDF_ITERATIONS)
        body = AESGCM(key).encrypt(nonce, compressed, checksum.encode("utf-8"))
        encryption = BackupEncryption(
            algorithm=ENCRYPTION_ALGORITHM,
            kdf=KEY_DERIVATION,
            iterations=KDF_ITERATIONS,
            salt=_b64(salt),
            nonce=_b64(nonce),
        )

    document = BackupDocument(
        format_version=BACKUP_FORMAT_VERSION,
        created_at=clock(),
        keys=[entry.key for entry in entries],
        payload=_b64(body),
        sha256=checksum,
        original_size=len(raw),
        compressed_size=len(compressed),
        metadata=dict(metadata or {}),
        encryption=encryption,
    )
    if keys is not None:
        missing = sorted(set(keys) - set(document.keys))
        if missing:
            logger.warning("Backup requested unknown keys: %s", ", ".join(missing))
    logger.info(
        "Backup exported: %d entries, %d bytes (%d compressed)%s",
        document.entry_count,
        document.original_size,
        document.compressed_size,
        ", encrypted" if document.encrypted else "",
    )
    return document


def read_backup(document: BackupDocument, password: str | None = None) -> dict[str, Any]:
    """Decode ``document`` and return its entries after verifying integrity."""

    if document.format_version != BACKUP_FORMAT_VERSION:
        raise BackupIntegrityError(
            f"Unsupported backup format version {document.format_version}"
        )

    body = _unb64(document.payload, "Backup payload is not valid base64")
    compressed = _decrypt(document, body, password) if document.encryption else body

    if len(compressed) != document.compressed_size:
        raise BackupIntegrityError("Backup compressed size does not match")

    try:
        raw = gzip.decompress(compressed)
    except (OSError, EOFError) as exc:
        raise BackupIntegrityError("Backup payload cannot be decompressed") from exc

    if len(raw) != document.original_size:
        raise BackupIntegrityError("Backup size does not match")
    if hashlib.sha256(raw).hexdigest() != document.sha256:
        raise BackupIntegrityError("Backup checksum does not match")

    try:
        content = json.loads(raw.decode("utf-8"))
        entries = {item["key"]: item["value"] for item in content["entries"]}
    except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
        raise BackupIntegrityError("Backup content is malformed") from exc

    if sorted(entries) != sorted(document.keys):
        raise BackupIntegrityError("Backup key list does not match its content")
    return entries


def restore_backup(
    session: Session,
    document: BackupDocument,
    *,
    overwrite: bool = True,
    password: str | None = None,
) -> list[str]:
    """Write the entries of ``document`` back and return the restored keys.

    Existing keys are left untouched when ``overwrite`` is false.
    """

    entries = read_backup(document, password)
    repository = KeyValueRepository(session)

    restored: list[str] = []
    for key in sorted(entries):
        if not overwrite and repository.get_entry(key) is not None:
            logger.debug("Backup restore skipped existing key '%s'", key)
            continue
        repository.set(key, entries[key])
        restored.append(key)

    logger.info("Backup restored: %d of %d entries", len(restored), len(entries))
    return restored


def _decrypt(document: BackupDocument, body: bytes, password: str | None) -> bytes:
    encryption = document.encryption
    if not password:
        raise BackupIntegrityError("Backup is encrypted; a password is required")
    if encryption.algorithm != ENCRYPTION_ALGORITHM or encryption.kdf != KEY_DERIVATION:
        raise BackupIntegrityError(
            f"Unsupported backup encryption {encryption.algorithm}/{encryption.kdf}"
        )

    salt = _unb64(encryption.salt, "Backup salt is not valid base64")
    nonce = _unb64(encryption.nonce, "Backup nonce is not valid base64")
    if len(nonce) != _NONCE_BYTES or encryption.iterations < 1:
        raise BackupIntegrityError("Backup encryption parameters are invalid")

    key = _derive_key(password, salt, encryption.iterations)
    try:
        return AESGCM(key).decrypt(nonce, body, document.sha256.encode("utf-8"))
    except InvalidTag as exc:
        raise BackupIntegrityError("Wrong backup password or corrupted payload") from exc


def _derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
    return kdf.derive(password.encode("utf-8"))


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _unb64(value: str, error: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise BackupIntegrityError(error) from exc


__all__ = ["export_backup", "read_backup", "restore_backup"]
