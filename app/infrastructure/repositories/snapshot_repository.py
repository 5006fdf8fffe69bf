"""Access to the cached business snapshots used as scheduler input."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from .key_value_repository import KeyValueRepository

SNAPSHOT_INVOICES = "invoices"
SNAPSHOT_PRODUCTS = "products"
SNAPSHOT_CUSTOMERS = "customers"
SNAPSHOT_CASH_TRANSACTIONS = "cash_transactions"

SNAPSHOT_NAMES = frozenset(
    {
        SNAPSHOT_INVOICES,
        SNAPSHOT_PRODUCTS,
        SNAPSHOT_CUSTOMERS,
        SNAPSHOT_CASH_TRANSACTIONS,
    }
)

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """Read and replace the record lists stored under well-known keys."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._store = KeyValueRepository(session)

    def list(self, name: str) -> list[dict[str, Any]]:
        """Return the records of snapshot ``name``; malformed content yields ``[]``."""

        _ensure_known(name)
        raw = self._store.get(name, [])
        if not isinstance(raw, list):
            logger.error("Snapshot '%s' is not a list; ignoring its content", name)
            return []
        records = [dict(item) for item in raw if isinstance(item, Mapping)]
        if len(records) != len(raw):
            logger.warning(
                "Snapshot '%s' contains %d non-object entries", name, len(raw) - len(records)
            )
        return records

    def replace(self, name: str, records: list[dict[str, Any]]) -> int:
        """Store ``records`` as the content of snapshot ``name``."""

        _ensure_known(name)
        entry = self._store.set(name, records)
        return entry.version

    def list_for_user(self, name: str, user_id: str) -> list[dict[str, Any]]:
        return [record for record in self.list(name) if str(record.get("user_id")) == user_id]


def _ensure_known(name: str) -> None:
    if name not in SNAPSHOT_NAMES:
        raise ValueError(f"Unknown snapshot '{name}'")


__all__ = [
    "SNAPSHOT_CASH_TRANSACTIONS",
    "SNAPSHOT_CUSTOMERS",
    "SNAPSHOT_INVOICES",
    "SNAPSHOT_NAMES",
    "SNAPSHOT_PRODUCTS",
    "SnapshotRepository",
]
