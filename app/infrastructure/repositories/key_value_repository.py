"""Durable key-value store backed by the ``key_value_entry`` table."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.entities import KeyValueEntry
from app.domain.exceptions import StaleVersionError
from app.infrastructure.models import KeyValueEntryModel
from app.utils import ensure_app_naive_datetime, ensure_app_timezone, now_in_app_timezone


class KeyValueRepository:
    """Read and write JSON values with optimistic version checks.

    ``expected_version`` semantics for :meth:`set`: ``None`` writes
    unconditionally, ``0`` requires the key to be absent and any other value
    requires the stored version to match.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    def get_versioned(self, key: str, default: Any = None) -> tuple[Any, int]:
        """Return the value of ``key`` with its version (``0`` when absent)."""

        entry = self.get_entry(key)
        if entry is None:
            return default, 0
        return entry.value, entry.version

    def get_entry(self, key: str) -> KeyValueEntry | None:
        model = self.session.get(KeyValueEntryModel, key)
        return self._to_entity(model) if model else None

    def list_entries(self, keys: Sequence[str] | None = None) -> Sequence[KeyValueEntry]:
        query = self.session.query(KeyValueEntryModel)
        if keys is not None:
            query = query.filter(KeyValueEntryModel.key.in_(list(keys)))
        query = query.order_by(KeyValueEntryModel.key)
        return [self._to_entity(model) for model in query.all()]

    def set(
        self,
        key: str,
        value: Any,
        *,
        expected_version: int | None = None,
    ) -> KeyValueEntry:
        if expected_version is None:
            return self._upsert(key, value)
        if expected_version == 0:
            return self._insert_new(key, value)
        return self._compare_and_set(key, value, expected_version)

    def delete(self, key: str) -> bool:
        model = self.session.get(KeyValueEntryModel, key)
        if model is None:
            return False
        self.session.delete(model)
        self.session.commit()
        return True

    def _upsert(self, key: str, value: Any) -> KeyValueEntry:
        model = self.session.get(KeyValueEntryModel, key)
        if model is None:
            return self._insert_new(key, value)
        model.value = value
        model.version = (model.version or 0) + 1
        model.updated_at = ensure_app_naive_datetime(now_in_app_timezone())
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _insert_new(self, key: str, value: Any) -> KeyValueEntry:
        model = KeyValueEntryModel(
            key=key,
            value=value,
            version=1,
            updated_at=ensure_app_naive_datetime(now_in_app_timezone()),
        )
        self.session.add(model)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            current = self.get_entry(key)
            raise StaleVersionError(key, 0, current.version if current else None) from exc
        self.session.refresh(model)
        return self._to_entity(model)

    def _compare_and_set(self, key: str, value: Any, expected_version: int) -> KeyValueEntry:
        statement = (
            update(KeyValueEntryModel)
            .where(KeyValueEntryModel.key == key)
            .where(KeyValueEntryModel.version == expected_version)
            .values(
                value=value,
                version=expected_version + 1,
                updated_at=ensure_app_naive_datetime(now_in_app_timezone()),
            )
        )
        result = self.session.execute(statement)
        if result.rowcount != 1:
            self.session.rollback()
            current = self.get_entry(key)
            raise StaleVersionError(
                key, expected_version, current.version if current else None
            )
        self.session.commit()
        self.session.expire_all()
        entry = self.get_entry(key)
        if entry is None:  # pragma: no cover - deleted between commit and read
            raise StaleVersionError(key, expected_version + 1, None)
        return entry

    @staticmethod
    def _to_entity(model: KeyValueEntryModel) -> KeyValueEntry:
        return KeyValueEntry(
            key=model.key,
            value=model.value,
            version=model.version,
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["KeyValueRepository"]
