"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from app.domain.entities import Notification
from app.infrastructure.models import NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(
        self,
        user_id: str,
        *,
        limit: int | None = 50,
        unread_only: bool = False,
        category: str | None = None,
    ) -> Sequence[Notification]:
        query = self.session.query(NotificationModel)
        query = query.filter(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.filter(NotificationModel.read_at.is_(None))
        if category is not None:
            query = query.filter(NotificationModel.category == category)
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def exists_recent(
        self,
        *,
        user_id: str,
        category: str,
        related_entity_id: str | None,
        since: datetime,
    ) -> bool:
        """Return whether a matching notification was created at or after ``since``."""

        query = (
            self.session.query(NotificationModel.id)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.category == category)
            .filter(NotificationModel.created_at >= ensure_app_naive_datetime(since))
        )
        if related_entity_id is None:
            query = query.filter(NotificationModel.related_entity_id.is_(None))
        else:
            query = query.filter(NotificationModel.related_entity_id == related_entity_id)
        return query.first() is not None

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_as_read(self, notification_ids: Iterable[int], *, user_id: str) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id.in_(ids),
                NotificationModel.user_id == user_id,
                NotificationModel.read_at.is_(None),
            )
            .update(
                {
                    NotificationModel.read_at: ensure_app_naive_datetime(
                        now_in_app_timezone()
                    )
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationModel, notification: Notification
    ) -> None:
        model.created_at = (
            ensure_app_naive_datetime(notification.created_at)
            or ensure_app_naive_datetime(now_in_app_timezone())
        )
        model.user_id = notification.user_id
        model.type = notification.type
        model.category = notification.category
        model.priority = notification.priority
        model.title = notification.title
        model.message = notification.message
        model.action_required = notification.action_required
        model.action_text = notification.action_text
        model.action_url = notification.action_url
        model.related_entity_id = notification.related_entity_id
        model.related_entity_type = notification.related_entity_type
        model.auto_resolve = notification.auto_resolve
        model.company_id = notification.company_id
        model.read_at = ensure_app_naive_datetime(notification.read_at)

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            type=model.type,
            category=model.category,
            priority=model.priority,
            title=model.title,
            message=model.message,
            action_required=bool(model.action_required),
            action_text=model.action_text,
            action_url=model.action_url,
            related_entity_id=model.related_entity_id,
            related_entity_type=model.related_entity_type,
            auto_resolve=bool(model.auto_resolve),
            company_id=model.company_id,
            created_at=ensure_app_timezone(model.created_at),
            read_at=ensure_app_timezone(model.read_at),
        )


__all__ = ["NotificationRepository"]
