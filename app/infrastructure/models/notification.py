"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index(
            "ix_notification_dedup",
            "user_id",
            "category",
            "related_entity_id",
            "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    category = Column(String(50), nullable=False)
    priority = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_required = Column(Boolean, nullable=False, default=False)
    action_text = Column(String(120), nullable=True)
    action_url = Column(String(255), nullable=True)
    related_entity_id = Column(String(64), nullable=True)
    related_entity_type = Column(String(50), nullable=True)
    auto_resolve = Column(Boolean, nullable=False, default=True)
    company_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    read_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationModel"]
