"""SQLAlchemy model for the durable key-value store."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.mssql import JSON as MSSQLJSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime

JSON_VALUE = JSONB().with_variant(JSON(), "sqlite").with_variant(MSSQLJSON(), "mssql")


class KeyValueEntryModel(Base):
    """Database representation of a versioned JSON value."""

    __tablename__ = "key_value_entry"

    key = Column(String(120), primary_key=True)
    value = Column(JSON_VALUE, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["KeyValueEntryModel"]
