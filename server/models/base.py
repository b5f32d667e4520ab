from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Text, text
from sqlalchemy.dialects.postgresql import JSONB

NOT_DELETED = "status != 'deleted'"

MetadataType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def id_column() -> Column:
    return Column(Text, primary_key=True)


def user_id_column() -> Column:
    return Column(Text, ForeignKey("users.id"), nullable=False)


def timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=utcnow)


def active_unique_index(name: str, column: str) -> Index:
    """Unique among rows that are not soft-deleted."""
    return Index(
        name,
        column,
        unique=True,
        postgresql_where=text(NOT_DELETED),
        sqlite_where=text(NOT_DELETED),
    )
