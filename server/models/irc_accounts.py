from sqlalchemy import CheckConstraint, Column, Index, Integer, Text

from core.orm import Base

from .base import (
    MetadataType,
    active_unique_index,
    id_column,
    timestamp_column,
    user_id_column,
)


class IrcAccount(Base):
    __tablename__ = "irc_account"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'deleted')",
            name="ck_irc_account_status",
        ),
        active_unique_index("uq_irc_account_user_active", "user_id"),
        active_unique_index("uq_irc_account_nick_active", "nick"),
        Index("idx_irc_account_status", "status"),
    )

    id = id_column()
    user_id = user_id_column()
    nick = Column(Text, nullable=False)
    server = Column(Text, nullable=False)
    port = Column(Integer, nullable=False, default=6697)
    status = Column(Text, nullable=False, default="pending")
    created_at = timestamp_column()
    updated_at = timestamp_column()
    metadata_ = Column("metadata", MetadataType)
