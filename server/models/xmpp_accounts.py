from sqlalchemy import CheckConstraint, Column, Index, Text

from core.orm import Base

from .base import (
    MetadataType,
    active_unique_index,
    id_column,
    timestamp_column,
    user_id_column,
)


class XmppAccount(Base):
    __tablename__ = "xmpp_account"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'deleted')",
            name="ck_xmpp_account_status",
        ),
        active_unique_index("uq_xmpp_account_user_active", "user_id"),
        active_unique_index("uq_xmpp_account_username_active", "username"),
        active_unique_index("uq_xmpp_account_jid_active", "jid"),
        Index("idx_xmpp_account_status", "status"),
    )

    id = id_column()
    user_id = user_id_column()
    jid = Column(Text, nullable=False)
    username = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")
    created_at = timestamp_column()
    updated_at = timestamp_column()
    metadata_ = Column("metadata", MetadataType)
