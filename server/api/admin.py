import logging
from datetime import datetime
from typing import Any

from core.authentication import AuthContext, require_admin
from core.orm import get_db_session
from fastapi import APIRouter, Depends, Query
from integrations.registry import IntegrationRegistry
from integrations.types import ACCOUNT_STATUSES
from integrations.user_deletion import cleanup_integration_accounts
from models import IrcAccount, User
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class AccountOwner(BaseModel):
    id: str
    email: str | None
    name: str | None


class AdminIrcAccount(BaseModel):
    id: str
    user_id: str
    nick: str
    server: str
    port: int
    status: str
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] | None = None
    user: AccountOwner | None = None


def _clamp_limit(limit: int | None) -> int:
    if limit is None or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def create_admin_router(registry: IntegrationRegistry) -> APIRouter:
    """
    Creates the REST API router for admin and staff tooling.
    """
    router = APIRouter(
        prefix="/api/admin",
    )

    # NOTE: Admin/staff only
    @router.get("/irc-accounts")
    async def list_irc_accounts(
        status: str | None = None,
        limit: int | None = Query(default=None),
        offset: int | None = Query(default=None),
        auth: AuthContext = Depends(require_admin),
        session: AsyncSession = Depends(get_db_session),
    ):
        """
        Page through IRC accounts, newest first, with their owners.

        An unknown ``status`` value is ignored rather than rejected.
        """
        limit = _clamp_limit(limit)
        offset = offset if offset is not None and offset >= 0 else 0

        conditions = []
        if status in ACCOUNT_STATUSES:
            conditions.append(IrcAccount.status == status)

        rows = await session.execute(
            select(IrcAccount, User)
            .outerjoin(User, IrcAccount.user_id == User.id)
            .where(*conditions)
            .order_by(IrcAccount.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        total = await session.scalar(
            select(func.count()).select_from(IrcAccount).where(*conditions)
        )
        total = int(total or 0)

        accounts = [
            AdminIrcAccount(
                id=account.id,
                user_id=account.user_id,
                nick=account.nick,
                server=account.server,
                port=account.port,
                status=account.status,
                created_at=account.created_at,
                updated_at=account.updated_at,
                metadata=account.metadata_,
                user=(
                    AccountOwner(id=user.id, email=user.email, name=user.name)
                    if user is not None
                    else None
                ),
            ).model_dump(mode="json")
            for account, user in rows.all()
        ]

        return {
            "ok": True,
            "irc_accounts": accounts,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }

    # NOTE: Admin/staff only
    @router.delete("/users/{user_id}/integrations")
    async def cleanup_user_integrations(
        user_id: str, auth: AuthContext = Depends(require_admin)
    ):
        """
        Remove every integration account a user owns, e.g. before the user
        itself is deleted. Per-integration failures are reported, not raised.
        """
        logger.info(f"User {auth.user_id} requested integration cleanup for {user_id}.")
        results = await cleanup_integration_accounts(registry, user_id)
        return {"ok": True, "results": results}

    return router
