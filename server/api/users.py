import logging

from core.authentication import AuthContext, get_current_user
from core.orm import get_db_session
from fastapi import APIRouter, Depends, HTTPException
from models import User
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class UserResponse(BaseModel):
    id: str
    name: str | None
    email: str | None
    role: str


def create_user_router() -> APIRouter:
    """
    Creates the REST API router for users.
    """
    router = APIRouter(
        prefix="/api/users",
    )

    # NOTE: Requires User Auth
    @router.get("/me")
    async def get_me(
        auth: AuthContext = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ):
        """
        Get the profile for the currently authenticated user
        based on their 'portal_session' cookie.
        """
        user = await session.get(User, auth.user_id)
        if user is None:
            logger.error(f"Authenticated user {auth.user_id} not found in DB.")
            raise HTTPException(status_code=404, detail="User not found.")

        profile = UserResponse(
            id=user.id, name=user.name, email=user.email, role=user.role
        )
        return {"ok": True, "user": profile.model_dump()}

    return router
