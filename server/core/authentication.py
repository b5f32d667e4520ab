import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Request, status
from models import User
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .logging_setup import log_step
from .orm import get_db_session

logger = logging.getLogger(__name__)

LOG_STEP = "SESSION"

SESSION_COOKIE_NAME = "portal_session"
TOKEN_ISSUER = "atl-portal"
TOKEN_AUDIENCE = "portal-web"

PRIVILEGED_ROLES = ("admin", "staff")


class TokenPayload(BaseModel):
    """Pydantic model for the session JWT payload"""

    iss: str
    iat: int
    exp: int
    sub: str
    aud: str


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: str


def is_privileged(role: str | None) -> bool:
    """Staff and admins may act on accounts they do not own."""
    return role in PRIVILEGED_ROLES


def generate_jwt_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """
    Generates a session JWT for a portal user. (HS256)
    """
    now = datetime.now(timezone.utc)

    payload = {
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=12)),
        "sub": user_id,
        "aud": TOKEN_AUDIENCE,
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS256")


async def get_token_from_cookie(request: Request) -> str:
    """Extracts the session token from the 'portal_session' cookie."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        with log_step(LOG_STEP):
            logger.warning(f"Auth failed: No '{SESSION_COOKIE_NAME}' cookie.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return token


def get_current_user_payload(
    token: str = Depends(get_token_from_cookie),
) -> dict:
    """
    Validates the session token from the browser cookie.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=["HS256"],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
        TokenPayload(**payload)
        return payload
    except jwt.ExpiredSignatureError:
        with log_step(LOG_STEP):
            logger.warning("Auth failed: Token has expired.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired"
        )
    except (jwt.InvalidTokenError, ValidationError) as e:
        with log_step(LOG_STEP):
            logger.warning(f"Auth failed: Invalid token. {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )


async def get_current_user(
    payload: dict = Depends(get_current_user_payload),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """
    Resolves the session to a user. The role always comes from the database
    so that a demotion takes effect without waiting for the token to expire.
    """
    user_id = payload["sub"]

    result = await session.execute(select(User.role).where(User.id == user_id))
    role = result.scalar_one_or_none()

    if role is None:
        with log_step(LOG_STEP):
            logger.warning(f"Auth failed: user {user_id} no longer exists.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )

    return AuthContext(user_id=user_id, role=role)


async def require_admin(
    auth: AuthContext = Depends(get_current_user),
) -> AuthContext:
    if not is_privileged(auth.role):
        with log_step(LOG_STEP):
            logger.warning(f"Admin access denied for user {auth.user_id}.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return auth
