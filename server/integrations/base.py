"""
Lifecycle contract shared by every integration.

An integration owns one local account table and one remote account service.
Callers only ever go through these four operations, which keeps the ordering
of local and remote writes, and the compensation when one of them fails,
inside the integration itself.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Mapping, TypeVar

from core.orm import AsyncSessionLocal
from models import User
from models.base import utcnow
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import (
    IdentifierChangeRejected,
    IntegrationDisabled,
    InvalidIdentifier,
    InvalidRequest,
    NoOp,
    UserNotFound,
)
from .types import IntegrationAccountSchema, IntegrationPublicInfo

TAccount = TypeVar("TAccount", bound=IntegrationAccountSchema)
TRequest = TypeVar("TRequest", bound=BaseModel)


class IntegrationBase(ABC, Generic[TAccount]):
    id: str
    name: str
    description: str

    def __init__(
        self,
        *,
        id: str,
        name: str,
        description: str,
        enabled: bool = True,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.enabled = enabled
        self.session_factory = session_factory or AsyncSessionLocal

    @abstractmethod
    async def create_account(
        self, user_id: str, payload: Mapping[str, Any]
    ) -> TAccount:
        """Create a new integration account for a user."""

    @abstractmethod
    async def get_account(self, user_id: str) -> TAccount | None:
        """Fetch a user's non-deleted integration account, if one exists."""

    @abstractmethod
    async def get_account_by_id(self, account_id: str) -> TAccount | None:
        """Fetch a non-deleted integration account by its id."""

    @abstractmethod
    async def update_account(
        self, account_id: str, payload: Mapping[str, Any]
    ) -> TAccount:
        """Update status and/or metadata of an account."""

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """Soft-delete an account and clean up the remote service."""

    def public_info(self) -> IntegrationPublicInfo:
        return IntegrationPublicInfo(
            id=self.id,
            name=self.name,
            description=self.description,
            enabled=self.enabled,
        )

    def ensure_enabled(self) -> None:
        if not self.enabled:
            raise IntegrationDisabled(f"{self.name} integration is not configured")

    @staticmethod
    def parse_request(
        model: type[TRequest],
        payload: Mapping[str, Any] | None,
        identifier_field: str | None = None,
    ) -> TRequest:
        """
        Validates an incoming payload, surfacing the first problem as a message.

        Problems with ``identifier_field`` are reported as InvalidIdentifier so
        callers can tell a bad handle apart from a malformed request.
        """
        if payload is not None and not isinstance(payload, Mapping):
            raise InvalidRequest("Request body must be a JSON object")
        try:
            return model.model_validate(dict(payload or {}))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            message = str(first.get("msg", "Invalid request")).removeprefix(
                "Value error, "
            )
            loc = first.get("loc") or ()
            if identifier_field and loc and loc[0] == identifier_field:
                raise InvalidIdentifier(message)
            raise InvalidRequest(message)

    async def get_user_email(self, user_id: str) -> str:
        async with self.session_factory() as session:
            result = await session.execute(select(User.email).where(User.id == user_id))
            email = result.scalar_one_or_none()

        if not email:
            raise UserNotFound()
        return email

    @staticmethod
    def apply_account_update(
        row: Any,
        request: BaseModel,
        identifier_attr: str,
        change_message: str,
        normalize: Callable[[str], str] = str.strip,
    ) -> None:
        """
        Applies a status/metadata update to an account row in place.

        The identifier is checked first so a rejected rename never leaves a
        partially modified row behind.
        """
        requested = getattr(request, identifier_attr, None)
        if requested is not None and normalize(requested) != getattr(
            row, identifier_attr
        ):
            raise IdentifierChangeRejected(change_message)

        changed = False
        status = getattr(request, "status", None)
        if status is not None and status != row.status:
            if row.status == "pending":
                raise InvalidRequest("Account registration is still pending")
            row.status = status
            changed = True

        if "metadata" in request.model_fields_set and request.metadata != row.metadata_:
            row.metadata_ = request.metadata
            changed = True

        if not changed:
            raise NoOp()

        row.updated_at = utcnow()

    @staticmethod
    def account_fields(row: Any) -> dict[str, Any]:
        """Columns every account table shares, keyed for IntegrationAccountSchema."""
        return {
            "id": row.id,
            "user_id": row.user_id,
            "status": row.status,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
            "metadata": row.metadata_,
        }
