from typing import Any, Literal

from pydantic import BaseModel, field_validator

from ..types import IntegrationAccountSchema
from .utils import is_valid_xmpp_username

XmppAccountStatus = Literal["active", "suspended", "deleted"]

INVALID_USERNAME_MESSAGE = (
    "Invalid username format. Username must be alphanumeric with underscores, "
    "hyphens, or dots, and start with a letter or number."
)


class XmppAccountSchema(IntegrationAccountSchema):
    integration_id: Literal["xmpp"] = "xmpp"
    status: XmppAccountStatus
    jid: str
    username: str


class CreateXmppAccountRequest(BaseModel):
    """An empty or missing username means "derive it from my email"."""

    username: str | None = None

    @field_validator("username", mode="before")
    @classmethod
    def validate_username(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("Username must be a string")
        username = value.strip()
        if not username:
            return None
        if not is_valid_xmpp_username(username):
            raise ValueError(INVALID_USERNAME_MESSAGE)
        return username.lower()


class UpdateXmppAccountRequest(BaseModel):
    username: str | None = None
    status: Literal["active", "suspended"] | None = None
    metadata: dict[str, Any] | None = None
