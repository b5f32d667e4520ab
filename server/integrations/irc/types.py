from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from ..types import IntegrationAccountSchema
from .utils import IRC_NICK_MAX_LENGTH, is_valid_irc_nick

IrcAccountStatus = Literal["pending", "active", "suspended", "deleted"]


class IrcAccountSchema(IntegrationAccountSchema):
    integration_id: Literal["irc"] = "irc"
    status: IrcAccountStatus
    nick: str
    server: str
    port: int


class CreatedIrcAccountSchema(IrcAccountSchema):
    """Returned once on creation; the password is never stored."""

    temporary_password: str


class CreateIrcAccountRequest(BaseModel):
    nick: str = Field(default="", validate_default=True)

    @field_validator("nick", mode="before")
    @classmethod
    def validate_nick(cls, value: Any) -> str:
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError("Nick must be a string")
        nick = value.strip()
        if not nick:
            raise ValueError("Nick is required")
        if len(nick) > IRC_NICK_MAX_LENGTH:
            raise ValueError(f"Nick must be {IRC_NICK_MAX_LENGTH} characters or less")
        if not is_valid_irc_nick(nick):
            raise ValueError(
                "Invalid nick. Use letters, digits, or [ ] \\ ^ _ ` { | } ~ - "
                f"(max {IRC_NICK_MAX_LENGTH} characters)."
            )
        return nick


class UpdateIrcAccountRequest(BaseModel):
    nick: str | None = None
    status: Literal["active", "suspended"] | None = None
    metadata: dict[str, Any] | None = None
