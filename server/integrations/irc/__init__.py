from .atheme import AthemeClient, AthemeError, AthemeFaultError, AthemeFaultKind
from .implementation import IrcIntegration, create_irc_integration
from .types import (
    CreatedIrcAccountSchema,
    CreateIrcAccountRequest,
    IrcAccountSchema,
    UpdateIrcAccountRequest,
)
from .utils import IRC_NICK_MAX_LENGTH, generate_irc_password, is_valid_irc_nick

__all__ = [
    "AthemeClient",
    "AthemeError",
    "AthemeFaultError",
    "AthemeFaultKind",
    "CreatedIrcAccountSchema",
    "CreateIrcAccountRequest",
    "IRC_NICK_MAX_LENGTH",
    "IrcAccountSchema",
    "IrcIntegration",
    "UpdateIrcAccountRequest",
    "create_irc_integration",
    "generate_irc_password",
    "is_valid_irc_nick",
]
