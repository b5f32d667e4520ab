from .implementation import XmppIntegration, create_xmpp_integration
from .prosody import (
    ProsodyAccountExistsError,
    ProsodyAccountNotFoundError,
    ProsodyClient,
    ProsodyError,
)
from .types import CreateXmppAccountRequest, UpdateXmppAccountRequest, XmppAccountSchema
from .utils import (
    format_jid,
    generate_username_from_email,
    is_valid_xmpp_username,
    parse_jid,
)

__all__ = [
    "CreateXmppAccountRequest",
    "ProsodyAccountExistsError",
    "ProsodyAccountNotFoundError",
    "ProsodyClient",
    "ProsodyError",
    "UpdateXmppAccountRequest",
    "XmppAccountSchema",
    "XmppIntegration",
    "create_xmpp_integration",
    "format_jid",
    "generate_username_from_email",
    "is_valid_xmpp_username",
    "parse_jid",
]
