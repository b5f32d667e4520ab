from .irc_accounts import IrcAccount
from .users import User
from .xmpp_accounts import XmppAccount

# Compatibility patch for databases created before roles were introduced.
POST_CREATE_STATEMENTS = [
    "ALTER TABLE users ADD COLUMN IF NOT EXISTS role TEXT NOT NULL DEFAULT 'user'",
]

__all__ = [
    "IrcAccount",
    "User",
    "XmppAccount",
    "POST_CREATE_STATEMENTS",
]
