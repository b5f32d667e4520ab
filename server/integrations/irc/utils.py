import re
import secrets

# Atheme NICKLEN is 50; generated passwords stay well under PASSLEN.
IRC_NICK_MAX_LENGTH = 50
IRC_PASSWORD_LENGTH = 24

# RFC 1459: a letter first, then letters, digits or [ ] \ ^ _ ` { | } ~ -
IRC_NICK_REGEX = re.compile(
    rf"^[a-zA-Z][a-zA-Z0-9\[\]\\^_`{{|}}~-]{{0,{IRC_NICK_MAX_LENGTH - 1}}}$"
)


def is_valid_irc_nick(nick: str) -> bool:
    """Checks nick syntax only. Surrounding whitespace makes a nick invalid."""
    if not nick or not isinstance(nick, str):
        return False
    if nick != nick.strip():
        return False
    return bool(IRC_NICK_REGEX.fullmatch(nick))


def generate_irc_password() -> str:
    """
    Random one-time password for NickServ REGISTER.

    Atheme requires one to register a nick; it is handed back to the user once
    and never stored.
    """
    return secrets.token_urlsafe(IRC_PASSWORD_LENGTH)[:IRC_PASSWORD_LENGTH]
