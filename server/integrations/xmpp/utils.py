import re

XMPP_USERNAME_MIN_LENGTH = 1
XMPP_USERNAME_MAX_LENGTH = 63

# Alphanumerics plus . _ - , starting with a letter or digit.
XMPP_USERNAME_REGEX = re.compile(
    rf"^[a-zA-Z0-9][a-zA-Z0-9._-]{{0,{XMPP_USERNAME_MAX_LENGTH - 1}}}$"
)
XMPP_USERNAME_SANITIZE_REGEX = re.compile(r"[^a-zA-Z0-9._-]")
XMPP_USERNAME_LEADING_REGEX = re.compile(r"^[^a-zA-Z0-9]+")


def is_valid_xmpp_username(username: str) -> bool:
    if not username or not isinstance(username, str):
        return False
    if not XMPP_USERNAME_MIN_LENGTH <= len(username) <= XMPP_USERNAME_MAX_LENGTH:
        return False
    return bool(XMPP_USERNAME_REGEX.fullmatch(username))


def generate_username_from_email(email: str) -> str:
    """
    Derives a username from the email local-part: lowercased, stripped of
    characters XMPP localparts may not contain, trimmed to the max length.

    Raises ValueError when nothing usable is left.
    """
    if not email or not isinstance(email, str):
        raise ValueError("Invalid email address")

    localpart = email.split("@")[0].lower()
    sanitized = XMPP_USERNAME_SANITIZE_REGEX.sub("", localpart)
    sanitized = XMPP_USERNAME_LEADING_REGEX.sub("", sanitized)
    sanitized = sanitized[:XMPP_USERNAME_MAX_LENGTH]

    if not is_valid_xmpp_username(sanitized):
        raise ValueError(f"Cannot generate valid XMPP username from email: {email}")

    return sanitized


def format_jid(username: str, domain: str) -> str:
    if not is_valid_xmpp_username(username):
        raise ValueError(f"Invalid XMPP username: {username}")
    if not domain:
        raise ValueError("Invalid XMPP domain")
    return f"{username}@{domain}"


def parse_jid(jid: str) -> tuple[str, str]:
    """Splits ``username@domain`` into its two parts."""
    if not jid or not isinstance(jid, str):
        raise ValueError("Invalid JID")

    parts = jid.split("@")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid JID format: {jid}")

    username, domain = parts
    return username, domain
