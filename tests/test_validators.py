import pytest
from integrations.irc.utils import (
    IRC_NICK_MAX_LENGTH,
    IRC_PASSWORD_LENGTH,
    generate_irc_password,
    is_valid_irc_nick,
)
from integrations.xmpp.utils import (
    format_jid,
    generate_username_from_email,
    is_valid_xmpp_username,
    parse_jid,
)


# Purpose: verify RFC 1459 nick rules, including special characters and length.
@pytest.mark.parametrize(
    "nick,expected",
    [
        ("alice", True),
        ("alice[away]", True),
        ("[away]", False),
        ("a_b-c|d", True),
        ("9lives", False),
        ("-dash", False),
        ("has space", False),
        ("", False),
        ("a" * IRC_NICK_MAX_LENGTH, True),
        ("a" * (IRC_NICK_MAX_LENGTH + 1), False),
    ],
)
def test_is_valid_irc_nick(nick, expected):
    assert is_valid_irc_nick(nick) is expected


# Purpose: verify generated IRC passwords have the fixed length and differ per call.
def test_generate_irc_password():
    first = generate_irc_password()
    second = generate_irc_password()

    assert len(first) == IRC_PASSWORD_LENGTH
    assert first != second


# Purpose: verify XMPP usernames must start alphanumeric and use only . _ -.
@pytest.mark.parametrize(
    "username,expected",
    [
        ("bob", True),
        ("bob.smith_2-x", True),
        ("_bob", False),
        ("bob@host", False),
        ("", False),
        ("b" * 63, True),
        ("b" * 64, False),
    ],
)
def test_is_valid_xmpp_username(username, expected):
    assert is_valid_xmpp_username(username) is expected


# Purpose: verify usernames derived from email are lowercased and sanitized.
def test_generate_username_from_email():
    assert generate_username_from_email("Bob.Smith@example.com") == "bob.smith"
    assert generate_username_from_email("__x+tag@example.com") == "xtag"
    assert len(generate_username_from_email("a" * 80 + "@example.com")) == 63


# Purpose: verify derivation fails when nothing usable remains of the local-part.
@pytest.mark.parametrize("email", ["+++@example.com", "", "@example.com"])
def test_generate_username_from_email_failure(email):
    with pytest.raises(ValueError):
        generate_username_from_email(email)


# Purpose: verify JIDs are formatted from valid parts and split back apart.
def test_format_and_parse_jid():
    assert format_jid("bob", "xmpp.example.test") == "bob@xmpp.example.test"
    assert parse_jid("bob@xmpp.example.test") == ("bob", "xmpp.example.test")

    with pytest.raises(ValueError):
        format_jid("_bad", "xmpp.example.test")
    with pytest.raises(ValueError):
        parse_jid("no-domain")
    with pytest.raises(ValueError):
        parse_jid("a@b@c")
