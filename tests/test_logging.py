import logging
import re

from core.logging_setup import CustomFormatter, log_context, log_step, redact_url


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)


def _plain(line: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", line)


# Purpose: verify URLs are reduced to their path.
def test_redact_url():
    assert redact_url("POST https://user:pw@host.test/rest/accounts ok") == (
        "POST /rest/accounts ok"
    )
    assert redact_url("see https://host.test") == "see /"


# Purpose: verify step, integration and user context appear in each line.
def test_formatter_includes_context():
    formatter = CustomFormatter()

    with log_context(integration="irc", user_id="user-alice"), log_step("INT-IRC"):
        line = _plain(formatter.format(_record("created https://atheme.test/jsonrpc")))

    assert "[INFO][INT-IRC] [integration=irc] [user=user-alice] created /jsonrpc" in line


# Purpose: verify context tags disappear once the block exits.
def test_formatter_without_context():
    line = _plain(CustomFormatter().format(_record("idle")))

    assert "[APP] idle" in line
    assert "integration=" not in line
    assert "user=" not in line
