import contextvars
import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import colorama
from colorama import Fore, Style

from .config import settings

integration_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "integration_var", default=None
)
user_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_var", default=None
)
step_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "step_var", default="APP"
)

# Tags appended after the step, in order, whenever the variable is set.
CONTEXT_TAGS = (
    ("integration", integration_var, Fore.MAGENTA),
    ("user", user_var, Fore.GREEN),
)

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}

URL_REGEX = re.compile(r'https?://[^/]+(/[^"\'\s<]*)?')


def redact_url(message: str) -> str:
    """Replaces URLs with their path so hosts and credentials stay out of logs."""
    return URL_REGEX.sub(lambda match: match.group(1) or "/", message)


def _paint(color: str, text: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


class CustomFormatter(logging.Formatter):
    """
    ``[time] [LEVEL] [STEP] [integration=..] [user=..] message``, colored.
    """

    def formatTime(self, record, datefmt=None):
        created = datetime.fromtimestamp(record.created)
        return f"{created:%Y-%m-%dT%H:%M:%S}.{int(record.msecs):03d}"

    def format(self, record):
        record.step = step_var.get()
        level_color = LEVEL_COLORS.get(record.levelno, Style.RESET_ALL)

        parts = [
            _paint(Fore.LIGHTBLACK_EX, f"[{self.formatTime(record)}]"),
            _paint(level_color, f"[{record.levelname}]"),
            _paint(Fore.BLUE, f"[{record.step}]"),
        ]
        for label, var, color in CONTEXT_TAGS:
            if value := var.get():
                parts.append(_paint(color, f" [{label}={value}]"))
        parts.append(f" {record.getMessage()}")

        line = "".join(parts)
        if record.exc_info:
            line += f"\n{Style.RESET_ALL}{self.formatException(record.exc_info)}"

        return redact_url(line)


def setup_logging():
    """
    Configures the root logger: below ERROR to stdout, ERROR and up to stderr.
    """
    colorama.init()

    log_level = logging.getLevelName(settings.LOGGING_LEVEL.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    formatter = CustomFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)

    # httpx logs every request line at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@contextmanager
def log_step(name: str):
    """Context manager to set the 'step' for all logs within it."""
    token = step_var.set(name)
    try:
        yield
    finally:
        step_var.reset(token)


@contextmanager
def log_context(integration: str | None = None, user_id: str | None = None):
    """Tags every log line inside the block with the integration and user."""
    integration_token = integration_var.set(integration)
    user_token = user_var.set(user_id)
    try:
        yield
    finally:
        user_var.reset(user_token)
        integration_var.reset(integration_token)
