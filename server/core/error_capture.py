import logging
from typing import Any, Mapping

from core.logging_setup import log_step

logger = logging.getLogger(__name__)

LOG_STEP = "CAPTURE"


def capture_exception(
    error: BaseException,
    tags: Mapping[str, Any] | None = None,
    extra: Mapping[str, Any] | None = None,
) -> None:
    """
    Reports an exception with enough context to reconcile it by hand.

    Fire-and-forget: a failure while reporting is swallowed so that it never
    masks the error the caller is about to raise.
    """
    try:
        context = " ".join(
            f"{key}={value}" for key, value in {**(tags or {}), **(extra or {})}.items()
        )
        with log_step(LOG_STEP):
            logger.error(
                f"Captured {type(error).__name__}: {error} [{context}]",
                exc_info=(type(error), error, error.__traceback__),
            )
    except Exception:
        pass
