import logging

from core.error_capture import capture_exception
from core.logging_setup import log_context, log_step

from .registry import IntegrationRegistry

logger = logging.getLogger(__name__)

LOG_STEP = "USER-CLEANUP"


async def cleanup_integration_accounts(
    registry: IntegrationRegistry, user_id: str
) -> dict[str, str]:
    """
    Deletes the user's account in every registered integration.

    One integration failing never stops the others. Returns a map of
    integration id to ``deleted``, ``none`` or ``failed``.
    """
    outcomes: dict[str, str] = {}

    for integration in registry.get_all():
        with log_context(integration=integration.id, user_id=user_id), log_step(LOG_STEP):
            try:
                account = await integration.get_account(user_id)
                if account is None:
                    outcomes[integration.id] = "none"
                    continue

                await integration.delete_account(account.id)
                outcomes[integration.id] = "deleted"
                logger.info(f"Deleted {integration.name} account {account.id}.")
            except Exception as e:
                outcomes[integration.id] = "failed"
                capture_exception(
                    e,
                    tags={"integration": integration.id, "operation": "user_cleanup"},
                    extra={"user_id": user_id},
                )

    return outcomes
