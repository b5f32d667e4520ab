import logging

from core.logging_setup import log_step

from .base import IntegrationBase
from .errors import DuplicateIntegration, UnknownIntegration
from .types import IntegrationPublicInfo

logger = logging.getLogger(__name__)

LOG_STEP = "REGISTRY"


class IntegrationRegistry:
    """
    Map from integration id to integration instance.

    Registration is strict: a second ``register`` with the same id fails
    instead of overwriting. Callers that may run registration more than once
    guard it themselves.
    """

    def __init__(self) -> None:
        self._integrations: dict[str, IntegrationBase] = {}

    def register(self, integration: IntegrationBase) -> None:
        if integration.id in self._integrations:
            raise DuplicateIntegration(integration.id)

        self._integrations[integration.id] = integration
        with log_step(LOG_STEP):
            logger.info(
                f"Registered integration '{integration.id}' (enabled={integration.enabled})."
            )

    def get(self, integration_id: str) -> IntegrationBase | None:
        return self._integrations.get(integration_id)

    def get_all(self) -> list[IntegrationBase]:
        return list(self._integrations.values())

    def get_enabled(self) -> list[IntegrationBase]:
        return [i for i in self._integrations.values() if i.enabled]

    def is_enabled(self, integration_id: str) -> bool:
        integration = self.get(integration_id)
        return integration.enabled if integration else False

    def get_public_info(self) -> list[IntegrationPublicInfo]:
        return [i.public_info() for i in self._integrations.values()]


def get_integration_or_raise(
    registry: IntegrationRegistry, integration_id: str
) -> IntegrationBase:
    integration = registry.get(integration_id)
    if integration is None:
        raise UnknownIntegration()
    return integration
