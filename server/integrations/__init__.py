"""
Account provisioning on external chat networks.

``get_integration_registry()`` returns the process-wide registry, filled on
first use. Tests and tools that need their own wiring build an
``IntegrationRegistry`` and call ``register_integrations`` on it directly.
"""

from core.config import Settings, settings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .base import IntegrationBase
from .errors import DuplicateIntegration, IntegrationError, UnknownIntegration
from .irc import IrcIntegration, create_irc_integration
from .registry import IntegrationRegistry, get_integration_or_raise
from .types import IntegrationAccountSchema, IntegrationPublicInfo
from .xmpp import XmppIntegration, create_xmpp_integration

_registry: IntegrationRegistry | None = None
_integrations_registered = False


def register_integrations(
    registry: IntegrationRegistry,
    app_settings: Settings = settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> IntegrationRegistry:
    registry.register(create_irc_integration(app_settings, session_factory))
    registry.register(create_xmpp_integration(app_settings, session_factory))
    return registry


def get_integration_registry() -> IntegrationRegistry:
    global _registry, _integrations_registered

    if not _integrations_registered:
        # Published only once every integration registered.
        _registry = register_integrations(IntegrationRegistry())
        _integrations_registered = True
    return _registry


__all__ = [
    "DuplicateIntegration",
    "IntegrationAccountSchema",
    "IntegrationBase",
    "IntegrationError",
    "IntegrationPublicInfo",
    "IntegrationRegistry",
    "IrcIntegration",
    "UnknownIntegration",
    "XmppIntegration",
    "get_integration_or_raise",
    "get_integration_registry",
    "register_integrations",
]
