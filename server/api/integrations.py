import logging
from typing import Any

from core.authentication import AuthContext, get_current_user, is_privileged
from fastapi import APIRouter, Depends, HTTPException, Request, status
from integrations.base import IntegrationBase
from integrations.errors import AccountNotFound, IntegrationDisabled
from integrations.registry import IntegrationRegistry, get_integration_or_raise
from integrations.types import IntegrationAccountSchema

logger = logging.getLogger(__name__)


async def _read_json_body(request: Request) -> Any:
    """A missing or unreadable body is treated as an empty object."""
    try:
        return await request.json()
    except ValueError:
        return {}


def create_integrations_router(registry: IntegrationRegistry) -> APIRouter:
    """
    Creates the REST API router for integration accounts.
    """
    router = APIRouter(
        prefix="/api/integrations",
    )

    def _get_enabled_integration(integration_id: str) -> IntegrationBase:
        integration = get_integration_or_raise(registry, integration_id)
        if not registry.is_enabled(integration_id):
            raise IntegrationDisabled(
                f"{integration.name} integration is not configured"
            )
        return integration

    async def _get_owned_account(
        integration: IntegrationBase, account_id: str, auth: AuthContext
    ) -> IntegrationAccountSchema:
        account = await integration.get_account_by_id(account_id)
        if account is None:
            raise AccountNotFound()

        if account.user_id != auth.user_id and not is_privileged(auth.role):
            logger.warning(
                f"User {auth.user_id} denied access to {integration.id} account {account_id}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden - Access denied"
            )
        return account

    # NOTE: Public
    @router.get("")
    async def list_integrations():
        """
        List every registered integration and whether it is configured.
        """
        return {
            "ok": True,
            "integrations": [
                info.model_dump() for info in registry.get_public_info()
            ],
        }

    # NOTE: Requires User Auth
    @router.get("/{integration_id}/accounts")
    async def get_my_account(
        integration_id: str, auth: AuthContext = Depends(get_current_user)
    ):
        """
        Get the current user's account for an integration.
        """
        integration = _get_enabled_integration(integration_id)

        account = await integration.get_account(auth.user_id)
        if account is None:
            raise AccountNotFound()

        return {"ok": True, "account": account.model_dump(mode="json")}

    # NOTE: Requires User Auth
    @router.post("/{integration_id}/accounts", status_code=status.HTTP_201_CREATED)
    async def create_account(
        integration_id: str,
        request: Request,
        auth: AuthContext = Depends(get_current_user),
    ):
        """
        Create an account for the current user.

        The IRC response carries a one-time ``temporary_password`` that is
        never shown again.
        """
        integration = _get_enabled_integration(integration_id)
        body = await _read_json_body(request)

        account = await integration.create_account(auth.user_id, body)

        return {"ok": True, "account": account.model_dump(mode="json")}

    # NOTE: Owner or admin/staff
    @router.get("/{integration_id}/accounts/{account_id}")
    async def get_account(
        integration_id: str,
        account_id: str,
        auth: AuthContext = Depends(get_current_user),
    ):
        integration = _get_enabled_integration(integration_id)
        account = await _get_owned_account(integration, account_id, auth)

        return {"ok": True, "account": account.model_dump(mode="json")}

    # NOTE: Owner or admin/staff
    @router.patch("/{integration_id}/accounts/{account_id}")
    async def update_account(
        integration_id: str,
        account_id: str,
        request: Request,
        auth: AuthContext = Depends(get_current_user),
    ):
        """
        Update status and/or metadata. The handle itself cannot be changed.
        """
        integration = _get_enabled_integration(integration_id)
        await _get_owned_account(integration, account_id, auth)
        body = await _read_json_body(request)

        updated = await integration.update_account(account_id, body)

        return {"ok": True, "account": updated.model_dump(mode="json")}

    # NOTE: Owner or admin/staff
    @router.delete("/{integration_id}/accounts/{account_id}")
    async def delete_account(
        integration_id: str,
        account_id: str,
        auth: AuthContext = Depends(get_current_user),
    ):
        integration = _get_enabled_integration(integration_id)
        await _get_owned_account(integration, account_id, auth)

        await integration.delete_account(account_id)

        return {"ok": True, "message": "Integration account deleted successfully"}

    return router
