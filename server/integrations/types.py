from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

# "pending" only occurs on IRC rows while NickServ is being contacted.
ACCOUNT_STATUSES = ("pending", "active", "suspended", "deleted")


class IntegrationAccountSchema(BaseModel):
    """Common shape of an account as exposed outside an integration."""

    model_config = ConfigDict(extra="forbid")

    id: str
    user_id: str
    integration_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] | None = None


class IntegrationPublicInfo(BaseModel):
    id: str
    name: str
    description: str
    enabled: bool
