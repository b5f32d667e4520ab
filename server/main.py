import logging
from contextlib import asynccontextmanager

from core.logging_setup import setup_logging

setup_logging()

from core.config import settings

logger = logging.getLogger(__name__)

logger.info(f"Configuration loaded. Log level set to: {settings.LOGGING_LEVEL}")

from api.admin import create_admin_router
from api.errors import register_error_handlers
from api.integrations import create_integrations_router
from api.users import create_user_router
from core import orm
from fastapi import FastAPI
from integrations import get_integration_registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On application startup, initialize the database.
    This ensures the tables are ready before handling requests.
    """
    await orm.init_db()
    yield


registry = get_integration_registry()

app = FastAPI(
    title="ATL Portal Integrations API",
    description="Provisions IRC and XMPP chat accounts for portal users.",
    lifespan=lifespan,
)

register_error_handlers(app)

integrations_router = create_integrations_router(registry=registry)
app.include_router(integrations_router)

admin_router = create_admin_router(registry=registry)
app.include_router(admin_router)

user_router = create_user_router()
app.include_router(user_router)
