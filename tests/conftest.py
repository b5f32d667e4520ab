import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
import pytest_asyncio
from api.admin import create_admin_router
from api.errors import register_error_handlers
from api.integrations import create_integrations_router
from api.users import create_user_router
from core.authentication import SESSION_COOKIE_NAME, generate_jwt_token
from core.orm import get_db_session, init_orm
from fastapi import FastAPI
from integrations.irc import AthemeError, IrcIntegration
from integrations.registry import IntegrationRegistry
from integrations.xmpp import (
    ProsodyAccountExistsError,
    ProsodyAccountNotFoundError,
    XmppIntegration,
)
from models import User
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

USERS = [
    {"id": "user-alice", "name": "Alice", "email": "a@example.com", "role": "user"},
    {"id": "user-bob", "name": "Bob", "email": "Bob.Smith@example.com", "role": "user"},
    {"id": "user-carol", "name": "Carol", "email": "carol@example.com", "role": "user"},
    {"id": "user-odd", "name": "Odd", "email": "+++@example.com", "role": "user"},
    {"id": "user-admin", "name": "Admin", "email": "admin@example.com", "role": "admin"},
]


class FakeAthemeClient:
    """Stands in for AthemeClient; records calls and can be told to fail."""

    def __init__(self, oper: bool = False):
        self.jsonrpc_url = "https://services.example.test/jsonrpc"
        self.can_drop_nicks = oper
        self.registered: dict[str, tuple[str, str]] = {}
        self.register_calls: list[tuple[str, str, str]] = []
        self.drop_calls: list[str] = []
        self.register_error: Exception | None = None
        self.drop_error: Exception | None = None
        self.on_register = None

    async def register_nick(self, nick, password, email, source_ip="127.0.0.1"):
        self.register_calls.append((nick, password, email))
        if self.on_register is not None:
            await self.on_register(nick)
        if self.register_error is not None:
            raise self.register_error
        self.registered[nick] = (password, email)

    async def drop_nick(self, nick, source_ip="127.0.0.1"):
        if not self.can_drop_nicks:
            raise AthemeError("Atheme operator credentials are not configured")
        self.drop_calls.append(nick)
        if self.drop_error is not None:
            raise self.drop_error
        self.registered.pop(nick, None)


class FakeProsodyClient:
    """Stands in for ProsodyClient with an in-memory account set."""

    def __init__(self):
        self.rest_url = "https://xmpp.example.test/rest"
        self.password = "secret"
        self.domain = "xmpp.example.test"
        self.accounts: set[str] = set()
        self.create_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.create_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.exists_error: Exception | None = None
        self.on_create = None

    async def create_account(self, username):
        self.create_calls.append(username)
        if self.create_error is not None:
            raise self.create_error
        if username in self.accounts:
            raise ProsodyAccountExistsError("User exists", 409)
        self.accounts.add(username)
        if self.on_create is not None:
            await self.on_create(username)

    async def account_exists(self, username):
        if self.exists_error is not None:
            raise self.exists_error
        return username in self.accounts

    async def delete_account(self, username):
        self.delete_calls.append(username)
        if self.delete_error is not None:
            raise self.delete_error
        if username not in self.accounts:
            raise ProsodyAccountNotFoundError("User not found", 404)
        self.accounts.discard(username)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_orm(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        session.add_all([User(**user) for user in USERS])
        await session.commit()
    return factory


@pytest.fixture
def atheme():
    return FakeAthemeClient()


@pytest.fixture
def prosody():
    return FakeProsodyClient()


@pytest.fixture
def irc(atheme, session_factory):
    return IrcIntegration(
        client=atheme,
        server="irc.example.test",
        port=6697,
        session_factory=session_factory,
    )


@pytest.fixture
def xmpp(prosody, session_factory):
    return XmppIntegration(
        client=prosody, domain=prosody.domain, session_factory=session_factory
    )


@pytest.fixture
def registry(irc, xmpp):
    registry = IntegrationRegistry()
    registry.register(irc)
    registry.register(xmpp)
    return registry


@pytest.fixture
def app(registry, session_factory):
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(create_integrations_router(registry=registry))
    app.include_router(create_admin_router(registry=registry))
    app.include_router(create_user_router())

    async def _get_test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _get_test_session
    return app


@pytest_asyncio.fixture
async def make_client(app):
    """Returns a factory for HTTP clients signed in as the given user."""
    clients: list[httpx.AsyncClient] = []

    def _make(user_id: str | None = None) -> httpx.AsyncClient:
        cookies = {SESSION_COOKIE_NAME: generate_jwt_token(user_id)} if user_id else None
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://portal.test",
            cookies=cookies,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
