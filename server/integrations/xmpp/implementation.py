import logging
import uuid
from typing import Any, Mapping

from core.config import Settings
from core.error_capture import capture_exception
from core.logging_setup import log_context, log_step
from models import XmppAccount
from models.base import utcnow
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..base import IntegrationBase
from ..errors import (
    AccountNotFound,
    AlreadyHasAccount,
    IdentifierDerivationFailed,
    IdentifierTaken,
    LocalPersistFailed,
    RemoteCleanupFailed,
    RemoteRegistrationFailed,
)
from .prosody import (
    ProsodyAccountExistsError,
    ProsodyAccountNotFoundError,
    ProsodyClient,
    ProsodyError,
)
from .types import CreateXmppAccountRequest, UpdateXmppAccountRequest, XmppAccountSchema
from .utils import format_jid, generate_username_from_email, parse_jid

logger = logging.getLogger(__name__)

LOG_STEP = "INT-XMPP"

INTEGRATION_ID = "xmpp"

USERNAME_CHANGE_MESSAGE = (
    "Username cannot be changed. Please delete your account and create a new one "
    "with the desired username."
)


def _normalize_username(value: str) -> str:
    return value.strip().lower()


class XmppIntegration(IntegrationBase[XmppAccountSchema]):
    """
    XMPP accounts on Prosody.

    The remote account is created first and the local row is only written
    once Prosody has accepted it, so there is no pending state. If the local
    insert fails, the remote account is deleted again on a best-effort basis.
    """

    def __init__(
        self,
        *,
        client: ProsodyClient | None,
        domain: str,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        super().__init__(
            id=INTEGRATION_ID,
            name="XMPP",
            description="XMPP (Jabber) chat accounts on Prosody",
            enabled=bool(client and client.rest_url and client.password),
            session_factory=session_factory,
        )
        self.client = client
        self.domain = domain

    async def create_account(
        self, user_id: str, payload: Mapping[str, Any]
    ) -> XmppAccountSchema:
        self.ensure_enabled()
        request = self.parse_request(CreateXmppAccountRequest, payload, "username")

        with log_context(integration=self.id, user_id=user_id), log_step(LOG_STEP):
            await self._ensure_no_account(user_id)

            email = await self.get_user_email(user_id)
            username = request.username or self._derive_username(email)
            jid = format_jid(username, self.domain)

            await self._ensure_username_available(username)
            await self._create_remote(username, user_id)

            row = await self._insert_account(user_id, username, jid)

            logger.info(f"XMPP account {row.id} created for {jid}.")
            return self._to_schema(row)

    @staticmethod
    def _derive_username(email: str) -> str:
        try:
            return generate_username_from_email(email)
        except ValueError:
            raise IdentifierDerivationFailed()

    async def _ensure_no_account(self, user_id: str) -> None:
        async with self.session_factory() as session:
            existing = await session.execute(
                select(XmppAccount.id).where(
                    XmppAccount.user_id == user_id, XmppAccount.status != "deleted"
                )
            )
            if existing.first():
                raise AlreadyHasAccount("You already have an XMPP account")

    async def _ensure_username_available(
        self, username: str, check_remote: bool = True
    ) -> None:
        async with self.session_factory() as session:
            taken = await session.execute(
                select(XmppAccount.id).where(
                    XmppAccount.username == username, XmppAccount.status != "deleted"
                )
            )
            if taken.first():
                raise IdentifierTaken("Username already taken")

        if not check_remote:
            return

        try:
            exists = await self.client.account_exists(username)
        except ProsodyError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "operation": "account_exists"},
                extra={"username": username},
            )
            raise RemoteRegistrationFailed("Failed to check username availability")

        if exists:
            raise IdentifierTaken("Username already taken in XMPP server")

    async def _create_remote(self, username: str, user_id: str) -> None:
        try:
            await self.client.create_account(username)
        except ProsodyAccountExistsError:
            raise IdentifierTaken("Username already taken in XMPP server")
        except ProsodyError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "operation": "create_account"},
                extra={"user_id": user_id, "username": username},
            )
            raise RemoteRegistrationFailed("Failed to create XMPP account")

    async def _insert_account(self, user_id: str, username: str, jid: str) -> XmppAccount:
        row = XmppAccount(
            id=str(uuid.uuid4()),
            user_id=user_id,
            jid=jid,
            username=username,
            status="active",
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
            return row
        except SQLAlchemyError as e:
            await self._discard_remote(username, user_id)
            capture_exception(
                e,
                tags={"integration": self.id, "step": "db_insert"},
                extra={"user_id": user_id, "username": username, "jid": jid},
            )
            if isinstance(e, IntegrityError):
                # Lost a race; the remote account is already gone again.
                await self._ensure_no_account(user_id)
                await self._ensure_username_available(username, check_remote=False)
            raise LocalPersistFailed()

    async def _discard_remote(self, username: str, user_id: str) -> None:
        """Best-effort compensation after a failed local insert."""
        try:
            await self.client.delete_account(username)
            logger.info(f"Removed Prosody account '{username}' after failed local insert.")
        except ProsodyError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "step": "cleanup_after_db_failure"},
                extra={"user_id": user_id, "username": username},
            )

    async def get_account(self, user_id: str) -> XmppAccountSchema | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(XmppAccount).where(
                    XmppAccount.user_id == user_id, XmppAccount.status != "deleted"
                )
            )
            row = result.scalars().first()

        return self._to_schema(row) if row else None

    async def get_account_by_id(self, account_id: str) -> XmppAccountSchema | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(XmppAccount).where(
                    XmppAccount.id == account_id, XmppAccount.status != "deleted"
                )
            )
            row = result.scalars().first()

        return self._to_schema(row) if row else None

    async def update_account(
        self, account_id: str, payload: Mapping[str, Any]
    ) -> XmppAccountSchema:
        request = self.parse_request(UpdateXmppAccountRequest, payload)

        async with self.session_factory() as session:
            result = await session.execute(
                select(XmppAccount).where(
                    XmppAccount.id == account_id, XmppAccount.status != "deleted"
                )
            )
            row = result.scalars().first()
            if row is None:
                raise AccountNotFound("XMPP account not found")

            self.apply_account_update(
                row,
                request,
                "username",
                USERNAME_CHANGE_MESSAGE,
                normalize=_normalize_username,
            )
            await session.commit()

        with log_context(integration=self.id, user_id=row.user_id), log_step(LOG_STEP):
            logger.info(f"Updated XMPP account {account_id} (status={row.status}).")
        return self._to_schema(row)

    async def delete_account(self, account_id: str) -> None:
        """
        Soft delete after removing the Prosody account. An account that is
        already gone on Prosody does not block the local delete.
        """
        async with self.session_factory() as session:
            row = await session.get(XmppAccount, account_id)

        if row is None or row.status == "deleted":
            return

        self.ensure_enabled()

        with log_context(integration=self.id, user_id=row.user_id), log_step(LOG_STEP):
            # The stored JID is what Prosody knows the account by.
            username, _ = parse_jid(row.jid)
            try:
                await self.client.delete_account(username)
            except ProsodyAccountNotFoundError:
                logger.info(f"Prosody account '{username}' was already gone.")
            except ProsodyError as e:
                capture_exception(
                    e,
                    tags={"integration": self.id, "operation": "delete_account"},
                    extra={"account_id": account_id, "jid": row.jid},
                )
                raise RemoteCleanupFailed()

            try:
                async with self.session_factory() as session:
                    row = await session.get(XmppAccount, account_id)
                    if row is not None and row.status != "deleted":
                        row.status = "deleted"
                        row.updated_at = utcnow()
                        await session.commit()
            except SQLAlchemyError as e:
                capture_exception(
                    e,
                    tags={"integration": self.id, "step": "db_soft_delete"},
                    extra={"account_id": account_id},
                )
                raise LocalPersistFailed(
                    "The XMPP account was removed from the chat server but could "
                    "not be marked as deleted. Please contact an administrator."
                )

            logger.info(f"XMPP account {account_id} marked as deleted.")

    def _to_schema(self, row: XmppAccount) -> XmppAccountSchema:
        return XmppAccountSchema(
            **self.account_fields(row), jid=row.jid, username=row.username
        )


def create_xmpp_integration(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> XmppIntegration:
    client = None
    if settings.PROSODY_REST_URL:
        client = ProsodyClient(
            settings.PROSODY_REST_URL,
            settings.XMPP_DOMAIN,
            settings.PROSODY_REST_USERNAME,
            settings.PROSODY_REST_PASSWORD,
            insecure_skip_verify=settings.PROSODY_INSECURE_SKIP_VERIFY,
        )
    return XmppIntegration(
        client=client, domain=settings.XMPP_DOMAIN, session_factory=session_factory
    )
