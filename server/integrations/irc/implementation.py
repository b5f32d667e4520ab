import logging
import uuid
from typing import Any, Mapping

from core.config import Settings
from core.error_capture import capture_exception
from core.logging_setup import log_context, log_step
from models import IrcAccount
from models.base import utcnow
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..base import IntegrationBase
from ..errors import (
    AccountNotFound,
    AlreadyHasAccount,
    IdentifierTaken,
    LocalPersistFailed,
    RemoteCleanupFailed,
    RemoteRegistrationFailed,
    StorageError,
)
from .atheme import AthemeClient, AthemeError, AthemeFaultError, AthemeFaultKind
from .types import (
    CreatedIrcAccountSchema,
    CreateIrcAccountRequest,
    IrcAccountSchema,
    UpdateIrcAccountRequest,
)
from .utils import generate_irc_password

logger = logging.getLogger(__name__)

LOG_STEP = "INT-IRC"

INTEGRATION_ID = "irc"

NICK_CHANGE_MESSAGE = (
    "Nick cannot be changed. Delete your account and create a new one with the "
    "desired nick."
)


class IrcIntegration(IntegrationBase[IrcAccountSchema]):
    """
    IRC accounts registered with Atheme NickServ.

    Creation runs ``pending -> active``:

    1. validate the nick and check local uniqueness,
    2. insert a ``pending`` row,
    3. REGISTER the nick with NickServ using a one-time password,
    4. flip the row to ``active``.

    A failed registration removes the pending row again. A failure in step 4
    leaves an orphaned NickServ registration that cannot be undone without
    operator rights; it is reported, never hidden, and the row stays
    ``pending`` so it can be found.
    """

    def __init__(
        self,
        *,
        client: AthemeClient | None,
        server: str,
        port: int,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        super().__init__(
            id=INTEGRATION_ID,
            name="IRC",
            description="IRC (atl.chat) accounts via NickServ",
            enabled=bool(client and client.jsonrpc_url),
            session_factory=session_factory,
        )
        self.client = client
        self.server = server
        self.port = port

    async def create_account(
        self, user_id: str, payload: Mapping[str, Any]
    ) -> CreatedIrcAccountSchema:
        """
        Returns the new account with its one-time ``temporary_password``.
        """
        self.ensure_enabled()
        request = self.parse_request(CreateIrcAccountRequest, payload, "nick")
        nick = request.nick

        with log_context(integration=self.id, user_id=user_id), log_step(LOG_STEP):
            await self._ensure_user_can_create(user_id, nick)
            email = await self.get_user_email(user_id)
            temporary_password = generate_irc_password()

            account_id = await self._insert_pending(user_id, nick)

            try:
                await self._register_nick(nick, temporary_password, email, user_id)
            except Exception:
                await self._discard_pending(account_id, user_id, nick)
                raise

            activation_error: Exception | None = None
            try:
                row = await self._activate(account_id)
            except SQLAlchemyError as e:
                row, activation_error = None, e

            if row is None:
                capture_exception(
                    activation_error or RuntimeError("Pending IRC account row is missing"),
                    tags={"integration": self.id, "step": "db_activate"},
                    extra={"user_id": user_id, "nick": nick, "account_id": account_id},
                )
                raise LocalPersistFailed(
                    "IRC account registration partially succeeded but failed to "
                    "activate. Please contact an administrator."
                )

            logger.info(f"IRC account {account_id} for nick '{nick}' is active.")
            return CreatedIrcAccountSchema(
                **self._to_fields(row), temporary_password=temporary_password
            )

    async def _ensure_user_can_create(self, user_id: str, nick: str) -> None:
        """
        Advisory pre-checks. The partial unique indexes are what actually
        guarantee exclusivity.
        """
        async with self.session_factory() as session:
            existing = await session.execute(
                select(IrcAccount.id).where(
                    IrcAccount.user_id == user_id, IrcAccount.status != "deleted"
                )
            )
            if existing.first():
                raise AlreadyHasAccount("You already have an IRC account")

            taken = await session.execute(
                select(IrcAccount.id).where(
                    IrcAccount.nick == nick, IrcAccount.status != "deleted"
                )
            )
            if taken.first():
                raise IdentifierTaken("Nick is already taken")

    async def _insert_pending(self, user_id: str, nick: str) -> str:
        account_id = str(uuid.uuid4())
        try:
            async with self.session_factory() as session:
                session.add(
                    IrcAccount(
                        id=account_id,
                        user_id=user_id,
                        nick=nick,
                        server=self.server,
                        port=self.port,
                        status="pending",
                    )
                )
                await session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent request; report which constraint.
            await self._ensure_user_can_create(user_id, nick)
            capture_exception(
                e,
                tags={"integration": self.id, "step": "db_insert_pending"},
                extra={"user_id": user_id, "nick": nick},
            )
            raise StorageError("Failed to initialize IRC account record")
        except SQLAlchemyError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "step": "db_insert_pending"},
                extra={"user_id": user_id, "nick": nick},
            )
            raise StorageError("Failed to initialize IRC account record")

        logger.info(f"Inserted pending IRC account {account_id} for nick '{nick}'.")
        return account_id

    async def _register_nick(
        self, nick: str, password: str, email: str, user_id: str
    ) -> None:
        """Calls NickServ REGISTER and translates faults into typed errors."""
        try:
            await self.client.register_nick(nick, password, email)
        except AthemeError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "operation": "register_nick"},
                extra={
                    "user_id": user_id,
                    "nick": nick,
                    "fault_code": getattr(e, "code", None),
                },
            )
            if isinstance(e, AthemeFaultError):
                if e.kind is AthemeFaultKind.DUPLICATE:
                    raise IdentifierTaken(
                        "Nick is already registered on the IRC network"
                    )
                if e.kind is AthemeFaultKind.BAD_PARAMS:
                    raise RemoteRegistrationFailed(
                        "Invalid nick or parameters", reason="invalid_params"
                    )
                if e.kind is AthemeFaultKind.RATE_LIMITED:
                    raise RemoteRegistrationFailed(
                        "Too many registrations; try again later",
                        reason="rate_limited",
                    )
            raise RemoteRegistrationFailed("IRC registration failed")

    async def _discard_pending(self, account_id: str, user_id: str, nick: str) -> None:
        """Compensation for a failed registration: the pending row goes away."""
        try:
            async with self.session_factory() as session:
                await session.execute(delete(IrcAccount).where(IrcAccount.id == account_id))
                await session.commit()
            logger.info(f"Removed pending IRC account {account_id} after failed registration.")
        except SQLAlchemyError as e:
            capture_exception(
                e,
                tags={"integration": self.id, "step": "cleanup_after_atheme_failure"},
                extra={"user_id": user_id, "nick": nick, "account_id": account_id},
            )

    async def _activate(self, account_id: str) -> IrcAccount | None:
        async with self.session_factory() as session:
            row = await session.get(IrcAccount, account_id)
            if row is None or row.status != "pending":
                return None
            row.status = "active"
            row.updated_at = utcnow()
            await session.commit()
            return row

    async def get_account(self, user_id: str) -> IrcAccountSchema | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(IrcAccount).where(
                    IrcAccount.user_id == user_id, IrcAccount.status != "deleted"
                )
            )
            row = result.scalars().first()

        return self._to_schema(row) if row else None

    async def get_account_by_id(self, account_id: str) -> IrcAccountSchema | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(IrcAccount).where(
                    IrcAccount.id == account_id, IrcAccount.status != "deleted"
                )
            )
            row = result.scalars().first()

        return self._to_schema(row) if row else None

    async def update_account(
        self, account_id: str, payload: Mapping[str, Any]
    ) -> IrcAccountSchema:
        request = self.parse_request(UpdateIrcAccountRequest, payload)

        async with self.session_factory() as session:
            result = await session.execute(
                select(IrcAccount).where(
                    IrcAccount.id == account_id, IrcAccount.status != "deleted"
                )
            )
            row = result.scalars().first()
            if row is None:
                raise AccountNotFound("IRC account not found")

            self.apply_account_update(row, request, "nick", NICK_CHANGE_MESSAGE)
            await session.commit()

        with log_context(integration=self.id, user_id=row.user_id), log_step(LOG_STEP):
            logger.info(f"Updated IRC account {account_id} (status={row.status}).")
        return self._to_schema(row)

    async def delete_account(self, account_id: str) -> None:
        """
        Soft delete. The NickServ registration is dropped first when operator
        credentials are configured; otherwise it stays registered on the
        network and only the local row is retired.
        """
        async with self.session_factory() as session:
            row = await session.get(IrcAccount, account_id)

        if row is None or row.status == "deleted":
            return

        with log_context(integration=self.id, user_id=row.user_id), log_step(LOG_STEP):
            if self.client is not None and self.client.can_drop_nicks:
                try:
                    await self.client.drop_nick(row.nick)
                except AthemeFaultError as e:
                    if e.kind is not AthemeFaultKind.NOT_FOUND:
                        capture_exception(
                            e,
                            tags={"integration": self.id, "operation": "drop_nick"},
                            extra={"account_id": account_id, "nick": row.nick},
                        )
                        raise RemoteCleanupFailed()
                    logger.info(f"Nick '{row.nick}' was not registered with NickServ.")
                except AthemeError as e:
                    capture_exception(
                        e,
                        tags={"integration": self.id, "operation": "drop_nick"},
                        extra={"account_id": account_id, "nick": row.nick},
                    )
                    raise RemoteCleanupFailed()
            else:
                logger.info(
                    f"No services operator configured; nick '{row.nick}' stays registered."
                )

            try:
                async with self.session_factory() as session:
                    row = await session.get(IrcAccount, account_id)
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
                    "The IRC account could not be marked as deleted. "
                    "Please contact an administrator."
                )

            logger.info(f"IRC account {account_id} marked as deleted.")

    def _to_fields(self, row: IrcAccount) -> dict[str, Any]:
        return {
            **self.account_fields(row),
            "nick": row.nick,
            "server": row.server,
            "port": row.port,
        }

    def _to_schema(self, row: IrcAccount) -> IrcAccountSchema:
        return IrcAccountSchema(**self._to_fields(row))


def create_irc_integration(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> IrcIntegration:
    client = None
    if settings.IRC_ATHEME_JSONRPC_URL:
        client = AthemeClient(
            settings.IRC_ATHEME_JSONRPC_URL,
            insecure_skip_verify=settings.IRC_ATHEME_INSECURE_SKIP_VERIFY,
            oper_account=settings.IRC_ATHEME_OPER_ACCOUNT,
            oper_password=settings.IRC_ATHEME_OPER_PASSWORD,
        )
    return IrcIntegration(
        client=client,
        server=settings.IRC_SERVER,
        port=settings.IRC_PORT,
        session_factory=session_factory,
    )
