"""
Atheme IRC services client (JSON-RPC over HTTP).

Every call is a single POST to the services' JSON-RPC endpoint. Nick
registration goes through ``atheme.command`` without a session, the same
way an unregistered IRC user would talk to NickServ. Dropping a nick needs a
services operator session and is only available when operator credentials
are configured.

The client never retries; callers decide what to do with a failure.
"""

import logging
from enum import Enum
from typing import Any

import httpx
from core.logging_setup import log_step

logger = logging.getLogger(__name__)

LOG_STEP = "ATHEME"

ATHEME_TIMEOUT_SECONDS = 15.0
DEFAULT_SOURCE_IP = "127.0.0.1"
INTERNAL_ERROR_CODE = 16


class AthemeFaultKind(str, Enum):
    DUPLICATE = "duplicate"
    BAD_PARAMS = "bad_params"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    OTHER = "other"


# From Atheme's jsonrpc fault table:
# 1 needmoreparams, 2 badparams, 3 nosuch_source, 4 nosuch_target,
# 5 authfail, 6 noprivs, 8 alreadyexists, 9 toomany, 10 emailfail,
# 15 badauthcookie, 16 internalerror
# Only 4 means the target is missing; 3 is about the calling account.
FAULT_KINDS = {
    1: AthemeFaultKind.BAD_PARAMS,
    2: AthemeFaultKind.BAD_PARAMS,
    4: AthemeFaultKind.NOT_FOUND,
    8: AthemeFaultKind.DUPLICATE,
    9: AthemeFaultKind.RATE_LIMITED,
}


class AthemeError(Exception):
    """Transport failure, timeout or unreadable response."""


class AthemeFaultError(AthemeError):
    """Atheme answered with a JSON-RPC fault."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.fault_message = message
        super().__init__(f"Atheme fault {code}: {message}")

    @property
    def kind(self) -> AthemeFaultKind:
        return FAULT_KINDS.get(self.code, AthemeFaultKind.OTHER)


class AthemeClient:
    def __init__(
        self,
        jsonrpc_url: str,
        *,
        insecure_skip_verify: bool = False,
        oper_account: str = "",
        oper_password: str = "",
        timeout: float = ATHEME_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.jsonrpc_url = jsonrpc_url
        self.insecure_skip_verify = insecure_skip_verify
        self.oper_account = oper_account
        self.oper_password = oper_password
        self.timeout = timeout
        self._transport = transport

    @property
    def can_drop_nicks(self) -> bool:
        return bool(self.oper_account and self.oper_password)

    async def _call(self, method: str, params: list[str]) -> Any:
        if not self.jsonrpc_url:
            raise AthemeError("IRC_ATHEME_JSONRPC_URL is not configured")

        body = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}

        try:
            async with httpx.AsyncClient(
                verify=not self.insecure_skip_verify,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.jsonrpc_url, json=body)
        except httpx.TimeoutException as e:
            raise AthemeError(f"Atheme request timed out: {method}") from e
        except httpx.HTTPError as e:
            raise AthemeError(f"Atheme request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise AthemeError(
                f"Atheme returned a non-JSON response (HTTP {response.status_code})"
            ) from e

        error = data.get("error") if isinstance(data, dict) else None
        if error or not response.is_success:
            error = error if isinstance(error, dict) else {}
            raise AthemeFaultError(
                code=int(error.get("code") or INTERNAL_ERROR_CODE),
                message=str(error.get("message") or "Atheme request failed"),
            )

        return data.get("result", "") if isinstance(data, dict) else ""

    async def command(self, params: list[str]) -> str:
        """atheme.command: authcookie, account, sourceip, service, command, *args."""
        result = await self._call("atheme.command", params)
        return result if isinstance(result, str) else str(result)

    async def register_nick(
        self,
        nick: str,
        password: str,
        email: str,
        source_ip: str = DEFAULT_SOURCE_IP,
    ) -> None:
        """
        NickServ REGISTER without a session.

        Raises AthemeFaultError on a services fault (8 = nick already
        registered) and AthemeError on transport problems.
        """
        with log_step(LOG_STEP):
            logger.info(f"Registering nick '{nick.strip()}' with NickServ.")
        await self.command(
            [
                ".",
                "",
                source_ip,
                "NickServ",
                "REGISTER",
                nick.strip(),
                password,
                email.strip(),
            ]
        )

    async def drop_nick(self, nick: str, source_ip: str = DEFAULT_SOURCE_IP) -> None:
        """
        NickServ FDROP as the configured services operator.

        An unregistered nick surfaces as a NOT_FOUND fault.
        """
        if not self.can_drop_nicks:
            raise AthemeError("Atheme operator credentials are not configured")

        try:
            authcookie = await self._call(
                "atheme.login", [self.oper_account, self.oper_password, source_ip]
            )
        except AthemeFaultError as e:
            # Login faults are never NOT_FOUND for the nick.
            raise AthemeError(f"Atheme operator login failed: {e}") from e

        try:
            with log_step(LOG_STEP):
                logger.info(f"Dropping nick '{nick}' via NickServ FDROP.")
            await self.command(
                [
                    str(authcookie),
                    self.oper_account,
                    source_ip,
                    "NickServ",
                    "FDROP",
                    nick,
                ]
            )
        finally:
            try:
                await self._call("atheme.logout", [str(authcookie), self.oper_account])
            except AthemeError as e:
                with log_step(LOG_STEP):
                    logger.warning(f"Atheme logout failed: {e}")
