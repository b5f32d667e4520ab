"""
Client for Prosody's account management REST API (mod_rest).

Requests carry ``jabber:iq:register`` stanzas and authenticate with HTTP
Basic using the admin JID and the component secret. Accounts are created
without a password; users sign in to XMPP through the portal's OAuth
provider.
"""

import logging
import time
import urllib.parse
import xml.etree.ElementTree as ET

import httpx
from core.logging_setup import log_step

from .utils import format_jid

logger = logging.getLogger(__name__)

LOG_STEP = "PROSODY"

PROSODY_TIMEOUT_SECONDS = 15.0


class ProsodyError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ProsodyAccountNotFoundError(ProsodyError):
    pass


class ProsodyAccountExistsError(ProsodyError):
    pass


def build_register_stanza(
    domain: str, stanza_id: str, username: str | None = None, remove: bool = False
) -> bytes:
    iq = ET.Element("iq", {"type": "set", "to": domain, "id": stanza_id})
    query = ET.SubElement(iq, "query", {"xmlns": "jabber:iq:register"})
    if remove:
        ET.SubElement(query, "remove")
    else:
        ET.SubElement(query, "username").text = username
    return ET.tostring(iq, encoding="utf-8", xml_declaration=True)


def _stanza_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}"


class ProsodyClient:
    def __init__(
        self,
        rest_url: str,
        domain: str,
        username: str,
        password: str,
        *,
        insecure_skip_verify: bool = False,
        timeout: float = PROSODY_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rest_url = rest_url.rstrip("/")
        self.domain = domain
        self.username = username
        self.password = password
        self.insecure_skip_verify = insecure_skip_verify
        self.timeout = timeout
        self._transport = transport

    def _account_path(self, username: str) -> str:
        return f"/accounts/{urllib.parse.quote(username, safe='')}"

    async def _request(
        self, method: str, endpoint: str, content: bytes | None = None
    ) -> httpx.Response:
        url = f"{self.rest_url}{endpoint}"
        try:
            async with httpx.AsyncClient(
                auth=(self.username, self.password),
                verify=not self.insecure_skip_verify,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    content=content,
                    headers={"Content-Type": "application/xml"},
                )
        except httpx.HTTPError as e:
            raise ProsodyError(f"Prosody request failed: {e}") from e

        if response.is_success:
            return response

        message = f"Prosody REST API error: {response.status_code} {response.reason_phrase}"
        try:
            data = response.json()
            if isinstance(data, dict):
                message = data.get("error") or data.get("message") or message
        except ValueError:
            if response.text:
                message = response.text

        lowered = message.lower()
        if response.status_code == 404 or "not found" in lowered:
            raise ProsodyAccountNotFoundError(message, response.status_code)
        if response.status_code == 409 or "exists" in lowered or "conflict" in lowered:
            raise ProsodyAccountExistsError(message, response.status_code)
        raise ProsodyError(message, response.status_code)

    async def create_account(self, username: str) -> None:
        jid = format_jid(username, self.domain)
        stanza = build_register_stanza(self.domain, _stanza_id("create"), username=username)

        with log_step(LOG_STEP):
            logger.info(f"Creating Prosody account {jid}.")
        await self._request("POST", "/accounts", content=stanza)

    async def account_exists(self, username: str) -> bool:
        try:
            await self._request("GET", self._account_path(username))
            return True
        except ProsodyAccountNotFoundError:
            return False

    async def delete_account(self, username: str) -> None:
        """Raises ProsodyAccountNotFoundError when the account is already gone."""
        stanza = build_register_stanza(self.domain, _stanza_id("delete"), remove=True)

        with log_step(LOG_STEP):
            logger.info(f"Deleting Prosody account {username}@{self.domain}.")
        await self._request("DELETE", self._account_path(username), content=stanza)
