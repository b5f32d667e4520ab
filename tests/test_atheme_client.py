import json

import httpx
import pytest
from integrations.irc.atheme import (
    AthemeClient,
    AthemeError,
    AthemeFaultError,
    AthemeFaultKind,
)

JSONRPC_URL = "https://services.example.test/jsonrpc"


def _client(handler, **kwargs) -> AthemeClient:
    return AthemeClient(JSONRPC_URL, transport=httpx.MockTransport(handler), **kwargs)


# Purpose: verify REGISTER is sent as an unauthenticated NickServ command.
@pytest.mark.asyncio
async def test_register_nick_sends_command():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": "ok", "id": 1})

    await _client(handler).register_nick(" alice ", "pw", " a@example.com ")

    assert seen == [
        {
            "jsonrpc": "2.0",
            "method": "atheme.command",
            "params": [
                ".",
                "",
                "127.0.0.1",
                "NickServ",
                "REGISTER",
                "alice",
                "pw",
                "a@example.com",
            ],
            "id": 1,
        }
    ]


# Purpose: verify fault codes map onto the closed set of fault kinds.
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code,kind",
    [
        (8, AthemeFaultKind.DUPLICATE),
        (1, AthemeFaultKind.BAD_PARAMS),
        (2, AthemeFaultKind.BAD_PARAMS),
        (9, AthemeFaultKind.RATE_LIMITED),
        (3, AthemeFaultKind.OTHER),
        (4, AthemeFaultKind.NOT_FOUND),
        (10, AthemeFaultKind.OTHER),
    ],
)
async def test_fault_codes_map_to_kinds(code, kind):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "error": {"code": code, "message": "nope"}, "id": 1},
        )

    with pytest.raises(AthemeFaultError) as exc_info:
        await _client(handler).register_nick("alice", "pw", "a@example.com")

    assert exc_info.value.code == code
    assert exc_info.value.kind is kind
    assert exc_info.value.fault_message == "nope"


# Purpose: verify an HTTP error without a fault code is reported as an internal fault.
@pytest.mark.asyncio
async def test_http_error_without_code_is_internal_fault():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "boom"}})

    with pytest.raises(AthemeFaultError) as exc_info:
        await _client(handler).register_nick("alice", "pw", "a@example.com")

    assert exc_info.value.code == 16
    assert exc_info.value.kind is AthemeFaultKind.OTHER


# Purpose: verify timeouts and unreadable bodies surface as generic failures, not faults.
@pytest.mark.asyncio
async def test_timeout_and_non_json_are_generic_errors():
    def timeout_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    def html_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(AthemeError) as exc_info:
        await _client(timeout_handler).register_nick("alice", "pw", "a@example.com")
    assert not isinstance(exc_info.value, AthemeFaultError)

    with pytest.raises(AthemeError) as exc_info:
        await _client(html_handler).register_nick("alice", "pw", "a@example.com")
    assert not isinstance(exc_info.value, AthemeFaultError)


# Purpose: verify FDROP runs inside an operator session that is always logged out.
@pytest.mark.asyncio
async def test_drop_nick_uses_operator_session():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append((body["method"], body["params"]))
        if body["method"] == "atheme.login":
            return httpx.Response(200, json={"result": "cookie123", "id": 1})
        if body["method"] == "atheme.command":
            return httpx.Response(
                200, json={"error": {"code": 4, "message": "not registered"}, "id": 1}
            )
        return httpx.Response(200, json={"result": "ok", "id": 1})

    client = _client(handler, oper_account="oper", oper_password="operpw")
    assert client.can_drop_nicks

    with pytest.raises(AthemeFaultError) as exc_info:
        await client.drop_nick("alice")

    assert exc_info.value.kind is AthemeFaultKind.NOT_FOUND
    assert calls == [
        ("atheme.login", ["oper", "operpw", "127.0.0.1"]),
        (
            "atheme.command",
            ["cookie123", "oper", "127.0.0.1", "NickServ", "FDROP", "alice"],
        ),
        ("atheme.logout", ["cookie123", "oper"]),
    ]


# Purpose: verify dropping nicks is refused without operator credentials.
@pytest.mark.asyncio
async def test_drop_nick_requires_operator():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = _client(handler)

    assert not client.can_drop_nicks
    with pytest.raises(AthemeError):
        await client.drop_nick("alice")


# Purpose: verify an operator login fault is a generic error and FDROP is never sent.
@pytest.mark.asyncio
async def test_drop_nick_login_fault_is_not_a_missing_nick():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        methods.append(body["method"])
        return httpx.Response(
            200, json={"error": {"code": 3, "message": "no such account"}, "id": 1}
        )

    client = _client(handler, oper_account="oper", oper_password="operpw")

    with pytest.raises(AthemeError) as exc_info:
        await client.drop_nick("alice")

    assert not isinstance(exc_info.value, AthemeFaultError)
    assert methods == ["atheme.login"]
