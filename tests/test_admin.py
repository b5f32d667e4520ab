import pytest
from integrations.user_deletion import cleanup_integration_accounts
from integrations.xmpp import ProsodyError


async def _seed_irc_accounts(irc):
    alice = await irc.create_account("user-alice", {"nick": "alice"})
    bob = await irc.create_account("user-bob", {"nick": "bob"})
    carol = await irc.create_account("user-carol", {"nick": "carol"})
    await irc.delete_account(carol.id)
    return alice, bob, carol


# Purpose: verify the admin IRC listing requires a privileged role.
@pytest.mark.asyncio
async def test_irc_listing_requires_admin(make_client):
    response = await make_client("user-alice").get("/api/admin/irc-accounts")

    assert response.status_code == 403
    assert response.json() == {"ok": False, "error": "Admin access required"}


# Purpose: verify the IRC listing joins owners, filters by status and paginates.
@pytest.mark.asyncio
async def test_irc_listing(make_client, irc):
    alice, bob, carol = await _seed_irc_accounts(irc)
    admin = make_client("user-admin")

    everything = (await admin.get("/api/admin/irc-accounts")).json()
    assert everything["pagination"] == {
        "total": 3,
        "limit": 50,
        "offset": 0,
        "has_more": False,
    }
    owners = {a["nick"]: a["user"]["email"] for a in everything["irc_accounts"]}
    assert owners == {
        "alice": "a@example.com",
        "bob": "Bob.Smith@example.com",
        "carol": "carol@example.com",
    }

    deleted = (await admin.get("/api/admin/irc-accounts?status=deleted")).json()
    assert [a["id"] for a in deleted["irc_accounts"]] == [carol.id]

    ignored = (await admin.get("/api/admin/irc-accounts?status=bogus")).json()
    assert ignored["pagination"]["total"] == 3

    page = (await admin.get("/api/admin/irc-accounts?limit=2&offset=0")).json()
    assert len(page["irc_accounts"]) == 2
    assert page["pagination"]["has_more"] is True

    clamped = (await admin.get("/api/admin/irc-accounts?limit=500")).json()
    assert clamped["pagination"]["limit"] == 100


# Purpose: verify user cleanup deletes accounts everywhere and reports each outcome.
@pytest.mark.asyncio
async def test_cleanup_integration_accounts(registry, irc, xmpp):
    await irc.create_account("user-alice", {"nick": "alice"})

    results = await cleanup_integration_accounts(registry, "user-alice")

    assert results == {"irc": "deleted", "xmpp": "none"}
    assert await irc.get_account("user-alice") is None


# Purpose: verify one failing integration does not stop cleanup of the others.
@pytest.mark.asyncio
async def test_cleanup_continues_after_failure(registry, irc, xmpp, prosody):
    await irc.create_account("user-alice", {"nick": "alice"})
    await xmpp.create_account("user-alice", {"username": "alice"})
    prosody.delete_error = ProsodyError("boom", 500)

    results = await cleanup_integration_accounts(registry, "user-alice")

    assert results == {"irc": "deleted", "xmpp": "failed"}
    assert await xmpp.get_account("user-alice") is not None


# Purpose: verify the admin cleanup endpoint wraps the per-integration outcomes.
@pytest.mark.asyncio
async def test_cleanup_endpoint(make_client, xmpp):
    await xmpp.create_account("user-bob", {"username": "bob"})

    response = await make_client("user-admin").delete(
        "/api/admin/users/user-bob/integrations"
    )

    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "results": {"irc": "none", "xmpp": "deleted"},
    }
