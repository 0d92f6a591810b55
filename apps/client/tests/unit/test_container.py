"""
Name: Composition Root Tests

Responsibilities:
  - build_storefront wires every store against one durable store and one API
  - End-to-end flows through httpx.MockTransport: bootstrap, 401 expiry,
    admin notification activation, teardown
"""

import asyncio

import pytest
from storefront.application.route_guard import DecisionKind, InMemoryNavigator
from storefront.container import build_storefront
from storefront.crosscutting.metrics import get_sample_value
from storefront.domain.entities import SessionStatus
from storefront.domain.roles import Role
from storefront.infrastructure.storage import InMemoryKeyValueStore

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_wiring_shares_store_and_installation_id(settings, fake_api):
    store = InMemoryKeyValueStore()

    app = build_storefront(settings, store=store, transport=fake_api.transport)

    assert app.installation_id == store.get("session_id")
    assert app.session.status is SessionStatus.RESOLVING
    assert app.cart.add({"_id": "p-1", "price": 3}).ok
    assert store.get("cart") is not None
    await app.aclose()


@pytest.mark.asyncio
async def test_start_without_token_is_anonymous(settings, fake_api):
    before = get_sample_value(
        "storefront_session_bootstrap_total", {"outcome": "anonymous"}
    )
    app = build_storefront(
        settings, store=InMemoryKeyValueStore(), transport=fake_api.transport
    )

    snapshot = await app.start()

    assert snapshot.status is SessionStatus.ANONYMOUS
    assert fake_api.requests == []
    assert (
        get_sample_value("storefront_session_bootstrap_total", {"outcome": "anonymous"})
        == before + 1
    )
    await app.aclose()


@pytest.mark.asyncio
async def test_start_with_stale_token_discards_it(settings, fake_api):
    fake_api.on("GET", "/auth/me", (401, {"message": "jwt expired"}))
    store = InMemoryKeyValueStore({"token": "stale"})
    navigator = InMemoryNavigator("/profile")
    app = build_storefront(
        settings, store=store, transport=fake_api.transport, navigator=navigator
    )

    snapshot = await app.start()

    assert snapshot.status is SessionStatus.ANONYMOUS
    assert store.get("token") is None
    assert fake_api.calls("GET", "/auth/me")[0].headers["Authorization"] == "Bearer stale"
    assert navigator.location == "/login"
    assert navigator.state == {"from": "/profile"}
    await app.aclose()


@pytest.mark.asyncio
async def test_login_logout_track_credential(
    settings, fake_api, make_auth_payload, make_notification_payload
):
    fake_api.on("POST", "/auth/login", (200, make_auth_payload("buyer", token="tok-7")))
    fake_api.on("GET", "/notifications", (200, {"notifications": []}))
    app = build_storefront(
        settings, store=InMemoryKeyValueStore(), transport=fake_api.transport
    )
    await app.start()

    result = await app.session.login({"email": "a@b.c", "password": "pw"})
    assert result.ok
    await app.api.request("GET", "/notifications")
    app.session.logout()
    await app.api.request("GET", "/notifications")

    headers = [r.headers.get("Authorization") for r in fake_api.calls("GET", "/notifications")]
    assert headers == ["Bearer tok-7", None]
    await app.aclose()


@pytest.mark.asyncio
async def test_authenticated_401_expires_session(settings, fake_api, make_user_payload):
    fake_api.on("GET", "/auth/me", (200, {"user": make_user_payload("ADMIN")}))
    fake_api.on(
        "GET",
        "/notifications",
        (200, {"notifications": [], "unreadCount": 0}),
    )
    fake_api.on("PATCH", "/notifications/mark-all-read", (401, {}))
    store = InMemoryKeyValueStore({"token": "tok-1"})
    navigator = InMemoryNavigator("/admin/dashboard")
    app = build_storefront(
        settings, store=store, transport=fake_api.transport, navigator=navigator
    )
    await app.start()
    assert app.session.role is Role.ADMIN
    await asyncio.sleep(0.001)
    assert app.notifications.active

    result = await app.notifications.mark_all_read()

    assert not result.ok
    assert app.session.status is SessionStatus.ANONYMOUS
    assert store.get("token") is None
    assert navigator.location == "/login"
    assert not app.notifications.active
    assert not app.notifications.poller.running
    await app.aclose()


@pytest.mark.asyncio
async def test_admin_feed_polls_until_logout(
    settings, fake_api, make_user_payload, make_notification_payload
):
    fake_api.on("GET", "/auth/me", (200, {"user": make_user_payload("admin")}))
    fake_api.on(
        "GET",
        "/notifications",
        (
            200,
            {
                "success": True,
                "data": {
                    "notifications": [make_notification_payload("n-1")],
                    "unreadCount": 1,
                },
            },
        ),
    )
    fake_api.on("GET", "/notifications/unread-count", (200, {"count": 3}))
    app = build_storefront(
        settings,
        store=InMemoryKeyValueStore({"token": "tok-1"}),
        transport=fake_api.transport,
    )

    await app.start()
    await asyncio.sleep(0.05)

    assert [n.id for n in app.notifications.notifications()] == ["n-1"]
    assert app.notifications.unread_count == 3

    app.session.logout()
    polls = len(fake_api.calls("GET", "/notifications/unread-count"))
    await asyncio.sleep(0.05)

    assert len(fake_api.calls("GET", "/notifications/unread-count")) == polls
    assert app.notifications.notifications() == []
    await app.aclose()


@pytest.mark.asyncio
async def test_sign_in_returns_to_requested_page(settings, fake_api, make_auth_payload):
    fake_api.on("POST", "/auth/login", (200, make_auth_payload("BUYER", token="tok-3")))
    navigator = InMemoryNavigator("/profile")
    app = build_storefront(
        settings,
        store=InMemoryKeyValueStore(),
        transport=fake_api.transport,
        navigator=navigator,
    )

    await app.start()
    assert navigator.location == "/login"
    assert navigator.state == {"from": "/profile"}

    result = await app.session.login({"email": "ada@example.com", "password": "pw"})

    assert result.ok
    assert navigator.location == "/profile"
    assert app.guard.check().kind is DecisionKind.RENDER
    await app.aclose()
