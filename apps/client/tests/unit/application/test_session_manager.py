"""
Name: Session Manager Unit Tests

Responsibilities:
  - Bootstrap outcomes (no token, valid token, invalid token, network failure)
  - Bootstrap runs exactly once per process
  - login / register / google login success and failure contracts
  - logout / expire side effects (durable store, credential, redirect)
  - Profile updates require an authenticated session

Collaborators:
  - FakeAuthGateway / FakeCredentials (defined here)
  - InMemoryKeyValueStore / InMemoryNavigator
"""

import asyncio
import json

import pytest
from storefront.application.route_guard import InMemoryNavigator
from storefront.application.session import SessionManager
from storefront.crosscutting.exceptions import ApiError, UnauthorizedError
from storefront.domain.entities import SessionStatus
from storefront.domain.results import ErrorCode
from storefront.domain.roles import Role
from storefront.infrastructure.storage import InMemoryKeyValueStore

pytestmark = pytest.mark.unit


class FakeAuthGateway:
    """Auth gateway stub: each method returns a canned body or raises."""

    def __init__(self) -> None:
        self.responses: dict = {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def _answer(self, name: str):
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        response = self.responses.get(name)
        if isinstance(response, Exception):
            raise response
        return response

    async def login(self, credentials):
        return await self._answer("login")

    async def register(self, user_data):
        return await self._answer("register")

    async def google_login(self, token_id):
        return await self._answer("google_login")

    async def me(self):
        return await self._answer("me")

    async def update_profile(self, profile_data):
        return await self._answer("update_profile")

    async def update_profile_image(self, filename, content, content_type):
        return await self._answer("update_profile_image")


class FakeCredentials:
    def __init__(self) -> None:
        self.token: str | None = None
        self.history: list[str | None] = []

    def attach_credential(self, token):
        self.token = token
        self.history.append(token)

    def detach_credential(self):
        self.token = None
        self.history.append(None)


def _manager(store=None, auth=None, navigator=None):
    auth = auth or FakeAuthGateway()
    credentials = FakeCredentials()
    navigator = navigator or InMemoryNavigator("/")
    manager = SessionManager(
        auth=auth,
        credentials=credentials,
        store=store if store is not None else InMemoryKeyValueStore(),
        navigator=navigator,
    )
    return manager, auth, credentials, navigator


class TestBootstrap:
    def test_initial_status_is_resolving(self):
        manager, *_ = _manager()

        assert manager.status is SessionStatus.RESOLVING
        assert manager.role is Role.GUEST

    @pytest.mark.asyncio
    async def test_without_token_becomes_anonymous_without_network(self):
        manager, auth, _, _ = _manager()

        snapshot = await manager.bootstrap()

        assert snapshot.status is SessionStatus.ANONYMOUS
        assert auth.calls == []

    @pytest.mark.asyncio
    async def test_valid_token_resumes_session(self, make_user_payload):
        store = InMemoryKeyValueStore({"token": "tok-1"})
        manager, auth, credentials, _ = _manager(store)
        auth.responses["me"] = {"success": True, "user": make_user_payload("Vendor")}

        snapshot = await manager.bootstrap()

        assert snapshot.status is SessionStatus.AUTHENTICATED
        assert manager.role is Role.VENDOR
        assert credentials.token == "tok-1"
        assert json.loads(store.get("user"))["role"] == "VENDOR"

    @pytest.mark.asyncio
    async def test_invalid_token_ends_anonymous_and_discards_token(self):
        store = InMemoryKeyValueStore({"token": "stale", "user": "{}"})
        manager, auth, credentials, navigator = _manager(store)
        auth.responses["me"] = UnauthorizedError("401", status_code=401)

        snapshot = await manager.bootstrap()

        assert snapshot.status is SessionStatus.ANONYMOUS
        assert store.get("token") is None
        assert store.get("user") is None
        assert credentials.token is None
        assert navigator.replace_calls == []

    @pytest.mark.asyncio
    async def test_malformed_profile_response_ends_anonymous(self):
        store = InMemoryKeyValueStore({"token": "tok-1"})
        manager, auth, _, _ = _manager(store)
        auth.responses["me"] = {"success": True, "user": {"name": "no id"}}

        assert (await manager.bootstrap()).status is SessionStatus.ANONYMOUS
        assert store.get("token") is None

    @pytest.mark.asyncio
    async def test_network_failure_ends_anonymous(self):
        store = InMemoryKeyValueStore({"token": "tok-1"})
        manager, auth, _, _ = _manager(store)
        auth.responses["me"] = ApiError("connection refused")

        assert (await manager.bootstrap()).status is SessionStatus.ANONYMOUS

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_profile_fetch(self, make_user_payload):
        store = InMemoryKeyValueStore({"token": "tok-1"})
        manager, auth, _, _ = _manager(store)
        auth.responses["me"] = {"user": make_user_payload()}
        auth.gate = asyncio.Event()

        pending = [asyncio.ensure_future(manager.bootstrap()) for _ in range(3)]
        await asyncio.sleep(0)
        assert manager.status is SessionStatus.RESOLVING
        auth.gate.set()
        results = await asyncio.gather(*pending)
        again = await manager.bootstrap()

        assert auth.calls == ["me"]
        assert {r.status for r in results} == {SessionStatus.AUTHENTICATED}
        assert again is results[0]

    @pytest.mark.asyncio
    async def test_logout_during_bootstrap_wins(self, make_user_payload):
        store = InMemoryKeyValueStore({"token": "tok-1"})
        manager, auth, _, _ = _manager(store)
        auth.responses["me"] = {"user": make_user_payload()}
        auth.gate = asyncio.Event()

        pending = asyncio.ensure_future(manager.bootstrap())
        await asyncio.sleep(0)
        manager.logout()
        auth.gate.set()
        await pending

        assert manager.status is SessionStatus.ANONYMOUS


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_persists_then_authenticates(self, make_auth_payload):
        store = InMemoryKeyValueStore()
        manager, auth, credentials, _ = _manager(store)
        auth.responses["login"] = make_auth_payload("ADMIN", token="tok-9")
        seen = []

        def listener(snapshot):
            seen.append((snapshot.status, store.get("token"), credentials.token))

        manager.subscribe(listener)

        result = await manager.login({"email": "a@b.c", "password": "x"})

        assert result.ok and result.user.role is Role.ADMIN
        assert manager.is_authenticated
        assert seen == [(SessionStatus.AUTHENTICATED, "tok-9", "tok-9")]

    @pytest.mark.asyncio
    async def test_reload_after_login_resumes(self, make_auth_payload, make_user_payload):
        store = InMemoryKeyValueStore()
        manager, auth, _, _ = _manager(store)
        auth.responses["login"] = make_auth_payload()
        await manager.login({"email": "a@b.c", "password": "x"})

        fresh, fresh_auth, _, _ = _manager(store)
        fresh_auth.responses["me"] = {"user": make_user_payload()}

        assert (await fresh.bootstrap()).status is SessionStatus.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_failure_returns_server_message_and_keeps_state(self):
        manager, auth, credentials, _ = _manager()
        await manager.bootstrap()
        auth.responses["login"] = UnauthorizedError(
            "401", status_code=401, server_message="Invalid credentials"
        )

        result = await manager.login({"email": "a@b.c", "password": "bad"})

        assert not result.ok
        assert result.error.code is ErrorCode.INVALID_CREDENTIALS
        assert result.error.message == "Invalid credentials"
        assert manager.status is SessionStatus.ANONYMOUS
        assert credentials.token is None

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_default(self):
        manager, auth, _, _ = _manager()
        auth.responses["register"] = ApiError("x", status_code=400)

        result = await manager.register({"email": "a@b.c"})

        assert result.error.message == "Registration failed"

    @pytest.mark.asyncio
    async def test_response_without_token_is_unexpected(self, make_user_payload):
        manager, auth, _, _ = _manager()
        auth.responses["login"] = {"success": True, "user": make_user_payload()}

        result = await manager.login({})

        assert result.error.code is ErrorCode.UNEXPECTED
        assert not manager.is_authenticated

    @pytest.mark.asyncio
    async def test_register_authenticates_immediately(self, make_auth_payload):
        manager, auth, _, _ = _manager()
        auth.responses["register"] = make_auth_payload("buyer")

        result = await manager.register({"email": "a@b.c", "password": "x"})

        assert result.ok
        assert manager.is_authenticated

    @pytest.mark.asyncio
    async def test_google_login(self, make_auth_payload):
        manager, auth, _, _ = _manager()
        auth.responses["google_login"] = make_auth_payload("buyer")

        assert (await manager.login_with_google("g-123")).ok
        assert (await manager.login_with_google("  ")).error.code is (
            ErrorCode.VALIDATION_ERROR
        )
        assert auth.calls == ["google_login"]


class TestLogoutAndExpire:
    @pytest.mark.asyncio
    async def test_logout_clears_everything_and_redirects(self, make_auth_payload):
        store = InMemoryKeyValueStore()
        manager, auth, credentials, navigator = _manager(store)
        auth.responses["login"] = make_auth_payload()
        await manager.login({})

        manager.logout()

        assert manager.status is SessionStatus.ANONYMOUS
        assert store.get("token") is None and store.get("user") is None
        assert credentials.token is None
        assert navigator.location == "/login"

    @pytest.mark.asyncio
    async def test_expire_only_acts_on_authenticated_session(self, make_auth_payload):
        manager, auth, _, navigator = _manager()
        assert manager.expire() is None

        auth.responses["login"] = make_auth_payload()
        await manager.login({})

        assert manager.expire() == "/login"
        assert manager.status is SessionStatus.ANONYMOUS
        assert navigator.location == "/login"
        assert manager.expire() is None


class TestProfile:
    @pytest.mark.asyncio
    async def test_requires_authenticated_session(self):
        manager, auth, _, _ = _manager()

        result = await manager.update_profile({"name": "New"})
        image = await manager.update_profile_image("a.png", b"x", "image/png")

        assert result.error.code is ErrorCode.UNAUTHORIZED
        assert image.error.code is ErrorCode.UNAUTHORIZED
        assert auth.calls == []

    @pytest.mark.asyncio
    async def test_update_replaces_and_persists_user(
        self, make_auth_payload, make_user_payload
    ):
        store = InMemoryKeyValueStore()
        manager, auth, _, _ = _manager(store)
        auth.responses["login"] = make_auth_payload()
        await manager.login({})
        auth.responses["update_profile"] = {
            "success": True,
            "user": make_user_payload(name="Ada Lovelace", role="buyer"),
        }

        result = await manager.update_profile({"name": "Ada Lovelace"})

        assert result.ok
        assert manager.current_user.name == "Ada Lovelace"
        assert json.loads(store.get("user"))["name"] == "Ada Lovelace"
        assert manager.snapshot.token == "tok-1"

    @pytest.mark.asyncio
    async def test_image_upload_failure_keeps_user(self, make_auth_payload):
        manager, auth, _, _ = _manager()
        auth.responses["login"] = make_auth_payload()
        await manager.login({})
        before = manager.current_user
        auth.responses["update_profile_image"] = ApiError("x", status_code=413)

        result = await manager.update_profile_image("a.png", b"data", "image/png")

        assert result.error.message == "Image upload failed"
        assert manager.current_user is before

    @pytest.mark.asyncio
    async def test_empty_image_is_rejected(self, make_auth_payload):
        manager, auth, _, _ = _manager()
        auth.responses["login"] = make_auth_payload()
        await manager.login({})

        result = await manager.update_profile_image("a.png", b"", "image/png")

        assert result.error.code is ErrorCode.VALIDATION_ERROR
        assert "update_profile_image" not in auth.calls
