"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (no .env, memory storage, zero retry delays)
  - Provide reusable fakes for the durable store, the API and navigation
  - Setup test data factories (users, auth payloads, notifications)

Collaborators:
  - pytest / pytest-asyncio: Test framework
  - httpx.MockTransport: fake HTTP API
  - storefront.domain: entities and ports

Notes:
  - Fixtures are auto-discovered by pytest
  - Use @pytest.fixture(scope="function") for per-test isolation
"""

import os
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("RETRY_BASE_DELAY_SECONDS", "0")
os.environ.setdefault("RETRY_MAX_DELAY_SECONDS", "0")

from storefront.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from storefront.application.route_guard import InMemoryNavigator  # noqa: E402
from storefront.context import clear_context  # noqa: E402
from storefront.crosscutting.config import Settings, get_settings  # noqa: E402
from storefront.infrastructure.storage import InMemoryKeyValueStore  # noqa: E402


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )


@pytest.fixture(autouse=True)
def _reset_caches():
    """R: Settings y contexto limpios por test."""
    get_settings.cache_clear()
    clear_context()
    yield
    get_settings.cache_clear()
    clear_context()


# ============================================================================
# Settings / Store / Navigation
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        api_base_url="http://api.test",
        storage_backend="memory",
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
        notification_poll_interval_seconds=0.01,
    )


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def navigator() -> InMemoryNavigator:
    return InMemoryNavigator("/")


# ============================================================================
# Data factories
# ============================================================================


def user_payload(role: str = "BUYER", **overrides: Any) -> dict:
    payload = {
        "_id": "u-1",
        "name": "Ada Buyer",
        "email": "ada@example.com",
        "role": role,
    }
    payload.update(overrides)
    return payload


def auth_payload(role: str = "BUYER", token: str = "tok-1") -> dict:
    return {"success": True, "token": token, "user": user_payload(role)}


def notification_payload(
    notification_id: str, *, read: bool = False, type_: str = "ORDER_CREATED"
) -> dict:
    return {
        "_id": notification_id,
        "type": type_,
        "title": f"Title {notification_id}",
        "message": "Something happened",
        "read": read,
        "createdAt": "2025-01-10T12:00:00Z",
    }


@pytest.fixture
def make_user_payload() -> Callable[..., dict]:
    return user_payload


@pytest.fixture
def make_auth_payload() -> Callable[..., dict]:
    return auth_payload


@pytest.fixture
def make_notification_payload() -> Callable[..., dict]:
    return notification_payload


# ============================================================================
# Fake HTTP API
# ============================================================================


class FakeApi:
    """
    Router mínimo sobre httpx.MockTransport.

    - routes[(METHOD, path)] = callable(request) -> httpx.Response | (status, json)
    - requests: historial de requests recibidas
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response: Any) -> None:
        self.routes[(method.upper(), path)] = response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and r.url.path == path
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        status, body = route
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()
