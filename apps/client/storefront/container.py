"""
===============================================================================
TARJETA CRC — storefront/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer dependencias (durable store, cliente HTTP, stores, guard)
    siguiendo DIP: los stores dependen de puertos, no de httpx / redis.
  - Cablear la política 401 del ApiClient hacia SessionManager.expire().
  - Exponer un singleton con caching (lru_cache) para el código de la app.
  - Centralizar decisiones runtime basadas en Settings (config).

Colaboradores:
  - storefront.crosscutting.config.get_settings
  - storefront.domain.ports.* (puertos)
  - storefront.infrastructure.* (implementaciones)
  - storefront.application.* (stores + guard)

Orden de cableado:
  settings -> durable store -> installation id -> ApiClient
  -> AuthApi / NotificationsApi -> SessionManager -> CartStore / WishlistStore
  -> NotificationFeedStore -> RouteGuard

Notas:
  - Este archivo NO contiene lógica de negocio.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

import httpx

from .application.collections import CartStore, WishlistStore
from .application.notifications import NotificationFeedStore
from .application.route_guard import InMemoryNavigator, RouteGuard
from .application.session import SessionManager
from .context import set_installation_context
from .crosscutting.config import Settings, get_settings
from .crosscutting.logger import logger
from .domain.entities import SessionSnapshot
from .domain.ports import KeyValueStore, Navigator
from .domain.roles import LandingPaths
from .infrastructure.http import ApiClient, AuthApi, NotificationsApi
from .infrastructure.storage import build_key_value_store, ensure_installation_id


@dataclass
class Storefront:
    """Grafo de objetos del cliente. Un único dueño por proceso."""

    settings: Settings
    store: KeyValueStore
    installation_id: str
    api: ApiClient
    navigator: Navigator
    session: SessionManager
    cart: CartStore
    wishlist: WishlistStore
    notifications: NotificationFeedStore
    guard: RouteGuard

    async def start(self) -> SessionSnapshot:
        """Bootstrap de sesión (una vez) + evaluación de la ruta actual."""
        snapshot = await self.session.bootstrap()
        self.guard.check()
        return snapshot

    async def aclose(self) -> None:
        self.guard.unbind()
        await self.notifications.aclose()
        await self.api.aclose()


def landing_paths(settings: Settings) -> LandingPaths:
    return LandingPaths(
        home=settings.home_path,
        admin=settings.admin_home_path,
        vendor=settings.vendor_home_path,
    )


def build_storefront(
    settings: Settings | None = None,
    *,
    store: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    navigator: Navigator | None = None,
) -> Storefront:
    settings = settings or get_settings()
    store = store if store is not None else build_key_value_store(settings)

    installation_id = ensure_installation_id(store)
    set_installation_context(installation_id)

    api = ApiClient.from_settings(settings, transport=transport)
    navigator = navigator or InMemoryNavigator(settings.home_path)

    session = SessionManager(
        auth=AuthApi(api),
        credentials=api,
        store=store,
        navigator=navigator,
        login_path=settings.login_path,
    )
    api.set_unauthorized_handler(session.expire)

    notifications = NotificationFeedStore(
        NotificationsApi(api),
        limit=settings.notification_list_limit,
        poll_interval=settings.notification_poll_interval_seconds,
    )
    notifications.bind(session)

    guard = RouteGuard(
        session,
        navigator,
        login_path=settings.login_path,
        paths=landing_paths(settings),
    )
    guard.bind()

    logger.info(
        "Storefront client wired",
        extra={"storage_backend": settings.storage_backend},
    )
    return Storefront(
        settings=settings,
        store=store,
        installation_id=installation_id,
        api=api,
        navigator=navigator,
        session=session,
        cart=CartStore(store),
        wishlist=WishlistStore(store),
        notifications=notifications,
        guard=guard,
    )


@lru_cache(maxsize=1)
def get_storefront() -> Storefront:
    return build_storefront()
