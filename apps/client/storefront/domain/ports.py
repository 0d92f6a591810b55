"""
CRC — domain/ports.py

Name
- Domain Ports (Protocols)

Responsibilities
- Define the contracts the stores depend on: durable key-value store,
  navigation surface, and the remote auth / notification gateways.
- Keep application code independent from httpx, redis and the filesystem.

Collaborators
- infrastructure.storage: InMemory / JsonFile / Redis key-value stores
- infrastructure.http: AuthApi, NotificationsApi
- application.route_guard: InMemoryNavigator

Notes
- We use typing.Protocol for structural subtyping ("duck typing").
- Gateways return raw JSON payloads; parsing into entities happens in the
  application layer so malformed responses degrade into typed results.
"""

from typing import Any, Mapping, Optional, Protocol

# R: claves del durable store (contrato compartido con versiones previas del cliente).
TOKEN_KEY = "token"
USER_KEY = "user"
CART_KEY = "cart"
WISHLIST_KEY = "wishlist"
INSTALLATION_ID_KEY = "session_id"


class KeyValueStore(Protocol):
    """
    R: String-keyed durable persistence.

    Implementations must survive process restarts (except the in-memory one)
    and never raise on a missing key.
    """

    def get(self, key: str) -> Optional[str]:
        """R: Return the stored string or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """R: Store (or overwrite) a value."""
        ...

    def delete(self, key: str) -> None:
        """R: Remove a key; no-op if absent."""
        ...


class Navigator(Protocol):
    """R: Replace-style navigation (no back-button return to a blocked page)."""

    @property
    def location(self) -> str: ...

    @property
    def state(self) -> Mapping[str, Any]:
        """State attached to the current location (e.g. {"from": path})."""
        ...

    def replace(self, path: str, state: Optional[Mapping[str, Any]] = None) -> None:
        ...


class AuthGateway(Protocol):
    """R: Remote authentication endpoints (/auth/*)."""

    async def login(self, credentials: Mapping[str, Any]) -> dict: ...

    async def register(self, user_data: Mapping[str, Any]) -> dict: ...

    async def google_login(self, token_id: str) -> dict: ...

    async def me(self) -> dict: ...

    async def update_profile(self, profile_data: Mapping[str, Any]) -> dict: ...

    async def update_profile_image(
        self, filename: str, content: bytes, content_type: str
    ) -> dict: ...


class NotificationGateway(Protocol):
    """R: Remote admin notification endpoints (/notifications/*)."""

    async def list(self, limit: int) -> dict: ...

    async def unread_count(self) -> dict: ...

    async def mark_read(self, notification_id: str) -> dict: ...

    async def mark_all_read(self) -> dict: ...

    async def delete(self, notification_id: str) -> dict: ...

    async def delete_all(self) -> dict: ...


class CredentialHolder(Protocol):
    """R: Owner of the bearer credential attached to outbound requests."""

    def attach_credential(self, token: str) -> None: ...

    def detach_credential(self) -> None: ...
