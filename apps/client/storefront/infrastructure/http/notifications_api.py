"""NotificationsApi: admin notification endpoints (implements NotificationGateway)."""

from __future__ import annotations

from urllib.parse import quote

from .api_client import ApiClient
from .auth_api import unwrap_envelope


def _item_path(notification_id: str) -> str:
    return f"/notifications/{quote(str(notification_id), safe='')}"


class NotificationsApi:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list(self, limit: int) -> dict:
        body = await self._client.read(
            "notifications.list", "/notifications", params={"limit": limit}
        )
        return unwrap_envelope(body)

    async def unread_count(self) -> dict:
        body = await self._client.read(
            "notifications.unread_count", "/notifications/unread-count"
        )
        return unwrap_envelope(body)

    async def mark_read(self, notification_id: str) -> dict:
        body = await self._client.request(
            "PATCH", f"{_item_path(notification_id)}/read"
        )
        return unwrap_envelope(body)

    async def mark_all_read(self) -> dict:
        body = await self._client.request("PATCH", "/notifications/mark-all-read")
        return unwrap_envelope(body)

    async def delete(self, notification_id: str) -> dict:
        body = await self._client.request("DELETE", _item_path(notification_id))
        return unwrap_envelope(body)

    async def delete_all(self) -> dict:
        body = await self._client.request("DELETE", "/notifications/all")
        return unwrap_envelope(body)
