"""
CRC — infrastructure/http/auth_api.py

Name
- AuthApi (implements domain.ports.AuthGateway)

Responsibilities
- Map session operations to the /auth/* endpoints.
- Unwrap lenient response envelopes ({token, user} at top level or under
  `data`) and reject `success: false` bodies.

Collaborators
- ApiClient (transport, credential, retry of idempotent reads)

Notes
- login / register / google login are sent without the bearer credential:
  a 401 there means bad credentials, not an expired session.
"""

from __future__ import annotations

from typing import Any, Mapping

from ...crosscutting.exceptions import ApiError
from .api_client import ApiClient


def unwrap_envelope(body: Mapping[str, Any]) -> dict:
    """R: Aplana `{success, data: {...}}` a un dict; `success: false` => ApiError."""
    if body.get("success") is False:
        message = body.get("message")
        raise ApiError(
            "API reported success=false",
            status_code=400,
            server_message=message if isinstance(message, str) else None,
        )
    result = {k: v for k, v in body.items() if k != "data"}
    data = body.get("data")
    if isinstance(data, Mapping):
        result.update(data)
    elif data is not None:
        result["data"] = data
    return result


class AuthApi:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def login(self, credentials: Mapping[str, Any]) -> dict:
        body = await self._client.request(
            "POST", "/auth/login", json=dict(credentials), authenticated=False
        )
        return unwrap_envelope(body)

    async def register(self, user_data: Mapping[str, Any]) -> dict:
        body = await self._client.request(
            "POST", "/auth/register", json=dict(user_data), authenticated=False
        )
        return unwrap_envelope(body)

    async def google_login(self, token_id: str) -> dict:
        body = await self._client.request(
            "POST", "/auth/google", json={"tokenId": token_id}, authenticated=False
        )
        return unwrap_envelope(body)

    async def me(self) -> dict:
        return unwrap_envelope(await self._client.read("auth.me", "/auth/me"))

    async def update_profile(self, profile_data: Mapping[str, Any]) -> dict:
        body = await self._client.request(
            "PUT", "/auth/profile", json=dict(profile_data)
        )
        return unwrap_envelope(body)

    async def update_profile_image(
        self, filename: str, content: bytes, content_type: str
    ) -> dict:
        body = await self._client.request(
            "PUT",
            "/auth/profile-image",
            files={"image": (filename, content, content_type)},
        )
        return unwrap_envelope(body)
