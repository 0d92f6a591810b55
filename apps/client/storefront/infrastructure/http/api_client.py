"""
===============================================================================
TARJETA CRC — infrastructure/http/api_client.py
===============================================================================

Componente:
  ApiClient (httpx.AsyncClient + credencial bearer + política 401)

Responsabilidades:
  - Enviar requests JSON / multipart contra la API del marketplace.
  - Adjuntar `Authorization: Bearer <token>` por request desde la credencial
    en memoria (attach/detach sincronizados con login/logout).
  - Traducir respuestas no-2xx a ApiError (401 => UnauthorizedError), con el
    `message` del servidor cuando el body lo trae.
  - Invocar `on_unauthorized` UNA vez por credencial ante un 401 autenticado.
  - Reintentar lecturas idempotentes (tenacity, ver retry.py).

Colaboradores:
  - httpx (transporte; MockTransport en tests)
  - infrastructure.http.retry.create_retry_decorator
  - crosscutting.exceptions / logger

Restricciones:
  - Nunca loguear el token.
  - Las mutaciones NO se reintentan.
===============================================================================
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import httpx

from ...crosscutting.config import Settings
from ...crosscutting.exceptions import ApiError, StorefrontError, UnauthorizedError
from ...crosscutting.logger import logger
from .retry import create_retry_decorator

UnauthorizedHandler = Callable[[], Any]


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, Mapping):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class ApiClient:
    """Cliente HTTP asíncrono con credencial bearer propia."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_max_attempts: int = 3,
        retry_base_delay: float = 0.5,
        retry_max_delay: float = 8.0,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), timeout=timeout, transport=transport
        )
        self._token: str | None = None
        self._expired_token: str | None = None
        self._on_unauthorized: UnauthorizedHandler | None = None
        self._retry = create_retry_decorator(
            max_attempts=retry_max_attempts,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> "ApiClient":
        return cls(
            base_url=settings.api_base_url,
            timeout=settings.api_timeout_seconds,
            transport=transport,
            retry_max_attempts=settings.retry_max_attempts,
            retry_base_delay=settings.retry_base_delay_seconds,
            retry_max_delay=settings.retry_max_delay_seconds,
        )

    # ------------------------------------------------------------------
    # Credencial
    # ------------------------------------------------------------------
    @property
    def has_credential(self) -> bool:
        return self._token is not None

    def attach_credential(self, token: str) -> None:
        self._token = token
        self._expired_token = None

    def detach_credential(self) -> None:
        self._token = None

    def set_unauthorized_handler(self, handler: UnauthorizedHandler | None) -> None:
        self._on_unauthorized = handler

    def _handle_unauthorized(self, token: str) -> None:
        if self._expired_token == token or self._on_unauthorized is None:
            return
        self._expired_token = token
        logger.warning("Credential rejected by the API, expiring session")
        self._on_unauthorized()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        authenticated: bool = True,
    ) -> dict:
        """Envía una request y devuelve el body JSON como dict.

        Raises:
            UnauthorizedError: 401.
            ApiError: otro no-2xx (status_code) o falla de transporte (None).
            StorefrontError: 2xx con body no-JSON.
        """
        token = self._token if authenticated else None
        headers: dict[str, str] = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                params=params,
                files=files,
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.warning(
                "API request failed",
                extra={"method": method, "path": path, "error_type": type(exc).__name__},
            )
            raise ApiError(
                f"{method} {path} failed: {type(exc).__name__}", original_error=exc
            ) from exc

        if response.status_code == 401:
            if token:
                self._handle_unauthorized(token)
            raise UnauthorizedError(
                f"{method} {path} returned 401",
                status_code=401,
                server_message=_server_message(response),
            )

        if response.status_code >= 400:
            raise ApiError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                server_message=_server_message(response),
            )

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise StorefrontError(
                f"{method} {path} returned a non-JSON body", original_error=exc
            ) from exc
        if isinstance(body, dict):
            return body
        return {"data": body}

    async def read(
        self,
        operation: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
    ) -> dict:
        """GET idempotente con retry (backoff + jitter) ante errores transitorios."""

        async def _send() -> dict:
            return await self.request("GET", path, params=params)

        _send.__name__ = operation
        return await self._retry(_send)()

    async def aclose(self) -> None:
        await self._http.aclose()
