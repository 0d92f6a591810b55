"""
===============================================================================
SESSION MANAGER
===============================================================================

Name:
    SessionManager

Business Goal:
    Ser la única fuente de verdad de "quién está logueado":
      - bootstrap (resume-on-load) a partir del token persistido
      - login / register / google login / logout
      - actualización de perfil e imagen de perfil
      - expiración forzada ante un 401 del servidor

Why (Context / Intención):
    - El estado de sesión es un objeto explícito inyectado (no global), con
      un canal de actualización (subscribe) que consumen guard, header y el
      feed de notificaciones.
    - Ninguna excepción cruza hacia la UI: cada operación falible devuelve
      un SessionResult.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    SessionManager

Responsibilities:
    - Publicar SessionSnapshot (RESOLVING -> AUTHENTICATED | ANONYMOUS).
    - Mantener la invariante AUTHENTICATED <=> token + user.
    - Escribir token + user al durable store ANTES de adjuntar la credencial
      y publicar el nuevo estado.
    - Ejecutar un único bootstrap por proceso (llamadas repetidas esperan el
      mismo resultado).

Collaborators:
    - AuthGateway (AuthApi): /auth/*
    - CredentialHolder (ApiClient): attach / detach del bearer token
    - KeyValueStore: claves token / user
    - Navigator: redirect a sign-in en logout / expire
    - crosscutting.metrics: storefront_session_bootstrap_total
===============================================================================
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional

from ..crosscutting.exceptions import StorageError, StorefrontError
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_session_bootstrap
from ..context import set_operation_context
from ..domain.entities import SessionSnapshot, SessionStatus, User
from ..domain.ports import (
    TOKEN_KEY,
    USER_KEY,
    AuthGateway,
    CredentialHolder,
    KeyValueStore,
    Navigator,
)
from ..domain.results import (
    ErrorCode,
    OperationError,
    SessionResult,
    error_from_exception,
)
from ..domain.roles import Role
from ..infrastructure.storage.records import write_json
from .listeners import Listeners, Unsubscribe

SessionListener = Callable[[SessionSnapshot], None]

RESOLVING = SessionSnapshot(SessionStatus.RESOLVING)
ANONYMOUS = SessionSnapshot(SessionStatus.ANONYMOUS)


def _parse_auth_body(body: Mapping[str, Any]) -> tuple[str, User]:
    """R: Extrae (token, user) de una respuesta de login/register."""
    token = body.get("token")
    if not isinstance(token, str) or not token.strip():
        raise ValueError("auth response without token")
    return token.strip(), User.from_payload(body.get("user"))


def _parse_user_body(body: Mapping[str, Any]) -> User:
    user = body.get("user")
    return User.from_payload(user if user is not None else body)


def _unauthorized(message: str) -> SessionResult:
    return SessionResult(error=OperationError(ErrorCode.UNAUTHORIZED, message))


class SessionManager:
    def __init__(
        self,
        *,
        auth: AuthGateway,
        credentials: CredentialHolder,
        store: KeyValueStore,
        navigator: Navigator | None = None,
        login_path: str = "/login",
    ) -> None:
        self._auth = auth
        self._credentials = credentials
        self._store = store
        self._navigator = navigator
        self._login_path = login_path

        self._snapshot: SessionSnapshot = RESOLVING
        self._generation = 0
        self._listeners: Listeners[SessionSnapshot] = Listeners("session")
        self._bootstrap_task: asyncio.Task[SessionSnapshot] | None = None

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def status(self) -> SessionStatus:
        return self._snapshot.status

    @property
    def current_user(self) -> Optional[User]:
        return self._snapshot.user

    @property
    def role(self) -> Role:
        return self._snapshot.role

    @property
    def is_authenticated(self) -> bool:
        return self._snapshot.status == SessionStatus.AUTHENTICATED

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """Registra un listener; devuelve la función para desuscribirlo."""
        return self._listeners.add(listener)

    # ------------------------------------------------------------------
    # Publicación / persistencia
    # ------------------------------------------------------------------
    def _publish(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot
        self._generation += 1
        self._listeners.notify(snapshot)

    def _persist(self, token: str, user: User) -> None:
        """Token + user al durable store. Falla parcial => se limpia todo."""
        try:
            self._store.set(TOKEN_KEY, token)
            write_json(self._store, USER_KEY, user.to_payload())
        except StorageError:
            self._discard_persisted()
            raise

    def _discard_persisted(self) -> None:
        for key in (TOKEN_KEY, USER_KEY):
            try:
                self._store.delete(key)
            except StorageError as exc:
                logger.warning(
                    "Could not erase persisted session key",
                    extra={"key": key, "error": str(exc)},
                )

    def _end_session(self) -> None:
        self._discard_persisted()
        self._credentials.detach_credential()
        self._publish(ANONYMOUS)

    def _redirect_to_login(self) -> None:
        if self._navigator is not None:
            self._navigator.replace(self._login_path)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------
    async def bootstrap(self) -> SessionSnapshot:
        """Resume-on-load. Solo la primera llamada ejecuta; el resto espera."""
        if self._bootstrap_task is None:
            self._bootstrap_task = asyncio.get_running_loop().create_task(
                self._run_bootstrap()
            )
        return await asyncio.shield(self._bootstrap_task)

    async def _run_bootstrap(self) -> SessionSnapshot:
        set_operation_context(operation="session.bootstrap")
        token = (self._store.get(TOKEN_KEY) or "").strip()
        if not token:
            self._discard_persisted()
            self._publish(ANONYMOUS)
            record_session_bootstrap("anonymous")
            return self._snapshot

        generation = self._generation
        self._credentials.attach_credential(token)
        try:
            user = _parse_user_body(await self._auth.me())
        except (StorefrontError, ValueError) as exc:
            logger.info(
                "Persisted session could not be resumed",
                extra={"error_type": type(exc).__name__},
            )
            record_session_bootstrap("rejected")
            if generation == self._generation:
                self._end_session()
            return self._snapshot

        if generation != self._generation:
            # R: login/logout durante el bootstrap => gana el estado más nuevo.
            record_session_bootstrap("superseded")
            return self._snapshot

        try:
            write_json(self._store, USER_KEY, user.to_payload())
        except StorageError as exc:
            logger.warning(
                "Could not persist refreshed user snapshot",
                extra={"error": str(exc)},
            )
        self._publish(SessionSnapshot(SessionStatus.AUTHENTICATED, token, user))
        record_session_bootstrap("authenticated")
        logger.info("Session resumed", extra={"role": user.role.value})
        return self._snapshot

    # ------------------------------------------------------------------
    # Login / register / google
    # ------------------------------------------------------------------
    async def _authenticate(
        self,
        operation: str,
        call: Callable[[], Awaitable[Mapping[str, Any]]],
        default_message: str,
    ) -> SessionResult:
        set_operation_context(operation=operation)
        try:
            token, user = _parse_auth_body(await call())
        except StorefrontError as exc:
            logger.info(
                "Authentication rejected",
                extra={"error_type": type(exc).__name__},
            )
            return SessionResult(
                error=error_from_exception(exc, default_message, credentials=True)
            )
        except ValueError:
            logger.warning("Malformed authentication response")
            return SessionResult(
                error=OperationError(ErrorCode.UNEXPECTED, default_message)
            )

        try:
            self._persist(token, user)
        except StorageError as exc:
            return SessionResult(error=error_from_exception(exc, default_message))

        self._credentials.attach_credential(token)
        self._publish(SessionSnapshot(SessionStatus.AUTHENTICATED, token, user))
        logger.info("Session established", extra={"role": user.role.value})
        return SessionResult(user=user)

    async def login(self, credentials: Mapping[str, Any]) -> SessionResult:
        return await self._authenticate(
            "session.login", lambda: self._auth.login(credentials), "Login failed"
        )

    async def register(self, user_data: Mapping[str, Any]) -> SessionResult:
        """Registro = login: en éxito la sesión queda autenticada."""
        return await self._authenticate(
            "session.register",
            lambda: self._auth.register(user_data),
            "Registration failed",
        )

    async def login_with_google(self, token_id: str) -> SessionResult:
        if not token_id or not token_id.strip():
            return SessionResult(
                error=OperationError(ErrorCode.VALIDATION_ERROR, "Google login failed")
            )
        return await self._authenticate(
            "session.google_login",
            lambda: self._auth.google_login(token_id.strip()),
            "Google login failed",
        )

    # ------------------------------------------------------------------
    # Logout / expire
    # ------------------------------------------------------------------
    def logout(self) -> None:
        """Limpia la sesión y redirige a sign-in. Sin camino de falla."""
        set_operation_context(operation="session.logout")
        self._end_session()
        self._redirect_to_login()
        logger.info("Session closed")

    def expire(self) -> Optional[str]:
        """Política 401: igual que logout si había sesión; devuelve el destino.

        Durante el bootstrap (RESOLVING) no hace nada: el bootstrap degrada
        a ANONYMOUS por su cuenta, sin redirect.
        """
        if not self.is_authenticated:
            return None
        set_operation_context(operation="session.expire")
        self._end_session()
        self._redirect_to_login()
        logger.info("Session expired by the API")
        return self._login_path

    # ------------------------------------------------------------------
    # Perfil
    # ------------------------------------------------------------------
    async def _replace_user(
        self,
        operation: str,
        call: Callable[[], Awaitable[Mapping[str, Any]]],
        default_message: str,
    ) -> SessionResult:
        if not self.is_authenticated:
            return _unauthorized(default_message)

        set_operation_context(operation=operation)
        token = self._snapshot.token
        try:
            user = _parse_user_body(await call())
        except StorefrontError as exc:
            return SessionResult(error=error_from_exception(exc, default_message))
        except ValueError:
            return SessionResult(
                error=OperationError(ErrorCode.UNEXPECTED, default_message)
            )

        if not self.is_authenticated or self._snapshot.token != token:
            return _unauthorized(default_message)

        try:
            write_json(self._store, USER_KEY, user.to_payload())
        except StorageError as exc:
            return SessionResult(error=error_from_exception(exc, default_message))

        self._publish(SessionSnapshot(SessionStatus.AUTHENTICATED, token, user))
        return SessionResult(user=user)

    async def update_profile(self, profile_data: Mapping[str, Any]) -> SessionResult:
        return await self._replace_user(
            "session.update_profile",
            lambda: self._auth.update_profile(profile_data),
            "Update failed",
        )

    async def update_profile_image(
        self, filename: str, content: bytes, content_type: str
    ) -> SessionResult:
        if self.is_authenticated and not content:
            return SessionResult(
                error=OperationError(ErrorCode.VALIDATION_ERROR, "Image upload failed")
            )
        return await self._replace_user(
            "session.update_profile_image",
            lambda: self._auth.update_profile_image(filename, content, content_type),
            "Image upload failed",
        )
