"""
===============================================================================
NOTIFICATION FEED STORE (admin)
===============================================================================

Business Goal:
    Mantener el feed de alertas del administrador (lista acotada + contador
    de no leídas) con updates optimistas reconciliados contra el servidor.

Why (Context / Intención):
    - Solo tiene sentido con una sesión ADMIN: el store se activa y desactiva
      siguiendo el canal de la sesión, no la vida de una vista.
    - Las mutaciones (mark read, delete, ...) se aplican primero en local; si
      la llamada remota falla se reporta el error SIN rollback. El camino de
      recuperación explícito es refresh_list().
    - El contador es eventualmente consistente con el servidor tras una
      mutación fallida.

-------------------------------------------------------------------------------
CRC CARD (Class-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Class:
    NotificationFeedStore

Responsibilities:
    - refresh_list / refresh_unread_count (servidor = fuente de verdad).
    - mark_read / mark_all_read / delete / delete_all optimistas.
    - delete(id) re-deriva el decremento según si la entrada estaba no leída.
    - Arrancar / detener el UnreadCountPoller al entrar / salir de ADMIN.

Collaborators:
    - NotificationGateway (NotificationsApi)
    - SessionManager (subscribe)
    - UnreadCountPoller (asyncio.Task cancelable)
    - crosscutting.metrics: storefront_notification_mutation_failures_total

Class:
    UnreadCountPoller

Responsibilities:
    - Un único asyncio.Task por sesión admin (start idempotente).
    - Contador de generación: un tick que despierta después de stop() es no-op.
===============================================================================
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from ..crosscutting.exceptions import StorefrontError
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_notification_mutation_failure
from ..context import set_operation_context
from ..domain.entities import Notification, SessionSnapshot, SessionStatus
from ..domain.ports import NotificationGateway
from ..domain.results import (
    SUCCESS,
    ErrorCode,
    MutationResult,
    OperationError,
    error_from_exception,
)
from ..domain.roles import Role
from .listeners import Listeners, Unsubscribe
from .session import SessionManager

FeedListener = Callable[["NotificationFeedStore"], None]


def _as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0, int(value))


class UnreadCountPoller:
    """Tarea periódica cancelable. `tick` no debe lanzar (devuelve un resultado)."""

    def __init__(
        self, tick: Callable[[], Awaitable[MutationResult]], interval: float
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._tick = tick
        self._interval = interval
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation)
        )

    def stop(self) -> None:
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self._interval)
            if generation != self._generation:
                return
            result = await self._tick()
            if not result.ok:
                logger.warning(
                    "Unread count poll failed",
                    extra={"error_code": result.error.code.value},
                )


class NotificationFeedStore:
    def __init__(
        self,
        gateway: NotificationGateway,
        *,
        limit: int = 50,
        poll_interval: float = 30.0,
    ) -> None:
        self._gateway = gateway
        self._limit = limit
        self._notifications: List[Notification] = []
        self._unread_count = 0
        self._active = False
        self._epoch = 0
        self._listeners: Listeners[NotificationFeedStore] = Listeners("notifications")
        self._poller = UnreadCountPoller(self.refresh_unread_count, poll_interval)
        self._initial_refresh: asyncio.Task[MutationResult] | None = None
        self._unsubscribe_session: Unsubscribe | None = None

    # ------------------------------------------------------------------
    # Ciclo de vida (sesión admin)
    # ------------------------------------------------------------------
    def bind(self, session: SessionManager) -> None:
        """Sigue el canal de la sesión y aplica el estado actual."""
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
        self._unsubscribe_session = session.subscribe(self.on_session_change)
        self.on_session_change(session.snapshot)

    def on_session_change(self, snapshot: SessionSnapshot) -> None:
        is_admin = (
            snapshot.status == SessionStatus.AUTHENTICATED
            and snapshot.role == Role.ADMIN
        )
        if is_admin and not self._active:
            self._activate()
        elif not is_admin and self._active:
            self._deactivate()

    def _activate(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Admin session without a running event loop, feed idle")
            return
        self._active = True
        self._epoch += 1
        self._initial_refresh = loop.create_task(self.refresh_list())
        self._poller.start()
        logger.info("Notification feed activated")

    def _deactivate(self) -> None:
        self._active = False
        self._epoch += 1
        self._poller.stop()
        if self._initial_refresh is not None and not self._initial_refresh.done():
            self._initial_refresh.cancel()
        self._initial_refresh = None
        self._notifications = []
        self._unread_count = 0
        self._notify()
        logger.info("Notification feed deactivated")

    async def aclose(self) -> None:
        if self._unsubscribe_session is not None:
            self._unsubscribe_session()
            self._unsubscribe_session = None
        pending = self._initial_refresh
        self._active = False
        self._epoch += 1
        await self._poller.aclose()
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass

    @property
    def active(self) -> bool:
        return self._active

    @property
    def poller(self) -> UnreadCountPoller:
        return self._poller

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------
    @property
    def unread_count(self) -> int:
        return self._unread_count

    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    def by_category(self, prefix: str) -> List[Notification]:
        """Filtra por prefijo de tipo (ej: "ORDER" => ORDER_CREATED, ORDER_UPDATED)."""
        wanted = (prefix or "").strip().upper()
        return [
            n
            for n in self._notifications
            if (n.raw_type or n.type.value).upper().startswith(wanted)
        ]

    def subscribe(self, listener: FeedListener) -> Unsubscribe:
        return self._listeners.add(listener)

    def _notify(self) -> None:
        self._listeners.notify(self)

    def _denied(self) -> MutationResult:
        return MutationResult(
            error=OperationError(
                ErrorCode.UNAUTHORIZED, "Notifications require an admin session"
            )
        )

    # ------------------------------------------------------------------
    # Refresh (servidor = fuente de verdad)
    # ------------------------------------------------------------------
    async def refresh_list(self, limit: int | None = None) -> MutationResult:
        if not self._active:
            return self._denied()
        set_operation_context(operation="notifications.refresh_list")
        epoch = self._epoch
        try:
            body = await self._gateway.list(limit or self._limit)
        except StorefrontError as exc:
            logger.warning(
                "Could not refresh notifications",
                extra={"error_type": type(exc).__name__},
            )
            return MutationResult(
                error=error_from_exception(exc, "Could not load notifications")
            )

        raw_items = body.get("notifications")
        if not isinstance(raw_items, list):
            return MutationResult(
                error=OperationError(
                    ErrorCode.UNEXPECTED, "Could not load notifications"
                )
            )
        items: List[Notification] = []
        for raw in raw_items:
            try:
                items.append(Notification.from_payload(raw))
            except ValueError as exc:
                logger.warning(
                    "Skipping malformed notification", extra={"error": str(exc)}
                )

        if epoch != self._epoch:
            return SUCCESS

        count = _as_count(body.get("unreadCount"))
        self._notifications = items
        self._unread_count = (
            count if count is not None else sum(1 for n in items if not n.read)
        )
        self._notify()
        return SUCCESS

    async def refresh_unread_count(self) -> MutationResult:
        if not self._active:
            return self._denied()
        epoch = self._epoch
        try:
            body = await self._gateway.unread_count()
        except StorefrontError as exc:
            return MutationResult(
                error=error_from_exception(exc, "Could not load unread count")
            )

        count = _as_count(body.get("count", body.get("unreadCount")))
        if count is None:
            return MutationResult(
                error=OperationError(ErrorCode.UNEXPECTED, "Could not load unread count")
            )
        if epoch != self._epoch:
            return SUCCESS
        if count != self._unread_count:
            self._unread_count = count
            self._notify()
        return SUCCESS

    # ------------------------------------------------------------------
    # Mutaciones optimistas
    # ------------------------------------------------------------------
    async def _remote(
        self, operation: str, call: Callable[[], Awaitable[Mapping[str, Any]]]
    ) -> MutationResult:
        set_operation_context(operation=f"notifications.{operation}")
        try:
            await call()
        except StorefrontError as exc:
            record_notification_mutation_failure(operation)
            logger.warning(
                "Notification mutation failed, local change kept",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            return MutationResult(
                error=error_from_exception(exc, "Could not update notifications")
            )
        return SUCCESS

    def _index_of(self, notification_id: str) -> int:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                return index
        return -1

    async def mark_read(self, notification_id: str) -> MutationResult:
        if not self._active:
            return self._denied()
        notification_id = str(notification_id)
        index = self._index_of(notification_id)
        if index >= 0:
            current = self._notifications[index]
            if current.read:
                return SUCCESS
            items = list(self._notifications)
            items[index] = current.mark_read()
            self._notifications = items
            self._unread_count = max(0, self._unread_count - 1)
            self._notify()
        return await self._remote(
            "mark_read", lambda: self._gateway.mark_read(notification_id)
        )

    async def mark_all_read(self) -> MutationResult:
        if not self._active:
            return self._denied()
        self._notifications = [
            n if n.read else n.mark_read() for n in self._notifications
        ]
        self._unread_count = 0
        self._notify()
        return await self._remote("mark_all_read", self._gateway.mark_all_read)

    async def delete(self, notification_id: str) -> MutationResult:
        if not self._active:
            return self._denied()
        notification_id = str(notification_id)
        index = self._index_of(notification_id)
        if index >= 0:
            items = list(self._notifications)
            removed = items.pop(index)
            self._notifications = items
            if not removed.read:
                self._unread_count = max(0, self._unread_count - 1)
            self._notify()
        return await self._remote(
            "delete", lambda: self._gateway.delete(notification_id)
        )

    async def delete_all(self) -> MutationResult:
        if not self._active:
            return self._denied()
        self._notifications = []
        self._unread_count = 0
        self._notify()
        return await self._remote("delete_all", self._gateway.delete_all)
