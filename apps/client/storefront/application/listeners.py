"""Canal de actualización compartido por los stores (subscribe -> unsubscribe)."""

from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

from ..crosscutting.logger import logger

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class Listeners(Generic[T]):
    """
    Lista ordenada de listeners síncronos.

    - notify() llama en orden de suscripción.
    - Un listener que falla se loguea y no corta a los demás.
    - unsubscribe es idempotente.
    """

    def __init__(self, channel: str) -> None:
        self._channel = channel
        self._listeners: List[Listener[T]] = []

    def add(self, listener: Listener[T]) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(
                    "Listener failed", extra={"channel": self._channel}
                )

    def __len__(self) -> int:
        return len(self._listeners)
