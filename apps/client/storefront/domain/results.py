"""
===============================================================================
STORE RESULTS (Shared Result / Error Models)
===============================================================================

Business Goal:
    Proveer tipos consistentes de resultados para todas las operaciones
    falibles de los stores (sesión, colecciones, notificaciones).

Why (Context / Intención):
    - Ninguna excepción cruza la frontera de un store hacia la capa de render.
    - La UI distingue éxito/falla por resultado, con un motivo legible.
    - Facilita testear flujos por resultado (sin mocks de HTTP).

-------------------------------------------------------------------------------
CRC CARD (Module-Responsibility-Collaborator)
-------------------------------------------------------------------------------
Responsibilities:
    - ErrorCode: conjunto estable de categorías de error.
    - OperationError: contrato mínimo de error (code + message).
    - SessionResult / MutationResult: DTOs por tipo de operación.
    - error_from_exception: traduce errores de infraestructura a OperationError.

Collaborators:
    - domain.entities.User
    - crosscutting.exceptions (ApiError / UnauthorizedError / StorageError)
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..crosscutting.exceptions import ApiError, StorageError, UnauthorizedError
from .entities import User


class ErrorCode(str, Enum):
    """
    Categorías de error.

    Códigos:
      - INVALID_CREDENTIALS: login/registro rechazado por el servidor (4xx).
      - UNAUTHORIZED: sesión ausente, expirada o rol insuficiente.
      - VALIDATION_ERROR: input inválido (item sin id, cantidad < 1, ...).
      - NOT_FOUND: recurso remoto inexistente.
      - SERVICE_UNAVAILABLE: red caída, timeout, 5xx, durable store roto.
      - UNEXPECTED: respuesta con forma inesperada.
    """

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNEXPECTED = "UNEXPECTED"


@dataclass(frozen=True)
class OperationError:
    code: ErrorCode
    message: str


@dataclass(frozen=True)
class SessionResult:
    """
    Resultado de login / register / google login / update de perfil.

    Contrato:
      - Éxito: user != None y error == None
      - Falla: error != None (estado de sesión sin cambios)
    """

    user: User | None = None
    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class MutationResult:
    """Resultado de una mutación sin payload (notificaciones, colecciones)."""

    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


SUCCESS = MutationResult()


def error_from_exception(
    exc: Exception, default_message: str, *, credentials: bool = False
) -> OperationError:
    """Traduce una excepción de infraestructura a un OperationError.

    - El mensaje del servidor tiene prioridad; si no hay, default_message.
    - credentials=True: 4xx del servidor se reportan como INVALID_CREDENTIALS.
    """
    if isinstance(exc, ApiError):
        message = exc.server_message or default_message
        status = exc.status_code
        if status is None or status >= 500 or status in (408, 429):
            return OperationError(ErrorCode.SERVICE_UNAVAILABLE, message)
        if credentials:
            return OperationError(ErrorCode.INVALID_CREDENTIALS, message)
        if isinstance(exc, UnauthorizedError) or status == 403:
            return OperationError(ErrorCode.UNAUTHORIZED, message)
        if status == 404:
            return OperationError(ErrorCode.NOT_FOUND, message)
        return OperationError(ErrorCode.VALIDATION_ERROR, message)
    if isinstance(exc, StorageError):
        return OperationError(ErrorCode.SERVICE_UNAVAILABLE, default_message)
    return OperationError(ErrorCode.UNEXPECTED, default_message)
