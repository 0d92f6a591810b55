# apps/client/storefront/crosscutting/exceptions.py
"""
===============================================================================
MÓDULO: Excepciones tipadas del cliente (errores internos)
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable
- error_id para correlación con logs
- message “humana” (sin filtrar tokens)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  StorefrontError + subclases

Responsabilidades:
  - Estandarizar errores de infraestructura (HTTP, storage, config)
  - Generar error_id para rastreo

Colaboradores:
  - infrastructure/http (lanza ApiError / UnauthorizedError)
  - application/* (captura y traduce a OperationError; nunca propaga a la UI)
===============================================================================
"""

from __future__ import annotations

from uuid import uuid4


class StorefrontError(Exception):
    """Base para errores internos del cliente."""

    error_code: str = "STOREFRONT_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)


class ApiError(StorefrontError):
    """Respuesta no-2xx o falla de transporte contra la API remota.

    status_code es None cuando la request nunca obtuvo respuesta
    (timeout, conexión rechazada, DNS).
    """

    error_code: str = "API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        server_message: str | None = None,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, error_id=error_id, original_error=original_error)
        self.status_code = status_code
        self.server_message = server_message


class UnauthorizedError(ApiError):
    """401: token ausente, inválido o expirado."""

    error_code: str = "UNAUTHORIZED"


class StorageError(StorefrontError):
    """Errores del durable store (disco, Redis)."""

    error_code: str = "STORAGE_ERROR"


class ConfigurationError(StorefrontError):
    """Combinación de settings que no permite construir el cliente."""

    error_code: str = "CONFIGURATION_ERROR"
