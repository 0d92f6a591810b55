"""
===============================================================================
TARJETA CRC — storefront/context.py (Contexto por instalación / operación)
===============================================================================

Responsabilidades:
  - Mantener contexto de correlación usando ContextVars (async-safe).
  - Permitir correlacionar logs sin pasar parámetros por todo el stack.
  - Proveer helpers mínimos: set_*(), get_context_dict(), clear_context().

Colaboradores:
  - storefront.container: setea installation_id al construir la app.
  - storefront.crosscutting.logger: enriquece logs leyendo get_context_dict().
  - storefront.application.route_guard: setea la ruta en evaluación.

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Final

# Identificador estable por instalación (persistido en el durable store).
installation_id_var: ContextVar[str] = ContextVar("installation_id", default="")

# Operación en curso (login, bootstrap, refresh_list, ...).
operation_var: ContextVar[str] = ContextVar("operation", default="")

# Ruta en evaluación por el guard.
route_var: ContextVar[str] = ContextVar("route", default="")

_CTX_INSTALLATION_ID: Final[str] = "installation_id"
_CTX_OPERATION: Final[str] = "operation"
_CTX_ROUTE: Final[str] = "route"


def set_installation_context(installation_id: str) -> None:
    installation_id_var.set(installation_id or "")


def set_operation_context(*, operation: str = "", route: str = "") -> None:
    """
    Setea la operación / ruta actual.

    Regla:
      - Strings vacíos significan “no disponible”.
    """
    operation_var.set(operation or "")
    route_var.set(route or "")


def get_context_dict() -> dict[str, str]:
    """Devuelve el contexto actual como dict, omitiendo claves vacías."""
    ctx: dict[str, str] = {}

    if val := installation_id_var.get():
        ctx[_CTX_INSTALLATION_ID] = val
    if val := operation_var.get():
        ctx[_CTX_OPERATION] = val
    if val := route_var.get():
        ctx[_CTX_ROUTE] = val

    return ctx


def clear_context() -> None:
    """Limpia el contexto (tests / fin de proceso)."""
    installation_id_var.set("")
    operation_var.set("")
    route_var.set("")
