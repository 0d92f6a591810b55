"""storefront.infrastructure.http.retry

Name: Retry Helper with Exponential Backoff + Jitter

Qué es
------
Utilidad de **resiliencia** para lecturas idempotentes contra la API
del marketplace (`GET /auth/me`, `GET /notifications`, ...).
Implementa:
  - Clasificación de errores: **transient** (reintentar) vs **permanent** (fail-fast)
  - Decorator de `tenacity` para aplicar **exponential backoff + jitter**
  - Logging estructurado + métrica por reintento

CRC (Component Card)
--------------------
Component: retry helper
Responsibilities:
  - Decidir qué errores son reintentables
  - Proveer un decorator estándar (tenacity) con backoff+jitter
  - Loguear intentos y registrar storefront_api_retries_total
Collaborators:
  - tenacity (motor de retry; soporta corutinas)
  - crosscutting.config.get_settings (attempts/delays)
  - crosscutting.logger / crosscutting.metrics
Constraints:
  - Reintentar SOLO errores transitorios (408, 429, 5xx, timeouts, conexión)
  - No reintentar errores permanentes (400, 401, 403, 404)
  - Las mutaciones (POST/PATCH/PUT/DELETE) NO se reintentan
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.exceptions import ApiError
from ...crosscutting.logger import logger
from ...crosscutting.metrics import record_api_retry

T = TypeVar("T")


# ---------------------------------------------------------------------------
# HTTP code policies
# ---------------------------------------------------------------------------

TRANSIENT_HTTP_CODES: frozenset[int] = frozenset(
    {
        408,  # Request Timeout
        429,  # Too Many Requests (rate limit)
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }
)

PERMANENT_HTTP_CODES: frozenset[int] = frozenset(
    {
        400,  # Bad Request
        401,  # Unauthorized
        403,  # Forbidden
        404,  # Not Found
    }
)


def get_http_status_code(exception: BaseException) -> int | None:
    """R: Extrae un status code HTTP desde ApiError o httpx.HTTPStatusError."""
    if isinstance(exception, ApiError):
        return exception.status_code

    resp = getattr(exception, "response", None)
    if resp is not None and isinstance(getattr(resp, "status_code", None), int):
        return resp.status_code

    return None


def is_transient_error(exception: BaseException) -> bool:
    """R: Decide si un error es transitorio (reintentar) o permanente (fail-fast).

    Reglas (en orden):
      1) Con status code HTTP: permanent → False, transient → True.
      2) ApiError sin status (falla de transporte): True.
      3) Errores de transporte httpx / timeouts built-in: True.
      4) Default: fail-fast (False).
    """
    status_code = get_http_status_code(exception)
    if status_code is not None:
        if status_code in PERMANENT_HTTP_CODES:
            return False
        if status_code in TRANSIENT_HTTP_CODES:
            return True
        return status_code >= 500

    if isinstance(exception, ApiError):
        return True

    if isinstance(exception, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True

    return False


def _log_retry(retry_state: RetryCallState) -> None:
    """R: Loguea cada intento antes de dormir (before_sleep)."""
    fn = getattr(retry_state, "fn", None)
    fn_name = getattr(fn, "__name__", "unknown")
    wait_time = (
        retry_state.next_action.sleep if retry_state.next_action is not None else 0
    )

    exc: BaseException | None = None
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()

    record_api_retry(fn_name)
    logger.warning(
        "Retrying API read",
        extra={
            "function": fn_name,
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 2),
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """R: Crea un decorator `tenacity` con exponential backoff + jitter.

    Config:
      - stop: `stop_after_attempt(max_attempts)`
      - wait: `wait_exponential_jitter(initial=base_delay, max=max_delay)`
      - retry: solo si `is_transient_error(exception)`
      - before_sleep: `_log_retry`
      - reraise: True (propaga la última excepción)
    """
    settings = get_settings()

    _max_attempts = (
        settings.retry_max_attempts if max_attempts is None else max_attempts
    )
    _base_delay = (
        settings.retry_base_delay_seconds if base_delay is None else float(base_delay)
    )
    _max_delay = (
        settings.retry_max_delay_seconds if max_delay is None else float(max_delay)
    )

    if _max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if _base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if _max_delay < 0:
        raise ValueError("max_delay must be >= 0")

    return retry(
        stop=stop_after_attempt(_max_attempts),
        wait=wait_exponential_jitter(
            initial=_base_delay, max=_max_delay, jitter=_base_delay
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )


def retrying(func: Callable[..., Any], **overrides: Any) -> Callable[..., Any]:
    """R: Envuelve `func` (sync o async) con la política por defecto."""
    return create_retry_decorator(**overrides)(func)
