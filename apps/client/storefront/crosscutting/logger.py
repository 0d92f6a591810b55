# apps/client/storefront/crosscutting/logger.py
"""
===============================================================================
TARJETA CRC — crosscutting/logger.py
===============================================================================

Componente:
  Logging del cliente storefront (una línea JSON por evento)

Responsabilidades:
  - Emitir eventos como JSON compacto en stdout.
  - Adjuntar la correlación de la instalación: installation_id, operation,
    route (solo si tienen valor).
  - Nunca filtrar la credencial: tokens, passwords y headers Bearer se
    enmascaran; los payloads de usuario / carrito / wishlist / feed se
    resumen en vez de volcarse.
  - Configurarse desde Settings; con Settings inválidos arranca igual
    (INFO + JSON) y lo avisa.

Colaboradores:
  - storefront/context.py (ContextVars de correlación)
  - crosscutting/config.py (log_level / log_json)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import re
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import ValidationError

# Atributos propios de cualquier LogRecord: el resto viene de `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_BEARER = re.compile(r"(?i)\bbearer\s+[^\s\"',]+")

MASK = "[masked]"


class LogScrubber:
    """Limpia los `extra` antes de serializarlos."""

    SECRET_KEYS = frozenset(
        {
            "token",
            "tokenid",
            "token_id",
            "password",
            "new_password",
            "authorization",
            "cookie",
            "credential",
            "credentials",
        }
    )
    # Estado de la sesión / colecciones: se loguea su forma, no su contenido.
    PAYLOAD_KEYS = frozenset(
        {"user", "profile", "product", "cart", "wishlist", "entries", "notifications"}
    )

    def __init__(self, max_chars: int = 1_000) -> None:
        self._max_chars = max_chars

    def scrub(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.SECRET_KEYS:
            return MASK
        if lowered in self.PAYLOAD_KEYS:
            return self._shape(value)
        return self._clean(value)

    @staticmethod
    def _shape(value: Any) -> str:
        if isinstance(value, Mapping):
            return f"<object {len(value)} keys>"
        if isinstance(value, (list, tuple)):
            return f"<{len(value)} items>"
        return f"<{type(value).__name__}>"

    def _clean(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, (bytes, bytearray)):
            return f"<{len(value)} bytes>"
        if isinstance(value, Mapping):
            return {str(k): self.scrub(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [self._clean(v) for v in value]
        text = _BEARER.sub(f"Bearer {MASK}", str(value))
        if len(text) > self._max_chars:
            text = text[: self._max_chars] + "…"
        return text


class JsonLineFormatter(logging.Formatter):
    def __init__(self, scrubber: LogScrubber | None = None) -> None:
        super().__init__()
        self._scrubber = scrubber or LogScrubber()

    def format(self, record: logging.LogRecord) -> str:
        from ..context import get_context_dict

        event: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": _BEARER.sub(f"Bearer {MASK}", record.getMessage()),
        }
        event.update({k: v for k, v in get_context_dict().items() if v})

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                event[key] = self._scrubber.scrub(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            event["exception"] = {
                "type": exc_type.__name__,
                "detail": self._scrubber.scrub("detail", str(exc)),
                "trace": "".join(traceback.format_exception(exc_type, exc, tb)),
            }

        return json.dumps(event, ensure_ascii=False, default=str, separators=(",", ":"))


def _logging_settings() -> tuple[str, bool, str | None]:
    """(nivel, json?, error) desde Settings; Settings inválidos => defaults."""
    from .config import get_settings

    try:
        settings = get_settings()
    except ValidationError as exc:
        return "INFO", True, f"{exc.error_count()} invalid setting(s)"
    return (settings.log_level or "INFO").upper(), bool(settings.log_json), None


def setup_logger(name: str = "storefront") -> logging.Logger:
    """Logger con un único handler a stdout (idempotente en reimport)."""
    level, use_json, problem = _logging_settings()

    log = logging.getLogger(name)
    log.setLevel(getattr(logging, level, logging.INFO))
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            JsonLineFormatter()
            if use_json
            else logging.Formatter("%(levelname)s %(name)s %(message)s")
        )
        log.addHandler(handler)

    if problem:
        log.warning(
            "Settings could not be loaded, logging with defaults",
            extra={"error": problem},
        )
    return log


logger = setup_logger()
