"""
===============================================================================
CRC CARD — infrastructure/storage/records.py
===============================================================================

Componente:
  Helpers de registros serializados sobre un KeyValueStore

Responsabilidades:
  - Leer valores JSON tolerando ausencia o corrupción (=> default + warning).
  - Escribir valores JSON (escritura durable, síncrona).
  - Garantizar un identificador estable por instalación (session_id).

Colaboradores:
  - domain.ports.KeyValueStore
  - crosscutting.logger / metrics
===============================================================================
"""

from __future__ import annotations

import json
from typing import Any, TypeVar
from uuid import uuid4

from ...crosscutting.logger import logger
from ...crosscutting.metrics import record_storage_corrupt_record
from ...domain.ports import INSTALLATION_ID_KEY, KeyValueStore

T = TypeVar("T")


def read_json(store: KeyValueStore, key: str, default: T) -> Any | T:
    """Lee y parsea un valor JSON. Ausente/corrupto => default."""
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Registro durable corrupto, se usa el valor vacío",
            extra={"key": key, "error": str(exc)},
        )
        record_storage_corrupt_record(key)
        return default


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Serializa y escribe. Valores no JSON (Decimal, datetime) => str."""
    store.set(
        key,
        json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str),
    )


def ensure_installation_id(store: KeyValueStore) -> str:
    """Devuelve el session_id persistido, generándolo la primera vez."""
    current = (store.get(INSTALLATION_ID_KEY) or "").strip()
    if current:
        return current
    installation_id = str(uuid4())
    store.set(INSTALLATION_ID_KEY, installation_id)
    return installation_id
