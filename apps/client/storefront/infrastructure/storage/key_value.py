"""
============================================================
TARJETA CRC — infrastructure/storage/key_value.py
============================================================
Module: Durable Key-Value Store (Backends + Factory)

Responsibilities:
  - Implementar el puerto KeyValueStore para el estado del cliente
    (token, user, cart, wishlist, session_id).
  - Backends:
      - InMemoryKeyValueStore: tests / dev (no sobrevive reinicios)
      - JsonFileKeyValueStore: un documento JSON en disco (default)
      - RedisKeyValueStore: Redis con namespace (instalaciones compartidas)
  - Seleccionar backend desde Settings (build_key_value_store).

Collaborators:
  - domain.ports.KeyValueStore (contrato a implementar)
  - crosscutting.config.Settings (storage_backend / storage_path / redis_url)
  - redis-py (backend Redis)
  - crosscutting.logger / metrics (archivo corrupto => vacío + warning)

Policy / Design Notes:
  - Escritura síncrona: cuando set()/delete() retorna, el valor ya está en
    el medio durable (el caller nunca ve memoria y disco divergir).
  - Archivo corrupto o ilegible al cargar => se trata como store vacío.
  - Fallas de escritura => StorageError (el store de aplicación decide).
============================================================
"""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

import redis

from ...crosscutting.config import Settings
from ...crosscutting.exceptions import StorageError
from ...crosscutting.logger import logger
from ...crosscutting.metrics import record_storage_corrupt_record


class KeyValueBackend(ABC):
    """Contrato mínimo de un backend durable (implementa domain.ports.KeyValueStore)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


# ============================================================
# In-memory backend
# ============================================================
class InMemoryKeyValueStore(KeyValueBackend):
    """Dict protegido por Lock. Útil en tests para simular "reload"
    compartiendo la misma instancia entre dos stores."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._lock = Lock()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


# ============================================================
# JSON file backend
# ============================================================
class JsonFileKeyValueStore(KeyValueBackend):
    """
    Documento JSON {key: value} en disco.

    - Carga perezosa una sola vez; luego la copia en memoria es la fuente
      de lectura.
    - Cada escritura reemplaza el archivo atómicamente (tmp + os.replace).
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data

        data: Dict[str, str] = {}
        if self._path.exists():
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.warning(
                    "Durable store ilegible, se inicia vacío",
                    extra={"path": str(self._path), "error": str(exc)},
                )
                record_storage_corrupt_record("*")
                raw = {}
            if isinstance(raw, dict):
                data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
            else:
                logger.warning(
                    "Durable store con forma inválida, se inicia vacío",
                    extra={"path": str(self._path)},
                )
                record_storage_corrupt_record("*")
        self._data = data
        return data

    def _flush(self, data: Dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".state-", suffix=".json", dir=str(self._path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            raise StorageError(
                "No se pudo escribir el durable store", original_error=exc
            ) from exc

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = dict(self._load())
            data[key] = value
            self._flush(data)
            self._data = data

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key not in data:
                return
            data = dict(data)
            data.pop(key)
            self._flush(data)
            self._data = data


# ============================================================
# Redis backend (namespace)
# ============================================================
class RedisKeyValueStore(KeyValueBackend):
    """
    Durable store en Redis.

    - Claves namespaced (storefront:<installation>...) para no pisar otras.
    - Errores de Redis => StorageError en escritura; lectura fallida => None
      (el caller lo trata como valor ausente).
    """

    def __init__(
        self,
        *,
        redis_url: str | None = None,
        namespace: str = "storefront:",
        client: "redis.Redis | None" = None,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("redis_url is required")
            client = redis.from_url(redis_url, decode_responses=True)
        self._client = client
        self._namespace = namespace

    def _k(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(self._k(key))
        except redis.RedisError as exc:
            logger.warning(
                "Redis get falló, se trata como ausente",
                extra={"key": key, "error": str(exc)},
            )
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._k(key), value)
        except redis.RedisError as exc:
            raise StorageError("Redis set falló", original_error=exc) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._k(key))
        except redis.RedisError as exc:
            raise StorageError("Redis delete falló", original_error=exc) from exc


# ============================================================
# Factory
# ============================================================
def build_key_value_store(settings: Settings) -> KeyValueBackend:
    """Construye el backend configurado (memory | file | redis)."""
    backend = settings.storage_backend
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore(
            redis_url=settings.redis_url, namespace=settings.storage_namespace
        )
    return JsonFileKeyValueStore(settings.storage_path)
