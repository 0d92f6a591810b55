"""Adapters de infraestructura: durable store del cliente."""

from .key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueBackend,
    RedisKeyValueStore,
    build_key_value_store,
)
from .records import ensure_installation_id, read_json, write_json

__all__ = [
    "KeyValueBackend",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "RedisKeyValueStore",
    "build_key_value_store",
    "ensure_installation_id",
    "read_json",
    "write_json",
]
