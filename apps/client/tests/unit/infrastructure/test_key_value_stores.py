"""Unit tests for durable key-value backends and JSON record helpers."""

import json
from unittest.mock import MagicMock

import pytest
import redis
from storefront.crosscutting.config import Settings
from storefront.crosscutting.exceptions import StorageError
from storefront.crosscutting.metrics import get_sample_value
from storefront.infrastructure.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    RedisKeyValueStore,
    build_key_value_store,
    ensure_installation_id,
    read_json,
    write_json,
)

pytestmark = pytest.mark.unit


class TestJsonFileKeyValueStore:
    def test_values_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "state" / "state.json"
        JsonFileKeyValueStore(path).set("token", "abc")

        reloaded = JsonFileKeyValueStore(path)

        assert reloaded.get("token") == "abc"
        assert json.loads(path.read_text(encoding="utf-8")) == {"token": "abc"}

    def test_delete_removes_key_and_missing_delete_is_noop(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "state.json")
        store.set("cart", "[]")

        store.delete("cart")
        store.delete("never-there")

        assert store.get("cart") is None
        assert JsonFileKeyValueStore(tmp_path / "state.json").get("cart") is None

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        before = get_sample_value(
            "storefront_storage_corrupt_records_total", {"key": "*"}
        )

        store = JsonFileKeyValueStore(path)

        assert store.get("token") is None
        assert (
            get_sample_value("storefront_storage_corrupt_records_total", {"key": "*"})
            == before + 1
        )
        store.set("token", "fresh")
        assert JsonFileKeyValueStore(path).get("token") == "fresh"

    def test_non_object_document_starts_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert JsonFileKeyValueStore(path).get("token") is None

    def test_write_failure_raises_storage_error_and_keeps_memory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        store = JsonFileKeyValueStore(blocker / "state.json")

        with pytest.raises(StorageError):
            store.set("token", "abc")

        assert store.get("token") is None


class TestRedisKeyValueStore:
    def test_keys_are_namespaced(self):
        client = MagicMock()
        client.get.return_value = b"value"
        store = RedisKeyValueStore(client=client, namespace="sf:")

        store.set("token", "abc")
        value = store.get("token")
        store.delete("token")

        client.set.assert_called_once_with("sf:token", "abc")
        client.get.assert_called_once_with("sf:token")
        client.delete.assert_called_once_with("sf:token")
        assert value == "value"

    def test_get_error_reads_as_missing(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")

        assert RedisKeyValueStore(client=client).get("token") is None

    def test_set_error_raises_storage_error(self):
        client = MagicMock()
        client.set.side_effect = redis.ConnectionError("down")

        with pytest.raises(StorageError):
            RedisKeyValueStore(client=client).set("token", "abc")

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            RedisKeyValueStore()


def test_factory_selects_backend(tmp_path):
    memory = build_key_value_store(Settings(storage_backend="memory"))
    file_store = build_key_value_store(
        Settings(storage_backend="file", storage_path=str(tmp_path / "s.json"))
    )

    assert isinstance(memory, InMemoryKeyValueStore)
    assert isinstance(file_store, JsonFileKeyValueStore)


class TestRecords:
    def test_read_json_missing_returns_default(self):
        assert read_json(InMemoryKeyValueStore(), "cart", []) == []

    def test_read_json_corrupt_returns_default(self):
        store = InMemoryKeyValueStore({"cart": "[{oops"})
        before = get_sample_value(
            "storefront_storage_corrupt_records_total", {"key": "cart"}
        )

        assert read_json(store, "cart", []) == []
        assert (
            get_sample_value(
                "storefront_storage_corrupt_records_total", {"key": "cart"}
            )
            == before + 1
        )

    def test_write_then_read(self):
        store = InMemoryKeyValueStore()
        write_json(store, "user", {"name": "Zoë"})

        assert read_json(store, "user", None) == {"name": "Zoë"}

    def test_installation_id_is_stable(self):
        store = InMemoryKeyValueStore()

        first = ensure_installation_id(store)
        second = ensure_installation_id(store)

        assert first == second
        assert store.get("session_id") == first
