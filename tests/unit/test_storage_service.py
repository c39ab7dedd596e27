"""
Unit Tests for Storage Services

Tests for the in-memory and JSON-file key-value stores.
"""

import pytest
from onpage.core.config import settings
from onpage.core.errors import StorageError
from onpage.services.storage_service import JsonFileStorage


class TestInMemoryStorage:

    def test_round_trip(self, storage):
        storage.set("memory", {"history": [{"address": "#a"}], "mappings": {}})

        assert storage.get("memory") == {"history": [{"address": "#a"}], "mappings": {}}
        assert "memory" in storage

    def test_returns_copies(self, storage):
        storage.set("k", {"a": [1]})
        storage.get("k")["a"].append(2)
        assert storage.get("k") == {"a": [1]}

    def test_missing_key(self, storage):
        assert storage.get("nope") is None

    def test_unserializable_value(self, storage):
        with pytest.raises(StorageError):
            storage.set("bad", {"value": object()})

    def test_remove(self, storage):
        storage.set("k", 1)
        storage.remove("k")
        storage.remove("k")
        assert storage.get("k") is None


class TestJsonFileStorage:

    @pytest.fixture
    def file_storage(self, tmp_path):
        return JsonFileStorage(tmp_path / "cache")

    def test_creates_directory(self, file_storage, tmp_path):
        assert (tmp_path / "cache").is_dir()

    def test_round_trip(self, file_storage):
        file_storage.set("resilience_learning_memory", {"mappings": {"#a": {"new_address": "#b"}}})
        assert file_storage.get("resilience_learning_memory") == {"mappings": {"#a": {"new_address": "#b"}}}

    def test_key_sanitized(self, file_storage, tmp_path):
        file_storage.set("a/b:c", [1, 2])

        assert (tmp_path / "cache" / "a_b_c.json").exists()
        assert file_storage.get("a/b:c") == [1, 2]

    def test_corrupt_file(self, file_storage, tmp_path):
        (tmp_path / "cache" / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            file_storage.get("broken")

    def test_unserializable_value(self, file_storage):
        with pytest.raises(StorageError):
            file_storage.set("bad", {"value": object()})

    def test_remove(self, file_storage, tmp_path):
        file_storage.set("k", "v")
        file_storage.remove("k")
        file_storage.remove("k")

        assert file_storage.get("k") is None
        assert not (tmp_path / "cache" / "k.json").exists()

    def test_unicode_preserved(self, file_storage):
        file_storage.set("text", {"label": "الاسم"})
        assert file_storage.get("text") == {"label": "الاسم"}

    def test_default_directory_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "storage_dir", str(tmp_path / "default"))
        assert JsonFileStorage().cache_dir == tmp_path / "default"
