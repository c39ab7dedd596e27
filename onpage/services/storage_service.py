"""
Storage Service - best-effort key-value persistence

JSON blobs stored under string keys. One JSON file per key in a cache
directory, plus an in-memory variant for tests and ephemeral sessions.

Storage is a side channel: callers treat failures as non-fatal and keep
their in-memory state authoritative.

Usage:
    from onpage.services.storage_service import JsonFileStorage

    storage = JsonFileStorage("learning_cache")
    storage.set("resilience_learning_memory", {"history": [], "mappings": {}})
    data = storage.get("resilience_learning_memory")
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union
from pathlib import Path
import json
import logging
import re

from onpage.core.config import settings
from onpage.core.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """get/set of JSON-serializable blobs."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored blob or None. Raises StorageError on read failure."""

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store a blob. Raises StorageError on write failure."""

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class InMemoryStorage(KeyValueStorage):
    """Dict-backed storage; values are round-tripped through JSON."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> bool:
        try:
            self._data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' is not JSON-serializable: {e}") from e
        return True

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStorage(KeyValueStorage):
    """
    One JSON file per key in `cache_dir` (settings.storage_dir by default).
    Keys are sanitized into file names.
    """

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        self.cache_dir = Path(cache_dir or settings.storage_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[STORAGE] Initialized with cache dir: {self.cache_dir}")

    def _path_for(self, key: str) -> Path:
        safe = re.sub(r'[^A-Za-z0-9_.-]', '_', key)
        return self.cache_dir / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        file_path = self._path_for(key)
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Error loading '{key}': {e}") from e

    def set(self, key: str, value: Any) -> bool:
        file_path = self._path_for(key)
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(value, f, ensure_ascii=False)
            tmp_path.replace(file_path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Error saving '{key}': {e}") from e
        return True

    def remove(self, key: str) -> None:
        file_path = self._path_for(key)
        try:
            file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Error removing '{key}': {e}") from e
