"""
Selector Memory - healing evidence and learned rewrites

Keeps a bounded history of successful resolutions (address -> element
snapshot) and a map of learned address rewrites, persisted together as one
JSON snapshot under a single storage key.

Architecture:
- History is a FIFO cache (oldest insertion evicted first, capacity 500)
- Overwriting an address counts as a fresh insertion
- Whole snapshot persisted after every write, skipped above 2 MB
- Storage failures are logged and swallowed; memory stays authoritative

Example:
    from onpage.routing.selector_memory import SelectorMemory

    memory = SelectorMemory(storage=JsonFileStorage("learning_cache"))
    memory.record("#price", capture_record("#price", element))
    memory.learn("#price", "#price-new")
"""

from typing import Dict, List, Optional
from cachetools import FIFOCache
import json
import logging

from onpage.core.config import settings
from onpage.core.document import NodeRef, generate_selector
from onpage.core.errors import StorageError
from onpage.models.resolution import HistoryRecord, LearnedMapping, MemoryStatistics
from onpage.services.storage_service import KeyValueStorage, InMemoryStorage
from onpage.utils.helpers import format_file_size

logger = logging.getLogger(__name__)


def capture_record(address: str, element: NodeRef, confidence: float = 1.0) -> HistoryRecord:
    """Snapshot an element as healing evidence for `address`."""
    parent = element.parent
    return HistoryRecord(
        address=address,
        captured_text=(element.text or "").strip()[:100],
        parent_address=generate_selector(parent) if parent is not None else "",
        sibling_index=element.sibling_index,
        tag_name=element.tag_name,
        attribute_snapshot=element.attributes,
        child_count=len(element.children),
        confidence=confidence,
    )


class SelectorMemory:
    """
    Bounded HistoryRecord cache plus LearnedMapping map.

    Loaded once at construction; every write persists the whole snapshot.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        storage_key: Optional[str] = None,
        capacity: Optional[int] = None,
        max_bytes: Optional[int] = None
    ):
        self.storage = storage if storage is not None else InMemoryStorage()
        self.storage_key = storage_key or settings.learning_memory_key
        self.capacity = capacity or settings.history_capacity
        self.max_bytes = max_bytes or settings.max_memory_bytes

        self.history: FIFOCache = FIFOCache(maxsize=self.capacity)
        self.mappings: Dict[str, LearnedMapping] = {}

        self.load()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.history)

    def __contains__(self, address: str) -> bool:
        return address in self.history

    def get_record(self, address: str) -> Optional[HistoryRecord]:
        return self.history.get(address)

    def addresses(self) -> List[str]:
        return list(self.history.keys())

    def record(self, address: str, record: HistoryRecord, persist: bool = True):
        """Insert or overwrite the record for `address`; evicts the oldest on overflow."""
        if address in self.history:
            # Re-insert so the overwrite moves to the back of the eviction order
            del self.history[address]
        self.history[address] = record
        if persist:
            self.persist()

    # ------------------------------------------------------------------
    # Learned mappings
    # ------------------------------------------------------------------

    def get_mapping(self, address: str) -> Optional[LearnedMapping]:
        return self.mappings.get(address)

    def learn(self, old_address: str, new_address: str, confidence: float = 0.9):
        self.mappings[old_address] = LearnedMapping(new_address=new_address, confidence=confidence)
        logger.info(f"[MEMORY] Learned mapping: {old_address} -> {new_address}")
        self.persist()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        """Serializable view: history in eviction order plus mappings."""
        return {
            "history": [[address, r.model_dump()] for address, r in self.history.items()],
            "mappings": {old: m.model_dump() for old, m in self.mappings.items()},
        }

    def persist(self) -> bool:
        """Write the snapshot if it fits under the size ceiling. Never raises."""
        snapshot = self.snapshot()
        size = len(json.dumps(snapshot, ensure_ascii=False).encode("utf-8"))
        if size > self.max_bytes:
            logger.warning(
                f"[MEMORY] Learning memory too large ({format_file_size(size)} > "
                f"{format_file_size(self.max_bytes)}), skipping save"
            )
            return False
        try:
            self.storage.set(self.storage_key, snapshot)
            return True
        except StorageError as e:
            logger.warning(f"[MEMORY] Failed to save learning memory: {e}")
            return False

    def load(self):
        """Restore history and mappings from storage. Corrupt data is ignored."""
        try:
            data = self.storage.get(self.storage_key)
        except StorageError as e:
            logger.warning(f"[MEMORY] Failed to load learning memory: {e}")
            return
        if not isinstance(data, dict):
            return

        restored = 0
        for entry in data.get("history") or []:
            try:
                address, raw = entry
                self.history[address] = HistoryRecord(**raw)
                restored += 1
            except (TypeError, ValueError) as e:
                logger.debug(f"[MEMORY] Skipping malformed history entry: {e}")

        for old_address, raw in (data.get("mappings") or {}).items():
            try:
                self.mappings[old_address] = LearnedMapping(**raw)
            except (TypeError, ValueError) as e:
                logger.debug(f"[MEMORY] Skipping malformed mapping for {old_address}: {e}")

        logger.info(f"[MEMORY] Loaded {restored} selectors, {len(self.mappings)} mappings")

    def clear(self):
        self.history.clear()
        self.mappings.clear()
        try:
            self.storage.remove(self.storage_key)
        except StorageError as e:
            logger.warning(f"[MEMORY] Failed to remove learning memory: {e}")

    def statistics(self) -> MemoryStatistics:
        return MemoryStatistics(
            total_selectors=len(self.history),
            total_mappings=len(self.mappings),
            memory_size=len(json.dumps(self.snapshot(), ensure_ascii=False).encode("utf-8")),
        )
