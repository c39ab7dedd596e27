"""
Unit Tests for SelectorMemory

Tests for the bounded history, learned mappings and size-guarded persistence.
"""

import json
import pytest
from unittest.mock import Mock
from onpage.core.document import SoupDocument
from onpage.core.errors import StorageError
from onpage.models.resolution import HistoryRecord
from onpage.routing.selector_memory import SelectorMemory, capture_record
from onpage.services.storage_service import KeyValueStorage


def make_record(address: str, text: str = "") -> HistoryRecord:
    return HistoryRecord(address=address, captured_text=text, tag_name="div")


class TestCaptureRecord:
    """Tests for snapshotting an element as healing evidence."""

    def test_captures_structure(self):
        doc = SoupDocument('<section id="wrap"><h2>Heading</h2><strong id="a" data-x="1">Limited offer</strong></section>')
        element = doc.query_one("#a")

        record = capture_record("#a", element, confidence=0.8)

        assert record.address == "#a"
        assert record.captured_text == "Limited offer"
        assert record.parent_address == "#wrap"
        assert record.sibling_index == 1
        assert record.tag_name == "strong"
        assert record.attribute_snapshot == {"id": "a", "data-x": "1"}
        assert record.child_count == 0
        assert record.confidence == 0.8

    def test_text_truncated_to_100(self):
        doc = SoupDocument(f'<p id="long">{"x" * 300}</p>')
        record = capture_record("#long", doc.query_one("#long"))
        assert len(record.captured_text) == 100


class TestHistoryBounds:
    """Tests for FIFO eviction."""

    def test_capacity_keeps_latest(self, storage):
        memory = SelectorMemory(storage=storage, capacity=500)
        for i in range(501):
            memory.record(f"#s{i}", make_record(f"#s{i}"), persist=False)

        assert len(memory) == 500
        assert "#s0" not in memory
        assert "#s1" in memory
        assert "#s500" in memory

    def test_overwrite_counts_as_fresh_insert(self, storage):
        memory = SelectorMemory(storage=storage, capacity=3)
        memory.record("#a", make_record("#a"), persist=False)
        memory.record("#b", make_record("#b"), persist=False)
        memory.record("#c", make_record("#c"), persist=False)

        # Overwriting #a moves it to the back; #b is now the oldest
        memory.record("#a", make_record("#a", "new"), persist=False)
        memory.record("#d", make_record("#d"), persist=False)

        assert memory.addresses() == ["#c", "#a", "#d"]
        assert memory.get_record("#a").captured_text == "new"


class TestPersistence:
    """Tests for snapshot save/load."""

    def test_round_trip_through_storage(self, storage):
        memory = SelectorMemory(storage=storage)
        memory.record("#price", make_record("#price", "$10"))
        memory.learn("#price", "#price-new", 0.7)

        restored = SelectorMemory(storage=storage)

        assert restored.get_record("#price").captured_text == "$10"
        assert restored.get_mapping("#price").new_address == "#price-new"
        assert restored.get_mapping("#price").confidence == 0.7

    def test_oversized_snapshot_not_written(self, storage):
        memory = SelectorMemory(storage=storage, max_bytes=200)
        memory.record("#a", make_record("#a", "x" * 100))

        assert memory.persist() is False
        assert storage.get(memory.storage_key) is None
        assert "#a" in memory

    def test_size_ceiling_counts_encoded_bytes(self, storage):
        memory = SelectorMemory(storage=storage)
        memory.record("#name", make_record("#name", "الاسم" * 20), persist=False)
        characters = len(json.dumps(memory.snapshot(), ensure_ascii=False))

        # Under the ceiling in characters, over it once encoded
        memory.max_bytes = characters + 10

        assert memory.persist() is False
        assert storage.get(memory.storage_key) is None
        assert memory.statistics().memory_size > memory.max_bytes

    def test_storage_failure_is_swallowed(self):
        failing = Mock(spec=KeyValueStorage)
        failing.get.return_value = None
        failing.set.side_effect = StorageError("disk full")

        memory = SelectorMemory(storage=failing)
        memory.record("#a", make_record("#a"))

        assert "#a" in memory
        assert memory.persist() is False

    def test_load_failure_leaves_memory_empty(self):
        failing = Mock(spec=KeyValueStorage)
        failing.get.side_effect = StorageError("corrupt")

        memory = SelectorMemory(storage=failing)

        assert len(memory) == 0

    def test_malformed_entries_skipped(self, storage):
        storage.set("resilience_learning_memory", {
            "history": [["#ok", {"address": "#ok"}], ["broken"], ["#bad", {"confidence": 5}]],
            "mappings": {"#old": {"new_address": "#new"}, "#bad": {"confidence": "x"}},
        })

        memory = SelectorMemory(storage=storage, storage_key="resilience_learning_memory")

        assert memory.addresses() == ["#ok"]
        assert memory.get_mapping("#old").new_address == "#new"
        assert memory.get_mapping("#bad") is None

    def test_clear_removes_storage_key(self, storage):
        memory = SelectorMemory(storage=storage)
        memory.record("#a", make_record("#a"))
        memory.clear()

        assert len(memory) == 0
        assert storage.get(memory.storage_key) is None

    def test_statistics(self, storage):
        memory = SelectorMemory(storage=storage)
        memory.record("#a", make_record("#a"))
        memory.learn("#a", "#b")

        stats = memory.statistics()
        assert stats.total_selectors == 1
        assert stats.total_mappings == 1
        assert stats.memory_size > 0
