"""
Unit Tests for Data Models

Tests for Pydantic models: ToolResult, ResolvedNode, HistoryRecord,
CollectionTemplate, CollectionState, ExtractedItem
"""

import pytest
from pydantic import ValidationError
from onpage.core.config import ConfidenceTier
from onpage.core.document import SoupDocument
from onpage.models.collection import CollectionState, CollectionTemplate, FieldSelector
from onpage.models.extraction import ExtractedItem
from onpage.models.resolution import HealingStrategy, HistoryRecord, ResolvedNode
from onpage.models.tool_result import ToolResult


class TestToolResult:
    """Tests for ToolResult model."""

    def test_success_result(self):
        """Test creating a successful ToolResult."""
        result = ToolResult(success=True, data={"items": 3}, tool_name="smart_extract")
        assert result.success is True
        assert result.error is None
        assert str(result) == "ToolResult(success=True, tool=smart_extract)"

    def test_error_result(self):
        """Test creating a failed ToolResult."""
        result = ToolResult(success=False, error="Scraping is already in progress")
        assert result.data is None
        assert "already in progress" in str(result)

    def test_success_is_required(self):
        with pytest.raises(ValidationError):
            ToolResult()


class TestResolvedNode:

    def test_healed_flag(self):
        element = SoupDocument("<p id='a'>x</p>").query_one("#a")
        direct = ResolvedNode(element=element, address="#a", requested_address="#a", confidence=1.0)
        healed = ResolvedNode(
            element=element,
            address="#a",
            requested_address="#b",
            confidence=0.6,
            strategy=HealingStrategy.BY_ID,
        )
        assert direct.healed is False
        assert healed.healed is True

    def test_confidence_bounds(self):
        element = SoupDocument("<p id='a'>x</p>").query_one("#a")
        with pytest.raises(ValidationError):
            ResolvedNode(element=element, address="#a", requested_address="#a", confidence=1.5)


class TestHistoryRecord:

    def test_captured_text_limit(self):
        with pytest.raises(ValidationError):
            HistoryRecord(address="#a", captured_text="x" * 101)

    def test_defaults(self):
        record = HistoryRecord(address="#a")
        assert record.sibling_index == -1
        assert record.confidence == 1.0
        assert record.timestamp > 0


class TestCollectionModels:

    def test_identity_field_must_exist(self):
        with pytest.raises(ValidationError):
            CollectionTemplate(fields=[FieldSelector(name="title", address="a")], identity_field="price")

    def test_container_field(self):
        template = CollectionTemplate(fields=[
            FieldSelector(name="title", address="a"),
            FieldSelector(name="row", address="li", container=True),
        ])
        assert template.container_field.name == "row"

    def test_empty_fields_rejected(self):
        with pytest.raises(ValidationError):
            CollectionTemplate(fields=[])

    def test_state_add_dedups(self):
        state = CollectionState()
        assert state.add("k", {"title": {"text": "a"}}) is True
        assert state.add("k", {"title": {"text": "b"}}) is False
        assert len(state.items) == 1


class TestMisc:

    def test_confidence_tiers(self):
        assert ConfidenceTier.HIGH.threshold == 0.9
        assert ConfidenceTier("medium").threshold == 0.7

    def test_extracted_item_dedup_key(self):
        assert ExtractedItem(field_name="price", value="$1").dedup_key == "price_$1"
