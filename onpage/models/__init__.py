"""
Models Package - Data models and schemas

This package contains Pydantic models for resolution, extraction,
collection and delivery.
"""

from .tool_result import ToolResult
from .resolution import (
    HealingStrategy,
    ResolvedNode,
    ResolutionFailure,
    ResolutionResult,
    HistoryRecord,
    LearnedMapping,
    MemoryStatistics,
)
from .extraction import (
    ExtractionTarget,
    FieldRecord,
    ExtractedItem,
    FieldEntry,
    ExtractionSummary,
    OrganizedExtraction,
    ExtractionOptions,
)
from .collection import (
    CollectedItem,
    CollectorStatus,
    StopReason,
    FieldSelector,
    CollectionTemplate,
    CollectionState,
    CollectionEvent,
)
from .delivery import DeliveryResult

__all__ = [
    'ToolResult',
    'HealingStrategy',
    'ResolvedNode',
    'ResolutionFailure',
    'ResolutionResult',
    'HistoryRecord',
    'LearnedMapping',
    'MemoryStatistics',
    'ExtractionTarget',
    'FieldRecord',
    'ExtractedItem',
    'FieldEntry',
    'ExtractionSummary',
    'OrganizedExtraction',
    'ExtractionOptions',
    'CollectedItem',
    'CollectorStatus',
    'StopReason',
    'FieldSelector',
    'CollectionTemplate',
    'CollectionState',
    'CollectionEvent',
    'DeliveryResult',
]
