"""
Resolution Models

Outcome types of the selector resolver and the records it learns from.

Usage:
    from onpage.models.resolution import ResolvedNode, ResolutionFailure

    result = resolver.resolve("#price")
    if result.success:
        print(result.strategy, result.confidence)
"""

from typing import Dict, List, Optional, Union
from enum import Enum
from pydantic import BaseModel, Field
import time

from onpage.core.document import NodeRef


class HealingStrategy(str, Enum):
    """How a ResolvedNode was obtained."""
    DIRECT = "direct"
    HISTORICAL = "historical"
    LEARNED = "learned"
    BY_ID = "by_id"
    BY_CLASS = "by_class"
    BY_ATTRIBUTE = "by_attribute"
    BY_TEXT = "by_text"
    BY_POSITION = "by_position"
    BY_STRUCTURE = "by_structure"
    BY_SIMILARITY = "by_similarity"


class ResolvedNode(BaseModel):
    """A successful resolution. Transient; never cached by identity."""
    success: bool = True
    element: NodeRef
    elements: List[NodeRef] = Field(default_factory=list)
    address: str = Field(..., description="Address that actually matched")
    requested_address: str = Field(..., description="Address the caller asked for")
    confidence: float = Field(..., ge=0.0, le=1.0)
    strategy: HealingStrategy = HealingStrategy.DIRECT
    attempts: int = 1

    @property
    def healed(self) -> bool:
        return self.strategy != HealingStrategy.DIRECT

    class Config:
        arbitrary_types_allowed = True


class ResolutionFailure(BaseModel):
    """Address never matched, even after healing."""
    success: bool = False
    address: str
    error: str
    attempts: int = 0


ResolutionResult = Union[ResolvedNode, ResolutionFailure]


class HistoryRecord(BaseModel):
    """Snapshot of a previously successful resolution, used as healing evidence."""
    address: str
    captured_text: str = Field(default="", max_length=100)
    parent_address: str = ""
    sibling_index: int = -1
    tag_name: str = ""
    attribute_snapshot: Dict[str, str] = Field(default_factory=dict)
    child_count: Optional[int] = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    timestamp: float = Field(default_factory=time.time)


class LearnedMapping(BaseModel):
    """A rewrite from a failing address to the one that healed it."""
    new_address: str
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    timestamp: float = Field(default_factory=time.time)


class MemoryStatistics(BaseModel):
    total_selectors: int = 0
    total_mappings: int = 0
    memory_size: int = 0
