"""
Collection Models

Template, per-session state and emitted events of the incremental
(scroll) collector.
"""

from typing import Any, Dict, List, Literal, Optional, Set
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from datetime import datetime

from onpage.models.extraction import ExtractionOptions


CollectedItem = Dict[str, Dict[str, Any]]


class CollectorStatus(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    CONVERGED = "converged"
    ABORTED = "aborted"


class StopReason(str, Enum):
    MAX_SCROLLS = "max_scroll_count"
    NO_NEW_DATA_AT_BOTTOM = "no_new_data_at_bottom"
    CANNOT_SCROLL = "cannot_scroll"
    HEIGHT_UNCHANGED = "height_and_position_unchanged"
    CONTENT_UNCHANGED = "content_unchanged"
    CANCELLED = "cancelled"
    ERROR = "error"


class FieldSelector(BaseModel):
    """A named address inside a collection template."""
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    container: bool = False

    @property
    def is_container(self) -> bool:
        return self.container or self.name == "container"


class CollectionTemplate(BaseModel):
    """
    What to collect on every iteration.

    identity_field names the field whose value identifies an item across
    iterations; without it items are keyed structurally.
    """
    fields: List[FieldSelector] = Field(..., min_length=1)
    identity_field: Optional[str] = None
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)

    @model_validator(mode="after")
    def check_identity_field(self) -> "CollectionTemplate":
        if self.identity_field and self.identity_field not in {f.name for f in self.fields}:
            raise ValueError(f"identity_field '{self.identity_field}' is not a template field")
        return self

    @property
    def container_field(self) -> Optional[FieldSelector]:
        for field in self.fields:
            if field.is_container:
                return field
        return None


class CollectionState(BaseModel):
    """Mutable state of one collection session."""
    items: List[CollectedItem] = Field(default_factory=list)
    seen_keys: Set[str] = Field(default_factory=set)
    scroll_count: int = 0
    no_new_data_streak: int = 0
    consecutive_failed_scrolls: int = 0
    last_content_fingerprint: Optional[str] = None
    fingerprint_unchanged_streak: int = 0
    status: CollectorStatus = CollectorStatus.IDLE
    stop_reason: Optional[StopReason] = None
    error: Optional[str] = None

    def add(self, key: str, item: CollectedItem) -> bool:
        """Append item unless its key was already seen."""
        if key in self.seen_keys:
            return False
        self.seen_keys.add(key)
        self.items.append(item)
        return True


class CollectionEvent(BaseModel):
    """Emitted after each iteration (delta) and once at the end (complete)."""
    type: Literal["delta", "complete"]
    items: List[CollectedItem] = Field(default_factory=list)
    total: int = 0
    status: CollectorStatus = CollectorStatus.COLLECTING
    stop_reason: Optional[StopReason] = None
    manual_stop: bool = False
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
