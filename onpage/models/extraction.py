"""
Extraction Data Models

Field records produced by the smart extractor and the organized output
that is handed to the delivery channel.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class ExtractionTarget(BaseModel):
    """One element selected for extraction: a field name and its address."""
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1, description="CSS selector")


class FieldRecord(BaseModel):
    """A single extracted value with its provenance."""
    id: str = ""
    field_name: str
    value: Optional[str] = None
    type: str = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ExtractedItem(FieldRecord):
    """FieldRecord plus list membership and resolver provenance."""
    is_list: bool = False
    list_name: Optional[str] = None
    resilience: Dict[str, Any] = Field(default_factory=dict)

    @property
    def dedup_key(self) -> str:
        return f"{self.field_name}_{self.value}"


class FieldEntry(BaseModel):
    """An entry inside a flat field or smart list of the organized output."""
    value: Optional[str] = None
    type: str = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    resilience: Optional[Dict[str, Any]] = None


class ExtractionSummary(BaseModel):
    total_single_fields: int = 0
    total_lists: int = 0
    field_counts: Dict[str, int] = Field(default_factory=dict)
    list_counts: Dict[str, int] = Field(default_factory=dict)


class OrganizedExtraction(BaseModel):
    """Final structured payload: single-valued fields and named lists."""
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    url: str = ""
    title: str = ""
    total_items: int = 0
    flat_fields: Dict[str, List[FieldEntry]] = Field(default_factory=dict)
    smart_lists: Dict[str, List[FieldEntry]] = Field(default_factory=dict)
    summary: ExtractionSummary = Field(default_factory=ExtractionSummary)

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2025-10-25T12:00:00",
                "url": "https://shop.example.com/p/1",
                "title": "Example product",
                "total_items": 2,
                "flat_fields": {"title": [{"value": "Example", "type": "text", "metadata": {}}]},
                "smart_lists": {"price": [{"value": "$10", "type": "text", "metadata": {}}]},
                "summary": {
                    "total_single_fields": 1,
                    "total_lists": 1,
                    "field_counts": {"title": 1},
                    "list_counts": {"price": 1}
                }
            }
        }


class ExtractionOptions(BaseModel):
    """What to capture per element during collection / auto extraction."""
    text: bool = True
    images: bool = False
    links: bool = False
    structured: bool = False
