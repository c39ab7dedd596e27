"""
Delivery Models

Result of sending a payload to the AutoGrader dashboard.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class DeliveryResult(BaseModel):
    """Tagged outcome of an outbound send."""
    success: bool
    message: str = Field(..., description="Localized, user-facing message")
    technical_message: Optional[str] = Field(default=None, description="Underlying error detail")
    error_code: Optional[str] = Field(default=None, description="INVALID_URL, HTTP_<status>, TIMEOUT, NETWORK_ERROR")
    data: Optional[Any] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "message": "فشل الإرسال: HTTP 503: Service Unavailable",
                "technical_message": "HTTP 503: Service Unavailable",
                "error_code": "HTTP_503",
                "data": None
            }
        }
