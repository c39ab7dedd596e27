"""
Delivery Service - AutoGrader dashboard client

Sends organized extractions to the AutoGrader dashboard over HTTP.
Every public send returns a DeliveryResult; network problems never raise.

Usage:
    from onpage.services.delivery_service import AutoGraderClient

    client = AutoGraderClient()
    if client.check_connection():
        result = client.send(extraction)
        print(result.message)
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from pydantic import BaseModel
import logging
import platform
import time
import requests

from onpage.core.config import settings
from onpage.core.errors import DeliveryError
from onpage.models.delivery import DeliveryResult
from onpage.services.telemetry_service import TelemetryRecorder
from onpage.utils.helpers import validate_url, truncate_string

logger = logging.getLogger(__name__)

SOURCE_HEADER = "OnPage-Scraper-Extension"

# User-facing messages (Arabic UI)
MESSAGES = {
    "invalid_url": "عنوان AutoGrader غير صالح. تحقق من الإعدادات.",
    "sent": "تم إرسال البيانات بنجاح إلى AutoGrader",
    "send_failed": "فشل الإرسال: {error}",
    "assignments_sent": "تم إرسال الواجبات للتقييم بنجاح",
    "assignments_failed": "فشل إرسال الواجبات: {error}",
}

DEFAULT_RUBRIC = "الوضوح، الدقة، الاكتمال"

Extraction = Union[BaseModel, Dict[str, Any], None]


class AutoGraderClient:
    """
    HTTP client for the AutoGrader dashboard.

    Error codes on failure:
    - INVALID_URL: base URL is not http(s)
    - HTTP_<status>: server answered with a non-2xx status
    - TIMEOUT: request exceeded the timeout
    - NETWORK_ERROR: anything else on the wire
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        version: Optional[str] = None,
        telemetry: Optional[TelemetryRecorder] = None
    ):
        self.base_url = (base_url or settings.autograder_url).rstrip("/")
        self.endpoint = endpoint or settings.autograder_endpoint
        self.timeout = timeout or settings.request_timeout
        self.version = version or settings.client_version
        self.telemetry = telemetry
        self.is_connected = False

    def set_request_timeout(self, seconds: float):
        """Adjust the per-request timeout; non-positive values are ignored."""
        if isinstance(seconds, (int, float)) and seconds > 0:
            self.timeout = float(seconds)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def check_connection(self) -> bool:
        """GET /api/health. Returns True/False; never raises."""
        if not validate_url(self.base_url):
            self.is_connected = False
            return False

        try:
            response = requests.get(
                f"{self.base_url}/api/health",
                headers={"Content-Type": "application/json"},
                timeout=self.timeout
            )
            self.is_connected = response.ok
        except requests.exceptions.RequestException as e:
            logger.warning(f"[AUTOGRADER] Connection check failed: {e}")
            self.is_connected = False

        return self.is_connected

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(self, extraction: Extraction) -> DeliveryResult:
        """POST the formatted extraction to the configured endpoint."""
        if not validate_url(self.base_url):
            return DeliveryResult(
                success=False,
                message=MESSAGES["invalid_url"],
                technical_message=f"Invalid AutoGrader URL: {self.base_url}",
                error_code="INVALID_URL"
            )

        payload = self.format_for_autograder(extraction)
        headers = {
            "Content-Type": "application/json",
            "X-Source": SOURCE_HEADER,
            "X-Version": self.version,
        }

        try:
            data = self._post(f"{self.base_url}{self.endpoint}", payload, headers)
            logger.info(f"[AUTOGRADER] Sent {len(payload['data'])} records")
            return DeliveryResult(success=True, message=MESSAGES["sent"], data=data)
        except DeliveryError as e:
            logger.error(f"[AUTOGRADER] Send failed: {e}")
            return DeliveryResult(
                success=False,
                message=MESSAGES["send_failed"].format(error=e),
                technical_message=str(e),
                error_code=e.error_code
            )

    def send_as_assignments(
        self,
        extraction: Extraction,
        rubric_criteria: str = DEFAULT_RUBRIC,
        assignment_prefix: str = "web_assignment"
    ) -> DeliveryResult:
        """POST every extracted value as an assignment to /api/grade-batch."""
        if not validate_url(self.base_url):
            return DeliveryResult(
                success=False,
                message=MESSAGES["invalid_url"],
                technical_message=f"Invalid AutoGrader URL: {self.base_url}",
                error_code="INVALID_URL"
            )

        body = {
            "assignments": self.convert_to_assignments(extraction, rubric_criteria, assignment_prefix),
            "options": {"maxConcurrent": 3, "delayBetweenRequests": 2},
        }
        headers = {"Content-Type": "application/json", "X-Source": SOURCE_HEADER}

        try:
            data = self._post(f"{self.base_url}/api/grade-batch", body, headers)
            return DeliveryResult(success=True, message=MESSAGES["assignments_sent"], data=data)
        except DeliveryError as e:
            logger.error(f"[AUTOGRADER] Grade batch failed: {e}")
            return DeliveryResult(
                success=False,
                message=MESSAGES["assignments_failed"].format(error=e),
                technical_message=str(e),
                error_code=e.error_code
            )

    def _post(self, url: str, body: Dict[str, Any], headers: Dict[str, str]) -> Any:
        """POST JSON and return the decoded response. Raises DeliveryError."""
        start = time.perf_counter()
        try:
            response = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            self._record(url, start, None)
            raise DeliveryError(f"Request timed out after {self.timeout}s", "TIMEOUT") from e
        except requests.exceptions.RequestException as e:
            self._record(url, start, None)
            raise DeliveryError(str(e), "NETWORK_ERROR") from e

        self._record(url, start, response.status_code)

        if not response.ok:
            raise DeliveryError(
                f"HTTP {response.status_code}: {response.reason}",
                f"HTTP_{response.status_code}",
                body=response.text
            )

        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_for_autograder(self, extraction: Extraction) -> Dict[str, Any]:
        """Normalize an extraction into the AutoGrader wire envelope."""
        data = self._as_dict(extraction)
        fields = self._resolve_fields_object(data)
        field_names = list(fields.keys())
        total_from_fields = sum(len(items) for items in fields.values() if isinstance(items, list))
        summary = data.get("summary") or {}

        total_items = data.get("total_items", data.get("totalItems"))
        if total_items is None:
            total_items = total_from_fields

        return {
            "source": "web-scraper",
            "timestamp": data.get("timestamp") or datetime.now().isoformat(),
            "url": data.get("url", ""),
            "pageTitle": data.get("title", ""),
            "data": self.transform_fields(fields),
            "statistics": {
                "totalItems": total_items,
                "totalFields": summary.get("total_fields", summary.get("totalFields", len(field_names))),
                "fieldCounts": {
                    **summary.get("field_counts", summary.get("fieldCounts", {})),
                    **summary.get("list_counts", {}),
                },
            },
            "metadata": {
                "extractionMethod": "smart-dom-extraction",
                "extensionVersion": self.version,
                "userAgent": f"onpage-scraper/{self.version} ({platform.system()})",
                "language": "",
            },
        }

    @staticmethod
    def transform_fields(fields: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Flatten {name: [entry]} into [{id, fieldName, value, type, metadata}]."""
        if not isinstance(fields, dict):
            return []

        transformed = []
        for field_name, items in fields.items():
            if not isinstance(items, list):
                continue
            for index, item in enumerate(items):
                transformed.append({
                    "id": f"{field_name}_{index}",
                    "fieldName": field_name,
                    "value": item.get("value"),
                    "type": item.get("type"),
                    "metadata": item.get("metadata") or {},
                })
        return transformed

    def convert_to_assignments(
        self,
        extraction: Extraction,
        rubric_criteria: str,
        assignment_prefix: str
    ) -> List[Dict[str, Any]]:
        fields = self._resolve_fields_object(self._as_dict(extraction))
        assignments = []
        for fi, (field_name, items) in enumerate(fields.items()):
            if not isinstance(items, list):
                continue
            for ii, item in enumerate(items):
                assignments.append({
                    "studentId": f"student_{fi}_{ii}",
                    "assignmentId": f"{assignment_prefix}_{fi}_{ii}",
                    "assignmentText": item.get("value") or "",
                    "rubricCriteria": rubric_criteria,
                })
        return assignments

    def preview(self, extraction: Extraction) -> Dict[str, Any]:
        """Counts, types and up to 3 sample values per field."""
        if not extraction:
            return {"summary": {}, "fields": {}, "sample_data": []}

        data = self._as_dict(extraction)
        fields = self._resolve_fields_object(data)
        total_items = data.get("total_items")
        if total_items is None:
            total_items = sum(len(items) for items in fields.values() if isinstance(items, list))

        preview = {
            "summary": {
                "url": data.get("url"),
                "title": data.get("title"),
                "timestamp": data.get("timestamp"),
                "total_items": total_items,
                "total_fields": len(fields),
            },
            "fields": {},
            "sample_data": [],
        }

        for field_name, items in fields.items():
            if not isinstance(items, list):
                continue
            preview["fields"][field_name] = {
                "count": len(items),
                "types": sorted({item.get("type") for item in items if item.get("type")}),
            }
            preview["sample_data"].append({
                "field_name": field_name,
                "samples": [
                    {"value": truncate_string(str(item.get("value") or ""), 100, suffix=""), "type": item.get("type")}
                    for item in items[:3]
                ],
            })

        return preview

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, url: str, start: float, status: Optional[int]):
        if self.telemetry:
            self.telemetry.record_network_request(url, "POST", time.perf_counter() - start, status)

    @staticmethod
    def _as_dict(extraction: Extraction) -> Dict[str, Any]:
        if extraction is None:
            return {}
        if isinstance(extraction, BaseModel):
            return extraction.model_dump()
        return dict(extraction)

    @staticmethod
    def _resolve_fields_object(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Normalize the known extraction shapes into one {name: [entry]} map.

        Accepts {fields}, {extracted_data}, {flat_fields, smart_lists} and the
        same pair nested under data_structure.
        """
        if not data:
            return {}
        if isinstance(data.get("fields"), dict):
            return data["fields"]
        for key in ("extracted_data", "extractedData"):
            if isinstance(data.get(key), dict):
                return data[key]
        structure = data.get("data_structure") or data
        if isinstance(structure.get("flat_fields"), dict):
            return {**structure["flat_fields"], **(structure.get("smart_lists") or {})}
        return {}
