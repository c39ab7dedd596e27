"""
Telemetry Service - extraction and healing performance tracking

Records start/end timestamps, durations and outcomes of extraction and
healing operations and derives rolling statistics from them.

Architecture:
- OperationTracker per operation kind (totals, recent window, durations)
- Open operations keyed by id until they are ended
- Threshold checks raise alerts (logged + kept as events)
- Event log capped to stay bounded on long sessions
"""

from typing import Any, Callable, Dict, List, Optional
from collections import deque
from datetime import datetime
import logging
import time
import uuid

from onpage.utils.helpers import format_duration

logger = logging.getLogger(__name__)


class OperationTracker:
    """Track outcomes and durations for one kind of operation."""

    RECENT_WINDOW = 10

    def __init__(self, kind: str):
        self.kind = kind
        self.total = 0
        self.successful = 0
        self.failed = 0
        self.total_duration = 0.0
        self.recent = deque(maxlen=self.RECENT_WINDOW)

    def record(self, success: bool, duration: float):
        self.total += 1
        if success:
            self.successful += 1
        else:
            self.failed += 1
        self.total_duration += duration
        self.recent.append(success)

    @property
    def success_rate(self) -> float:
        """Overall success rate (0.0 to 1.0)."""
        if self.total == 0:
            return 0.0
        return self.successful / self.total

    @property
    def error_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.failed / self.total

    @property
    def recent_success_rate(self) -> float:
        """Success rate over the last RECENT_WINDOW operations."""
        if not self.recent:
            return 0.0
        return sum(1 for s in self.recent if s) / len(self.recent)

    @property
    def average_duration(self) -> float:
        """Mean duration in seconds."""
        if self.total == 0:
            return 0.0
        return self.total_duration / self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "recent_success_rate": self.recent_success_rate,
            "average_duration": self.average_duration,
        }


class TelemetryRecorder:
    """
    Telemetry for extraction and healing operations.

    Not part of the extraction logic; engines call it around their work and
    read alerts from it.
    """

    MAX_EVENTS = 1000
    TRIMMED_EVENTS = 500
    MAX_RECORDS = 200
    MAX_ALERTS = 100

    DEFAULT_THRESHOLDS = {
        "extraction_time": 5.0,   # seconds
        "healing_attempts": 3,
        "error_rate": 0.1,
    }

    def __init__(
        self,
        thresholds: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.perf_counter
    ):
        self.thresholds = {**self.DEFAULT_THRESHOLDS, **(thresholds or {})}
        self.clock = clock
        self.extraction = OperationTracker("extraction")
        self.healing = OperationTracker("healing")
        self.metrics: Dict[str, List[Dict[str, Any]]] = {
            "extraction": [],
            "healing": [],
            "analysis": [],
            "network": [],
        }
        self._open: Dict[str, Dict[str, Any]] = {}
        self.events: List[Dict[str, Any]] = []
        self.alerts: List[Dict[str, Any]] = []
        self._error_rate_exceeded = False

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def start_extraction(self, extraction_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> str:
        extraction_id = extraction_id or f"extraction_{uuid.uuid4().hex[:8]}"
        self._open[extraction_id] = {
            "id": extraction_id,
            "type": "extraction",
            "start": self.clock(),
            "metadata": metadata or {},
            "status": "running",
        }
        self.log_event("extraction_started", {"id": extraction_id, "metadata": metadata or {}})
        return extraction_id

    def end_extraction(self, extraction_id: str, success: bool, items: int = 0) -> Optional[Dict[str, Any]]:
        record = self._open.pop(extraction_id, None)
        if record is None:
            return None

        record["duration"] = self.clock() - record["start"]
        record["status"] = "success" if success else "failed"
        record["items"] = items
        self.extraction.record(success, record["duration"])
        self._keep("extraction", record)

        if record["duration"] > self.thresholds["extraction_time"]:
            self.alert("slow_extraction", {
                "id": extraction_id,
                "duration": record["duration"],
                "threshold": self.thresholds["extraction_time"],
            })
        # Alert on crossing the threshold, not on every failure above it
        exceeded = self.extraction.error_rate > self.thresholds["error_rate"]
        if exceeded and not self._error_rate_exceeded:
            self.alert("high_error_rate", {
                "error_rate": self.extraction.error_rate,
                "threshold": self.thresholds["error_rate"],
            })
        self._error_rate_exceeded = exceeded

        self.log_event("extraction_ended", {"id": extraction_id, "duration": record["duration"], "success": success})
        return record

    # ------------------------------------------------------------------
    # Healing
    # ------------------------------------------------------------------

    def start_healing(self, address: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        healing_id = f"healing_{uuid.uuid4().hex[:8]}"
        self._open[healing_id] = {
            "id": healing_id,
            "type": "healing",
            "address": address,
            "start": self.clock(),
            "metadata": metadata or {},
            "attempts": 0,
            "strategies": [],
            "status": "running",
        }
        self.log_event("healing_started", {"address": address})
        return healing_id

    def record_healing_attempt(self, healing_id: str, strategy: str, success: bool, confidence: Optional[float] = None):
        record = self._open.get(healing_id)
        if record is None:
            return
        record["attempts"] += 1
        record["strategies"].append({
            "strategy": strategy,
            "success": success,
            "confidence": confidence,
        })
        self.log_event("healing_attempt", {"id": healing_id, "strategy": strategy, "success": success})

    def end_healing(self, healing_id: str, success: bool) -> Optional[Dict[str, Any]]:
        record = self._open.pop(healing_id, None)
        if record is None:
            return None

        record["duration"] = self.clock() - record["start"]
        record["status"] = "success" if success else "failed"
        self.healing.record(success, record["duration"])
        self._keep("healing", record)

        if record["attempts"] > self.thresholds["healing_attempts"]:
            self.alert("high_healing_attempts", {
                "address": record["address"],
                "attempts": record["attempts"],
            })

        self.log_event("healing_ended", {
            "id": healing_id,
            "duration": record["duration"],
            "attempts": record["attempts"],
            "success": success,
        })
        return record

    # ------------------------------------------------------------------
    # Other measurements
    # ------------------------------------------------------------------

    def record_analysis(self, analysis_type: str, duration: float, result: Optional[Dict[str, Any]] = None):
        record = {"type": analysis_type, "duration": duration, "result": result or {}}
        self._keep("analysis", record)
        self.log_event("analysis_completed", {"type": analysis_type, "duration": duration})
        return record

    def record_network_request(self, url: str, method: str, duration: float, status: Optional[int]):
        record = {"url": url, "method": method, "duration": duration, "status": status}
        self._keep("network", record)
        self.log_event("network_request", record)
        return record

    # ------------------------------------------------------------------
    # Events & alerts
    # ------------------------------------------------------------------

    def log_event(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        self.events.append({
            "type": event_type,
            "timestamp": datetime.now().isoformat(),
            "data": data or {},
        })
        if len(self.events) > self.MAX_EVENTS:
            self.events = self.events[-self.TRIMMED_EVENTS:]
        logger.debug(f"[TELEMETRY] {event_type}: {data}")

    def alert(self, alert_type: str, data: Dict[str, Any]):
        logger.warning(f"[TELEMETRY] Alert {alert_type}: {data}")
        self.alerts.append({"type": alert_type, "data": data})
        if len(self.alerts) > self.MAX_ALERTS:
            del self.alerts[: len(self.alerts) - self.MAX_ALERTS]
        self.log_event("alert", {"type": alert_type, "data": data})

    def _keep(self, kind: str, record: Dict[str, Any]):
        bucket = self.metrics[kind]
        bucket.append(record)
        if len(bucket) > self.MAX_RECORDS:
            del bucket[: len(bucket) - self.MAX_RECORDS]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_summary(self) -> Dict[str, Any]:
        return {
            "extractions": {
                "total": self.extraction.total,
                "successful": self.extraction.successful,
                "failed": self.extraction.failed,
                "success_rate": f"{self.extraction.success_rate * 100:.2f}%",
                "average_time": format_duration(self.extraction.average_duration),
            },
            "healings": {
                "total": self.healing.total,
                "successful": self.healing.successful,
                "success_rate": f"{self.healing.success_rate * 100:.2f}%",
                "average_time": format_duration(self.healing.average_duration),
            },
            "events": len(self.events),
            "alerts": len(self.alerts),
        }

    def get_report(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.now().isoformat(),
            "statistics": {
                "extraction": self.extraction.to_dict(),
                "healing": self.healing.to_dict(),
            },
            "metrics": {kind: records[-10:] for kind, records in self.metrics.items()},
            "recent_events": self.events[-50:],
            "alerts": self.alerts[-10:],
        }

    def clear(self):
        self.extraction = OperationTracker("extraction")
        self.healing = OperationTracker("healing")
        for records in self.metrics.values():
            records.clear()
        self._open.clear()
        self.events = []
        self.alerts = []
        self._error_rate_exceeded = False
