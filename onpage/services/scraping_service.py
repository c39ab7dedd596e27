"""
Scraping Service - one collection session at a time

Guards the incremental collector: a second start while a session is
active is rejected, stop() cancels cooperatively, and the collected data
stays queryable after the session ends.

Usage:
    service = ScrapingService(channel=HttpEventChannel(settings.event_log_url))
    result = service.start(host, template, background=True)
    ...
    service.stop()
    service.get_status()   # {"is_scraping": False, "data_count": 42}
"""

from typing import Any, Callable, Dict, List, Optional
import logging
import threading
import time

from onpage.agents.incremental_collector import IncrementalCollector
from onpage.core.host import ScrollHost
from onpage.models.collection import CollectedItem, CollectionTemplate, CollectorStatus, StopReason
from onpage.models.tool_result import ToolResult
from onpage.routing.selector_resolver import SelectorResolver
from onpage.services.event_service import EventChannel
from onpage.services.telemetry_service import TelemetryRecorder

logger = logging.getLogger(__name__)


class ScrapingService:
    """Owns at most one running IncrementalCollector."""

    def __init__(
        self,
        channel: Optional[EventChannel] = None,
        resolver: Optional[SelectorResolver] = None,
        telemetry: Optional[TelemetryRecorder] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.channel = channel
        self.resolver = resolver
        self.telemetry = telemetry
        self.sleep = sleep

        self.is_scraping = False
        self.scraped_data: List[CollectedItem] = []
        self.template: Optional[CollectionTemplate] = None
        self.collector: Optional[IncrementalCollector] = None
        self.thread: Optional[threading.Thread] = None

        self._lock = threading.Lock()
        self._cancel = threading.Event()

    def start(
        self,
        host: ScrollHost,
        template: CollectionTemplate,
        background: bool = False,
        **collector_options: Any
    ) -> ToolResult:
        """
        Start a collection session.

        Args:
            host: Progressive document to collect from
            template: Fields to collect per iteration
            background: Run the session on a daemon thread and return at once
            **collector_options: Threshold overrides passed to IncrementalCollector

        Returns:
            ToolResult; failed when a session is already running, the
            options are invalid or the collection stopped on an error
        """
        with self._lock:
            if self.is_scraping:
                logger.warning("[SCRAPER] Start rejected: session already active")
                return ToolResult(success=False, error="Scraping is already in progress", tool_name="scraping_service")

            cancel = threading.Event()
            try:
                collector = IncrementalCollector(
                    host,
                    template,
                    channel=self.channel,
                    resolver=self.resolver,
                    telemetry=self.telemetry,
                    cancel_event=cancel,
                    sleep=self.sleep,
                    **collector_options
                )
            except TypeError as e:
                logger.error(f"[SCRAPER] Invalid collector options: {e}")
                return ToolResult(success=False, error=f"Invalid collector options: {e}", tool_name="scraping_service")

            self.is_scraping = True
            self.scraped_data = []
            self.template = template
            self._cancel = cancel
            self.collector = collector

        if background:
            self.thread = threading.Thread(target=self._run, name="onpage-collector", daemon=True)
            self.thread.start()
            return ToolResult(success=True, data={"started": True}, tool_name="scraping_service")

        self._run()
        state = self.collector.state
        failed = state.stop_reason == StopReason.ERROR
        return ToolResult(
            success=not failed,
            data=self.scraped_data,
            error=f"Collection failed: {state.error}" if failed else None,
            metadata={
                "status": state.status.value,
                "stop_reason": state.stop_reason.value if state.stop_reason else None,
                "scroll_count": state.scroll_count,
            },
            tool_name="scraping_service"
        )

    def _run(self):
        collector = self.collector
        try:
            collector.run()
        except Exception as e:
            logger.error(f"[SCRAPER] Collection failed: {e}", exc_info=True)
            if collector.state.stop_reason is None:
                collector.state.status = CollectorStatus.ABORTED
                collector.state.stop_reason = StopReason.ERROR
                collector.state.error = str(e)
        finally:
            with self._lock:
                self.scraped_data = list(collector.state.items)
                self.is_scraping = False

    def stop(self) -> ToolResult:
        """Request a cooperative stop; partial data is kept."""
        self._cancel.set()
        logger.info("[SCRAPER] Stop requested")
        return ToolResult(success=True, tool_name="scraping_service")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join a background session. Returns True once it has ended."""
        if self.thread is not None:
            self.thread.join(timeout)
            return not self.thread.is_alive()
        return not self.is_scraping

    def get_scraped_data(self) -> List[CollectedItem]:
        if self.is_scraping and self.collector is not None:
            return list(self.collector.state.items)
        return list(self.scraped_data)

    def get_status(self) -> Dict[str, Any]:
        return {
            "is_scraping": self.is_scraping,
            "data_count": len(self.get_scraped_data()),
        }

    def clear(self):
        """Drop collected data and the last template."""
        self.scraped_data = []
        self.template = None
