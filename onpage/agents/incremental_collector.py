"""
Incremental Collector - scroll, scrape, dedup, repeat

Collects items from a document that keeps loading content as it is
scrolled. Each iteration scrapes the current state, keeps only items not
seen before, emits them as a delta and then decides whether to scroll on.

States: idle -> collecting -> (collecting | converged | aborted)

Stop predicates, in order:
1. scroll cap reached
2. no new data for max_no_new_data_count iterations while at the bottom
   (after scrolling and settling)
3. scrolling failed to move max_consecutive_failed_scrolls times in a row
4. height and position unchanged since the scrape and streak > 2
5. content fingerprint unchanged for fingerprint_stable_iterations and streak > 3
Cancellation (checked at the top of each iteration) aborts with partial results.
An error raised by the host also aborts, with stop reason "error".

Usage:
    collector = IncrementalCollector(host, template, channel=InMemoryEventChannel())
    state = collector.run()
    state.status, len(state.items)
"""

from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin
import json
import logging
import threading
import time
import uuid

from onpage.core.config import settings
from onpage.core.document import Document, NodeRef
from onpage.core.errors import InvalidAddressError
from onpage.core.host import ScrollHost
from onpage.models.collection import (
    CollectedItem,
    CollectionEvent,
    CollectionState,
    CollectionTemplate,
    CollectorStatus,
    FieldSelector,
    StopReason,
)
from onpage.models.extraction import ExtractionOptions
from onpage.routing.selector_resolver import ResolveOptions, SelectorResolver
from onpage.services.event_service import EventChannel, InMemoryEventChannel
from onpage.services.telemetry_service import TelemetryRecorder
from onpage.utils.similarity import normalize_key

logger = logging.getLogger(__name__)

MIN_SCROLL_AMOUNT = 600
SCROLL_VIEWPORT_RATIO = 0.8
MAX_INNER_HTML = 500
FALLBACK_KEY_FIELDS = ("name", "title", "address", "location")


# ----------------------------------------------------------------------
# Element data
# ----------------------------------------------------------------------

def text_with_commas(element: NodeRef) -> str:
    """Direct child texts joined with ', '; whole text when there is a single part."""
    parts = element.text_parts()
    if len(parts) > 1:
        return ", ".join(parts)
    if len(parts) == 1:
        return parts[0]
    return (element.text or "").strip()


def element_data(element: NodeRef, options: ExtractionOptions, base_url: str = "") -> Dict[str, Any]:
    """What the collector keeps for one matched element, driven by the options."""
    data: Dict[str, Any] = {
        "tag_name": element.tag_name,
        "class_name": element.class_name,
        "id": element.id,
    }

    if options.text:
        data["text"] = text_with_commas(element)

    if options.links and (element.tag_name == "a" or element.has_attribute("href")):
        href = element.get("href") or ""
        data["href"] = urljoin(base_url, href) if base_url and href else href

    if options.images and element.tag_name == "img":
        src = element.get("src") or element.get("data-src") or element.get("data-lazy-src") or ""
        data["src"] = urljoin(base_url, src) if base_url and src else src
        data["alt"] = element.get("alt") or ""

    if options.structured:
        if element.has_attribute("title"):
            data["title"] = element.get("title") or ""
        data_attributes = element.data_attributes()
        if data_attributes:
            data["data_attributes"] = data_attributes
        if element.has_attribute("value"):
            data["value"] = element.value
        if element.has_attribute("placeholder"):
            data["placeholder"] = element.get("placeholder") or ""
        if element.has_attribute("aria-label"):
            data["aria_label"] = element.get("aria-label") or ""
        if element.tag_name in ("input", "select", "textarea"):
            data["type"] = element.input_type
            data["name"] = element.get("name") or ""
        if not element.children:
            inner = element.inner_html()
            if inner and len(inner) < MAX_INNER_HTML:
                data["inner_html"] = inner

    return data


def build_item_key(item: CollectedItem, identity_field: Optional[str] = None) -> str:
    """
    Dedup key for a collected item.

    Declared identity field first (href, then text, then src); then the
    common descriptive fields; then a structural fallback over every field.
    """
    if identity_field and identity_field in item:
        field = item[identity_field]
        for attribute in ("href", "text", "src"):
            value = field.get(attribute)
            if value:
                return f"{identity_field}:{attribute}:{normalize_key(value)}"

    candidates = [
        normalize_key(item[name]["text"])
        for name in FALLBACK_KEY_FIELDS
        if name in item and item[name].get("text")
    ]
    if candidates:
        return "|".join(candidates)

    return json.dumps(
        {name: field.get("text") or field.get("href") or field.get("src") or "" for name, field in item.items()},
        sort_keys=True,
        ensure_ascii=False,
    )


# ----------------------------------------------------------------------
# Collector
# ----------------------------------------------------------------------

class IncrementalCollector:
    """
    One collection session over a ScrollHost.

    The resolver is optional: when given, a field address that matches
    nothing directly gets one healing pass per iteration.
    """

    def __init__(
        self,
        host: ScrollHost,
        template: CollectionTemplate,
        channel: Optional[EventChannel] = None,
        resolver: Optional[SelectorResolver] = None,
        telemetry: Optional[TelemetryRecorder] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_scroll_count: Optional[int] = None,
        max_no_new_data_count: Optional[int] = None,
        max_consecutive_failed_scrolls: Optional[int] = None,
        settle_delay: Optional[float] = None,
        bottom_tolerance: Optional[float] = None,
        fingerprint_stable_iterations: Optional[int] = None
    ):
        self.host = host
        self.template = template
        self.channel = channel or InMemoryEventChannel()
        self.resolver = resolver
        self.telemetry = telemetry
        self.cancel_event = cancel_event or threading.Event()
        self.sleep = sleep

        self.max_scroll_count = max_scroll_count or settings.max_scroll_count
        self.max_no_new_data_count = max_no_new_data_count or settings.max_no_new_data_count
        self.max_consecutive_failed_scrolls = max_consecutive_failed_scrolls or settings.max_consecutive_failed_scrolls
        self.settle_delay = settings.settle_delay if settle_delay is None else settle_delay
        self.bottom_tolerance = settings.bottom_tolerance if bottom_tolerance is None else bottom_tolerance
        self.fingerprint_stable_iterations = fingerprint_stable_iterations or settings.fingerprint_stable_iterations

        self.state = CollectionState()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self):
        """Cooperative stop; takes effect at the top of the next iteration."""
        self.cancel_event.set()

    @property
    def is_running(self) -> bool:
        return self.state.status == CollectorStatus.COLLECTING

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self) -> CollectionState:
        """Iterate until a stop predicate trips or the session is cancelled."""
        state = self.state
        state.status = CollectorStatus.COLLECTING
        extraction_id = f"collection_{uuid.uuid4().hex[:8]}"
        if self.telemetry:
            self.telemetry.start_extraction(extraction_id, {"fields": len(self.template.fields)})

        logger.info(f"[COLLECTOR] Starting collection with {len(self.template.fields)} fields")
        try:
            while self.step():
                pass
        except Exception as e:
            logger.error(f"[COLLECTOR] Collection failed: {e}", exc_info=True)
            state.error = str(e)
            self._finish(CollectorStatus.ABORTED, StopReason.ERROR)
        finally:
            if self.telemetry:
                self.telemetry.end_extraction(
                    extraction_id,
                    success=state.stop_reason != StopReason.ERROR,
                    items=len(state.items)
                )
        return state

    def step(self) -> bool:
        """One iteration. Returns False once the session has ended."""
        state = self.state

        if self.cancel_event.is_set():
            logger.info("[COLLECTOR] Manual stop requested, keeping collected data")
            self._finish(CollectorStatus.ABORTED, StopReason.CANCELLED)
            return False

        before = self.host.metrics()
        document = self.host.snapshot()

        new_items = self.scrape(document)
        if new_items:
            state.no_new_data_streak = 0
            logger.info(f"[COLLECTOR] Found {len(new_items)} new items (total: {len(state.items)})")
            self._emit("delta", new_items)
        else:
            state.no_new_data_streak += 1
            logger.debug(
                f"[COLLECTOR] No new data ({state.no_new_data_streak}/{self.max_no_new_data_count})"
            )

        scraped = self.host.metrics()
        at_bottom = scraped.is_at_bottom(self.bottom_tolerance)
        state.scroll_count += 1
        logger.debug(
            f"[COLLECTOR] Scroll {state.scroll_count}/{self.max_scroll_count} - "
            f"position: {before.scroll_top}, height: {before.scroll_height}, at bottom: {at_bottom}"
        )

        if state.scroll_count >= self.max_scroll_count:
            return self._finish(CollectorStatus.CONVERGED, StopReason.MAX_SCROLLS)

        if state.no_new_data_streak >= self.max_no_new_data_count and at_bottom:
            return self._finish(CollectorStatus.CONVERGED, StopReason.NO_NEW_DATA_AT_BOTTOM)

        before_scroll_top = scraped.scroll_top
        self.host.scroll_by(max(scraped.viewport_height * SCROLL_VIEWPORT_RATIO, MIN_SCROLL_AMOUNT))
        self.sleep(self.settle_delay)

        after = self.host.metrics()
        if after.scroll_top == before_scroll_top:
            state.consecutive_failed_scrolls += 1
            logger.debug(
                f"[COLLECTOR] No scroll movement detected "
                f"({state.consecutive_failed_scrolls}/{self.max_consecutive_failed_scrolls})"
            )
        else:
            state.consecutive_failed_scrolls = 0

        fingerprint = self.host.content_fingerprint()
        if fingerprint == state.last_content_fingerprint:
            state.fingerprint_unchanged_streak += 1
        else:
            state.fingerprint_unchanged_streak = 0
        state.last_content_fingerprint = fingerprint

        if state.consecutive_failed_scrolls >= self.max_consecutive_failed_scrolls:
            return self._finish(CollectorStatus.CONVERGED, StopReason.CANNOT_SCROLL)

        if (
            after.scroll_height == before.scroll_height
            and after.scroll_top == before.scroll_top
            and state.no_new_data_streak > 2
        ):
            return self._finish(CollectorStatus.CONVERGED, StopReason.HEIGHT_UNCHANGED)

        if (
            state.fingerprint_unchanged_streak >= self.fingerprint_stable_iterations
            and state.no_new_data_streak > 3
        ):
            return self._finish(CollectorStatus.CONVERGED, StopReason.CONTENT_UNCHANGED)

        return True

    # ------------------------------------------------------------------
    # Scraping
    # ------------------------------------------------------------------

    def scrape(self, document: Document) -> List[CollectedItem]:
        """Build items from the current document and keep the unseen ones."""
        container = self.template.container_field
        if container is not None:
            items = self._container_items(document, container)
        else:
            items = self._aligned_items(document)

        new_items = []
        for item in items:
            if not item:
                continue
            key = build_item_key(item, self.template.identity_field)
            if self.state.add(key, item):
                new_items.append(item)
        return new_items

    def _container_items(self, document: Document, container: FieldSelector) -> List[CollectedItem]:
        """One item per container node; sub-fields from the first match inside it."""
        options = self.template.options
        items = []
        for container_node in self._query(document, container.address):
            item: CollectedItem = {}
            for field in self.template.fields:
                if field is container:
                    continue
                try:
                    target = container_node.query_one(field.address)
                except InvalidAddressError as e:
                    logger.debug(f"[COLLECTOR] Skipping field {field.name}: {e}")
                    continue
                if target is not None:
                    item[field.name] = element_data(target, options, document.url)
            items.append(item)
        return items

    def _aligned_items(self, document: Document) -> List[CollectedItem]:
        """Index-aligned join across each field's result list."""
        options = self.template.options
        columns: Dict[str, List[Dict[str, Any]]] = {}
        for field in self.template.fields:
            nodes = self._query(document, field.address)
            if nodes:
                columns[field.name] = [element_data(node, options, document.url) for node in nodes]

        if not columns:
            return []

        length = max(len(values) for values in columns.values())
        items = []
        for index in range(length):
            item: CollectedItem = {}
            for field in self.template.fields:
                values = columns.get(field.name)
                if values and index < len(values):
                    item[field.name] = values[index]
            items.append(item)
        return items

    def _query(self, document: Document, address: str) -> List[NodeRef]:
        try:
            nodes = document.query(address)
        except InvalidAddressError as e:
            logger.warning(f"[COLLECTOR] Invalid address {address}: {e}")
            nodes = []

        if not nodes and self.resolver is not None:
            result = self.resolver.resolve_all(document, address, ResolveOptions(max_retries=1))
            if result.success:
                nodes = result.elements
        return nodes

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event_type: str, items: List[CollectedItem], manual_stop: bool = False):
        event = CollectionEvent(
            type=event_type,
            items=list(items),
            total=len(self.state.items),
            status=self.state.status,
            stop_reason=self.state.stop_reason,
            manual_stop=manual_stop,
        )
        self.channel.emit(event)

    def _finish(self, status: CollectorStatus, reason: StopReason) -> bool:
        self.state.status = status
        self.state.stop_reason = reason
        logger.info(f"[COLLECTOR] Collection stopped ({reason.value}): {len(self.state.items)} items")
        self._emit("complete", self.state.items, manual_stop=reason == StopReason.CANCELLED)
        return False
