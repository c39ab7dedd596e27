"""
Event Service - delta/complete events from collection sessions

Emits CollectionEvent models to whoever follows a session: an HTTP
endpoint (frontend log socket) or an in-process buffer.

Usage:
    from onpage.services.event_service import HttpEventChannel

    channel = HttpEventChannel(settings.event_log_url)
    channel.emit(CollectionEvent(type="delta", items=[...], total=12))
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging
import re
import requests

from onpage.models.collection import CollectionEvent, CollectedItem

logger = logging.getLogger(__name__)


class EventChannel(ABC):
    """Outbound channel for collection events."""

    @abstractmethod
    def emit(self, event: CollectionEvent) -> bool:
        """Deliver an event. Returns False on failure; never raises."""


class InMemoryEventChannel(EventChannel):
    """Keeps every event; optional callback per event."""

    def __init__(self, on_event: Optional[Callable[[CollectionEvent], None]] = None):
        self.events: List[CollectionEvent] = []
        self.on_event = on_event

    def emit(self, event: CollectionEvent) -> bool:
        self.events.append(event)
        if self.on_event:
            try:
                self.on_event(event)
            except Exception as e:
                logger.warning(f"[EVENTS] Event callback failed: {e}")
                return False
        return True

    @property
    def deltas(self) -> List[CollectionEvent]:
        return [e for e in self.events if e.type == "delta"]

    @property
    def delta_items(self) -> List[CollectedItem]:
        return [item for event in self.deltas for item in event.items]

    @property
    def final(self) -> Optional[CollectionEvent]:
        for event in reversed(self.events):
            if event.type == "complete":
                return event
        return None


class HttpEventChannel(EventChannel):
    """Posts events as JSON to a frontend endpoint, failing soft."""

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    @staticmethod
    def sanitize_message(message: str, max_length: int = 10000) -> str:
        """
        Sanitize free text before sending to the frontend.

        Removes null bytes and control characters (except newlines and
        tabs), collapses blank lines and enforces a maximum length.
        """
        message = message.replace('\x00', '')
        message = ''.join(
            char for char in message
            if char in ('\n', '\t') or (ord(char) >= 32 and ord(char) != 127)
        )
        message = re.sub(r'\n{3,}', '\n\n', message)
        message = message.strip()
        if len(message) > max_length:
            message = message[:max_length] + "\n\n[Response truncated due to length]"
        return message

    def emit(self, event: CollectionEvent) -> bool:
        try:
            payload = event.model_dump(mode="json")
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logger.warning(f"[EVENTS] Could not send {event.type} event: {self.sanitize_message(str(e), 500)}")
            return False
