"""
Services Package - Storage, events, telemetry and delivery

The scraping session guard lives in onpage.services.scraping_service and is
imported from there directly.
"""

from .storage_service import KeyValueStorage, InMemoryStorage, JsonFileStorage
from .event_service import EventChannel, InMemoryEventChannel, HttpEventChannel
from .telemetry_service import TelemetryRecorder
from .delivery_service import AutoGraderClient

__all__ = [
    'KeyValueStorage',
    'InMemoryStorage',
    'JsonFileStorage',
    'EventChannel',
    'InMemoryEventChannel',
    'HttpEventChannel',
    'TelemetryRecorder',
    'AutoGraderClient',
]
