"""
Configuration Management

Centralized configuration using Pydantic Settings.
All environment variables are validated and type-checked.

Usage:
    from onpage.core.config import settings

    floor = settings.confidence_floor
    delay = settings.settle_delay
"""

from pydantic_settings import BaseSettings
from typing import Optional
from enum import Enum
import os


class ConfidenceTier(str, Enum):
    """Named confidence floors accepted by the resolver."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def threshold(self) -> float:
        return CONFIDENCE_THRESHOLDS[self]


CONFIDENCE_THRESHOLDS = {
    ConfidenceTier.HIGH: 0.9,
    ConfidenceTier.MEDIUM: 0.7,
    ConfidenceTier.LOW: 0.5,
}


def get_storage_dir() -> str:
    """
    Resolve the directory used for persisted learning memory.

    ONPAGE_STORAGE_DIR wins; otherwise a cache dir next to the package.
    """
    override = os.getenv('ONPAGE_STORAGE_DIR')
    if override:
        return override
    return os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "learning_cache")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Delivery (AutoGrader dashboard)
    autograder_url: str = "http://localhost:5173"
    autograder_endpoint: str = "/api/scraper-data"
    request_timeout: float = 10.0
    client_version: str = "2.1.0"

    # Event channel (frontend log endpoint)
    event_log_url: Optional[str] = None

    # Storage
    storage_dir: str = get_storage_dir()
    learning_memory_key: str = "resilience_learning_memory"
    max_memory_bytes: int = 2 * 1024 * 1024
    history_capacity: int = 500

    # Resolver defaults
    max_retries: int = 3
    retry_backoff: float = 0.1
    confidence_floor: ConfidenceTier = ConfidenceTier.LOW
    use_fallback: bool = True
    learn: bool = True

    # Incremental collector thresholds
    max_scroll_count: int = 100
    max_no_new_data_count: int = 8
    max_consecutive_failed_scrolls: int = 5
    settle_delay: float = 3.0
    bottom_tolerance: int = 50
    fingerprint_stable_iterations: int = 2

    # Parsing
    html_parser: str = "lxml"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars


# Global settings instance
settings = Settings()
