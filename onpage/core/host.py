"""
Scroll Host - the progressively loading document seen by the collector

A ScrollHost exposes the current rendered state (as a Document), the
scroll geometry, and a way to request more content by scrolling.

Usage:
    from playwright.sync_api import sync_playwright
    from onpage.core.host import PlaywrightScrollHost

    with sync_playwright() as p:
        page = p.chromium.launch().new_page()
        page.goto(url)
        host = PlaywrightScrollHost(page)
        metrics = host.metrics()
"""

from abc import ABC, abstractmethod
from playwright.sync_api import Page
from pydantic import BaseModel, Field

from onpage.core.document import Document, SoupDocument


class ScrollMetrics(BaseModel):
    """Scroll geometry of the viewport at one instant."""
    scroll_top: float = Field(default=0.0, description="Current vertical offset")
    scroll_height: float = Field(default=0.0, description="Total content height")
    viewport_height: float = Field(default=0.0, description="Visible height")

    def is_at_bottom(self, tolerance: float) -> bool:
        return self.viewport_height + self.scroll_top >= self.scroll_height - tolerance


class ScrollHost(ABC):
    """Capability interface for documents that load content on scroll."""

    @abstractmethod
    def snapshot(self) -> Document:
        """Current rendered state of the document."""

    @abstractmethod
    def metrics(self) -> ScrollMetrics:
        pass

    @abstractmethod
    def scroll_by(self, amount: float) -> None:
        """Request more content by scrolling down `amount` pixels."""

    def content_fingerprint(self) -> str:
        """Cheap proxy for "the content changed": serialized length."""
        return str(len(self.snapshot().serialize()))


class PlaywrightScrollHost(ScrollHost):
    """ScrollHost over a Playwright sync Page."""

    METRICS_SCRIPT = """
        () => ({
            scroll_top: window.pageYOffset || document.documentElement.scrollTop || 0,
            scroll_height: document.documentElement.scrollHeight || 0,
            viewport_height: window.innerHeight || 0
        })
    """

    SCROLL_SCRIPT = """
        (amount) => {
            const before = window.pageYOffset || document.documentElement.scrollTop;
            window.scrollBy(0, amount);
            const after = window.pageYOffset || document.documentElement.scrollTop;
            if (after === before) {
                document.documentElement.scrollTop += amount;
                if (document.body) {
                    document.body.scrollTop += amount;
                }
            }
        }
    """

    def __init__(self, page: Page):
        self.page = page

    def snapshot(self) -> Document:
        return SoupDocument(self.page.content(), url=self.page.url)

    def metrics(self) -> ScrollMetrics:
        data = self.page.evaluate(self.METRICS_SCRIPT)
        return ScrollMetrics(**data)

    def scroll_by(self, amount: float) -> None:
        self.page.evaluate(self.SCROLL_SCRIPT, amount)

    def content_fingerprint(self) -> str:
        length = self.page.evaluate("() => document.documentElement.innerHTML.length")
        return str(length)
