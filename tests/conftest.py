"""
Pytest Configuration and Fixtures

Provides common fixtures for all tests including sample documents, a
scripted scroll host, in-memory storage and recorders.
"""

import pytest
from typing import List, Optional, Sequence, Tuple

from onpage.core.document import SoupDocument
from onpage.core.host import ScrollHost, ScrollMetrics
from onpage.routing.selector_memory import SelectorMemory
from onpage.routing.selector_resolver import SelectorResolver
from onpage.services.storage_service import InMemoryStorage
from onpage.services.telemetry_service import TelemetryRecorder


PRODUCT_PAGE = """
<html>
<head>
  <title>Example Shop - Wireless Headphones</title>
  <script type="application/ld+json">{"@type": "Product", "name": "Wireless Headphones"}</script>
  <script type="application/ld+json">{not valid json</script>
</head>
<body>
  <header role="banner"><nav id="top-nav"><a href="/">Home</a><a href="/deals">Today's deals</a></nav></header>
  <main id="main">
    <h1 id="product-title">Wireless Headphones</h1>
    <div class="product" itemscope itemtype="https://schema.org/Product">
      <span class="name" itemprop="name">Wireless Headphones</span>
      <span class="price" itemprop="price">$59.99</span>
      <p class="description">Noise cancelling over-ear headphones with 30 hour battery life.</p>
      <img src="/img/headphones.jpg" alt="Headphones">
    </div>
    <ul id="features">
      <li class="feature">Bluetooth 5.3 connectivity</li>
      <li class="feature">Active noise cancellation</li>
      <li class="feature">USB-C fast charging</li>
    </ul>
    <form id="signup" action="/subscribe" method="POST">
      <label for="signup-mail">Your email</label>
      <input id="signup-mail" type="text">
      <input name="phone" type="tel" required>
      <input name="qty" type="number" value="2">
      <select name="color"><option value="blk">Black</option><option value="wht" selected>White</option></select>
      <textarea name="comment">Great product</textarea>
    </form>
    <table id="specs">
      <thead><tr><th>Spec</th><th>Value</th></tr></thead>
      <tbody>
        <tr><td>Weight</td><td>250g</td></tr>
        <tr><td>Battery</td><td>30h</td></tr>
      </tbody>
    </table>
    <script>var tracking = "ignore me";</script>
  </main>
</body>
</html>
"""


def render_feed(items: Sequence[Tuple[str, str, str]]) -> str:
    cards = "".join(
        f'<li class="card"><a class="title" href="{href}">{title}</a><span class="price">{price}</span></li>'
        for title, href, price in items
    )
    return f'<html><body><ul id="feed">{cards}</ul></body></html>'


def make_batch(start: int, count: int) -> List[Tuple[str, str, str]]:
    return [(f"Item {i}", f"/p/{i}", f"${i}.00") for i in range(start, start + count)]


class FakeScrollHost(ScrollHost):
    """
    Scripted progressive document.

    Starts with the first batch loaded; reaching the bottom while scrolling
    loads the next batch. Height is item_height per item, at least
    min_height.
    """

    def __init__(
        self,
        batches: Sequence[Sequence[Tuple[str, str, str]]],
        viewport_height: float = 800,
        item_height: float = 100,
        min_height: Optional[float] = None,
        url: str = "https://shop.example.com/feed"
    ):
        self.batches = [list(b) for b in batches]
        self.loaded = 1
        self.viewport_height = viewport_height
        self.item_height = item_height
        self.min_height = min_height if min_height is not None else viewport_height
        self.url = url
        self.scroll_top = 0.0
        self.scroll_calls: List[float] = []

    @property
    def items(self) -> List[Tuple[str, str, str]]:
        return [item for batch in self.batches[:self.loaded] for item in batch]

    @property
    def scroll_height(self) -> float:
        return max(len(self.items) * self.item_height, self.min_height)

    def snapshot(self):
        return SoupDocument(render_feed(self.items), url=self.url)

    def metrics(self) -> ScrollMetrics:
        return ScrollMetrics(
            scroll_top=self.scroll_top,
            scroll_height=self.scroll_height,
            viewport_height=self.viewport_height,
        )

    def scroll_by(self, amount: float) -> None:
        self.scroll_calls.append(amount)
        max_top = max(self.scroll_height - self.viewport_height, 0)
        self.scroll_top = min(self.scroll_top + amount, max_top)
        if self.scroll_top >= max_top and self.loaded < len(self.batches):
            self.loaded += 1


@pytest.fixture
def product_document():
    """Provide a product page with forms, tables, lists and structured data."""
    return SoupDocument(PRODUCT_PAGE, url="https://shop.example.com/p/headphones")


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def memory(storage):
    return SelectorMemory(storage=storage)


@pytest.fixture
def telemetry():
    return TelemetryRecorder()


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    calls: List[float] = []
    return calls


@pytest.fixture
def resolver(memory, telemetry, sleeps):
    return SelectorResolver(memory=memory, telemetry=telemetry, sleep=sleeps.append)


@pytest.fixture
def feed_host():
    """Three batches of five cards, loaded as the host is scrolled."""
    return FakeScrollHost([make_batch(1, 5), make_batch(6, 5), make_batch(11, 5)])


@pytest.fixture
def host_factory():
    """Build a FakeScrollHost from batch sizes, e.g. host_factory((5, 5), min_height=10000)."""
    def build(batch_sizes=(5,), **kwargs):
        batches, start = [], 1
        for size in batch_sizes:
            batches.append(make_batch(start, size))
            start += size
        return FakeScrollHost(batches, **kwargs)
    return build
