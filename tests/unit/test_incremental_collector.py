"""
Unit Tests for IncrementalCollector

Tests for the scroll/scrape loop, its stop predicates, item building and
dedup keys, driven by a scripted scroll host.
"""

import json
from unittest.mock import Mock
import pytest
from onpage.agents.incremental_collector import (
    IncrementalCollector,
    build_item_key,
    element_data,
    text_with_commas,
)
from onpage.core.document import SoupDocument
from onpage.models.collection import CollectionTemplate, CollectorStatus, FieldSelector, StopReason
from onpage.models.extraction import ExtractionOptions
from onpage.services.event_service import InMemoryEventChannel


def card_template(container: bool = False, identity_field=None, **options) -> CollectionTemplate:
    fields = [
        FieldSelector(name="title", address="a.title"),
        FieldSelector(name="price", address=".price"),
    ]
    if container:
        fields.insert(0, FieldSelector(name="container", address="li.card"))
    return CollectionTemplate(fields=fields, identity_field=identity_field, options=ExtractionOptions(**options))


@pytest.fixture
def channel():
    return InMemoryEventChannel()


@pytest.fixture
def make_collector(channel, sleeps):
    def build(host, template=None, **kwargs):
        return IncrementalCollector(host, template or card_template(), channel=channel, sleep=sleeps.append, **kwargs)
    return build


class TestConvergence:
    """Tests for the loop on a feed that stops growing."""

    def test_converges_after_growth_stops(self, make_collector, feed_host, channel):
        state = make_collector(feed_host).run()

        # New data stops after iteration 3; position and height then stay put
        assert state.status == CollectorStatus.CONVERGED
        assert state.stop_reason == StopReason.HEIGHT_UNCHANGED
        assert state.scroll_count == 6
        assert state.scroll_count <= 3 + 8 + 1
        assert len(state.items) == 15

    def test_delta_concat_equals_final(self, make_collector, feed_host, channel):
        state = make_collector(feed_host).run()

        assert len(channel.deltas) == 3
        assert channel.delta_items == state.items
        assert channel.final.items == state.items
        assert channel.final.total == 15
        assert channel.final.manual_stop is False

    def test_seen_keys_match_items(self, make_collector, feed_host):
        state = make_collector(feed_host).run()
        assert len(state.seen_keys) == len(state.items)

    def test_scroll_amount_and_settle(self, make_collector, feed_host, sleeps):
        make_collector(feed_host).run()

        assert feed_host.scroll_calls[0] == 640
        assert sleeps == [3.0] * len(feed_host.scroll_calls)


class TestStopPredicates:

    def test_scroll_cap(self, make_collector, host_factory):
        host = host_factory((5,) * 10)
        state = make_collector(host, max_scroll_count=2).run()

        assert state.stop_reason == StopReason.MAX_SCROLLS
        assert state.scroll_count == 2
        assert len(host.scroll_calls) == 1

    def test_no_new_data_at_bottom(self, make_collector, host_factory):
        state = make_collector(host_factory((5,)), max_no_new_data_count=1).run()

        assert state.stop_reason == StopReason.NO_NEW_DATA_AT_BOTTOM
        assert state.scroll_count == 2

    def test_cannot_scroll(self, make_collector, host_factory):
        state = make_collector(host_factory((5,)), max_consecutive_failed_scrolls=2).run()

        assert state.stop_reason == StopReason.CANNOT_SCROLL
        assert state.consecutive_failed_scrolls == 2

    def test_content_unchanged(self, make_collector, host_factory):
        # Tall static page: scrolling always moves, content never changes
        state = make_collector(host_factory((5,), min_height=100000)).run()

        assert state.stop_reason == StopReason.CONTENT_UNCHANGED
        assert state.scroll_count == 5
        assert state.no_new_data_streak == 4


class TestCancellation:

    def test_cancel_keeps_partial_items(self, make_collector, feed_host, channel):
        collector = make_collector(feed_host)
        channel.on_event = lambda event: collector.cancel() if event.type == "delta" else None

        state = collector.run()

        assert state.status == CollectorStatus.ABORTED
        assert state.stop_reason == StopReason.CANCELLED
        assert len(state.items) == 5
        assert channel.final.manual_stop is True
        assert channel.final.items == state.items

    def test_cancel_before_start(self, make_collector, feed_host):
        collector = make_collector(feed_host)
        collector.cancel()

        state = collector.run()

        assert state.status == CollectorStatus.ABORTED
        assert state.items == []
        assert feed_host.scroll_calls == []

    def test_telemetry_recorded(self, make_collector, feed_host, telemetry):
        make_collector(feed_host, telemetry=telemetry).run()
        assert telemetry.metrics["extraction"][-1]["items"] == 15


class TestItemBuilding:
    """Tests for container and index-aligned joins."""

    def test_container_join(self, make_collector, host_factory):
        host = host_factory((3,))
        collector = make_collector(host, card_template(container=True, identity_field="title", links=True))

        items = collector.scrape(host.snapshot())

        assert len(items) == 3
        assert items[0]["title"]["text"] == "Item 1"
        assert items[0]["title"]["href"] == "https://shop.example.com/p/1"
        assert items[0]["price"]["text"] == "$1.00"
        assert "container" not in items[0]

    def test_aligned_join(self, make_collector, host_factory):
        host = host_factory((3,))
        items = make_collector(host).scrape(host.snapshot())

        assert [(i["title"]["text"], i["price"]["text"]) for i in items] == [
            ("Item 1", "$1.00"), ("Item 2", "$2.00"), ("Item 3", "$3.00"),
        ]

    def test_rescrape_yields_nothing_new(self, make_collector, host_factory):
        host = host_factory((3,))
        collector = make_collector(host)
        collector.scrape(host.snapshot())

        assert collector.scrape(host.snapshot()) == []

    def test_broken_address_without_resolver(self, make_collector, host_factory):
        host = host_factory((3,))
        template = CollectionTemplate(fields=[FieldSelector(name="title", address="a.titles")])
        assert make_collector(host, template).scrape(host.snapshot()) == []

    def test_broken_address_healed_by_resolver(self, make_collector, host_factory, resolver):
        host = host_factory((3,))
        template = CollectionTemplate(fields=[FieldSelector(name="title", address="a.titles")])

        items = make_collector(host, template, resolver=resolver).scrape(host.snapshot())

        assert [i["title"]["text"] for i in items] == ["Item 1", "Item 2", "Item 3"]


class TestElementData:

    def test_text_parts_joined_with_commas(self):
        doc = SoupDocument('<li class="card"><a class="title" href="/p/1">Item 1</a><span>$1.00</span></li>')
        assert text_with_commas(doc.query_one("li")) == "Item 1, $1.00"

    def test_base_fields(self):
        doc = SoupDocument('<span id="p" class="price big">$5</span>')
        data = element_data(doc.query_one("#p"), ExtractionOptions())
        assert data == {"tag_name": "span", "class_name": "price big", "id": "p", "text": "$5"}

    def test_image_option(self):
        doc = SoupDocument('<img data-src="/lazy.jpg" alt="Lazy">')
        data = element_data(doc.query_one("img"), ExtractionOptions(images=True), "https://x.example.com/a/")
        assert data["src"] == "https://x.example.com/lazy.jpg"
        assert data["alt"] == "Lazy"

    def test_structured_option(self):
        doc = SoupDocument('<input name="q" value="v" placeholder="Search" aria-label="Query" data-x="1">')
        data = element_data(doc.query_one("input"), ExtractionOptions(structured=True))
        assert data["value"] == "v"
        assert data["placeholder"] == "Search"
        assert data["aria_label"] == "Query"
        assert data["type"] == "text"
        assert data["name"] == "q"
        assert data["data_attributes"] == {"x": "1"}

    def test_structured_inner_html(self):
        doc = SoupDocument('<span title="T">hi <b>there</b></span><em>leaf</em>')
        assert "inner_html" not in element_data(doc.query_one("span"), ExtractionOptions(structured=True))
        assert element_data(doc.query_one("em"), ExtractionOptions(structured=True))["inner_html"] == "leaf"
        assert element_data(doc.query_one("span"), ExtractionOptions(structured=True))["title"] == "T"


class TestItemKey:

    def test_identity_field(self):
        item = {"title": {"href": "/p/1", "text": "Item 1"}}
        assert build_item_key(item, "title") == "title:href:/p/1"

    def test_identity_field_falls_back_to_text(self):
        item = {"title": {"text": "  Item   ONE "}}
        assert build_item_key(item, "title") == "title:text:item one"

    def test_descriptive_fields(self):
        item = {"name": {"text": " Cafe  Nord"}, "location": {"text": "Paris"}, "rating": {"text": "4"}}
        assert build_item_key(item) == "cafe nord|paris"

    def test_structural_fallback(self):
        item = {"price": {"text": "$1"}, "link": {"href": "/a"}}
        assert json.loads(build_item_key(item)) == {"link": "/a", "price": "$1"}


class TestHostErrors:
    """Tests for a host that fails mid-session."""

    def test_error_aborts_with_partial_items(self, make_collector, host_factory, channel):
        host = host_factory((5,))
        host.scroll_by = Mock(side_effect=RuntimeError("page closed"))

        state = make_collector(host).run()

        assert state.status == CollectorStatus.ABORTED
        assert state.stop_reason == StopReason.ERROR
        assert state.error == "page closed"
        assert len(state.items) == 5
        assert channel.final.items == state.items
        assert channel.final.stop_reason == StopReason.ERROR
        assert channel.final.manual_stop is False

    def test_error_recorded_as_failed_extraction(self, make_collector, host_factory, telemetry):
        host = host_factory((5,))
        host.snapshot = Mock(side_effect=RuntimeError("page closed"))

        make_collector(host, telemetry=telemetry).run()

        assert telemetry.metrics["extraction"][-1]["status"] == "failed"
