"""
Unit Tests for FieldClassifier

Tests for keyword matching, label resolution and input-type fallback.
"""

import pytest
from onpage.core.document import SoupDocument
from onpage.tools.field_classifier import FieldCategory, FieldClassifier, find_label


@pytest.fixture
def classifier():
    return FieldClassifier()


def control(html: str, address: str = "input"):
    doc = SoupDocument(f"<form>{html}</form>")
    return doc.query_one(address), doc


class TestKeywordMatching:
    """Tests for vocabulary lookups on name/id/placeholder/label."""

    @pytest.mark.parametrize("html,expected", [
        ('<input name="phone" type="text">', FieldCategory.PHONE),
        ('<input name="qty" type="text">', FieldCategory.QUANTITY),
        ('<input id="user_price" type="text">', FieldCategory.NAME),
        ('<input placeholder="Search by location">', FieldCategory.ADDRESS),
        ('<input placeholder="الاسم الكامل">', FieldCategory.NAME),
        ('<input name="correo">', FieldCategory.EMAIL),
    ])
    def test_keywords(self, classifier, html, expected):
        element, doc = control(html)
        assert classifier.classify(element, doc) == expected

    def test_first_category_in_order_wins(self, classifier):
        """'username' hits name before 'email' is considered."""
        element, doc = control('<input name="username_email">')
        assert classifier.classify(element, doc) == FieldCategory.NAME

    def test_label_for(self, classifier, product_document):
        element = product_document.query_one("#signup-mail")
        assert classifier.classify(element, product_document) == FieldCategory.EMAIL


class TestFallbacks:

    @pytest.mark.parametrize("input_type,expected", [
        ("email", FieldCategory.EMAIL),
        ("tel", FieldCategory.PHONE),
        ("datetime-local", FieldCategory.DATE),
        ("number", FieldCategory.QUANTITY),
        ("url", FieldCategory.LINK),
    ])
    def test_input_type(self, classifier, input_type, expected):
        element, doc = control(f'<input name="x9" type="{input_type}">')
        assert classifier.classify(element, doc) == expected

    def test_default_text(self, classifier):
        element, doc = control('<input name="zz9" type="text">')
        assert classifier.classify(element, doc) == FieldCategory.TEXT


class TestFindLabel:

    def test_label_for_id(self):
        element, doc = control('<label for="f1">Street</label><input id="f1">')
        assert find_label(element, doc) == "Street"

    def test_ancestor_label(self):
        element, doc = control('<label>Telephone <input name="x"></label>')
        assert find_label(element, doc).strip() == "Telephone"

    def test_aria_label(self):
        element, doc = control('<input aria-label="Quantity">')
        assert find_label(element, doc) == "Quantity"

    def test_no_label(self):
        element, doc = control('<input name="x">')
        assert find_label(element, doc) is None

    def test_without_document_skips_for_lookup(self):
        element, _ = control('<label for="f1">Street</label><input id="f1">')
        assert find_label(element) is None
