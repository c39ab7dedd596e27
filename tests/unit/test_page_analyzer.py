"""
Unit Tests for PageAnalyzer

Tests for the one-pass analysis, detected fields, entities and caps.
"""

import pytest
from onpage.core.document import SoupDocument
from onpage.tools.page_analyzer import MAX_LINKS, MAX_TEXT_ELEMENTS, AnalyzePageTool, PageAnalyzer


@pytest.fixture
def analyzer(telemetry):
    return PageAnalyzer(telemetry=telemetry)


@pytest.fixture
def analysis(analyzer, product_document):
    return analyzer.analyze_page(product_document)


class TestAnalyzePage:
    """Tests for the top-level analysis shape."""

    def test_top_level_keys(self, analysis):
        assert set(analysis) == {
            "timestamp", "url", "title", "semantic_structure", "structural_analysis",
            "patterns", "schema_data", "forms", "tables", "lists", "main_content", "statistics",
        }
        assert analysis["title"] == "Example Shop - Wireless Headphones"

    def test_statistics(self, analysis):
        stats = analysis["statistics"]
        assert stats["total_forms"] == 1
        assert stats["total_tables"] == 1
        assert stats["total_inputs"] == 5
        assert stats["total_images"] == 1
        assert stats["total_links"] == 2
        assert stats["dom_depth"] == 5

    def test_records_telemetry(self, analysis, telemetry):
        assert telemetry.metrics["analysis"][-1]["type"] == "page"

    def test_semantic_structure(self, analysis):
        semantic = analysis["semantic_structure"]
        assert {"header", "nav", "main", "form", "table"} <= set(semantic["semantic_tags"])
        assert semantic["aria_roles"]["banner"]["count"] == 1
        assert {"type": "banner", "selector": "header", "count": 1} in semantic["landmarks"]

    def test_hierarchy(self, analysis):
        hierarchy = analysis["structural_analysis"]["hierarchy"]
        assert hierarchy["tag"] == "body"
        assert [child["tag"] for child in hierarchy["children"]] == ["header", "main"]
        main = hierarchy["children"][1]
        assert [child["tag"] for child in main["children"]] == ["h1", "ul", "form", "table"]

    def test_repeating_patterns(self, analysis):
        selectors = {p["selector"]: p["count"] for p in analysis["structural_analysis"]["repeating_patterns"]}
        assert selectors["li"] == 3
        assert selectors["tr"] == 3


class TestDetectedFields:
    """Tests for classified controls, text, links, images and table columns."""

    def test_controls_classified(self, analysis):
        fields = analysis["patterns"]["fields"]
        assert [r.field_name for r in fields["email"]] == ["signup-mail"]
        assert [r.field_name for r in fields["phone"]] == ["phone"]
        assert fields["quantity"][0].value == "2"

    def test_links_absolute(self, analysis):
        links = analysis["patterns"]["fields"]["link"]
        assert [r.value for r in links] == ["https://shop.example.com/", "https://shop.example.com/deals"]

    def test_images(self, analysis):
        images = analysis["patterns"]["fields"]["image"]
        assert images[0].field_name == "Headphones"
        assert images[0].value == "https://shop.example.com/img/headphones.jpg"

    def test_text_content(self, analysis):
        values = [r.value for r in analysis["patterns"]["fields"]["content"]]
        assert "Wireless Headphones" in values
        assert "Active noise cancellation" in values
        assert not any("ignore me" in v for v in values)

    def test_table_columns(self, analysis):
        fields = analysis["patterns"]["fields"]
        assert [(r.field_name, r.value) for r in fields["Value"]] == [("Weight", "250g"), ("Battery", "30h")]
        assert fields["Spec"][0].metadata["table_id"] == "specs"
        assert fields["Spec"][0].metadata["row_identifier"] == "Weight"

    def test_text_cap(self, analyzer):
        paragraphs = "".join(f"<p>Paragraph number {i} with text</p>" for i in range(MAX_TEXT_ELEMENTS + 50))
        analysis = analyzer.analyze_page(SoupDocument(f"<body>{paragraphs}</body>"))
        assert len(analysis["patterns"]["fields"]["content"]) == MAX_TEXT_ELEMENTS

    def test_link_cap(self, analyzer):
        links = "".join(f'<a href="/l/{i}">Link {i}</a>' for i in range(MAX_LINKS + 20))
        analysis = analyzer.analyze_page(SoupDocument(f"<body>{links}</body>"))
        assert len(analysis["patterns"]["fields"]["link"]) == MAX_LINKS


class TestEntitiesAndStructure:

    def test_product_entity_deduplicated(self, analysis):
        entities = {e["type"]: e for e in analysis["patterns"]["entities"]}
        assert entities["products"]["count"] == 1
        product = entities["products"]["items"][0]
        assert product["name"] == "Wireless Headphones"
        assert product["price"] == "$59.99"
        assert product["image"] == "https://shop.example.com/img/headphones.jpg"
        assert "people" not in entities

    def test_schema_data_skips_bad_json(self, analysis):
        schema = analysis["schema_data"]
        json_ld = [s for s in schema if s["type"] == "json-ld"]
        assert len(json_ld) == 1
        assert json_ld[0]["data"]["name"] == "Wireless Headphones"
        assert {"type": "microdata", "schema_type": "Product", "count": 1} in schema

    def test_forms(self, analysis):
        form = analysis["forms"][0]
        assert form["id"] == "signup"
        assert form["method"] == "post"
        assert len(form["fields"]) == 5
        phone = [f for f in form["fields"] if f["name"] == "phone"][0]
        assert phone["required"] is True
        assert phone["semantic_type"] == "phone"

    def test_tables_and_lists(self, analysis):
        table = analysis["tables"][0]
        assert table["headers"] == ["Spec", "Value"]
        assert table["rows"] == 3
        assert len(table["sample"]) == 3
        assert analysis["lists"][0]["id"] == "features"
        assert len(analysis["lists"][0]["items"]) == 3

    def test_main_content(self, analysis):
        assert analysis["main_content"]["selector"] == "main"


class TestDomDepth:

    def test_deep_document(self, analyzer):
        html = "<body>" + "<div>" * 100 + "x" + "</div>" * 100 + "</body>"
        assert analyzer.calculate_dom_depth(SoupDocument(html)) == 100

    def test_memoized_per_pass(self, analyzer, product_document):
        analyzer.analyze_page(product_document)
        assert analyzer._cache["dom_depth"] == 5


class TestSmartExtract:

    def test_flattened_shape(self, analyzer, product_document):
        result = analyzer.smart_extract(product_document)

        assert set(result) == {"metadata", "data", "entities", "structure", "schema"}
        assert result["data"]["email"] == [{"name": "signup-mail", "value": None, "type": "text"}]
        assert len(result["structure"]["tables"]) == 1


class TestAnalyzePageTool:

    def test_execute(self, product_document):
        result = AnalyzePageTool().execute(document=product_document)
        assert result.success is True
        assert result.tool_name == "analyze_page"
        assert result.metadata["elements"] > 0

    def test_smart_extract_mode(self, product_document):
        result = AnalyzePageTool().execute(document=product_document, mode="smart_extract")
        assert result.success is True
        assert "email" in result.data["data"]

    def test_invalid_params(self):
        result = AnalyzePageTool().execute(document="<html></html>")
        assert result.success is False
        assert result.error == "Invalid parameters provided"
