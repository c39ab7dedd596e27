"""
Page Analyzer - one-pass semantic and structural page analysis

Sweeps a document once and reports:
- Semantic structure (HTML5 semantic tags, ARIA roles, landmarks)
- Structural analysis (DOM depth, pruned hierarchy, containers, repeating patterns)
- Detected fields (form controls classified, free text, links, images, table columns)
- Entities (products, people, articles)
- Embedded structured data (JSON-LD blocks, microdata types)
- Forms, tables, lists, main content and aggregate statistics

Every scan is capped so large pages stay bounded.

Usage:
    from onpage.tools.page_analyzer import PageAnalyzer

    analyzer = PageAnalyzer()
    analysis = analyzer.analyze_page(document)
    extracted = analyzer.smart_extract(document)
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from urllib.parse import urljoin
import json
import logging
import time

from onpage.core.document import Document, NodeRef
from onpage.core.errors import InvalidAddressError
from onpage.models.extraction import FieldRecord
from onpage.models.tool_result import ToolResult
from onpage.services.telemetry_service import TelemetryRecorder
from onpage.tools.base import BaseTool
from onpage.tools.field_classifier import FieldClassifier

logger = logging.getLogger(__name__)


# Scan caps
MAX_TEXT_ELEMENTS = 200
MAX_LINKS = 200
MAX_IMAGES = 100
MAX_TABLE_ROWS = 500
MAX_PRODUCTS = 10
MAX_PEOPLE = 10
MAX_ARTICLES = 5
MAX_HIERARCHY_DEPTH = 5
MIN_REPEATS = 3

SEMANTIC_TAGS = {
    "article": "article",
    "section": "section",
    "header": "header",
    "footer": "footer",
    "nav": "navigation",
    "aside": "sidebar",
    "main": "main-content",
    "form": "form",
    "table": "table",
    "list": "list",
}

ARIA_ROLES = {
    "navigation": "nav",
    "search": "search",
    "main": "main",
    "banner": "header",
    "contentinfo": "footer",
    "complementary": "aside",
    "form": "form",
    "table": "table",
    "list": "list",
    "listitem": "list-item",
}

SCHEMA_TYPES = ("Product", "Person", "Organization", "Event", "Article", "Review", "Offer", "Place")

LANDMARKS = {
    "banner": ("header", '[role="banner"]'),
    "navigation": ("nav", '[role="navigation"]'),
    "main": ("main", '[role="main"]'),
    "complementary": ("aside", '[role="complementary"]'),
    "contentinfo": ("footer", '[role="contentinfo"]'),
    "search": ('[role="search"]',),
    "form": ("form", '[role="form"]'),
}

HIERARCHY_TAGS = ("header", "nav", "main", "article", "section", "aside", "footer", "form", "table")

CONTAINER_SELECTORS = (
    "main", '[role="main"]', "#main", ".main", "#content", ".content",
    "#container", ".container", "article", "section",
)

REPEATING_SELECTORS = (
    ".item", ".card", ".product", ".post", ".article", "li", "tr",
    '[class*="item"]', '[class*="card"]', '[class*="product"]',
)

MAIN_CONTENT_SELECTORS = ("main", '[role="main"]', "#main", ".main", "#content", ".content", "article")

TEXT_SELECTOR = (
    "p, h1, h2, h3, h4, h5, h6, li, "
    'span[class*="text"], span[class*="label"], span[class*="value"], '
    'div[class*="content"], div[class*="stat"]'
)

PRODUCT_SELECTORS = ('[itemtype*="Product"]', ".product", '[class*="product"]', "[data-product]")
PERSON_SELECTORS = ('[itemtype*="Person"]', ".person", ".author", '[class*="author"]')


def _truncate(text: Optional[str], limit: int = 100) -> str:
    return (text or "")[:limit]


class PageAnalyzer:
    """
    Semantic + structural analyzer.

    A fresh per-call cache backs each analyze_page() run, so the DOM depth
    is computed once per pass even though several sections report it.
    """

    def __init__(
        self,
        classifier: Optional[FieldClassifier] = None,
        telemetry: Optional[TelemetryRecorder] = None
    ):
        self.classifier = classifier or FieldClassifier()
        self.telemetry = telemetry
        self._cache: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def analyze_page(self, document: Document) -> Dict[str, Any]:
        """Full analysis of the document in one pass."""
        start = time.perf_counter()
        self._cache = {}

        analysis = {
            "timestamp": datetime.now().isoformat(),
            "url": document.url,
            "title": document.title,
            "semantic_structure": self.analyze_semantic_structure(document),
            "structural_analysis": self.analyze_structure(document),
            "patterns": self.detect_patterns(document),
            "schema_data": self.extract_schema_data(document),
            "forms": self.analyze_forms(document),
            "tables": self.analyze_tables(document),
            "lists": self.analyze_lists(document),
            "main_content": self.detect_main_content(document),
            "statistics": self.generate_statistics(document),
        }

        duration = time.perf_counter() - start
        if self.telemetry:
            self.telemetry.record_analysis("page", duration, analysis["statistics"])
        logger.info(
            f"[ANALYZER] Analyzed {document.url or 'document'}: "
            f"{analysis['statistics']['total_elements']} elements in {duration * 1000:.1f}ms"
        )
        return analysis

    def smart_extract(self, document: Document) -> Dict[str, Any]:
        """Analysis flattened into {category: [{name, value, type}]} plus entities and structure."""
        return self.flatten(self.analyze_page(document))

    @staticmethod
    def flatten(analysis: Dict[str, Any]) -> Dict[str, Any]:
        data: Dict[str, List[Dict[str, Any]]] = {}
        for category, records in analysis["patterns"]["fields"].items():
            data[category] = [
                {"name": record.field_name, "value": record.value, "type": record.type}
                for record in records
            ]

        return {
            "metadata": {
                "url": analysis["url"],
                "title": analysis["title"],
                "timestamp": analysis["timestamp"],
            },
            "data": data,
            "entities": analysis["patterns"]["entities"],
            "structure": {
                "forms": analysis["forms"],
                "tables": analysis["tables"],
                "lists": analysis["lists"],
            },
            "schema": analysis["schema_data"],
        }

    # ------------------------------------------------------------------
    # Semantic structure
    # ------------------------------------------------------------------

    def analyze_semantic_structure(self, document: Document) -> Dict[str, Any]:
        structure = {"semantic_tags": {}, "aria_roles": {}, "landmarks": []}

        for tag in SEMANTIC_TAGS:
            elements = document.query(tag)
            if elements:
                structure["semantic_tags"][tag] = {
                    "count": len(elements),
                    "elements": [
                        {"id": el.id or None, "classes": el.class_name or None, "text": _truncate(el.text) or None}
                        for el in elements
                    ],
                }

        for role in ARIA_ROLES:
            elements = document.query(f'[role="{role}"]')
            if elements:
                structure["aria_roles"][role] = {
                    "count": len(elements),
                    "elements": [
                        {"tag": el.tag_name, "id": el.id or None, "label": el.get("aria-label")}
                        for el in elements
                    ],
                }

        structure["landmarks"] = self.detect_landmarks(document)
        return structure

    def detect_landmarks(self, document: Document) -> List[Dict[str, Any]]:
        landmarks = []
        for landmark, selectors in LANDMARKS.items():
            for selector in selectors:
                elements = document.query(selector)
                if elements:
                    landmarks.append({"type": landmark, "selector": selector, "count": len(elements)})
        return landmarks

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def analyze_structure(self, document: Document) -> Dict[str, Any]:
        return {
            "depth": self.calculate_dom_depth(document),
            "hierarchy": self.build_hierarchy(document),
            "containers": self.detect_containers(document),
            "repeating_patterns": self.detect_repeating_patterns(document),
        }

    def calculate_dom_depth(self, document: Document) -> int:
        """Maximum element depth below the root, memoized for the current pass."""
        if "dom_depth" in self._cache:
            return self._cache["dom_depth"]

        root = document.root
        max_depth = 0
        stack = [(root, 0)] if root is not None else []
        while stack:
            node, depth = stack.pop()
            max_depth = max(max_depth, depth)
            for child in node.children:
                stack.append((child, depth + 1))

        self._cache["dom_depth"] = max_depth
        return max_depth

    def build_hierarchy(self, document: Document) -> Optional[Dict[str, Any]]:
        """Tree of significant nodes (landmark tags, roles, ids), at most 5 levels deep."""
        root = document.root
        if root is None:
            return None

        def describe(element: NodeRef) -> Dict[str, Any]:
            return {
                "tag": element.tag_name,
                "id": element.id or None,
                "classes": element.class_name or None,
                "role": element.get("role"),
                "children": [],
            }

        tree = describe(root)
        stack = [(root, tree, 0)]
        while stack:
            element, node, level = stack.pop()
            if level >= MAX_HIERARCHY_DEPTH:
                continue
            for child in element.children:
                if child.tag_name in HIERARCHY_TAGS or child.get("role") or child.id:
                    child_node = describe(child)
                    node["children"].append(child_node)
                    stack.append((child, child_node, level + 1))
        return tree

    def detect_containers(self, document: Document) -> List[Dict[str, Any]]:
        containers = []
        for selector in CONTAINER_SELECTORS:
            for el in self._safe_query(document, selector):
                children = el.children
                if children:
                    containers.append({
                        "selector": selector,
                        "tag": el.tag_name,
                        "id": el.id or None,
                        "classes": el.class_name or None,
                        "children_count": len(children),
                        "text_length": len(el.text or ""),
                    })
        return containers

    def detect_repeating_patterns(self, document: Document) -> List[Dict[str, Any]]:
        patterns = []
        for selector in REPEATING_SELECTORS:
            elements = self._safe_query(document, selector)
            if len(elements) >= MIN_REPEATS:
                patterns.append({
                    "selector": selector,
                    "count": len(elements),
                    "sample": self.extract_sample_data(elements[0]),
                })
        return patterns

    @staticmethod
    def extract_sample_data(element: NodeRef) -> Dict[str, Any]:
        return {
            "text": _truncate((element.text or "").strip()),
            "classes": element.class_name or None,
            "children_count": len(element.children),
        }

    # ------------------------------------------------------------------
    # Detected fields
    # ------------------------------------------------------------------

    def detect_patterns(self, document: Document) -> Dict[str, Any]:
        fields: Dict[str, List[FieldRecord]] = {}

        def add(category: str, record: FieldRecord):
            group = fields.setdefault(category, [])
            record.id = f"{category}_{len(group)}"
            group.append(record)

        for control in document.query("input, textarea, select"):
            category = self.classifier.classify(control, document)
            add(category.value, FieldRecord(
                field_name=control.get("name") or control.id or "",
                value=control.value or None,
                type=control.input_type or "text",
                metadata={
                    "placeholder": control.get("placeholder"),
                    "semantic_type": category.value,
                },
            ))

        text_count = 0
        for element in document.query(TEXT_SELECTOR):
            if text_count >= MAX_TEXT_ELEMENTS:
                break
            if element.closest("script, style, noscript") is not None:
                continue
            text = (element.text or "").strip()
            if not text:
                continue
            if len(text) > 10 or element.tag_name in ("h1", "h2", "h3", "h4", "h5", "h6") or "value" in element.class_name:
                name = element.id or (element.classes[0] if element.classes else f"text_{text_count}")
                add("content", FieldRecord(field_name=name, value=text, type=element.tag_name))
                text_count += 1

        link_count = 0
        for link in document.query("a[href]"):
            if link_count >= MAX_LINKS:
                break
            text = (link.text or "").strip()
            href = link.get("href")
            if href and text:
                add("link", FieldRecord(
                    field_name=link.id or f"link_{link_count}",
                    value=self._absolute(document, href),
                    type="url",
                    metadata={"placeholder": text},
                ))
                link_count += 1

        image_count = 0
        for image in document.query("img[src]"):
            if image_count >= MAX_IMAGES:
                break
            src = image.get("src")
            if src:
                alt = image.get("alt") or None
                add("image", FieldRecord(
                    field_name=alt or f"image_{image_count}",
                    value=self._absolute(document, src),
                    type="image",
                    metadata={"placeholder": alt},
                ))
                image_count += 1

        for table_index, table in enumerate(document.query("table")):
            self._table_fields(table, table_index, add)

        return {"fields": fields, "entities": self.detect_entities(document)}

    @staticmethod
    def _cells(row: NodeRef) -> List[NodeRef]:
        return [c for c in row.children if c.tag_name in ("td", "th")]

    def _table_fields(self, table: NodeRef, table_index: int, add):
        """One FieldRecord group per header column; rows identified by their first cells."""
        rows = table.query("tr")
        if len(rows) < 2:
            return

        header_row = table.query_one("thead tr") or rows[0]
        headers = [
            (cell.text or "").strip() or f"Column_{i}"
            for i, cell in enumerate(self._cells(header_row))
        ]
        table_id = table.id or f"table_{table_index}"

        body_rows = [r for r in rows if r != header_row and r.closest("thead") is None][:MAX_TABLE_ROWS]
        for row_index, row in enumerate(body_rows):
            cells = self._cells(row)
            texts = [(c.text or "").strip() for c in cells]
            row_id = (texts[0] if texts else "") or (texts[1] if len(texts) > 1 else "") or f"row_{row_index}"

            for cell_index, cell_text in enumerate(texts):
                if cell_index >= len(headers) or not cell_text:
                    continue
                header = headers[cell_index]
                add(header, FieldRecord(
                    field_name=row_id,
                    value=cell_text,
                    type="table_cell",
                    metadata={
                        "table_id": table_id,
                        "row_index": row_index,
                        "header": header,
                        "row_identifier": row_id,
                    },
                ))

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def detect_entities(self, document: Document) -> List[Dict[str, Any]]:
        entities = []
        for entity_type, items in (
            ("products", self.detect_products(document)),
            ("people", self.detect_people(document)),
            ("articles", self.detect_articles(document)),
        ):
            if items:
                entities.append({"type": entity_type, "count": len(items), "items": items})
        return entities

    def _unique_matches(self, document: Document, selectors) -> List[NodeRef]:
        seen = set()
        matches = []
        for selector in selectors:
            for element in self._safe_query(document, selector):
                if element not in seen:
                    seen.add(element)
                    matches.append(element)
        return matches

    def detect_products(self, document: Document) -> List[Dict[str, Any]]:
        products = []
        for el in self._unique_matches(document, PRODUCT_SELECTORS):
            if len(products) >= MAX_PRODUCTS:
                break
            product = {
                "name": self.extract_text(el, (".name", ".title", '[itemprop="name"]')),
                "price": self.extract_text(el, (".price", '[itemprop="price"]')),
                "description": self.extract_text(el, (".description", '[itemprop="description"]')),
                "image": self.extract_image(document, el),
                "link": self.extract_link(document, el),
            }
            if product["name"] or product["price"]:
                products.append(product)
        return products

    def detect_people(self, document: Document) -> List[Dict[str, Any]]:
        people = []
        for el in self._unique_matches(document, PERSON_SELECTORS):
            if len(people) >= MAX_PEOPLE:
                break
            person = {
                "name": self.extract_text(el, (".name", '[itemprop="name"]')),
                "role": self.extract_text(el, (".role", ".title", '[itemprop="jobTitle"]')),
                "email": self.extract_text(el, (".email", '[itemprop="email"]')),
                "image": self.extract_image(document, el),
            }
            if person["name"]:
                people.append(person)
        return people

    def detect_articles(self, document: Document) -> List[Dict[str, Any]]:
        articles = []
        for el in self._unique_matches(document, ("article", '[itemtype*="Article"]')):
            if len(articles) >= MAX_ARTICLES:
                break
            article = {
                "title": self.extract_text(el, ("h1", "h2", ".title", '[itemprop="headline"]')),
                "author": self.extract_text(el, (".author", '[itemprop="author"]')),
                "date": self.extract_text(el, (".date", "time", '[itemprop="datePublished"]')),
                "content": self.extract_text(el, (".content", '[itemprop="articleBody"]'), 200),
            }
            if article["title"]:
                articles.append(article)
        return articles

    @staticmethod
    def extract_text(parent: NodeRef, selectors, max_length: int = 100) -> Optional[str]:
        for selector in selectors:
            element = parent.query_one(selector)
            if element is not None:
                text = (element.text or "").strip()
                if text:
                    return text[:max_length]
        return None

    def extract_image(self, document: Document, parent: NodeRef) -> Optional[str]:
        img = parent.query_one("img")
        if img is None:
            return None
        src = img.get("src") or img.get("data-src")
        return self._absolute(document, src) if src else None

    def extract_link(self, document: Document, parent: NodeRef) -> Optional[str]:
        link = parent if parent.tag_name == "a" else parent.query_one("a")
        if link is None or not link.get("href"):
            return None
        return self._absolute(document, link.get("href"))

    # ------------------------------------------------------------------
    # Structured data, forms, tables, lists
    # ------------------------------------------------------------------

    def extract_schema_data(self, document: Document) -> List[Dict[str, Any]]:
        schema_data = []

        for script in document.query('script[type="application/ld+json"]'):
            try:
                schema_data.append({"type": "json-ld", "data": json.loads(script.text)})
            except ValueError as e:
                logger.debug(f"[ANALYZER] Skipping malformed JSON-LD block: {e}")

        for schema_type in SCHEMA_TYPES:
            elements = document.query(f'[itemtype*="{schema_type}"]')
            if elements:
                schema_data.append({"type": "microdata", "schema_type": schema_type, "count": len(elements)})

        return schema_data

    def analyze_forms(self, document: Document) -> List[Dict[str, Any]]:
        forms = []
        for index, form in enumerate(document.query("form")):
            forms.append({
                "id": form.id or f"form_{index}",
                "action": form.get("action"),
                "method": (form.get("method") or "get").lower(),
                "fields": [
                    {
                        "name": field.get("name") or field.id or None,
                        "type": field.input_type or "text",
                        "semantic_type": self.classifier.classify(field, document).value,
                        "required": field.has_attribute("required"),
                        "value": field.value or None,
                    }
                    for field in form.query("input, textarea, select")
                ],
            })
        return forms

    def analyze_tables(self, document: Document) -> List[Dict[str, Any]]:
        tables = []
        for index, table in enumerate(document.query("table")):
            rows = table.query("tr")
            header_row = table.query_one("thead tr") or (rows[0] if rows else None)
            tables.append({
                "id": table.id or f"table_{index}",
                "rows": len(rows),
                "columns": len(self._cells(rows[0])) if rows else 0,
                "headers": [(c.text or "").strip() for c in self._cells(header_row)] if header_row else [],
                "sample": [[(c.text or "").strip() for c in self._cells(row)] for row in rows[:3]],
            })
        return tables

    def analyze_lists(self, document: Document) -> List[Dict[str, Any]]:
        lists = []
        for index, list_el in enumerate(document.query("ul, ol")):
            items = [_truncate((li.text or "").strip()) for li in list_el.query("li")][:10]
            if items:
                lists.append({"id": list_el.id or f"list_{index}", "type": list_el.tag_name, "items": items})
        return lists

    def detect_main_content(self, document: Document) -> Optional[Dict[str, Any]]:
        for selector in MAIN_CONTENT_SELECTORS:
            element = document.query_one(selector)
            if element is not None:
                return {
                    "selector": selector,
                    "tag": element.tag_name,
                    "text_length": len(element.text or ""),
                    "children_count": len(element.children),
                }
        return None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def generate_statistics(self, document: Document) -> Dict[str, int]:
        root = document.root
        return {
            "total_elements": len(document.all_elements()),
            "total_text": len(root.text) if root is not None else 0,
            "total_images": len(document.query("img")),
            "total_links": len(document.query("a")),
            "total_forms": len(document.query("form")),
            "total_tables": len(document.query("table")),
            "total_inputs": len(document.query("input, textarea, select")),
            "dom_depth": self.calculate_dom_depth(document),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_query(document: Document, selector: str) -> List[NodeRef]:
        try:
            return document.query(selector)
        except InvalidAddressError as e:
            logger.debug(f"[ANALYZER] Skipping selector {selector}: {e}")
            return []

    @staticmethod
    def _absolute(document: Document, url: str) -> str:
        return urljoin(document.url, url) if document.url else url


class AnalyzePageTool(BaseTool):
    """Tool boundary for the analyzer: full analysis or flattened smart extraction."""

    def __init__(self, analyzer: Optional[PageAnalyzer] = None):
        self.analyzer = analyzer or PageAnalyzer()

    @property
    def name(self) -> str:
        return "analyze_page"

    @property
    def description(self) -> str:
        return "Analyze page semantics and structure, or flatten detected fields with mode='smart_extract'"

    def validate_params(self, **kwargs) -> bool:
        return isinstance(kwargs.get("document"), Document) and kwargs.get("mode", "analyze") in ("analyze", "smart_extract")

    def _execute_impl(self, **kwargs) -> ToolResult:
        document: Document = kwargs["document"]
        if kwargs.get("mode", "analyze") == "smart_extract":
            data = self.analyzer.smart_extract(document)
            return ToolResult(success=True, data=data, metadata={"categories": len(data["data"])})

        data = self.analyzer.analyze_page(document)
        return ToolResult(success=True, data=data, metadata={"elements": data["statistics"]["total_elements"]})
