"""
Smart Extractor - resilient extraction organized into fields and lists

Resolves every requested target through the self-healing resolver, reads
a typed value from each element, validates and deduplicates the values,
and organizes them into single-valued fields and named lists.

An address requested more than once in the same call is a list target:
every node it matches becomes one list entry.

Usage:
    from onpage.tools.smart_extractor import SmartExtractor

    extractor = SmartExtractor(resolver=resolver, telemetry=telemetry)
    organized = extractor.extract_from_targets(document, [
        ExtractionTarget(name="title", address="h1"),
        ExtractionTarget(name="price_1", address=".price"),
        ExtractionTarget(name="price_2", address=".price"),
    ])
    organized.flat_fields["title"]
    organized.smart_lists["price"]
"""

from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime
from urllib.parse import urljoin
import logging
import uuid

from onpage.core.document import Document, NodeRef, generate_unique_selector
from onpage.models.extraction import (
    ExtractedItem,
    ExtractionOptions,
    ExtractionSummary,
    ExtractionTarget,
    FieldEntry,
    OrganizedExtraction,
)
from onpage.models.tool_result import ToolResult
from onpage.routing.selector_resolver import ResolveOptions, SelectorResolver
from onpage.services.telemetry_service import TelemetryRecorder
from onpage.tools.base import BaseTool
from onpage.tools.field_classifier import FieldClassifier
from onpage.tools.page_analyzer import PageAnalyzer
from onpage.utils.helpers import strip_trailing_index
from onpage.utils.similarity import normalize_text

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 10000
FORM_TYPES = ("input", "textarea", "select")
AUTO_TEXT_SELECTOR = 'p, h1, h2, h3, h4, h5, h6, span[class*="text"], div[class*="content"]'


class SmartExtractor:
    """
    Extraction organizer.

    Engines are injected; defaults are built when omitted so the extractor
    can be used standalone.
    """

    def __init__(
        self,
        resolver: Optional[SelectorResolver] = None,
        classifier: Optional[FieldClassifier] = None,
        analyzer: Optional[PageAnalyzer] = None,
        telemetry: Optional[TelemetryRecorder] = None,
        resolve_options: Optional[ResolveOptions] = None
    ):
        self.telemetry = telemetry
        self.resolver = resolver or SelectorResolver(telemetry=telemetry)
        self.classifier = classifier or FieldClassifier()
        self.analyzer = analyzer or PageAnalyzer(classifier=self.classifier, telemetry=telemetry)
        self.resolve_options = resolve_options or ResolveOptions()

    # ------------------------------------------------------------------
    # Target extraction
    # ------------------------------------------------------------------

    def extract_from_targets(self, document: Document, targets: Sequence[ExtractionTarget]) -> OrganizedExtraction:
        """Resolve, read, validate, dedup and organize every target."""
        extraction_id = f"extraction_{uuid.uuid4().hex[:8]}"
        if self.telemetry:
            self.telemetry.start_extraction(extraction_id, {"targets": len(targets)})

        # Group by address, first-seen order
        groups: Dict[str, List[int]] = {}
        for index, target in enumerate(targets):
            groups.setdefault(target.address, []).append(index)

        results: List[ExtractedItem] = []
        for address, indexes in groups.items():
            first = targets[indexes[0]]
            if len(indexes) > 1:
                results.extend(self._extract_list(document, address, first.name))
            else:
                item = self._extract_single(document, address, first.name, str(indexes[0]))
                if item is not None:
                    results.append(item)

        organized = self.organize(self.remove_duplicates(results), document)

        if self.telemetry:
            self.telemetry.end_extraction(extraction_id, success=len(results) > 0, items=len(results))
        logger.info(f"[EXTRACTOR] Extracted {organized.total_items} items from {len(targets)} targets")
        return organized

    def _extract_list(self, document: Document, address: str, name: str) -> List[ExtractedItem]:
        result = self.resolver.resolve_all(document, address, self.resolve_options)
        if not result.success:
            logger.warning(f"[EXTRACTOR] Failed to extract list {address}: {result.error}")
            return []

        list_name = strip_trailing_index(name)
        items = []
        for index, element in enumerate(result.elements):
            item = self.extract_element_data(element, list_name, f"grp_{index}", document)
            if self.validate(item):
                item.is_list = True
                item.list_name = list_name
                item.resilience = {"confidence": result.confidence, "list_index": index}
                items.append(item)
        return items

    def _extract_single(self, document: Document, address: str, name: str, item_id: str) -> Optional[ExtractedItem]:
        result = self.resolver.resolve(document, address, self.resolve_options)
        if not result.success:
            logger.warning(f"[EXTRACTOR] Failed to extract {address}: {result.error}")
            return None

        item = self.extract_element_data(result.element, name, item_id, document)
        if not self.validate(item):
            return None
        item.resilience = {
            "confidence": result.confidence,
            "attempts": result.attempts,
            "strategy": result.strategy.value,
        }
        return item

    # ------------------------------------------------------------------
    # Element data
    # ------------------------------------------------------------------

    @staticmethod
    def detect_element_type(element: NodeRef) -> str:
        tag = element.tag_name
        if tag in FORM_TYPES:
            return tag
        if tag == "img":
            return "image"
        if tag == "a":
            return "link"
        if tag == "button":
            return "button"
        return "text"

    def extract_element_data(
        self,
        element: NodeRef,
        field_name: str,
        item_id: str,
        document: Optional[Document] = None
    ) -> ExtractedItem:
        """Typed value plus provenance metadata for one element."""
        element_type = self.detect_element_type(element)
        metadata: Dict[str, Any] = {}
        base_url = document.url if document is not None else ""

        if element_type == "input":
            value = element.value or element.get("placeholder") or ""
            metadata["input_type"] = element.input_type
        elif element_type == "textarea":
            value = element.value or ""
        elif element_type == "select":
            value = element.value or ""
            metadata["selected_text"] = element.selected_text
        elif element_type == "image":
            value = element.get("src") or element.get("data-src") or ""
            value = urljoin(base_url, value) if base_url and value else value
            metadata["alt"] = element.get("alt") or ""
        elif element_type == "link":
            value = element.get("href") or ""
            value = urljoin(base_url, value) if base_url and value else value
            metadata["text"] = normalize_text(element.text)
        else:
            value = self.extract_text_content(element)

        if element_type in FORM_TYPES:
            metadata["semantic_category"] = self.classifier.classify(element, document).value

        metadata["class_name"] = element.class_name
        metadata["id"] = element.id
        metadata["data_attributes"] = element.data_attributes()

        return ExtractedItem(
            id=item_id,
            field_name=field_name,
            value=value,
            type=element_type,
            metadata=metadata,
        )

    @staticmethod
    def extract_text_content(element: NodeRef) -> str:
        """Visible text (no script/style/noscript), whitespace-normalized."""
        return normalize_text(element.visible_text())

    # ------------------------------------------------------------------
    # Cleaning & organizing
    # ------------------------------------------------------------------

    @staticmethod
    def validate(item: ExtractedItem) -> bool:
        """Reject empty values; truncate oversized ones in place."""
        if not item.value or not item.value.strip():
            return False
        if len(item.value) > MAX_VALUE_LENGTH:
            item.value = item.value[:MAX_VALUE_LENGTH] + "..."
        return True

    @staticmethod
    def remove_duplicates(items: Sequence[ExtractedItem]) -> List[ExtractedItem]:
        seen = set()
        unique = []
        for item in items:
            if item.dedup_key in seen:
                continue
            seen.add(item.dedup_key)
            unique.append(item)
        return unique

    def organize(self, items: Sequence[ExtractedItem], document: Optional[Document] = None) -> OrganizedExtraction:
        fields: Dict[str, List[FieldEntry]] = {}
        lists: Dict[str, List[FieldEntry]] = {}

        for item in items:
            if item.is_list:
                lists.setdefault(item.list_name or item.field_name, []).append(FieldEntry(
                    value=item.value,
                    type=item.type,
                    metadata=item.metadata,
                    resilience=item.resilience,
                ))
            else:
                fields.setdefault(item.field_name, []).append(FieldEntry(
                    value=item.value,
                    type=item.type,
                    metadata=item.metadata,
                ))

        return OrganizedExtraction(
            url=document.url if document is not None else "",
            title=document.title if document is not None else "",
            total_items=len(items),
            flat_fields=fields,
            smart_lists=lists,
            summary=self.generate_summary(fields, lists),
        )

    @staticmethod
    def generate_summary(fields: Dict[str, List[FieldEntry]], lists: Dict[str, List[FieldEntry]]) -> ExtractionSummary:
        return ExtractionSummary(
            total_single_fields=len(fields),
            total_lists=len(lists),
            field_counts={name: len(entries) for name, entries in fields.items()},
            list_counts={name: len(entries) for name, entries in lists.items()},
        )

    # ------------------------------------------------------------------
    # Automatic extraction
    # ------------------------------------------------------------------

    def auto_extract(
        self,
        document: Document,
        options: Optional[ExtractionOptions] = None,
        container: str = "body",
        include_inputs: bool = True
    ) -> Optional[OrganizedExtraction]:
        """Generate targets for inputs/text/links/images under a container and extract them."""
        options = options or ExtractionOptions()
        root = document.query_one(container)
        if root is None:
            logger.warning(f"[EXTRACTOR] Container not found: {container}")
            return None

        targets: List[ExtractionTarget] = []

        if include_inputs:
            for index, control in enumerate(root.query("input, textarea, select")):
                name = control.get("name") or control.id or f"field_{index}"
                targets.append(ExtractionTarget(name=name, address=generate_unique_selector(control)))

        if options.text:
            for index, element in enumerate(root.query(AUTO_TEXT_SELECTOR)):
                if len((element.text or "").strip()) > 10:
                    targets.append(ExtractionTarget(name=f"text_{index}", address=generate_unique_selector(element)))

        if options.links:
            for index, link in enumerate(root.query("a[href]")):
                targets.append(ExtractionTarget(name=f"link_{index}", address=generate_unique_selector(link)))

        if options.images:
            for index, image in enumerate(root.query("img[src]")):
                targets.append(ExtractionTarget(name=f"image_{index}", address=generate_unique_selector(image)))

        return self.extract_from_targets(document, targets)

    def semantic_extract(self, document: Document) -> Dict[str, Any]:
        """Analyzer-driven extraction with a summary of what was found."""
        analysis = self.analyzer.analyze_page(document)
        smart = self.analyzer.flatten(analysis)

        organized = {
            "timestamp": datetime.now().isoformat(),
            "url": document.url,
            "title": document.title,
            "semantic_analysis": {
                "structure": analysis["semantic_structure"],
                "patterns": analysis["patterns"],
                "main_content": analysis["main_content"],
            },
            "extracted_data": smart["data"],
            "entities": smart["entities"],
            "structure": {
                "forms": analysis["forms"],
                "tables": analysis["tables"],
                "lists": analysis["lists"],
                "hierarchy": analysis["structural_analysis"]["hierarchy"],
            },
            "schema_data": smart["schema"],
            "statistics": analysis["statistics"],
            "summary": {
                "total_fields": sum(len(entries) for entries in smart["data"].values()),
                "total_entities": sum(entity.get("count", 0) for entity in smart["entities"]),
                "total_forms": len(analysis["forms"]),
                "total_tables": len(analysis["tables"]),
                "dom_depth": analysis["structural_analysis"]["depth"],
            },
        }
        logger.info(f"[EXTRACTOR] Semantic extraction complete: {organized['summary']}")
        return organized


class SmartExtractTool(BaseTool):
    """
    Tool boundary for extraction.

    Modes:
    - targets: extract the given [{name, address}] targets (default)
    - auto: generate targets from the page
    - semantic: analyzer-driven extraction
    """

    MODES = ("targets", "auto", "semantic")

    def __init__(self, extractor: Optional[SmartExtractor] = None):
        self.extractor = extractor or SmartExtractor()

    @property
    def name(self) -> str:
        return "smart_extract"

    @property
    def description(self) -> str:
        return "Extract selected elements with self-healing selectors and organize them into fields and lists"

    def validate_params(self, **kwargs) -> bool:
        mode = kwargs.get("mode", "targets")
        if not isinstance(kwargs.get("document"), Document) or mode not in self.MODES:
            return False
        if mode == "targets":
            return bool(kwargs.get("targets"))
        return True

    @staticmethod
    def _parse_targets(raw: Sequence[Any]) -> List[ExtractionTarget]:
        targets = []
        for target in raw:
            if isinstance(target, ExtractionTarget):
                targets.append(target)
            else:
                targets.append(ExtractionTarget(
                    name=target.get("name"),
                    address=target.get("address") or target.get("selector"),
                ))
        return targets

    def _execute_impl(self, **kwargs) -> ToolResult:
        document: Document = kwargs["document"]
        mode = kwargs.get("mode", "targets")

        if mode == "semantic":
            data = self.extractor.semantic_extract(document)
            return ToolResult(success=True, data=data, metadata={"mode": mode})

        if mode == "auto":
            organized = self.extractor.auto_extract(
                document,
                kwargs.get("options"),
                container=kwargs.get("container", "body"),
            )
        else:
            organized = self.extractor.extract_from_targets(document, self._parse_targets(kwargs["targets"]))

        if organized is None:
            return ToolResult(success=False, error="Container not found", metadata={"mode": mode})

        return ToolResult(
            success=organized.total_items > 0,
            data=organized,
            error=None if organized.total_items > 0 else "No data extracted",
            metadata={"mode": mode, "items": organized.total_items},
        )
