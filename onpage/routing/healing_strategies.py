"""
Healing Strategies - recovery of addresses that stopped resolving

Seven independent strategies, tried in a fixed order by the resolver.
Each one inspects the current document (and, for most, the HistoryRecord of
the failing address) and proposes at most one candidate node with a
confidence score.

Order: by_id, by_class, by_attribute, by_text, by_position, by_structure,
by_similarity. See DEFAULT_STRATEGIES.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import logging
import re

from onpage.core.config import ConfidenceTier
from onpage.core.document import (
    Document,
    NodeRef,
    escape_identifier,
    generate_selector,
    quote_attribute,
)
from onpage.core.errors import InvalidAddressError
from onpage.models.resolution import HealingStrategy, HistoryRecord, ResolvedNode
from onpage.routing.selector_memory import SelectorMemory
from onpage.utils.similarity import string_similarity, text_similarity

logger = logging.getLogger(__name__)

LOW = ConfidenceTier.LOW.threshold
MEDIUM = ConfidenceTier.MEDIUM.threshold

MAX_CANDIDATES = 5
MAX_TEXT_LENGTH = 500
TEXT_TAGS = "p, h1, h2, h3, h4, h5, h6, li, td, th, span, div, a, label, button"

_ID_TOKEN = re.compile(r"#([a-zA-Z0-9_-]+)")
_CLASS_TOKEN = re.compile(r"\.([a-zA-Z0-9_-]+)")
_ATTRIBUTE_CLAUSE = re.compile(r"""\[([a-zA-Z-]+)(?:=["']([^"']+)["'])?\]""")


class HealingContext:
    """What a strategy may look at: the live document, memory and the caller's floor."""

    def __init__(self, document: Document, memory: SelectorMemory, floor: float = LOW):
        self.document = document
        self.memory = memory
        self.floor = floor

    def record_for(self, address: str) -> Optional[HistoryRecord]:
        return self.memory.get_record(address)

    def minimum(self, threshold: float) -> float:
        """Acceptance threshold: the stricter of a strategy's own and the caller's."""
        return max(threshold, self.floor)


class RecoveryStrategy(ABC):
    """One healing strategy. Returns a candidate or None; may raise, caller skips it."""

    kind: HealingStrategy

    @abstractmethod
    def attempt(self, address: str, context: HealingContext) -> Optional[ResolvedNode]:
        pass

    def _candidate(self, address: str, element: NodeRef, new_address: str, confidence: float) -> ResolvedNode:
        return ResolvedNode(
            element=element,
            elements=[element],
            address=new_address,
            requested_address=address,
            confidence=max(0.0, min(1.0, confidence)),
            strategy=self.kind,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.kind.value}>"


def _rank_similar(token: str, pool: List[str]) -> List[Tuple[str, float]]:
    """Pool entries scoring >= low against token, best first, at most MAX_CANDIDATES."""
    scored = [(value, string_similarity(token, value)) for value in pool]
    scored = [item for item in scored if item[1] >= LOW]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:MAX_CANDIDATES]


class ById(RecoveryStrategy):
    """Nearest existing id to the id token in the address."""

    kind = HealingStrategy.BY_ID

    def attempt(self, address, context):
        match = _ID_TOKEN.search(address)
        if not match:
            return None
        token = match.group(1)

        ids = list(dict.fromkeys(el.id for el in context.document.query("[id]") if el.id))
        for similar_id, score in _rank_similar(token, ids):
            element = context.document.query_one(f"[id={quote_attribute(similar_id)}]")
            if element is not None:
                return self._candidate(address, element, f"#{escape_identifier(similar_id)}", score)
        return None


class ByClass(RecoveryStrategy):
    """Nearest existing class name to each class token, in token order."""

    kind = HealingStrategy.BY_CLASS

    def attempt(self, address, context):
        tokens = _CLASS_TOKEN.findall(address)
        if not tokens:
            return None

        classes = []
        for element in context.document.query("[class]"):
            classes.extend(element.classes)
        classes = list(dict.fromkeys(classes))

        for token in tokens:
            for similar_class, score in _rank_similar(token, classes):
                new_address = f".{escape_identifier(similar_class)}"
                element = context.document.query_one(new_address)
                if element is not None:
                    return self._candidate(address, element, new_address, score)
        return None


class ByAttribute(RecoveryStrategy):
    """Elements carrying the same attribute name, value compared by edit distance."""

    kind = HealingStrategy.BY_ATTRIBUTE
    PRESENCE_CONFIDENCE = 0.8

    def attempt(self, address, context):
        match = _ATTRIBUTE_CLAUSE.search(address)
        if not match:
            return None
        name, expected = match.group(1), match.group(2)

        minimum = context.minimum(MEDIUM)
        for element in context.document.query(f"[{name}]"):
            actual = element.get(name, "") or ""
            if not expected:
                return self._candidate(address, element, f"[{name}]", self.PRESENCE_CONFIDENCE)
            score = string_similarity(expected, actual)
            if score >= minimum:
                return self._candidate(address, element, f"[{name}={quote_attribute(actual)}]", score)
        return None


class ByText(RecoveryStrategy):
    """Text-bearing element whose words overlap the captured text."""

    kind = HealingStrategy.BY_TEXT

    def attempt(self, address, context):
        record = context.record_for(address)
        if record is None or not record.captured_text:
            return None

        minimum = context.minimum(MEDIUM)
        for element in context.document.query(TEXT_TAGS):
            text = (element.text or "").strip()
            if not text or len(text) > MAX_TEXT_LENGTH:
                continue
            score = text_similarity(record.captured_text, text)
            if score >= minimum:
                return self._candidate(address, element, generate_selector(element), score)
        return None


class ByPosition(RecoveryStrategy):
    """Same sibling slot under the recorded parent."""

    kind = HealingStrategy.BY_POSITION
    CONFIDENCE = 0.7

    def attempt(self, address, context):
        record = context.record_for(address)
        if record is None or not record.parent_address or record.sibling_index < 0:
            return None

        parent = context.document.query_one(record.parent_address)
        if parent is None:
            return None
        children = parent.children
        if record.sibling_index >= len(children):
            return None
        element = children[record.sibling_index]
        return self._candidate(address, element, generate_selector(element), self.CONFIDENCE)


class ByStructure(RecoveryStrategy):
    """Same tag, scored by recorded attribute values and child count."""

    kind = HealingStrategy.BY_STRUCTURE

    def attempt(self, address, context):
        record = context.record_for(address)
        if record is None or not record.tag_name:
            return None

        minimum = context.minimum(MEDIUM)
        for candidate in context.document.query(record.tag_name):
            score, total = 0, 0
            for key, value in record.attribute_snapshot.items():
                total += 1
                if candidate.get(key) == value:
                    score += 1
            if record.child_count is not None:
                total += 1
                if len(candidate.children) == record.child_count:
                    score += 1

            confidence = score / total if total else 0.0
            if confidence >= minimum:
                return self._candidate(address, candidate, generate_selector(candidate), confidence)
        return None


class BySimilarity(RecoveryStrategy):
    """Closest remembered address (as a string) that still resolves."""

    kind = HealingStrategy.BY_SIMILARITY

    def attempt(self, address, context):
        best: Optional[Tuple[str, NodeRef]] = None
        best_score = 0.0

        for remembered in context.memory.addresses():
            score = string_similarity(address, remembered)
            if score <= best_score:
                continue
            try:
                element = context.document.query_one(remembered)
            except InvalidAddressError:
                continue
            if element is not None:
                best = (remembered, element)
                best_score = score

        if best is None or best_score < context.minimum(LOW):
            return None
        return self._candidate(address, best[1], best[0], best_score)


DEFAULT_STRATEGIES: Tuple[RecoveryStrategy, ...] = (
    ById(),
    ByClass(),
    ByAttribute(),
    ByText(),
    ByPosition(),
    ByStructure(),
    BySimilarity(),
)
