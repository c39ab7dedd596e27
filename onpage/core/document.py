"""
Document Query Surface

Abstract read-only view of a rendered document plus a BeautifulSoup-backed
implementation. Everything above this module (resolver, analyzer, collector)
talks to `Document` / `NodeRef` only.

Usage:
    from onpage.core.document import SoupDocument

    doc = SoupDocument(html, url="https://example.com/list")
    nodes = doc.query("ul.results > li")
    first = doc.query_one("#title")
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment
import soupsieve

from onpage.core.config import settings
from onpage.core.errors import InvalidAddressError


class NodeRef(ABC):
    """A single element of the document."""

    @property
    @abstractmethod
    def tag_name(self) -> str:
        """Lower-cased tag name."""

    @property
    @abstractmethod
    def attributes(self) -> Dict[str, str]:
        """All attributes as plain strings (class joined by spaces)."""

    @property
    @abstractmethod
    def parent(self) -> Optional["NodeRef"]:
        pass

    @property
    @abstractmethod
    def children(self) -> List["NodeRef"]:
        """Element children only, in document order."""

    @property
    @abstractmethod
    def text(self) -> str:
        """Raw text content of the subtree."""

    @abstractmethod
    def text_parts(self) -> List[str]:
        """Stripped text of each direct child node (text or element)."""

    @abstractmethod
    def visible_text(self) -> str:
        """Text content without script/style/noscript subtrees."""

    @abstractmethod
    def query(self, address: str) -> List["NodeRef"]:
        """Query descendants of this node."""

    @abstractmethod
    def closest(self, address: str) -> Optional["NodeRef"]:
        """Nearest ancestor-or-self matching the address."""

    @abstractmethod
    def inner_html(self) -> str:
        pass

    # Derived accessors

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def classes(self) -> List[str]:
        return [c for c in self.attributes.get("class", "").split() if c]

    @property
    def class_name(self) -> str:
        return " ".join(self.classes)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def query_one(self, address: str) -> Optional["NodeRef"]:
        found = self.query(address)
        return found[0] if found else None

    @property
    def sibling_index(self) -> int:
        parent = self.parent
        if parent is None:
            return -1
        for index, child in enumerate(parent.children):
            if child == self:
                return index
        return -1

    # Form-control accessors

    @property
    def input_type(self) -> str:
        if self.tag_name == "input":
            return (self.get("type") or "text").lower()
        if self.tag_name in ("select", "textarea"):
            return self.tag_name
        return (self.get("type") or "").lower()

    @property
    def options(self) -> List[Dict[str, Any]]:
        if self.tag_name != "select":
            return []
        return [
            {
                "value": opt.get("value", opt.text.strip()),
                "text": opt.text.strip(),
                "selected": opt.has_attribute("selected"),
            }
            for opt in self.query("option")
        ]

    @property
    def value(self) -> str:
        """Current control value as rendered in the markup."""
        if self.tag_name == "textarea":
            return self.text
        if self.tag_name == "select":
            options = self.options
            for opt in options:
                if opt["selected"]:
                    return opt["value"]
            return options[0]["value"] if options else ""
        return self.get("value", "") or ""

    @property
    def selected_text(self) -> str:
        options = self.options
        for opt in options:
            if opt["selected"]:
                return opt["text"]
        return options[0]["text"] if options else ""

    def data_attributes(self) -> Dict[str, str]:
        return {
            name[len("data-"):]: value
            for name, value in self.attributes.items()
            if name.startswith("data-")
        }


class Document(ABC):
    """A rendered document that can be queried by address."""

    url: str = ""
    title: str = ""

    @property
    @abstractmethod
    def root(self) -> Optional[NodeRef]:
        """The <body> element (or the document element when absent)."""

    @abstractmethod
    def query(self, address: str) -> List[NodeRef]:
        """
        Run a selector query against the whole document.

        Raises:
            InvalidAddressError: if the address is not a valid selector
        """

    @abstractmethod
    def serialize(self) -> str:
        """Serialized markup, used for cheap content fingerprints."""

    def query_one(self, address: str) -> Optional[NodeRef]:
        found = self.query(address)
        return found[0] if found else None

    def all_elements(self) -> List[NodeRef]:
        return self.query("*")


class SoupNode(NodeRef):
    """NodeRef over a BeautifulSoup Tag. Equality is tag identity."""

    SKIP_TAGS = ("script", "style", "noscript")

    def __init__(self, tag: Tag):
        self._tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SoupNode) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __repr__(self) -> str:
        return f"<SoupNode {self.tag_name}#{self.id}.{'.'.join(self.classes)}>"

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def tag_name(self) -> str:
        return (self._tag.name or "").lower()

    @property
    def attributes(self) -> Dict[str, str]:
        attrs = {}
        for name, value in self._tag.attrs.items():
            attrs[name] = " ".join(value) if isinstance(value, list) else str(value)
        return attrs

    @property
    def parent(self) -> Optional[NodeRef]:
        parent = self._tag.parent
        if parent is None or not isinstance(parent, Tag) or parent.name == "[document]":
            return None
        return SoupNode(parent)

    @property
    def children(self) -> List[NodeRef]:
        return [SoupNode(child) for child in self._tag.children if isinstance(child, Tag)]

    @property
    def text(self) -> str:
        return self._tag.get_text()

    def text_parts(self) -> List[str]:
        parts = []
        for child in self._tag.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                text = str(child).strip()
            elif isinstance(child, Tag):
                text = child.get_text().strip()
            else:
                continue
            if text:
                parts.append(text)
        return parts

    def visible_text(self) -> str:
        chunks = []
        for piece in self._tag.find_all(string=True):
            if isinstance(piece, Comment):
                continue
            if any(p.name in self.SKIP_TAGS for p in piece.parents if isinstance(p, Tag)):
                continue
            chunks.append(str(piece))
        return "".join(chunks)

    def query(self, address: str) -> List[NodeRef]:
        return [SoupNode(t) for t in _select(self._tag, address)]

    def closest(self, address: str) -> Optional[NodeRef]:
        try:
            found = soupsieve.closest(address, self._tag)
        except soupsieve.SelectorSyntaxError as e:
            raise InvalidAddressError(address, str(e)) from e
        return SoupNode(found) if found is not None else None

    def inner_html(self) -> str:
        return self._tag.decode_contents()


class SoupDocument(Document):
    """Document backed by BeautifulSoup (lxml parser by default)."""

    def __init__(self, html: str, url: str = "", parser: Optional[str] = None):
        self.html = html or ""
        self.url = url
        self.soup = BeautifulSoup(self.html, parser or settings.html_parser)
        title_tag = self.soup.find("title")
        self.title = title_tag.get_text().strip() if title_tag else ""

    @property
    def root(self) -> Optional[NodeRef]:
        body = self.soup.body
        if body is not None:
            return SoupNode(body)
        for child in self.soup.children:
            if isinstance(child, Tag):
                return SoupNode(child)
        return None

    def query(self, address: str) -> List[NodeRef]:
        return [SoupNode(t) for t in _select(self.soup, address)]

    def serialize(self) -> str:
        return str(self.soup)


def _select(scope: Tag, address: str) -> List[Tag]:
    if not address or not address.strip():
        raise InvalidAddressError(address or "", "empty selector")
    try:
        return scope.select(address)
    except soupsieve.SelectorSyntaxError as e:
        raise InvalidAddressError(address, str(e)) from e
    except ValueError as e:
        raise InvalidAddressError(address, str(e)) from e


def escape_identifier(value: str) -> str:
    """CSS-escape an id or class name for use in a selector."""
    return soupsieve.escape(value)


def quote_attribute(value: str) -> str:
    """Quote an attribute value for an [name="value"] clause."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def generate_selector(element: Optional[NodeRef]) -> str:
    """
    Short address for an element.
    Priority: id > first class > tag:nth-child(n) > tag.
    """
    if element is None:
        return ""
    if element.id:
        return f"#{escape_identifier(element.id)}"
    classes = element.classes
    if classes:
        return f".{escape_identifier(classes[0])}"
    parent = element.parent
    if parent is not None:
        index = element.sibling_index + 1
        return f"{element.tag_name}:nth-child({index})"
    return element.tag_name


def generate_unique_selector(element: NodeRef) -> str:
    """
    Address that disambiguates same-tag siblings with :nth-child.
    Used when auto-generating extraction targets.
    """
    if element.id:
        return f"#{escape_identifier(element.id)}"
    selector = element.tag_name
    classes = element.classes
    if classes:
        selector += f".{escape_identifier(classes[0])}"
    parent = element.parent
    if parent is not None:
        same_tag = [c for c in parent.children if c.tag_name == element.tag_name]
        if len(same_tag) > 1:
            selector += f":nth-child({element.sibling_index + 1})"
    return selector
