"""HTML document model.

Wraps a BeautifulSoup tree and exposes the small set of DOM operations the
command handlers need: stylesheet links, head insertion, CSS selector
queries (soupsieve), and markup serialization.
"""

from __future__ import annotations

from typing import Any

from bs4 import BeautifulSoup, Tag


class Document:
    """Mutable HTML document.

    Example:
        doc = Document("<html><head></head><body><p>hi</p></body></html>")
        for tag in doc.query_selector_all("p"):
            print(element_record(tag, 500, 1000))
    """

    def __init__(self, html: str = "") -> None:
        """Parse a document.

        Args:
            html: HTML source; an empty string yields an empty document
        """
        self._soup = BeautifulSoup(html, "html.parser")

    @property
    def root(self) -> Tag:
        """The <html> element, or the parse root for fragments."""
        return self._soup.html or self._soup

    @property
    def head(self) -> Tag:
        """The <head> element, created on first access if missing."""
        head = self._soup.head
        if head is None:
            head = self._soup.new_tag("head")
            self.root.insert(0, head)
        return head

    def query_selector_all(self, selector: str) -> list[Tag]:
        """Return elements matching a CSS selector in document order.

        Raises:
            ValueError: If the selector is empty
            soupsieve.SelectorSyntaxError: If the selector is invalid
        """
        if not selector.strip():
            raise ValueError("Empty selector")
        return self._soup.select(selector)

    def stylesheet_links(self) -> list[Tag]:
        """All <link rel="stylesheet"> elements."""
        return self._soup.select('link[rel="stylesheet"]')

    def append_to_head(self, tag_name: str, text: str) -> Tag:
        """Create an element with verbatim text content and append it to <head>."""
        element = self._soup.new_tag(tag_name)
        element.string = text
        self.head.append(element)
        return element

    def serialize(self) -> str:
        """Markup of the whole document element."""
        return str(self.root)


def _attribute_value(value: Any) -> str:
    # Multi-valued attributes (class, rel) come back as lists
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def element_record(tag: Tag, max_text: int, max_html: int) -> dict[str, Any]:
    """Describe an element for a dom_query response.

    Args:
        tag: Matched element
        max_text: Text content truncation length
        max_html: Inner markup truncation length
    """
    return {
        "tag": tag.name.lower(),
        "text": tag.get_text()[:max_text],
        "attrs": {name: _attribute_value(value) for name, value in tag.attrs.items()},
        "html": tag.decode_contents()[:max_html],
    }
