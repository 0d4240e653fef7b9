"""Markup normalizer.

Parses Apigee XML documents into plain ``dict`` trees with ``xmltodict``.
Attributes are stored under ``@``-prefixed keys and mixed text under
``#text``. A tag that occurs once under its parent becomes a single node, a
tag that repeats becomes a list, so any field that may legally repeat has to
be read through :func:`as_list`.
"""

from typing import Any, Dict, List, Optional
from xml.parsers.expat import ExpatError

import xmltodict

from .errors import MarkupError

ATTR_PREFIX = '@'
TEXT_KEY = '#text'
NBSP = '\u00a0'


def parse_markup(text: str) -> Dict[str, Any]:
    """
    Parse XML text into a normalized tree

    Args:
        text: Raw XML document text

    Returns:
        Mapping of the root tag name to its node

    Raises:
        MarkupError: if the text is empty or not well formed
    """
    if text is None or not text.strip():
        raise MarkupError("Empty XML document")

    # gateway tooling emits U+00A0 inconsistently
    cleaned = text.replace(NBSP, ' ')
    try:
        tree = xmltodict.parse(cleaned, attr_prefix=ATTR_PREFIX, cdata_key=TEXT_KEY)
    except ExpatError as e:
        raise MarkupError(f"Malformed XML: {e}") from e

    if not isinstance(tree, dict) or not tree:
        raise MarkupError("XML document has no root element")
    return dict(tree)


def root_of(tree: Dict[str, Any], tag: str) -> Any:
    """Return the root node when the document's root tag is ``tag``"""
    if tag not in tree:
        found = next(iter(tree), None)
        raise MarkupError(f"Expected <{tag}> root element, found <{found}>")
    return tree[tag]


def root_tag(tree: Dict[str, Any]) -> Optional[str]:
    return next(iter(tree), None)


def as_list(value: Any) -> List[Any]:
    """
    Coerce an optional, possibly repeated field to an ordered sequence

    ``None`` becomes an empty list, a list is returned as is, and any
    single node is wrapped in a one-element list.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def child(node: Any, key: str) -> Any:
    """Safely get a child of a node that may be text, None or a mapping"""
    if isinstance(node, dict):
        return node.get(key)
    return None


def attribute(node: Any, name: str, default: Optional[str] = None) -> Optional[str]:
    """Safely get an attribute of a node"""
    value = child(node, ATTR_PREFIX + name)
    return value if value is not None else default


def text_of(node: Any, default: str = '') -> str:
    """
    Return the text of a node

    Accepts both a bare text value and an element that carries
    attributes, where the text sits under ``#text``.
    """
    if node is None:
        return default
    if isinstance(node, dict):
        node = node.get(TEXT_KEY)
        if node is None:
            return default
    if isinstance(node, (list, tuple)):
        return default
    text = str(node).strip()
    return text if text else default
