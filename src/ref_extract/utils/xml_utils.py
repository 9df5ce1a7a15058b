"""Namespace-agnostic helpers over ElementTree nodes."""

import re
import xml.etree.ElementTree as ET
from typing import Iterator, List, Optional

_WHITESPACE = re.compile(r"\s+")


def local_name(tag) -> str:
    """Strip the ``{namespace}`` prefix from an element tag."""
    if not isinstance(tag, str):
        # Comments and processing instructions
        return ""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def iter_elements(node: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield every descendant element with the given local name, in document order.

    The node itself is included when it matches. Nesting depth does not matter.
    """
    if local_name(node.tag) == name:
        yield node
    for child in node:
        yield from iter_elements(child, name)


def children(node: Optional[ET.Element], name: str) -> List[ET.Element]:
    """Direct children with the given local name."""
    if node is None:
        return []
    return [child for child in node if local_name(child.tag) == name]


def first_child(node: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    found = children(node, name)
    return found[0] if found else None


def element_text(node: Optional[ET.Element]) -> Optional[str]:
    """Whitespace-normalized text content of a node, or None when empty."""
    if node is None:
        return None
    text = _WHITESPACE.sub(" ", "".join(node.itertext())).strip()
    return text or None
