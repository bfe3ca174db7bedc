"""Parsed-page helpers.

The tree itself is a BeautifulSoup document. The upward-walk helpers only need
a ``parent_of`` callable, so they work over any node type (tests use plain
objects).
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Comment, Tag

from .errors import MalformedMarkupError


_WS_RE = re.compile(r"\s+")
_INVISIBLE_TAGS = ("script", "style", "noscript", "template")


def parse(html: str) -> BeautifulSoup:
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as exc:
        raise MalformedMarkupError(str(exc)) from exc
    return soup


def collapse_ws(text: Optional[str]) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def element_text(el) -> str:
    """Visible text of *el*, element boundaries joined by single spaces."""
    if el is None:
        return ""
    if not isinstance(el, Tag):
        return collapse_ws(str(el))
    parts = []
    for s in el.find_all(string=True):
        if isinstance(s, Comment):
            continue
        if s.parent is not None and s.parent.name in _INVISIBLE_TAGS:
            continue
        parts.append(s)
    return collapse_ws(" ".join(parts))


def attr(el, name: str) -> str:
    """Attribute value as a stripped string (multi-valued attributes are space-joined)."""
    if el is None:
        return ""
    value = el.get(name)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = " ".join(value)
    return str(value).strip()


def tag_parent(el) -> Optional[Tag]:
    parent = getattr(el, "parent", None)
    if parent is None or not isinstance(parent, Tag) or parent.name == "[document]":
        return None
    return parent


def ancestors(
    node: Any,
    max_depth: int,
    parent_of: Callable[[Any], Any] = tag_parent,
) -> Iterator[Any]:
    """Yield *node* itself followed by at most *max_depth* ancestors, nearest first."""
    current = node
    depth = 0
    while current is not None and depth <= max_depth:
        yield current
        current = parent_of(current)
        depth += 1


def find_ancestor(
    node: Any,
    predicate: Callable[[Any], bool],
    max_depth: int,
    parent_of: Callable[[Any], Any] = tag_parent,
) -> Optional[Any]:
    for candidate in ancestors(node, max_depth, parent_of):
        if predicate(candidate):
            return candidate
    return None


def find_images(el) -> List[Tag]:
    if el is None:
        return []
    return el.find_all("img")
