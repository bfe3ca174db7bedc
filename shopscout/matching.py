from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from .types import MatchMode


NON_PRODUCT_SEGMENTS = frozenset(
    (
        "login",
        "signin",
        "register",
        "cart",
        "checkout",
        "account",
        "contact",
        "terms",
        "privacy",
        "wishlist",
        "help",
    )
)


def looks_like_product_url(url: str) -> bool:
    """Reject the site root and obvious account/cart/legal pages."""
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    segments = [s for s in path.split("/") if s]
    if not segments:
        return False
    for seg in segments:
        stem = seg.lower().split(".", 1)[0]
        if stem in NON_PRODUCT_SEGMENTS:
            return False
    return True


def matches(url: str, pattern: Optional[str], mode: MatchMode = MatchMode.CONTAINS) -> bool:
    if not pattern:
        return looks_like_product_url(url)

    mode = MatchMode(mode)
    if mode is MatchMode.CONTAINS:
        return pattern in url
    if mode is MatchMode.ENDS_WITH:
        return url.endswith(pattern)

    if url.startswith(pattern):
        return True
    # Users usually type a path fragment such as "/p/", not a full URL.
    try:
        path = urlparse(url).path
    except ValueError:
        return False
    return path.startswith(pattern)
