from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

from .errors import UnresolvableURL
from .types import ResolvedTarget


_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def resolve_target(identifier: str) -> ResolvedTarget:
    """Turn a bare domain or URL into the base used for every relative link.

    ``shop.test/`` -> ``https://shop.test``; URLs that already carry an http(s)
    scheme keep it.
    """
    raw = (identifier or "").strip()
    base = raw if _SCHEME_RE.match(raw) else f"https://{raw}"
    base = base.rstrip("/")
    host = urlparse(base).hostname or raw
    return ResolvedTarget(base_url=base, host=host)


def resolve_url(raw: str, base: str) -> str:
    """Resolve an href/src found in the page against *base*.

    Absolute http(s) URLs are returned exactly as written so tracking
    parameters and encoding survive. Raises :class:`UnresolvableURL` when the
    value can be neither joined nor concatenated onto *base*.
    """
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise UnresolvableURL(repr(raw), base)
    href = raw.strip()
    if not href:
        return ""
    if href.lower().startswith("data:"):
        return ""
    if _SCHEME_RE.match(href):
        return href
    if href.startswith("//"):
        return "https:" + href
    try:
        return urljoin(base, href)
    except ValueError:
        if not base:
            raise UnresolvableURL(href, base)
        return base.rstrip("/") + "/" + href.lstrip("/")


def same_page(url: str, base: str) -> bool:
    """True when *url* points back at *base* itself (ignoring fragment and trailing slash)."""
    left = url.split("#", 1)[0].rstrip("/")
    right = base.split("#", 1)[0].rstrip("/")
    return left == right
