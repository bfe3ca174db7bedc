from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from .errors import NoCandidatesFound
from .types import Candidate, PreviewEntry


MAX_CATALOG_SIZE = 80
DESCRIPTION_LIMIT = 300

_XML_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


# Characters XML 1.0 does not allow anywhere in a document.
_XML_FORBIDDEN_RE = re.compile(r"[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def escape_xml(value) -> str:
    text = _XML_FORBIDDEN_RE.sub("", str(value or ""))
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in text)


def _product_xml(c: Candidate, description_limit: int) -> str:
    return (
        "        <product>\n"
        f"            <name>{escape_xml(c.name)}</name>\n"
        f"            <price currency=\"{escape_xml(c.currency)}\">{escape_xml(c.price)}</price>\n"
        f"            <description>{escape_xml(c.description[:description_limit])}</description>\n"
        f"            <link>{escape_xml(c.url)}</link>\n"
        f"            <image>{escape_xml(c.image_url)}</image>\n"
        "        </product>\n"
    )


def preview_of(c: Candidate) -> PreviewEntry:
    return PreviewEntry(
        name=c.name,
        price=f"{c.price} {c.currency or ''}".strip(),
        image=c.image_url,
        link=c.url,
    )


def serialize(
    candidates: Sequence[Candidate],
    source_url: str,
    generated_at: Optional[datetime] = None,
    max_size: int = MAX_CATALOG_SIZE,
    description_limit: int = DESCRIPTION_LIMIT,
) -> Tuple[str, PreviewEntry]:
    """
    Render candidates into the ``<catalog>`` document.
    Returns (document, preview of the last serialized candidate).
    """
    products = list(candidates)[:max_size]
    if not products:
        raise NoCandidatesFound("nothing to serialize")

    stamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    body = "".join(_product_xml(c, description_limit) for c in products)
    document = (
        "<catalog>\n"
        "    <meta>\n"
        f"        <source>{escape_xml(source_url)}</source>\n"
        f"        <scraped_at>{escape_xml(stamp)}</scraped_at>\n"
        "    </meta>\n"
        "    <products>\n"
        f"{body}"
        "    </products>\n"
        "</catalog>"
    )
    return document, preview_of(products[-1])
