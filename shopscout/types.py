from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class MatchMode(str, Enum):
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"


class Strategy(str, Enum):
    STRUCTURED_DATA = "structured-data"
    OPEN_GRAPH = "open-graph"
    HEURISTIC_DOM = "heuristic-dom"


@dataclass(frozen=True)
class ScrapeRequest:
    target_identifier: str
    url_pattern: Optional[str] = None
    match_mode: MatchMode = MatchMode.CONTAINS

    @classmethod
    def from_dict(cls, data: dict) -> "ScrapeRequest":
        """Build a request from the ``{domain, urlPattern?, matchMode?}`` input contract."""
        pattern = data.get("urlPattern")
        if pattern is not None and not str(pattern).strip():
            pattern = None
        mode = data.get("matchMode") or MatchMode.CONTAINS
        return cls(
            target_identifier=str(data.get("domain") or "").strip(),
            url_pattern=pattern,
            match_mode=MatchMode(mode),
        )


@dataclass(frozen=True)
class ResolvedTarget:
    base_url: str
    host: str


@dataclass
class TransportAttempt:
    path_name: str
    url: str
    html: Optional[str] = None
    reason: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.html is not None


@dataclass(frozen=True)
class Candidate:
    name: str
    price: str
    url: str
    image_url: str
    origin: Strategy
    currency: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class PreviewEntry:
    name: str
    price: str
    image: str
    link: str


@dataclass
class SiteScrapeResult:
    success: bool
    site_name: str
    product_count: int = 0
    catalog_document: Optional[str] = None
    preview_entry: Optional[PreviewEntry] = None
    candidates: Tuple[Candidate, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        out = {
            "success": self.success,
            "siteName": self.site_name,
            "productCount": self.product_count,
        }
        if self.catalog_document is not None:
            out["xml"] = self.catalog_document
        if self.preview_entry is not None:
            out["lastProduct"] = {
                "name": self.preview_entry.name,
                "price": self.preview_entry.price,
                "image": self.preview_entry.image,
                "link": self.preview_entry.link,
            }
        return out
