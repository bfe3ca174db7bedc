from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Pattern, Set

from bs4 import BeautifulSoup

from .config import Settings, settings
from .document import attr, collapse_ws, element_text, find_ancestor, find_images
from .errors import MalformedStructuredData, NoCandidatesFound, UnresolvableURL
from .fallback import Failure, Success, first_success
from .matching import matches
from .types import Candidate, MatchMode, Strategy
from .urls import resolve_url, same_page


logger = logging.getLogger(__name__)

PRODUCT_TYPES = ("Product", "ProductGroup")
LAZY_IMAGE_ATTRS = ("data-src", "data-lazy-src", "data-original", "data-srcset", "srcset")
SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")
HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6, [class*='title'], [class*='name']"

_CONTROL_CHARS_RE = re.compile("[\u0000-\u001f\u007f-\u009f]")
_TEXT_CONTROL_RE = re.compile("[\u0000-\u0008\u000b\u000c\u000e-\u001f\u007f-\u009f]")


@dataclass
class ExtractionContext:
    """State owned by a single extraction run."""

    base_url: str
    url_pattern: Optional[str] = None
    match_mode: MatchMode = MatchMode.CONTAINS
    config: Settings = field(default_factory=lambda: settings)
    seen: Set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.price_re: Pattern[str] = re.compile(self.config.price_pattern)

    def resolve(self, raw: Any) -> str:
        return resolve_url(raw, self.base_url)

    def accepts(self, url: str) -> bool:
        if not url or url in self.seen:
            return False
        return matches(url, self.url_pattern, self.match_mode)


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    # Decoded JSON escapes such as \u0001 would otherwise reach the catalog.
    return _TEXT_CONTROL_RE.sub("", str(value)).strip()


# ---------------------------------------------------------------------------
# Stage A: JSON-LD
# ---------------------------------------------------------------------------

def _types_of(node: dict) -> list:
    kind = node.get("@type")
    return kind if isinstance(kind, list) else [kind]


def _is_product(node: dict) -> bool:
    return any(k in PRODUCT_TYPES for k in _types_of(node))


def _iter_nodes(data: Any) -> Iterator[dict]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_nodes(item)
        return
    if not isinstance(data, dict):
        return
    yield data
    graph = data.get("@graph")
    if isinstance(graph, (list, dict)):
        yield from _iter_nodes(graph)
    if "ItemList" in _types_of(data):
        for element in data.get("itemListElement") or []:
            if isinstance(element, dict) and isinstance(element.get("item"), dict):
                yield from _iter_nodes(element["item"])


def _offer_of(node: dict) -> dict:
    offer = _first(node.get("offers"))
    if not isinstance(offer, dict):
        variant = _first(node.get("hasVariant"))
        if isinstance(variant, dict):
            offer = _first(variant.get("offers"))
    return offer if isinstance(offer, dict) else {}


def _image_of(node: dict) -> Any:
    image = _first(node.get("image"))
    if isinstance(image, dict):
        image = image.get("url") or image.get("contentUrl")
    return image


def load_jsonld_blocks(soup: BeautifulSoup) -> List[Any]:
    blocks = []
    for index, tag in enumerate(soup.find_all("script", attrs={"type": "application/ld+json"})):
        content = _CONTROL_CHARS_RE.sub("", tag.string or tag.get_text() or "")
        if not content.strip():
            continue
        try:
            blocks.append(json.loads(content))
        except ValueError as exc:
            logger.warning("Skipping %s", MalformedStructuredData(index, str(exc)))
    return blocks


class StructuredDataStrategy:
    origin = Strategy.STRUCTURED_DATA

    def extract(self, soup: BeautifulSoup, ctx: ExtractionContext) -> List[Candidate]:
        found: List[Candidate] = []
        for block in load_jsonld_blocks(soup):
            for node in _iter_nodes(block):
                if not _is_product(node):
                    continue
                candidate = self._candidate(node, ctx)
                if candidate is not None:
                    ctx.seen.add(candidate.url)
                    found.append(candidate)
        return found

    def _candidate(self, node: dict, ctx: ExtractionContext) -> Optional[Candidate]:
        offer = _offer_of(node)

        main_entity = node.get("mainEntityOfPage")
        if isinstance(main_entity, dict):
            main_entity = main_entity.get("@id") or main_entity.get("url")
        raw_url = (
            _as_text(offer.get("url"))
            or _as_text(node.get("url"))
            or _as_text(main_entity)
        )
        name = _as_text(node.get("name"))
        price = _as_text(offer.get("price")) or _as_text(offer.get("highPrice"))
        if not (raw_url and name and price):
            logger.debug("Structured node missing name/price/url: %r", name or raw_url)
            return None

        try:
            url = ctx.resolve(raw_url)
            image = ctx.resolve(_as_text(_image_of(node)))
        except UnresolvableURL as exc:
            logger.debug("Dropping structured node: %s", exc)
            return None
        if not ctx.accepts(url):
            return None

        return Candidate(
            name=collapse_ws(name),
            price=price,
            currency=_as_text(offer.get("priceCurrency")) or None,
            description=_as_text(node.get("description")),
            url=url,
            image_url=image,
            origin=self.origin,
        )


# ---------------------------------------------------------------------------
# Stage B: OpenGraph
# ---------------------------------------------------------------------------

def read_meta(soup: BeautifulSoup) -> dict:
    meta = {}
    for m in soup.find_all("meta"):
        key = (m.get("property") or m.get("name") or "").strip().lower()
        content = m.get("content")
        if key and content is not None and key not in meta:
            meta[key] = content.strip()
    return meta


class OpenGraphStrategy:
    origin = Strategy.OPEN_GRAPH

    def extract(self, soup: BeautifulSoup, ctx: ExtractionContext) -> List[Candidate]:
        og = read_meta(soup)
        if og.get("og:type", "").lower() != "product":
            return []
        title = og.get("og:title")
        price = og.get("product:price:amount") or og.get("og:price:amount")
        if not title or not price:
            return []

        canonical = soup.find("link", rel="canonical")
        raw_url = og.get("og:url") or attr(canonical, "href") or ctx.base_url
        try:
            url = ctx.resolve(raw_url)
            image = ctx.resolve(og.get("og:image", ""))
        except UnresolvableURL as exc:
            logger.debug("Dropping OpenGraph product: %s", exc)
            return []
        if not ctx.accepts(url):
            return []

        ctx.seen.add(url)
        return [
            Candidate(
                name=collapse_ws(title),
                price=price,
                currency=og.get("product:price:currency") or og.get("og:price:currency") or None,
                description=og.get("og:description", ""),
                url=url,
                image_url=image,
                origin=self.origin,
            )
        ]


# ---------------------------------------------------------------------------
# Stage C: DOM heuristics for listing pages
# ---------------------------------------------------------------------------

def pick_image_source(img) -> str:
    """Lazy-load attributes win over ``src``, which is often a placeholder."""
    for name in LAZY_IMAGE_ATTRS + ("src",):
        value = attr(img, name)
        if name.endswith("srcset"):
            value = value.split(",")[0].strip().split(" ")[0] if value else ""
        if value and not value.lower().startswith("data:"):
            return value
    return ""


def _heading_text(*scopes) -> str:
    for scope in scopes:
        if scope is None:
            continue
        heading = scope.select_one(HEADING_SELECTOR)
        text = element_text(heading)
        if text:
            return text
    return ""


class HeuristicDomStrategy:
    origin = Strategy.HEURISTIC_DOM

    def extract(self, soup: BeautifulSoup, ctx: ExtractionContext) -> List[Candidate]:
        found: List[Candidate] = []
        for link in soup.find_all("a", href=True):
            candidate = self._candidate(link, ctx)
            if candidate is not None:
                ctx.seen.add(candidate.url)
                found.append(candidate)
        return found

    def find_card(self, link, ctx: ExtractionContext):
        """Nearest element (the link or one of its ancestors) whose text carries a price."""
        return find_ancestor(
            link,
            lambda el: ctx.price_re.search(element_text(el)) is not None,
            ctx.config.max_ancestor_depth,
        )

    def _candidate(self, link, ctx: ExtractionContext) -> Optional[Candidate]:
        href = attr(link, "href")
        if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
            return None
        images = find_images(link)
        if not images:
            return None

        try:
            url = ctx.resolve(href)
        except UnresolvableURL as exc:
            logger.debug("Dropping link: %s", exc)
            return None
        if same_page(url, ctx.base_url) or not ctx.accepts(url):
            return None

        card = self.find_card(link, ctx)
        if card is None:
            logger.debug("No price near %s", url)
            return None
        match = ctx.price_re.search(element_text(card))

        img = next((i for i in images if pick_image_source(i)), images[0])
        name = collapse_ws(
            attr(img, "alt")
            or _heading_text(link, card)
            or attr(link, "title")
            or element_text(link)
        )
        if len(name) < ctx.config.min_name_length:
            return None

        try:
            image = ctx.resolve(pick_image_source(img))
        except UnresolvableURL as exc:
            logger.debug("Dropping link %s: %s", url, exc)
            return None
        if not image:
            return None

        return Candidate(
            name=name,
            price=collapse_ws(match.group(0)),
            currency=match.groupdict().get("code") or None,
            url=url,
            image_url=image,
            origin=self.origin,
        )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

DEFAULT_STRATEGIES = (StructuredDataStrategy(), OpenGraphStrategy(), HeuristicDomStrategy())


def dedupe_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    seen = set()
    result: List[Candidate] = []
    for c in candidates:
        if c.url in seen:
            continue
        seen.add(c.url)
        result.append(c)
    return result


def run_pipeline(soup: BeautifulSoup, ctx: ExtractionContext, strategies=DEFAULT_STRATEGIES) -> List[Candidate]:
    """
    Apply the extraction strategies in order. Stops at the first one that yields
    candidates unless the context's settings ask for all stages to be merged.
    Raises NoCandidatesFound when nothing is recognised.
    """
    if ctx.config.merge_stages:
        merged: List[Candidate] = []
        for strategy in strategies:
            merged.extend(strategy.extract(soup, ctx))
        candidates = dedupe_candidates(merged)
    else:
        def stage(strategy):
            def run():
                found = strategy.extract(soup, ctx)
                logger.info("%s produced %d candidate(s)", strategy.origin.value, len(found))
                return Success(found) if found else Failure(f"{strategy.origin.value}: nothing found")

            return run

        outcome, _ = first_success(stage(s) for s in strategies)
        candidates = dedupe_candidates(outcome.value) if isinstance(outcome, Success) else []

    if not candidates:
        raise NoCandidatesFound("no product markup recognised on the page")
    return candidates
