"""Shared fixtures: a fake ``requests`` session and HTML page builders.

No test touches the network; every retrieval path is answered from a URL ->
response map held by :class:`FakeSession`.
"""

from __future__ import annotations

import json
import threading
from typing import Dict, List, Union

import pytest

from shopscout.config import Settings


PADDING = "<!-- " + "padding " * 80 + "-->"


def page(body: str, head: str = "") -> str:
    """Wrap *body* in a full document long enough to pass the content-length check."""
    return (
        "<!DOCTYPE html>\n<html>\n<head><title>Shop</title>"
        f"{head}</head>\n<body>\n{body}\n{PADDING}\n</body>\n</html>\n"
    )


def jsonld(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", reason: str = ""):
        self.status_code = status_code
        self.text = text
        self.reason = reason or ("OK" if status_code < 400 else "Error")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class FakeSession:
    def __init__(self, routes: Dict[str, Union[FakeResponse, Exception]]):
        self.routes = routes
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def get(self, url, timeout=None, allow_redirects=True):
        with self._lock:
            self.calls.append(url)
        outcome = self.routes.get(url, FakeResponse(404, "Not Found"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


DIRECT = "https://shop.test"
RELAY_A = "https://relay-a.test/?url=https%3A%2F%2Fshop.test"
RELAY_B = "https://relay-b.test/raw?url=https%3A%2F%2Fshop.test"


@pytest.fixture
def config() -> Settings:
    return Settings(
        request_timeout=5.0,
        overall_deadline=30.0,
        min_content_length=500,
        allow_direct=True,
        concurrent_transport=False,
        relay_templates=("https://relay-a.test/?url={url}", "https://relay-b.test/raw?url={url}"),
        retries=0,
        max_ancestor_depth=5,
        min_name_length=3,
        merge_stages=False,
        max_catalog_size=80,
        description_limit=300,
    )
