from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import Settings, settings
from .errors import TransportExhausted
from .fallback import Failure, Success, first_success
from .types import ResolvedTarget, TransportAttempt


logger = logging.getLogger(__name__)

BLOCKED_MARKERS = ("access denied",)


def create_session(user_agent: Optional[str] = None, total_retries: int = 0) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent or settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "es-419,es;q=0.9,en-US;q=0.8,en;q=0.7",
            "Cache-Control": "no-cache",
        }
    )

    retry = Retry(
        total=total_retries,
        backoff_factor=0.7,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def validate_body(html: str, min_length: int) -> Optional[str]:
    """Return a failure reason when *html* looks like an error page, else ``None``."""
    if len(html) < min_length:
        return f"body too short ({len(html)} < {min_length} chars)"
    lowered = html.lower()
    for marker in BLOCKED_MARKERS:
        if marker in lowered:
            return f"blocked by origin ({marker!r})"
    return None


class RetrievalPath:
    """One way of getting the target's markup: directly or through a relay."""

    name = "path"

    def __init__(self, target_url: str):
        self.target_url = target_url

    @property
    def url(self) -> str:
        raise NotImplementedError

    def attempt(self, session: requests.Session, timeout: float, min_length: int) -> TransportAttempt:
        logger.info("Trying %s: %s", self.name, self.url)
        try:
            response = session.get(self.url, timeout=timeout, allow_redirects=True)
        except requests.RequestException as exc:
            return TransportAttempt(self.name, self.url, reason=f"network error: {exc}")

        if not response.ok:
            return TransportAttempt(
                self.name,
                self.url,
                reason=f"HTTP {response.status_code} {response.reason or ''}".strip(),
                status_code=response.status_code,
            )
        html = response.text or ""
        reason = validate_body(html, min_length)
        if reason:
            return TransportAttempt(self.name, self.url, reason=reason, status_code=response.status_code)
        return TransportAttempt(self.name, self.url, html=html, status_code=response.status_code)


class DirectPath(RetrievalPath):
    name = "direct"

    @property
    def url(self) -> str:
        return self.target_url


class RelayPath(RetrievalPath):
    def __init__(self, target_url: str, template: str):
        super().__init__(target_url)
        self.template = template
        self.name = f"relay:{template.split('/')[2] if '//' in template else template}"

    @property
    def url(self) -> str:
        return self.template.format(url=quote(self.target_url, safe=""))


def build_paths(target: ResolvedTarget, config: Settings = settings) -> List[RetrievalPath]:
    paths: List[RetrievalPath] = []
    if config.allow_direct:
        paths.append(DirectPath(target.base_url))
    for template in config.relay_templates:
        paths.append(RelayPath(target.base_url, template))
    return paths


def _remaining(deadline: float) -> float:
    return deadline - time.monotonic()


def _deadline_attempt(path: RetrievalPath) -> TransportAttempt:
    return TransportAttempt(path.name, path.url, reason="overall deadline exceeded")


def _fetch_sequential(
    paths: Sequence[RetrievalPath],
    new_session: Callable[[], requests.Session],
    config: Settings,
    deadline: float,
) -> Tuple[Optional[str], List[TransportAttempt]]:
    attempts: List[TransportAttempt] = []
    session = new_session()
    # One worker: attempts still run one at a time, but a slow one can be abandoned at the deadline.
    executor = ThreadPoolExecutor(max_workers=1)

    def make_attempt(path: RetrievalPath) -> Callable[[], object]:
        def run():
            remaining = _remaining(deadline)
            if remaining <= 0:
                attempt = _deadline_attempt(path)
            else:
                future = executor.submit(
                    path.attempt, session, min(config.request_timeout, remaining), config.min_content_length
                )
                done, _ = wait([future], timeout=remaining)
                attempt = future.result() if done else _deadline_attempt(path)
                if attempt.ok and _remaining(deadline) <= 0:
                    attempt = _deadline_attempt(path)
            attempts.append(attempt)
            if attempt.ok:
                return Success(attempt.html)
            logger.warning("%s failed: %s", path.name, attempt.reason)
            return Failure(attempt.reason or "unknown")

        return run

    try:
        outcome, _ = first_success(make_attempt(p) for p in paths)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    if isinstance(outcome, Success):
        return outcome.value, attempts
    return None, attempts


def _fetch_concurrent(
    paths: Sequence[RetrievalPath],
    new_session: Callable[[], requests.Session],
    config: Settings,
    deadline: float,
) -> Tuple[Optional[str], List[TransportAttempt]]:
    attempts: List[TransportAttempt] = []
    timeout = max(0.0, min(config.request_timeout, _remaining(deadline)))
    executor = ThreadPoolExecutor(max_workers=max(1, len(paths)))
    try:
        # Each worker gets its own session; requests.Session is not thread-safe.
        pending = {
            executor.submit(p.attempt, new_session(), timeout, config.min_content_length): p for p in paths
        }
        while pending:
            remaining = _remaining(deadline)
            if remaining <= 0:
                for path in pending.values():
                    attempts.append(_deadline_attempt(path))
                break
            done, _ = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
            for future in done:
                pending.pop(future)
                attempt = future.result()
                attempts.append(attempt)
                if attempt.ok:
                    return attempt.html, attempts
                logger.warning("%s failed: %s", attempt.path_name, attempt.reason)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return None, attempts


def fetch_markup(
    target: ResolvedTarget,
    session: Optional[requests.Session] = None,
    config: Settings = settings,
) -> Tuple[str, List[TransportAttempt]]:
    """
    Fetch the target's HTML through the configured retrieval paths.
    Returns (html, attempts). Raises TransportExhausted when no path yields a usable page
    before the overall deadline.
    """
    paths = build_paths(target, config)
    if not paths:
        raise TransportExhausted([], "no retrieval paths configured")

    if session is not None:
        new_session = lambda: session
    else:
        new_session = lambda: create_session(user_agent=config.user_agent, total_retries=config.retries)

    deadline = time.monotonic() + config.overall_deadline
    if config.concurrent_transport:
        html, attempts = _fetch_concurrent(paths, new_session, config, deadline)
    else:
        html, attempts = _fetch_sequential(paths, new_session, config, deadline)

    if html is not None and _remaining(deadline) <= 0:
        html = None
        attempts.append(TransportAttempt("deadline", target.base_url, reason="overall deadline exceeded"))
    if html is None:
        raise TransportExhausted(attempts)
    return html, attempts
