from __future__ import annotations

from typing import List, Sequence

from .types import TransportAttempt


class ScrapeError(Exception):
    """Base class for run-level and per-item scraping failures."""


class TransportExhausted(ScrapeError):
    def __init__(self, attempts: Sequence[TransportAttempt], message: str = "all retrieval paths failed"):
        self.attempts: List[TransportAttempt] = list(attempts)
        reasons = "; ".join(f"{a.path_name}: {a.reason}" for a in self.attempts if a.reason)
        super().__init__(f"{message} ({reasons})" if reasons else message)


class MalformedMarkupError(ScrapeError):
    pass


class MalformedStructuredData(ScrapeError):
    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"structured-data block #{index} is not valid JSON: {reason}")


class NoCandidatesFound(ScrapeError):
    pass


class UnresolvableURL(ScrapeError):
    def __init__(self, raw: str, base: str):
        self.raw = raw
        self.base = base
        super().__init__(f"cannot resolve {raw!r} against {base!r}")
