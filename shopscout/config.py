"""Runtime settings for the shopscout engine.

Values come from environment variables, optionally via a ``.env`` file in the
project root that is loaded when this module is imported. Real environment
variables always win over the file.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_RELAYS = (
    "https://corsproxy.io/?{url}",
    "https://api.allorigins.win/raw?url={url}",
)

# Symbol-prefixed amount ($1,200.00, € 50) or amount followed by a currency code (1200 MN, 49.90 USD).
DEFAULT_PRICE_PATTERN = (
    r"[\$€£¥₹]\s?\d+(?:[,.]\d{3})*(?:[.,]\d{2})?"
    r"|\b\d+(?:[,.]\d{3})*(?:[.,]\d{2})?\s?(?P<code>[A-Z]{2,3})\b"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_relays() -> Tuple[str, ...]:
    raw = os.environ.get("SHOPSCOUT_RELAYS")
    if raw is None:
        return DEFAULT_RELAYS
    return tuple(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class Settings:
    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SHOPSCOUT_REQUEST_TIMEOUT", "15"))
    )
    overall_deadline: float = field(
        default_factory=lambda: float(os.environ.get("SHOPSCOUT_OVERALL_DEADLINE", "45"))
    )
    min_content_length: int = field(
        default_factory=lambda: int(os.environ.get("SHOPSCOUT_MIN_CONTENT_LENGTH", "500"))
    )
    allow_direct: bool = field(default_factory=lambda: _env_bool("SHOPSCOUT_ALLOW_DIRECT", True))
    concurrent_transport: bool = field(default_factory=lambda: _env_bool("SHOPSCOUT_CONCURRENT", False))
    relay_templates: Tuple[str, ...] = field(default_factory=_env_relays)
    user_agent: str = field(
        default_factory=lambda: os.environ.get("SHOPSCOUT_USER_AGENT", DEFAULT_USER_AGENT)
    )
    retries: int = field(default_factory=lambda: int(os.environ.get("SHOPSCOUT_RETRIES", "0")))

    # ------------------------------------------------------------------
    # Extraction tuning
    # ------------------------------------------------------------------
    max_ancestor_depth: int = field(
        default_factory=lambda: int(os.environ.get("SHOPSCOUT_MAX_ANCESTOR_DEPTH", "5"))
    )
    min_name_length: int = field(
        default_factory=lambda: int(os.environ.get("SHOPSCOUT_MIN_NAME_LENGTH", "3"))
    )
    price_pattern: str = field(
        default_factory=lambda: os.environ.get("SHOPSCOUT_PRICE_PATTERN", DEFAULT_PRICE_PATTERN)
    )
    merge_stages: bool = field(default_factory=lambda: _env_bool("SHOPSCOUT_MERGE_STAGES", False))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    max_catalog_size: int = field(
        default_factory=lambda: int(os.environ.get("SHOPSCOUT_MAX_CATALOG_SIZE", "80"))
    )
    description_limit: int = field(
        default_factory=lambda: int(os.environ.get("SHOPSCOUT_DESCRIPTION_LIMIT", "300"))
    )

    def replace(self, **changes) -> "Settings":
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)


# Module-level singleton:
#   from shopscout.config import settings
settings = Settings()
