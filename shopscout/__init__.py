"""
Product catalog extraction engine.

Exports:
- ScrapeRequest / SiteScrapeResult: input and output of one extraction run
- Candidate: a product record recovered from a page
- scrape_site: fetch a site, extract its products and build the XML catalog
"""

from .types import Candidate, MatchMode, ScrapeRequest, SiteScrapeResult
from .cli import scrape_site

__all__ = ["Candidate", "MatchMode", "ScrapeRequest", "SiteScrapeResult", "scrape_site"]
