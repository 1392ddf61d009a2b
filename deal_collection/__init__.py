"""
Local Deals Collection Pipeline

A consent-gated crawler that builds and maintains a directory of local
restaurant and bar promotions (happy hours, taco nights, brunch specials).
Each stage reads one file, transforms typed records and writes one file, so
stages can be run and re-run independently.

Main Components:
- PoliteFetcher: Shared HTTP session with per-host throttling and no retries
- ComplianceResolver: robots.txt consent check for each venue's website
- LinkDiscoverer: Finds likely menu/specials pages from homepage, sitemap and guesses
- ContentExtractor: Pulls promotion text blocks and JSON-LD events/offers from a page
- Normalizer / quality filter: Turns candidate blocks into reviewed Deal rows
- venue_store: Canonical dataset merge, coverage report, target registry

Usage:
    python -m deal_collection make-targets
    python -m deal_collection check-robots
    python -m deal_collection scrape-sites
    python -m deal_collection review --input data/scraped_deals.csv --cap 5
    python -m deal_collection merge --input data/scraped_deals_reviewed.csv
"""

from .config import PipelineConfig
from .exceptions import PipelineError, MissingInputError, DatasetError
from .data_models.models import Deal, Venue, RawCandidate, CrawlTarget

__version__ = "0.2.0"

__all__ = [
    "PipelineConfig",
    "PipelineError",
    "MissingInputError",
    "DatasetError",
    "Deal",
    "Venue",
    "RawCandidate",
    "CrawlTarget",
]
