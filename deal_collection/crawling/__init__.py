from .fetcher import PoliteFetcher
from .compliance import ComplianceResolver, is_allowed, parse_robots_consent, robots_url_for
from .link_discovery import LinkDiscoverer
from .content_extractor import ContentExtractor, PageExtraction, StructuredItem

__all__ = [
    "PoliteFetcher",
    "ComplianceResolver",
    "LinkDiscoverer",
    "ContentExtractor",
    "PageExtraction",
    "StructuredItem",
    "is_allowed",
    "parse_robots_consent",
    "robots_url_for",
]
