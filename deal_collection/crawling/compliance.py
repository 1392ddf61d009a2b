from urllib.parse import urlparse
import logging

from ..config import PipelineConfig
from .fetcher import PoliteFetcher

logger = logging.getLogger(__name__)

# Values of the scrape_allowed column
CONSENT_ALLOWED = "true"
CONSENT_DENIED = "false"
CONSENT_UNKNOWN = ""

def is_allowed(scrape_allowed) -> bool:
    """Only an explicit 'true' authorizes fetching beyond robots.txt"""
    return str(scrape_allowed or "").strip().lower() == CONSENT_ALLOWED

def robots_url_for(website: str) -> str:
    """{scheme}://{host}/robots.txt for http(s) sites, '' for anything else"""
    try:
        parsed = urlparse((website or "").strip())
    except ValueError:
        return ""
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"

def parse_robots_consent(text: str) -> str:
    """
    Partial robots.txt interpretation used as the consent signal.

    Only a global 'User-agent: *' group and a root-level 'Disallow: /' are
    considered; crawl-delay, sitemap hints, other agents and per-path rules
    are ignored. No global group means the outcome is unknown.
    """
    lines = [line.strip().lower() for line in (text or "").splitlines()]
    if not any(line.startswith('user-agent: *') for line in lines):
        return CONSENT_UNKNOWN

    for line in lines:
        if not line.startswith('disallow:'):
            continue
        value = line.split(':', 1)[1].split('#', 1)[0].strip()
        if value == '/':
            return CONSENT_DENIED
    return CONSENT_ALLOWED

class ComplianceResolver:
    """Resolves the consent outcome for a site from its robots.txt"""

    def __init__(self, fetcher: PoliteFetcher, config: PipelineConfig = None):
        self.fetcher = fetcher
        self.config = config or fetcher.config

    def check(self, robots_url: str) -> str:
        """Fetch robots.txt and interpret it. Fails closed to unknown."""
        if not robots_url:
            return CONSENT_UNKNOWN
        text = self.fetcher.fetch_text(robots_url, timeout=self.config.robots_timeout)
        if not text:
            return CONSENT_UNKNOWN
        return parse_robots_consent(text)

    def resolve(self, website: str) -> str:
        return self.check(robots_url_for(website))
