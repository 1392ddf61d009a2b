from bs4 import BeautifulSoup
from urllib.parse import urljoin, urldefrag, urlparse
from typing import List, Optional
import xml.etree.ElementTree as ET
import logging
import re

from ..config import PipelineConfig
from .compliance import is_allowed
from .fetcher import PoliteFetcher

logger = logging.getLogger(__name__)

DISCOVERY_KEYWORDS = [
    "menu", "menus", "food", "drink", "drinks", "beverage", "special", "specials", "deal", "deals",
    "happy-hour", "happyhour", "happy", "hour", "events", "event", "calendar", "promotions", "promo",
    "tuesday", "wednesday", "thursday", "monday", "friday", "saturday", "sunday", "brunch",
]

GUESSED_PATHS = [
    "/menu", "/menus", "/food", "/drinks", "/specials", "/deals",
    "/happy-hour", "/happyhour", "/events", "/calendar",
]

def normalize_url(url: str, base_url: str) -> Optional[str]:
    """Resolve url against base_url and strip the fragment"""
    if not url or not url.strip():
        return None
    try:
        absolute = urljoin(base_url, url.strip())
    except ValueError:
        return None
    absolute, _ = urldefrag(absolute)
    if urlparse(absolute).scheme not in ('http', 'https'):
        return None
    return absolute

def same_origin(url: str, base_url: str) -> bool:
    try:
        a, b = urlparse(url), urlparse(base_url)
    except ValueError:
        return False
    return (a.scheme, a.netloc.lower()) == (b.scheme, b.netloc.lower())

def looks_useful(url: str) -> bool:
    lowered = url.lower()
    return any(keyword in lowered for keyword in DISCOVERY_KEYWORDS)

def sitemap_locations(xml_text: str) -> tuple:
    """
    Parse a sitemap document.

    Returns (is_index, locs). Namespaces are ignored; a document that will
    not parse falls back to a <loc> regex scan.
    """
    if not xml_text:
        return False, []
    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError:
        locs = re.findall(r"<loc>\s*(https?://[^<]+?)\s*</loc>", xml_text, flags=re.I)
        is_index = bool(re.search(r"<sitemapindex", xml_text, flags=re.I))
        return is_index, locs

    is_index = root.tag.split('}')[-1].lower() == 'sitemapindex'
    locs = [
        element.text.strip()
        for element in root.iter()
        if element.tag.split('}')[-1].lower() == 'loc' and element.text and element.text.strip()
    ]
    return is_index, locs

class LinkDiscoverer:
    """Enumerates same-origin pages likely to describe specials for a consented site"""

    def __init__(self, fetcher: PoliteFetcher, config: PipelineConfig = None):
        self.fetcher = fetcher
        self.config = config or fetcher.config

    def from_homepage(self, html: str, base_url: str) -> List[str]:
        """Keyword-matching same-origin anchors on the homepage"""
        if not html:
            return []
        soup = BeautifulSoup(html, 'html.parser')
        found = []
        for anchor in soup.find_all('a', href=True):
            url = normalize_url(anchor['href'], base_url)
            if url and same_origin(url, base_url) and looks_useful(url) and url not in found:
                found.append(url)
        return found

    def _keep_locs(self, locs: List[str], base_url: str, found: List[str]):
        for loc in locs:
            url = normalize_url(loc, base_url)
            if url and same_origin(url, base_url) and looks_useful(url) and url not in found:
                found.append(url)

    def from_sitemap(self, xml_text: str, base_url: str) -> List[str]:
        """Keyword-matching same-origin <loc> entries; sitemap indexes are followed one level"""
        is_index, locs = sitemap_locations(xml_text)
        found: List[str] = []
        if not is_index:
            self._keep_locs(locs, base_url, found)
            return found

        for child in locs:
            child_url = normalize_url(child, base_url)
            if not child_url or not same_origin(child_url, base_url):
                continue
            child_is_index, child_locs = sitemap_locations(self.fetcher.fetch_text(child_url))
            if child_is_index:
                logger.debug(f"Not following nested sitemap index {child_url}")
                continue
            self._keep_locs(child_locs, base_url, found)
        return found

    def guessed_urls(self, base_url: str) -> List[str]:
        guesses = []
        for path in GUESSED_PATHS:
            url = normalize_url(path, base_url)
            if url and same_origin(url, base_url):
                guesses.append(url)
        return guesses

    def discover(self, base_url: str, scrape_allowed: str) -> List[str]:
        """
        Candidate page URLs for a site, in discovery order, capped at max_links_per_site.

        Args:
            base_url: The venue's website
            scrape_allowed: Consent value; anything but 'true' yields no links
        """
        base_url = (base_url or "").strip()
        if not base_url or not is_allowed(scrape_allowed):
            return []

        parsed = urlparse(base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            logger.warning(f"Skipping malformed website URL: {base_url!r}")
            return []

        discovered: List[str] = []

        def add_all(urls):
            for url in urls:
                if url not in discovered:
                    discovered.append(url)

        homepage = self.fetcher.fetch_html(base_url)
        add_all(self.from_homepage(homepage, base_url))

        sitemap_url = f"{parsed.scheme}://{parsed.netloc}/sitemap.xml"
        add_all(self.from_sitemap(self.fetcher.fetch_text(sitemap_url), base_url))

        add_all(self.guessed_urls(base_url))

        return discovered[:self.config.max_links_per_site]
