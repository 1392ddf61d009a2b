from bs4 import BeautifulSoup
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from dateutil import parser as date_parser
import logging
import json
import re

from ..config import PipelineConfig
from ..data_models.models import WEEKDAYS, normalize_price
from .fetcher import PoliteFetcher

logger = logging.getLogger(__name__)

PROMOTION_KEYWORDS = [
    "happy hour", "taco tuesday", "wing wednesday", "industry night",
    "special", "specials", "deal", "deals", "brunch", "daily specials",
    "tuesday", "wednesday", "thursday", "monday", "friday", "saturday", "sunday",
]

BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "div", "section"]

MIN_BLOCK_LENGTH = 20

TIME_PART_RE = re.compile(r'\d[T ]\d')

@dataclass
class StructuredItem:
    """Event/offer fields lifted from a JSON-LD block"""
    kind: str  # "event" or "offer"
    title: str
    text: str
    weekday: str = ""
    start_time: str = ""
    end_time: str = ""
    price: Optional[float] = None
    currency: str = ""

@dataclass
class PageExtraction:
    url: str
    blocks: List[str] = field(default_factory=list)
    structured: List[StructuredItem] = field(default_factory=list)
    fetched: bool = True

def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()

def find_candidate_blocks(soup: BeautifulSoup, max_blocks: int = 200,
                          keywords: List[str] = None) -> List[str]:
    """Keyword-bearing text of heading/paragraph/list/container elements, deduplicated"""
    keywords = keywords or PROMOTION_KEYWORDS
    blocks = []
    seen = set()
    for element in soup.find_all(BLOCK_TAGS):
        text = collapse_whitespace(element.get_text(' '))
        if not text:
            continue
        lowered = text.lower()
        if not any(keyword in lowered for keyword in keywords):
            continue
        if lowered in seen:
            continue
        seen.add(lowered)
        if len(text) < MIN_BLOCK_LENGTH:
            continue
        blocks.append(text)
        if len(blocks) >= max_blocks:
            break
    return blocks

def _first_type(item: Dict[str, Any]) -> str:
    item_type = item.get('@type', '')
    if isinstance(item_type, list):
        item_type = item_type[0] if item_type else ''
    return str(item_type or '')

def _first_offer(item: Dict[str, Any]) -> Dict[str, Any]:
    offers = item.get('offers')
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else {}

def _parse_timestamp(value) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return date_parser.isoparse(value.strip())
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable JSON-LD timestamp: {value!r}")
        return None

def _clock(value: str, moment: Optional[datetime]) -> str:
    # Date-only values carry no time of day; the separator may be 'T' or a space
    if moment is None or not TIME_PART_RE.search(value):
        return ''
    return f"{moment.hour:02d}:{moment.minute:02d}"

def _collect_items(item, out: List[StructuredItem]):
    if isinstance(item, list):
        for entry in item:
            _collect_items(entry, out)
        return
    if not isinstance(item, dict):
        return

    item_type = _first_type(item)
    offer = _first_offer(item)
    name = collapse_whitespace(str(item.get('name') or ''))
    description = collapse_whitespace(str(item.get('description') or ''))

    if re.search(r'event', item_type, re.I):
        start_raw = item.get('startDate') or ''
        end_raw = item.get('endDate') or ''
        start = _parse_timestamp(start_raw)
        end = _parse_timestamp(end_raw)
        price = normalize_price(offer.get('price'))
        out.append(StructuredItem(
            kind='event',
            title=name or 'Special',
            text=' - '.join(part for part in (name, description) if part),
            weekday=WEEKDAYS[start.weekday()] if start else '',
            start_time=_clock(str(start_raw), start),
            end_time=_clock(str(end_raw), end),
            price=price,
            currency=str(offer.get('priceCurrency') or ('USD' if price is not None else '')),
        ))
    # An event's own offer price stays on the event record; no separate offer record
    elif re.search(r'offer', item_type, re.I) or item.get('price') or offer.get('price'):
        price = normalize_price(item.get('price') or offer.get('price'))
        currency = item.get('priceCurrency') or offer.get('priceCurrency')
        out.append(StructuredItem(
            kind='offer',
            title=name or 'Special',
            text=' '.join(part for part in (name or 'Offer', description) if part),
            price=price,
            currency=str(currency or ('USD' if price is not None else '')),
        ))

    graph = item.get('@graph')
    if isinstance(graph, list):
        _collect_items(graph, out)

def extract_structured_items(soup: BeautifulSoup) -> List[StructuredItem]:
    """Event and offer items from every application/ld+json script on the page"""
    items: List[StructuredItem] = []
    for script in soup.find_all('script', type='application/ld+json'):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw.strip())
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping malformed JSON-LD block: {e}")
            continue
        _collect_items(data, items)
    return items

class ContentExtractor:
    """Fetches a page and pulls out promotion-looking text and structured data"""

    def __init__(self, fetcher: PoliteFetcher, config: PipelineConfig = None):
        self.fetcher = fetcher
        self.config = config or fetcher.config

    def extract_html(self, html: str, url: str, include_structured: bool = True,
                     max_blocks: Optional[int] = None) -> PageExtraction:
        soup = BeautifulSoup(html, 'html.parser')
        # JSON-LD is read before any script stripping; blocks ignore script text
        structured = extract_structured_items(soup) if include_structured else []
        for script in soup(["script", "style", "noscript"]):
            script.decompose()
        blocks = find_candidate_blocks(soup, max_blocks or self.config.max_blocks_per_page)
        return PageExtraction(url=url, blocks=blocks, structured=structured)

    def extract(self, url: str, include_structured: bool = True,
                max_blocks: Optional[int] = None) -> PageExtraction:
        """
        Fetch one page and run both extraction passes.

        A failed fetch or a non-HTML response yields an empty extraction
        with fetched=False.
        """
        html = self.fetcher.fetch_html(url)
        if not html:
            return PageExtraction(url=url, fetched=False)
        return self.extract_html(html, url, include_structured=include_structured, max_blocks=max_blocks)
