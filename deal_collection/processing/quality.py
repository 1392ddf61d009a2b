from typing import Callable, Dict, Iterable, List, Tuple, TypeVar
import logging

from ..crawling.compliance import is_allowed
from ..data_models.models import Confidence, Deal, RawCandidate
from .normalizer import (
    SNIPPET_LENGTH, clean_snippet, has_extractable_signal, has_promotion_keyword, normalize_candidate,
)

logger = logging.getLogger(__name__)

MIN_SNIPPET_LENGTH = 20

DROP_PHRASES = [
    "privacy policy", "terms of service", "cookie", "accessibility", "copyright",
    "gift card", "newsletter", "order online", "reservations", "buy tickets",
    "tickets on sale", "catering",
]

T = TypeVar('T')

def looks_like_junk(text: str) -> bool:
    """Too short, boilerplate, or no promotion keyword and no signal at all"""
    lowered = clean_snippet(text, limit=len(text or '')).lower()
    if len(lowered) < MIN_SNIPPET_LENGTH:
        return True
    if any(phrase in lowered for phrase in DROP_PHRASES):
        return True
    return not has_promotion_keyword(lowered) and not has_extractable_signal(lowered)

def has_concrete_signal(deal: Deal) -> bool:
    return bool(deal.price is not None or deal.has_complete_window or deal.weekday)

def passes_post_filter(deal: Deal) -> bool:
    """Low-confidence deals survive only with a price, full window or weekday"""
    return deal.confidence != Confidence.LOW or has_concrete_signal(deal)

def deal_key(deal: Deal) -> Tuple[str, str, str, str, str]:
    """The one dedup key for deals within a venue"""
    return (
        (deal.title or '').strip().lower(),
        (deal.weekday or '').strip().lower(),
        (deal.start_time or '').strip().lower(),
        (deal.end_time or '').strip().lower(),
        (deal.source_url or '').strip().lower(),
    )

def venue_key(venue_name: str) -> str:
    return (venue_name or '').strip().lower()

def candidate_key(candidate: RawCandidate) -> tuple:
    """deal_key scoped to a venue, for tables that mix venues"""
    return (venue_key(candidate.venue_name),) + deal_key(candidate.to_deal())

def dedupe(items: Iterable[T], key: Callable[[T], object]) -> List[T]:
    """Keep the first item for each key, preserving order"""
    seen = set()
    kept = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        kept.append(item)
    return kept

def cap_per_venue(candidates: Iterable[RawCandidate], cap: int) -> List[RawCandidate]:
    counts: Dict[str, int] = {}
    kept = []
    for candidate in candidates:
        k = venue_key(candidate.venue_name)
        if counts.get(k, 0) >= cap:
            continue
        counts[k] = counts.get(k, 0) + 1
        kept.append(candidate)
    return kept

def passes_pre_filter(candidate: RawCandidate, require_consent: bool = True) -> bool:
    if require_consent and not is_allowed(candidate.scrape_allowed):
        return False
    if not candidate.source_url.lower().startswith('http'):
        return False
    if not candidate.source_snippet.strip():
        return False
    return not looks_like_junk(candidate.source_snippet)

def review_candidates(candidates: List[RawCandidate], cap: int, require_consent: bool = True,
                      snippet_length: int = SNIPPET_LENGTH) -> List[RawCandidate]:
    """
    Filter, normalize, deduplicate and cap a table of raw candidates.

    Args:
        candidates: Rows from a scraped/discovered deals table
        cap: Maximum rows kept per venue
        require_consent: Drop rows whose scrape_allowed is not 'true'
        snippet_length: Snippet truncation applied during normalization

    Returns:
        Normalized rows in input order
    """
    kept = [c for c in candidates if passes_pre_filter(c, require_consent)]
    logger.info(f"Pre-filter kept {len(kept)} of {len(candidates)} rows")

    reviewed = []
    for candidate in kept:
        deal = normalize_candidate(candidate, snippet_length=snippet_length)
        if not passes_post_filter(deal):
            continue
        reviewed.append(RawCandidate.from_deal(deal, candidate.venue_name, candidate.street_hint))

    reviewed = dedupe(reviewed, candidate_key)
    reviewed = cap_per_venue(reviewed, cap)
    logger.info(f"Review kept {len(reviewed)} rows after dedup and cap {cap}")
    return reviewed
