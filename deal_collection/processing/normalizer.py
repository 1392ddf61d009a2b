"""
Deal normalization

Turns a raw candidate block (free text plus any fields already known from
structured data) into a typed Deal. Every classification step is driven by
the ordered rule tables below so each rule can be tested on its own. The
functions here are pure: the same text always yields the same Deal.
"""

from typing import List, Optional, Tuple
import re

from ..data_models.models import (
    Category, Confidence, Deal, RawCandidate,
    normalize_clock, normalize_price, normalize_weekday, split_semicolons,
)

# Phrases that mark a block as promotional. Used for confidence scoring.
PROMOTION_KEYWORDS = [
    "happy hour", "taco tuesday", "wing wednesday", "industry night",
    "special", "specials", "daily specials", "deal", "deals", "brunch",
]

# (phrase, title) checked in order; first hit wins
TITLE_RULES: List[Tuple[str, str]] = [
    ("taco tuesday", "Taco Tuesday"),
    ("wing wednesday", "Wing Wednesday"),
    ("happy hour", "Happy Hour"),
    ("industry night", "Industry Night"),
    ("daily specials", "Daily Specials"),
    ("brunch", "Brunch"),
]
DEFAULT_TITLE = "Special"

# (needles, tags): any needle adds all tags, in table order
CATEGORY_RULES: List[Tuple[Tuple[str, ...], Tuple[Category, ...]]] = [
    (("taco",), (Category.TACOS,)),
    (("wing",), (Category.WINGS,)),
    (("pizza",), (Category.PIZZA,)),
    (("burger",), (Category.BURGERS,)),
    (("sushi",), (Category.SUSHI,)),
    (("brunch",), (Category.BRUNCH,)),
    (("bbq", "barbecue"), (Category.BBQ,)),
    (("seafood", "oyster", "shrimp"), (Category.SEAFOOD,)),
    (("vegan",), (Category.VEGAN,)),
    (("dessert",), (Category.DESSERT,)),
    (("beer", "draft", "cocktail", "wine", "happy hour"), (Category.DRINKS, Category.HAPPY_HOUR)),
]

WEEKDAY_RE = re.compile(r'\b(Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday)s?\b', re.I)
PRICE_RE = re.compile(r'\$\s?(\d{1,3}(?:\.\d{1,2})?)')
_CLOCK = r'(?:2[0-3]|[01]?\d)(?::[0-5]\d)?\s*(?:am|pm)?'
TIME_WINDOW_RE = re.compile(
    r'\b(' + _CLOCK + r')\s*(?:-|to|–|—|until)\s*(' + _CLOCK + r')\b',
    re.I,
)
CLOCK_TOKEN_RE = re.compile(r'^(\d{1,2})(?::([0-5]\d))?\s*(am|pm)?$', re.I)

# Bare hours at or below this are read as evening ("5-7" is 17:00-19:00)
BARE_PM_CUTOFF = 7

SNIPPET_LENGTH = 240

def clean_snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()[:limit]

def has_promotion_keyword(text: str) -> bool:
    lowered = (text or '').lower()
    return any(keyword in lowered for keyword in PROMOTION_KEYWORDS)

def has_extractable_signal(text: str) -> bool:
    """A price, time window or weekday appears somewhere in the text"""
    return bool(PRICE_RE.search(text) or TIME_WINDOW_RE.search(text) or WEEKDAY_RE.search(text))

def infer_title(text: str) -> str:
    lowered = (text or '').lower()
    for phrase, title in TITLE_RULES:
        if phrase in lowered:
            return title
    return DEFAULT_TITLE

def classify_categories(text: str) -> List[str]:
    lowered = (text or '').lower()
    tags: List[str] = []
    for needles, rule_tags in CATEGORY_RULES:
        if any(needle in lowered for needle in needles):
            for tag in rule_tags:
                if tag.value not in tags:
                    tags.append(tag.value)
    return tags

def to_24h(token: str) -> Optional[str]:
    """
    '[hour][:minute][am|pm]' to 'HH:MM'.

    12am is midnight, 12pm is noon, and a bare hour from 1 to 7 is taken
    as PM. Returns None for anything that is not a clock reading.
    """
    if not token:
        return None
    match = CLOCK_TOKEN_RE.match(token.strip())
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = (match.group(3) or '').lower()
    if hour > 23 or (meridiem and not 1 <= hour <= 12):
        return None
    if meridiem == 'pm' and hour < 12:
        hour += 12
    elif meridiem == 'am' and hour == 12:
        hour = 0
    elif not meridiem and 1 <= hour <= BARE_PM_CUTOFF:
        hour += 12
    return f"{hour:02d}:{minute:02d}"

def clock_field(value) -> Optional[str]:
    """A supplied time as 24-hour HH:MM, accepting "17:00" as well as "5pm"; None if it will not parse"""
    if not value:
        return None
    return normalize_clock(value) or to_24h(str(value))

def extract_weekday(text: str) -> Optional[str]:
    match = WEEKDAY_RE.search(text or '')
    return normalize_weekday(match.group(1)) if match else None

def extract_time_window(text: str) -> Tuple[Optional[str], Optional[str]]:
    match = TIME_WINDOW_RE.search(text or '')
    if not match:
        return None, None
    return to_24h(match.group(1)), to_24h(match.group(2))

def extract_price(text: str) -> Optional[float]:
    match = PRICE_RE.search(text or '')
    return normalize_price(match.group(1)) if match else None

def score_confidence(text: str, weekday, start_time, end_time, price) -> Confidence:
    """high: keyword + 2 signals, medium: keyword + 1 signal, else low"""
    if not has_promotion_keyword(text):
        return Confidence.LOW
    signals = sum([bool(weekday), bool(start_time and end_time), price is not None])
    if signals >= 2:
        return Confidence.HIGH
    if signals >= 1:
        return Confidence.MEDIUM
    return Confidence.LOW

def normalize_block(text: str, source_url: str, *, title: str = None, description: str = None,
                    weekday: str = None, start_time: str = None, end_time: str = None,
                    price=None, currency: str = None, restrictions=None, category=None,
                    scrape_allowed=None, snippet_length: int = SNIPPET_LENGTH) -> Deal:
    """
    Build a Deal from a candidate block.

    Fields passed in are kept; anything missing is derived from the text.
    Confidence is always recomputed from the final fields.
    """
    snippet = clean_snippet(text, snippet_length)

    weekday = normalize_weekday(weekday) or extract_weekday(snippet)
    start_time = clock_field(start_time)
    end_time = clock_field(end_time)
    if not (start_time and end_time):
        found_start, found_end = extract_time_window(snippet)
        start_time = start_time or found_start
        end_time = end_time or found_end
    price = normalize_price(price)
    if price is None:
        price = extract_price(snippet)

    deal = Deal(
        title=title or infer_title(snippet),
        description=description,
        weekday=weekday,
        start_time=start_time,
        end_time=end_time,
        price=price,
        currency=(currency or 'USD') if price is not None else None,
        restrictions=restrictions,
        category=[tag.lower() for tag in split_semicolons(category)] or classify_categories(snippet),
        source_snippet=snippet,
        source_url=source_url or '',
        scrape_allowed=scrape_allowed,
    )
    deal.confidence = score_confidence(snippet, deal.weekday, deal.start_time, deal.end_time, deal.price).value
    return deal

def normalize_candidate(candidate: RawCandidate, snippet_length: int = SNIPPET_LENGTH) -> Deal:
    """normalize_block over a table row, keeping the row's filled-in columns"""
    return normalize_block(
        candidate.source_snippet,
        candidate.source_url,
        title=candidate.title or None,
        description=candidate.description or None,
        weekday=candidate.weekday or None,
        start_time=candidate.start_time or None,
        end_time=candidate.end_time or None,
        price=candidate.price or None,
        currency=candidate.currency or None,
        restrictions=candidate.restrictions or None,
        category=candidate.category or None,
        scrape_allowed=candidate.scrape_allowed or None,
        snippet_length=snippet_length,
    )
