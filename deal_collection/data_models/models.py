from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from typing import Optional, List, Dict, Any, Union
from enum import Enum
import re

# Custom validator functions for flexible field handling
def normalize_weekday(value):
    """Normalize weekday spellings ("tues", "Tuesdays") to the canonical name"""
    if not value:
        return None
    value = str(value).lower().strip()

    weekday_mapping = {
        'monday': 'Monday', 'mon': 'Monday', 'mondays': 'Monday',
        'tuesday': 'Tuesday', 'tue': 'Tuesday', 'tues': 'Tuesday', 'tuesdays': 'Tuesday',
        'wednesday': 'Wednesday', 'wed': 'Wednesday', 'wednesdays': 'Wednesday',
        'thursday': 'Thursday', 'thu': 'Thursday', 'thur': 'Thursday', 'thurs': 'Thursday',
        'thursdays': 'Thursday',
        'friday': 'Friday', 'fri': 'Friday', 'fridays': 'Friday',
        'saturday': 'Saturday', 'sat': 'Saturday', 'saturdays': 'Saturday',
        'sunday': 'Sunday', 'sun': 'Sunday', 'sundays': 'Sunday',
    }

    return weekday_mapping.get(value)

def normalize_confidence(value):
    """Normalize confidence to high/medium/low, defaulting to low"""
    if not value:
        return 'low'
    value = str(value).lower().strip()
    return value if value in ('high', 'medium', 'low') else 'low'

def normalize_clock(value):
    """Accept 'H:MM' / 'HH:MM' and return zero-padded 24-hour 'HH:MM'"""
    if not value:
        return None
    match = re.match(r'^\s*(\d{1,2}):([0-5]\d)\s*$', str(value))
    if not match:
        return None
    hour = int(match.group(1))
    if hour > 23:
        return None
    return f"{hour:02d}:{match.group(2)}"

def normalize_price(value):
    """Parse numbers and strings like '5', '$5.5' into a two-decimal float"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return round(float(value), 2)
    cleaned = str(value).replace('$', '').replace(',', '').strip()
    try:
        return round(float(cleaned), 2)
    except ValueError:
        return None

def normalize_tri_state(value):
    """'true'/'false'/'' (and real booleans) to True/False/None"""
    if isinstance(value, bool) or value is None:
        return value
    value = str(value).strip().lower()
    if value == 'true':
        return True
    if value == 'false':
        return False
    return None

def split_semicolons(value):
    """Intermediate tables store list fields as ';'-joined strings"""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(';') if part.strip()]
    return [str(part).strip() for part in value if part is not None and str(part).strip()]

class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

class Category(str, Enum):
    TACOS = "tacos"
    WINGS = "wings"
    PIZZA = "pizza"
    BURGERS = "burgers"
    SUSHI = "sushi"
    HAPPY_HOUR = "happy_hour"
    DRINKS = "drinks"
    BRUNCH = "brunch"
    SEAFOOD = "seafood"
    BBQ = "bbq"
    VEGAN = "vegan"
    DESSERT = "dessert"

class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

# Python's weekday() index order
WEEKDAYS = [day.value for day in Weekday]
CATEGORY_TAXONOMY = [category.value for category in Category]
CONFIDENCE_TIERS = [tier.value for tier in Confidence]

def keep_stored(value):
    """Blank to None, anything else kept as the stored string"""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    value = str(value).strip()
    return value or None

class Deal(BaseModel):
    """
    A promotional offer tied to a venue.

    Stored deals are hand-curated, so values are kept as written ("Weekdays",
    "4pm"). Canonical forms are produced by the normalizer and by
    RawCandidate.to_deal for rows coming out of the pipeline.
    """
    model_config = ConfigDict(extra='allow')

    title: str = Field("", description="Short name of the promotion (e.g., 'Happy Hour')")
    description: Optional[str] = Field(None, description="Longer free-text description")
    weekday: Optional[str] = Field(None, description="Day the deal runs; unset means unknown/every day")
    start_time: Optional[str] = Field(None, description="Start of the window, 24-hour HH:MM")
    end_time: Optional[str] = Field(None, description="End of the window, 24-hour HH:MM")
    price: Optional[Union[float, str]] = Field(None, description="Deal price")
    currency: Optional[str] = Field(None, description="ISO currency code for price")
    restrictions: List[str] = Field(default_factory=list, description="Free-text exclusions")
    start_date: Optional[str] = Field(None, description="First date the deal is valid")
    end_date: Optional[str] = Field(None, description="Last date the deal is valid")
    category: List[str] = Field(default_factory=list, description="Tags from the category taxonomy")
    confidence: str = Field(Confidence.LOW.value, description="Reliability tier")
    source_snippet: str = Field("", description="Verbatim excerpt the deal was derived from")
    source_url: str = Field("", description="Page the snippet was found on")
    scrape_allowed: Optional[Union[bool, str]] = Field(None, description="Consent outcome for the source site")

    @field_validator('weekday', 'start_time', 'end_time', mode='before')
    @classmethod
    def validate_stored_text(cls, v):
        return keep_stored(v)

    @field_validator('price', mode='before')
    @classmethod
    def validate_price(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return float(v)
        return keep_stored(v)

    @field_validator('confidence', mode='before')
    @classmethod
    def validate_confidence(cls, v):
        if isinstance(v, Confidence):
            return v.value
        stored = keep_stored(v)
        if stored is None:
            return Confidence.LOW.value
        return stored.lower() if stored.lower() in CONFIDENCE_TIERS else stored

    @field_validator('restrictions', mode='before')
    @classmethod
    def validate_restrictions(cls, v):
        return split_semicolons(v)

    @field_validator('category', mode='before')
    @classmethod
    def validate_category(cls, v):
        tags = []
        for tag in split_semicolons(v):
            if tag not in tags:
                tags.append(tag)
        return tags

    @field_validator('scrape_allowed', mode='before')
    @classmethod
    def validate_scrape_allowed(cls, v):
        flag = normalize_tri_state(v)
        return flag if flag is not None else keep_stored(v)

    @field_validator('title', 'source_snippet', 'source_url', mode='before')
    @classmethod
    def none_to_blank(cls, v):
        return '' if v is None else v

    @property
    def has_complete_window(self) -> bool:
        return bool(self.start_time and self.end_time)

    @property
    def has_provenance(self) -> bool:
        return bool(self.source_url and self.source_snippet.strip())

class Address(BaseModel):
    model_config = ConfigDict(extra='allow')

    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None

    @field_validator('street', 'city', 'region', 'postal_code', mode='before')
    @classmethod
    def none_to_blank(cls, v):
        return '' if v is None else str(v)

    @field_validator('lat', 'lng', mode='before')
    @classmethod
    def blank_coordinate(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

class Contact(BaseModel):
    model_config = ConfigDict(extra='allow')

    phone: str = ""
    website: str = ""
    instagram: str = ""
    facebook: str = ""
    google_maps: str = ""

    @field_validator('phone', 'website', 'instagram', 'facebook', 'google_maps', mode='before')
    @classmethod
    def none_to_blank(cls, v):
        return '' if v is None else str(v)

class Venue(BaseModel):
    """A venue in the canonical dataset. Unknown keys are kept so hand curation survives a rewrite."""
    model_config = ConfigDict(extra='allow')

    venue_name: str = ""
    categories: List[str] = Field(default_factory=list)
    address: Address = Field(default_factory=Address)
    contact: Contact = Field(default_factory=Contact)
    hours: List[Dict[str, Any]] = Field(default_factory=list)
    deals: List[Deal] = Field(default_factory=list)
    menu_items: List[Any] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    last_verified_at: Optional[str] = None

    # Original JSON of a record that failed validation; written back untouched
    _raw: Any = PrivateAttr(default=None)

    @field_validator('address', 'contact', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return {} if v is None else v

    @field_validator('categories', 'hours', 'deals', 'menu_items', mode='before')
    @classmethod
    def none_to_list(cls, v):
        return [] if v is None else v

    @field_validator('notes', mode='before')
    @classmethod
    def validate_notes(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v

    @classmethod
    def unvalidated(cls, raw) -> "Venue":
        """Placeholder for a record the pipeline skips but must not lose"""
        name = raw.get("venue_name") if isinstance(raw, dict) else None
        venue = cls(venue_name=name if isinstance(name, str) else "")
        venue._raw = raw
        return venue

    @property
    def is_unvalidated(self) -> bool:
        return self._raw is not None

    @property
    def identity_key(self) -> tuple:
        return (self.venue_name.strip().lower(), self.address.street.strip().lower())

# Intermediate table rows. Every field is the raw string stored in the CSV.

class CrawlTarget(BaseModel):
    """Row of targets.csv / targets_checked.csv"""
    venue_name: str = ""
    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    website: str = ""
    instagram: str = ""
    facebook: str = ""
    google_maps: str = ""
    search_query: str = ""
    robots_url: str = ""
    scrape_allowed: str = ""
    notes: str = ""

class DiscoveredLink(BaseModel):
    """Row of discovered_links.csv"""
    venue_name: str = ""
    base_url: str = ""
    url: str = ""

class MissingVenueRow(BaseModel):
    """Row of missing_deals_report.csv"""
    venue_name: str = ""
    street: str = ""
    neighborhood_hint: str = ""
    website: str = ""
    scrape_allowed: str = ""
    robots_url: str = ""
    google_maps: str = ""
    search_query: str = ""
    note: str = ""

class RawCandidate(BaseModel):
    """Row of the scraped/discovered deal tables, before or after review"""
    venue_name: str = ""
    street_hint: str = ""
    title: str = ""
    description: str = ""
    weekday: str = ""
    start_time: str = ""
    end_time: str = ""
    price: str = ""
    currency: str = ""
    restrictions: str = ""
    category: str = ""
    confidence: str = ""
    source_snippet: str = ""
    source_url: str = ""
    scrape_allowed: str = ""

    @classmethod
    def from_deal(cls, deal: Deal, venue_name: str, street_hint: str = "") -> "RawCandidate":
        price = deal.price
        return cls(
            venue_name=venue_name,
            street_hint=street_hint,
            title=deal.title,
            description=deal.description or "",
            weekday=deal.weekday or "",
            start_time=deal.start_time or "",
            end_time=deal.end_time or "",
            price=f"{price:.2f}" if isinstance(price, float) else (price or ""),
            currency=deal.currency or "",
            restrictions=";".join(deal.restrictions),
            category=";".join(deal.category),
            confidence=deal.confidence,
            source_snippet=deal.source_snippet,
            source_url=deal.source_url,
            scrape_allowed="" if deal.scrape_allowed is None else str(deal.scrape_allowed).lower(),
        )

    def to_deal(self) -> Deal:
        """
        Convert a table row into a canonical Deal.

        Weekday, clock times, price, tags and confidence are normalized here;
        values that do not parse become unset fields.
        """
        price = normalize_price(self.price)
        return Deal(
            title=self.title,
            description=self.description or None,
            weekday=normalize_weekday(self.weekday),
            start_time=normalize_clock(self.start_time),
            end_time=normalize_clock(self.end_time),
            price=price,
            currency=self.currency or ("USD" if price is not None else None),
            restrictions=self.restrictions,
            category=[tag.lower() for tag in split_semicolons(self.category)],
            confidence=normalize_confidence(self.confidence),
            source_snippet=self.source_snippet,
            source_url=self.source_url,
            scrape_allowed=normalize_tri_state(self.scrape_allowed),
        )

def row_model_headers(model) -> List[str]:
    """Column order for a row model's table"""
    return list(model.model_fields)

def row_from_table(model, row: Dict[str, str]):
    """Build a row model from a CSV dict, ignoring unknown columns"""
    return model(**{name: (row.get(name) or "") for name in model.model_fields})
