from .models import (
    Deal, Venue, Address, Contact,
    CrawlTarget, DiscoveredLink, MissingVenueRow, RawCandidate,
    Weekday, Category, Confidence,
    WEEKDAYS, CATEGORY_TAXONOMY,
    row_model_headers, row_from_table,
)

__all__ = [
    "Deal",
    "Venue",
    "Address",
    "Contact",
    "CrawlTarget",
    "DiscoveredLink",
    "MissingVenueRow",
    "RawCandidate",
    "Weekday",
    "Category",
    "Confidence",
    "WEEKDAYS",
    "CATEGORY_TAXONOMY",
    "row_model_headers",
    "row_from_table",
]
