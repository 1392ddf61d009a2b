from .stages import (
    make_targets, filter_chains, check_robots, scrape_sites, review,
    discover_links, scrape_discovered, merge, report_missing,
    candidates_from_page,
)

__all__ = [
    "make_targets",
    "filter_chains",
    "check_robots",
    "scrape_sites",
    "review",
    "discover_links",
    "scrape_discovered",
    "merge",
    "report_missing",
    "candidates_from_page",
]
