from typing import Dict, List

from deal_collection.data_models.models import CrawlTarget, MissingVenueRow, Venue

def default_search_query(venue: Venue, city: str, region: str) -> str:
    return f'{venue.venue_name} {venue.address.street} {city} {region} specials OR "happy hour" OR menu'

def build_missing_report(venues: List[Venue], targets: List[CrawlTarget],
                         city: str = "Charlotte", region: str = "NC") -> List[MissingVenueRow]:
    """
    One backfill row per venue that still has no deals.

    Website, consent and search hints fall back to the checked targets table
    (matched by lowercase venue name) when the venue itself has none.
    """
    by_name: Dict[str, CrawlTarget] = {}
    for target in targets:
        by_name.setdefault(target.venue_name.strip().lower(), target)

    rows = []
    for venue in venues:
        if venue.deals or venue.is_unvalidated:
            continue
        target = by_name.get(venue.venue_name.strip().lower(), CrawlTarget())
        rows.append(MissingVenueRow(
            venue_name=venue.venue_name,
            street=venue.address.street,
            neighborhood_hint=venue.address.postal_code,
            website=venue.contact.website or target.website,
            scrape_allowed=target.scrape_allowed.strip().lower(),
            robots_url=target.robots_url,
            google_maps=target.google_maps or venue.contact.google_maps,
            search_query=target.search_query or default_search_query(venue, city, region),
        ))
    return rows
