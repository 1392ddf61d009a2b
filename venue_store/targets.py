from typing import List, Tuple
from urllib.parse import quote_plus, urlparse
import re

from deal_collection.crawling.compliance import robots_url_for
from deal_collection.data_models.models import CrawlTarget, Venue

# Lowercase name fragments and registrable domains of national chains.
# Extend as new ones show up in the seed data.
CHAIN_NAMES = [
    "mcdonald", "burger king", "wendy", "taco bell", "kfc", "pizza hut",
    "domino", "papa john", "little caesars", "subway", "chipotle",
    "panera", "starbucks", "dunkin", "five guys", "shake shack",
    "arbys", "dairy queen", "jimmy john", "jersey mike",
    "firehouse subs", "wingstop", "zaxby", "bojangles", "cook out",
    "qdoba", "moe s southwest grill", "panda express",
    "red robin", "buffalo wild wings", "hooters", "ihop", "denny",
    "waffle house", "checkers", "rally s", "raising cane", "culver",
    "whataburger", "hardee", "carl s jr", "schlotzsky", "potbelly",
    "pieology", "mod pizza", "blaze pizza", "tropical smoothie",
    "smoothie king", "jeremiah s italian ice", "cold stone", "auntie anne",
    "great clips",
]

CHAIN_DOMAINS = [
    "mcdonalds.com", "burgerking.com", "wendys.com", "tacobell.com", "kfc.com", "pizzahut.com",
    "dominos.com", "papajohns.com", "littlecaesars.com", "subway.com", "chipotle.com",
    "panerabread.com", "starbucks.com", "dunkindonuts.com", "fiveguys.com", "shakeshack.com",
    "arbys.com", "dairyqueen.com", "jimmyjohns.com", "jerseymikes.com", "firehousesubs.com",
    "wingstop.com", "zaxbys.com", "bojangles.com", "cookout.com", "qdoba.com", "moes.com",
    "pandaexpress.com", "redrobin.com", "buffalowildwings.com", "hooters.com", "ihop.com",
    "dennys.com", "wafflehouse.com", "checkers.com", "rallys.com", "raisingcanes.com",
    "culvers.com", "whataburger.com", "hardees.com", "carlsjr.com", "schlotzskys.com",
    "potbelly.com", "pieology.com", "modpizza.com", "blazepizza.com", "tropicalsmoothiecafe.com",
    "smoothieking.com", "jeremiahsice.com", "coldstonecreamery.com", "auntieannes.com",
]

SEARCH_TERMS = '(specials OR "happy hour" OR menu OR tacos OR wings)'

def normalize_name(name: str) -> str:
    """Lowercase, '&' to 'and', punctuation to spaces, single-spaced"""
    name = (name or '').lower().replace('&', 'and')
    name = re.sub(r'[^a-z0-9\s]', ' ', name)
    return re.sub(r'\s+', ' ', name).strip()

def registrable_domain(website: str) -> str:
    try:
        host = urlparse((website or '').strip()).hostname or ''
    except ValueError:
        return ''
    parts = [p for p in host.lower().split('.') if p]
    return '.'.join(parts[-2:]) if len(parts) > 2 else '.'.join(parts)

def is_chain(venue: Venue) -> bool:
    name = normalize_name(venue.venue_name)
    if any(chain in name for chain in CHAIN_NAMES):
        return True
    domain = registrable_domain(venue.contact.website)
    return bool(domain) and any(domain.endswith(d) for d in CHAIN_DOMAINS)

def split_chains(venues: List[Venue]) -> Tuple[List[Venue], List[Venue]]:
    """(kept, removed)"""
    kept, removed = [], []
    for venue in venues:
        (removed if is_chain(venue) else kept).append(venue)
    return kept, removed

def google_maps_search_url(query: str) -> str:
    return f"https://www.google.com/maps/search/?api=1&query={quote_plus(query)}"

def venue_to_target(venue: Venue, city: str, region: str) -> CrawlTarget:
    name = venue.venue_name
    street = venue.address.street
    city = venue.address.city or city
    region = venue.address.region or region
    website = venue.contact.website.strip()
    return CrawlTarget(
        venue_name=name,
        street=street,
        city=city,
        region=region,
        postal_code=venue.address.postal_code,
        website=website,
        instagram=venue.contact.instagram,
        facebook=venue.contact.facebook,
        google_maps=venue.contact.google_maps or google_maps_search_url(f"{name} {street} {city} {region}"),
        search_query=f"{name} {street} {city} {region} {SEARCH_TERMS}",
        robots_url=robots_url_for(website) if website else "",
        scrape_allowed="",
    )

def build_targets(venues: List[Venue], city: str = "Charlotte", region: str = "NC") -> List[CrawlTarget]:
    """Crawl targets for every venue, sorted by name for stable diffs"""
    ordered = sorted((v for v in venues if not v.is_unvalidated), key=lambda v: v.venue_name)
    return [venue_to_target(v, city, region) for v in ordered]
