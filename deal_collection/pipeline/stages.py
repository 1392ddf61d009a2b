"""
Pipeline stages.

Each stage reads one input file fresh, transforms typed records, and writes
one output file (plus a companion log for the network stages). Nothing is
shared between stages except those files, so any stage can be re-run on its
own. Network stages fan out over venues or links with a bounded thread pool;
the PoliteFetcher keeps it to one request in flight per host, and all rows
are written through a single TableAppender.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple, TypeVar
import logging

from ..config import PipelineConfig
from ..crawling.compliance import ComplianceResolver, is_allowed, robots_url_for
from ..crawling.content_extractor import ContentExtractor, PageExtraction
from ..crawling.fetcher import PoliteFetcher
from ..crawling.link_discovery import LinkDiscoverer, normalize_url
from ..data_models.models import (
    CrawlTarget, DiscoveredLink, MissingVenueRow, RawCandidate,
    row_from_table, row_model_headers,
)
from ..exceptions import MissingInputError
from ..processing.normalizer import normalize_block
from ..processing.quality import looks_like_junk, review_candidates
from .stage_logging import companion_log

from venue_store.canonical import MergeReport, load_venues, merge_rows, save_venues
from venue_store.coverage import build_missing_report
from venue_store.tables import TableAppender, read_headers, read_table, write_table
from venue_store.targets import build_targets, split_chains

logger = logging.getLogger(__name__)

# Pages tried on the homepage pass besides the website itself
HOMEPAGE_PASS_PATHS = ["/specials", "/deals", "/happy-hour", "/happyhour", "/menu", "/menus"]

TARGET_HEADERS = row_model_headers(CrawlTarget)
CANDIDATE_HEADERS = row_model_headers(RawCandidate)
LINK_HEADERS = row_model_headers(DiscoveredLink)
MISSING_HEADERS = row_model_headers(MissingVenueRow)

T = TypeVar('T')
R = TypeVar('R')

def _require(path) -> Path:
    path = Path(path)
    if not path.exists():
        raise MissingInputError(f"Required input file not found: {path}")
    return path

def _run_parallel(items: List[T], worker: Callable[[T], R], max_workers: int) -> Iterator[Tuple[T, Optional[R]]]:
    """Yield (item, result) as workers finish; a worker that raises yields None"""
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_item = {executor.submit(worker, item): item for item in items}
        for future in as_completed(future_to_item):
            item = future_to_item[future]
            try:
                yield item, future.result()
            except Exception as e:
                logger.error(f"Error processing {item!r}: {e}")
                yield item, None

def _already_written(path, column: str, resume: bool) -> Set[str]:
    path = Path(path)
    if not resume or not path.exists():
        return set()
    return {row.get(column, '').lower() for row in read_table(path)}

def _own_fetcher(fetcher: Optional[PoliteFetcher], config: PipelineConfig) -> Tuple[PoliteFetcher, bool]:
    if fetcher is not None:
        return fetcher, False
    return PoliteFetcher(config), True

def candidates_from_page(extraction: PageExtraction, venue_name: str, street_hint: str = "",
                         config: PipelineConfig = None) -> List[RawCandidate]:
    """Turn one page's text blocks and structured items into candidate rows"""
    config = config or PipelineConfig()
    rows = []
    for text in extraction.blocks:
        deal = normalize_block(text, extraction.url, scrape_allowed="true",
                               snippet_length=config.snippet_length)
        rows.append(RawCandidate.from_deal(deal, venue_name, street_hint))

    for item in extraction.structured:
        if not item.text:
            continue
        deal = normalize_block(
            item.text, extraction.url,
            title=item.title, weekday=item.weekday or None,
            start_time=item.start_time or None, end_time=item.end_time or None,
            price=item.price, currency=item.currency or None,
            scrape_allowed="true", snippet_length=config.snippet_length,
        )
        rows.append(RawCandidate.from_deal(deal, venue_name, street_hint))
    return rows

# Stage: target registry

def make_targets(dataset_path, output_path, config: PipelineConfig = None) -> int:
    config = config or PipelineConfig()
    venues = load_venues(dataset_path)
    targets = build_targets(venues, config.city, config.region)
    return write_table(output_path, targets, TARGET_HEADERS)

def filter_chains(dataset_path, output_path, removed_path) -> Tuple[List[str], List[str]]:
    """Write non-chain venues to output_path and a backup of removed ones. Returns the name lists."""
    venues = load_venues(dataset_path)
    kept, removed = split_chains(venues)
    save_venues(output_path, kept)
    save_venues(removed_path, removed)
    return [v.venue_name for v in kept], [v.venue_name for v in removed]

# Stage: consent check

def check_robots(input_path, output_path, log_path=None, config: PipelineConfig = None,
                 fetcher: PoliteFetcher = None) -> Dict[str, int]:
    """
    Fill in scrape_allowed for every target that does not have one yet.

    All input columns are carried through. Returns counts per outcome.
    """
    config = config or PipelineConfig()
    rows = read_table(_require(input_path))
    headers = read_headers(input_path) or list(TARGET_HEADERS)
    for column in ('robots_url', 'scrape_allowed'):
        if column not in headers:
            headers.append(column)

    for row in rows:
        if not row.get('robots_url') and row.get('website'):
            row['robots_url'] = robots_url_for(row['website'])

    pending = [row for row in rows if row.get('robots_url') and not row.get('scrape_allowed')]
    fetcher, owned = _own_fetcher(fetcher, config)
    resolver = ComplianceResolver(fetcher, config)
    try:
        with companion_log(log_path) as stage_log:
            for row, outcome in _run_parallel(pending, lambda r: resolver.check(r['robots_url']),
                                              config.max_workers):
                row['scrape_allowed'] = outcome or ""
                stage_log.info(f"{row.get('venue_name', '')}: robots={row['robots_url']} → {row['scrape_allowed']}")
    finally:
        if owned:
            fetcher.close()

    write_table(output_path, rows, headers)
    counts = {'true': 0, 'false': 0, '': 0}
    for row in rows:
        value = (row.get('scrape_allowed') or '').lower()
        counts[value if value in counts else ''] += 1
    return counts

# Stage: homepage pass

def scrape_sites(input_path, output_path, log_path=None, config: PipelineConfig = None,
                 fetcher: PoliteFetcher = None, resume: bool = False) -> int:
    """Scrape each consented website and a few conventional paths, keeping a handful of rows per venue"""
    config = config or PipelineConfig()
    targets = [row_from_table(CrawlTarget, r) for r in read_table(_require(input_path))]
    done = _already_written(output_path, 'venue_name', resume)
    targets = [t for t in targets
               if t.website and is_allowed(t.scrape_allowed) and t.venue_name.lower() not in done]

    fetcher, owned = _own_fetcher(fetcher, config)
    extractor = ContentExtractor(fetcher, config)

    def scrape(target: CrawlTarget) -> Tuple[List[RawCandidate], List[str]]:
        urls = []
        for url in [target.website] + HOMEPAGE_PASS_PATHS:
            resolved = normalize_url(url, target.website)
            if resolved and resolved not in urls:
                urls.append(resolved)

        rows, skipped = [], []
        for url in urls:
            extraction = extractor.extract(url)
            if not extraction.fetched:
                skipped.append(url)
                continue
            for row in candidates_from_page(extraction, target.venue_name, target.street, config):
                if looks_like_junk(row.source_snippet):
                    continue
                rows.append(row)
                if len(rows) >= config.max_rows_per_site:
                    return rows, skipped
        return rows, skipped

    try:
        with companion_log(log_path, resume) as stage_log, \
                TableAppender(output_path, CANDIDATE_HEADERS, resume) as out:
            for target, result in _run_parallel(targets, scrape, config.max_workers):
                rows, skipped = result or ([], [])
                for url in skipped:
                    stage_log.info(f"SKIP (no html): {target.venue_name} -> {url}")
                if rows:
                    out.append(rows)
                    stage_log.info(f"FOUND {len(rows)}: {target.venue_name}")
                else:
                    stage_log.info(f"NONE: {target.venue_name}")
            return out.rows_written
    finally:
        if owned:
            fetcher.close()

# Stage: review

def review(input_path, output_path, cap: int, require_consent: bool = True,
           config: PipelineConfig = None) -> int:
    config = config or PipelineConfig()
    candidates = [row_from_table(RawCandidate, r) for r in read_table(_require(input_path))]
    reviewed = review_candidates(candidates, cap, require_consent, config.snippet_length)
    return write_table(output_path, reviewed, CANDIDATE_HEADERS)

# Stage: link discovery

def discover_links(input_path, output_path, log_path=None, config: PipelineConfig = None,
                   fetcher: PoliteFetcher = None, resume: bool = False) -> int:
    """
    Discover candidate pages for each consented venue.

    Accepts a checked targets table or a missing-deals report; both carry
    venue_name, website and scrape_allowed.
    """
    config = config or PipelineConfig()
    rows = read_table(_require(input_path))
    done = _already_written(output_path, 'venue_name', resume)
    venues = [r for r in rows
              if r.get('website') and is_allowed(r.get('scrape_allowed'))
              and r.get('venue_name', '').lower() not in done]

    fetcher, owned = _own_fetcher(fetcher, config)
    discoverer = LinkDiscoverer(fetcher, config)
    try:
        with companion_log(log_path, resume) as stage_log, \
                TableAppender(output_path, LINK_HEADERS, resume) as out:
            work = lambda r: discoverer.discover(r['website'], r.get('scrape_allowed'))
            for row, urls in _run_parallel(venues, work, config.max_workers):
                if urls:
                    out.append(DiscoveredLink(venue_name=row['venue_name'], base_url=row['website'], url=u)
                               for u in urls)
                    stage_log.info(f"FOUND {len(urls)} → {row['venue_name']}")
                else:
                    stage_log.info(f"NONE → {row['venue_name']}")
            return out.rows_written
    finally:
        if owned:
            fetcher.close()

# Stage: discovered-page pass

def scrape_discovered(input_path, output_path, log_path=None, config: PipelineConfig = None,
                      fetcher: PoliteFetcher = None, include_structured: bool = True,
                      resume: bool = False) -> int:
    """Extract candidate rows from every discovered link"""
    config = config or PipelineConfig()
    links = [row_from_table(DiscoveredLink, r) for r in read_table(_require(input_path))]
    done = _already_written(output_path, 'source_url', resume)
    links = [l for l in links if l.url and l.venue_name and l.url.lower() not in done]

    fetcher, owned = _own_fetcher(fetcher, config)
    extractor = ContentExtractor(fetcher, config)

    def scrape(link: DiscoveredLink) -> List[RawCandidate]:
        extraction = extractor.extract(link.url, include_structured=include_structured)
        return candidates_from_page(extraction, link.venue_name, "", config)

    try:
        with companion_log(log_path, resume) as stage_log, \
                TableAppender(output_path, CANDIDATE_HEADERS, resume) as out:
            for link, rows in _run_parallel(links, scrape, config.max_workers):
                if rows:
                    out.append(rows)
                    stage_log.info(f"FOUND {len(rows)} → {link.venue_name} ({link.url})")
                else:
                    stage_log.info(f"NONE → {link.venue_name} ({link.url})")
            return out.rows_written
    finally:
        if owned:
            fetcher.close()

# Stage: canonical merge

def merge(input_paths: Iterable, dataset_path, now: Optional[datetime] = None) -> MergeReport:
    """Fold reviewed (or hand-written) deal rows into the canonical dataset"""
    rows: List[RawCandidate] = []
    for path in input_paths:
        rows.extend(row_from_table(RawCandidate, r) for r in read_table(_require(path)))

    venues = load_venues(dataset_path)
    report = merge_rows(venues, rows, now)
    save_venues(dataset_path, venues)
    return report

# Stage: coverage report

def report_missing(dataset_path, targets_path, output_path, config: PipelineConfig = None) -> int:
    config = config or PipelineConfig()
    venues = load_venues(dataset_path)
    targets: List[CrawlTarget] = []
    if targets_path and Path(targets_path).exists():
        targets = [row_from_table(CrawlTarget, r) for r in read_table(targets_path)]
    else:
        logger.warning(f"No checked targets at {targets_path}; report will carry dataset fields only")
    missing = build_missing_report(venues, targets, config.city, config.region)
    return write_table(output_path, missing, MISSING_HEADERS)
