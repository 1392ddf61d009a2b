import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from deal_collection.data_models.models import Deal, RawCandidate, Venue
from deal_collection.exceptions import DatasetError, MissingInputError
from deal_collection.processing.quality import dedupe, deal_key

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

@dataclass
class MergeReport:
    merged: int = 0  # rows accepted onto a venue, repeats included
    added: int = 0  # deals that were not already on the venue
    skipped: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)

def load_venues(path: PathLike) -> List[Venue]:
    """Read the whole canonical dataset. The root must be a JSON array of venue objects."""
    path = Path(path)
    if not path.exists():
        raise MissingInputError(f"Canonical dataset not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DatasetError(f"Canonical dataset {path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise DatasetError(f"Root JSON of {path} must be an array of venues")

    venues = []
    for index, raw in enumerate(data):
        try:
            venues.append(Venue.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Venue #{index} in {path} does not match the venue schema, leaving it untouched: {e}")
            venues.append(Venue.unvalidated(raw))
    return venues

def dump_venues(venues: Iterable[Venue]) -> list:
    """JSON-ready venues. Keys absent from the loaded record stay absent; skipped records are written as read."""
    return [venue._raw if venue.is_unvalidated else venue.model_dump(mode='json', exclude_unset=True)
            for venue in venues]

def save_venues(path: PathLike, venues: Iterable[Venue]):
    """Rewrite the whole dataset atomically (temp file in the same directory, then rename)"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(dump_venues(venues), indent=2, ensure_ascii=False) + '\n'

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

def match_venue(venues: List[Venue], name: str, street_hint: str = "") -> Optional[Venue]:
    """
    Exact (case-insensitive) name match, falling back to substring
    containment, optionally narrowed to venues whose street contains the hint.
    """
    wanted = (name or '').strip().lower()
    if not wanted:
        return None
    hint = (street_hint or '').strip().lower()
    venues = [v for v in venues if not v.is_unvalidated]

    candidates = [v for v in venues if v.venue_name.strip().lower() == wanted]
    if not candidates:
        candidates = [v for v in venues if wanted in v.venue_name.lower()]
    if hint:
        candidates = [v for v in candidates if hint in v.address.street.lower()]
    return candidates[0] if candidates else None

def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.isoformat().replace('+00:00', 'Z')

def merge_deal(venue: Venue, deal: Deal, now: Optional[datetime] = None) -> bool:
    """
    Fold a deal into a venue. Existing same-key deals win over the new one.

    Returns True when the deal was new to the venue.
    """
    before = len(venue.deals)
    venue.deals = dedupe(venue.deals + [deal], deal_key)
    venue.last_verified_at = utc_timestamp(now)
    return len(venue.deals) > before

def merge_rows(venues: List[Venue], rows: Iterable[RawCandidate],
               now: Optional[datetime] = None) -> MergeReport:
    """Merge reviewed (or hand-written bulk import) rows into the venues in place"""
    report = MergeReport()
    for row in rows:
        label = f"{row.venue_name}{' [' + row.street_hint + ']' if row.street_hint else ''}"
        venue = match_venue(venues, row.venue_name, row.street_hint)
        if venue is None:
            report.unmatched.append(label)
            continue

        try:
            deal = row.to_deal()
        except ValidationError as e:
            logger.warning(f"Skipping (invalid row) → {label} / {row.title}: {e}")
            report.skipped.append(f"{label} / {row.title}")
            continue

        if not deal.has_provenance:
            logger.warning(f"Skipping (missing source) → {label} / {row.title}")
            report.skipped.append(f"{label} / {row.title}")
            continue

        if merge_deal(venue, deal, now):
            report.added += 1
        report.merged += 1
    return report
