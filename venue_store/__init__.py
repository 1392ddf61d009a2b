from .canonical import MergeReport, load_venues, save_venues, merge_rows, match_venue
from .tables import TableAppender, read_table, write_table

__all__ = [
    "MergeReport",
    "load_venues",
    "save_venues",
    "merge_rows",
    "match_venue",
    "TableAppender",
    "read_table",
    "write_table",
]
