from .normalizer import normalize_block, normalize_candidate, score_confidence, to_24h
from .quality import deal_key, dedupe, review_candidates

__all__ = [
    "normalize_block",
    "normalize_candidate",
    "score_confidence",
    "to_24h",
    "deal_key",
    "dedupe",
    "review_candidates",
]
