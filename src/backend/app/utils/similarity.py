"""
Similarity scoring between two free-text names.

Scores are integers from 0 (no match) to 100 (identical after
normalization). Tiers are evaluated in order and the first one that
fires wins:

    exact          100   equal after normalization
    contains        90   one normalized string contains the other
    token_overlap  <=85  shared tokens (len > 2) / longer token count
    edit_distance  <=75  Levenshtein ratio, only when no token overlaps

The edit-distance cap keeps a typo-level match below the confident band,
so it can never be auto-accepted on its own.
"""

from typing import Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .normalizer import normalize

TIER_EXACT = 'exact'
TIER_CONTAINS = 'contains'
TIER_TOKEN_OVERLAP = 'token_overlap'
TIER_EDIT_DISTANCE = 'edit_distance'

SCORE_EXACT = 100
SCORE_CONTAINS = 90
TOKEN_OVERLAP_CAP = 85
EDIT_DISTANCE_CAP = 75
MIN_TOKEN_LENGTH = 3


def levenshtein(a: str, b: str) -> int:
    """
    Edit distance between two strings (insert, delete, substitute).

    Examples:
        >>> levenshtein("kitten", "sitting")
        3
    """
    return Levenshtein.distance(a or "", b or "")


def _token_overlap(a: str, b: str) -> int:
    """Token overlap score for normalized strings, 0 when nothing is shared."""
    tokens_a = [t for t in a.split() if len(t) >= MIN_TOKEN_LENGTH]
    tokens_b = [t for t in b.split() if len(t) >= MIN_TOKEN_LENGTH]

    if not tokens_a or not tokens_b:
        return 0

    common = sum(
        1 for ta in tokens_a
        if any(ta in tb or tb in ta for tb in tokens_b)
    )
    if common == 0:
        return 0

    ratio = common / max(len(tokens_a), len(tokens_b))
    return min(TOKEN_OVERLAP_CAP, int(ratio * 100))


def _edit_distance_score(a: str, b: str) -> int:
    longest = max(len(a), len(b))
    ratio = 1 - levenshtein(a, b) / longest
    return max(0, min(EDIT_DISTANCE_CAP, round(ratio * 100)))


def score_normalized(a: str, b: str) -> Tuple[int, Optional[str]]:
    """
    Score two strings that are already normalized.

    Returns:
        (score, tier) with tier None when the score is 0
    """
    if not a or not b:
        return 0, None

    if a == b:
        return SCORE_EXACT, TIER_EXACT

    if a in b or b in a:
        return SCORE_CONTAINS, TIER_CONTAINS

    overlap = _token_overlap(a, b)
    if overlap > 0:
        return overlap, TIER_TOKEN_OVERLAP

    distance_score = _edit_distance_score(a, b)
    if distance_score > 0:
        return distance_score, TIER_EDIT_DISTANCE

    return 0, None


def score_with_tier(a, b) -> Tuple[int, Optional[str]]:
    """Normalize both inputs and return (score, tier)."""
    return score_normalized(normalize(a), normalize(b))


def score(a, b) -> int:
    """
    Similarity score in [0, 100] between two raw strings.

    Examples:
        >>> score("Casa do Mar", "casa do mar")
        100
        >>> score("", "Casa do Mar")
        0
    """
    return score_with_tier(a, b)[0]
