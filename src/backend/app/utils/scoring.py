"""
Ranking and selection of property match candidates.

Edit-distance candidates always rank last. Otherwise candidates are
ordered by score (descending), then by match type
priority (exact_name first), then by catalog position. The catalog
position makes selection stable: on a full tie the entry listed first
in the catalog wins.
"""

from typing import List, Optional, Sequence, Tuple

from .candidates import MatchCandidate, MatchType

__all__ = [
    'candidate_sort_key', 'better_candidate',
    'select_top_candidates', 'select_best_candidate'
]


def candidate_sort_key(candidate: MatchCandidate, position: int = 0) -> Tuple[bool, int, int, int]:
    """
    Sort key where smaller means better.

    Edit-distance candidates rank below every other match type whatever
    their score, so a typo-level match never outranks shared tokens.

    Args:
        candidate: Candidate to rank
        position: Index of the candidate's entry in the catalog

    Returns:
        (is edit distance, negated score, match type priority, catalog position)
    """
    return (
        candidate.match_type == MatchType.EDIT_DISTANCE,
        -candidate.score,
        candidate.priority,
        position
    )


def better_candidate(
    current: Optional[MatchCandidate],
    challenger: Optional[MatchCandidate]
) -> Optional[MatchCandidate]:
    """
    Pick the better of two candidates for the same entry.

    Edit distance loses to any other match type; otherwise higher score
    wins, ties go to the stronger match type, and a full tie
    keeps the current candidate.
    """
    if challenger is None:
        return current
    if current is None:
        return challenger
    if candidate_sort_key(challenger) < candidate_sort_key(current):
        return challenger
    return current


def select_top_candidates(
    candidates: Sequence[MatchCandidate],
    top_n: int = 3,
    min_score: int = 0
) -> List[MatchCandidate]:
    """
    Select top N candidates, one per catalog entry, in ranking order.

    Args:
        candidates: Best candidate per entry, in catalog order
        top_n: Number of candidates to return (default 3)
        min_score: Candidates scoring below this are dropped

    Returns:
        Sorted list of at most top_n candidates

    Example:
        >>> top_3 = select_top_candidates(per_entry_best, 3, min_score=60)
    """
    if not candidates:
        return []

    ranked = [
        (candidate_sort_key(candidate, position), candidate)
        for position, candidate in enumerate(candidates)
        if candidate is not None and candidate.score >= min_score
    ]
    ranked.sort(key=lambda item: item[0])

    return [candidate for _, candidate in ranked[:top_n]]


def select_best_candidate(
    candidates: Sequence[MatchCandidate],
    min_score: int
) -> Optional[MatchCandidate]:
    """
    Select the single best candidate at or above the threshold.

    Returns:
        Winning candidate, or None if nothing reaches min_score
    """
    top = select_top_candidates(candidates, top_n=1, min_score=min_score)
    return top[0] if top else None
