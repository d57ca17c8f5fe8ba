"""
Candidate dataclasses for property resolution.

A MatchCandidate is one scored pairing between a raw extracted property
name and a catalog entry (via its canonical name or one of its aliases).
Candidates are transient: only the winning property_id is persisted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .similarity import (
    TIER_EXACT,
    TIER_CONTAINS,
    TIER_TOKEN_OVERLAP,
    TIER_EDIT_DISTANCE,
)


@dataclass(frozen=True)
class PropertyCatalogEntry:
    """Known property with its canonical name and alternate spellings."""
    id: int
    canonical_name: str
    aliases: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_row(cls, row: dict) -> 'PropertyCatalogEntry':
        """Build an entry from a `properties` table row."""
        aliases = row.get('aliases') or []
        return cls(
            id=row['id'],
            canonical_name=row.get('name') or '',
            aliases=frozenset(a for a in aliases if a)
        )


class MatchType(str, Enum):
    """How a candidate matched, ordered from strongest to weakest."""
    EXACT_NAME = "exact_name"
    EXACT_ALIAS = "exact_alias"
    PARTIAL_NAME = "partial_name"
    PARTIAL_ALIAS = "partial_alias"
    TOKEN_OVERLAP = "token_overlap"
    EDIT_DISTANCE = "edit_distance"


# Lower is better (like CSS priority)
MATCH_TYPE_PRIORITY = {
    MatchType.EXACT_NAME: 1,
    MatchType.EXACT_ALIAS: 2,
    MatchType.PARTIAL_NAME: 3,
    MatchType.PARTIAL_ALIAS: 4,
    MatchType.TOKEN_OVERLAP: 5,
    MatchType.EDIT_DISTANCE: 6,
}

# Match types that are accepted without asking, whatever the score
CONFIDENT_MATCH_TYPES = frozenset({
    MatchType.EXACT_NAME,
    MatchType.EXACT_ALIAS,
    MatchType.PARTIAL_NAME,
})


@dataclass
class MatchCandidate:
    """
    Candidate pairing of a raw name with a catalog entry.

    Scoring factors:
    - score: Similarity score 0-100
    - match_type: Which tier fired and against which field
    - matched_value: The canonical name or alias that produced the score
    """
    property_id: int
    score: int
    match_type: MatchType
    matched_value: str
    property_name: str = ""

    @property
    def priority(self) -> int:
        return MATCH_TYPE_PRIORITY[self.match_type]

    @property
    def is_confident(self) -> bool:
        return self.match_type in CONFIDENT_MATCH_TYPES

    def to_dict(self) -> dict:
        return {
            'property_id': self.property_id,
            'property_name': self.property_name,
            'score': self.score,
            'match_type': self.match_type.value,
            'matched_value': self.matched_value,
        }


def match_type_for(tier: str, via_alias: bool) -> Optional[MatchType]:
    """
    Map a similarity tier and the matched field to a MatchType.

    Args:
        tier: Tier name returned by the similarity scorer
        via_alias: True when the score came from an alias

    Returns:
        MatchType, or None when the tier is unknown
    """
    if tier == TIER_EXACT:
        return MatchType.EXACT_ALIAS if via_alias else MatchType.EXACT_NAME
    if tier == TIER_CONTAINS:
        return MatchType.PARTIAL_ALIAS if via_alias else MatchType.PARTIAL_NAME
    if tier == TIER_TOKEN_OVERLAP:
        return MatchType.TOKEN_OVERLAP
    if tier == TIER_EDIT_DISTANCE:
        return MatchType.EDIT_DISTANCE
    return None


def create_match_candidate(
    entry: PropertyCatalogEntry,
    score: int,
    tier: str,
    matched_value: str,
    via_alias: bool = False
) -> Optional[MatchCandidate]:
    """
    Create MatchCandidate from a scored catalog field.

    Args:
        entry: Catalog entry that was scored
        score: Similarity score 0-100
        tier: Tier name from the similarity scorer
        matched_value: Canonical name or alias that was compared
        via_alias: Whether matched_value is an alias

    Returns:
        MatchCandidate, or None for a zero score
    """
    match_type = match_type_for(tier, via_alias)
    if score <= 0 or match_type is None:
        return None

    return MatchCandidate(
        property_id=entry.id,
        score=score,
        match_type=match_type,
        matched_value=matched_value,
        property_name=entry.canonical_name
    )


def catalog_values(entry: PropertyCatalogEntry) -> Iterable[tuple[str, bool]]:
    """Yield (value, via_alias) for the canonical name and each alias, name first."""
    yield entry.canonical_name, False
    for alias in sorted(entry.aliases):
        yield alias, True
