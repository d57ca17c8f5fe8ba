"""
Property resolver: maps a raw extracted property name to a catalog entry.

Every canonical name and alias is scored against the raw name; the best
field per entry becomes that entry's candidate, and the best entry wins
if it reaches the minimum score. Resolution is pure: the catalog is
passed in and never modified.
"""

import logging
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from app.utils.candidates import (
    MatchCandidate,
    PropertyCatalogEntry,
    catalog_values,
    create_match_candidate,
)
from app.utils.normalizer import normalize
from app.utils.scoring import better_candidate, select_best_candidate, select_top_candidates
from app.utils.similarity import score_normalized

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 60
DUPLICATE_SCORE = 90
NAME_LENGTH_LIMITS = (3, 100)


def best_candidate_for_entry(
    normalized_name: str,
    entry: PropertyCatalogEntry
) -> Optional[MatchCandidate]:
    """
    Best candidate of one catalog entry across its name and aliases.

    Args:
        normalized_name: Raw property name, already normalized
        entry: Catalog entry to score

    Returns:
        Highest scoring candidate (ties go to the stronger match type),
        or None when nothing scored
    """
    best = None
    for value, via_alias in catalog_values(entry):
        value_score, tier = score_normalized(normalized_name, normalize(value))
        candidate = create_match_candidate(entry, value_score, tier, value, via_alias)
        best = better_candidate(best, candidate)
    return best


def score_catalog(raw_name: str, catalog: Sequence[PropertyCatalogEntry]) -> List[Optional[MatchCandidate]]:
    """Per-entry best candidates, aligned with catalog order."""
    normalized_name = normalize(raw_name)
    if not normalized_name:
        return [None] * len(catalog)
    return [best_candidate_for_entry(normalized_name, entry) for entry in catalog]


def resolve(
    raw_name: Optional[str],
    catalog: Sequence[PropertyCatalogEntry],
    min_score: int = DEFAULT_MIN_SCORE
) -> Optional[MatchCandidate]:
    """
    Resolve a raw property name to the best catalog match.

    Args:
        raw_name: Property name as extracted from a document
        catalog: Known properties, in catalog order
        min_score: Minimum score to accept a match (default 60)

    Returns:
        Winning MatchCandidate, or None when no entry reaches min_score.
        On an exact tie the entry listed first in the catalog wins.
    """
    candidates = score_catalog(raw_name, catalog)
    match = select_best_candidate(candidates, min_score=min_score)

    if match is None:
        logger.debug("No property match above threshold", extra={
            "raw_name": raw_name,
            "min_score": min_score,
            "catalog_size": len(catalog)
        })
    else:
        logger.debug("Resolved property", extra={
            "raw_name": raw_name,
            "property_id": match.property_id,
            "score": match.score,
            "match_type": match.match_type.value
        })

    return match


def rank(
    raw_name: Optional[str],
    catalog: Sequence[PropertyCatalogEntry],
    limit: int = 3,
    min_score: int = 1
) -> List[MatchCandidate]:
    """
    Top catalog candidates for a raw name, best first.

    Used to suggest properties when a match needs clarification.
    """
    return select_top_candidates(score_catalog(raw_name, catalog), top_n=limit, min_score=min_score)


def audit_catalog(catalog: Sequence[PropertyCatalogEntry]) -> Dict:
    """
    Report catalog entries likely to confuse the resolver.

    Checks:
    - potential_duplicates: canonical names scoring >= 90 against each other
    - missing_aliases: entries with no alias at all
    - shared_aliases: one normalized alias used by several entries
    - suspicious_names: names shorter than 3 or longer than 100 characters

    Returns:
        Dict with one list per check plus human-readable recommendations
    """
    potential_duplicates = []
    for first, second in combinations(catalog, 2):
        pair_score, _ = score_normalized(
            normalize(first.canonical_name),
            normalize(second.canonical_name)
        )
        if pair_score >= DUPLICATE_SCORE:
            potential_duplicates.append({
                'property_ids': [first.id, second.id],
                'names': [first.canonical_name, second.canonical_name],
                'score': pair_score
            })

    missing_aliases = [
        {'property_id': entry.id, 'name': entry.canonical_name}
        for entry in catalog if not entry.aliases
    ]

    alias_owners: Dict[str, List[int]] = {}
    for entry in catalog:
        for alias in entry.aliases:
            key = normalize(alias)
            if key and entry.id not in alias_owners.setdefault(key, []):
                alias_owners[key].append(entry.id)
    shared_aliases = [
        {'alias': alias, 'property_ids': owners}
        for alias, owners in alias_owners.items() if len(owners) > 1
    ]

    min_len, max_len = NAME_LENGTH_LIMITS
    suspicious_names = [
        {'property_id': entry.id, 'name': entry.canonical_name}
        for entry in catalog
        if len(entry.canonical_name.strip()) < min_len or len(entry.canonical_name) > max_len
    ]

    recommendations = []
    if potential_duplicates:
        recommendations.append(
            f"Rever {len(potential_duplicates)} pares de propriedades com nomes muito semelhantes"
        )
    if missing_aliases:
        recommendations.append(
            f"Adicionar aliases a {len(missing_aliases)} propriedades para melhorar a correspondência"
        )
    if shared_aliases:
        recommendations.append(
            f"Remover {len(shared_aliases)} aliases partilhados por várias propriedades"
        )
    if suspicious_names:
        recommendations.append(
            f"Corrigir {len(suspicious_names)} nomes demasiado curtos ou demasiado longos"
        )

    return {
        'total_properties': len(catalog),
        'potential_duplicates': potential_duplicates,
        'missing_aliases': missing_aliases,
        'shared_aliases': shared_aliases,
        'suspicious_names': suspicious_names,
        'recommendations': recommendations
    }
