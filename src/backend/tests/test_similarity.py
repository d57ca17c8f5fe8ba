"""
Tests for tiered similarity scoring.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from rapidfuzz.distance import Levenshtein

from app.utils.similarity import (
    levenshtein,
    score,
    score_with_tier,
    TIER_EXACT,
    TIER_CONTAINS,
    TIER_TOKEN_OVERLAP,
    TIER_EDIT_DISTANCE,
)


class TestTiers:

    def test_exact_after_normalization(self):
        assert score("Apartamento Central Lisboa", "Apartamento Central Lisboa") == 100
        assert score_with_tier("São Pedro", "sao pedro") == (100, TIER_EXACT)

    def test_abbreviation_variants_are_exact(self):
        assert score("Apto 3B", "Apartamento 3B") == 100

    def test_containment_scores_90(self):
        assert score_with_tier("Casa do Mar", "Casa do Mar Azul") == (90, TIER_CONTAINS)
        assert score_with_tier("Casa do Mar Azul", "Casa do Mar") == (90, TIER_CONTAINS)

    def test_token_overlap_ratio(self):
        # aroeira and house shared out of three tokens each
        assert score_with_tier("Aroeira Beach House", "Aroeira Golf House") == (66, TIER_TOKEN_OVERLAP)

    def test_token_overlap_is_capped_at_85(self):
        assert score_with_tier("Casa Azul Mar", "Mar Azul Casa") == (85, TIER_TOKEN_OVERLAP)

    def test_short_tokens_fall_through_to_edit_distance(self):
        assert score_with_tier("ab cd", "ab ef") == (60, TIER_EDIT_DISTANCE)

    def test_edit_distance_for_typos(self):
        assert score_with_tier("Aroeira", "Aroeria") == (71, TIER_EDIT_DISTANCE)

    def test_edit_distance_never_reaches_token_band(self):
        assert score_with_tier("Marbella", "Marbela") == (75, TIER_EDIT_DISTANCE)

    def test_partial_token_overlap_wins_over_edit_distance(self):
        assert score_with_tier("Sunset Villas", "Sunset Vilas") == (50, TIER_TOKEN_OVERLAP)


class TestBounds:

    @pytest.mark.parametrize("a,b", [
        ("", ""),
        ("", "Casa do Mar"),
        (None, "Casa do Mar"),
        ("!!!", "abc"),
    ])
    def test_empty_scores_zero(self, a, b):
        assert score(a, b) == 0

    @pytest.mark.parametrize("a,b", [
        ("Casa do Mar", "Vila Sol"),
        ("x", "a very long property name indeed"),
        ("Aroeira II", "Aroeira 2"),
        ("123", "456"),
        ("Apto 3B, Ed. Central", "Edificio Central"),
    ])
    def test_score_in_range(self, a, b):
        assert 0 <= score(a, b) <= 100

    def test_exact_match_supremacy(self):
        for value in ["Vila Sol", "  vila   SOL ", "Víla Sól"]:
            assert score(value, "Vila Sol") == 100


class TestLevenshtein:

    def test_known_distances(self):
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("abc", "") == 3
        assert levenshtein("abc", "abc") == 0

    @pytest.mark.parametrize("a,b", [
        ("aroeira ii", "aroeira 2"),
        ("casa do mar", "casa do mar azul"),
        ("vila sol mar", "vela sal mor"),
    ])
    def test_agrees_with_rapidfuzz(self, a, b):
        assert levenshtein(a, b) == Levenshtein.distance(a, b)

    def test_none_is_empty(self):
        assert levenshtein(None, "mar") == 3
