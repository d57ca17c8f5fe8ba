"""
Tests for property resolution against the catalog.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from app.services.resolver import audit_catalog, rank, resolve
from app.utils.candidates import MatchType, PropertyCatalogEntry


class TestResolve:

    def test_exact_name(self, catalog):
        match = resolve("Apartamento Central Lisboa", catalog)
        assert match.property_id == 2
        assert match.score == 100
        assert match.match_type == MatchType.EXACT_NAME

    def test_alias_partial_match(self, catalog):
        match = resolve("aroeira 2 apt", catalog)
        assert match.property_id == 1
        assert match.match_type in (MatchType.PARTIAL_ALIAS, MatchType.TOKEN_OVERLAP)
        assert match.score >= 60
        assert match.matched_value == "Aroeira 2"

    def test_exact_alias(self, catalog):
        match = resolve("Mar House", catalog)
        assert match.property_id == 4
        assert match.match_type == MatchType.EXACT_ALIAS

    def test_exact_name_beats_containing_name(self, catalog):
        match = resolve("Casa do Mar", catalog)
        assert match.property_id == 4
        assert match.match_type == MatchType.EXACT_NAME

    def test_first_entry_wins_exact_tie(self):
        first = PropertyCatalogEntry(id=10, canonical_name="Vila Sol")
        second = PropertyCatalogEntry(id=11, canonical_name="Vila Sol")
        assert resolve("vila sol", [first, second]).property_id == 10
        assert resolve("vila sol", [second, first]).property_id == 11

    def test_name_beats_alias_on_equal_score(self):
        via_alias = PropertyCatalogEntry(id=20, canonical_name="Casa Rosa", aliases=frozenset({"Quinta Verde"}))
        via_name = PropertyCatalogEntry(id=21, canonical_name="Quinta Verde")
        match = resolve("Quinta Verde Sintra", [via_alias, via_name])
        assert match.property_id == 21
        assert match.match_type == MatchType.PARTIAL_NAME

    def test_token_overlap_beats_higher_edit_distance(self):
        shared_words = PropertyCatalogEntry(id=1, canonical_name="Vila Sol Azul")
        similar_letters = PropertyCatalogEntry(id=2, canonical_name="Vela Sal Mor")
        match = resolve("Vila Sol Mar", [shared_words, similar_letters])
        assert match.property_id == 1
        assert match.match_type == MatchType.TOKEN_OVERLAP
        assert match.score == 66

    def test_entry_prefers_token_overlap_over_edit_distance_alias(self):
        entry = PropertyCatalogEntry(id=1, canonical_name="Vila Sol Azul", aliases=frozenset({"Vela Sal Mor"}))
        match = resolve("Vila Sol Mar", [entry])
        assert match.match_type == MatchType.TOKEN_OVERLAP
        assert match.matched_value == "Vila Sol Azul"

    def test_below_threshold_returns_none(self, catalog):
        assert resolve("Xyz Totalmente Diferente", catalog) is None
        assert resolve("aroeira 2 apt", catalog, min_score=95) is None

    @pytest.mark.parametrize("raw_name", [
        "Aroeira", "Central", "Casa", "Mar", "Lisboa Centro", "Apto", "Aroeria II",
    ])
    def test_never_returns_candidate_below_min_score(self, catalog, raw_name):
        match = resolve(raw_name, catalog, min_score=70)
        assert match is None or match.score >= 70

    def test_deterministic(self, catalog):
        first = resolve("Casa Mar", catalog)
        second = resolve("Casa Mar", catalog)
        assert first == second

    @pytest.mark.parametrize("raw_name", [None, "", "   ", "---"])
    def test_empty_name_does_not_match(self, catalog, raw_name):
        assert resolve(raw_name, catalog) is None

    def test_empty_catalog(self):
        assert resolve("Aroeira II", []) is None


class TestRank:

    def test_ranked_best_first(self, catalog):
        ranked = rank("Casa do Mar", catalog)
        assert [c.property_id for c in ranked[:2]] == [4, 3]
        assert ranked[0].score >= ranked[1].score

    def test_limit(self, catalog):
        assert len(rank("Casa do Mar", catalog, limit=1)) == 1

    def test_edit_distance_ranked_last(self):
        catalog = [
            PropertyCatalogEntry(id=1, canonical_name="Vela Sal Mor"),
            PropertyCatalogEntry(id=2, canonical_name="Vila Sol Azul"),
        ]
        ranked = rank("Vila Sol Mar", catalog)
        assert [c.property_id for c in ranked] == [2, 1]
        assert ranked[1].match_type == MatchType.EDIT_DISTANCE


class TestAuditCatalog:

    def test_reports_problems(self):
        catalog = [
            PropertyCatalogEntry(id=1, canonical_name="Casa do Mar", aliases=frozenset({"Mar"})),
            PropertyCatalogEntry(id=2, canonical_name="Casa do Mar Azul", aliases=frozenset({"mar"})),
            PropertyCatalogEntry(id=3, canonical_name="AB"),
        ]
        report = audit_catalog(catalog)

        assert report['total_properties'] == 3
        assert [d['property_ids'] for d in report['potential_duplicates']] == [[1, 2]]
        assert [m['property_id'] for m in report['missing_aliases']] == [3]
        assert report['shared_aliases'] == [{'alias': 'mar', 'property_ids': [1, 2]}]
        assert [s['property_id'] for s in report['suspicious_names']] == [3]
        assert len(report['recommendations']) == 4

    def test_clean_catalog(self):
        catalog = [
            PropertyCatalogEntry(id=1, canonical_name="Aroeira II", aliases=frozenset({"Aroeira 2"})),
            PropertyCatalogEntry(id=2, canonical_name="Vila Sol", aliases=frozenset({"Sol"})),
        ]
        report = audit_catalog(catalog)
        assert report['potential_duplicates'] == []
        assert report['recommendations'] == []
