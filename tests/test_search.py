"""
tests/test_search.py - Fuzzy Search Engine Tests

Properties:
1. Empty/whitespace query returns the catalog unchanged
2. Every hit matches at least one searched field within the threshold
3. Near-miss spellings still match
4. Ranking is deterministic
"""

import pytest

from mortality_catalog.search import (
    DEFAULT_THRESHOLD,
    SearchIndex,
    filter_catalog,
    match_score,
    substring_edit_distance,
)

from conftest import summary


@pytest.fixture
def catalog():
    return [
        summary('1', name='1980 CSO Basic Male', keywords=('CSO', 'Ultimate')),
        summary('2', name='Annuity 2000 Female', provider='Life Office Association'),
        summary('10', name='GAM-94 Male', summary='Group annuity mortality'),
        summary('A', name='Select and Ultimate', keywords=('Select',)),
    ]


class TestEditDistance:
    """Semi-global edit distance: the match may sit anywhere in the text."""

    def test_exact_substring(self):
        assert substring_edit_distance('cso', '1980 cso basic') == 0
        assert match_score('cso', '1980 cso basic') == 0.0

    def test_one_substitution(self):
        assert substring_edit_distance('annuety', 'annuity 2000') == 1

    def test_one_deletion_and_insertion(self):
        assert substring_edit_distance('anuity', 'annuity') == 1
        assert substring_edit_distance('annnuity', 'annuity') == 1

    def test_empty_inputs(self):
        assert substring_edit_distance('', 'abc') == 0
        assert substring_edit_distance('abc', '') == 3
        assert match_score('abc', '') == 1.0

    def test_score_is_normalized(self):
        assert match_score('xyz', 'abc') == 1.0
        assert match_score('mortalty', 'group annuity mortality') == pytest.approx(1 / 8)

    def test_limit_stops_early(self):
        assert substring_edit_distance('zzzzzzzz', 'abcdefgh', limit=1) > 1
        assert substring_edit_distance('annuety', 'annuity 2000', limit=2) == 1

    def test_threshold_keeps_matching_scores_exact(self):
        pairs = [('mortalty', 'group annuity mortality'), ('anuity', 'annuity'),
                 ('male', 'select and ultimate'), ('cso', 'gam-94 male')]
        for pattern, text in pairs:
            exact = match_score(pattern, text)
            bounded = match_score(pattern, text, DEFAULT_THRESHOLD)
            if exact <= DEFAULT_THRESHOLD:
                assert bounded == pytest.approx(exact)
            else:
                assert bounded > DEFAULT_THRESHOLD

    def test_bounds_reject_hopeless_fields(self):
        assert match_score('select ultimate', 'cso', DEFAULT_THRESHOLD) == 1.0
        assert match_score('qqqq', 'annuity 2000 female', DEFAULT_THRESHOLD) == 1.0


class TestFilter:
    """List-view filtering semantics."""

    def test_blank_query_returns_catalog(self, catalog):
        index = SearchIndex(catalog)
        assert index.filter('') is index.catalog
        assert index.filter('   ') == catalog

    def test_field_coverage(self, catalog):
        index = SearchIndex(catalog)
        assert [s.table_identity for s in index.filter('life office')] == ['2']
        assert [s.table_identity for s in index.filter('group annuity')] == ['10']
        assert [s.table_identity for s in index.filter('select')] == ['A']

    def test_misspelling_matches(self, catalog):
        assert [s.table_identity for s in filter_catalog(catalog, 'anuity 2000 femle')] == ['2']

    def test_unrelated_query_matches_nothing(self, catalog):
        assert filter_catalog(catalog, 'qqqqzzzz') == []

    def test_every_hit_matches_a_field(self, catalog):
        index = SearchIndex(catalog)
        for query in ('male', 'ultimat', 'cso', 'annuity', '2000'):
            for hit in index.search(query):
                assert hit.score <= DEFAULT_THRESHOLD
                assert hit.field in index.keys

    def test_exact_hits_rank_first(self, catalog):
        results = filter_catalog(catalog, 'ultimate')
        assert [s.table_identity for s in results] == ['1', 'A']

    def test_deterministic_order(self, catalog):
        index = SearchIndex(catalog)
        first = [s.detail_path for s in index.filter('male')]
        second = [s.detail_path for s in index.filter('male')]
        assert first == second
        # "mate" in "Select and Ultimate" is one edit away
        assert first == ['/detail/1.json', '/detail/2.json', '/detail/10.json', '/detail/A.json']

    def test_case_insensitive(self, catalog):
        assert filter_catalog(catalog, 'GAM-94') == filter_catalog(catalog, 'gam-94')

    def test_threshold_bounds(self, catalog):
        with pytest.raises(ValueError):
            SearchIndex(catalog, threshold=1.5)

    def test_repeated_query_reuses_result(self, catalog, monkeypatch):
        import mortality_catalog.search as search_module

        calls = []
        original = search_module.match_score

        def counting(pattern, text, threshold=1.0):
            calls.append(text)
            return original(pattern, text, threshold)

        monkeypatch.setattr(search_module, 'match_score', counting)
        index = SearchIndex(catalog)

        first = index.filter('annuity')
        scanned = len(calls)
        assert scanned > 0
        assert index.filter('  ANNUITY ') is first
        assert len(calls) == scanned

        index.filter('cso')
        assert len(calls) > scanned
