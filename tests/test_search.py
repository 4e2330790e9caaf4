"""
Tests for semantic and keyword ranking.

Tests:
    1.  Empty index returns [] in every mode
    2.  Query and top_k validation happens before the empty-index check
    3.  Semantic results sorted by final score, ties in insertion order
    4.  Concept match and sheet importance feed the blend
    5.  top_k respected, default cap applied
    6.  Embedding size mismatch aborts the search
    7.  Keyword search finds every cell under a matching header
    8.  Keyword field weights and zero-score exclusion
    9.  compare / run("both") overlap
    10. stats() after clear
"""

from unittest.mock import patch

import pytest

from conftest import FakeEmbeddingProvider, PNL_FORMULAS, PNL_GRID, make_cell


# ── Helpers ──────────────────────────────────────────────────────────────────


def _revenue_and_cost():
    return [
        make_cell(100, row=2, column="Revenue"),
        make_cell(60, row=3, column="Cost"),
    ]


# ── Test 1: empty index ──────────────────────────────────────────────────────


class TestEmptyIndex:
    def test_semantic_empty(self, service, embedding_provider):
        assert service.search("revenue") == []
        assert embedding_provider.calls == []

    def test_keyword_empty(self, service):
        assert service.keyword_search("revenue") == []

    def test_compare_empty_overlaps_fully(self, service):
        comparison = service.run("revenue", mode="both")

        assert comparison.semantic == []
        assert comparison.keyword == []
        assert comparison.overlap.jaccard == 1.0
        assert comparison.overlap.union == 0


# ── Test 2: validation ───────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("query", ["", "   ", None, 42])
    def test_bad_query(self, service, query):
        from sheetsearch.errors import ValidationError

        with pytest.raises(ValidationError):
            service.search(query)
        with pytest.raises(ValidationError):
            service.keyword_search(query)

    @pytest.mark.parametrize("top_k", [0, -1, 101, True, "5", 2.5])
    def test_bad_top_k(self, service, top_k):
        from sheetsearch.errors import ValidationError

        with pytest.raises(ValidationError):
            service.search("revenue", top_k=top_k)

    def test_validation_error_is_value_error(self, service):
        with pytest.raises(ValueError):
            service.search("")

    def test_invalid_mode(self, service):
        from sheetsearch.errors import ValidationError

        with pytest.raises(ValidationError) as exc_info:
            service.run("revenue", mode="fuzzy")

        assert exc_info.value.details == {"mode": "fuzzy"}


# ── Test 3 & 4: semantic ranking ─────────────────────────────────────────────


class TestSemanticSearch:
    def test_best_match_first(self, service, store):
        store.ingest(_revenue_and_cost())

        results = service.search("revenue")

        assert [r.concept for r in results] == ["revenue", "cost"]
        top = results[0]
        assert top.relevance == pytest.approx(0.7 + 0.15 + 0.05 * 0.5)
        assert top.reasons == ["high semantic similarity", "concept match", "header matches query"]
        assert top.location.sheet == "Sheet1"
        assert top.location.range == "2:2"
        assert top.type == "cell"

    def test_sorted_descending(self, service, store):
        from sheetsearch.ingestion.builder import build_sheet_documents

        store.ingest_sheet(build_sheet_documents("wb", "P&L", PNL_GRID, PNL_FORMULAS))

        results = service.search("total revenue", top_k=20)
        scores = [r.relevance for r in results]

        assert scores == sorted(scores, reverse=True)

    def test_query_embedded_as_query_kind(self, service, store, embedding_provider):
        store.ingest(_revenue_and_cost())

        service.search("revenue")

        assert embedding_provider.calls[-1] == ("revenue", "query")

    def test_ties_keep_insertion_order(self, service, store):
        first = make_cell(100, row=2, column="Revenue")
        second = make_cell(100, row=3, column="Revenue")
        store.ingest([first, second])

        results = service.search("revenue")

        assert [r.id for r in results] == [first.id, second.id]

    def test_concept_match_scored(self, store, embedding_provider):
        from sheetsearch.search.scoring import RankingWeights
        from sheetsearch.search.search import score_semantic

        store.ingest(_revenue_and_cost())

        scored = score_semantic(
            store.documents(),
            embedding_provider.generate_embedding("revenue", "query"),
            ["revenue"],
            RankingWeights(),
        )

        assert scored[0].concept_match == 1.0
        assert scored[1].concept_match == 0.0
        assert scored[0].similarity == pytest.approx(1.0)

    def test_sheet_importance_breaks_ties(self, service, store):
        raw = make_cell(100, sheet="RawData", column="Revenue")
        pnl = make_cell(100, sheet="P&L", column="Revenue")
        store.ingest([raw, pnl])

        results = service.search("revenue")

        assert [r.id for r in results] == [pnl.id, raw.id]
        assert "from profit & loss sheet" in results[0].explanation

    def test_include_ranges_false(self, service, store):
        from sheetsearch.ingestion.builder import build_sheet_documents

        store.ingest_sheet(build_sheet_documents("wb", "P&L", PNL_GRID, PNL_FORMULAS))

        results = service.search("total", top_k=100, include_ranges=False)

        assert len(results) == 16
        assert all(r.type == "cell" for r in results)

    def test_scoring_error_aborts(self, service, store):
        store.ingest(_revenue_and_cost())

        with patch(
            "sheetsearch.search.search.cosine_similarity",
            side_effect=RuntimeError("bad vector"),
        ):
            with pytest.raises(RuntimeError):
                service.search("revenue")


# ── Test 5: top_k ────────────────────────────────────────────────────────────


class TestTopK:
    def test_top_k_bound(self, service, store):
        store.ingest([make_cell(i, row=i + 2, column="Revenue") for i in range(5)])

        assert len(service.search("revenue", top_k=2)) == 2
        assert len(service.keyword_search("revenue", top_k=3)) == 3

    def test_default_top_k(self, store, embedding_provider):
        from sheetsearch.search.search import SearchService

        store.ingest([make_cell(i, row=i + 2, column="Revenue") for i in range(12)])
        service = SearchService(store, embedding_provider, default_top_k=10)

        assert len(service.search("revenue")) == 10

    def test_max_top_k_configurable(self, store, embedding_provider):
        from sheetsearch.errors import ValidationError
        from sheetsearch.search.search import SearchService

        service = SearchService(store, embedding_provider, max_top_k=5)

        with pytest.raises(ValidationError):
            service.search("revenue", top_k=6)


# ── Test 6: dimension mismatch ───────────────────────────────────────────────


class TestDimensionMismatch:
    def test_mismatched_query_embedding_raises(self, store):
        from sheetsearch.errors import DimensionMismatchError
        from sheetsearch.search.search import SearchService

        store.ingest(_revenue_and_cost())
        service = SearchService(store, FakeEmbeddingProvider(dimensions=4))

        with pytest.raises(DimensionMismatchError):
            service.search("revenue")


# ── Test 7 & 8: keyword search ───────────────────────────────────────────────


class TestKeywordSearch:
    def test_every_revenue_cell_found(self, service, store):
        first = make_cell(100, row=2, column="Revenue")
        second = make_cell(200, row=3, column="Revenue")
        cost = make_cell(50, row=4, column="Cost")
        store.ingest([first, second, cost])

        results = service.keyword_search("revenue")

        assert [r.id for r in results] == [first.id, second.id]

    def test_relevance_and_matches(self, service, store):
        store.ingest([make_cell(100, row=2, column="Revenue")])

        result = service.keyword_search("Revenue")[0]

        # header (2.0) + label (1.5)
        assert result.relevance == pytest.approx(0.35)
        assert result.reasons == ['header contains "revenue"', 'label matches "revenue"']
        assert result.explanation == (
            'Keyword matches: header contains "revenue", label matches "revenue"'
        )

    def test_repeated_terms_count_twice(self, service, store):
        store.ingest([make_cell(100, row=2, column="Revenue")])

        result = service.keyword_search("revenue revenue")[0]

        assert result.relevance == pytest.approx(0.7)

    def test_row_header_weight(self, store):
        from sheetsearch.search.search import score_keywords

        store.ingest([make_cell(5, column="Amount", row_header="Revenue")])

        match = score_keywords(store.documents()[0], ["revenue"])

        # row header (1.5) + label (1.5)
        assert match.score == pytest.approx(3.0)

    def test_formula_weight(self, store):
        from sheetsearch.search.search import score_keywords

        store.ingest([make_cell(550, column="Total", formula="=SUM(B2:B10)")])

        match = score_keywords(store.documents()[0], ["sum"])

        assert match.score == pytest.approx(1.5)
        assert match.matches == ('formula contains "sum"',)

    def test_zero_score_excluded(self, service, store):
        store.ingest(_revenue_and_cost())

        assert service.keyword_search("headcount") == []

    def test_range_matched_by_header(self, service, store):
        from sheetsearch.ingestion.builder import build_sheet_documents, sheet_key

        store.ingest_sheet(build_sheet_documents("wb", "P&L", PNL_GRID, PNL_FORMULAS))

        results = service.keyword_search("total", top_k=100)
        range_results = [r for r in results if r.type == "range"]

        assert [r.id for r in range_results] == [f"range_wb_{sheet_key('P&L')}_total_4"]
        assert range_results[0].location.range == "1-4"


# ── Test 9: compare ──────────────────────────────────────────────────────────


class TestCompare:
    def test_overlap(self, service, store):
        store.ingest(_revenue_and_cost())

        comparison = service.compare("revenue")

        assert comparison.semantic_count == 2
        assert comparison.keyword_count == 1
        assert comparison.overlap.intersection == 1
        assert comparison.overlap.union == 2
        assert comparison.overlap.jaccard == pytest.approx(0.5)
        assert comparison.overlap.semantic_only == 1
        assert comparison.overlap.keyword_only == 0

    def test_run_dispatch(self, service, store):
        store.ingest(_revenue_and_cost())

        assert len(service.run("revenue", mode="semantic")) == 2
        assert len(service.run("revenue", mode="keyword")) == 1


# ── Test 10: stats ───────────────────────────────────────────────────────────


class TestStats:
    def test_stats_after_clear(self, service, store):
        store.ingest(_revenue_and_cost())
        assert service.stats()["total_documents"] == 2

        store.clear()

        assert service.stats() == {"total_documents": 0, "cells": 0, "ranges": 0}
        assert service.search("revenue") == []
