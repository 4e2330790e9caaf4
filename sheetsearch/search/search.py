"""
SheetSearch Ranking

Semantic and keyword ranking over an IndexStore, plus a comparison of the
two modes.

Classes / functions:
    SearchService           — search, keyword_search, compare, run
    score_semantic          — Score every document against a query embedding
    score_keywords          — Weighted substring matching of query terms
    calculate_overlap       — Jaccard-style overlap of two result lists

Rules:
    - Sorting is stable: equal scores keep index insertion order
    - No minimum-similarity threshold in semantic mode
    - Keyword mode drops documents scoring 0
    - An empty index yields [], not an error
    - Any error during scoring (e.g. DimensionMismatchError) aborts the call
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import structlog

from sheetsearch.errors import ValidationError
from sheetsearch.models import IndexedDocument
from sheetsearch.search.embeddings import EmbeddingProvider, cosine_similarity
from sheetsearch.search.indexer import IndexStore
from sheetsearch.search.results import (
    KeywordMatch,
    ScoredDocument,
    SearchResult,
    format_keyword_result,
    format_semantic_result,
)
from sheetsearch.search.scoring import (
    DEFAULT_MAX_COMPLEXITY,
    RankingWeights,
    concept_match,
    detect_query_concepts,
    final_score,
    normalize_formula_complexity,
    sheet_importance,
)

logger = structlog.get_logger(__name__)

SEARCH_MODES = ("semantic", "keyword", "both")

# Per-term keyword weights by field
COLUMN_HEADER_WEIGHT = 2.0
ROW_HEADER_WEIGHT = 1.5
VALUE_WEIGHT = 1.0
FORMULA_WEIGHT = 1.5
LABEL_WEIGHT = 1.5


@dataclass(frozen=True)
class ResultOverlap:
    intersection: int
    union: int
    jaccard: float
    semantic_only: int
    keyword_only: int


@dataclass
class ModeComparison:
    semantic: list[SearchResult] = field(default_factory=list)
    keyword: list[SearchResult] = field(default_factory=list)
    overlap: Optional[ResultOverlap] = None

    @property
    def semantic_count(self) -> int:
        return len(self.semantic)

    @property
    def keyword_count(self) -> int:
        return len(self.keyword)


# ── Scoring ────────────────────────────────────────────────────────────────


def score_semantic(
    documents: list[IndexedDocument],
    query_embedding: list[float],
    query_concepts: list[str],
    weights: RankingWeights,
    max_complexity: float = DEFAULT_MAX_COMPLEXITY,
) -> list[ScoredDocument]:
    """
    Score documents for semantic mode, in input order.

    Raises:
        DimensionMismatchError: If any document embedding differs in length
            from the query embedding.
    """
    scored = []
    for doc in documents:
        similarity = cosine_similarity(query_embedding, doc.embedding)
        concept = concept_match(doc.labels, query_concepts)
        complexity = normalize_formula_complexity(doc.parsed_formula, max_complexity)
        importance = sheet_importance(doc.sheet_name)
        scored.append(
            ScoredDocument(
                doc=doc,
                similarity=similarity,
                concept_match=concept,
                formula_complexity=complexity,
                sheet_importance=importance,
                final_score=final_score(similarity, concept, complexity, importance, weights),
            )
        )
    return scored


def score_keywords(doc: IndexedDocument, terms: list[str]) -> KeywordMatch:
    """
    Score one document against lowercase query terms.

    Each term adds the field weight once per field (once per label) in
    which it appears as a substring.
    """
    score = 0.0
    matches: list[str] = []

    fields = [
        (doc.column_header, COLUMN_HEADER_WEIGHT, 'header contains "{}"'),
        (doc.row_header, ROW_HEADER_WEIGHT, 'row header contains "{}"'),
        (doc.formatted_value, VALUE_WEIGHT, 'value contains "{}"'),
        (doc.formula, FORMULA_WEIGHT, 'formula contains "{}"'),
    ]
    fields.extend((label, LABEL_WEIGHT, 'label matches "{}"') for label in doc.labels)

    for text, weight, description in fields:
        if not text:
            continue
        lowered = text.lower()
        for term in terms:
            if term in lowered:
                score += weight
                matches.append(description.format(term))

    return KeywordMatch(doc=doc, score=score, matches=tuple(matches))


def calculate_overlap(
    semantic: list[SearchResult],
    keyword: list[SearchResult],
) -> ResultOverlap:
    """Overlap of two result lists by id. Two empty lists overlap fully (1.0)."""
    semantic_ids = {result.id for result in semantic}
    keyword_ids = {result.id for result in keyword}
    intersection = semantic_ids & keyword_ids
    union = semantic_ids | keyword_ids

    return ResultOverlap(
        intersection=len(intersection),
        union=len(union),
        jaccard=len(intersection) / len(union) if union else 1.0,
        semantic_only=len(semantic_ids) - len(intersection),
        keyword_only=len(keyword_ids) - len(intersection),
    )


# ── Service ────────────────────────────────────────────────────────────────


class SearchService:
    """
    Query entry point over an explicitly passed IndexStore.

    Args:
        store: The index to search.
        embedding_provider: Used to embed queries (kind "query").
        weights: Semantic blend weights.
        default_top_k: Result cap used when the caller passes none.
        max_top_k: Largest accepted top_k.
        max_complexity: Formula complexity that normalizes to 1.0.
    """

    def __init__(
        self,
        store: IndexStore,
        embedding_provider: EmbeddingProvider,
        weights: Optional[RankingWeights] = None,
        default_top_k: int = 10,
        max_top_k: int = 100,
        max_complexity: float = DEFAULT_MAX_COMPLEXITY,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.weights = weights or RankingWeights()
        self.default_top_k = default_top_k
        self.max_top_k = max_top_k
        self.max_complexity = max_complexity

    def _validate(self, query, top_k: Optional[int]) -> int:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError(
                "Query is required and must be a non-empty string",
                details={"query": repr(query)[:100]},
            )
        if top_k is None:
            return self.default_top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k < 1:
            raise ValidationError(f"top_k must be a positive integer, got {top_k!r}")
        if top_k > self.max_top_k:
            raise ValidationError(f"top_k ({top_k}) exceeds maximum ({self.max_top_k})")
        return top_k

    def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        include_ranges: bool = True,
    ) -> list[SearchResult]:
        """
        Semantic search with hybrid scoring.

        Steps:
            1. Embed the query and detect its concepts
            2. Score every document: similarity, concept match,
               formula complexity, sheet importance
            3. Blend with the configured weights
            4. Stable sort by final score descending, keep top_k

        Raises:
            ValidationError: Empty/non-string query or bad top_k.
            DimensionMismatchError: Query and document embeddings differ in length.
            ProviderError: The query could not be embedded.
        """
        top_k = self._validate(query, top_k)
        start_time = time.time()

        documents = self.store.documents(include_ranges=include_ranges)
        if not documents:
            return []

        query_embedding = self.embedding_provider.generate_embedding(query, "query")
        query_concepts = detect_query_concepts(query)

        scored = score_semantic(
            documents,
            query_embedding,
            query_concepts,
            self.weights,
            self.max_complexity,
        )
        scored.sort(key=lambda record: record.final_score, reverse=True)
        results = [format_semantic_result(record, query) for record in scored[:top_k]]

        logger.info(
            "search_semantic",
            query=query[:100],
            query_concepts=query_concepts,
            candidate_count=len(documents),
            result_count=len(results),
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return results

    def keyword_search(
        self,
        query: str,
        top_k: Optional[int] = None,
        include_ranges: bool = True,
    ) -> list[SearchResult]:
        """
        Keyword search over headers, values, formulas and labels.

        Relevance is the raw score divided by 10 and is not bounded to [0, 1].
        """
        top_k = self._validate(query, top_k)
        start_time = time.time()

        documents = self.store.documents(include_ranges=include_ranges)
        if not documents:
            return []

        terms = query.lower().split()
        matched = []
        for doc in documents:
            match = score_keywords(doc, terms)
            if match.score > 0:
                matched.append(match)

        matched.sort(key=lambda record: record.score, reverse=True)
        results = [format_keyword_result(record) for record in matched[:top_k]]

        logger.info(
            "search_keyword",
            query=query[:100],
            term_count=len(terms),
            candidate_count=len(documents),
            result_count=len(results),
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return results

    def compare(
        self,
        query: str,
        top_k: Optional[int] = None,
        include_ranges: bool = True,
    ) -> ModeComparison:
        """Run both modes and report how much their results overlap."""
        semantic = self.search(query, top_k=top_k, include_ranges=include_ranges)
        keyword = self.keyword_search(query, top_k=top_k, include_ranges=include_ranges)
        return ModeComparison(
            semantic=semantic,
            keyword=keyword,
            overlap=calculate_overlap(semantic, keyword),
        )

    def run(
        self,
        query: str,
        mode: str = "semantic",
        top_k: Optional[int] = None,
        include_ranges: bool = True,
    ):
        """Dispatch by mode name: "semantic", "keyword" or "both"."""
        if mode == "semantic":
            return self.search(query, top_k=top_k, include_ranges=include_ranges)
        if mode == "keyword":
            return self.keyword_search(query, top_k=top_k, include_ranges=include_ranges)
        if mode == "both":
            return self.compare(query, top_k=top_k, include_ranges=include_ranges)
        raise ValidationError(
            f'Invalid mode "{mode}". Use "semantic", "keyword", or "both"',
            details={"mode": mode},
        )

    def stats(self) -> dict[str, int]:
        return self.store.get_stats()
