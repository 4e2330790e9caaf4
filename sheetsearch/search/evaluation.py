"""
SheetSearch Evaluation

Compares semantic and keyword retrieval on a set of labelled queries using
precision@k, recall@k and F1. A result is relevant when any expected
concept is a substring of one of its labels, its primary concept or (for
precision) one of its reasons.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from sheetsearch.search.results import SearchResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EvaluationQuery:
    id: str
    query: str
    expected_concepts: tuple[str, ...]
    category: str


DEFAULT_QUERIES: tuple[EvaluationQuery, ...] = (
    EvaluationQuery("profitability_1", "Find all profitability metrics", ("profitability", "profit", "margin"), "profitability"),
    EvaluationQuery("cost_1", "Show cost-related formulas", ("cost", "expense"), "cost"),
    EvaluationQuery("margin_1", "Where are my margin analyses?", ("margin", "profitability"), "profitability"),
    EvaluationQuery("percentage_1", "What percentage calculations do I have?", ("percentage", "ratio"), "calculation"),
    EvaluationQuery("average_1", "Find average formulas", ("average", "aggregation"), "aggregation"),
    EvaluationQuery("lookup_1", "Show lookup formulas", ("lookup", "vlookup"), "lookup"),
    EvaluationQuery("budget_1", "Budget vs actual", ("budget", "actual"), "budget"),
    EvaluationQuery("time_series_1", "Time series data monthly", ("time_series", "monthly"), "time_series"),
    EvaluationQuery("conditional_1", "Find conditional calculations", ("conditional", "if"), "conditional"),
    EvaluationQuery("growth_1", "Show CAGR or growth rate calculations", ("growth", "cagr"), "growth"),
    EvaluationQuery("roi_1", "Find marketing ROI or ROI calculations", ("roi", "return"), "financial_ratio"),
    EvaluationQuery("sales_1", "Show sales totals", ("sales", "revenue", "total"), "revenue"),
    EvaluationQuery("forecast_1", "Find forecast or projection formulas", ("forecast", "projection"), "budget"),
    EvaluationQuery("variance_1", "Show budget variance calculations", ("variance", "budget"), "budget"),
    EvaluationQuery("aggregation_1", "Find SUM and COUNT formulas", ("sum", "count", "aggregation"), "aggregation"),
)


@dataclass
class ModeMetrics:
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0
    result_count: int = 0


@dataclass
class QueryEvaluation:
    query: EvaluationQuery
    semantic: ModeMetrics
    keyword: ModeMetrics


@dataclass
class EvaluationReport:
    k: int
    queries: list[QueryEvaluation] = field(default_factory=list)
    semantic: ModeMetrics = field(default_factory=ModeMetrics)
    keyword: ModeMetrics = field(default_factory=ModeMetrics)


def _result_terms(result: SearchResult, include_reasons: bool) -> list[str]:
    terms = list(result.labels) + [result.concept]
    if include_reasons:
        terms.extend(result.reasons)
    return [term.lower() for term in terms if term]


def _is_relevant(terms: list[str], expected: tuple[str, ...]) -> bool:
    return any(concept.lower() in term for concept in expected for term in terms)


def precision_at_k(results: list[SearchResult], expected: tuple[str, ...], k: int) -> float:
    top = results[:k]
    if not top:
        return 0.0
    relevant = sum(1 for result in top if _is_relevant(_result_terms(result, True), expected))
    return relevant / len(top)


def recall_at_k(results: list[SearchResult], expected: tuple[str, ...], k: int) -> float:
    if not expected:
        return 0.0
    found = set()
    for result in results[:k]:
        terms = _result_terms(result, False)
        for concept in expected:
            if any(concept.lower() in term for term in terms):
                found.add(concept)
    return len(found) / len(expected)


def f1_score(precision: float, recall: float) -> float:
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def _metrics(results: list[SearchResult], expected: tuple[str, ...], k: int) -> ModeMetrics:
    precision = precision_at_k(results, expected, k)
    recall = recall_at_k(results, expected, k)
    return ModeMetrics(
        precision=precision,
        recall=recall,
        f1=f1_score(precision, recall),
        result_count=len(results),
    )


def _average(metrics: list[ModeMetrics]) -> ModeMetrics:
    if not metrics:
        return ModeMetrics()
    count = len(metrics)
    return ModeMetrics(
        precision=sum(m.precision for m in metrics) / count,
        recall=sum(m.recall for m in metrics) / count,
        f1=sum(m.f1 for m in metrics) / count,
        result_count=sum(m.result_count for m in metrics),
    )


def evaluate(
    service,
    queries: Optional[tuple[EvaluationQuery, ...]] = None,
    k: int = 5,
) -> EvaluationReport:
    """
    Run every query in both modes and collect per-query and averaged metrics.

    Args:
        service: A SearchService (anything with search/keyword_search).
        queries: Labelled queries. Defaults to DEFAULT_QUERIES.
        k: Cut-off for precision@k / recall@k; also used as top_k.
    """
    queries = DEFAULT_QUERIES if queries is None else queries
    report = EvaluationReport(k=k)

    for item in queries:
        semantic = service.search(item.query, top_k=k)
        keyword = service.keyword_search(item.query, top_k=k)
        report.queries.append(
            QueryEvaluation(
                query=item,
                semantic=_metrics(semantic, item.expected_concepts, k),
                keyword=_metrics(keyword, item.expected_concepts, k),
            )
        )

    report.semantic = _average([q.semantic for q in report.queries])
    report.keyword = _average([q.keyword for q in report.queries])

    logger.info(
        "evaluation_completed",
        query_count=len(report.queries),
        k=k,
        semantic_f1=round(report.semantic.f1, 4),
        keyword_f1=round(report.keyword.f1, 4),
    )
    return report
