"""
SheetSearch Result Formatter

Turns ranked internal records into explained, user-facing results.

Functions:
    primary_concept          — First label, column header, "Formula" or "Data"
    result_location          — {sheet, range}; "start-end" rows or "row:col"
    semantic_reasons         — Why a document ranked in semantic mode
    explain_search_match     — One-line explanation for semantic results
    format_semantic_result   — ScoredDocument → SearchResult
    format_keyword_result    — KeywordMatch → SearchResult
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from sheetsearch.models import IndexedDocument

HIGH_SIMILARITY = 0.8
GOOD_SIMILARITY = 0.6
CONCEPT_MATCH_REASON_THRESHOLD = 0.5

# Keyword scores are divided by this for the reported relevance (not clamped)
KEYWORD_RELEVANCE_DIVISOR = 10.0


@dataclass(frozen=True)
class ResultLocation:
    sheet: str
    range: str


@dataclass
class SearchResult:
    id: str
    concept: str
    location: ResultLocation
    formula: Optional[str]
    value: Optional[str]
    explanation: str
    relevance: float
    reasons: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    type: str = "cell"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScoredDocument:
    """Semantic ranking record for one document."""
    doc: IndexedDocument
    similarity: float
    concept_match: float
    formula_complexity: float
    sheet_importance: float
    final_score: float


@dataclass(frozen=True)
class KeywordMatch:
    """Keyword ranking record for one document."""
    doc: IndexedDocument
    score: float
    matches: tuple[str, ...]


# ── Building blocks ────────────────────────────────────────────────────────


def primary_concept(doc: IndexedDocument) -> str:
    if doc.labels:
        return doc.labels[0]
    if doc.column_header:
        return doc.column_header
    if doc.formula:
        return "Formula"
    return "Data"


def result_location(doc: IndexedDocument) -> ResultLocation:
    source = doc.source
    if doc.is_range:
        return ResultLocation(sheet=doc.sheet_name, range=f"{source.start_row}-{source.end_row}")
    return ResultLocation(sheet=doc.sheet_name, range=f"{source.row}:{source.col}")


def semantic_reasons(
    doc: IndexedDocument,
    query: str,
    similarity: float,
    concept_score: float,
) -> list[str]:
    reasons = []

    if similarity > HIGH_SIMILARITY:
        reasons.append("high semantic similarity")
    elif similarity > GOOD_SIMILARITY:
        reasons.append("good semantic similarity")

    if concept_score > CONCEPT_MATCH_REASON_THRESHOLD:
        reasons.append("concept match")

    formula = doc.formula
    if formula:
        if "SUM" in formula.upper():
            reasons.append("contains SUM formula")
        elif "/" in formula:
            reasons.append("contains division calculation")

    header = (doc.column_header or "").lower()
    query_lower = query.lower().strip()
    if header and query_lower and (header in query_lower or query_lower in header):
        reasons.append("header matches query")

    return reasons


def explain_search_match(doc: IndexedDocument) -> str:
    explanations = []
    if doc.labels:
        explanations.append(f"concept matches: {doc.labels[0]}")

    formula = (doc.formula or "").upper()
    if formula:
        if "SUM" in formula:
            explanations.append("contains SUM formula")
        elif "/" in formula:
            explanations.append("contains division calculation")
        elif "VLOOKUP" in formula:
            explanations.append("contains lookup formula")

    sheet = doc.sheet_name.lower()
    if "profit" in sheet or "p&l" in sheet:
        explanations.append("from profit & loss sheet")
    elif "revenue" in sheet:
        explanations.append("from revenue sheet")

    return ", ".join(explanations) or "semantic similarity match"


# ── Formatting ─────────────────────────────────────────────────────────────


def format_semantic_result(scored: ScoredDocument, query: str) -> SearchResult:
    doc = scored.doc
    return SearchResult(
        id=doc.id,
        concept=primary_concept(doc),
        location=result_location(doc),
        formula=doc.formula,
        value=doc.formatted_value,
        explanation=explain_search_match(doc),
        relevance=scored.final_score,
        reasons=semantic_reasons(doc, query, scored.similarity, scored.concept_match),
        labels=list(doc.labels),
        type=doc.kind.value,
    )


def format_keyword_result(match: KeywordMatch) -> SearchResult:
    doc = match.doc
    return SearchResult(
        id=doc.id,
        concept=primary_concept(doc),
        location=result_location(doc),
        formula=doc.formula,
        value=doc.formatted_value,
        explanation=f"Keyword matches: {', '.join(match.matches)}",
        relevance=match.score / KEYWORD_RELEVANCE_DIVISOR,
        reasons=list(match.matches),
        labels=list(doc.labels),
        type=doc.kind.value,
    )
