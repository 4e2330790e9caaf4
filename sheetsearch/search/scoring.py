"""
SheetSearch Ranking Signals

The four signals blended by the semantic ranker, and the blend itself:

    concept_match                 — label overlap with the query's concepts
    normalize_formula_complexity  — formula complexity squashed into [0, 1]
    sheet_importance              — heuristic weight from the sheet name
    final_score                   — weighted sum under RankingWeights

All functions here are pure.
"""

from dataclasses import dataclass
from typing import Optional

from sheetsearch.models import ParsedFormula

# Substring → concepts for query concept detection, checked in this order
QUERY_CONCEPT_MAP: dict[str, tuple[str, ...]] = {
    "profit": ("profitability",),
    "margin": ("profitability",),
    "revenue": ("revenue",),
    "sales": ("revenue",),
    "cost": ("cost",),
    "expense": ("cost",),
    "percentage": ("percentage",),
    "ratio": ("percentage",),
    "growth": ("growth",),
    "budget": ("budget",),
    "actual": ("budget",),
    "forecast": ("budget",),
    "lookup": ("lookup",),
    "vlookup": ("lookup",),
    "formula": ("formula",),
    "calculation": ("formula",),
}

DEFAULT_MAX_COMPLEXITY = 20.0
COMPLEX_FUNCTION_BOOST = 0.3
COMPLEX_FUNCTIONS = {"VLOOKUP", "INDEX", "MATCH", "XLOOKUP", "IFS", "SWITCH"}

HIGH_IMPORTANCE_SHEETS = ("p&l", "profit", "income", "revenue", "financial", "budget", "forecast")
MEDIUM_IMPORTANCE_SHEETS = ("dashboard", "summary", "overview", "analysis", "metrics")
LOW_IMPORTANCE_SHEETS = ("raw", "data", "input", "temp", "backup")


@dataclass(frozen=True)
class RankingWeights:
    """
    Weights of the semantic ranking blend.

    Defaults: semantic 0.7, concept 0.15, formula 0.1, sheet 0.05. The
    weights are not required to sum to 1.
    """
    semantic: float = 0.7
    concept: float = 0.15
    formula: float = 0.1
    sheet: float = 0.05

    @classmethod
    def from_settings(cls, app_settings) -> "RankingWeights":
        return cls(
            semantic=app_settings.SEMANTIC_WEIGHT,
            concept=app_settings.CONCEPT_MATCH_WEIGHT,
            formula=app_settings.FORMULA_COMPLEXITY_WEIGHT,
            sheet=app_settings.SHEET_IMPORTANCE_WEIGHT,
        )


def detect_query_concepts(query: str) -> list[str]:
    """Map query terms to concepts. Deduplicated, dictionary order."""
    lowered = query.lower()
    concepts: list[str] = []
    for term, term_concepts in QUERY_CONCEPT_MAP.items():
        if term in lowered:
            for concept in term_concepts:
                if concept not in concepts:
                    concepts.append(concept)
    return concepts


def concept_match(labels: list[str], query_concepts: list[str]) -> float:
    """|labels ∩ query_concepts| / max(|labels|, |query_concepts|); 0 if either is empty."""
    if not labels or not query_concepts:
        return 0.0
    shared = set(labels) & set(query_concepts)
    return len(shared) / max(len(set(labels)), len(set(query_concepts)))


def normalize_formula_complexity(
    parsed: Optional[ParsedFormula],
    max_complexity: float = DEFAULT_MAX_COMPLEXITY,
) -> float:
    """
    Normalize a formula's complexity into [0, 1].

    complexity / max_complexity, capped at 1, plus a 0.3 boost (still capped)
    for formulas using lookup-style or multi-branch functions. Absent or
    failed formulas score 0.
    """
    if parsed is None or parsed.failed:
        return 0.0

    normalized = min(max(parsed.complexity, 0.0) / max_complexity, 1.0)
    if COMPLEX_FUNCTIONS.intersection(parsed.functions):
        normalized = min(normalized + COMPLEX_FUNCTION_BOOST, 1.0)
    return normalized


def sheet_importance(sheet_name: str) -> float:
    """1.0 for financial sheets, 0.7 for dashboards, 0.3 for raw/scratch sheets, else 0.5."""
    name = (sheet_name or "").lower()
    if any(pattern in name for pattern in HIGH_IMPORTANCE_SHEETS):
        return 1.0
    if any(pattern in name for pattern in MEDIUM_IMPORTANCE_SHEETS):
        return 0.7
    if any(pattern in name for pattern in LOW_IMPORTANCE_SHEETS):
        return 0.3
    return 0.5


def final_score(
    similarity: float,
    concept: float,
    formula_complexity: float,
    importance: float,
    weights: RankingWeights = RankingWeights(),
) -> float:
    """Weighted blend of the four ranking signals."""
    return (
        weights.semantic * similarity
        + weights.concept * concept
        + weights.formula * formula_complexity
        + weights.sheet * importance
    )
