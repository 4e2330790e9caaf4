"""
SheetSearch Concept Detector

Heuristic tagging of cells with business concepts. The text blob searched
is the cell value plus its column header, row header and up to three
context values, lowercased. Formula-based concepts look at the formula
text only.

Rules:
    - Tags are deduplicated, first-occurrence order preserved
    - Matching is plain substring matching; no tokenization
"""

from sheetsearch.models import Cell

# (concept, patterns), checked in order against the value/header text
TEXT_CONCEPT_PATTERNS: list[tuple[str, tuple[str, ...]]] = [
    ("revenue", ("revenue", "sales", "income", "earnings")),
    ("cost", ("cost", "expense", "cogs", "cost of goods", "operating expense")),
    ("profitability", ("profit", "margin", "gross profit", "net profit", "ebitda")),
    ("percentage", ("%", "percent", "percentage", "rate", "ratio")),
    ("growth", ("growth", "increase", "decrease", "change", "cagr", "yoy")),
    ("budget", ("budget", "actual", "variance", "forecast", "projection")),
    ("time_series", ("q1", "q2", "q3", "q4", "quarter", "monthly", "yearly", "annual")),
    ("financial_ratio", ("roi", "roa", "roe", "debt", "equity", "ratio")),
]

# (concept, patterns), checked in order against the formula text
FORMULA_CONCEPT_PATTERNS: list[tuple[str, tuple[str, ...]]] = [
    ("lookup", ("vlookup", "hlookup", "xlookup", "index", "match")),
    ("aggregation", ("sum", "average", "count", "max", "min")),
    ("conditional", ("if", "ifs", "switch", "choose")),
]

MAX_CONTEXT_VALUES = 3


def matches_pattern(text: str, patterns: tuple[str, ...]) -> bool:
    """True if any pattern is a substring of text."""
    return any(pattern in text for pattern in patterns)


def concept_text(cell: Cell) -> str:
    """Build the lowercase text blob the text patterns are matched against."""
    value = cell.formatted_value or (
        str(cell.raw_value) if cell.raw_value not in (None, "") else ""
    )
    headers = cell.headers
    parts = [headers.column, headers.row]
    parts.extend(entry.value for entry in headers.context[:MAX_CONTEXT_VALUES])
    header_text = " ".join(part for part in parts if part)
    return f"{value} {header_text}".lower()


def detect_business_concepts(cell: Cell) -> list[str]:
    """
    Detect business concepts for a cell.

    Returns:
        Deduplicated concept tags in first-occurrence order; may be empty.
    """
    concepts: list[str] = []
    text = concept_text(cell)

    for concept, patterns in TEXT_CONCEPT_PATTERNS:
        if matches_pattern(text, patterns) and concept not in concepts:
            concepts.append(concept)

    formula_text = (cell.formula or "").lower()
    if formula_text:
        for concept, patterns in FORMULA_CONCEPT_PATTERNS:
            if matches_pattern(formula_text, patterns) and concept not in concepts:
                concepts.append(concept)

    return concepts
