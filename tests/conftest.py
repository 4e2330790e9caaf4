"""
Shared pytest fixtures for SheetSearch tests.

Provides:
- Deterministic fake embedding provider (bag-of-words vectors, no network)
- Label provider chain without the LLM step
- Cell factory and a small P&L sheet grid
- IndexStore / SearchService wired to the fakes
"""

from typing import Optional

import pytest

from sheetsearch.errors import ProviderError
from sheetsearch.ingestion.formulas import analyze_formula
from sheetsearch.ingestion.headers import cell_reference
from sheetsearch.models import Cell, CellHeaders, ContextEntry
from sheetsearch.search.indexer import IndexStore
from sheetsearch.search.labels import BasicLabeler, ChainedLabelProvider, HeuristicLabeler
from sheetsearch.search.search import SearchService


# =============================================================================
# Fake providers
# =============================================================================
VOCABULARY = (
    "revenue",
    "sales",
    "cost",
    "expense",
    "profit",
    "margin",
    "budget",
    "total",
)


def bag_of_words(text: str) -> list[float]:
    """Count vocabulary words in text; the last component keeps the norm non-zero."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in VOCABULARY] + [0.1]


class FakeEmbeddingProvider:
    """Deterministic embedding provider. Records every call."""

    name = "fake-embeddings"

    def __init__(self, fail_on: Optional[str] = None, dimensions: Optional[int] = None):
        self.fail_on = fail_on
        self.dimensions = dimensions
        self.calls: list[tuple[str, str]] = []

    def generate_embedding(self, text: str, kind: str = "cell") -> list[float]:
        self.calls.append((text, kind))
        if self.fail_on and self.fail_on in text:
            raise ProviderError(f"cannot embed '{text}'", provider=self.name)
        vector = bag_of_words(text)
        if self.dimensions is not None:
            vector = (vector + [0.0] * self.dimensions)[: self.dimensions]
        return vector

    def generate_embeddings(self, texts: list[str], kind: str = "cell") -> list[list[float]]:
        return [self.generate_embedding(text, kind) for text in texts]


# =============================================================================
# Factories
# =============================================================================
def make_cell(
    value,
    row: int = 2,
    col: int = 2,
    sheet: str = "Sheet1",
    column: Optional[str] = None,
    row_header: Optional[str] = None,
    formula: Optional[str] = None,
    context: tuple = (),
    spreadsheet_id: str = "wb",
    cell_type: Optional[str] = None,
) -> Cell:
    """Build a Cell with headers and an analyzed formula."""
    formatted = "" if value is None else str(value)
    return Cell(
        id=f"{spreadsheet_id}_{sheet.lower()}_{row}_{col}",
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet,
        row=row,
        col=col,
        cell_ref=cell_reference(row, col),
        raw_value=value,
        formatted_value=formatted,
        formula=formula,
        parsed_formula=analyze_formula(formula),
        type=cell_type or ("formula" if formula else "text"),
        headers=CellHeaders(
            column=column,
            row=row_header,
            context=[
                ContextEntry(value=str(v), row=row, col=col + i + 1, distance=i + 1)
                for i, v in enumerate(context)
            ],
        ),
    )


PNL_GRID = [
    ["Metric", "Q1", "Q2", "Total"],
    ["Revenue", 100, 120, 220],
    ["Cost", 60, 70, 130],
    ["Profit", 40, 50, 90],
]

PNL_FORMULAS = {
    "D2": "=SUM(B2:C2)",
    "D3": "=SUM(B3:C3)",
    "D4": "=D2-D3",
}


# =============================================================================
# Fixtures
# =============================================================================
@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def label_provider():
    return ChainedLabelProvider([HeuristicLabeler(), BasicLabeler()])


@pytest.fixture
def store(embedding_provider, label_provider):
    return IndexStore(embedding_provider, label_provider)


@pytest.fixture
def service(store, embedding_provider):
    return SearchService(store, embedding_provider)


@pytest.fixture
def pnl_grid():
    return [list(row) for row in PNL_GRID]


@pytest.fixture
def pnl_formulas():
    return dict(PNL_FORMULAS)
