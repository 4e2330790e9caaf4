"""
SheetSearch Data Model

Plain dataclasses for the documents that flow through ingestion and search:

    Cell             — single spreadsheet position with value/formula metadata
    Range            — grouped run of cells sharing a column header (>= 2 cells)
    IndexedDocument  — Cell or Range enriched with embedding and labels

Cells and ranges carry an explicit ``kind`` discriminant; nothing downstream
inspects which attributes a document happens to have.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class DocumentKind(str, Enum):
    """Discriminant for indexed documents."""
    CELL = "cell"
    RANGE = "range"


# Cell value types
CELL_TYPES = ("number", "text", "date", "percentage", "formula")


@dataclass(frozen=True)
class FormulaReference:
    """A cell or range reference found inside a formula."""
    kind: str                     # "cell" | "range"
    ref: str                      # reference without the sheet prefix, e.g. "$B$2"
    sheet: Optional[str] = None
    absolute: bool = False


@dataclass
class ParsedFormula:
    """
    Structural analysis of a formula string.

    A failed parse keeps ``error`` and ``original`` and reports neutral
    complexity (0) and type ("other").
    """
    original: str
    functions: list[str] = field(default_factory=list)
    references: list[FormulaReference] = field(default_factory=list)
    operators: list[str] = field(default_factory=list)
    complexity: float = 0.0
    type: str = "other"
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ContextEntry:
    """A non-empty neighbouring cell. row/col are 1-based."""
    value: str
    row: int
    col: int
    distance: int


@dataclass
class CellHeaders:
    column: Optional[str] = None
    row: Optional[str] = None
    context: list[ContextEntry] = field(default_factory=list)


@dataclass
class Cell:
    """A single spreadsheet cell. row/col are 1-based and agree with cell_ref."""
    id: str
    spreadsheet_id: str
    sheet_name: str
    row: int
    col: int
    cell_ref: str
    raw_value: Any
    formatted_value: str
    formula: Optional[str] = None
    parsed_formula: Optional[ParsedFormula] = None
    type: str = "text"
    headers: CellHeaders = field(default_factory=CellHeaders)
    kind: DocumentKind = field(default=DocumentKind.CELL, init=False)


@dataclass
class Range:
    """
    A run of cells sharing a column header.

    Bounds are min/max over the member cells. A single cell is never a Range.
    """
    id: str
    sheet_name: str
    header: Optional[str]
    cells: list[Cell]
    start_row: int
    end_row: int
    start_column: int
    end_column: int
    sample_values: list[str] = field(default_factory=list)
    has_formulas: bool = False
    formula_pattern: str = "values"
    spreadsheet_id: Optional[str] = None
    kind: DocumentKind = field(default=DocumentKind.RANGE, init=False)

    def __post_init__(self) -> None:
        if len(self.cells) < 2:
            raise ValueError(
                f"Range '{self.id}' needs at least 2 cells, got {len(self.cells)}"
            )


Document = Union[Cell, Range]


@dataclass(frozen=True)
class LabelResult:
    """Labels produced by a label provider, one confidence per label."""
    labels: list[str]
    confidence: list[float]
    method: str                   # "heuristic" | "llm" | "basic"
    explanation: str


@dataclass(frozen=True)
class IndexedDocument:
    """A Cell or Range enriched with its embedding and labels."""
    source: Document
    embedding: list[float]
    labels: list[str] = field(default_factory=list)
    label_confidence: list[float] = field(default_factory=list)
    label_method: str = "basic"
    label_explanation: str = ""

    @property
    def kind(self) -> DocumentKind:
        return self.source.kind

    @property
    def id(self) -> str:
        return self.source.id

    @property
    def sheet_name(self) -> str:
        return self.source.sheet_name

    @property
    def is_range(self) -> bool:
        return self.source.kind is DocumentKind.RANGE

    @property
    def column_header(self) -> Optional[str]:
        """Column header for cells, the shared header for ranges."""
        if self.is_range:
            return self.source.header
        return self.source.headers.column

    @property
    def row_header(self) -> Optional[str]:
        if self.is_range:
            return None
        return self.source.headers.row

    @property
    def formatted_value(self) -> Optional[str]:
        if self.is_range:
            return None
        return self.source.formatted_value or None

    @property
    def formula(self) -> Optional[str]:
        if self.is_range:
            return None
        return self.source.formula

    @property
    def parsed_formula(self) -> Optional[ParsedFormula]:
        if self.is_range:
            return None
        return self.source.parsed_formula
