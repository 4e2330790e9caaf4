"""
SheetSearch Document Builder

Synthesizes the canonical embedding text for cells and ranges and assembles
Cell / Range documents from a raw sheet grid.

Functions:
    build_cell_embedding_text   — "Sheet: ... - Column: ... - Formula: ..." for a Cell
    build_range_embedding_text  — "Sheet: ... - Header: ... - Range: ..." for a Range
    determine_cell_type         — number | text | date | percentage | formula
    build_sheet_documents       — Grid + formulas → cells and ranges for one sheet
    build_range_documents       — Group cells by column header into Range documents
    sheet_key                   — Id-safe sheet key, distinct for distinct names

Rules:
    - Embedding text parts are joined with " - " in a fixed order
    - A group of one cell never becomes a Range
    - Document ids are unique per workbook, even when names slugify alike
    - The caller supplies values and formulas; workbook files are never read here
"""

import hashlib
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

import structlog

from sheetsearch.config import settings
from sheetsearch.ingestion.formulas import analyze_formula, leading_function
from sheetsearch.ingestion.headers import (
    Grid,
    HeaderInfo,
    cell_reference,
    detect_headers,
    resolve_cell_headers,
)
from sheetsearch.models import Cell, Range

logger = structlog.get_logger(__name__)

EMBEDDING_TEXT_SEPARATOR = " - "
MAX_SAMPLE_VALUES = 5
MAX_EMBEDDED_VALUES = 3

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass
class SheetDocuments:
    """Documents built from one sheet."""
    spreadsheet_id: str
    sheet_name: str
    cells: list[Cell] = field(default_factory=list)
    ranges: list[Range] = field(default_factory=list)
    header_info: HeaderInfo = field(default_factory=HeaderInfo)
    row_count: int = 0
    column_count: int = 0


# ── Embedding text ─────────────────────────────────────────────────────────


def build_cell_embedding_text(cell: Cell) -> str:
    """
    Build the text string to embed for a cell.

    Order: sheet, column header, row header, formula (+ type) or value,
    first three context values.
    """
    parts = [f"Sheet: {cell.sheet_name}"]

    if cell.headers.column:
        parts.append(f"Column: {cell.headers.column}")
    if cell.headers.row:
        parts.append(f"Row: {cell.headers.row}")

    if cell.formula:
        parts.append(f"Formula: {cell.formula}")
        if cell.parsed_formula is not None and not cell.parsed_formula.failed:
            parts.append(f"Type: {cell.parsed_formula.type}")
    elif cell.formatted_value:
        parts.append(f"Value: {cell.formatted_value}")

    if cell.headers.context:
        context_values = ", ".join(
            entry.value for entry in cell.headers.context[:MAX_EMBEDDED_VALUES]
        )
        parts.append(f"Context: {context_values}")

    return EMBEDDING_TEXT_SEPARATOR.join(parts)


def build_range_embedding_text(range_doc: Range) -> str:
    """Build the text string to embed for a range."""
    parts = [f"Sheet: {range_doc.sheet_name}"]

    if range_doc.header:
        parts.append(f"Header: {range_doc.header}")

    parts.append(f"Range: {range_doc.start_row}-{range_doc.end_row}")

    if range_doc.sample_values:
        parts.append(
            f"Values: {', '.join(range_doc.sample_values[:MAX_EMBEDDED_VALUES])}"
        )

    if range_doc.formula_pattern and range_doc.formula_pattern != "values":
        parts.append(f"Pattern: {range_doc.formula_pattern}")

    return EMBEDDING_TEXT_SEPARATOR.join(parts)


# ── Cell helpers ───────────────────────────────────────────────────────────


def slugify(name: str) -> str:
    """Lowercase a name and replace every character outside [a-z0-9] with "_"."""
    return re.sub(r"[^a-z0-9]", "_", name.lower())


def sheet_key(name: str) -> str:
    """
    Id-safe key for a sheet name.

    The slug alone when it equals the name, otherwise the slug plus a short
    md5 of the exact name, so "P&L" and "P-L" get different keys.
    """
    slug = slugify(name)
    if slug == name:
        return slug
    digest = hashlib.md5(name.encode("utf-8")).hexdigest()[:8]
    return f"{slug}_{digest}"


def format_value(value: Any) -> str:
    """Render a raw grid value as display text."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str) and value.strip():
        try:
            float(value.replace(",", ""))
        except ValueError:
            return False
        return True
    return False


def determine_cell_type(raw_value: Any, formatted_value: str, formula: Optional[str]) -> str:
    """Determine the cell type from its formula, display text and raw value."""
    if formula:
        return "formula"
    if "%" in (formatted_value or ""):
        return "percentage"
    if _is_numeric(raw_value):
        return "number"
    if isinstance(raw_value, (datetime, date)):
        return "date"
    if isinstance(raw_value, str) and _ISO_DATE_RE.match(raw_value):
        return "date"
    return "text"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ── Ranges ─────────────────────────────────────────────────────────────────


def detect_formula_pattern(cells: list[Cell]) -> str:
    """
    Most common leading function name among the cells' formulas.

    Returns "values" when no cell has a formula and "mixed" when formulas
    exist but none starts with a function call.
    """
    formulas = [cell.formula for cell in cells if cell.formula]
    if not formulas:
        return "values"

    leading = [name for name in map(leading_function, formulas) if name]
    if not leading:
        return "mixed"

    # most_common keeps first-seen order among equal counts
    return Counter(leading).most_common(1)[0][0]


def build_range_documents(cells: list[Cell]) -> list[Range]:
    """
    Group cells by (sheet, column header) and build one Range per group of
    two or more cells. Cells without a column header share the "unknown"
    group of their sheet.
    """
    groups: dict[tuple[str, Optional[str]], list[Cell]] = {}
    for cell in cells:
        key = (cell.sheet_name, cell.headers.column)
        groups.setdefault(key, []).append(cell)

    ranges = []
    for (sheet_name, header), members in groups.items():
        if len(members) < 2:
            continue

        first = members[0]
        start_column = min(cell.col for cell in members)
        ranges.append(
            Range(
                id=(
                    f"range_{first.spreadsheet_id}_{sheet_key(sheet_name)}"
                    f"_{slugify(header or 'unknown')}_{start_column}"
                ),
                spreadsheet_id=first.spreadsheet_id,
                sheet_name=sheet_name,
                header=header,
                cells=members,
                start_row=min(cell.row for cell in members),
                end_row=max(cell.row for cell in members),
                start_column=start_column,
                end_column=max(cell.col for cell in members),
                sample_values=[cell.formatted_value for cell in members[:MAX_SAMPLE_VALUES]],
                has_formulas=any(cell.formula for cell in members),
                formula_pattern=detect_formula_pattern(members),
            )
        )

    return ranges


# ── Sheet pipeline ─────────────────────────────────────────────────────────


def build_sheet_documents(
    spreadsheet_id: str,
    sheet_name: str,
    grid: Grid,
    formulas: Optional[dict[str, str]] = None,
    header_rows: Optional[int] = None,
    context_radius: Optional[int] = None,
) -> SheetDocuments:
    """
    Build Cell and Range documents for one sheet.

    Args:
        spreadsheet_id: Identifier of the workbook the sheet belongs to.
        sheet_name: Sheet title.
        grid: Row-major display values, row 1 first. Ragged rows are fine.
        formulas: Optional mapping of A1 reference → formula text ("=...").
        header_rows: Leading rows scanned for row headers. Defaults to
            settings.HEADER_ROWS.
        context_radius: Neighbourhood radius for context entries. Defaults
            to settings.CONTEXT_RADIUS.

    Returns:
        SheetDocuments with one Cell per non-blank value and the Ranges
        grouped from those cells.
    """
    formulas = formulas or {}
    header_rows = settings.HEADER_ROWS if header_rows is None else header_rows
    context_radius = settings.CONTEXT_RADIUS if context_radius is None else context_radius
    header_info = detect_headers(grid, header_rows=header_rows)
    sheet_id = sheet_key(sheet_name)

    cells: list[Cell] = []
    for r, row_values in enumerate(grid):
        for c, value in enumerate(row_values or []):
            if _is_blank(value):
                continue

            row, col = r + 1, c + 1
            ref = cell_reference(row, col)
            formula = formulas.get(ref)
            formatted = format_value(value)

            cells.append(
                Cell(
                    id=f"{spreadsheet_id}_{sheet_id}_{row}_{col}",
                    spreadsheet_id=spreadsheet_id,
                    sheet_name=sheet_name,
                    row=row,
                    col=col,
                    cell_ref=ref,
                    raw_value=value,
                    formatted_value=formatted,
                    formula=formula,
                    parsed_formula=analyze_formula(formula),
                    type=determine_cell_type(value, formatted, formula),
                    headers=resolve_cell_headers(
                        grid, header_info, row, col, radius=context_radius
                    ),
                )
            )

    ranges = build_range_documents(cells)

    logger.info(
        "sheet_documents_built",
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet_name,
        cell_count=len(cells),
        range_count=len(ranges),
    )

    return SheetDocuments(
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet_name,
        cells=cells,
        ranges=ranges,
        header_info=header_info,
        row_count=len(grid),
        column_count=max((len(row or []) for row in grid), default=0),
    )
