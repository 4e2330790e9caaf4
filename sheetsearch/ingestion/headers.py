"""
SheetSearch Header/Context Resolver

Derives column/row headers and nearby-cell context for a grid position.
The grid is the sheet's row-major value matrix as supplied by the caller
(first row = row 1); ragged rows are allowed.

Functions:
    detect_headers        — Column headers, row headers and header-row indices
    resolve_cell_headers  — Headers + context entries for one (row, col)
    column_letter         — 1-based column index → "A", "B", ..., "AA"
    cell_reference        — 1-based (row, col) → "C2"
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sheetsearch.models import CellHeaders, ContextEntry

Grid = Sequence[Sequence[Any]]


@dataclass
class HeaderInfo:
    """Headers detected for a whole sheet."""
    row_headers: list[str] = field(default_factory=list)
    column_headers: list[str] = field(default_factory=list)
    header_rows: list[int] = field(default_factory=list)  # 0-based indices


def _text(value: Any) -> Optional[str]:
    """Return stripped text for non-empty string values, else None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _is_empty(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def detect_headers(grid: Grid, header_rows: int = 1, min_text_cells: int = 3) -> HeaderInfo:
    """
    Detect header text in a sheet grid.

    Column headers are the text entries of the first row, row headers the
    first-column text entries of the first ``header_rows`` rows. Both lists
    skip non-text values, so their positions are compacted.
    """
    if not grid:
        return HeaderInfo()

    info = HeaderInfo()

    for row in grid[:header_rows]:
        if row:
            text = _text(row[0])
            if text is not None:
                info.row_headers.append(text)

    for value in grid[0] or []:
        text = _text(value)
        if text is not None:
            info.column_headers.append(text)

    for index, row in enumerate(grid[:header_rows]):
        text_cells = sum(1 for value in (row or []) if _text(value) is not None)
        if text_cells >= min_text_cells:
            info.header_rows.append(index)

    return info


def resolve_cell_headers(
    grid: Grid,
    header_info: HeaderInfo,
    row: int,
    col: int,
    radius: int = 2,
) -> CellHeaders:
    """
    Resolve headers and context for the cell at 1-based (row, col).

    Context holds every non-empty cell within ``radius`` rows and columns of
    the target (the target itself excluded), in row-major order with
    ascending columns. Distance is the Manhattan distance.
    """
    headers = CellHeaders()

    if 1 <= col <= len(header_info.column_headers):
        headers.column = header_info.column_headers[col - 1]
    if 1 <= row <= len(header_info.row_headers):
        headers.row = header_info.row_headers[row - 1]

    target_r, target_c = row - 1, col - 1
    for r in range(max(0, target_r - radius), min(len(grid), target_r + radius + 1)):
        grid_row = grid[r] or []
        for c in range(max(0, target_c - radius), min(len(grid_row), target_c + radius + 1)):
            if r == target_r and c == target_c:
                continue
            value = grid_row[c]
            if _is_empty(value):
                continue
            headers.context.append(
                ContextEntry(
                    value=str(value),
                    row=r + 1,
                    col=c + 1,
                    distance=abs(r - target_r) + abs(c - target_c),
                )
            )

    return headers


def column_letter(col: int) -> str:
    """Convert a 1-based column index to its letter name."""
    if col < 1:
        raise ValueError(f"Column index must be >= 1, got {col}")
    letters = ""
    index = col - 1
    while index >= 0:
        letters = chr(65 + index % 26) + letters
        index = index // 26 - 1
    return letters


def cell_reference(row: int, col: int) -> str:
    """Build an A1-style reference from 1-based (row, col)."""
    return f"{column_letter(col)}{row}"
