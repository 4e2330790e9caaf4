"""
Tests for the Header/Context Resolver.

Tests:
    1. detect_headers reads column headers, row headers and header rows
    2. resolve_cell_headers maps headers by 1-based position
    3. Context entries: radius box, row-major order, Manhattan distance
    4. column_letter / cell_reference conversions
"""

import pytest


GRID = [
    ["Metric", "Q1", "Q2", "Total"],
    ["Revenue", 100, 120, 220],
    ["Cost", 60, 70, 130],
    ["Profit", 40, 50, 90],
]


# ── Test 1: detect_headers ───────────────────────────────────────────────────


class TestDetectHeaders:
    def test_column_headers_from_first_row(self):
        from sheetsearch.ingestion.headers import detect_headers

        info = detect_headers(GRID)

        assert info.column_headers == ["Metric", "Q1", "Q2", "Total"]

    def test_row_headers_limited_to_header_rows(self):
        from sheetsearch.ingestion.headers import detect_headers

        assert detect_headers(GRID).row_headers == ["Metric"]
        assert detect_headers(GRID, header_rows=3).row_headers == ["Metric", "Revenue", "Cost"]

    def test_header_row_needs_three_text_cells(self):
        from sheetsearch.ingestion.headers import detect_headers

        assert detect_headers(GRID).header_rows == [0]
        assert detect_headers([["Name", 1, 2, 3]]).header_rows == []

    def test_non_text_values_skipped(self):
        from sheetsearch.ingestion.headers import detect_headers

        info = detect_headers([["Region", 2024, None, "  ", "Total"]])

        assert info.column_headers == ["Region", "Total"]

    def test_empty_grid(self):
        from sheetsearch.ingestion.headers import detect_headers

        info = detect_headers([])

        assert info.column_headers == []
        assert info.row_headers == []
        assert info.header_rows == []


# ── Test 2: header lookup ────────────────────────────────────────────────────


class TestResolveHeaders:
    def test_column_header_by_position(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        headers = resolve_cell_headers(GRID, detect_headers(GRID), row=2, col=4)

        assert headers.column == "Total"
        assert headers.row is None

    def test_row_header_within_header_rows(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        info = detect_headers(GRID, header_rows=4)
        headers = resolve_cell_headers(GRID, info, row=3, col=2)

        assert headers.row == "Cost"
        assert headers.column == "Q1"

    def test_out_of_range_column_has_no_header(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        headers = resolve_cell_headers(GRID, detect_headers(GRID), row=2, col=9)

        assert headers.column is None


# ── Test 3: context ──────────────────────────────────────────────────────────


class TestContext:
    def test_context_excludes_target_and_orders_row_major(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        headers = resolve_cell_headers(GRID, detect_headers(GRID), row=2, col=2)
        positions = [(entry.row, entry.col) for entry in headers.context]

        assert (2, 2) not in positions
        assert positions == sorted(positions)
        assert len(positions) == 15

    def test_first_entry_and_distance(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        headers = resolve_cell_headers(GRID, detect_headers(GRID), row=2, col=2)
        first = headers.context[0]

        assert first.value == "Metric"
        assert (first.row, first.col) == (1, 1)
        assert first.distance == 2

    def test_radius_limits_box(self):
        from sheetsearch.ingestion.headers import detect_headers, resolve_cell_headers

        headers = resolve_cell_headers(GRID, detect_headers(GRID), row=1, col=1, radius=1)
        values = [entry.value for entry in headers.context]

        assert values == ["Q1", "Revenue", "100"]

    def test_empty_values_skipped_but_zero_kept(self):
        from sheetsearch.ingestion.headers import HeaderInfo, resolve_cell_headers

        grid = [["x", None, ""], [0, "   ", "y"]]
        headers = resolve_cell_headers(grid, HeaderInfo(), row=1, col=1, radius=2)

        assert [entry.value for entry in headers.context] == ["0", "y"]

    def test_ragged_rows(self):
        from sheetsearch.ingestion.headers import HeaderInfo, resolve_cell_headers

        grid = [["a", "b", "c"], ["d"]]
        headers = resolve_cell_headers(grid, HeaderInfo(), row=2, col=1, radius=2)

        assert [entry.value for entry in headers.context] == ["a", "b", "c"]


# ── Test 4: references ───────────────────────────────────────────────────────


class TestColumnLetters:
    @pytest.mark.parametrize(
        "col, expected",
        [(1, "A"), (2, "B"), (26, "Z"), (27, "AA"), (52, "AZ"), (703, "AAA")],
    )
    def test_column_letter(self, col, expected):
        from sheetsearch.ingestion.headers import column_letter

        assert column_letter(col) == expected

    def test_column_letter_rejects_zero(self):
        from sheetsearch.ingestion.headers import column_letter

        with pytest.raises(ValueError):
            column_letter(0)

    def test_cell_reference(self):
        from sheetsearch.ingestion.headers import cell_reference

        assert cell_reference(2, 3) == "C2"
