"""
SheetSearch Document Construction

Turns raw sheet grids (values already extracted from the workbook by the
caller) into structured Cell and Range documents.

Modules:
    formulas  — Formula tokenization, complexity scoring, type classification
    headers   — Header detection and nearby-cell context for a grid position
    concepts  — Heuristic business-concept tagging
    builder   — Embedding text synthesis and Cell/Range assembly
"""
