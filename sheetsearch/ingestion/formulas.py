"""
SheetSearch Formula Analyzer

Parses Excel / Google Sheets formulas with openpyxl's formula tokenizer and
extracts functions, references and operators, a structural complexity score
and a coarse formula type.

Functions:
    analyze_formula   — Full analysis of a formula string (None for non-formulas)
    describe_formula  — Human-readable one-line description of an analysis
    leading_function  — Name of the function a formula starts with

Rules:
    - Parse failures never raise; they degrade to complexity 0, type "other"
    - Complexity: +2 per function, +1 per operator, +0.5 per reference
    - Function and operator lists are deduplicated in first-seen order
"""

import re
from typing import Optional

import structlog
from openpyxl.formula.tokenizer import Token, Tokenizer, TokenizerError

from sheetsearch.errors import FormulaParseError
from sheetsearch.models import FormulaReference, ParsedFormula

logger = structlog.get_logger(__name__)

FUNCTION_WEIGHT = 2.0
OPERATOR_WEIGHT = 1.0
REFERENCE_WEIGHT = 0.5

AGGREGATION_FUNCTIONS = {"SUM", "AVERAGE", "COUNT", "MAX", "MIN"}
CONDITIONAL_FUNCTIONS = {"IF", "IFS", "IFERROR", "IFNA", "SWITCH"}
LOOKUP_FUNCTIONS = {"VLOOKUP", "HLOOKUP", "INDEX", "MATCH", "XLOOKUP"}
FINANCIAL_FUNCTIONS = {"RATE", "CAGR", "PMT", "FV", "PV"}

# Prefixes Excel writes in front of newer functions, e.g. _xlfn.XLOOKUP
_FUNCTION_PREFIXES = ("_XLFN._XLWS.", "_XLFN.", "_XLWS.")
_LEADING_FUNCTION_RE = re.compile(r"^=\s*([A-Za-z_][A-Za-z0-9_.]*)\s*\(")

_OPERATOR_TYPES = (Token.OP_PRE, Token.OP_IN, Token.OP_POST)

_CELL = r"\$?[A-Za-z]{1,3}\$?\d+"
_CELL_RE = re.compile(rf"^{_CELL}$")
_RANGE_RE = re.compile(
    rf"^(?:{_CELL}:{_CELL}|\$?[A-Za-z]{{1,3}}:\$?[A-Za-z]{{1,3}}|\$?\d+:\$?\d+)$"
)


# ── Tokenization ───────────────────────────────────────────────────────────


def _tokenize(formula: str) -> list[Token]:
    """
    Tokenize a formula, raising FormulaParseError on malformed input.

    openpyxl accepts unbalanced opening brackets silently, so the balance
    of OPEN/CLOSE tokens is checked here as well.
    """
    try:
        tokens = Tokenizer(formula).items
    except (TokenizerError, IndexError, AssertionError) as exc:
        raise FormulaParseError(str(exc) or "Malformed formula", formula) from exc

    depth = 0
    for token in tokens:
        if token.subtype == Token.OPEN:
            depth += 1
        elif token.subtype == Token.CLOSE:
            depth -= 1
            if depth < 0:
                raise FormulaParseError("Unexpected closing bracket", formula)
    if depth != 0:
        raise FormulaParseError("Unbalanced brackets", formula)

    return tokens


def _function_name(token_value: str) -> str:
    name = token_value.rstrip("(").upper()
    for prefix in _FUNCTION_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def leading_function(formula: Optional[str]) -> Optional[str]:
    """Function a formula starts with, e.g. "XLOOKUP" for "=_xlfn.XLOOKUP(...)"."""
    match = _LEADING_FUNCTION_RE.match(formula or "")
    return _function_name(match.group(1)) if match else None


def _parse_reference(operand: str) -> Optional[FormulaReference]:
    """Classify a RANGE operand as a cell or range reference (A1 notation only)."""
    sheet = None
    ref = operand
    if "!" in operand:
        sheet_part, ref = operand.rsplit("!", 1)
        sheet = sheet_part.strip("'").replace("''", "'") or None

    if _CELL_RE.match(ref):
        kind = "cell"
    elif _RANGE_RE.match(ref):
        kind = "range"
    else:
        # Named ranges, structured table references, etc.
        return None

    return FormulaReference(kind=kind, ref=ref, sheet=sheet, absolute="$" in ref)


# ── Classification ─────────────────────────────────────────────────────────


def classify_formula(functions: list[str], operators: list[str]) -> str:
    """
    Classify a formula by the first matching rule, in priority order:
    aggregation, conditional, lookup, percentage, calculation, financial.
    """
    names = set(functions)

    if names & AGGREGATION_FUNCTIONS:
        return "aggregation"
    if names & CONDITIONAL_FUNCTIONS:
        return "conditional"
    if names & LOOKUP_FUNCTIONS:
        return "lookup"
    if not functions:
        if "/" in operators:
            return "percentage"
        if "*" in operators or "+" in operators or "-" in operators:
            return "calculation"
    if names & FINANCIAL_FUNCTIONS:
        return "financial"
    return "other"


# ── Public API ─────────────────────────────────────────────────────────────


def analyze_formula(formula: Optional[str]) -> Optional[ParsedFormula]:
    """
    Analyze a formula string.

    Args:
        formula: Formula text including the leading "=".

    Returns:
        A ParsedFormula, or None when the input is not a formula. When the
        formula cannot be tokenized the result carries ``error`` with empty
        component lists, complexity 0 and type "other".
    """
    if not formula or not isinstance(formula, str) or not formula.startswith("="):
        return None

    try:
        tokens = _tokenize(formula)
    except FormulaParseError as exc:
        logger.debug("formula_parse_failed", formula=formula[:100], error=exc.message)
        return ParsedFormula(original=formula, error=exc.message)

    functions: list[str] = []
    operators: list[str] = []
    references: list[FormulaReference] = []
    complexity = 0.0

    for token in tokens:
        if token.type == Token.FUNC and token.subtype == Token.OPEN:
            name = _function_name(token.value)
            complexity += FUNCTION_WEIGHT
            if name not in functions:
                functions.append(name)
        elif token.type in _OPERATOR_TYPES:
            complexity += OPERATOR_WEIGHT
            if token.value not in operators:
                operators.append(token.value)
        elif token.type == Token.OPERAND and token.subtype == Token.RANGE:
            reference = _parse_reference(token.value)
            if reference is not None:
                complexity += REFERENCE_WEIGHT
                references.append(reference)

    return ParsedFormula(
        original=formula,
        functions=functions,
        references=references,
        operators=operators,
        complexity=complexity,
        type=classify_formula(functions, operators),
    )


def describe_formula(parsed: Optional[ParsedFormula]) -> str:
    """Human-readable description, e.g. "Uses SUM function (aggregation) (simple)"."""
    if parsed is None or parsed.failed:
        return "Invalid formula"

    description = ""
    if parsed.functions:
        plural = "s" if len(parsed.functions) > 1 else ""
        description += f"Uses {', '.join(parsed.functions)} function{plural}"

    type_suffixes = {
        "percentage": " (percentage calculation)",
        "aggregation": " (aggregation)",
        "lookup": " (lookup)",
        "conditional": " (conditional logic)",
        "financial": " (financial calculation)",
    }
    description += type_suffixes.get(parsed.type, "")

    if parsed.complexity > 5:
        description += " (complex)"
    elif parsed.complexity < 2:
        description += " (simple)"

    return description.strip()
