"""
SheetSearch Label Generation

Business-concept labels for cells and ranges, produced by a chain of
strategies tried in a fixed, injected order:

    HeuristicLabeler  — Concept Detector tags, confidence 0.8
    LLMLabeler        — OpenAI chat classification, only when heuristics find nothing
    BasicLabeler      — six fixed patterns, confidence 0.5, never empty

Rules:
    - A strategy returns None to pass to the next one
    - A ProviderError from a non-final strategy is logged and the chain moves on
    - Ranges are labelled through a synthetic cell built from the range
"""

import json
from typing import Optional, Protocol

import structlog

from sheetsearch.config import settings
from sheetsearch.errors import ProviderError
from sheetsearch.ingestion.concepts import concept_text, detect_business_concepts
from sheetsearch.ingestion.formulas import describe_formula
from sheetsearch.models import Cell, CellHeaders, LabelResult, Range

logger = structlog.get_logger(__name__)

HEURISTIC_CONFIDENCE = 0.8
BASIC_CONFIDENCE = 0.5

# Marker formula given to synthetic cells of ranges that contain formulas
RANGE_FORMULA_MARKER = "formula_range"

_LABEL_EXPLANATIONS: list[tuple[str, str]] = [
    ("revenue", "contains revenue-related terms"),
    ("cost", "contains cost-related terms"),
    ("profitability", "contains profitability indicators"),
    ("percentage", "contains percentage calculations"),
    ("formula", "contains formula"),
    ("budget", "contains budget-related terms"),
]

# None patterns: label applies whenever the cell has a formula
_BASIC_PATTERNS: list[tuple[str, Optional[tuple[str, ...]]]] = [
    ("revenue", ("revenue", "sales")),
    ("cost", ("cost", "expense")),
    ("profitability", ("profit", "margin")),
    ("percentage", ("%", "percent")),
    ("formula", None),
    ("budget", ("budget", "actual")),
]

_SYSTEM_PROMPT = (
    "You are a business analyst expert. Classify spreadsheet cells into "
    "business concepts. Return only valid JSON."
)


def explain_labels(labels: list[str]) -> str:
    """Join the fixed explanation phrases for known labels."""
    phrases = [phrase for label, phrase in _LABEL_EXPLANATIONS if label in labels]
    return ", ".join(phrases) or "general data"


def range_as_cell(range_doc: Range) -> Cell:
    """Build the synthetic cell used to label a range."""
    first = range_doc.cells[0]
    return Cell(
        id=range_doc.id,
        spreadsheet_id=range_doc.spreadsheet_id or first.spreadsheet_id,
        sheet_name=range_doc.sheet_name,
        row=range_doc.start_row,
        col=range_doc.start_column,
        cell_ref=first.cell_ref,
        raw_value=None,
        formatted_value=", ".join(range_doc.sample_values),
        formula=RANGE_FORMULA_MARKER if range_doc.has_formulas else None,
        headers=CellHeaders(column=range_doc.header),
    )


# ── Strategies ─────────────────────────────────────────────────────────────


class LabelStrategy(Protocol):
    name: str

    def label(self, cell: Cell) -> Optional[LabelResult]:
        ...


class HeuristicLabeler:
    """Labels from the Concept Detector; passes when it finds nothing."""

    name = "heuristic"

    def label(self, cell: Cell) -> Optional[LabelResult]:
        concepts = detect_business_concepts(cell)
        if not concepts:
            return None
        return LabelResult(
            labels=concepts,
            confidence=[HEURISTIC_CONFIDENCE] * len(concepts),
            method="heuristic",
            explanation=explain_labels(concepts),
        )


class BasicLabeler:
    """Last-resort labels from six fixed patterns. Never returns None."""

    name = "basic"

    def label(self, cell: Cell) -> Optional[LabelResult]:
        text = concept_text(cell)
        labels = []
        for label, patterns in _BASIC_PATTERNS:
            if patterns is None:
                matched = bool(cell.formula)
            else:
                matched = any(pattern in text for pattern in patterns)
            if matched:
                labels.append(label)

        if not labels:
            labels = ["data"]

        return LabelResult(
            labels=labels,
            confidence=[BASIC_CONFIDENCE] * len(labels),
            method="basic",
            explanation=explain_labels(labels),
        )


class LLMLabeler:
    """
    Labels from an OpenAI chat model.

    Returns None when no client is configured. Results are memoized by
    document id for the life of the labeler.
    """

    name = "llm"

    def __init__(
        self,
        client=None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        self.client = client
        self.model = model or settings.LABEL_LLM_MODEL
        self.temperature = (
            settings.LABEL_LLM_TEMPERATURE if temperature is None else temperature
        )
        self.max_tokens = max_tokens or settings.LABEL_LLM_MAX_TOKENS
        self._memo: dict[str, LabelResult] = {}

    @staticmethod
    def build_prompt(cell: Cell) -> str:
        """Build the classification prompt for one cell."""
        lines = [
            "Classify the following spreadsheet item into 1-3 business concept labels. "
            'Return JSON: {"labels": [...], "confidence": [...], "short_explanation": "..."}.',
            "",
            "Item:",
            f"- Sheet: {cell.sheet_name}",
        ]
        if cell.headers.column:
            lines.append(f"- Column Header: {cell.headers.column}")
        if cell.headers.row:
            lines.append(f"- Row Header: {cell.headers.row}")
        if cell.formula:
            lines.append(f"- Formula: {cell.formula}")
            if cell.parsed_formula is not None:
                lines.append(f"- Formula Summary: {describe_formula(cell.parsed_formula)}")
        if cell.formatted_value:
            lines.append(f"- Value: {cell.formatted_value}")
        if cell.headers.context:
            context_values = ", ".join(entry.value for entry in cell.headers.context[:3])
            lines.append(f"- Context: {context_values}")
        lines.append("")
        lines.append("Return only JSON.")
        return "\n".join(lines)

    @staticmethod
    def _parse_response(content: str) -> LabelResult:
        payload = json.loads(content)
        labels = [str(label).strip().lower() for label in payload.get("labels", []) if str(label).strip()]
        if not labels:
            raise ValueError("LLM response contained no labels")
        labels = labels[:3]

        raw_confidence = payload.get("confidence", [])
        if isinstance(raw_confidence, (int, float)):
            raw_confidence = [raw_confidence] * len(labels)
        confidence = [float(value) for value in raw_confidence][: len(labels)]
        confidence += [BASIC_CONFIDENCE] * (len(labels) - len(confidence))

        return LabelResult(
            labels=labels,
            confidence=confidence,
            method="llm",
            explanation=str(payload.get("short_explanation") or explain_labels(labels)),
        )

    def label(self, cell: Cell) -> Optional[LabelResult]:
        if self.client is None:
            return None

        cached = self._memo.get(cell.id)
        if cached is not None:
            return cached

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_prompt(cell)},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            result = self._parse_response(response.choices[0].message.content or "")
        except Exception as exc:
            raise ProviderError(f"LLM labeling failed: {exc}", provider=self.name) from exc

        self._memo[cell.id] = result
        return result


# ── Provider ───────────────────────────────────────────────────────────────


class LabelProvider(Protocol):
    """Contract for label backends."""

    def generate_labels(self, cell: Cell) -> LabelResult:
        ...

    def generate_range_labels(self, range_doc: Range) -> LabelResult:
        ...


class ChainedLabelProvider:
    """
    Label provider that tries its strategies in order.

    The first strategy returning a result wins. The final strategy is
    expected to always produce a result; if every strategy passes, a
    ProviderError is raised.
    """

    def __init__(self, strategies: list[LabelStrategy]) -> None:
        if not strategies:
            raise ValueError("ChainedLabelProvider needs at least one strategy")
        self.strategies = list(strategies)

    def generate_labels(self, cell: Cell) -> LabelResult:
        last_index = len(self.strategies) - 1
        for index, strategy in enumerate(self.strategies):
            try:
                result = strategy.label(cell)
            except ProviderError as exc:
                if index == last_index:
                    raise
                logger.warning(
                    "label_strategy_failed",
                    strategy=strategy.name,
                    document_id=cell.id,
                    error=exc.message,
                )
                continue
            if result is not None:
                return result

        raise ProviderError(
            f"No label strategy produced labels for '{cell.id}'",
            provider="label-chain",
        )

    def generate_range_labels(self, range_doc: Range) -> LabelResult:
        return self.generate_labels(range_as_cell(range_doc))

