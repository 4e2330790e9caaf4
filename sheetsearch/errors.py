"""
SheetSearch Error Taxonomy

Exception Hierarchy:
    SheetSearchError (base)
    ├── ValidationError        — bad query / search options (also a ValueError)
    ├── DimensionMismatchError — embedding lengths differ at comparison time
    ├── ProviderError          — embedding or label backend failure
    └── FormulaParseError      — formula tokenization failure (never escapes
                                 the formula analyzer)

Rules:
    - Provider failures during ingestion are isolated per item by the indexer
    - Search-time errors propagate and abort the whole search call
"""

from typing import Any, Optional


class SheetSearchError(Exception):
    """Base exception for all SheetSearch errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for structured logs and callers."""
        result: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(SheetSearchError, ValueError):
    """Raised for an empty or non-string query or out-of-range search options."""


class DimensionMismatchError(SheetSearchError, ValueError):
    """Raised when two embeddings of different lengths are compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(
            f"Vectors must have the same length ({left} != {right})",
            details={"left_dimensions": left, "right_dimensions": right},
        )
        self.left = left
        self.right = right


class ProviderError(SheetSearchError):
    """Raised when an embedding or label provider fails."""

    def __init__(
        self,
        message: str,
        provider: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        details["provider"] = provider
        super().__init__(message, details)
        self.provider = provider


class FormulaParseError(SheetSearchError):
    """Raised when a formula string cannot be tokenized."""

    def __init__(self, message: str, formula: str) -> None:
        super().__init__(message, details={"formula": formula})
        self.formula = formula
