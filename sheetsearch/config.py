"""
SheetSearch Configuration

Uses pydantic-settings to load configuration from environment variables and .env file.
Every variable is read with the SHEETSEARCH_ prefix, e.g. SHEETSEARCH_SEMANTIC_WEIGHT.
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or a .env file.
    Components take their configuration explicitly; these values are the
    defaults used by the composition root in main.py.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEETSEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # OpenAI (embeddings + label generation)
    # =========================================================================
    OPENAI_API_KEY: Optional[str] = None  # Labels fall back to heuristics if not set
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_BATCH_SIZE: int = 100
    LABEL_LLM_MODEL: str = "gpt-3.5-turbo"
    LABEL_LLM_TEMPERATURE: float = 0.3
    LABEL_LLM_MAX_TOKENS: int = 150
    LLM_TIMEOUT_SECONDS: int = 30

    # =========================================================================
    # Ranking
    # =========================================================================
    SEMANTIC_WEIGHT: float = 0.7
    CONCEPT_MATCH_WEIGHT: float = 0.15
    FORMULA_COMPLEXITY_WEIGHT: float = 0.1
    SHEET_IMPORTANCE_WEIGHT: float = 0.05
    SEARCH_DEFAULT_TOP_K: int = 10
    SEARCH_MAX_TOP_K: int = 100

    # =========================================================================
    # Document construction
    # =========================================================================
    HEADER_ROWS: int = 1
    CONTEXT_RADIUS: int = 2
    MAX_FORMULA_COMPLEXITY: float = 20.0

    # =========================================================================
    # Application
    # =========================================================================
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        return upper_v

    @field_validator("SEARCH_DEFAULT_TOP_K", "SEARCH_MAX_TOP_K", "EMBEDDING_BATCH_SIZE")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be at least 1, got {v}")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Export singleton instance for convenience
settings = get_settings()
