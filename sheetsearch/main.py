"""
SheetSearch Composition Root

Configures logging and wires the index store, providers and search service
from application settings. Nothing here is created at import time; callers
own the objects returned by build_search_service().
"""

import logging
import sys
from typing import Any, Optional

import structlog
from openai import OpenAI

from sheetsearch.config import Settings, get_settings
from sheetsearch.search.embeddings import EmbeddingProvider, OpenAIEmbeddingProvider
from sheetsearch.search.indexer import IndexStore
from sheetsearch.search.labels import (
    BasicLabeler,
    ChainedLabelProvider,
    HeuristicLabeler,
    LabelProvider,
    LLMLabeler,
)
from sheetsearch.search.scoring import RankingWeights
from sheetsearch.search.search import SearchService


# =============================================================================
# Structlog Configuration
# =============================================================================
def configure_logging(app_settings: Optional[Settings] = None) -> None:
    """
    Configure structlog for JSON logging with ISO timestamps.

    With DEBUG set, events are rendered for the console instead.

    All logs are output as JSON with consistent fields:
    - timestamp: ISO 8601 format
    - level: log level (info, warning, error, etc.)
    - event: log message
    - Additional context fields (document_id, query, etc.)
    """
    app_settings = app_settings or get_settings()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Human-readable output while debugging, JSON otherwise
    renderer = (
        structlog.dev.ConsoleRenderer()
        if app_settings.DEBUG
        else structlog.processors.JSONRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(app_settings.LOG_LEVEL.upper())

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# =============================================================================
# Service wiring
# =============================================================================
def build_openai_client(app_settings: Settings) -> Optional[OpenAI]:
    """Return an OpenAI client, or None when no API key is configured."""
    if not app_settings.OPENAI_API_KEY:
        return None
    return OpenAI(
        api_key=app_settings.OPENAI_API_KEY,
        timeout=app_settings.LLM_TIMEOUT_SECONDS,
    )


def build_search_service(
    app_settings: Optional[Settings] = None,
    embedding_provider: Optional[EmbeddingProvider] = None,
    label_provider: Optional[LabelProvider] = None,
) -> SearchService:
    """
    Build a SearchService over a fresh, empty IndexStore.

    Providers default to the OpenAI-backed embedding provider and the
    heuristic → LLM → basic label chain.

    Raises:
        ValueError: If no embedding provider is given and no OpenAI API key
                    is configured.
    """
    app_settings = app_settings or get_settings()
    client = build_openai_client(app_settings)

    if embedding_provider is None:
        if client is None:
            raise ValueError(
                "An embedding provider is required: set SHEETSEARCH_OPENAI_API_KEY "
                "or pass embedding_provider"
            )
        embedding_provider = OpenAIEmbeddingProvider(
            client,
            model=app_settings.EMBEDDING_MODEL,
            batch_size=app_settings.EMBEDDING_BATCH_SIZE,
            dimensions=app_settings.EMBEDDING_DIMENSIONS,
        )

    if label_provider is None:
        label_provider = ChainedLabelProvider(
            [
                HeuristicLabeler(),
                LLMLabeler(
                    client=client,
                    model=app_settings.LABEL_LLM_MODEL,
                    temperature=app_settings.LABEL_LLM_TEMPERATURE,
                    max_tokens=app_settings.LABEL_LLM_MAX_TOKENS,
                ),
                BasicLabeler(),
            ]
        )

    store = IndexStore(embedding_provider, label_provider)
    service = SearchService(
        store,
        embedding_provider,
        weights=RankingWeights.from_settings(app_settings),
        default_top_k=app_settings.SEARCH_DEFAULT_TOP_K,
        max_top_k=app_settings.SEARCH_MAX_TOP_K,
        max_complexity=app_settings.MAX_FORMULA_COMPLEXITY,
    )

    structlog.get_logger(__name__).info(
        "search_service_built",
        embedding_provider=type(embedding_provider).__name__,
        label_provider=type(label_provider).__name__,
        llm_labels_enabled=client is not None,
    )
    return service
