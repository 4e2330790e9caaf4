"""
Tests for the composition root.

Tests:
    1. build_search_service needs an embedding provider or an API key
    2. Injected providers and settings are wired through
    3. Without an API key the LLM label step stays disabled
    4. With an API key the OpenAI-backed providers are built
    5. configure_logging installs a single JSON handler
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from conftest import FakeEmbeddingProvider, make_cell


def _settings(**overrides):
    from sheetsearch.config import Settings

    return Settings(_env_file=None, OPENAI_API_KEY=None, **overrides)


class TestBuildSearchService:
    def test_requires_provider_or_key(self):
        from sheetsearch.main import build_search_service

        with pytest.raises(ValueError):
            build_search_service(_settings())

    def test_injected_provider_and_settings(self):
        from sheetsearch.main import build_search_service

        provider = FakeEmbeddingProvider()
        service = build_search_service(
            _settings(SEMANTIC_WEIGHT=0.6, SEARCH_MAX_TOP_K=20),
            embedding_provider=provider,
        )

        assert service.embedding_provider is provider
        assert service.store.embedding_provider is provider
        assert service.weights.semantic == 0.6
        assert service.max_top_k == 20
        assert len(service.store) == 0

    def test_llm_step_disabled_without_key(self):
        from sheetsearch.main import build_search_service

        service = build_search_service(_settings(), embedding_provider=FakeEmbeddingProvider())
        strategies = service.store.label_provider.strategies

        assert [s.name for s in strategies] == ["heuristic", "llm", "basic"]
        assert strategies[1].client is None

    def test_end_to_end_with_fakes(self):
        from sheetsearch.main import build_search_service

        service = build_search_service(_settings(), embedding_provider=FakeEmbeddingProvider())
        service.store.ingest([make_cell(100, column="Revenue"), make_cell(7, row=3, column="Code")])

        results = service.search("revenue")

        assert results[0].concept == "revenue"
        assert service.store.get(results[1].id).label_method == "basic"

    @patch("sheetsearch.main.OpenAI")
    def test_openai_providers_with_key(self, mock_openai):
        from sheetsearch.main import build_search_service
        from sheetsearch.search.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        mock_openai.return_value = client
        app_settings = _settings(EMBEDDING_DIMENSIONS=256, LLM_TIMEOUT_SECONDS=5)
        app_settings.OPENAI_API_KEY = "sk-test"

        service = build_search_service(app_settings)

        mock_openai.assert_called_once_with(api_key="sk-test", timeout=5)
        assert isinstance(service.embedding_provider, OpenAIEmbeddingProvider)
        assert service.embedding_provider.dimensions == 256
        assert service.store.label_provider.strategies[1].client is client


class TestConfigureLogging:
    def test_single_json_handler(self):
        from sheetsearch.main import configure_logging

        root_logger = logging.getLogger()
        saved_handlers, saved_level = root_logger.handlers[:], root_logger.level
        try:
            configure_logging(_settings(LOG_LEVEL="warning"))

            assert len(root_logger.handlers) == 1
            assert isinstance(root_logger.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
            assert root_logger.level == logging.WARNING
        finally:
            root_logger.handlers = saved_handlers
            root_logger.setLevel(saved_level)
            structlog.reset_defaults()
