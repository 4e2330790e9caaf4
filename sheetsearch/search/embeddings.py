"""
SheetSearch Embedding Generation

Embedding provider contract, the OpenAI-backed provider, and vector
similarity helpers. This is the only module that calls the OpenAI
embedding API.

Functions / classes:
    EmbeddingProvider        — Protocol every embedding backend satisfies
    OpenAIEmbeddingProvider  — Batched OpenAI embeddings with an in-process memo
    embed_texts              — Batch-embed a list of texts via the OpenAI API
    cosine_similarity        — Cosine similarity of two equal-length vectors

Rules:
    - Never log embedding vectors, only metadata
    - Always batch; never embed texts one at a time in a loop
    - Backend failures surface as ProviderError
    - Comparing vectors of different lengths raises DimensionMismatchError
"""

import hashlib
import time
from typing import Optional, Protocol, Sequence

import numpy as np
import structlog

from sheetsearch.config import settings
from sheetsearch.errors import DimensionMismatchError, ProviderError

logger = structlog.get_logger(__name__)

class EmbeddingProvider(Protocol):
    """Contract for embedding backends. Vectors share one dimensionality."""

    def generate_embedding(self, text: str, kind: str = "cell") -> list[float]:
        ...

    def generate_embeddings(self, texts: list[str], kind: str = "cell") -> list[list[float]]:
        ...


def embed_texts(
    texts: list[str],
    client,
    model: Optional[str] = None,
    batch_size: Optional[int] = None,
) -> list[list[float]]:
    """
    Embed a list of texts using the OpenAI embedding API with batching.

    Splits texts into batches of ``batch_size`` and makes one API call per
    batch. Returns embedding vectors in the same order as the input texts.

    Args:
        texts: List of strings to embed.
        client: An openai.OpenAI client instance.
        model: Embedding model name. Defaults to settings.EMBEDDING_MODEL.
        batch_size: Texts per request. Defaults to settings.EMBEDDING_BATCH_SIZE.

    Returns:
        List of embedding vectors, same length and order as input texts.

    Raises:
        openai.OpenAIError and subclasses on API failure.
    """
    if not texts:
        return []

    model = model or settings.EMBEDDING_MODEL
    batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
    all_embeddings: list[list[float]] = []
    total_tokens = 0
    start_time = time.time()

    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]

        response = client.embeddings.create(
            input=batch,
            model=model,
            encoding_format="float",
        )

        # API returns items with an index; keep input order regardless
        items = sorted(response.data, key=lambda item: item.index)
        all_embeddings.extend(list(item.embedding) for item in items)

        if getattr(response, "usage", None):
            total_tokens += response.usage.total_tokens

    elapsed = time.time() - start_time

    # Metadata only, never the vectors
    logger.info(
        "embeddings_generated",
        text_count=len(texts),
        batch_count=(len(texts) + batch_size - 1) // batch_size,
        total_tokens=total_tokens,
        elapsed_seconds=round(elapsed, 3),
    )

    return all_embeddings


class OpenAIEmbeddingProvider:
    """
    Embedding provider backed by the OpenAI embeddings endpoint.

    Vectors are memoized per (kind, md5(text)) for the life of the provider.
    Every returned vector is checked against the configured dimensionality.
    """

    name = "openai-embeddings"

    def __init__(
        self,
        client,
        model: Optional[str] = None,
        batch_size: Optional[int] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        self.client = client
        self.model = model or settings.EMBEDDING_MODEL
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self._memo: dict[str, list[float]] = {}

    @staticmethod
    def _memo_key(text: str, kind: str) -> str:
        digest = hashlib.md5(text.encode("utf-8")).hexdigest()
        return f"embedding:{kind}:{digest}"

    def generate_embedding(self, text: str, kind: str = "cell") -> list[float]:
        """Embed a single text. Used at query time and for one-off documents."""
        return self.generate_embeddings([text], kind)[0]

    def generate_embeddings(self, texts: list[str], kind: str = "cell") -> list[list[float]]:
        """
        Embed many texts, calling the API only for texts not seen before.

        Raises:
            ProviderError: On any backend failure or a vector of the wrong size.
        """
        results: list[Optional[list[float]]] = [None] * len(texts)
        pending_texts: list[str] = []
        pending_indices: list[int] = []

        for i, text in enumerate(texts):
            cached = self._memo.get(self._memo_key(text, kind))
            if cached is not None:
                results[i] = cached
            else:
                pending_texts.append(text)
                pending_indices.append(i)

        if pending_texts:
            try:
                vectors = embed_texts(
                    pending_texts, self.client, model=self.model, batch_size=self.batch_size
                )
            except Exception as exc:
                logger.error(
                    "embedding_request_failed",
                    kind=kind,
                    text_count=len(pending_texts),
                    error=str(exc),
                )
                raise ProviderError(
                    f"Embedding request failed: {exc}", provider=self.name
                ) from exc

            if len(vectors) != len(pending_texts):
                raise ProviderError(
                    f"Expected {len(pending_texts)} embeddings, got {len(vectors)}",
                    provider=self.name,
                )

            for index, text, vector in zip(pending_indices, pending_texts, vectors):
                if len(vector) != self.dimensions:
                    raise ProviderError(
                        f"Embedding has {len(vector)} dimensions, expected {self.dimensions}",
                        provider=self.name,
                    )
                self._memo[self._memo_key(text, kind)] = vector
                results[index] = vector

        return results  # type: ignore[return-value]


# ── Similarity ─────────────────────────────────────────────────────────────


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))

