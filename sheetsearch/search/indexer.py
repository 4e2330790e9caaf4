"""
SheetSearch Index Store

In-memory id → IndexedDocument mapping. Ingestion builds the embedding
text for every document, asks the embedding and label providers for an
embedding and a label set, and upserts the enriched document.

Classes:
    IndexStore        — The store: ingest, ingest_ranges, get_stats, clear
    IngestionReport   — Outcome of one ingestion call
    IngestionFailure  — One skipped document and why

Rules:
    - Embeddings are requested in one batch per ingest call; if the batch
      fails, each document is retried alone
    - Provider failures are isolated per item: skip it, continue the batch,
      report it in IngestionReport.failures
    - Upserts are last-write-wins; no locking, no batch atomicity
    - Never log embedding vectors, only metadata
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

import structlog

from sheetsearch.errors import ProviderError
from sheetsearch.ingestion.builder import (
    SheetDocuments,
    build_cell_embedding_text,
    build_range_embedding_text,
)
from sheetsearch.models import (
    Cell,
    Document,
    DocumentKind,
    IndexedDocument,
    LabelResult,
    Range,
)
from sheetsearch.search.embeddings import EmbeddingProvider
from sheetsearch.search.labels import LabelProvider

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IngestionFailure:
    document_id: str
    kind: DocumentKind
    error: str


@dataclass
class IngestionReport:
    indexed: int = 0
    failures: list[IngestionFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def merge(self, other: "IngestionReport") -> "IngestionReport":
        return IngestionReport(
            indexed=self.indexed + other.indexed,
            failures=self.failures + other.failures,
        )


class IndexStore:
    """
    Explicitly owned in-memory index of enriched cells and ranges.

    Callers create one store and pass it to the search service; there is
    no module-level instance. Documents are kept in insertion order.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        label_provider: LabelProvider,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.label_provider = label_provider
        self._documents: dict[str, IndexedDocument] = {}

    # ── Ingestion ──────────────────────────────────────────────────────────

    def ingest(self, cells: Sequence[Cell]) -> IngestionReport:
        """Embed, label and upsert cells."""
        return self._ingest(
            cells,
            kind=DocumentKind.CELL,
            build_text=build_cell_embedding_text,
            build_labels=self.label_provider.generate_labels,
        )

    def ingest_ranges(self, ranges: Sequence[Range]) -> IngestionReport:
        """Embed, label and upsert ranges."""
        return self._ingest(
            ranges,
            kind=DocumentKind.RANGE,
            build_text=build_range_embedding_text,
            build_labels=self.label_provider.generate_range_labels,
        )

    def ingest_sheet(self, sheet: SheetDocuments) -> IngestionReport:
        """Ingest the cells, then the ranges, of one built sheet."""
        return self.ingest(sheet.cells).merge(self.ingest_ranges(sheet.ranges))

    def _ingest(
        self,
        documents: Sequence[Document],
        kind: DocumentKind,
        build_text: Callable[[Document], str],
        build_labels: Callable[[Document], LabelResult],
    ) -> IngestionReport:
        start_time = time.time()
        report = IngestionReport()
        texts = [build_text(doc) for doc in documents]
        embeddings = self._embed_batch(texts, kind)

        for doc, text, embedding in zip(documents, texts, embeddings):
            try:
                if embedding is None:
                    embedding = self.embedding_provider.generate_embedding(text, kind.value)
                labels = build_labels(doc)
            except ProviderError as exc:
                logger.warning(
                    "index_document_failed",
                    document_id=doc.id,
                    kind=kind.value,
                    provider=exc.provider,
                    error=exc.message,
                )
                report.failures.append(
                    IngestionFailure(document_id=doc.id, kind=kind, error=exc.message)
                )
                continue

            self._documents[doc.id] = IndexedDocument(
                source=doc,
                embedding=list(embedding),
                labels=list(labels.labels),
                label_confidence=list(labels.confidence),
                label_method=labels.method,
                label_explanation=labels.explanation,
            )
            report.indexed += 1

        logger.info(
            "index_ingest_completed",
            kind=kind.value,
            submitted=len(documents),
            indexed=report.indexed,
            failed=report.failed,
            total_documents=len(self._documents),
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return report

    def _embed_batch(self, texts: list[str], kind: DocumentKind) -> list[Optional[list[float]]]:
        """One batched request; None per text when the batch fails."""
        if not texts:
            return []
        try:
            return list(self.embedding_provider.generate_embeddings(texts, kind.value))
        except ProviderError as exc:
            logger.warning(
                "index_batch_embedding_failed",
                kind=kind.value,
                text_count=len(texts),
                provider=exc.provider,
                error=exc.message,
            )
            return [None] * len(texts)

    # ── Reads ──────────────────────────────────────────────────────────────

    def get(self, doc_id: str) -> Optional[IndexedDocument]:
        return self._documents.get(doc_id)

    def documents(self, include_ranges: bool = True) -> list[IndexedDocument]:
        """Point-in-time snapshot of the indexed documents, in insertion order."""
        snapshot = list(self._documents.values())
        if include_ranges:
            return snapshot
        return [doc for doc in snapshot if doc.kind is DocumentKind.CELL]

    def get_stats(self) -> dict[str, int]:
        snapshot = list(self._documents.values())
        ranges = sum(1 for doc in snapshot if doc.kind is DocumentKind.RANGE)
        return {
            "total_documents": len(snapshot),
            "cells": len(snapshot) - ranges,
            "ranges": ranges,
        }

    def clear(self) -> None:
        """Drop every document. Irreversible."""
        dropped = len(self._documents)
        self._documents.clear()
        logger.info("index_cleared", dropped_documents=dropped)

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def __iter__(self) -> Iterator[IndexedDocument]:
        return iter(self.documents())
