"""Ingest pipeline: fetch → normalize → chunk → embed → store.

Sources are processed in input order. A failure while handling one source
(fetch, embedding or storage) is recorded in that source's report and the
remaining sources still run. Only request validation and the collection
upsert can fail the whole request.

Re-ingesting a URL replaces its document and chunks in one transaction;
chunk counts never accumulate.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

from groundwork.config import GroundworkConfig
from groundwork.db.models import Document
from groundwork.db.repository import Repository
from groundwork.errors import GroundworkError, StorageError, ValidationError
from groundwork.ingest.base import estimate_tokens, model_token_estimator
from groundwork.ingest.embedding_writer import EmbeddingConfig, EmbeddingWriter
from groundwork.ingest.paragraph import ParagraphChunker
from groundwork.ingest.sources import checksum, extract_title, load_source
from groundwork.ingest.web import WebFetcher
from groundwork.rag.llm_client import Embedder

logger = logging.getLogger(__name__)


@dataclass
class IngestRequest:
    collection: str
    sources: list[str] = field(default_factory=list)


@dataclass
class SourceReport:
    """Per-source outcome of an ingest run.

    Attributes:
        source: The source as given in the request.
        raw_length: Characters in the fetched body before normalization.
        normalized_length: Characters after HTML → Markdown normalization.
        chunks: Chunks stored for this source (0 on failure or empty text).
        title: Extracted document title, if any.
        checksum: SHA-1 of the normalized text.
        replaced: True if a previous version of the document was replaced.
        error: Failure message when the source was skipped.
    """

    source: str
    raw_length: int = 0
    normalized_length: int = 0
    chunks: int = 0
    title: str | None = None
    checksum: str | None = None
    replaced: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IngestResponse:
    ok: bool
    indexed: int = 0
    reports: list[SourceReport] = field(default_factory=list)
    error: str | None = None
    status: int = 200

    def to_dict(self) -> dict:
        if not self.ok:
            return {"ok": False, "error": self.error, "status": self.status}
        return {
            "ok": True,
            "indexed": self.indexed,
            "reports": [r.to_dict() for r in self.reports],
        }


class IngestPipeline:
    """Ingest sources into a named collection.

    Args:
        repo:     Open Repository instance.
        config:   Merged configuration (chunker, embedding, language).
        fetcher:  Optional WebFetcher override.
        embedder: Optional embedding callable override (texts → vectors).
    """

    def __init__(
        self,
        repo: Repository,
        config: GroundworkConfig,
        fetcher: WebFetcher | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self._repo = repo
        self._config = config
        self._fetcher = fetcher or WebFetcher()
        self._writer = EmbeddingWriter(
            repo,
            EmbeddingConfig(
                model=config.embedding.model,
                batch_size=config.embedding.batch_size,
            ),
            embedder=embedder,
        )
        estimator = (
            model_token_estimator(config.embedding.model)
            if config.chunker.tokenizer == "model"
            else estimate_tokens
        )
        self._chunker = ParagraphChunker(
            target_tokens=config.chunker.target_tokens,
            overlap_lines=config.chunker.overlap_lines,
            estimator=estimator,
        )

    def run(
        self,
        request: IngestRequest,
        on_source: Callable[[SourceReport], None] | None = None,
    ) -> IngestResponse:
        """Ingest every source of *request*.

        Args:
            request:   Collection name and sources (URLs or local files).
            on_source: Called with each SourceReport as soon as it is final.
        """
        try:
            collection, sources = self._validate(request)
            try:
                collection_id = self._repo.upsert_collection(collection)
            except sqlite3.Error as exc:
                raise StorageError(f"Could not create collection '{collection}': {exc}") from exc
        except GroundworkError as exc:
            logger.warning("Ingest request rejected: %s", exc)
            return IngestResponse(ok=False, error=str(exc), status=exc.status)

        reports: list[SourceReport] = []
        for source in sources:
            report = self._ingest_source(source, collection_id)
            reports.append(report)
            if on_source is not None:
                on_source(report)

        indexed = sum(r.chunks for r in reports)
        logger.info(
            "Ingested %d source(s) into '%s': %d chunks", len(sources), collection, indexed
        )
        return IngestResponse(ok=True, indexed=indexed, reports=reports)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(request: IngestRequest) -> tuple[str, list[str]]:
        collection = (request.collection or "").strip()
        if not collection:
            raise ValidationError("A collection name is required.")
        sources = [s.strip() for s in request.sources or [] if s and s.strip()]
        if not sources:
            raise ValidationError("At least one source is required.")
        return collection, sources

    def _ingest_source(self, source: str, collection_id: int) -> SourceReport:
        report = SourceReport(source=source)
        try:
            logger.debug("Loading %s", source)
            page = load_source(source, self._fetcher)
            report.raw_length = len(page.raw)
            report.normalized_length = len(page.text)
            report.title = extract_title(page.text)
            report.checksum = checksum(page.text)

            existing = self._repo.get_document_by_url(collection_id, page.url)
            document = Document(
                id=existing.id if existing else str(uuid.uuid4()),
                collection_id=collection_id,
                source_url=page.url,
                content=page.text,
                checksum=report.checksum,
                title=report.title,
                lang=self._config.language,
            )
            chunks = self._chunker.chunk(document.id, page.text)
            if not chunks:
                logger.info("No text to index for %s; skipped", source)
                return report

            self._writer.write(document, chunks)
            report.chunks = len(chunks)
            report.replaced = existing is not None
        except sqlite3.Error as exc:
            report.error = f"Storage failed for '{source}': {exc}"
            logger.warning("Ingest failed for %s: %s", source, report.error)
        except GroundworkError as exc:
            report.error = str(exc)
            logger.warning("Ingest failed for %s: %s", source, exc)
        except Exception as exc:
            # Anything else still only fails this source
            report.error = f"Unexpected error for '{source}': {exc!r}"
            logger.exception("Ingest failed unexpectedly for %s", source)
        return report
