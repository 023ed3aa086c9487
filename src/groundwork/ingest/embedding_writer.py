"""Embedding writer: embed a document's chunks and swap them into the store.

All vectors for a document are requested before anything is written; the
document row, the deletion of its previous chunks and the insertion of the
new chunks + embeddings then happen in a single transaction
(Repository.replace_document). A failed embedding call therefore leaves the
previously stored version untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from groundwork.db.models import Chunk, Document
from groundwork.db.repository import Repository
from groundwork.db.vectors import ensure_vec_table, model_to_slug
from groundwork.errors import GeneratorUnavailableError
from groundwork.rag.llm_client import Embedder, make_embedder

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    batch_size: int = 64


class EmbeddingWriter:
    """Embed chunks and persist them together with their document.

    Args:
        repo:     Open Repository instance.
        config:   Embedding configuration (model, batch size).
        embedder: Optional override for the embedding call (texts → vectors).
    """

    def __init__(
        self,
        repo: Repository,
        config: EmbeddingConfig | None = None,
        embedder: Embedder | None = None,
    ) -> None:
        self._repo = repo
        self._config = config or EmbeddingConfig()
        self._embed = embedder or make_embedder(self._config.model, self._config.batch_size)

    @property
    def vec_table_slug(self) -> str:
        return model_to_slug(self._config.model)

    def write(self, document: Document, chunks: list[Chunk]) -> str:
        """Embed *chunks* and replace the stored version of *document*.

        Returns:
            The stored document id.

        Raises:
            GeneratorUnavailableError: If embedding fails or returns a vector
                count that does not match the chunk count.
        """
        if not chunks:
            raise ValueError("EmbeddingWriter.write() needs at least one chunk")

        vectors = self._embed([c.text for c in chunks])
        if len(vectors) != len(chunks):
            raise GeneratorUnavailableError(
                f"Embedding returned {len(vectors)} vectors for {len(chunks)} chunks."
            )
        if not vectors[0]:
            raise GeneratorUnavailableError("Embedding returned an empty vector.")

        vec_table = ensure_vec_table(
            self._repo.connection, self.vec_table_slug, len(vectors[0])
        )
        doc_id = self._repo.replace_document(document, chunks, vec_table, vectors)
        logger.info(
            "Stored %d chunks for %s (document %s)", len(chunks), document.source_url, doc_id
        )
        return doc_id
