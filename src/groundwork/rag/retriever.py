"""Dense retriever: embed the question, run collection-scoped KNN on sqlite-vec.

Similarity contract:
  similarity = 1 - cosine_distance, clamped to [0, 1]
Results are ranked by descending similarity (ascending distance).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from groundwork.db.repository import Repository
from groundwork.db.vectors import model_to_slug, vec_table_exists, vec_table_name
from groundwork.rag.llm_client import Embedder, make_embedder

logger = logging.getLogger(__name__)


@dataclass
class RetrieverConfig:
    """Configuration for the dense retriever.

    Attributes:
        embedding_model: LiteLLM embedding model string (provider/model format).
            Must match the model used at ingest time.
        top_k: Maximum number of chunks to return.
    """

    embedding_model: str = "openai/text-embedding-3-small"
    top_k: int = 8


@dataclass
class Evidence:
    """A retrieved chunk with its document's title/URL and similarity score.

    Attributes:
        text: The chunk text.
        source_url: URL (or path) of the owning document.
        similarity: Relevance in [0, 1]; higher is more similar.
        title: Document title, if one was extracted.
        document_id: Owning document id.
        position: Chunk position within the document.
    """

    text: str
    source_url: str
    similarity: float
    title: str | None = None
    document_id: str | None = None
    position: int | None = None

    @property
    def label(self) -> str:
        return self.title or self.source_url


def distance_to_similarity(distance: float) -> float:
    """Map a cosine distance (0..2) onto the [0, 1] similarity contract."""
    return max(0.0, min(1.0, 1.0 - distance))


def retrieve(
    question: str,
    repo: Repository,
    collection_id: int,
    config: RetrieverConfig,
    embedder: Embedder | None = None,
) -> list[Evidence]:
    """Embed *question* and return the top-k evidence of a collection, best-first.

    Returns an empty list when nothing has been embedded with the configured
    model yet.
    """
    vec_table = vec_table_name(model_to_slug(config.embedding_model))
    if not vec_table_exists(repo.connection, vec_table):
        logger.warning(
            "No embeddings stored for model '%s'; retrieval returns nothing.",
            config.embedding_model,
        )
        return []

    embed = embedder or make_embedder(config.embedding_model)
    query_vector = embed([question])[0]
    return search(repo, vec_table, query_vector, collection_id, config.top_k)


def search(
    repo: Repository,
    vec_table: str,
    query_vector: list[float],
    collection_id: int,
    k: int,
) -> list[Evidence]:
    """Run the store's top-k query and convert rows into ranked Evidence."""
    rows = repo.search_similar(vec_table, query_vector, k, collection_id)
    evidence = [
        Evidence(
            text=chunk.text,
            source_url=document.source_url,
            similarity=distance_to_similarity(distance),
            title=document.title,
            document_id=document.id,
            position=chunk.position,
        )
        for chunk, document, distance in rows
    ]
    # Stable sort keeps store order for equal similarities.
    evidence.sort(key=lambda e: e.similarity, reverse=True)
    return evidence
