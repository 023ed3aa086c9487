"""groundwork ingest pipeline: source loading, chunking, embedding writer."""

from groundwork.ingest.base import BaseChunker, estimate_tokens, model_token_estimator
from groundwork.ingest.embedding_writer import EmbeddingConfig, EmbeddingWriter
from groundwork.ingest.paragraph import ParagraphChunker
from groundwork.ingest.web import FetchedPage, WebFetcher

__all__ = [
    "BaseChunker",
    "EmbeddingConfig",
    "EmbeddingWriter",
    "FetchedPage",
    "ParagraphChunker",
    "WebFetcher",
    "estimate_tokens",
    "model_token_estimator",
]
