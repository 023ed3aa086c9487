"""Base chunker interface and token estimators."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable

from groundwork.db.models import Chunk
from groundwork.rag.llm_client import count_tokens

TokenEstimator = Callable[[str], int]

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count: characters / 4, rounded up.

    A coarse proxy for English and Spanish prose, not a tokenizer.
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def model_token_estimator(model: str) -> TokenEstimator:
    """Return an estimator backed by litellm's provider-aware token counter."""

    def _estimate(text: str) -> int:
        return count_tokens(model, text)

    return _estimate


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Subclasses implement ``split()``; ``chunk()`` wraps the resulting texts
    in positioned Chunk objects carrying their token estimate.
    """

    def __init__(
        self,
        target_tokens: int = 1_000,
        overlap_lines: int = 50,
        estimator: TokenEstimator = estimate_tokens,
    ) -> None:
        if target_tokens < 1:
            raise ValueError("target_tokens must be >= 1")
        if overlap_lines < 0:
            raise ValueError("overlap_lines must be >= 0")
        self.target_tokens = target_tokens
        self.overlap_lines = overlap_lines
        self.estimator = estimator

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split *text* into ordered, non-empty chunk texts."""

    def chunk(self, document_id: str, text: str) -> list[Chunk]:
        """Split *text* into Chunk objects for *document_id*.

        Returns:
            Ordered list of Chunk objects with sequential ``position``.
        """
        return self._make_chunks(document_id, self.split(text))

    def _make_chunks(self, document_id: str, texts: list[str]) -> list[Chunk]:
        """Convert a list of text strings into sequentially positioned Chunks."""
        return [
            Chunk(
                document_id=document_id,
                position=i,
                text=t,
                token_count=self.estimator(t),
            )
            for i, t in enumerate(texts)
        ]
