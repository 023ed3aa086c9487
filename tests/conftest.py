"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from groundwork.db.connection import Database
from groundwork.db.repository import Repository


class FakeEmbedder:
    """Deterministic embedder: the first keyword found in a text picks its vector.

    Records every call so tests can assert on batching and inputs.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: Sequence[float] = (0.0, 0.0, 1.0),
    ) -> None:
        self.vectors = vectors or {}
        self.default = list(default)
        self.calls: list[list[str]] = []

    def __call__(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def _vector(self, text: str) -> list[float]:
        lowered = text.lower()
        for keyword, vector in self.vectors.items():
            if keyword in lowered:
                return list(vector)
        return list(self.default)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / ".groundwork.db").open()
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def embedder_factory():
    """Build a FakeEmbedder with a keyword → vector table."""
    return FakeEmbedder
