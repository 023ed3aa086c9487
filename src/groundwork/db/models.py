"""Domain models for the groundwork database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Collection:
    id: int
    slug: str
    name: str
    created_at: str | None = None


@dataclass
class Document:
    id: str
    collection_id: int
    source_url: str
    content: str
    checksum: str
    title: str | None = None
    lang: str = "es"
    ingested_at: str | None = None

    @property
    def label(self) -> str:
        """Title if present, otherwise the source URL."""
        return self.title or self.source_url


@dataclass
class Chunk:
    document_id: str
    position: int
    text: str
    token_count: int = 0
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks
