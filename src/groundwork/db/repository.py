"""Repository pattern for all groundwork corpus operations.

Single interface for: collections, documents, chunks, vec embeddings and the
collection-scoped top-k similarity query. Vec tables are model-managed
(ensure_vec_table); the repository handles read + write.

replace_document() is the only composite write: it upserts the document,
drops its previous chunks and embeddings and inserts the new ones in one
transaction, so a concurrent reader sees either the old or the new chunk set.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Sequence

from groundwork.db.models import Chunk, Collection, Document
from groundwork.db.vectors import list_vec_tables

_DOCUMENT_COLUMNS = (
    "id, collection_id, source_url, title, lang, content, checksum, ingested_at"
)


class Repository:
    """Data access layer for all groundwork database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see groundwork.db.schema.initialize).
        """
        self._conn = conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def upsert_collection(self, slug: str, name: str | None = None) -> int:
        """Create the collection *slug* if missing and return its id."""
        self._conn.execute(
            """
            INSERT INTO collections (slug, name) VALUES (?, ?)
            ON CONFLICT(slug) DO UPDATE SET name = excluded.name
            """,
            (slug, name or slug),
        )
        self._conn.commit()
        row = self._conn.execute(
            "SELECT id FROM collections WHERE slug = ?", (slug,)
        ).fetchone()
        return row["id"]

    def get_collection(self, slug: str) -> Collection | None:
        """Return a collection by slug, or None if it does not exist."""
        row = self._conn.execute(
            "SELECT id, slug, name, created_at FROM collections WHERE slug = ?",
            (slug,),
        ).fetchone()
        return _row_to_collection(row) if row else None

    def list_collections(self) -> list[Collection]:
        """Return all collections ordered by slug."""
        rows = self._conn.execute(
            "SELECT id, slug, name, created_at FROM collections ORDER BY slug"
        ).fetchall()
        return [_row_to_collection(r) for r in rows]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(self, document: Document) -> str:
        """Insert or replace the document keyed by (collection, source_url).

        Returns the id of the stored row, which is the existing id when the
        document was already present.
        """
        doc_id = self._upsert_document(document)
        self._conn.commit()
        return doc_id

    def get_document(self, document_id: str) -> Document | None:
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_url(self, collection_id: int, source_url: str) -> Document | None:
        """Return the document for *source_url* in a collection, or None."""
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
            "WHERE collection_id = ? AND source_url = ?",
            (collection_id, source_url),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, collection_id: int) -> list[Document]:
        """Return all documents of a collection ordered by ingestion time."""
        rows = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
            "WHERE collection_id = ? ORDER BY ingested_at, source_url",
            (collection_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, document_id: str) -> None:
        """Delete a document together with its chunks and embeddings."""
        with self._conn:
            self._delete_chunks(document_id)
            self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))

    # ------------------------------------------------------------------
    # Chunks + embeddings
    # ------------------------------------------------------------------

    def add_chunks(
        self,
        chunks: Sequence[Chunk],
        vec_table: str,
        embeddings: Sequence[list[float]],
        collection_id: int,
    ) -> list[int]:
        """Bulk-insert chunks and their embeddings. Returns the new rowids."""
        with self._conn:
            return self._insert_chunks(chunks, vec_table, embeddings, collection_id)

    def delete_chunks_by_document(self, document_id: str) -> int:
        """Delete all chunks and embeddings of a document. Returns chunks deleted."""
        with self._conn:
            return self._delete_chunks(document_id)

    def replace_document(
        self,
        document: Document,
        chunks: Sequence[Chunk],
        vec_table: str,
        embeddings: Sequence[list[float]],
    ) -> str:
        """Atomically upsert *document* and swap its chunk set for *chunks*.

        ``chunks[i]`` is stored with ``embeddings[i]``; each chunk's
        ``document_id`` is set to the stored document id.

        Returns:
            The stored document id.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(chunks)} chunks but {len(embeddings)} embeddings."
            )
        with self._conn:
            doc_id = self._upsert_document(document)
            self._delete_chunks(doc_id)
            for chunk in chunks:
                chunk.document_id = doc_id
            self._insert_chunks(chunks, vec_table, embeddings, document.collection_id)
        return doc_id

    def list_chunks(self, document_id: str) -> list[Chunk]:
        """Return the chunks of a document in reading order."""
        rows = self._conn.execute(
            """
            SELECT id, document_id, position, content, token_count, created_at
            FROM chunks WHERE document_id = ? ORDER BY position
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks_by_document(self, document_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def count_chunks_by_collection(self, collection_id: int) -> int:
        return self._conn.execute(
            """
            SELECT COUNT(*) FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE d.collection_id = ?
            """,
            (collection_id,),
        ).fetchone()[0]

    def count_embeddings(self, vec_table: str) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {vec_table}").fetchone()[0]

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def search_similar(
        self,
        vec_table: str,
        embedding: list[float],
        k: int,
        collection_id: int,
    ) -> list[tuple[Chunk, Document, float]]:
        """Collection-scoped KNN. Returns (chunk, document, cosine distance), nearest first."""
        vec_rows = self._conn.execute(
            f"""
            SELECT rowid, distance FROM {vec_table}
            WHERE embedding MATCH ? AND k = ? AND collection_id = ?
            ORDER BY distance
            """,
            (json.dumps(embedding), k, collection_id),
        ).fetchall()

        results: list[tuple[Chunk, Document, float]] = []
        for vec_row in vec_rows:
            row = self._conn.execute(
                """
                SELECT c.id, c.document_id, c.position, c.content, c.token_count,
                       c.created_at,
                       d.collection_id AS doc_collection_id,
                       d.source_url AS doc_source_url,
                       d.title AS doc_title,
                       d.lang AS doc_lang,
                       d.content AS doc_content,
                       d.checksum AS doc_checksum,
                       d.ingested_at AS doc_ingested_at
                FROM chunks c JOIN documents d ON d.id = c.document_id
                WHERE c.id = ?
                """,
                (vec_row["rowid"],),
            ).fetchone()
            if row is not None:
                results.append((_row_to_chunk(row), _joined_document(row), vec_row["distance"]))
        return results

    # ------------------------------------------------------------------
    # Non-committing helpers (callers own the transaction)
    # ------------------------------------------------------------------

    def _upsert_document(self, document: Document) -> str:
        self._conn.execute(
            """
            INSERT INTO documents
                (id, collection_id, source_url, title, lang, content, checksum)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(collection_id, source_url) DO UPDATE SET
                title = excluded.title,
                lang = excluded.lang,
                content = excluded.content,
                checksum = excluded.checksum,
                ingested_at = datetime('now')
            """,
            (
                document.id,
                document.collection_id,
                document.source_url,
                document.title,
                document.lang,
                document.content,
                document.checksum,
            ),
        )
        row = self._conn.execute(
            "SELECT id FROM documents WHERE collection_id = ? AND source_url = ?",
            (document.collection_id, document.source_url),
        ).fetchone()
        return row["id"]

    def _delete_chunks(self, document_id: str) -> int:
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchall()
        ]
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        for table in list_vec_tables(self._conn):
            self._conn.execute(
                f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                rowids,
            )
        self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        return len(rowids)

    def _insert_chunks(
        self,
        chunks: Sequence[Chunk],
        vec_table: str,
        embeddings: Sequence[list[float]],
        collection_id: int,
    ) -> list[int]:
        rowids: list[int] = []
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            cur = self._conn.execute(
                """
                INSERT INTO chunks (document_id, position, content, token_count)
                VALUES (?, ?, ?, ?)
                """,
                (chunk.document_id, chunk.position, chunk.text, chunk.token_count),
            )
            rowid = cur.lastrowid
            self._conn.execute(
                f"INSERT INTO {vec_table}(rowid, embedding, collection_id) VALUES (?, ?, ?)",
                (rowid, json.dumps(embedding), collection_id),
            )
            chunk.rowid = rowid
            rowids.append(rowid)
        return rowids


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        created_at=row["created_at"],
    )


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        collection_id=row["collection_id"],
        source_url=row["source_url"],
        title=row["title"],
        lang=row["lang"],
        content=row["content"],
        checksum=row["checksum"],
        ingested_at=row["ingested_at"],
    )


def _joined_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["document_id"],
        collection_id=row["doc_collection_id"],
        source_url=row["doc_source_url"],
        title=row["doc_title"],
        lang=row["doc_lang"],
        content=row["doc_content"],
        checksum=row["doc_checksum"],
        ingested_at=row["doc_ingested_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["id"],
        document_id=row["document_id"],
        position=row["position"],
        text=row["content"],
        token_count=row["token_count"],
        created_at=row["created_at"],
    )
