"""Tests for schema initialization and the migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from groundwork.db.connection import Database
from groundwork.db.migrations import MIGRATIONS, run_migrations
from groundwork.db.schema import CURRENT_VERSION, initialize, schema_version


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def test_initialize_creates_core_tables(tmp_db) -> None:
    assert {"collections", "documents", "chunks", "schema_version"} <= _tables(tmp_db)


def test_schema_version_is_current(tmp_db) -> None:
    assert schema_version(tmp_db) == CURRENT_VERSION == MIGRATIONS[-1][0]


def test_run_migrations_is_idempotent(tmp_db) -> None:
    run_migrations(tmp_db)
    initialize(tmp_db)

    count = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)


def test_schema_version_zero_on_fresh_bootstrap(tmp_path) -> None:
    conn = Database(tmp_path / "fresh.db").connect()
    try:
        conn.execute(
            "CREATE TABLE schema_version (version INTEGER NOT NULL, applied_at DATETIME)"
        )
        assert schema_version(conn) == 0
    finally:
        conn.close()


def test_database_context_manager_migrates(tmp_path) -> None:
    db = Database(tmp_path / "ctx.db")
    assert not db.exists()

    with db as conn:
        assert schema_version(conn) == CURRENT_VERSION

    assert db.exists()


def test_document_url_unique_per_collection(tmp_db) -> None:
    tmp_db.execute("INSERT INTO collections (slug, name) VALUES ('c', 'c')")
    insert = (
        "INSERT INTO documents (id, collection_id, source_url, content, checksum) "
        "VALUES (?, 1, 'https://example.com', 'x', 'h')"
    )
    tmp_db.execute(insert, ("d1",))
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(insert, ("d2",))


def test_deleting_collection_cascades_to_documents_and_chunks(tmp_db) -> None:
    tmp_db.execute("INSERT INTO collections (slug, name) VALUES ('c', 'c')")
    tmp_db.execute(
        "INSERT INTO documents (id, collection_id, source_url, content, checksum) "
        "VALUES ('d1', 1, 'https://example.com', 'x', 'h')"
    )
    tmp_db.execute("INSERT INTO chunks (document_id, position, content) VALUES ('d1', 0, 'x')")
    tmp_db.execute("DELETE FROM collections WHERE slug = 'c'")

    assert tmp_db.execute("SELECT COUNT(*) FROM documents").fetchone()[0] == 0
    assert tmp_db.execute("SELECT COUNT(*) FROM chunks").fetchone()[0] == 0


def test_connection_loads_sqlite_vec(tmp_db) -> None:
    version = tmp_db.execute("SELECT vec_version()").fetchone()[0]
    assert version.startswith("v")
