"""Tests for groundwork remove."""

from __future__ import annotations

from typer.testing import CliRunner

from groundwork.cli.main import app
from groundwork.db.connection import Database
from groundwork.db.repository import Repository

SEED_URL = "https://example.com/404"

runner = CliRunner()


def _documents(path):
    conn = Database(path).connect()
    try:
        repo = Repository(conn)
        return repo.list_documents(repo.get_collection("http").id)
    finally:
        conn.close()


def test_remove_without_db_fails(cli_env):
    result = runner.invoke(app, ["remove", "-c", "http", "-s", SEED_URL, "--yes"])
    assert result.exit_code == 1


def test_remove_unknown_collection(seeded_db):
    result = runner.invoke(app, ["remove", "-c", "nope", "-s", SEED_URL, "--yes"])
    assert result.exit_code == 1
    assert "does not exist" in result.stdout


def test_remove_unknown_source_is_not_an_error(seeded_db):
    result = runner.invoke(app, ["remove", "-c", "http", "-s", "https://example.com/x", "--yes"])

    assert result.exit_code == 0
    assert "Source not found" in result.stdout
    assert len(_documents(seeded_db)) == 1


def test_remove_with_yes_deletes_document(seeded_db):
    result = runner.invoke(app, ["remove", "-c", "http", "-s", SEED_URL, "--yes"])

    assert result.exit_code == 0
    assert "Removed" in result.stdout
    assert "1 chunks and their embeddings deleted" in result.stdout
    assert _documents(seeded_db) == []


def test_remove_declined_keeps_document(seeded_db):
    result = runner.invoke(app, ["remove", "-c", "http", "-s", SEED_URL], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.stdout
    assert len(_documents(seeded_db)) == 1
