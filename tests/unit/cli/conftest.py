"""CLI fixtures: isolated cwd and config, fake provider calls, a seeded corpus."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from groundwork.config import GroundworkConfig
from groundwork.db.connection import Database
from groundwork.db.repository import Repository
from groundwork.ingest.web import FetchedPage
from groundwork.pipeline.ingest import IngestPipeline, IngestRequest

SEED_URL = "https://example.com/404"
SEED_TEXT = "# 404 Not Found\n\nThe server cannot find the requested resource."


def _fake_embedding(model, input, num_retries=0):
    # Texts mentioning 404 share one direction, everything else is orthogonal
    return SimpleNamespace(
        data=[
            {"index": i, "embedding": [0.0, 0.0, 1.0] if "404" in text else [0.0, 1.0, 0.0]}
            for i, text in enumerate(input)
        ]
    )


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run commands from tmp_path with no global config and an OpenAI key set."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("groundwork.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    for name in ("GROUNDWORK_EMBEDDING_MODEL", "GROUNDWORK_GENERATION_MODEL", "GROUNDWORK_LANGUAGE"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def fake_litellm():
    """Patch litellm embedding + completion; yields the completion mock."""
    completion = MagicMock(
        return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="A 404 means Not Found [#1]."))]
        )
    )
    with (
        patch("groundwork.rag.llm_client.litellm.embedding", side_effect=_fake_embedding),
        patch("groundwork.rag.llm_client.litellm.completion", completion),
    ):
        yield completion


@pytest.fixture
def seeded_db(cli_env, embedder_factory):
    """A .groundwork.db in cwd holding collection 'http' with one document."""
    path = cli_env / ".groundwork.db"
    conn = Database(path).open()
    fetcher = MagicMock()
    fetcher.fetch.return_value = FetchedPage(
        url=SEED_URL, raw=SEED_TEXT, text=SEED_TEXT, content_type="text/markdown"
    )
    IngestPipeline(
        Repository(conn), GroundworkConfig(), fetcher=fetcher, embedder=embedder_factory()
    ).run(IngestRequest(collection="http", sources=[SEED_URL]))
    conn.close()
    return path
