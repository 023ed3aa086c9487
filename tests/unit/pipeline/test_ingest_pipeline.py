"""Tests for IngestPipeline: fetch → chunk → embed → store, per-source failures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from groundwork.config import GroundworkConfig
from groundwork.db.vectors import vec_table_name
from groundwork.errors import FetchError, GeneratorUnavailableError
from groundwork.ingest.web import FetchedPage, html_to_markdown
from groundwork.pipeline.ingest import IngestPipeline, IngestRequest

_VEC_TABLE = vec_table_name("openai_text_embedding_3_small")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _write(tmp_path: Path, name: str, text: str) -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def _page(url: str, html: str) -> FetchedPage:
    return FetchedPage(url=url, raw=html, text=html_to_markdown(html), content_type="text/html")


@pytest.fixture
def pipeline(repo, fake_embedder):
    return IngestPipeline(repo, GroundworkConfig(), fetcher=MagicMock(), embedder=fake_embedder)


# ------------------------------------------------------------------
# Happy path
# ------------------------------------------------------------------


def test_ingest_local_markdown(repo, pipeline, tmp_path):
    source = _write(tmp_path, "errors.md", "# HTTP errors\n\nA 404 means Not Found.\n")

    response = pipeline.run(IngestRequest(collection="web", sources=[source]))

    assert response.ok
    assert response.indexed == 1
    report = response.reports[0]
    assert report.title == "HTTP errors"
    assert report.chunks == 1
    assert report.replaced is False
    assert report.error is None
    assert len(report.checksum) == 40

    collection = repo.get_collection("web")
    (doc,) = repo.list_documents(collection.id)
    assert doc.source_url == source
    assert doc.lang == "es"
    assert repo.count_embeddings(_VEC_TABLE) == 1


def test_ingest_url_through_fetcher(repo, fake_embedder):
    html = "<html><body><nav>menu</nav><h1>Status codes</h1><p>404 Not Found.</p></body></html>"
    fetcher = MagicMock()
    fetcher.fetch.return_value = _page("https://example.com/codes", html)
    pipeline = IngestPipeline(repo, GroundworkConfig(), fetcher=fetcher, embedder=fake_embedder)

    response = pipeline.run(IngestRequest(collection="web", sources=["https://example.com/codes"]))

    report = response.reports[0]
    assert report.raw_length == len(html)
    assert 0 < report.normalized_length < len(html)
    assert report.title == "Status codes"
    fetcher.fetch.assert_called_once_with("https://example.com/codes")


def test_reingest_is_idempotent(repo, pipeline, tmp_path):
    source = _write(tmp_path, "doc.md", "\n\n".join(f"Paragraph {i}. " * 20 for i in range(30)))
    request = IngestRequest(collection="web", sources=[source])

    first = pipeline.run(request)
    second = pipeline.run(request)

    collection = repo.get_collection("web")
    assert first.indexed == second.indexed > 0
    assert second.reports[0].replaced is True
    assert len(repo.list_documents(collection.id)) == 1
    assert repo.count_chunks_by_collection(collection.id) == first.indexed
    assert repo.count_embeddings(_VEC_TABLE) == first.indexed


def test_reingest_changed_content_replaces_chunks(repo, pipeline, tmp_path):
    path = tmp_path / "doc.md"
    path.write_text("# V1\n\nold text", encoding="utf-8")
    pipeline.run(IngestRequest(collection="web", sources=[str(path)]))

    path.write_text("# V2\n\nnew text", encoding="utf-8")
    pipeline.run(IngestRequest(collection="web", sources=[str(path)]))

    collection = repo.get_collection("web")
    (doc,) = repo.list_documents(collection.id)
    assert doc.title == "V2"
    assert [c.text for c in repo.list_chunks(doc.id)] == ["# V2\n\nnew text"]


def test_small_target_produces_several_chunks(repo, fake_embedder, tmp_path):
    config = GroundworkConfig()
    config.chunker.target_tokens = 20
    config.chunker.overlap_lines = 1
    source = _write(tmp_path, "doc.txt", "\n\n".join(f"line {i} " * 5 for i in range(10)))

    response = IngestPipeline(repo, config, embedder=fake_embedder).run(
        IngestRequest(collection="web", sources=[source])
    )

    assert response.indexed > 1
    assert fake_embedder.calls and len(fake_embedder.calls[0]) == response.indexed


def test_model_tokenizer_uses_litellm_counter(repo, fake_embedder, tmp_path):
    config = GroundworkConfig()
    config.chunker.tokenizer = "model"
    source = _write(tmp_path, "doc.md", "one\n\ntwo")

    with patch("groundwork.rag.llm_client.litellm.token_counter", return_value=3) as counter:
        IngestPipeline(repo, config, embedder=fake_embedder).run(
            IngestRequest(collection="web", sources=[source])
        )

    assert counter.called


def test_on_source_callback_receives_each_report(pipeline, tmp_path):
    sources = [_write(tmp_path, f"d{i}.md", f"doc {i}") for i in range(3)]
    seen = []

    pipeline.run(IngestRequest(collection="web", sources=sources), on_source=seen.append)

    assert [r.source for r in seen] == sources


# ------------------------------------------------------------------
# Per-source failures
# ------------------------------------------------------------------


def test_failing_source_does_not_stop_others(repo, fake_embedder, tmp_path):
    good = _write(tmp_path, "good.md", "# Good\n\ntext")
    fetcher = MagicMock()
    fetcher.fetch.side_effect = FetchError("Fetch failed 404 for URL", http_status=404)
    pipeline = IngestPipeline(repo, GroundworkConfig(), fetcher=fetcher, embedder=fake_embedder)

    response = pipeline.run(
        IngestRequest(collection="web", sources=["https://example.com/missing", good])
    )

    assert response.ok
    assert response.indexed == 1
    bad_report, good_report = response.reports
    assert "404" in bad_report.error
    assert bad_report.chunks == 0
    assert good_report.chunks == 1


def test_fetch_timeout_does_not_stop_next_source(repo, fake_embedder):
    page = _page("https://b.example/y", "<html><body><p>second page</p></body></html>")
    fetcher = MagicMock()
    fetcher.fetch.side_effect = [TimeoutError("read timed out"), page]
    pipeline = IngestPipeline(repo, GroundworkConfig(), fetcher=fetcher, embedder=fake_embedder)

    response = pipeline.run(
        IngestRequest(collection="web", sources=["https://a.example/x", "https://b.example/y"])
    )

    assert response.ok
    first, second = response.reports
    assert "read timed out" in first.error
    assert first.chunks == 0
    assert second.error is None
    assert second.chunks == 1
    assert response.indexed == 1


def test_unexpected_embedder_error_is_isolated(repo, fake_embedder, tmp_path):
    calls = iter([ValueError("bad vector"), None])

    def flaky(texts):
        error = next(calls)
        if error is not None:
            raise error
        return fake_embedder(texts)

    sources = [_write(tmp_path, "a.md", "first"), _write(tmp_path, "b.md", "second")]
    response = IngestPipeline(repo, GroundworkConfig(), embedder=flaky).run(
        IngestRequest(collection="web", sources=sources)
    )

    assert "bad vector" in response.reports[0].error
    assert response.reports[1].chunks == 1
    assert len(repo.list_documents(repo.get_collection("web").id)) == 1


def test_unsupported_local_source_is_reported(pipeline, tmp_path):
    pdf = tmp_path / "doc.pdf"
    pdf.write_bytes(b"%PDF")

    response = pipeline.run(IngestRequest(collection="web", sources=[str(pdf)]))

    assert response.ok
    assert "Unsupported file type" in response.reports[0].error


def test_embedding_failure_stores_nothing(repo, tmp_path):
    failing = MagicMock(side_effect=GeneratorUnavailableError("provider down"))
    source = _write(tmp_path, "doc.md", "text")

    response = IngestPipeline(repo, GroundworkConfig(), embedder=failing).run(
        IngestRequest(collection="web", sources=[source])
    )

    assert response.ok
    assert response.indexed == 0
    assert "provider down" in response.reports[0].error
    assert repo.list_documents(repo.get_collection("web").id) == []


def test_empty_document_is_skipped_without_error(repo, pipeline, tmp_path):
    source = _write(tmp_path, "blank.md", "   \n\n  \n")

    response = pipeline.run(IngestRequest(collection="web", sources=[source]))

    report = response.reports[0]
    assert report.chunks == 0
    assert report.error is None
    assert repo.list_documents(repo.get_collection("web").id) == []


# ------------------------------------------------------------------
# Request validation
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "request_",
    [
        IngestRequest(collection="", sources=["https://example.com"]),
        IngestRequest(collection="  ", sources=["https://example.com"]),
        IngestRequest(collection="web", sources=[]),
        IngestRequest(collection="web", sources=["", "  "]),
    ],
)
def test_invalid_request_returns_400(repo, pipeline, request_):
    response = pipeline.run(request_)

    assert not response.ok
    assert response.status == 400
    assert response.to_dict() == {"ok": False, "error": response.error, "status": 400}
    assert repo.list_collections() == []


def test_response_to_dict(pipeline, tmp_path):
    source = _write(tmp_path, "doc.md", "# T\n\nbody")

    data = pipeline.run(IngestRequest(collection="web", sources=[source])).to_dict()

    assert data["ok"] is True
    assert data["indexed"] == 1
    assert data["reports"][0]["source"] == source
    assert set(data["reports"][0]) == {
        "source",
        "raw_length",
        "normalized_length",
        "chunks",
        "title",
        "checksum",
        "replaced",
        "error",
    }
