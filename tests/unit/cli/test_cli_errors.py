"""Tests for the CLI error message helpers."""

from __future__ import annotations

from groundwork.cli.errors import (
    err_collection_not_found,
    err_no_api_key,
    err_request,
    err_source_not_found,
)


def test_no_api_key_names_env_var():
    assert "export ANTHROPIC_API_KEY=" in err_no_api_key("anthropic")


def test_no_api_key_unknown_provider_guesses_env_var():
    assert "export ACME_API_KEY=" in err_no_api_key("acme")


def test_collection_not_found_without_collections():
    message = err_collection_not_found("docs", [])
    assert "(none)" in message
    assert "groundwork ingest --collection docs" in message


def test_request_error_adds_hint_for_known_status():
    assert "model provider is unavailable" in err_request(503, "Embedding failed")


def test_request_error_without_hint():
    assert err_request(418, "teapot") == "[red]Error (418):[/] teapot"


def test_source_not_found_points_to_status():
    assert "groundwork status --collection docs" in err_source_not_found("x.md", "docs")
