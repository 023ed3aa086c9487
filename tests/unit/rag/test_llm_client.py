"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from groundwork.errors import GeneratorUnavailableError
from groundwork.rag.llm_client import (
    complete,
    count_tokens,
    embed,
    embed_many,
    make_generator,
    provider_of,
    validate_api_key,
)

# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(EnvironmentError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o-mini")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o-mini")  # should not raise


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama3")


def test_provider_of_defaults_to_openai():
    assert provider_of("gpt-4o-mini") == "openai"
    assert provider_of("Anthropic/claude-3-5-haiku") == "anthropic"


# ------------------------------------------------------------------
# complete()
# ------------------------------------------------------------------


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def test_complete_returns_stripped_content():
    with patch("groundwork.rag.llm_client.litellm.completion", return_value=_completion("  Hi!\n")):
        assert complete("openai/gpt-4o-mini", [{"role": "user", "content": "Hi"}]) == "Hi!"


def test_complete_returns_empty_string_on_none_content():
    with patch("groundwork.rag.llm_client.litellm.completion", return_value=_completion(None)):
        assert complete("openai/gpt-4o-mini", []) == ""


def test_complete_passes_params_without_retries():
    with patch(
        "groundwork.rag.llm_client.litellm.completion", return_value=_completion("ok")
    ) as completion:
        complete("openai/gpt-4o-mini", [{"role": "user", "content": "q"}], max_tokens=100, temperature=0.0)

    completion.assert_called_once_with(
        model="openai/gpt-4o-mini",
        messages=[{"role": "user", "content": "q"}],
        max_tokens=100,
        temperature=0.0,
        num_retries=0,
    )


def test_complete_wraps_provider_errors():
    with patch("groundwork.rag.llm_client.litellm.completion", side_effect=RuntimeError("429")):
        with pytest.raises(GeneratorUnavailableError, match="429"):
            complete("openai/gpt-4o-mini", [])


def test_make_generator_sends_system_and_user_messages():
    with patch(
        "groundwork.rag.llm_client.litellm.completion", return_value=_completion("answer")
    ) as completion:
        generate = make_generator("openai/gpt-4o-mini", max_tokens=800, temperature=0.2)
        assert generate("rules", "question") == "answer"

    kwargs = completion.call_args.kwargs
    assert kwargs["messages"] == [
        {"role": "system", "content": "rules"},
        {"role": "user", "content": "question"},
    ]
    assert kwargs["max_tokens"] == 800
    assert kwargs["temperature"] == 0.2


# ------------------------------------------------------------------
# embed() / embed_many()
# ------------------------------------------------------------------


def _embedding_response(items: list[dict]) -> MagicMock:
    response = MagicMock()
    response.data = items
    return response


def test_embed_returns_single_vector():
    resp = _embedding_response([{"index": 0, "embedding": [0.1, 0.2]}])
    with patch("groundwork.rag.llm_client.litellm.embedding", return_value=resp):
        assert embed("openai/text-embedding-3-small", "hello") == [0.1, 0.2]


def test_embed_many_reassociates_by_index():
    # Provider lists the vectors out of order
    resp = _embedding_response(
        [
            {"index": 2, "embedding": [2.0]},
            {"index": 0, "embedding": [0.0]},
            {"index": 1, "embedding": [1.0]},
        ]
    )
    with patch("groundwork.rag.llm_client.litellm.embedding", return_value=resp):
        vectors = embed_many("m", ["a", "b", "c"])

    assert vectors == [[0.0], [1.0], [2.0]]


def test_embed_many_batches_requests():
    def fake_embedding(model, input, num_retries):
        return _embedding_response(
            [{"index": i, "embedding": [float(len(text))]} for i, text in enumerate(input)]
        )

    with patch(
        "groundwork.rag.llm_client.litellm.embedding", side_effect=fake_embedding
    ) as embedding:
        vectors = embed_many("m", ["a", "bb", "ccc", "dddd", "eeeee"], batch_size=2)

    assert embedding.call_count == 3
    assert [c.kwargs["input"] for c in embedding.call_args_list] == [
        ["a", "bb"],
        ["ccc", "dddd"],
        ["eeeee"],
    ]
    assert vectors == [[1.0], [2.0], [3.0], [4.0], [5.0]]


def test_embed_many_missing_vector_raises():
    resp = _embedding_response([{"index": 0, "embedding": [0.0]}])
    with patch("groundwork.rag.llm_client.litellm.embedding", return_value=resp):
        with pytest.raises(GeneratorUnavailableError, match="no vector"):
            embed_many("m", ["a", "b"])


def test_embed_many_wraps_provider_errors():
    with patch("groundwork.rag.llm_client.litellm.embedding", side_effect=RuntimeError("boom")):
        with pytest.raises(GeneratorUnavailableError, match="boom"):
            embed_many("m", ["a"])


def test_embed_many_rejects_bad_batch_size():
    with pytest.raises(ValueError, match="batch_size"):
        embed_many("m", ["a"], batch_size=0)


# ------------------------------------------------------------------
# count_tokens()
# ------------------------------------------------------------------


def test_count_tokens_uses_litellm():
    with patch("groundwork.rag.llm_client.litellm.token_counter", return_value=42):
        assert count_tokens("openai/gpt-4o-mini", "text") == 42


def test_count_tokens_falls_back_to_char_estimate():
    with patch("groundwork.rag.llm_client.litellm.token_counter", side_effect=Exception("unknown")):
        assert count_tokens("custom/model", "x" * 9) == 3
