"""LiteLLM client wrapper: embeddings, chat completion, token counting.

All model calls in the ingest and ask pipelines route through this module.
No retries by default (num_retries=0): a provider failure surfaces immediately
as GeneratorUnavailableError and aborts only the current document or question.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Sequence

import litellm

from groundwork.errors import GeneratorUnavailableError

logger = logging.getLogger(__name__)

# texts -> vectors aligned with the input order
Embedder = Callable[[Sequence[str]], list[list[float]]]
# (instructions, user_content) -> generated text
Generator = Callable[[str, str], str]

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if absent)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama) or provider unknown to us

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 800,
    temperature: float = 0.2,
    num_retries: int = 0,
) -> str:
    """Call litellm.completion() and return the stripped content string.

    Raises:
        GeneratorUnavailableError: If the provider call fails.
    """
    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise GeneratorUnavailableError(
            f"Generation with '{model}' failed: {exc}"
        ) from exc
    return (response.choices[0].message.content or "").strip()


def embed(model: str, text: str, num_retries: int = 0) -> list[float]:
    """Embed a single *text*. Returns the embedding vector.

    Raises:
        GeneratorUnavailableError: If the provider call fails.
    """
    return embed_many(model, [text], num_retries=num_retries)[0]


def embed_many(
    model: str,
    texts: Sequence[str],
    batch_size: int = 64,
    num_retries: int = 0,
) -> list[list[float]]:
    """Embed *texts* in batches, returning vectors aligned with the input order.

    Each response item is placed by its ``index`` field, so the result does not
    depend on the order in which the provider lists the vectors.

    Raises:
        GeneratorUnavailableError: If any batch fails or returns a short result.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    vectors: list[list[float] | None] = [None] * len(texts)
    for start in range(0, len(texts), batch_size):
        batch = list(texts[start : start + batch_size])
        try:
            response = litellm.embedding(
                model=model,
                input=batch,
                num_retries=num_retries,
            )
        except Exception as exc:
            raise GeneratorUnavailableError(
                f"Embedding with '{model}' failed: {exc}"
            ) from exc

        for pos, item in enumerate(response.data):
            index = item.get("index", pos)
            vectors[start + index] = list(item["embedding"])
        logger.debug("Embedded batch of %d texts with %s", len(batch), model)

    missing = [i for i, v in enumerate(vectors) if v is None]
    if missing:
        raise GeneratorUnavailableError(
            f"Embedding with '{model}' returned no vector for {len(missing)} input(s)."
        )
    return vectors  # type: ignore[return-value]


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to the 4-chars-per-token approximation if the model is not
    supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, math.ceil(len(text) / 4))


# ------------------------------------------------------------------
# Collaborator factories used by the pipelines
# ------------------------------------------------------------------


def make_embedder(model: str, batch_size: int = 64) -> Embedder:
    """Return an Embedder bound to *model*."""

    def _embed(texts: Sequence[str]) -> list[list[float]]:
        return embed_many(model, texts, batch_size=batch_size)

    return _embed


def make_generator(model: str, max_tokens: int = 800, temperature: float = 0.2) -> Generator:
    """Return a Generator that sends a system + user message pair to *model*."""

    def _generate(instructions: str, user_content: str) -> str:
        return complete(
            model=model,
            messages=[
                {"role": "system", "content": instructions},
                {"role": "user", "content": user_content},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )

    return _generate
