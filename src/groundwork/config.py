"""groundwork configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (GROUNDWORK_MIN_SIMILARITY, GROUNDWORK_TOP_K,
     GROUNDWORK_MAX_TOKENS, GROUNDWORK_EMBEDDING_MODEL,
     GROUNDWORK_GENERATION_MODEL, GROUNDWORK_LANGUAGE)
  3. Per-project groundwork.yaml  (current directory)
  4. Global ~/.groundwork/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().

The resulting GroundworkConfig is handed to the pipelines at construction.
Chunker, gate, citation builder and prompt composer never read it directly.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from groundwork.rag.messages import DEFAULT_LANGUAGE, LANGUAGES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".groundwork"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "groundwork.yaml"

# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
# Does NOT match legitimate keys like max_tokens, target_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "retrieval", "chunker", "language"]
)

_KEYWORD_MATCH_MODES: frozenset[str] = frozenset(["substring", "token"])
_TOKENIZERS: frozenset[str] = frozenset(["approx", "model"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file or env var contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (groundwork.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    batch_size: int = 64


@dataclass
class GenerationCfg:
    """Answer generation configuration (groundwork.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 800
    temperature: float = 0.2


@dataclass
class RetrievalCfg:
    """Retrieval and relevance-gate configuration (groundwork.yaml: retrieval:).

    Attributes:
        top_k: Default number of chunks retrieved per question.
        min_similarity: The top chunk must reach this similarity to answer.
        max_keywords: Distinct question keywords kept for the lexical check.
        min_keyword_length: Shorter question tokens are discarded.
        keyword_match: 'substring' (lenient) or 'token' (whole-token match).
    """

    top_k: int = 8
    min_similarity: float = 0.58
    max_keywords: int = 12
    min_keyword_length: int = 2
    keyword_match: str = "substring"


@dataclass
class ChunkerCfg:
    """Paragraph chunker configuration (groundwork.yaml: chunker:)."""

    target_tokens: int = 1_000
    overlap_lines: int = 50
    tokenizer: str = "approx"  # approx | model


@dataclass
class GroundworkConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    language: str = DEFAULT_LANGUAGE


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: GroundworkConfig) -> None:
    """Raise ConfigError if any merged value is out of range."""
    r = cfg.retrieval
    if not 0.0 <= r.min_similarity <= 1.0:
        raise ConfigError(
            f"retrieval.min_similarity must be in [0, 1], got {r.min_similarity}"
        )
    if r.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {r.top_k}")
    if r.max_keywords < 1:
        raise ConfigError(f"retrieval.max_keywords must be >= 1, got {r.max_keywords}")
    if r.keyword_match not in _KEYWORD_MATCH_MODES:
        raise ConfigError(
            f"retrieval.keyword_match must be one of "
            f"{', '.join(sorted(_KEYWORD_MATCH_MODES))}, got '{r.keyword_match}'"
        )
    if cfg.chunker.target_tokens < 1:
        raise ConfigError(
            f"chunker.target_tokens must be >= 1, got {cfg.chunker.target_tokens}"
        )
    if cfg.chunker.overlap_lines < 0:
        raise ConfigError(
            f"chunker.overlap_lines must be >= 0, got {cfg.chunker.overlap_lines}"
        )
    if cfg.chunker.tokenizer not in _TOKENIZERS:
        raise ConfigError(
            f"chunker.tokenizer must be one of {', '.join(sorted(_TOKENIZERS))}, "
            f"got '{cfg.chunker.tokenizer}'"
        )
    if cfg.embedding.batch_size < 1:
        raise ConfigError(
            f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}"
        )
    if cfg.generation.max_tokens < 1:
        raise ConfigError(
            f"generation.max_tokens must be >= 1, got {cfg.generation.max_tokens}"
        )
    if cfg.language not in LANGUAGES:
        raise ConfigError(
            f"language must be one of {', '.join(LANGUAGES)}, got '{cfg.language}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> GroundworkConfig:
    """Build a *GroundworkConfig* from a merged raw YAML dict."""
    cfg = GroundworkConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            )

        if "generation" in data:
            g = data["generation"] or {}
            cfg.generation = GenerationCfg(
                model=str(g.get("model", cfg.generation.model)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
                temperature=float(g.get("temperature", cfg.generation.temperature)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                min_similarity=float(
                    r.get("min_similarity", cfg.retrieval.min_similarity)
                ),
                max_keywords=int(r.get("max_keywords", cfg.retrieval.max_keywords)),
                min_keyword_length=int(
                    r.get("min_keyword_length", cfg.retrieval.min_keyword_length)
                ),
                keyword_match=str(r.get("keyword_match", cfg.retrieval.keyword_match)),
            )

        if "chunker" in data:
            c = data["chunker"] or {}
            cfg.chunker = ChunkerCfg(
                target_tokens=int(c.get("target_tokens", cfg.chunker.target_tokens)),
                overlap_lines=int(c.get("overlap_lines", cfg.chunker.overlap_lines)),
                tokenizer=str(c.get("tokenizer", cfg.chunker.tokenizer)),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    if "language" in data:
        cfg.language = str(data["language"]).lower()

    return cfg


def _env_number(name: str, cast: type) -> Any:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {name}={raw!r} is not a valid number.") from exc


def _apply_env_overrides(cfg: GroundworkConfig) -> GroundworkConfig:
    """Apply GROUNDWORK_* environment variable overrides (layer 2)."""
    if (min_sim := _env_number("GROUNDWORK_MIN_SIMILARITY", float)) is not None:
        cfg.retrieval.min_similarity = min_sim
    if (top_k := _env_number("GROUNDWORK_TOP_K", int)) is not None:
        cfg.retrieval.top_k = top_k
    if (max_tokens := _env_number("GROUNDWORK_MAX_TOKENS", int)) is not None:
        cfg.generation.max_tokens = max_tokens
    if model := os.environ.get("GROUNDWORK_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("GROUNDWORK_GENERATION_MODEL"):
        cfg.generation.model = model
    if language := os.environ.get("GROUNDWORK_LANGUAGE"):
        cfg.language = language.lower()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> GroundworkConfig:
    """Load and return a merged *GroundworkConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *groundwork.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *GroundworkConfig*.

    Raises:
        ConfigError: If global config contains API-key-like fields, or any
            merged value is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
