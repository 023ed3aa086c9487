"""Relevance gate: decide whether retrieved evidence is strong enough to answer.

Two independent checks, both must pass:
  1. Similarity threshold: the top-ranked evidence must reach min_similarity.
     Empty evidence always fails.
  2. Lexical keyword overlap: some evidence chunk must contain some keyword
     extracted from the question. A question without extractable keywords
     passes vacuously.

Similarity alone admits topically adjacent chunks that do not answer;
keyword overlap alone admits paraphrase mismatches. Both knobs (threshold,
keyword cap / match mode) are exposed through GateConfig.

A refusal is a normal outcome, never an exception.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Literal

from groundwork.rag.retriever import Evidence

RefusalReason = Literal["no_evidence", "low_similarity", "no_keyword_overlap"]

# Anything that is not a letter, digit, whitespace, '.' or '-' becomes a space.
# \w also matches '_', which is folded explicitly.
_FOLD_RE = re.compile(r"[^\w\s.\-]|_")


@dataclass
class GateConfig:
    """Gate thresholds.

    Attributes:
        min_similarity: Minimum similarity of the top evidence (inclusive).
        max_keywords: Distinct keywords kept from the question, in order.
        min_keyword_length: Shorter tokens are discarded.
        keyword_match: 'substring': keyword may occur anywhere in the chunk
            text ('100' matches '1000ms'); 'token': keyword must equal a
            whole token of the normalized chunk text.
    """

    min_similarity: float = 0.58
    max_keywords: int = 12
    min_keyword_length: int = 2
    keyword_match: Literal["substring", "token"] = "substring"


@dataclass
class GateDiagnostics:
    retrieved: int
    threshold: float
    top_similarity: float
    keyword_ok: bool
    keywords: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GateDecision:
    allow: bool
    diagnostics: GateDiagnostics
    reason: RefusalReason | None = None


def _strip_marks(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str) -> str:
    """Lower-case, strip diacritics and fold punctuation (except '.' and '-') to spaces."""
    return _FOLD_RE.sub(" ", _strip_marks(text))


def extract_keywords(
    question: str, max_keywords: int = 12, min_length: int = 2
) -> list[str]:
    """Return up to *max_keywords* distinct question tokens in first-seen order."""
    seen: dict[str, None] = {}
    for word in normalize_text(question or "").split():
        if len(word) >= min_length and word not in seen:
            seen[word] = None
            if len(seen) == max_keywords:
                break
    return list(seen)


def has_keyword_hit(
    evidence: Sequence[Evidence],
    keywords: Sequence[str],
    mode: str = "substring",
) -> bool:
    """True if any evidence text contains any keyword (vacuously True without keywords)."""
    if not keywords:
        return True
    if mode == "token":
        wanted = set(keywords)
        return any(wanted.intersection(normalize_text(e.text).split()) for e in evidence)
    # Substring mode keeps punctuation so "100" still matches "1000ms"
    return any(kw in _strip_marks(e.text) for e in evidence for kw in keywords)


def should_answer(
    question: str,
    evidence: Sequence[Evidence],
    config: GateConfig | None = None,
) -> GateDecision:
    """Run both checks against rank-ordered *evidence*.

    When both checks fail the similarity reason is reported.
    """
    config = config or GateConfig()
    top = evidence[0].similarity if evidence else 0.0
    keywords = extract_keywords(question, config.max_keywords, config.min_keyword_length)
    keyword_ok = has_keyword_hit(evidence, keywords, config.keyword_match)

    diagnostics = GateDiagnostics(
        retrieved=len(evidence),
        threshold=config.min_similarity,
        top_similarity=top,
        keyword_ok=keyword_ok,
        keywords=keywords,
    )

    reason: RefusalReason | None = None
    if not evidence:
        reason = "no_evidence"
    elif top < config.min_similarity:
        reason = "low_similarity"
    elif not keyword_ok:
        reason = "no_keyword_overlap"

    return GateDecision(allow=reason is None, diagnostics=diagnostics, reason=reason)
