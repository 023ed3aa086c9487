"""Citation builder: one numbered citation per distinct source URL.

Evidence arrives rank-ordered, so first-seen order is relevance order and
citation [1] is the most relevant source.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass

from groundwork.rag.retriever import Evidence

_MARKER_RE = re.compile(r"\[#(\d+)\]")


@dataclass
class Citation:
    n: int
    url: str
    similarity: float
    title: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def build_citations(evidence: Sequence[Evidence]) -> list[Citation]:
    """Deduplicate *evidence* by URL, numbering sources 1..N in first-seen order.

    Repeated URLs keep the title and similarity of their first occurrence.
    """
    unique: dict[str, Citation] = {}
    for item in evidence:
        if item.source_url not in unique:
            unique[item.source_url] = Citation(
                n=len(unique) + 1,
                url=item.source_url,
                similarity=item.similarity,
                title=item.title,
            )
    return list(unique.values())


def cited_numbers(answer: str) -> set[int]:
    """Return the evidence numbers referenced as ``[#n]`` in a generated answer."""
    return {int(m) for m in _MARKER_RE.findall(answer)}
