"""Paragraph chunker: greedy paragraph packing with line overlap.

Paragraphs (separated by one or more blank lines) are packed into a buffer
until the next one would push the token estimate past ``target_tokens``.
The closed chunk's last ``overlap_lines`` lines then seed the next buffer,
so every chunk after the first starts with the tail of its predecessor.
A single paragraph larger than the budget is kept whole.
"""

from __future__ import annotations

import re

from groundwork.ingest.base import BaseChunker

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")


class ParagraphChunker(BaseChunker):
    """Split normalized Markdown / plain text into overlapping paragraph chunks.

    Defaults: 1000 estimated tokens per chunk, 50 lines of overlap.
    """

    def split(self, text: str) -> list[str]:
        if not text.strip():
            return []

        est = self.estimator
        chunks: list[str] = []
        buf: list[str] = []
        tokens = 0

        for para in _PARAGRAPH_BREAK.split(text):
            if not para.strip():
                continue
            t = est(para)
            if tokens + t > self.target_tokens and buf:
                closed = "\n\n".join(buf)
                chunks.append(closed)
                tail = self._tail(closed)
                if tail.strip():
                    buf = [tail, para]
                    tokens = est(tail) + t
                else:
                    buf = [para]
                    tokens = t
            else:
                buf.append(para)
                tokens += t

        if buf:
            chunks.append("\n\n".join(buf))

        return chunks

    def _tail(self, chunk: str) -> str:
        """Return the last ``overlap_lines`` lines of *chunk* ('' when overlap is off)."""
        if self.overlap_lines <= 0:
            return ""
        return "\n".join(chunk.split("\n")[-self.overlap_lines :])
