"""Source dispatch: web URLs and local files → FetchedPage.

  https:// / http://            → WebFetcher
  .html .htm                    → read from disk, HTML → Markdown
  .md .markdown .txt .text      → read from disk as-is
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from groundwork.errors import FetchError
from groundwork.ingest.web import FetchedPage, WebFetcher, normalize

_FILE_CONTENT_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".htm": "text/html",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".txt": "text/plain",
    ".text": "text/plain",
}

_H1_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)


def is_url(source: str) -> bool:
    return source.startswith(("https://", "http://"))


def detect_type(source: str) -> str:
    """Return 'web', 'file' or 'unknown' for a source identifier."""
    if is_url(source):
        return "web"
    p = Path(source)
    if p.is_file() and p.suffix.lower() in _FILE_CONTENT_TYPES:
        return "file"
    return "unknown"


def load_source(source: str, fetcher: WebFetcher) -> FetchedPage:
    """Fetch or read *source* and normalize it.

    Raises:
        FetchError: If the source is unsupported, unreadable or unreachable.
    """
    source_type = detect_type(source)
    if source_type == "web":
        return fetcher.fetch(source)
    if source_type == "file":
        return _read_file(Path(source))

    suffix = Path(source).suffix
    if Path(source).exists():
        raise FetchError(f"Unsupported file type {suffix!r} for source '{source}'.")
    raise FetchError(f"Source '{source}' is neither an http(s) URL nor an existing file.")


def _read_file(path: Path) -> FetchedPage:
    content_type = _FILE_CONTENT_TYPES[path.suffix.lower()]
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise FetchError(f"Could not read '{path}': {exc}") from exc
    return FetchedPage(
        url=str(path),
        raw=raw,
        text=normalize(raw, content_type),
        content_type=content_type,
    )


def extract_title(text: str) -> str | None:
    """Return the first level-1 Markdown heading of *text*, or None."""
    match = _H1_RE.search(text)
    return match.group(1).strip() if match else None


def checksum(text: str) -> str:
    """Content fingerprint of normalized text (SHA-1 hex) used for change detection."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()
