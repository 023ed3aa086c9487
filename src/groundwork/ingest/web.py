"""Web fetcher: URL fetch + HTML→Markdown normalization with SSRF protection.

Security requirements:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established.
- Allowed URL schemes: https:// and http:// only.
- Content-Type whitelist: text/html, application/xhtml+xml, text/plain,
  text/markdown.
- Max response body: 5 MB.
- Timeout: 30 seconds (connect + read).
- Max redirects: 3.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from http.client import HTTPException, HTTPResponse

import html2text
from bs4 import BeautifulSoup

from groundwork.errors import FetchError, SsrfError

logger = logging.getLogger(__name__)

_USER_AGENT = "groundwork/0.1 (+https://github.com/pfdesignlabs/groundwork)"
_ACCEPT = "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.8"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}
_TEXT_CONTENT_TYPES = {"text/plain", "text/markdown"}

# Non-content markup removed before conversion
_STRIP_TAGS = ["script", "style", "noscript", "iframe", "nav", "footer", "header", "form", "head"]


@dataclass
class FetchedPage:
    """A fetched source: raw body text and its normalized Markdown/plain text."""

    url: str
    raw: str
    text: str
    content_type: str


def html_to_markdown(html: str) -> str:
    """Strip non-content tags from *html* and convert the rest to Markdown."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    body = soup.body if soup.body is not None else soup

    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.body_width = 0
    return converter.handle(str(body)).strip()


def normalize(body: str, content_type: str) -> str:
    """Convert a decoded body to normalized text based on *content_type*."""
    if content_type in _HTML_CONTENT_TYPES:
        return html_to_markdown(body)
    return body.strip()


class WebFetcher:
    """Fetch a URL and normalize it to Markdown.

    SSRF protection is applied *before* any connection is made: the hostname
    is resolved and every resulting address is checked against private,
    loopback, link-local and reserved ranges.
    """

    def __init__(self, timeout: int = _TIMEOUT, max_bytes: int = _MAX_BYTES) -> None:
        self.timeout = timeout
        self.max_bytes = max_bytes

    def fetch(self, url: str) -> FetchedPage:
        """Validate, fetch, and normalize *url*.

        Raises:
            FetchError: On any validation, network, HTTP or content failure.
            SsrfError: If the host resolves to a non-public address.
        """
        self._validate_scheme(url)
        self._check_ssrf(url)
        body, content_type = self._fetch(url)
        raw = body.decode("utf-8", errors="replace")
        text = normalize(raw, content_type)
        logger.debug("Fetched %s (%s, %d bytes → %d chars)", url, content_type, len(body), len(text))
        return FetchedPage(url=url, raw=raw, text=text, content_type=content_type)

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise FetchError(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges."""
        parsed = urllib.parse.urlparse(url)
        hostname = parsed.hostname
        if not hostname:
            raise FetchError(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise FetchError(f"DNS resolution failed for '{hostname}': {exc}") from exc

        for addrinfo in addrinfos:
            addr_str = addrinfo[4][0]
            try:
                ip = ipaddress.ip_address(addr_str)
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    def _fetch(self, url: str) -> tuple[bytes, str]:
        """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

        Returns (body_bytes, content_type_without_params).
        """
        request = urllib.request.Request(
            url, headers={"User-Agent": _USER_AGENT, "Accept": _ACCEPT}
        )
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=self.timeout)
        except urllib.error.HTTPError as exc:
            raise FetchError(f"Fetch failed {exc.code} for URL '{url}'", http_status=exc.code) from exc
        except (OSError, HTTPException) as exc:
            raise FetchError(f"Failed to fetch URL '{url}': {exc}") from exc

        with response:
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _HTML_CONTENT_TYPES | _TEXT_CONTENT_TYPES:
                raise FetchError(
                    f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_HTML_CONTENT_TYPES | _TEXT_CONTENT_TYPES))}"
                )

            try:
                body = response.read(self.max_bytes + 1)
            except (OSError, HTTPException) as exc:
                raise FetchError(f"Failed to read body of URL '{url}': {exc}") from exc
        if len(body) > self.max_bytes:
            raise FetchError(
                f"Response body exceeds {self.max_bytes // (1024 * 1024)} MB limit for URL '{url}'."
            )

        return body, ct


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise FetchError after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise FetchError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        WebFetcher._check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
