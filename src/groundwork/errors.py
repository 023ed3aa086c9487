"""Error taxonomy for groundwork.

Every error that can reach a caller carries a ``status`` mirroring the HTTP
class it would map to:

  400  ValidationError            missing / malformed request fields
  404  CollectionNotFoundError    ask against an unknown collection
  500  StorageError               SQLite / sqlite-vec failure
  502  FetchError, SsrfError      source could not be fetched or normalized
  503  GeneratorUnavailableError  embedding or generation provider failure

An insufficient-evidence refusal is NOT an error and has no class here.
"""

from __future__ import annotations


class GroundworkError(Exception):
    """Base class for all errors reported through a response envelope."""

    status: int = 500


class ValidationError(GroundworkError):
    """A request is missing a required field or carries an invalid value."""

    status = 400


class CollectionNotFoundError(GroundworkError):
    """The named collection does not exist in the corpus."""

    status = 404

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection '{collection}' does not exist.")
        self.collection = collection


class StorageError(GroundworkError):
    """The corpus store failed to read or write."""

    status = 500


class FetchError(GroundworkError):
    """A source could not be fetched or converted to text.

    Attributes:
        http_status: Upstream HTTP status code, when the server answered.
    """

    status = 502

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class SsrfError(FetchError):
    """Raised when a URL resolves to a private or reserved address."""


class GeneratorUnavailableError(GroundworkError):
    """The embedding or generation provider call failed."""

    status = 503
