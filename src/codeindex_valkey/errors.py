"""Exception types raised by the vector store, and engine error classification."""

from __future__ import annotations

from redis.exceptions import ResponseError

# Wording used by RediSearch ("Unknown index name", "no such index") and by
# valkey-search ("Index with name '...' not found").
_MISSING_INDEX_MARKERS = ("unknown index", "no such index", "not found")

# FT.ALTER on a field another client already added.
_DUPLICATE_FIELD_MARKERS = ("duplicate field", "already exists")


class VectorStoreError(Exception):
    """Base class for errors raised by this package."""


class VectorStoreConnectionError(VectorStoreError):
    """The search engine could not be reached at the configured URL."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"Failed to connect to Valkey at {url}: {message}")
        self.url = url


def is_missing_index_error(error: BaseException) -> bool:
    """
    Tells whether an engine error means "this index does not exist".

    This is the only engine failure the adapter treats specially: it decides
    between creating an index and propagating the error.
    """
    if not isinstance(error, ResponseError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in _MISSING_INDEX_MARKERS)


def is_duplicate_field_error(error: BaseException) -> bool:
    """Tells whether FT.ALTER failed because the field is already declared."""
    if not isinstance(error, ResponseError):
        return False
    message = str(error).lower()
    return any(marker in message for marker in _DUPLICATE_FIELD_MARKERS)
