"""
Valkey Search Vector Store for Code Indexing.

This package lets a code-indexing feature keep its embeddings in a
Redis-compatible search engine (Valkey with valkey-search, or Redis Stack).
It maintains one vector index per workspace, upserts chunk embeddings with
their file-path metadata, and answers nearest-neighbour queries that can be
scoped to a directory prefix.

Key modules include:
-   `config`: Centralized configuration management.
-   `connection`: URL normalization and connect-with-retry.
-   `vector`: The `VectorStore` protocol and the Valkey Search adapter.
-   `probes`: Readiness probe for the search engine.
"""

from importlib import metadata
from typing import Final

SERVICE_NAME: Final[str] = "codeindex-valkey"

try:
    __version__ = metadata.version("codeindex-valkey")
except metadata.PackageNotFoundError:  # pragma: no cover
    # Running from a source checkout without an install.
    __version__ = "0.0.0"

from codeindex_valkey.errors import VectorStoreConnectionError, VectorStoreError  # noqa: E402
from codeindex_valkey.vector import (  # noqa: E402
    ValkeySearchVectorStore,
    VectorStore,
    VectorStoreSearchResult,
)

__all__ = [
    "SERVICE_NAME",
    "ValkeySearchVectorStore",
    "VectorStore",
    "VectorStoreConnectionError",
    "VectorStoreError",
    "VectorStoreSearchResult",
    "__version__",
]
