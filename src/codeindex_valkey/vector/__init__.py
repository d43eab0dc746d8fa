"""
Vector store integration for code indexing.

This package defines the `VectorStore` protocol consumed by the indexer and
its implementation on Valkey Search.
"""

from codeindex_valkey.vector.interfaces import (
    VectorPoint,
    VectorStore,
    VectorStoreSearchResult,
)
from codeindex_valkey.vector.valkey_store import ValkeySearchVectorStore

__all__ = [
    "ValkeySearchVectorStore",
    "VectorPoint",
    "VectorStore",
    "VectorStoreSearchResult",
]
