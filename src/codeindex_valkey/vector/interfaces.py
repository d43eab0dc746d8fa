"""
Vector Store Protocol.

Defines the interface the code-indexing subsystem consumes. Any backend that
stores chunk embeddings per workspace (Valkey Search here) implements it, so
the indexer never depends on a particular engine.
"""

from __future__ import annotations

from typing import Any, Protocol, TypedDict


class VectorPoint(TypedDict):
    """
    One chunk to store.

    Attributes:
        id: Point identifier, unique within the workspace.
        vector: The embedding (length = the store's vector size).
        payload: Metadata; `filePath`, `codeChunk`, `startLine` and `endLine`
            are understood by the store, other keys are kept as-is.
    """

    id: str
    vector: list[float]
    payload: dict[str, Any]


class VectorStoreSearchResult(TypedDict):
    """A single nearest-neighbour hit, best hits first in a result list."""

    id: str
    score: float
    payload: dict[str, Any]


class VectorStore(Protocol):
    """
    Protocol for workspace-scoped vector stores.
    """

    def initialize(self) -> bool:
        """
        Ensures the index exists.

        Returns:
            True if the index was created (or recreated), False if an
            existing index was reused.
        """
        ...

    def upsert_points(self, points: list[VectorPoint]) -> None:
        """Inserts or replaces the given points."""
        ...

    def search(
        self,
        query_vector: list[float],
        directory_prefix: str | None = None,
        min_score: float | None = None,
        max_results: int | None = None,
    ) -> list[VectorStoreSearchResult]:
        """Finds the nearest stored chunks, optionally within a directory."""
        ...

    def delete_points_by_file_path(self, file_path: str) -> None:
        ...

    def delete_points_by_multiple_file_paths(self, file_paths: list[str]) -> None:
        ...

    def clear_collection(self) -> None:
        """Removes every point but keeps the index."""
        ...

    def delete_collection(self) -> None:
        """Removes the index and every point in it."""
        ...

    def collection_exists(self) -> bool:
        ...

    def destroy(self) -> None:
        """Releases the connection held by the store."""
        ...
