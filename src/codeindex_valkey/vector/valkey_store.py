"""
Valkey Search Vector Store.

This module implements the `VectorStore` protocol on top of a Redis-compatible
search engine (Valkey with the valkey-search module, or Redis Stack). The
engine does all indexing and similarity computation; this class only shapes
commands (FT.CREATE, FT.INFO, FT.ALTER, FT.SEARCH, FT.DROPINDEX, pipelined
HSET/DEL) and translates their replies.

Key Design Principles:
- **One Index per Workspace**: the index name is a hash of the workspace path
  and documents live under the `{indexName}:` key prefix.
- **Lazy Connection**: the client is created eagerly but connected on first
  use, with a fixed-delay retry loop.
- **Log and Re-raise**: engine failures are logged as structured events and
  propagated unchanged. The only failure handled locally is "index not found",
  which decides whether an index must be created.
"""

from __future__ import annotations

import json
from typing import Any

import redis

from codeindex_valkey.config import VectorStoreConfig, get_config
from codeindex_valkey.connection import connect_with_retry, create_client, parse_valkey_url
from codeindex_valkey.errors import is_duplicate_field_error, is_missing_index_error
from codeindex_valkey.logger import log_event
from codeindex_valkey.paths import directory_prefix_segments, to_workspace_relative
from codeindex_valkey.vector import query as q
from codeindex_valkey.vector.interfaces import VectorPoint, VectorStoreSearchResult
from codeindex_valkey.vector.schema import (
    PAYLOAD_FIELD,
    alter_index_args,
    build_document,
    create_index_args,
    encode_vector,
    index_name_for,
    key_prefix,
    parse_index_info,
    path_segment_field,
    point_id_from_key,
)

_MAX_RESULTS_LIMIT = 10_000


class ValkeySearchVectorStore:
    """
    Workspace-scoped vector store backed by Valkey Search.

    Example:
        >>> store = ValkeySearchVectorStore("/home/dev/project", "localhost:6380", 1536)
        >>> store.initialize()
        True
        >>> store.upsert_points([
        ...     {"id": "c1", "vector": embedding, "payload": {"filePath": "src/app.py"}}
        ... ])
        >>> store.search(query_embedding, directory_prefix="src")
        [{'id': 'c1', 'score': 0.91, 'payload': {...}}]
    """

    def __init__(
        self,
        workspace_path: str,
        url: str,
        vector_size: int,
        password: str | None = None,
        *,
        config: VectorStoreConfig | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        """
        Args:
            workspace_path: Root of the indexed workspace.
            url: Valkey URL, `host:port` or bare hostname.
            vector_size: Dimensionality of the embeddings to store.
            password: Optional password for AUTH.
            config: Tunables; defaults to the global configuration.
            client: A ready-made client, used instead of building one.

        Raises:
            ValueError: If the URL is blank or the vector size is not positive.
            VectorStoreConnectionError: If the client cannot be created.
        """
        if vector_size <= 0:
            raise ValueError(f"Invalid vector size: {vector_size} (must be positive)")

        self.workspace_path = workspace_path
        self.vector_size = vector_size
        self.valkey_url = parse_valkey_url(url)
        self._config = config or get_config()
        self._distance_metric = self._config.distance_metric
        self._client = client or create_client(self.valkey_url, password)
        self._connected = False
        self.index_name = index_name_for(workspace_path)
        # Number of pathSegments_N fields the index is known to declare.
        self._indexed_depth = self._config.path_segment_depth

    @classmethod
    def from_config(
        cls,
        workspace_path: str,
        config: VectorStoreConfig | None = None,
    ) -> ValkeySearchVectorStore:
        """Builds a store from `VALKEY_URL`, `VECTOR_SIZE` and `VALKEY_PASSWORD`."""
        config = config or get_config()
        return cls(
            workspace_path,
            config.valkey_url,
            config.vector_size,
            config.valkey_password,
            config=config,
        )

    def _ensure_connected(self) -> None:
        if self._connected:
            return
        connect_with_retry(
            self._client,
            self.valkey_url,
            retry_delay_ms=self._config.connect_retry_delay_ms,
            max_attempts=self._config.connect_max_attempts,
        )
        self._connected = True

    def _check_dimension(self, vector: list[float], what: str) -> None:
        if len(vector) != self.vector_size:
            raise ValueError(
                f"{what} has {len(vector)} dimensions, expected {self.vector_size}"
            )

    def _create_index(self) -> None:
        self._client.execute_command(
            *create_index_args(
                self.index_name,
                self.vector_size,
                self._distance_metric,
                self._config.path_segment_depth,
            )
        )
        self._indexed_depth = self._config.path_segment_depth

    def _extend_path_depth(self, depth: int) -> None:
        """Declares `pathSegments_N` fields up to `depth` with FT.ALTER."""
        if depth <= self._indexed_depth:
            return
        start = self._indexed_depth
        for position in range(start, depth):
            try:
                self._client.execute_command(*alter_index_args(self.index_name, position))
            except redis.exceptions.ResponseError as e:
                if not is_duplicate_field_error(e):
                    raise
                log_event(
                    "DEBUG",
                    "index_field_exists",
                    index=self.index_name,
                    field=path_segment_field(position),
                )
            self._indexed_depth = position + 1
        log_event(
            "INFO",
            "index_altered",
            index=self.index_name,
            path_segment_depth=self._indexed_depth,
            added=depth - start,
        )

    def _refresh_path_depth(self) -> None:
        """Re-reads the declared path depth, which other writers may have grown."""
        reply = self._client.execute_command("FT.INFO", self.index_name)
        info = parse_index_info(self.index_name, reply)
        if info.dimension is not None:
            self._indexed_depth = max(self._indexed_depth, info.path_segment_depth)

    def initialize(self) -> bool:
        """
        Ensures the workspace index exists with the configured dimension.

        Returns:
            True if the index was created or recreated, False if the existing
            index was reused.

        Raises:
            redis.exceptions.RedisError: Any engine failure other than
                "index not found".
        """
        try:
            self._ensure_connected()
            try:
                reply = self._client.execute_command("FT.INFO", self.index_name)
            except redis.exceptions.ResponseError as e:
                if not is_missing_index_error(e):
                    raise
                self._create_index()
                log_event(
                    "INFO",
                    "index_created",
                    index=self.index_name,
                    vector_size=self.vector_size,
                    distance_metric=self._distance_metric,
                )
                return True

            info = parse_index_info(self.index_name, reply)
            if info.dimension is not None and info.dimension != self.vector_size:
                log_event(
                    "WARNING",
                    "index_dimension_mismatch",
                    index=self.index_name,
                    existing_dimension=info.dimension,
                    vector_size=self.vector_size,
                )
                self._drop_index()
                self._create_index()
                log_event(
                    "INFO",
                    "index_recreated",
                    index=self.index_name,
                    vector_size=self.vector_size,
                )
                return True

            if info.dimension is None:
                # Unrecognized FT.INFO layout: trust the configured depth.
                self._indexed_depth = self._config.path_segment_depth
            else:
                self._indexed_depth = info.path_segment_depth
                self._extend_path_depth(self._config.path_segment_depth)
            log_event("INFO", "index_exists", index=self.index_name)
            return False
        except Exception as e:
            log_event("ERROR", "index_initialize_failed", index=self.index_name, error=str(e))
            raise

    def upsert_points(self, points: list[VectorPoint]) -> None:
        """
        Inserts or replaces points.

        Every point is written as one hash; an existing document with the same
        id is deleted first so that no stale path segment fields survive.

        Raises:
            ValueError: If a vector does not match the configured size.
        """
        if not points:
            return
        for point in points:
            self._check_dimension(point["vector"], f"Vector of point {point['id']}")

        documents = [build_document(self.index_name, self.workspace_path, p) for p in points]
        try:
            self._ensure_connected()
            self._extend_path_depth(max(depth for _, _, depth in documents))
            pipeline = self._client.pipeline()
            for key, mapping, _ in documents:
                pipeline.delete(key)
                pipeline.hset(key, mapping=mapping)
            pipeline.execute()
        except Exception as e:
            log_event(
                "ERROR",
                "points_upsert_failed",
                index=self.index_name,
                count=len(points),
                error=str(e),
            )
            raise
        log_event("DEBUG", "points_upserted", index=self.index_name, count=len(points))

    def search(
        self,
        query_vector: list[float],
        directory_prefix: str | None = None,
        min_score: float | None = None,
        max_results: int | None = None,
    ) -> list[VectorStoreSearchResult]:
        """
        Finds the stored chunks closest to `query_vector`.

        Args:
            query_vector: The query embedding.
            directory_prefix: Restrict hits to files under this directory.
            min_score: Drop hits scoring lower (defaults to SEARCH_MIN_SCORE).
            max_results: Neighbours to request (defaults to SEARCH_MAX_RESULTS,
                clamped to 1-10000).

        Returns:
            Hits ordered by descending score. A prefix deeper than any path
            the index declares matches nothing.
        """
        self._check_dimension(query_vector, "Query vector")
        if min_score is None:
            min_score = self._config.search_min_score
        if max_results is None:
            max_results = self._config.search_max_results
        max_results = max(1, min(max_results, _MAX_RESULTS_LIMIT))
        segments = directory_prefix_segments(self.workspace_path, directory_prefix)

        try:
            self._ensure_connected()
            if len(segments) > self._indexed_depth:
                self._refresh_path_depth()
                if len(segments) > self._indexed_depth:
                    return []
            reply = self._client.execute_command(
                *q.knn_search_args(
                    self.index_name,
                    encode_vector(query_vector),
                    segments,
                    max_results,
                )
            )
            documents = q.parse_search_reply(reply)
        except Exception as e:
            log_event("ERROR", "search_failed", index=self.index_name, error=str(e))
            raise

        results: list[VectorStoreSearchResult] = []
        for key, fields in documents:
            distance = fields.get(q.SCORE_FIELD)
            if distance is None:
                continue
            score = q.score_from_distance(float(distance), self._distance_metric)
            if score < min_score:
                continue
            results.append(
                {
                    "id": point_id_from_key(self.index_name, key),
                    "score": score,
                    "payload": self._load_payload(fields.get(PAYLOAD_FIELD)),
                }
            )
        results.sort(key=lambda result: result["score"], reverse=True)
        return results

    @staticmethod
    def _load_payload(raw: Any) -> dict[str, Any]:
        if not raw:
            return {}
        payload = json.loads(raw)
        return payload if isinstance(payload, dict) else {}

    def delete_points_by_file_path(self, file_path: str) -> None:
        self.delete_points_by_multiple_file_paths([file_path])

    def delete_points_by_multiple_file_paths(self, file_paths: list[str]) -> None:
        """
        Deletes every chunk of the given files.

        Paths may be absolute or workspace-relative; both resolve to the form
        stored in the `filePath` tag.
        """
        if not file_paths:
            return

        relative_paths = sorted(
            {to_workspace_relative(self.workspace_path, path) for path in file_paths}
        )
        search = q.key_search_args(
            self.index_name,
            q.build_file_path_query(relative_paths),
            self._config.delete_batch_size,
        )
        deleted = 0
        try:
            self._ensure_connected()
            while True:
                keys = q.parse_key_reply(self._client.execute_command(*search))
                if not keys:
                    break
                removed = self._client.delete(*keys)
                deleted += removed
                if removed == 0:
                    break
        except Exception as e:
            log_event(
                "ERROR",
                "points_delete_failed",
                index=self.index_name,
                file_paths=relative_paths,
                error=str(e),
            )
            raise
        log_event(
            "INFO",
            "points_deleted",
            index=self.index_name,
            file_count=len(relative_paths),
            count=deleted,
        )

    def clear_collection(self) -> None:
        """Deletes every document of the workspace and keeps the index."""
        batch_size = self._config.delete_batch_size
        deleted = 0
        try:
            self._ensure_connected()
            batch: list[bytes] = []
            for key in self._client.scan_iter(match=f"{key_prefix(self.index_name)}*", count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += self._client.delete(*batch)
                    batch = []
            if batch:
                deleted += self._client.delete(*batch)
        except Exception as e:
            log_event("ERROR", "collection_clear_failed", index=self.index_name, error=str(e))
            raise
        log_event("INFO", "collection_cleared", index=self.index_name, count=deleted)

    def _drop_index(self) -> None:
        self.clear_collection()
        self._client.execute_command("FT.DROPINDEX", self.index_name)
        log_event("INFO", "index_dropped", index=self.index_name)

    def delete_collection(self) -> None:
        """Deletes the workspace documents and drops the index, if it exists."""
        try:
            if self.collection_exists():
                self._drop_index()
        except Exception as e:
            log_event("ERROR", "collection_delete_failed", index=self.index_name, error=str(e))
            raise

    def collection_exists(self) -> bool:
        """
        Tells whether the workspace index exists.

        Raises:
            redis.exceptions.RedisError: Any engine failure other than
                "index not found".
        """
        self._ensure_connected()
        try:
            self._client.execute_command("FT.INFO", self.index_name)
        except redis.exceptions.ResponseError as e:
            if is_missing_index_error(e):
                return False
            raise
        return True

    def destroy(self) -> None:
        """Closes the connection. The store reconnects if used again."""
        self._client.close()
        self._connected = False
        log_event("DEBUG", "valkey_disconnected", index=self.index_name)
