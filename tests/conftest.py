"""Pytest configuration for codeindex_valkey tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock

import pytest

from codeindex_valkey.config import VectorStoreConfig, reset_config
from codeindex_valkey.probes import clear_probe_cache
from codeindex_valkey.vector import ValkeySearchVectorStore


@pytest.fixture(autouse=True)
def reset_config_for_tests() -> Generator[None, None, None]:
    """Reset config and probe cache before and after each test."""
    reset_config()
    clear_probe_cache()
    yield
    reset_config()
    clear_probe_cache()


@pytest.fixture
def workspace_path() -> str:
    """Standard test workspace root."""
    return "/test/workspace"


@pytest.fixture
def store_config() -> VectorStoreConfig:
    """Small, fast settings: 3-dim vectors, 3 declared path segments."""
    return VectorStoreConfig(
        _env_file=None,
        vector_size=3,
        path_segment_depth=3,
        connect_retry_delay_ms=10,
        connect_max_attempts=2,
        delete_batch_size=2,
    )


@pytest.fixture
def mock_client() -> MagicMock:
    """A stand-in for `redis.Redis` that answers PING."""
    client = MagicMock()
    client.ping.return_value = True
    client.execute_command.return_value = b"OK"
    client.scan_iter.return_value = iter([])
    return client


@pytest.fixture
def store(
    workspace_path: str, store_config: VectorStoreConfig, mock_client: MagicMock
) -> ValkeySearchVectorStore:
    return ValkeySearchVectorStore(
        workspace_path,
        "http://localhost:6379",
        3,
        config=store_config,
        client=mock_client,
    )


@pytest.fixture
def info_reply() -> Callable[..., list[Any]]:
    """Builds an FT.INFO reply in the RediSearch (RESP2) layout."""

    def _build(index_name: str, dimension: int, depth: int) -> list[Any]:
        attributes: list[Any] = [
            [
                b"identifier", b"vector",
                b"attribute", b"vector",
                b"type", b"VECTOR",
                b"algorithm", b"HNSW",
                b"data_type", b"FLOAT32",
                b"dim", dimension,
                b"distance_metric", b"COSINE",
            ],
            [b"identifier", b"filePath", b"attribute", b"filePath", b"type", b"TAG"],
            [b"identifier", b"startLine", b"attribute", b"startLine", b"type", b"NUMERIC"],
        ]
        for position in range(depth):
            name = f"pathSegments_{position}".encode()
            attributes.append([b"identifier", name, b"attribute", name, b"type", b"TAG"])
        return [
            b"index_name", index_name.encode(),
            b"index_definition", [b"key_type", b"HASH", b"prefixes", [f"{index_name}:".encode()]],
            b"attributes", attributes,
            b"num_docs", b"0",
        ]

    return _build
