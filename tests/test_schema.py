"""Tests for the index schema and document layout."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import numpy as np

from codeindex_valkey.vector.schema import (
    alter_index_args,
    build_document,
    create_index_args,
    document_key,
    index_name_for,
    parse_index_info,
    point_id_from_key,
)


class TestNaming:
    """Test index names and document keys."""

    def test_index_name_is_stable_per_workspace(self) -> None:
        assert index_name_for("/a/project") == index_name_for("/a/project")
        assert index_name_for("/a/project") != index_name_for("/b/project")

    def test_index_name_format(self) -> None:
        name = index_name_for("/a/project")

        assert name.startswith("ws-")
        assert len(name) == 19
        int(name[3:], 16)

    def test_document_key_round_trip(self) -> None:
        key = document_key("ws-1", "chunk:42")

        assert key == "ws-1:chunk:42"
        assert point_id_from_key("ws-1", key) == "chunk:42"
        assert point_id_from_key("ws-1", "other:1") == "other:1"


class TestIndexCommands:
    """Test FT.CREATE and FT.ALTER arguments."""

    def test_create_index_args(self) -> None:
        args = create_index_args("ws-1", 768, "COSINE", 2)

        assert args[:8] == ["FT.CREATE", "ws-1", "ON", "HASH", "PREFIX", 1, "ws-1:", "SCHEMA"]
        assert args[8:18] == [
            "vector", "VECTOR", "HNSW", 6,
            "TYPE", "FLOAT32", "DIM", 768, "DISTANCE_METRIC", "COSINE",
        ]
        assert args[18:23] == ["filePath", "TAG", "SEPARATOR", "|", "CASESENSITIVE"]
        assert args[23:27] == ["startLine", "NUMERIC", "endLine", "NUMERIC"]
        assert args[27:] == [
            "pathSegments_0", "TAG", "SEPARATOR", "|", "CASESENSITIVE",
            "pathSegments_1", "TAG", "SEPARATOR", "|", "CASESENSITIVE",
        ]

    def test_alter_index_args(self) -> None:
        assert alter_index_args("ws-1", 5) == [
            "FT.ALTER", "ws-1", "SCHEMA", "ADD", "pathSegments_5", "TAG", "SEPARATOR", "|",
            "CASESENSITIVE",
        ]


class TestParseIndexInfo:
    """Test reading FT.INFO replies."""

    def test_redisearch_layout(self, info_reply: Callable[..., list[Any]]) -> None:
        info = parse_index_info("ws-1", info_reply("ws-1", 768, 4))

        assert info.name == "ws-1"
        assert info.dimension == 768
        assert info.path_segment_depth == 4

    def test_valkey_search_layout(self) -> None:
        """Test the layout where the dimension is nested under `index`."""
        reply = [
            b"index_name", b"ws-1",
            b"index_definition", [b"key_type", b"HASH", b"prefixes", [b"ws-1:"]],
            b"attributes", [
                [
                    b"identifier", b"vector",
                    b"attribute", b"vector",
                    b"type", b"VECTOR",
                    b"index", [
                        b"capacity", 10000,
                        b"dimensions", 3,
                        b"distance_metric", b"COSINE",
                        b"data_type", b"FLOAT32",
                    ],
                ],
                [b"identifier", b"pathSegments_0", b"attribute", b"pathSegments_0", b"type", b"TAG"],
            ],
        ]

        info = parse_index_info("ws-1", reply)

        assert info.dimension == 3
        assert info.path_segment_depth == 1

    def test_resp3_dict_layout(self) -> None:
        reply = {
            "index_name": "ws-1",
            "attributes": [
                {"identifier": "vector", "attribute": "vector", "type": "VECTOR", "dim": 1536},
                {"identifier": "pathSegments_0", "attribute": "pathSegments_0", "type": "TAG"},
                {"identifier": "pathSegments_1", "attribute": "pathSegments_1", "type": "TAG"},
            ],
        }

        info = parse_index_info("ws-1", reply)

        assert info.dimension == 1536
        assert info.path_segment_depth == 2

    def test_depth_counts_contiguous_fields_only(self) -> None:
        reply = [
            b"attributes", [
                [b"identifier", b"pathSegments_0", b"type", b"TAG"],
                [b"identifier", b"pathSegments_2", b"type", b"TAG"],
            ],
        ]

        info = parse_index_info("ws-1", reply)

        assert info.dimension is None
        assert info.path_segment_depth == 1


class TestBuildDocument:
    """Test the hash written for each point."""

    def test_document_fields(self) -> None:
        key, mapping, depth = build_document(
            "ws-1",
            "/repo",
            {
                "id": "c1",
                "vector": [1.0, 2.0],
                "payload": {"filePath": "/repo/src/a.py", "startLine": 10, "endLine": 20},
            },
        )

        assert key == "ws-1:c1"
        assert depth == 2
        assert np.frombuffer(mapping["vector"], dtype="<f4").tolist() == [1.0, 2.0]
        assert mapping["filePath"] == "src/a.py"
        assert mapping["pathSegments_0"] == "src"
        assert mapping["pathSegments_1"] == "a.py"
        assert mapping["startLine"] == 10
        assert mapping["endLine"] == 20
        assert json.loads(mapping["payload"])["pathSegments"] == {"0": "src", "1": "a.py"}

    def test_point_without_file_path(self) -> None:
        _, mapping, depth = build_document(
            "ws-1", "/repo", {"id": 7, "vector": [0.5], "payload": {"codeChunk": "x"}}
        )

        assert depth == 0
        assert set(mapping) == {"vector", "payload"}
        assert json.loads(mapping["payload"]) == {"codeChunk": "x"}

    def test_non_numeric_lines_are_not_indexed(self) -> None:
        _, mapping, _ = build_document(
            "ws-1",
            "/repo",
            {"id": "c", "vector": [0.5], "payload": {"startLine": True, "endLine": "12"}},
        )

        assert "startLine" not in mapping
        assert "endLine" not in mapping

    def test_input_payload_is_not_mutated(self) -> None:
        payload = {"filePath": "a.py"}

        build_document("ws-1", "/repo", {"id": "c", "vector": [0.5], "payload": payload})

        assert payload == {"filePath": "a.py"}
