"""
Index and Document Layout for the Valkey Search Vector Store.

Every workspace gets its own search index. Documents are Redis hashes under
the key prefix `{indexName}:`, so an index only ever sees its workspace's
chunks, and a `SCAN` on the prefix finds everything that belongs to it.

Hash fields of a document:

    vector            FLOAT32 little-endian bytes          VECTOR (HNSW)
    payload           JSON payload incl. `pathSegments`    (not indexed)
    filePath          workspace-relative POSIX path        TAG
    startLine         first line of the chunk              NUMERIC
    endLine           last line of the chunk               NUMERIC
    pathSegments_N    N-th directory component of path     TAG

Key Design Principles:
- **Deterministic Index Names**: the index name is derived from a SHA256 hash
  of the workspace path, so reopening a workspace finds its index again.
- **Growable Path Depth**: a fixed number of `pathSegments_N` fields is
  declared up front; deeper paths extend the schema with FT.ALTER.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

import numpy as np

from codeindex_valkey.paths import path_segments, to_workspace_relative
from codeindex_valkey.vector.interfaces import VectorPoint

VECTOR_FIELD = "vector"
PAYLOAD_FIELD = "payload"
FILE_PATH_FIELD = "filePath"
START_LINE_FIELD = "startLine"
END_LINE_FIELD = "endLine"
PATH_SEGMENT_FIELD_PREFIX = "pathSegments_"

# File paths and directory names may contain commas, the default TAG separator.
FILE_PATH_TAG_SEPARATOR = "|"

_DIMENSION_KEYS = ("dim", "dimensions")


@dataclass(frozen=True)
class IndexInfo:
    """The parts of an FT.INFO reply the store cares about."""

    name: str
    dimension: int | None
    path_segment_depth: int


def index_name_for(workspace_path: str) -> str:
    """
    Derives the index name of a workspace.

    Example:
        >>> name = index_name_for("/home/dev/project")
        >>> name.startswith("ws-"), len(name)
        (True, 19)
    """
    digest = hashlib.sha256(workspace_path.encode("utf-8")).hexdigest()
    return f"ws-{digest[:16]}"


def key_prefix(index_name: str) -> str:
    return f"{index_name}:"


def document_key(index_name: str, point_id: str) -> str:
    return f"{index_name}:{point_id}"


def point_id_from_key(index_name: str, key: str) -> str:
    prefix = key_prefix(index_name)
    return key[len(prefix):] if key.startswith(prefix) else key


def path_segment_field(position: int) -> str:
    return f"{PATH_SEGMENT_FIELD_PREFIX}{position}"


def decode(value: Any) -> Any:
    """Decodes a bytes reply element; other values pass through."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def encode_vector(vector: list[float]) -> bytes:
    """Packs an embedding the way a FLOAT32 vector field expects it."""
    return np.asarray(vector, dtype="<f4").tobytes()


def _path_segment_schema(position: int) -> list[str]:
    return [
        path_segment_field(position),
        "TAG",
        "SEPARATOR",
        FILE_PATH_TAG_SEPARATOR,
        "CASESENSITIVE",
    ]


def create_index_args(
    index_name: str,
    vector_size: int,
    distance_metric: str,
    path_segment_depth: int,
) -> list[str | int]:
    """
    Builds the FT.CREATE command for a workspace index.

    Args:
        index_name: Name of the index (see `index_name_for`).
        vector_size: Dimensionality of the vector field.
        distance_metric: "COSINE", "L2" or "IP".
        path_segment_depth: How many `pathSegments_N` fields to declare.

    Returns:
        The full command, ready for `execute_command(*args)`.
    """
    args: list[str | int] = [
        "FT.CREATE",
        index_name,
        "ON",
        "HASH",
        "PREFIX",
        1,
        key_prefix(index_name),
        "SCHEMA",
        VECTOR_FIELD,
        "VECTOR",
        "HNSW",
        6,
        "TYPE",
        "FLOAT32",
        "DIM",
        vector_size,
        "DISTANCE_METRIC",
        distance_metric,
        FILE_PATH_FIELD,
        "TAG",
        "SEPARATOR",
        FILE_PATH_TAG_SEPARATOR,
        "CASESENSITIVE",
        START_LINE_FIELD,
        "NUMERIC",
        END_LINE_FIELD,
        "NUMERIC",
    ]
    for position in range(path_segment_depth):
        args.extend(_path_segment_schema(position))
    return args


def alter_index_args(index_name: str, position: int) -> list[str]:
    """Builds the FT.ALTER command that declares one more path segment field."""
    return [
        "FT.ALTER",
        index_name,
        "SCHEMA",
        "ADD",
        *_path_segment_schema(position),
    ]


def _pairs(reply: Any) -> list[tuple[str, Any]]:
    # RESP2 replies are flat [key, value, key, value, ...] lists; RESP3 ones are dicts.
    if isinstance(reply, dict):
        return [(str(decode(k)), v) for k, v in reply.items()]
    if isinstance(reply, (list, tuple)):
        return [(str(decode(reply[i])), reply[i + 1]) for i in range(0, len(reply) - 1, 2)]
    return []


def _find_dimension(attribute: Any) -> int | None:
    for key, value in _pairs(attribute):
        if key.lower() in _DIMENSION_KEYS:
            return int(decode(value))
        if isinstance(value, (list, tuple, dict)):
            found = _find_dimension(value)
            if found is not None:
                return found
    return None


def parse_index_info(index_name: str, reply: Any) -> IndexInfo:
    """
    Extracts the vector dimension and declared path depth from FT.INFO.

    Both the RediSearch and the valkey-search reply layouts are understood:
    the dimension is reported as `dim` by the former and as `dimensions`
    (nested under `index`) by the latter.
    """
    attributes: list[Any] = []
    for key, value in _pairs(reply):
        if key == "attributes":
            attributes = list(value or [])

    dimension: int | None = None
    declared_positions: set[int] = set()
    for attribute in attributes:
        fields = dict(_pairs(attribute))
        name = str(decode(fields.get("attribute", fields.get("identifier", ""))))
        if name == VECTOR_FIELD:
            dimension = _find_dimension(attribute)
        elif name.startswith(PATH_SEGMENT_FIELD_PREFIX):
            suffix = name[len(PATH_SEGMENT_FIELD_PREFIX):]
            if suffix.isdigit():
                declared_positions.add(int(suffix))

    depth = 0
    while depth in declared_positions:
        depth += 1
    return IndexInfo(name=index_name, dimension=dimension, path_segment_depth=depth)


def build_document(
    index_name: str,
    workspace_path: str,
    point: VectorPoint,
) -> tuple[str, dict[str, bytes | str | int | float], int]:
    """
    Turns a point into a document key and its hash fields.

    The payload's `filePath` is stored workspace-relative in the `filePath`
    tag, split into `pathSegments_N` tags, and mirrored into the payload as a
    `pathSegments` object (`{"0": "src", "1": "utils", ...}`).

    Returns:
        Tuple of (key, mapping, path depth).
    """
    payload = dict(point.get("payload") or {})
    mapping: dict[str, bytes | str | int | float] = {
        VECTOR_FIELD: encode_vector(point["vector"]),
    }

    segments: list[str] = []
    file_path = payload.get(FILE_PATH_FIELD)
    if file_path:
        relative = to_workspace_relative(workspace_path, str(file_path))
        segments = path_segments(relative)
        payload["pathSegments"] = {str(i): segment for i, segment in enumerate(segments)}
        mapping[FILE_PATH_FIELD] = relative
        for position, segment in enumerate(segments):
            mapping[path_segment_field(position)] = segment

    for field in (START_LINE_FIELD, END_LINE_FIELD):
        value = payload.get(field)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            mapping[field] = value

    mapping[PAYLOAD_FIELD] = json.dumps(payload, separators=(",", ":"))
    return document_key(index_name, str(point["id"])), mapping, len(segments)
