"""
Query building and reply parsing for FT.SEARCH.

Two kinds of searches are issued against a workspace index:

- KNN searches, optionally pre-filtered by the `pathSegments_N` tags of a
  directory prefix, returning the payload and the vector distance;
- key lookups by `filePath` tag, returning only document keys (NOCONTENT),
  used to delete the chunks of changed files.

Replies are parsed from their RESP2 shape:
`[total, key, [field, value, ...], key, [field, value, ...], ...]`, or
`[total, key, key, ...]` with NOCONTENT.
"""

from __future__ import annotations

import re
from typing import Any

from codeindex_valkey.vector.schema import (
    FILE_PATH_FIELD,
    PAYLOAD_FIELD,
    VECTOR_FIELD,
    decode,
    path_segment_field,
)

SCORE_FIELD = "vector_score"
QUERY_VECTOR_PARAM = "vec"

# Characters with a meaning in the query syntax; escaped inside tag values.
_TAG_SPECIAL_CHARS = re.compile(r"([,.<>{}\[\]\"':;!@#$%^&*()\-+=~|/\\?`\s])")


def escape_tag_value(value: str) -> str:
    """
    Escapes a value for use inside a `@field:{...}` tag clause.

    Example:
        >>> escape_tag_value("my-app.v2")
        'my\\\\-app\\\\.v2'
    """
    return _TAG_SPECIAL_CHARS.sub(r"\\\1", value)


def build_prefix_filter(segments: list[str]) -> str:
    """
    Builds the filter matching documents under a directory.

    A document is under `src/utils` when its first path segment is `src` and
    its second is `utils`.
    """
    return " ".join(
        f"@{path_segment_field(position)}:{{{escape_tag_value(segment)}}}"
        for position, segment in enumerate(segments)
    )


def build_knn_query(prefix_filter: str, k: int) -> str:
    base = f"({prefix_filter})" if prefix_filter else "*"
    return f"{base}=>[KNN {k} @{VECTOR_FIELD} ${QUERY_VECTOR_PARAM} AS {SCORE_FIELD}]"


def knn_search_args(
    index_name: str,
    query_blob: bytes,
    segments: list[str],
    k: int,
) -> list[Any]:
    """
    Builds the FT.SEARCH command of a nearest-neighbour query.

    Args:
        index_name: The workspace index.
        query_blob: The query vector packed as FLOAT32 bytes.
        segments: Directory-prefix segments to filter on (may be empty).
        k: Number of neighbours to request.
    """
    return [
        "FT.SEARCH",
        index_name,
        build_knn_query(build_prefix_filter(segments), k),
        "PARAMS",
        2,
        QUERY_VECTOR_PARAM,
        query_blob,
        "RETURN",
        2,
        PAYLOAD_FIELD,
        SCORE_FIELD,
        "LIMIT",
        0,
        k,
        "DIALECT",
        2,
    ]


def build_file_path_query(relative_paths: list[str]) -> str:
    values = "|".join(escape_tag_value(path) for path in relative_paths)
    return f"@{FILE_PATH_FIELD}:{{{values}}}"


def key_search_args(index_name: str, query: str, batch_size: int) -> list[Any]:
    """Builds the FT.SEARCH command that lists matching keys only."""
    return ["FT.SEARCH", index_name, query, "NOCONTENT", "LIMIT", 0, batch_size]


def parse_search_reply(reply: Any) -> list[tuple[str, dict[str, Any]]]:
    """
    Splits an FT.SEARCH reply into `(key, fields)` pairs.

    Raises:
        ValueError: If the reply does not have the expected shape.
    """
    if not isinstance(reply, (list, tuple)) or not reply:
        raise ValueError(f"Unexpected FT.SEARCH reply: {reply!r}")

    documents: list[tuple[str, dict[str, Any]]] = []
    rest = list(reply[1:])
    for i in range(0, len(rest) - 1, 2):
        key = str(decode(rest[i]))
        raw_fields = rest[i + 1] or []
        fields = {
            str(decode(raw_fields[j])): decode(raw_fields[j + 1])
            for j in range(0, len(raw_fields) - 1, 2)
        }
        documents.append((key, fields))
    return documents


def parse_key_reply(reply: Any) -> list[str]:
    """
    Extracts the document keys from a NOCONTENT FT.SEARCH reply.

    Raises:
        ValueError: If the reply does not have the expected shape.
    """
    if not isinstance(reply, (list, tuple)) or not reply:
        raise ValueError(f"Unexpected FT.SEARCH reply: {reply!r}")
    return [str(decode(key)) for key in reply[1:]]


def score_from_distance(distance: float, distance_metric: str) -> float:
    """
    Converts a vector distance into a similarity score (higher is closer).

    COSINE and IP distances are `1 - similarity`; L2 distances are mapped to
    `1 / (1 + distance)`.
    """
    if distance_metric == "L2":
        return 1.0 / (1.0 + distance)
    return 1.0 - distance
