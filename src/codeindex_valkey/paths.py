"""
Workspace path normalization.

Documents are tagged with the workspace-relative POSIX form of their file
path, plus one tag per directory component ("path segments"). Upserts,
deletes and directory-prefix filters all go through the same normalization
here so that they agree on what a path looks like.
"""

from __future__ import annotations

import os
import posixpath


def to_workspace_relative(workspace_path: str, file_path: str) -> str:
    """
    Resolves `file_path` against the workspace and returns its relative form.

    Paths outside the workspace keep their normalized absolute form.

    Example:
        >>> to_workspace_relative("/repo", "/repo/src/./utils/../main.py")
        'src/main.py'
    """
    absolute = os.path.normpath(os.path.join(workspace_path, file_path))
    relative = os.path.relpath(absolute, os.path.normpath(workspace_path))
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        return absolute.replace(os.sep, "/")
    return relative.replace(os.sep, "/")


def path_segments(relative_path: str) -> list[str]:
    """Splits a normalized POSIX path into its non-empty components."""
    return [segment for segment in relative_path.split("/") if segment and segment != "."]


def directory_prefix_segments(workspace_path: str, directory_prefix: str | None) -> list[str]:
    """
    Returns the path segments a directory-prefix filter must match.

    `None`, an empty string, `.` and `./` all mean "the whole workspace" and
    produce no segments.
    """
    if directory_prefix is None:
        return []
    prefix = directory_prefix.strip()
    if not prefix or posixpath.normpath(prefix.replace(os.sep, "/")) == ".":
        return []
    return path_segments(to_workspace_relative(workspace_path, prefix))
