"""Path helpers shared by the graph builder and the node resolver.

All comparisons run on POSIX-style relative paths. Matching is
case-sensitive and segment-aware: ``src/api`` contains
``src/api/handler.ts`` but not ``src/apiary/x.ts``. The root path ``.``
contains every relative path that does not escape upwards.
"""

from __future__ import annotations

import posixpath
from typing import Iterable


def normalize_path(path: str) -> str:
    """Convert separators to ``/``, collapse ``.``/``..`` and strip one leading ``/``."""
    posix = path.replace("\\", "/")
    if not posix:
        return "."
    normalized = posixpath.normpath(posix)
    if normalized.startswith("/"):
        normalized = normalized[1:]
    return normalized or "."


def segment_depth(path: str) -> int:
    """Number of path segments; the root path ``.`` has depth 0."""
    normalized = normalize_path(path)
    if normalized == ".":
        return 0
    return len([segment for segment in normalized.split("/") if segment])


def _escapes(path: str) -> bool:
    return path == ".." or path.startswith("../")


def is_within(parent: str, child: str, strict: bool = False) -> bool:
    """Return True if *child* lies inside *parent*.

    Args:
        parent: Candidate ancestor path.
        child:  Candidate descendant path.
        strict: When True, a path is not considered within itself.
    """
    parent = normalize_path(parent)
    child = normalize_path(child)

    if child == parent:
        return not strict
    if parent == ".":
        return not _escapes(child)
    return child.startswith(parent + "/")


def strip_source_extension(path: str, extensions: Iterable[str]) -> str:
    """Drop a known source-file extension so ``a/b.ts`` and ``a/b.tsx`` compare equal."""
    for ext in sorted(extensions, key=len, reverse=True):
        if path.endswith(ext):
            return path[: -len(ext)]
    return path
