"""Neighbourhood traversal and folder hierarchy listing."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

from . import config
from .errors import RootFolderMissingError
from .models import (
    BELONGS_TO,
    CONTAINS,
    ContextNode,
    ContextResult,
    DocRef,
    Edge,
    FolderNode,
    HierarchyListing,
    KnowledgeGraph,
    priority_rank,
)
from .paths import segment_depth
from .resolver import build_incoming_index, find_referencing_docs

logger = logging.getLogger(__name__)


def build_child_index(edges: List[Edge], include_members: bool = True) -> Dict[str, List[str]]:
    """Map parent ID -> child IDs.

    ``contains`` edges point parent to child; ``belongs-to`` edges point
    child to parent and are reversed. Pass ``include_members=False`` to
    keep folder nesting only.
    """
    index: Dict[str, List[str]] = {}
    for edge in edges:
        if edge.edge_type == CONTAINS:
            index.setdefault(edge.src, []).append(edge.dst)
        elif include_members and edge.edge_type == BELONGS_TO:
            index.setdefault(edge.dst, []).append(edge.src)
    return index


def _require_root(graph: KnowledgeGraph, root_id: str) -> FolderNode:
    root = graph.folders.get(root_id)
    if root is None:
        raise RootFolderMissingError(root_id)
    return root


def build_context(
    graph: KnowledgeGraph,
    start_id: Optional[str] = None,
    max_depth: int = 1,
) -> ContextResult:
    """Breadth-first neighbourhood of *start_id* with its documentation.

    Args:
        graph:     Graph to traverse.
        start_id:  Node to start from; defaults to the root folder.
        max_depth: Levels of children to expand; ``config.UNLIMITED_DEPTH``
                   walks the whole subtree.

    Returns:
        A :class:`ContextResult`. The start node itself is not listed in
        ``nodes``. Docs are deduplicated, ordered constraint, essential,
        supplementary, and constraint doc IDs are repeated in
        ``constraints``.

    Raises:
        RootFolderMissingError: If *start_id* is omitted and the graph has
            no root folder.
    """
    if start_id is None:
        start_id = _require_root(graph, config.ROOT_FOLDER_NAME).id

    unlimited = max_depth == config.UNLIMITED_DEPTH
    child_index = build_child_index(graph.edges)
    incoming = build_incoming_index(graph.edges)

    result = ContextResult(root_id=start_id)
    docs: Dict[str, DocRef] = {}
    visited: Set[str] = set()
    queue: Deque[Tuple[str, int]] = deque([(start_id, 0)])

    while queue:
        node_id, depth = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)

        node = graph.find_node(node_id)
        if node is None:
            logger.debug("Skipping dangling node '%s'", node_id)
            continue
        if node.node_type == "doc":
            continue

        if depth > 0:
            result.nodes.append(
                ContextNode(
                    id=node_id,
                    node_type=node.node_type,
                    desc=node.desc,
                    path=node.location,
                    depth=depth,
                )
            )

        for doc in find_referencing_docs(incoming.get(node_id, []), graph):
            if doc.node_id not in docs:
                docs[doc.node_id] = doc
                if doc.priority == "constraint":
                    result.constraints.append(doc.node_id)

        if unlimited or depth < max_depth:
            for child_id in child_index.get(node_id, []):
                if child_id not in visited:
                    queue.append((child_id, depth + 1))

    result.docs = sorted(docs.values(), key=lambda d: priority_rank(d.priority))
    logger.debug(
        "Context for '%s' (depth %d): %d nodes, %d docs",
        start_id, max_depth, len(result.nodes), len(result.docs),
    )
    return result


def list_hierarchy(
    graph: KnowledgeGraph,
    root_id: str = config.ROOT_FOLDER_NAME,
    max_depth: int = 1,
) -> HierarchyListing:
    """Folder tree under *root_id* plus every essential doc.

    A folder's children are listed only while the folder's own path has
    fewer than *max_depth* segments, so depth follows the filesystem
    rather than the number of ``contains`` hops.

    Raises:
        RootFolderMissingError: If *root_id* is not a folder in the graph.
    """
    _require_root(graph, root_id)

    child_index = build_child_index(graph.edges, include_members=False)
    folders: List[FolderNode] = []
    visited: Set[str] = set()
    stack = [root_id]

    while stack:
        folder_id = stack.pop()
        if folder_id in visited:
            continue
        visited.add(folder_id)

        folder = graph.folders.get(folder_id)
        if folder is None:
            continue
        folders.append(folder)

        if max_depth != config.UNLIMITED_DEPTH and segment_depth(folder.path or ".") >= max_depth:
            continue
        stack.extend(reversed(child_index.get(folder_id, [])))

    folders.sort(key=lambda f: f.path or "")

    essential = [
        DocRef(node_id=doc_id, explains=doc.explains, file_path=doc.file_path, priority=doc.priority)
        for doc_id, doc in graph.docs.items()
        if doc.priority == "essential"
    ]
    essential.sort(key=lambda d: d.file_path)

    return HierarchyListing(root=root_id, folders=folders, essential_docs=essential)
