"""Identifier resolution and edge helpers.

:func:`resolve_node` maps free user input (a node ID, a filesystem-style
path, or a path somewhere below a known folder) to a graph node. The
edge helpers answer the small structural questions every query command
asks: incoming/outgoing edges, referencing docs, parent node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import (
    BELONGS_TO,
    CONTAINS,
    REFERENCES,
    AnyNode,
    DocRef,
    Edge,
    FolderNode,
    KnowledgeGraph,
    ResolvedNode,
)
from .paths import is_within, normalize_path, segment_depth


@dataclass
class NodeEdges:
    incoming: List[Edge] = field(default_factory=list)
    outgoing: List[Edge] = field(default_factory=list)


def resolve_node(graph: KnowledgeGraph, identifier: str) -> Optional[ResolvedNode]:
    """Resolve *identifier* to a node, or ``None`` when nothing fits.

    Strategies, first success wins:

    1. exact ID, scanning folders, modules, exports, terms, docs
    2. exact path: folder declared paths, module then export resolved
       paths, doc file paths (case-sensitive, separators normalised)
    3. nearest parent: the deepest folder whose path equals or contains
       the identifier; the root folder only answers for ``.`` itself
    """
    for _, nodes in graph.categories():
        node = nodes.get(identifier)
        if node is not None:
            return ResolvedNode(id=identifier, node=node, resolved_via="id")

    normalized = normalize_path(identifier)

    for node_id, folder in graph.folders.items():
        if folder.path and normalize_path(folder.path) == normalized:
            return ResolvedNode(id=node_id, node=folder, resolved_via="path")

    for nodes in (graph.modules, graph.exports):
        for node_id, node in nodes.items():
            if node.resolved_path and normalize_path(node.resolved_path) == normalized:
                return ResolvedNode(id=node_id, node=node, resolved_via="path")

    for node_id, doc in graph.docs.items():
        if normalize_path(doc.file_path) == normalized:
            return ResolvedNode(id=node_id, node=doc, resolved_via="path")

    parent = nearest_parent_folder(graph, normalized)
    if parent is not None:
        return ResolvedNode(id=parent.id, node=parent, resolved_via="nearest-parent")

    return None


def nearest_parent_folder(graph: KnowledgeGraph, path: str) -> Optional[FolderNode]:
    """Deepest folder whose declared (or resolved) path contains *path*; ties go to the smallest ID."""
    normalized = normalize_path(path)
    best: Optional[FolderNode] = None
    best_depth = -1
    for folder in graph.folders.values():
        folder_path = folder.location
        if not folder_path:
            continue
        folder_path = normalize_path(folder_path)
        if folder_path == "." and normalized != ".":
            continue
        if not is_within(folder_path, normalized):
            continue
        depth = segment_depth(folder_path)
        if depth > best_depth or (depth == best_depth and best is not None and folder.id < best.id):
            best = folder
            best_depth = depth
    return best


# ------------------------------------------------------------------
# Edge helpers
# ------------------------------------------------------------------


def get_node_edges(edges: List[Edge], node_id: str) -> NodeEdges:
    result = NodeEdges()
    for edge in edges:
        if edge.dst == node_id:
            result.incoming.append(edge)
        if edge.src == node_id:
            result.outgoing.append(edge)
    return result


def build_incoming_index(edges: List[Edge]) -> Dict[str, List[Edge]]:
    """Map node ID -> incoming edges, for repeated lookups during traversal."""
    index: Dict[str, List[Edge]] = {}
    for edge in edges:
        index.setdefault(edge.dst, []).append(edge)
    return index


def find_referencing_docs(incoming: List[Edge], graph: KnowledgeGraph) -> List[DocRef]:
    """Docs pointing at a node through ``references`` edges; dangling edges are skipped."""
    docs: List[DocRef] = []
    for edge in incoming:
        if edge.edge_type != REFERENCES:
            continue
        doc = graph.docs.get(edge.src)
        if doc is None:
            continue
        docs.append(
            DocRef(
                node_id=edge.src,
                explains=doc.explains,
                file_path=doc.file_path,
                priority=doc.priority,
                content=doc.content,
            )
        )
    return docs


def find_parent(edges: NodeEdges, graph: KnowledgeGraph) -> Optional[AnyNode]:
    """Structural parent: the ``belongs-to`` target, else the ``contains`` source."""
    parent_edge = next((e for e in edges.outgoing if e.edge_type == BELONGS_TO), None)
    if parent_edge is not None:
        parent_id = parent_edge.dst
    else:
        parent_edge = next((e for e in edges.incoming if e.edge_type == CONTAINS), None)
        if parent_edge is None:
            return None
        parent_id = parent_edge.src
    return graph.folders.get(parent_id) or graph.modules.get(parent_id)


def find_children(edges: NodeEdges, graph: KnowledgeGraph) -> List[AnyNode]:
    """Structural children: ``belongs-to`` sources, then ``contains`` targets."""
    children: List[AnyNode] = []
    for edge in edges.incoming:
        if edge.edge_type == BELONGS_TO:
            child = graph.find_node(edge.src)
            if child is not None:
                children.append(child)
    for edge in edges.outgoing:
        if edge.edge_type == CONTAINS:
            child = graph.folders.get(edge.dst)
            if child is not None:
                children.append(child)
    return children
