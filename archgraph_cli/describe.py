"""JSON-ready views of single nodes for the ``pick`` and ``select`` commands."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Set

from .models import (
    BELONGS_TO,
    CONTAINS,
    REFERENCES,
    AnyNode,
    BestMatch,
    DocNode,
    ExportNode,
    FolderNode,
    KnowledgeGraph,
    ModuleNode,
    TermNode,
)
from .resolver import (
    NodeEdges,
    find_children,
    find_parent,
    find_referencing_docs,
    get_node_edges,
    resolve_node,
)

CONCISE_EXCERPT_CHARS = 100
FULL_EXCERPT_CHARS = 200
CONCISE_MAX_DOCS = 3
FULL_MAX_DOCS = 10
CONCISE_MAX_FILES = 5
FULL_MAX_FILES = 15


def _brief(node: AnyNode) -> Dict[str, Any]:
    return {"id": node.id, "type": node.node_type, "desc": node.desc}


def _located(node: AnyNode) -> Dict[str, Any]:
    return {"id": node.id, "desc": node.desc, "path": node.location}


def _referencing_docs(edges: NodeEdges, graph: KnowledgeGraph) -> List[Dict[str, Any]]:
    return [doc.to_dict(include_content=True) for doc in find_referencing_docs(edges.incoming, graph)]


# ------------------------------------------------------------------
# pick
# ------------------------------------------------------------------


def _describe_folder(folder: FolderNode, edges: NodeEdges, graph: KnowledgeGraph) -> Dict[str, Any]:
    parent = find_parent(edges, graph)
    child_folders = [
        _located(graph.folders[e.dst])
        for e in edges.outgoing
        if e.edge_type == CONTAINS and e.dst in graph.folders
    ]
    modules: List[Dict[str, Any]] = []
    exports: List[Dict[str, Any]] = []
    for edge in edges.incoming:
        if edge.edge_type != BELONGS_TO:
            continue
        if edge.src in graph.modules:
            modules.append(_located(graph.modules[edge.src]))
        elif edge.src in graph.exports:
            exports.append(_located(graph.exports[edge.src]))

    return {
        "node": {"id": folder.id, "desc": folder.desc, "path": folder.path},
        "parent": _brief(parent) if parent else None,
        "childFolders": child_folders,
        "modules": modules,
        "exports": exports,
        "referencingDocs": _referencing_docs(edges, graph),
    }


def _describe_module(module: ModuleNode, edges: NodeEdges, graph: KnowledgeGraph) -> Dict[str, Any]:
    parent_folder = None
    for edge in edges.outgoing:
        if edge.edge_type == BELONGS_TO and edge.dst in graph.folders:
            parent_folder = _located(graph.folders[edge.dst])
            break

    exports = [
        {
            "id": e.src,
            "desc": graph.exports[e.src].desc,
            "typeSignature": graph.exports[e.src].type_signature,
        }
        for e in edges.incoming
        if e.edge_type == BELONGS_TO and e.src in graph.exports
    ]
    return {
        "node": {
            "id": module.id,
            "desc": module.desc,
            "typeSignature": module.type_signature,
            "resolvedPath": module.resolved_path,
        },
        "parentFolder": parent_folder,
        "exports": exports,
        "referencingDocs": _referencing_docs(edges, graph),
    }


def _describe_export(export: ExportNode, edges: NodeEdges, graph: KnowledgeGraph) -> Dict[str, Any]:
    parent = find_parent(edges, graph)
    return {
        "node": {
            "id": export.id,
            "desc": export.desc,
            "typeSignature": export.type_signature,
            "resolvedPath": export.resolved_path,
        },
        "parent": _brief(parent) if parent else None,
        "referencingDocs": _referencing_docs(edges, graph),
    }


def _describe_term(term: TermNode, edges: NodeEdges, graph: KnowledgeGraph) -> Dict[str, Any]:
    return {
        "node": {"id": term.id, "desc": term.desc},
        "referencingDocs": _referencing_docs(edges, graph),
    }


def _describe_doc(doc: DocNode, edges: NodeEdges, graph: KnowledgeGraph) -> Dict[str, Any]:
    referenced = []
    for edge in edges.outgoing:
        if edge.edge_type != REFERENCES:
            continue
        target = (
            graph.folders.get(edge.dst)
            or graph.modules.get(edge.dst)
            or graph.exports.get(edge.dst)
            or graph.terms.get(edge.dst)
        )
        if target is not None:
            referenced.append(_brief(target))
    return {
        "node": {
            "id": doc.id,
            "explains": doc.explains,
            "filePath": doc.file_path,
            "format": doc.format,
            "priority": doc.priority,
        },
        "referencedNodes": referenced,
    }


_DESCRIBERS: Dict[str, Callable[[Any, NodeEdges, KnowledgeGraph], Dict[str, Any]]] = {
    "folder": _describe_folder,
    "module": _describe_module,
    "export": _describe_export,
    "term": _describe_term,
    "doc": _describe_doc,
}


def describe_node(graph: KnowledgeGraph, identifier: str) -> Optional[Dict[str, Any]]:
    """Resolve *identifier* and describe the node and its direct neighbours.

    Returns ``None`` when the identifier does not resolve.
    """
    resolved = resolve_node(graph, identifier)
    if resolved is None:
        return None

    edges = get_node_edges(graph.edges, resolved.id)
    payload: Dict[str, Any] = {
        "type": resolved.node.node_type,
        "resolvedVia": resolved.resolved_via,
    }
    payload.update(_DESCRIBERS[resolved.node.node_type](resolved.node, edges, graph))
    return payload


# ------------------------------------------------------------------
# select
# ------------------------------------------------------------------


def _excerpt(content: str, length: int) -> str:
    text = " ".join(content[:length].split())
    if len(content) > length:
        text += "..."
    return text


def _primary_file(node: AnyNode) -> Optional[str]:
    resolved_path = getattr(node, "resolved_path", None)
    if resolved_path:
        return resolved_path
    if isinstance(node, DocNode):
        return node.file_path
    return getattr(node, "path", None)


def _member_ids(node_id: str, edges: NodeEdges, graph: KnowledgeGraph) -> List[str]:
    """Sub-folders, members, and exports of member modules of a folder."""
    members: List[str] = [e.dst for e in edges.outgoing if e.edge_type == CONTAINS]
    members.extend(e.src for e in edges.incoming if e.edge_type == BELONGS_TO)
    module_ids = [m for m in members if m in graph.modules]
    for module_id in module_ids:
        members.extend(
            e.src for e in graph.edges if e.edge_type == BELONGS_TO and e.dst == module_id
        )
    return list(dict.fromkeys(members))


def _match_docs(
    node: AnyNode, edges: NodeEdges, graph: KnowledgeGraph, concise: bool
) -> List[Dict[str, Any]]:
    length = CONCISE_EXCERPT_CHARS if concise else FULL_EXCERPT_CHARS
    limit = CONCISE_MAX_DOCS if concise else FULL_MAX_DOCS
    docs: List[Dict[str, Any]] = []
    seen: Set[str] = set()

    def add(doc: DocNode) -> None:
        docs.append({"id": doc.id, "filePath": doc.file_path, "excerpt": _excerpt(doc.content, length)})
        seen.add(doc.id)

    if isinstance(node, DocNode):
        add(node)

    for edge in edges.incoming:
        if len(docs) >= limit:
            break
        if edge.edge_type == REFERENCES and edge.src not in seen and edge.src in graph.docs:
            add(graph.docs[edge.src])

    if node.node_type == "folder":
        for member_id in _member_ids(node.id, edges, graph):
            if len(docs) >= limit:
                break
            for edge in graph.edges:
                if len(docs) >= limit:
                    break
                if (
                    edge.edge_type == REFERENCES
                    and edge.dst == member_id
                    and edge.src not in seen
                    and edge.src in graph.docs
                ):
                    add(graph.docs[edge.src])
    return docs


def _match_files(node: AnyNode, edges: NodeEdges, graph: KnowledgeGraph, concise: bool) -> List[str]:
    limit = CONCISE_MAX_FILES if concise else FULL_MAX_FILES
    files: List[str] = []
    primary = _primary_file(node)
    if primary:
        files.append(primary)

    for edge in edges.incoming + edges.outgoing:
        if len(files) >= limit:
            break
        related_id = edge.dst if edge.src == node.id else edge.src
        related = graph.find_node(related_id)
        if related is None:
            continue
        path = _primary_file(related)
        if path and path not in files:
            files.append(path)
    return files


def summarize_match(graph: KnowledgeGraph, best: BestMatch, concise: bool = True) -> Optional[Dict[str, Any]]:
    """Expand a best match into the ``select`` payload, or ``None`` if nothing matched.

    The payload names the match and its confidence, its structural parent
    and children, excerpts of related docs, related source files, and
    alternative suggestions when the match is weak. *concise* caps the
    number of docs and files and shortens excerpts.
    """
    if best.match is None:
        return None

    node = best.match.node
    edges = get_node_edges(graph.edges, best.match.id)
    parent = find_parent(edges, graph)
    return {
        "match": {
            "id": best.match.id,
            "type": node.node_type,
            "desc": node.desc,
            "confidence": best.confidence,
        },
        "parent": _brief(parent) if parent else None,
        "children": [_brief(child) for child in find_children(edges, graph)],
        "docs": _match_docs(node, edges, graph, concise),
        "files": _match_files(node, edges, graph, concise),
        "suggestions": [str(alt) for alt in best.alternatives],
    }
