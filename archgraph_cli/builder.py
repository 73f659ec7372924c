"""Knowledge graph construction from a vocabulary and documentation units.

Pipeline (order matters, later steps read the node dictionaries filled by
earlier ones):

1. inject the root folder
2. one node per vocabulary entry (folders, modules, exports, terms)
3. one doc node per documentation unit, keyed by its file path
4. ``references`` edges from each unit's declared references
5. ``contains`` edges inferred from folder path nesting
6. ``belongs-to`` edges from modules to their most specific folder
7. ``belongs-to`` edges from exports to the module in the same file,
   falling back to the most specific folder
8. summary stats

The builder reads a frozen snapshot of its inputs and returns a new graph
on every call; there is no incremental mode.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Sequence

from . import config
from .models import (
    BELONGS_TO,
    CONTAINS,
    DEFAULT_DOC_PRIORITY,
    DOC_PRIORITIES,
    REFERENCES,
    DocNode,
    DocumentationUnit,
    Edge,
    ExportNode,
    FolderNode,
    GraphMetadata,
    GraphStats,
    KnowledgeGraph,
    ModuleNode,
    TermNode,
    Vocabulary,
)
from .paths import is_within, normalize_path, segment_depth, strip_source_extension

logger = logging.getLogger(__name__)


def build_graph(
    vocabulary: Vocabulary,
    docs: Sequence[DocumentationUnit],
    base_dir: str,
    generated_at: Optional[str] = None,
    source_extensions: Optional[Iterable[str]] = None,
) -> KnowledgeGraph:
    """Build a complete knowledge graph.

    Args:
        vocabulary:        Pre-merged vocabulary registry.
        docs:              Documentation units referencing the vocabulary.
        base_dir:          Directory all resolved paths are relative to.
        generated_at:      Timestamp to record; defaults to now (UTC, ISO 8601).
        source_extensions: Extensions stripped when pairing exports with
                           modules; defaults to ``config.SOURCE_EXTENSIONS``.

    Returns:
        A new :class:`KnowledgeGraph`. Building twice from the same inputs
        yields identical nodes and edges.
    """
    extensions = tuple(source_extensions or config.SOURCE_EXTENSIONS)
    graph = KnowledgeGraph(
        metadata=GraphMetadata(
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
            version=config.SCHEMA_VERSION,
            root_path=base_dir,
        )
    )

    _add_root_folder(graph)
    _build_folder_nodes(vocabulary, graph)
    _build_module_nodes(vocabulary, graph)
    _build_export_nodes(vocabulary, graph)
    _build_term_nodes(vocabulary, graph)
    _build_doc_nodes(docs, graph)

    graph.edges.extend(_reference_edges(docs, graph))
    graph.edges.extend(_folder_hierarchy_edges(graph))
    graph.edges.extend(_module_membership_edges(graph))
    graph.edges.extend(_export_membership_edges(graph, extensions))

    graph.metadata.stats = compute_stats(graph)
    _log_id_collisions(graph)

    stats = graph.metadata.stats
    logger.info(
        "Built graph: %d folders, %d modules, %d exports, %d terms, %d docs, %d edges",
        stats.folder_count, stats.module_count, stats.export_count,
        stats.term_count, stats.doc_count, stats.edge_count,
    )
    return graph


# ------------------------------------------------------------------
# Nodes
# ------------------------------------------------------------------


def _add_root_folder(graph: KnowledgeGraph) -> None:
    graph.folders[config.ROOT_FOLDER_NAME] = FolderNode(
        id=config.ROOT_FOLDER_NAME,
        desc=config.ROOT_FOLDER_DESC,
        path=".",
        resolved_path=".",
        path_exists=True,
    )


def _build_folder_nodes(vocabulary: Vocabulary, graph: KnowledgeGraph) -> None:
    for name, entry in vocabulary.folders.items():
        if name == config.ROOT_FOLDER_NAME:
            logger.warning("Vocabulary folder '%s' shadows the root folder; ignored", name)
            continue
        graph.folders[name] = FolderNode(
            id=name,
            desc=entry.desc,
            path=entry.path,
            resolved_path=entry.resolved_path,
            path_exists=entry.path_exists,
        )


def _build_module_nodes(vocabulary: Vocabulary, graph: KnowledgeGraph) -> None:
    for name, entry in vocabulary.modules.items():
        graph.modules[name] = ModuleNode(
            id=name,
            desc=entry.desc,
            type_signature=entry.type_signature,
            import_path=entry.import_path,
            resolved_path=entry.resolved_path,
            path_exists=entry.path_exists,
        )


def _build_export_nodes(vocabulary: Vocabulary, graph: KnowledgeGraph) -> None:
    for name, entry in vocabulary.exports.items():
        graph.exports[name] = ExportNode(
            id=name,
            desc=entry.desc,
            type_signature=entry.type_signature,
            import_path=entry.import_path,
            resolved_path=entry.resolved_path,
            path_exists=entry.path_exists,
        )


def _build_term_nodes(vocabulary: Vocabulary, graph: KnowledgeGraph) -> None:
    for name, desc in vocabulary.terms.items():
        graph.terms[name] = TermNode(id=name, desc=desc)


def _build_doc_nodes(docs: Sequence[DocumentationUnit], graph: KnowledgeGraph) -> None:
    for doc in docs:
        priority = doc.priority
        if priority not in DOC_PRIORITIES:
            logger.warning(
                "Doc '%s' has unknown priority '%s'; using '%s'",
                doc.file_path, priority, DEFAULT_DOC_PRIORITY,
            )
            priority = DEFAULT_DOC_PRIORITY
        graph.docs[doc.file_path] = DocNode(
            id=doc.file_path,
            file_path=doc.file_path,
            content=doc.content,
            format=doc.format,
            priority=priority,
            explains=doc.explains,
        )


# ------------------------------------------------------------------
# Edges
# ------------------------------------------------------------------


def _unique(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


def _reference_edges(docs: Sequence[DocumentationUnit], graph: KnowledgeGraph) -> Iterator[Edge]:
    """Doc -> vocabulary edges; names missing from the graph are dropped."""
    for doc in docs:
        refs = doc.references
        targets = (
            (refs.modules, graph.modules),
            (refs.terms, graph.terms),
            (refs.folders, graph.folders),
            (refs.exports, graph.exports),
        )
        for names, nodes in targets:
            for name in _unique(names):
                if name in nodes:
                    yield Edge(src=doc.file_path, dst=name, edge_type=REFERENCES)
                else:
                    logger.debug("Doc '%s' references unknown name '%s'", doc.file_path, name)


def _most_specific_folder(
    folders: Iterable[FolderNode],
    target_path: str,
    strict: bool = False,
    exclude_id: Optional[str] = None,
) -> Optional[FolderNode]:
    """Deepest folder whose resolved path contains *target_path*.

    Equally deep candidates (identical paths) resolve to the smallest ID.
    """
    best: Optional[FolderNode] = None
    best_depth = -1
    for folder in folders:
        if folder.resolved_path is None or folder.id == exclude_id:
            continue
        if not is_within(folder.resolved_path, target_path, strict=strict):
            continue
        depth = segment_depth(folder.resolved_path)
        if best is None or depth > best_depth or (depth == best_depth and folder.id < best.id):
            best = folder
            best_depth = depth
    return best


def _folder_hierarchy_edges(graph: KnowledgeGraph) -> Iterator[Edge]:
    """One ``contains`` edge per folder, from its most specific strict ancestor."""
    folders = list(graph.folders.values())
    for child in folders:
        if child.resolved_path is None:
            continue
        parent = _most_specific_folder(
            folders, child.resolved_path, strict=True, exclude_id=child.id
        )
        if parent is not None:
            yield Edge(src=parent.id, dst=child.id, edge_type=CONTAINS)


def _module_membership_edges(graph: KnowledgeGraph) -> Iterator[Edge]:
    folders = list(graph.folders.values())
    for module in graph.modules.values():
        if module.resolved_path is None:
            continue
        folder = _most_specific_folder(folders, module.resolved_path)
        if folder is not None:
            yield Edge(src=module.id, dst=folder.id, edge_type=BELONGS_TO)


def _export_membership_edges(graph: KnowledgeGraph, extensions: Sequence[str]) -> Iterator[Edge]:
    folders = list(graph.folders.values())
    module_files = [
        (strip_source_extension(normalize_path(m.resolved_path), extensions), m.id)
        for m in graph.modules.values()
        if m.resolved_path is not None
    ]

    for export in graph.exports.values():
        if export.resolved_path is None:
            continue

        export_file = strip_source_extension(normalize_path(export.resolved_path), extensions)
        owner = next((mid for base, mid in module_files if base == export_file), None)
        if owner is not None:
            yield Edge(src=export.id, dst=owner, edge_type=BELONGS_TO)
            continue

        folder = _most_specific_folder(folders, export.resolved_path)
        if folder is not None:
            yield Edge(src=export.id, dst=folder.id, edge_type=BELONGS_TO)


# ------------------------------------------------------------------
# Stats
# ------------------------------------------------------------------


def compute_stats(graph: KnowledgeGraph) -> GraphStats:
    return GraphStats(
        folder_count=len(graph.folders),
        module_count=len(graph.modules),
        term_count=len(graph.terms),
        export_count=len(graph.exports),
        doc_count=len(graph.docs),
        edge_count=len(graph.edges),
    )


def _log_id_collisions(graph: KnowledgeGraph) -> None:
    seen = {}
    for category, nodes in graph.categories():
        for node_id in nodes:
            if node_id in seen:
                logger.debug(
                    "ID '%s' exists in both %s and %s; lookups prefer %s",
                    node_id, seen[node_id], category, seen[node_id],
                )
            else:
                seen[node_id] = category
