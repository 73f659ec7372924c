"""Persistence for source bundles and built knowledge graphs.

Both live on disk as JSON:

- **Source bundle**: the vocabulary plus documentation units produced by
  the documentation front end; read by ``archgraph build``.
- **Graph file**: ``<project>/.archgraph/graph.json``, written by
  ``archgraph build`` and read by every query command. Keys use the
  camelCase output contract so other tools can consume the file directly.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .errors import GraphFormatError, GraphNotFoundError, SourceFormatError
from .models import (
    CodeEntry,
    DocNode,
    DocReferences,
    DocumentationUnit,
    Edge,
    ExportNode,
    FolderEntry,
    FolderNode,
    GraphMetadata,
    GraphStats,
    KnowledgeGraph,
    ModuleNode,
    SourceBundle,
    TermNode,
    Vocabulary,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Source bundle
# ===================================================================


def _expect_dict(value: Any, key: str, source: Path) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SourceFormatError(source, f"'{key}' must be an object")
    return value


def _expect_str(value: Any, key: str, source: Path, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    if not isinstance(value, str):
        raise SourceFormatError(source, f"'{key}' must be a string")
    return value


def _expect_names(value: Any, key: str, source: Path) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SourceFormatError(source, f"'{key}' must be a list of names")
    return value


def _folder_entry(name: str, raw: Any, source: Path) -> FolderEntry:
    key = f"vocabulary.folders.{name}"
    raw = _expect_dict(raw, key, source)
    return FolderEntry(
        desc=_expect_str(raw.get("desc"), f"{key}.desc", source, default=""),
        path=_expect_str(raw.get("path"), f"{key}.path", source),
        resolved_path=_expect_str(raw.get("resolvedPath"), f"{key}.resolvedPath", source),
        path_exists=bool(raw.get("pathExists", False)),
    )


def _code_entry(category: str, name: str, raw: Any, source: Path) -> CodeEntry:
    key = f"vocabulary.{category}.{name}"
    raw = _expect_dict(raw, key, source)
    return CodeEntry(
        desc=_expect_str(raw.get("desc"), f"{key}.desc", source, default=""),
        type_signature=_expect_str(raw.get("typeSignature"), f"{key}.typeSignature", source),
        import_path=_expect_str(raw.get("importPath"), f"{key}.importPath", source),
        resolved_path=_expect_str(raw.get("resolvedPath"), f"{key}.resolvedPath", source),
        path_exists=bool(raw.get("pathExists", False)),
    )


def _doc_unit(index: int, raw: Any, source: Path) -> DocumentationUnit:
    key = f"docs[{index}]"
    raw = _expect_dict(raw, key, source)
    file_path = _expect_str(raw.get("filePath"), f"{key}.filePath", source)
    if not file_path:
        raise SourceFormatError(source, f"'{key}.filePath' is required")

    refs = _expect_dict(raw.get("references"), f"{key}.references", source)
    return DocumentationUnit(
        file_path=file_path,
        content=_expect_str(raw.get("content"), f"{key}.content", source, default=""),
        format=_expect_str(raw.get("format"), f"{key}.format", source, default="tsx"),
        priority=_expect_str(raw.get("priority"), f"{key}.priority", source, default="supplementary"),
        explains=_expect_str(raw.get("explains"), f"{key}.explains", source, default=""),
        references=DocReferences(
            folders=_expect_names(refs.get("folders"), f"{key}.references.folders", source),
            modules=_expect_names(refs.get("modules"), f"{key}.references.modules", source),
            exports=_expect_names(refs.get("exports"), f"{key}.references.exports", source),
            terms=_expect_names(refs.get("terms"), f"{key}.references.terms", source),
        ),
    )


def load_source(path: Path) -> SourceBundle:
    """Read and validate a source bundle.

    ``rootPath`` defaults to the directory holding the bundle.

    Raises:
        SourceFormatError: If the file is not JSON or a key has the wrong shape.
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SourceFormatError(path, f"cannot read file ({exc})") from exc
    except json.JSONDecodeError as exc:
        raise SourceFormatError(path, f"invalid JSON ({exc})") from exc

    payload = _expect_dict(payload, "<root>", path)
    vocab = _expect_dict(payload.get("vocabulary"), "vocabulary", path)

    terms: Dict[str, str] = {}
    for name, desc in _expect_dict(vocab.get("terms"), "vocabulary.terms", path).items():
        terms[name] = _expect_str(desc, f"vocabulary.terms.{name}", path, default="")

    vocabulary = Vocabulary(
        folders={
            name: _folder_entry(name, raw, path)
            for name, raw in _expect_dict(vocab.get("folders"), "vocabulary.folders", path).items()
        },
        modules={
            name: _code_entry("modules", name, raw, path)
            for name, raw in _expect_dict(vocab.get("modules"), "vocabulary.modules", path).items()
        },
        exports={
            name: _code_entry("exports", name, raw, path)
            for name, raw in _expect_dict(vocab.get("exports"), "vocabulary.exports", path).items()
        },
        terms=terms,
    )

    raw_docs = payload.get("docs", [])
    if not isinstance(raw_docs, list):
        raise SourceFormatError(path, "'docs' must be a list")
    docs = [_doc_unit(i, raw, path) for i, raw in enumerate(raw_docs)]

    root_path = _expect_str(payload.get("rootPath"), "rootPath", path, default=str(path.resolve().parent))
    logger.info(
        "Loaded source %s: %d folders, %d modules, %d exports, %d terms, %d docs",
        path, len(vocabulary.folders), len(vocabulary.modules),
        len(vocabulary.exports), len(vocabulary.terms), len(docs),
    )
    return SourceBundle(vocabulary=vocabulary, docs=docs, root_path=root_path)


# ===================================================================
# Graph (de)serialization
# ===================================================================


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def _folder_to_dict(node: FolderNode) -> Dict[str, Any]:
    return _drop_none({
        "id": node.id,
        "type": node.node_type,
        "desc": node.desc,
        "path": node.path,
        "resolvedPath": node.resolved_path,
        "pathExists": node.path_exists,
    })


def _code_to_dict(node: Any) -> Dict[str, Any]:
    return _drop_none({
        "id": node.id,
        "type": node.node_type,
        "desc": node.desc,
        "typeSignature": node.type_signature,
        "importPath": node.import_path,
        "resolvedPath": node.resolved_path,
        "pathExists": node.path_exists,
    })


def _doc_to_dict(node: DocNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "type": node.node_type,
        "filePath": node.file_path,
        "content": node.content,
        "format": node.format,
        "priority": node.priority,
        "explains": node.explains,
    }


def graph_to_dict(graph: KnowledgeGraph) -> Dict[str, Any]:
    """Serialize *graph* to the JSON output contract."""
    stats = graph.metadata.stats
    return {
        "nodes": {
            "folders": {k: _folder_to_dict(v) for k, v in graph.folders.items()},
            "modules": {k: _code_to_dict(v) for k, v in graph.modules.items()},
            "terms": {k: {"id": v.id, "type": v.node_type, "desc": v.desc} for k, v in graph.terms.items()},
            "exports": {k: _code_to_dict(v) for k, v in graph.exports.items()},
            "docs": {k: _doc_to_dict(v) for k, v in graph.docs.items()},
        },
        "edges": [{"from": e.src, "to": e.dst, "type": e.edge_type} for e in graph.edges],
        "metadata": {
            "generatedAt": graph.metadata.generated_at,
            "version": graph.metadata.version,
            "rootPath": graph.metadata.root_path,
            "stats": {
                "folderCount": stats.folder_count,
                "moduleCount": stats.module_count,
                "termCount": stats.term_count,
                "exportCount": stats.export_count,
                "docCount": stats.doc_count,
                "edgeCount": stats.edge_count,
            },
        },
    }


def graph_from_dict(payload: Dict[str, Any]) -> KnowledgeGraph:
    """Rebuild a graph from its JSON form.

    Edges whose endpoints are not in the node dictionaries are skipped
    with a warning; hand-edited files stay loadable.
    """
    nodes = payload.get("nodes", {})
    meta = payload.get("metadata", {})
    raw_stats = meta.get("stats", {})

    graph = KnowledgeGraph(
        metadata=GraphMetadata(
            generated_at=meta.get("generatedAt", ""),
            version=meta.get("version", config.SCHEMA_VERSION),
            root_path=meta.get("rootPath", ""),
            stats=GraphStats(
                folder_count=raw_stats.get("folderCount", 0),
                module_count=raw_stats.get("moduleCount", 0),
                term_count=raw_stats.get("termCount", 0),
                export_count=raw_stats.get("exportCount", 0),
                doc_count=raw_stats.get("docCount", 0),
                edge_count=raw_stats.get("edgeCount", 0),
            ),
        )
    )

    for node_id, raw in nodes.get("folders", {}).items():
        graph.folders[node_id] = FolderNode(
            id=node_id,
            desc=raw.get("desc", ""),
            path=raw.get("path"),
            resolved_path=raw.get("resolvedPath"),
            path_exists=raw.get("pathExists", False),
        )
    for category, node_cls in (("modules", ModuleNode), ("exports", ExportNode)):
        target = getattr(graph, category)
        for node_id, raw in nodes.get(category, {}).items():
            target[node_id] = node_cls(
                id=node_id,
                desc=raw.get("desc", ""),
                type_signature=raw.get("typeSignature"),
                import_path=raw.get("importPath"),
                resolved_path=raw.get("resolvedPath"),
                path_exists=raw.get("pathExists", False),
            )
    for node_id, raw in nodes.get("terms", {}).items():
        graph.terms[node_id] = TermNode(id=node_id, desc=raw.get("desc", ""))
    for node_id, raw in nodes.get("docs", {}).items():
        graph.docs[node_id] = DocNode(
            id=node_id,
            file_path=raw.get("filePath", node_id),
            content=raw.get("content", ""),
            format=raw.get("format", "tsx"),
            priority=raw.get("priority", "supplementary"),
            explains=raw.get("explains", ""),
        )

    skipped = 0
    for raw in payload.get("edges", []):
        src, dst = raw.get("from"), raw.get("to")
        if not (graph.has_node(src) and graph.has_node(dst)):
            logger.warning("Skipping edge %s -[%s]-> %s: endpoint not in graph", src, raw.get("type"), dst)
            skipped += 1
            continue
        graph.edges.append(Edge(src=src, dst=dst, edge_type=raw.get("type", "")))
    if skipped:
        logger.warning("%d malformed edges skipped", skipped)
    return graph


# ===================================================================
# GraphStore
# ===================================================================


class GraphStore:
    """A graph file inside a ``.archgraph`` directory."""

    def __init__(self, graph_dir: Path) -> None:
        self.graph_dir = Path(graph_dir)
        self.graph_path = self.graph_dir / config.GRAPH_FILE_NAME

    def exists(self) -> bool:
        return self.graph_path.is_file()

    def save(self, graph: KnowledgeGraph) -> Path:
        self.graph_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.graph_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(graph_to_dict(graph), indent=2), encoding="utf-8")
        tmp_path.replace(self.graph_path)
        logger.info("Wrote graph to %s", self.graph_path)
        return self.graph_path

    def load(self) -> KnowledgeGraph:
        """Read the graph file.

        Raises:
            GraphNotFoundError: If no graph has been built here.
            GraphFormatError: If the file is truncated or has the wrong shape.
        """
        if not self.exists():
            raise GraphNotFoundError(self.graph_dir)
        try:
            payload = json.loads(self.graph_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise GraphFormatError(self.graph_path, f"invalid JSON: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise GraphFormatError(self.graph_path, "top level must be an object")
        if not isinstance(payload.get("nodes", {}), dict):
            raise GraphFormatError(self.graph_path, "'nodes' must be an object")
        if not isinstance(payload.get("edges", []), list):
            raise GraphFormatError(self.graph_path, "'edges' must be a list")
        try:
            graph = graph_from_dict(payload)
        except (AttributeError, TypeError) as exc:
            raise GraphFormatError(self.graph_path, f"unexpected structure: {exc}") from exc
        logger.info("Loaded graph from %s", self.graph_path)
        return graph


def find_graph_dir(start: Optional[Path] = None) -> Path:
    """Walk up from *start* (default: cwd) to the nearest ``.archgraph`` holding a graph.

    Raises:
        GraphNotFoundError: If no ancestor has one.
    """
    start = Path(start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / config.GRAPH_DIR_NAME
        if (candidate / config.GRAPH_FILE_NAME).is_file():
            logger.debug("Using graph directory %s", candidate)
            return candidate
    raise GraphNotFoundError(start)
