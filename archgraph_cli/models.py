"""Core data models: graph inputs, graph nodes and edges, and query results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Literal, Optional, Tuple, Union

NodeType = Literal["folder", "module", "export", "term", "doc"]
EdgeType = Literal["references", "belongs-to", "contains", "related-to"]
DocPriority = Literal["constraint", "essential", "supplementary"]
ResolvedVia = Literal["id", "path", "nearest-parent"]

REFERENCES: EdgeType = "references"
BELONGS_TO: EdgeType = "belongs-to"
CONTAINS: EdgeType = "contains"
RELATED_TO: EdgeType = "related-to"
EDGE_TYPES = (REFERENCES, BELONGS_TO, CONTAINS, RELATED_TO)

DOC_PRIORITIES: Tuple[str, ...] = ("constraint", "essential", "supplementary")
DEFAULT_DOC_PRIORITY = "supplementary"
PRIORITY_ORDER = {priority: rank for rank, priority in enumerate(DOC_PRIORITIES)}

# Lookup order across categories; the same ID may live in several of them.
CATEGORY_ORDER: Tuple[str, ...] = ("folders", "modules", "exports", "terms", "docs")


def priority_rank(priority: str) -> int:
    return PRIORITY_ORDER.get(priority, len(DOC_PRIORITIES))


# ===================================================================
# Inputs produced by the documentation front end
# ===================================================================


@dataclass(frozen=True)
class FolderEntry:
    desc: str
    path: Optional[str] = None
    resolved_path: Optional[str] = None
    path_exists: bool = False


@dataclass(frozen=True)
class CodeEntry:
    """A module or export declared in the vocabulary."""
    desc: str
    type_signature: Optional[str] = None
    import_path: Optional[str] = None
    resolved_path: Optional[str] = None
    path_exists: bool = False


@dataclass
class Vocabulary:
    """Already-merged vocabulary, one mapping per category."""
    folders: Dict[str, FolderEntry] = field(default_factory=dict)
    modules: Dict[str, CodeEntry] = field(default_factory=dict)
    exports: Dict[str, CodeEntry] = field(default_factory=dict)
    terms: Dict[str, str] = field(default_factory=dict)


@dataclass
class DocReferences:
    folders: List[str] = field(default_factory=list)
    modules: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    terms: List[str] = field(default_factory=list)


@dataclass
class DocumentationUnit:
    file_path: str
    content: str
    references: DocReferences = field(default_factory=DocReferences)
    format: str = "tsx"
    priority: str = DEFAULT_DOC_PRIORITY
    explains: str = ""


@dataclass
class SourceBundle:
    """Everything the builder needs, as loaded from a source file."""
    vocabulary: Vocabulary
    docs: List[DocumentationUnit]
    root_path: str


# ===================================================================
# Graph nodes and edges
# ===================================================================


@dataclass(frozen=True)
class FolderNode:
    id: str
    desc: str
    path: Optional[str] = None
    resolved_path: Optional[str] = None
    path_exists: bool = False
    node_type: Literal["folder"] = field(default="folder", init=False)

    @property
    def location(self) -> Optional[str]:
        return self.path or self.resolved_path


@dataclass(frozen=True)
class ModuleNode:
    id: str
    desc: str
    type_signature: Optional[str] = None
    import_path: Optional[str] = None
    resolved_path: Optional[str] = None
    path_exists: bool = False
    node_type: Literal["module"] = field(default="module", init=False)

    @property
    def location(self) -> Optional[str]:
        return self.resolved_path


@dataclass(frozen=True)
class ExportNode:
    id: str
    desc: str
    type_signature: Optional[str] = None
    import_path: Optional[str] = None
    resolved_path: Optional[str] = None
    path_exists: bool = False
    node_type: Literal["export"] = field(default="export", init=False)

    @property
    def location(self) -> Optional[str]:
        return self.resolved_path


@dataclass(frozen=True)
class TermNode:
    id: str
    desc: str
    node_type: Literal["term"] = field(default="term", init=False)

    @property
    def location(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class DocNode:
    id: str
    file_path: str
    content: str
    format: str = "tsx"
    priority: str = DEFAULT_DOC_PRIORITY
    explains: str = ""
    node_type: Literal["doc"] = field(default="doc", init=False)

    @property
    def location(self) -> Optional[str]:
        return self.file_path

    @property
    def desc(self) -> str:
        """The authored summary, or the start of the content when there is none."""
        if self.explains:
            return self.explains
        return " ".join(self.content[:200].split())


AnyNode = Union[FolderNode, ModuleNode, ExportNode, TermNode, DocNode]


@dataclass(frozen=True)
class Edge:
    src: str
    dst: str
    edge_type: str


@dataclass
class GraphStats:
    folder_count: int = 0
    module_count: int = 0
    term_count: int = 0
    export_count: int = 0
    doc_count: int = 0
    edge_count: int = 0


@dataclass
class GraphMetadata:
    generated_at: str
    version: str
    root_path: str
    stats: GraphStats = field(default_factory=GraphStats)


@dataclass
class KnowledgeGraph:
    """The aggregate graph. Built once by the builder, read-only afterwards."""
    metadata: GraphMetadata
    folders: Dict[str, FolderNode] = field(default_factory=dict)
    modules: Dict[str, ModuleNode] = field(default_factory=dict)
    exports: Dict[str, ExportNode] = field(default_factory=dict)
    terms: Dict[str, TermNode] = field(default_factory=dict)
    docs: Dict[str, DocNode] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)

    def categories(self) -> List[Tuple[str, Dict[str, Any]]]:
        """Node dictionaries in lookup priority order."""
        return [(name, getattr(self, name)) for name in CATEGORY_ORDER]

    def iter_nodes(self) -> Iterator[Tuple[str, AnyNode]]:
        for _, nodes in self.categories():
            yield from nodes.items()

    def find_node(self, node_id: str) -> Optional[AnyNode]:
        """Look *node_id* up across categories in priority order."""
        for _, nodes in self.categories():
            node = nodes.get(node_id)
            if node is not None:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.find_node(node_id) is not None


# ===================================================================
# Query results
# ===================================================================


@dataclass(frozen=True)
class ResolvedNode:
    id: str
    node: AnyNode
    resolved_via: ResolvedVia


@dataclass
class DocRef:
    node_id: str
    explains: str
    file_path: str
    priority: str
    content: str = ""

    def to_dict(self, include_content: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.node_id,
            "explains": self.explains,
            "filePath": self.file_path,
            "priority": self.priority,
        }
        if include_content:
            payload["content"] = self.content
        return payload


@dataclass
class MatchCandidate:
    id: str
    node: AnyNode
    matched_fields: List[str]
    score: int
    multi_word: bool = False


@dataclass
class Alternative:
    id: str
    node_type: str
    desc: str = ""

    def __str__(self) -> str:
        if self.desc:
            return f"{self.id} ({self.node_type}): {self.desc}"
        return f"{self.id} ({self.node_type})"


@dataclass
class BestMatch:
    query: str
    match: Optional[MatchCandidate]
    confidence: float
    alternatives: List[Alternative] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.match is not None


@dataclass
class SearchResult:
    node_id: str
    node_type: str
    desc: str
    path: str
    score: Optional[float]
    priority: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "nodeId": self.node_id,
            "type": self.node_type,
            "desc": self.desc,
            "path": self.path,
        }
        if self.score is not None:
            payload["score"] = self.score
        if self.priority:
            payload["priority"] = self.priority
        return payload


@dataclass
class ContextNode:
    id: str
    node_type: str
    desc: str
    path: Optional[str]
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "type": self.node_type, "desc": self.desc}
        if self.path is not None:
            payload["path"] = self.path
        payload["depth"] = self.depth
        return payload


@dataclass
class ContextResult:
    root_id: str
    nodes: List[ContextNode] = field(default_factory=list)
    docs: List[DocRef] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)


@dataclass
class HierarchyListing:
    root: str
    folders: List[FolderNode] = field(default_factory=list)
    essential_docs: List[DocRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "folders": [
                {"id": f.id, "desc": f.desc, "path": f.path} for f in self.folders
            ],
            "docs": [
                {"id": d.node_id, "explains": d.explains, "filePath": d.file_path}
                for d in self.essential_docs
            ],
        }
