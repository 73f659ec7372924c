"""Query facade coordinating resolution, scoring and traversal over one graph."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from . import config
from .describe import describe_node, summarize_match
from .matcher import best_match, search, search_docs
from .models import BestMatch, ContextResult, HierarchyListing, KnowledgeGraph, ResolvedNode, SearchResult
from .resolver import resolve_node
from .storage import GraphStore
from .traversal import build_context, list_hierarchy


class GraphQueryEngine:
    """Read-only query operations over a loaded knowledge graph."""

    def __init__(self, graph: KnowledgeGraph):
        self.graph = graph

    @classmethod
    def from_store(cls, store: GraphStore) -> "GraphQueryEngine":
        return cls(store.load())

    def resolve(self, identifier: str) -> Optional[ResolvedNode]:
        return resolve_node(self.graph, identifier)

    def search(self, query: str, limit: int = config.SEARCH_LIMIT) -> List[SearchResult]:
        return search(self.graph, query, limit=limit)

    def best_match(self, query: str, scope: Optional[str] = None) -> BestMatch:
        return best_match(self.graph, query, scope=scope)

    def select(self, query: str, scope: Optional[str] = None, concise: bool = True) -> Optional[Dict[str, Any]]:
        return summarize_match(self.graph, self.best_match(query, scope=scope), concise=concise)

    def context(self, identifier: str, depth: int = config.DEFAULT_DEPTH) -> Optional[Dict[str, Any]]:
        """Resolve *identifier* and collect its neighbourhood, or ``None`` if it does not resolve."""
        resolved = self.resolve(identifier)
        if resolved is None:
            return None
        result: ContextResult = build_context(self.graph, resolved.id, depth)
        node = resolved.node
        root: Dict[str, Any] = {"id": resolved.id, "type": node.node_type, "desc": node.desc}
        if node.location is not None:
            root["path"] = node.location
        root["resolvedVia"] = resolved.resolved_via
        return {
            "root": root,
            "nodes": [n.to_dict() for n in result.nodes],
            "docs": [d.to_dict(include_content=True) for d in result.docs],
            "constraints": result.constraints,
        }

    def list_hierarchy(self, depth: int = 1) -> HierarchyListing:
        return list_hierarchy(self.graph, max_depth=depth)

    def describe(self, identifier: str) -> Optional[Dict[str, Any]]:
        return describe_node(self.graph, identifier)

    def search_docs(self, query: Optional[str] = None) -> List[SearchResult]:
        return search_docs(self.graph, query)
