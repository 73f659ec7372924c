"""Tests for context traversal and hierarchy listing."""

import pytest

from archgraph_cli import config
from archgraph_cli.errors import RootFolderMissingError
from archgraph_cli.models import Edge, KnowledgeGraph
from archgraph_cli.traversal import build_child_index, build_context, list_hierarchy

ARCHITECTURE = "docs/architecture.tskb.tsx"
ISOLATION = "docs/constraints/service-isolation.tskb.tsx"
REPOSITORY = "docs/adr/repository.tskb.tsx"


def _without_root(graph: KnowledgeGraph) -> KnowledgeGraph:
    del graph.folders[config.ROOT_FOLDER_NAME]
    return graph


class TestChildIndex:
    """Tests for build_child_index."""

    def test_contains_and_reversed_belongs_to(self):
        """Test both structural edge kinds point parent to child."""
        edges = [
            Edge("Root", "Lib", "contains"),
            Edge("Util", "Lib", "belongs-to"),
            Edge("doc.tsx", "Lib", "references"),
        ]
        assert build_child_index(edges) == {"Root": ["Lib"], "Lib": ["Util"]}
        assert build_child_index(edges, include_members=False) == {"Root": ["Lib"]}


class TestBuildContext:
    """Tests for build_context."""

    def test_depth_one(self, sample_graph: KnowledgeGraph):
        """Test direct children and the docs explaining them."""
        result = build_context(sample_graph, "Server", 1)
        assert [n.id for n in result.nodes] == ["Server.Services", "Server.Controllers"]
        assert all(n.depth == 1 for n in result.nodes)
        assert [d.node_id for d in result.docs] == [ISOLATION, ARCHITECTURE]
        assert result.constraints == [ISOLATION]

    def test_depth_zero(self, sample_graph: KnowledgeGraph):
        """Test depth 0 returns only the start node's own docs."""
        result = build_context(sample_graph, "Server", 0)
        assert result.nodes == []
        assert [d.node_id for d in result.docs] == [ARCHITECTURE]
        assert result.constraints == []

    def test_unlimited_depth(self, sample_graph: KnowledgeGraph):
        """Test -1 walks the whole subtree including members."""
        result = build_context(sample_graph, "Server", config.UNLIMITED_DEPTH)
        assert {n.id for n in result.nodes} == {
            "Server.Services",
            "Server.Controllers",
            "TaskService",
            "AuthService",
            "TaskController",
            "TaskService.createTask",
        }
        depths = {n.id: n.depth for n in result.nodes}
        assert depths["TaskService.createTask"] == 3
        assert [d.node_id for d in result.docs] == [ISOLATION, ARCHITECTURE, REPOSITORY]

    def test_docs_deduplicated(self, sample_graph: KnowledgeGraph):
        """Test a doc referencing several visited nodes is listed once."""
        result = build_context(sample_graph, "Server.Services", 1)
        ids = [d.node_id for d in result.docs]
        assert ids.count(ISOLATION) == 1

    def test_start_node_not_listed(self, sample_graph: KnowledgeGraph):
        """Test the start node itself is excluded from nodes."""
        result = build_context(sample_graph, "TaskService", 2)
        assert "TaskService" not in [n.id for n in result.nodes]
        assert [n.id for n in result.nodes] == ["TaskService.createTask"]

    def test_defaults_to_root(self, sample_graph: KnowledgeGraph):
        """Test no start node means the root folder."""
        result = build_context(sample_graph)
        assert result.root_id == config.ROOT_FOLDER_NAME
        assert {n.id for n in result.nodes} == {"Server", "Client", "Shared"}

    def test_missing_root(self, sample_graph: KnowledgeGraph):
        """Test a graph without a root cannot default the start node."""
        with pytest.raises(RootFolderMissingError):
            build_context(_without_root(sample_graph))

    def test_dangling_edges_skipped(self, sample_graph: KnowledgeGraph):
        """Test edges to unknown nodes do not break traversal."""
        sample_graph.edges.append(Edge("Ghost", "Server", "belongs-to"))
        sample_graph.edges.append(Edge("ghost.tskb.tsx", "Server", "references"))
        result = build_context(sample_graph, "Server", 1)
        assert "Ghost" not in [n.id for n in result.nodes]
        assert "ghost.tskb.tsx" not in [d.node_id for d in result.docs]


class TestListHierarchy:
    """Tests for list_hierarchy."""

    def test_depth_one(self, sample_graph: KnowledgeGraph):
        """Test top-level folders sorted by path plus essential docs."""
        listing = list_hierarchy(sample_graph, max_depth=1)
        assert listing.root == config.ROOT_FOLDER_NAME
        assert [f.id for f in listing.folders] == [config.ROOT_FOLDER_NAME, "Client", "Server", "Shared"]
        assert [d.node_id for d in listing.essential_docs] == [ARCHITECTURE]

    def test_path_depth_governs_expansion(self, sample_graph: KnowledgeGraph):
        """Test 'src/server' (two segments) expands only when depth exceeds 2."""
        shallow = list_hierarchy(sample_graph, max_depth=2)
        deep = list_hierarchy(sample_graph, max_depth=3)
        assert "Server.Services" not in [f.id for f in shallow.folders]
        assert "Server.Services" in [f.id for f in deep.folders]

    def test_unlimited(self, sample_graph: KnowledgeGraph):
        """Test -1 lists every folder."""
        listing = list_hierarchy(sample_graph, max_depth=config.UNLIMITED_DEPTH)
        assert len(listing.folders) == len(sample_graph.folders)

    def test_to_dict(self, sample_graph: KnowledgeGraph):
        """Test the serialised listing shape."""
        payload = list_hierarchy(sample_graph).to_dict()
        assert payload["folders"][0] == {
            "id": config.ROOT_FOLDER_NAME,
            "desc": config.ROOT_FOLDER_DESC,
            "path": ".",
        }
        assert payload["docs"] == [
            {"id": ARCHITECTURE, "explains": "System architecture overview", "filePath": ARCHITECTURE}
        ]

    def test_missing_root(self, sample_graph: KnowledgeGraph):
        """Test a graph without a root cannot be listed."""
        with pytest.raises(RootFolderMissingError):
            list_hierarchy(_without_root(sample_graph))
