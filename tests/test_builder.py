"""Tests for knowledge graph construction."""

from collections import Counter

from archgraph_cli import config
from archgraph_cli.builder import build_graph
from archgraph_cli.models import (
    CodeEntry,
    DocReferences,
    DocumentationUnit,
    Edge,
    FolderEntry,
    KnowledgeGraph,
    Vocabulary,
)


def _folder(path):
    return FolderEntry(desc=f"folder at {path}", path=path, resolved_path=path, path_exists=True)


def _code(path):
    return CodeEntry(desc=f"code at {path}", resolved_path=path, path_exists=True)


def _edges_of(graph: KnowledgeGraph, edge_type: str):
    return {(e.src, e.dst) for e in graph.edges if e.edge_type == edge_type}


class TestNodes:
    """Tests for node creation."""

    def test_counts(self, sample_graph: KnowledgeGraph):
        """Test one node per vocabulary entry plus the root folder."""
        stats = sample_graph.metadata.stats
        assert stats.folder_count == 6
        assert stats.module_count == 4
        assert stats.export_count == 3
        assert stats.term_count == 2
        assert stats.doc_count == 3
        assert stats.edge_count == 19

    def test_root_folder_injected(self, sample_graph: KnowledgeGraph):
        """Test the root folder exists with path '.'."""
        root = sample_graph.folders[config.ROOT_FOLDER_NAME]
        assert root.path == "."
        assert root.resolved_path == "."
        assert root.path_exists is True

    def test_doc_id_is_file_path(self, sample_graph: KnowledgeGraph):
        """Test docs are keyed by their file path."""
        doc = sample_graph.docs["docs/constraints/service-isolation.tskb.tsx"]
        assert doc.id == doc.file_path
        assert doc.priority == "constraint"

    def test_unknown_priority_falls_back(self):
        """Test an unknown doc priority becomes supplementary."""
        doc = DocumentationUnit(file_path="a.tskb.tsx", content="x", priority="urgent")
        graph = build_graph(Vocabulary(), [doc], "/repo")
        assert graph.docs["a.tskb.tsx"].priority == "supplementary"

    def test_vocabulary_root_name_ignored(self):
        """Test a vocabulary folder cannot replace the injected root."""
        vocab = Vocabulary(folders={config.ROOT_FOLDER_NAME: _folder("elsewhere")})
        graph = build_graph(vocab, [], "/repo")
        assert graph.folders[config.ROOT_FOLDER_NAME].path == "."

    def test_metadata(self, sample_graph: KnowledgeGraph):
        """Test metadata carries timestamp, schema version and root path."""
        assert sample_graph.metadata.generated_at == "2024-01-01T00:00:00+00:00"
        assert sample_graph.metadata.version == config.SCHEMA_VERSION
        assert sample_graph.metadata.root_path == "/workspace/taskflow"


class TestReferenceEdges:
    """Tests for doc reference edges."""

    def test_references(self, sample_graph: KnowledgeGraph):
        """Test declared references become edges."""
        refs = _edges_of(sample_graph, "references")
        assert refs == {
            ("docs/architecture.tskb.tsx", "Server"),
            ("docs/architecture.tskb.tsx", "Client"),
            ("docs/constraints/service-isolation.tskb.tsx", "Server.Services"),
            ("docs/constraints/service-isolation.tskb.tsx", "TaskService"),
            ("docs/constraints/service-isolation.tskb.tsx", "Service Isolation"),
            ("docs/adr/repository.tskb.tsx", "TaskService"),
            ("docs/adr/repository.tskb.tsx", "Repository Pattern"),
        }

    def test_unknown_reference_dropped(self, sample_graph: KnowledgeGraph):
        """Test a reference to a name missing from the vocabulary produces no edge."""
        assert all(e.dst != "GhostModule" for e in sample_graph.edges)

    def test_duplicate_references_collapse(self):
        """Test the same reference listed twice yields one edge."""
        vocab = Vocabulary(terms={"Cache": "Read-through cache"})
        doc = DocumentationUnit(
            file_path="d.tskb.tsx",
            content="",
            references=DocReferences(terms=["Cache", "Cache"]),
        )
        graph = build_graph(vocab, [doc], "/repo")
        assert graph.edges.count(Edge("d.tskb.tsx", "Cache", "references")) == 1


class TestFolderHierarchy:
    """Tests for contains edges between folders."""

    def test_contains_edges(self, sample_graph: KnowledgeGraph):
        """Test nesting follows the longest containing path."""
        root = config.ROOT_FOLDER_NAME
        assert _edges_of(sample_graph, "contains") == {
            (root, "Server"),
            (root, "Client"),
            (root, "Shared"),
            ("Server", "Server.Services"),
            ("Server", "Server.Controllers"),
        }

    def test_single_folder_build(self):
        """Test one declared folder yields the root, the folder and one contains edge."""
        vocab = Vocabulary(
            folders={
                "api": FolderEntry(desc="API layer", path="src/api", resolved_path="src/api", path_exists=True),
            }
        )
        graph = build_graph(vocab, [], "/repo")
        assert graph.metadata.stats.folder_count == 2
        assert set(graph.folders) == {config.ROOT_FOLDER_NAME, "api"}
        assert graph.edges == [Edge(config.ROOT_FOLDER_NAME, "api", "contains")]

    def test_every_folder_has_one_parent(self, sample_graph: KnowledgeGraph):
        """Test the contains edges form a forest rooted at the root folder."""
        parents = Counter(dst for _, dst in _edges_of(sample_graph, "contains"))
        assert all(count == 1 for count in parents.values())
        assert config.ROOT_FOLDER_NAME not in parents
        assert set(parents) == set(sample_graph.folders) - {config.ROOT_FOLDER_NAME}

    def test_segment_aware_prefix(self):
        """Test 'src/api' does not contain 'src/apiary'."""
        vocab = Vocabulary(folders={"Api": _folder("src/api"), "Apiary": _folder("src/apiary")})
        graph = build_graph(vocab, [], "/repo")
        contains = _edges_of(graph, "contains")
        assert ("Api", "Apiary") not in contains
        assert (config.ROOT_FOLDER_NAME, "Apiary") in contains

    def test_escaping_folder_has_no_parent(self):
        """Test a folder outside the root gets no contains edge."""
        vocab = Vocabulary(folders={"Outside": _folder("../vendor")})
        graph = build_graph(vocab, [], "/repo")
        assert all(e.dst != "Outside" for e in graph.edges)

    def test_folder_without_resolved_path(self):
        """Test a folder with no resolved path is left unattached."""
        vocab = Vocabulary(folders={"Virtual": FolderEntry(desc="No location")})
        graph = build_graph(vocab, [], "/repo")
        assert "Virtual" in graph.folders
        assert graph.edges == []


class TestMembership:
    """Tests for belongs-to edges."""

    def test_modules_belong_to_deepest_folder(self, sample_graph: KnowledgeGraph):
        """Test modules attach to the most specific folder."""
        belongs = _edges_of(sample_graph, "belongs-to")
        assert ("TaskService", "Server.Services") in belongs
        assert ("AuthService", "Server.Services") in belongs
        assert ("TaskController", "Server.Controllers") in belongs
        assert ("ApiTypes", "Shared") in belongs

    def test_single_module_membership(self):
        """Test a module inside one declared folder gets exactly one belongs-to edge."""
        vocab = Vocabulary(
            folders={
                "api": FolderEntry(desc="API layer", path="src/api", resolved_path="src/api", path_exists=True),
            },
            modules={"handler": CodeEntry(desc="x", resolved_path="src/api/handler.ts")},
        )
        graph = build_graph(vocab, [], "/repo")
        assert [e for e in graph.edges if e.edge_type == "belongs-to"] == [Edge("handler", "api", "belongs-to")]

    def test_export_prefers_module_in_same_file(self, sample_graph: KnowledgeGraph):
        """Test exports attach to the module declared in their file."""
        belongs = _edges_of(sample_graph, "belongs-to")
        assert ("TaskService.createTask", "TaskService") in belongs
        assert ("ApiResponse", "ApiTypes") in belongs

    def test_export_falls_back_to_folder(self, sample_graph: KnowledgeGraph):
        """Test an export with no module in its file attaches to a folder."""
        belongs = _edges_of(sample_graph, "belongs-to")
        assert ("API_BASE_URL", "Shared") in belongs

    def test_export_matches_across_extensions(self):
        """Test 'a.ts' and 'a.tsx' count as the same source file."""
        vocab = Vocabulary(
            folders={"Lib": _folder("lib")},
            modules={"Widget": _code("lib/widget.tsx")},
            exports={"renderWidget": _code("lib/widget.ts")},
        )
        graph = build_graph(vocab, [], "/repo")
        assert ("renderWidget", "Widget") in _edges_of(graph, "belongs-to")

    def test_equal_paths_tie_break_on_smallest_id(self):
        """Test folders sharing a path resolve to the lexicographically smallest ID."""
        vocab = Vocabulary(
            folders={"Beta": _folder("lib"), "Alpha": _folder("lib")},
            modules={"Util": _code("lib/util.ts")},
        )
        graph = build_graph(vocab, [], "/repo")
        assert ("Util", "Alpha") in _edges_of(graph, "belongs-to")

    def test_root_catches_unclaimed_modules(self):
        """Test a module outside every declared folder belongs to the root."""
        vocab = Vocabulary(modules={"Main": _code("main.ts")})
        graph = build_graph(vocab, [], "/repo")
        assert ("Main", config.ROOT_FOLDER_NAME) in _edges_of(graph, "belongs-to")


class TestDeterminism:
    """Tests for repeatable builds."""

    def test_same_inputs_same_graph(self, sample_bundle):
        """Test two builds with identical inputs produce identical nodes and edges."""
        first = build_graph(sample_bundle.vocabulary, sample_bundle.docs, "/r", generated_at="t")
        second = build_graph(sample_bundle.vocabulary, sample_bundle.docs, "/r", generated_at="t")
        assert first == second
