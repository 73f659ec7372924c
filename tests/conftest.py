"""Pytest configuration and fixtures for ArchGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from archgraph_cli.builder import build_graph
from archgraph_cli.models import KnowledgeGraph, SourceBundle
from archgraph_cli.storage import GraphStore, load_source

FIXED_TIMESTAMP = "2024-01-01T00:00:00+00:00"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_source_path() -> Path:
    """Get path to the sample source bundle."""
    return Path(__file__).parent / "fixtures" / "sample_source.json"


@pytest.fixture
def sample_bundle(sample_source_path: Path) -> SourceBundle:
    return load_source(sample_source_path)


@pytest.fixture
def sample_graph(sample_bundle: SourceBundle) -> KnowledgeGraph:
    """The sample bundle built with a fixed timestamp."""
    return build_graph(
        sample_bundle.vocabulary,
        sample_bundle.docs,
        sample_bundle.root_path,
        generated_at=FIXED_TIMESTAMP,
    )


@pytest.fixture
def temp_graph_store(temp_dir: Path) -> GraphStore:
    """Create a GraphStore with temporary storage."""
    return GraphStore(temp_dir / ".archgraph")


@pytest.fixture
def saved_graph_store(temp_graph_store: GraphStore, sample_graph: KnowledgeGraph) -> GraphStore:
    """A GraphStore already holding the sample graph."""
    temp_graph_store.save(sample_graph)
    return temp_graph_store
