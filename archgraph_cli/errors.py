"""Custom exceptions for knowledge graph operations."""

from __future__ import annotations

from pathlib import Path


class ArchGraphError(Exception):
    """Base exception for knowledge graph operations."""
    pass


class GraphNotFoundError(ArchGraphError):
    """Raised when no serialized graph can be located."""
    def __init__(self, searched: Path):
        self.searched = searched
        super().__init__(
            f"Graph file not found under {searched}. "
            "Run 'archgraph build <source>' first to generate the knowledge graph."
        )


class SourceFormatError(ArchGraphError):
    """Raised when a source bundle does not have the expected shape."""
    def __init__(self, source: Path, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Invalid source bundle {source}: {detail}")


class RootFolderMissingError(ArchGraphError):
    """Raised when an operation needs the root folder and the graph lacks it."""
    def __init__(self, root_id: str):
        self.root_id = root_id
        super().__init__(f"Root folder '{root_id}' not found in graph")


class ScopeNotFoundError(ArchGraphError):
    """Raised when a best-match scope names an unknown folder."""
    def __init__(self, folder_id: str):
        self.folder_id = folder_id
        super().__init__(f"Scope folder '{folder_id}' not found in graph")


class GraphFormatError(ArchGraphError):
    """Raised when a graph file exists but cannot be read back."""
    def __init__(self, path: Path, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(
            f"Graph file {path} is unreadable ({detail}). "
            "Run 'archgraph build <source>' to regenerate it."
        )
