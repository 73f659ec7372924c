"""ArchGraph CLI: architecture knowledge graphs built from a declared vocabulary."""

__version__ = "0.3.0"
