"""Configuration paths and defaults for ArchGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("ARCHGRAPH_HOME", str(Path.home() / ".archgraph"))).expanduser()
GRAPH_DIR_NAME = ".archgraph"
GRAPH_FILE_NAME = "graph.json"
SCHEMA_VERSION = "1.0.0"

# Injected by the builder; represents the top of the resolved path space.
ROOT_FOLDER_NAME = "Package.Root"
ROOT_FOLDER_DESC = "The root directory of the repository (automatically added by archgraph)"

# Sentinel depth meaning "no limit" for traversal and listing.
UNLIMITED_DEPTH = -1

DEFAULT_SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py", ".pyi")

# Load configuration from TOML files (project file overrides the user file)
from .config_manager import load_graph_config, load_query_config  # noqa: E402

_graph_config = load_graph_config()
_query_config = load_query_config()

# Extensions stripped when matching an export to the module in the same file
SOURCE_EXTENSIONS = tuple(_graph_config.get("source_extensions", DEFAULT_SOURCE_EXTENSIONS))

DEFAULT_DEPTH = int(_query_config.get("default_depth", 1))
SEARCH_LIMIT = int(_query_config.get("search_limit", 10))
CONCISE_OUTPUT = bool(_query_config.get("concise", True))

