"""Graph export to Graphviz DOT."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Set, Tuple

from .models import AnyNode, Edge, KnowledgeGraph


def export_dot(graph: KnowledgeGraph, output_file: Path, focus: str = "") -> None:
    nodes: Dict[str, AnyNode] = {}
    for node_id, node in graph.iter_nodes():
        nodes.setdefault(node_id, node)
    selected_nodes, selected_edges = _focused_subgraph(nodes, graph.edges, focus)

    lines = ["digraph ArchGraph {"]
    lines.append("  rankdir=LR;")

    for node_id in selected_nodes:
        node = nodes[node_id]
        label = f"{node.node_type}\\n{node_id}"
        lines.append(f'  "{_esc(node_id)}" [label="{_esc(label)}"];')

    for edge in selected_edges:
        if edge.src not in nodes or edge.dst not in nodes:
            continue
        lines.append(
            f'  "{_esc(edge.src)}" -> "{_esc(edge.dst)}" [label="{_esc(edge.edge_type)}"];'
        )

    lines.append("}")
    Path(output_file).write_text("\n".join(lines) + "\n", encoding="utf-8")


def _focused_subgraph(
    nodes: Dict[str, AnyNode], edges: List[Edge], focus: str
) -> Tuple[List[str], List[Edge]]:
    if not focus:
        return list(nodes), list(edges)

    focus_ids = {node_id for node_id in nodes if focus in node_id}
    if not focus_ids:
        return [], []

    edge_subset = [e for e in edges if e.src in focus_ids or e.dst in focus_ids]
    node_subset: Set[str] = set(focus_ids)
    for e in edge_subset:
        if e.src in nodes:
            node_subset.add(e.src)
        if e.dst in nodes:
            node_subset.add(e.dst)
    return sorted(node_subset), edge_subset


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
