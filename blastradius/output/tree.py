"""Level-grouped plain-text rendering."""

from __future__ import annotations

from typing import Any

from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import GraphLevel

_LEVEL_TITLES = {0: "Root", 1: "Direct Dependencies"}


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if value is None:
        return "-"
    return str(value)


def _relation(graph: DependencyGraph, node_id: str) -> str:
    """Relation of the first edge into ``node_id``, else of the first edge out of it."""
    edges = graph.edges_into(node_id) or graph.edges_from(node_id)
    return f" [{edges[0].relation}]" if edges else ""


def _levels_from_ids(graph: DependencyGraph, levels: list[list[str]]) -> list[GraphLevel]:
    grouped = []
    for depth, ids in enumerate(levels):
        nodes = [node for node in (graph.get_node(node_id) for node_id in ids) if node is not None]
        grouped.append(GraphLevel(depth=depth, nodes=nodes))
    return grouped


def render_tree(graph: DependencyGraph, root_id: str, levels: list[list[str]] | None = None) -> str:
    """Render ``graph`` grouped by BFS depth from ``root_id``.

    ``levels`` is the discovery order recorded by the orchestrator; without
    it the grouping is recomputed with ``graph.bfs``. Each non-root node
    shows its type, name and the relation of the edge that connects it.
    Raises ValueError if ``root_id`` is not in the graph.
    """
    if not graph.has_node(root_id):
        raise ValueError(f"starting node not found: {root_id}")
    grouped = _levels_from_ids(graph, levels) if levels else graph.bfs(root_id)

    lines: list[str] = []
    for level in grouped:
        lines.append("")
        lines.append(f"[Level {level.depth}] {_LEVEL_TITLES.get(level.depth, 'Transitive Dependencies')}")
        last = len(level.nodes) - 1
        for i, node in enumerate(level.nodes):
            prefix = "└─" if i == last else "├─"
            relation = _relation(graph, node.id) if level.depth else ""
            lines.append(f"{prefix} {node.type}: {node.name or node.id}{relation}")
            if node.arn and node.arn != node.id:
                lines.append(f"   ARN: {node.arn}")
            for key in sorted(node.attributes):
                lines.append(f"   {key}: {_format_value(node.attributes[key])}")

    lines.append("")
    lines.append(f"Summary: {graph.node_count} nodes, {graph.edge_count} edges")
    return "\n".join(lines) + "\n"
