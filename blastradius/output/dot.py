"""Graphviz DOT rendering."""

from __future__ import annotations

from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _node_label(node: Node) -> str:
    label = f"{node.type}\\n{node.name or node.id}"
    if node.region:
        label += f"\\n({node.region})"
    return label.replace('"', '\\"')


def render_dot(graph: DependencyGraph) -> str:
    """Render ``graph`` as a left-to-right digraph; heuristic edges are dashed."""
    lines = [
        "digraph blast_radius {",
        "  rankdir=LR;",
        "  node [shape=box, style=rounded];",
        "",
    ]
    for node in sorted(graph.nodes(), key=lambda n: n.id):
        lines.append(f'  {_quote(node.id)} [label="{_node_label(node)}"];')
    lines.append("")
    for edge in graph.edges():
        attrs = f'label="{edge.relation}'
        if edge.evidence.heuristic:
            attrs += ' (heuristic)", style=dashed'
        else:
            attrs += '"'
        lines.append(f"  {_quote(edge.source)} -> {_quote(edge.target)} [{attrs}];")
    lines.append("}")
    return "\n".join(lines) + "\n"
