"""Renderers for a finished dependency graph.

Renderers only read the graph. ``render`` dispatches on the format name used
by the CLI.
"""

from __future__ import annotations

from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.output.dot import render_dot
from blastradius.output.json import GraphDocument, render_json
from blastradius.output.tree import render_tree

FORMATS = ("tree", "dot", "json")


def render(fmt: str, graph: DependencyGraph, root_id: str, levels: list[list[str]] | None = None) -> str:
    """Render ``graph`` in ``fmt``; raises ValueError for an unknown format.

    ``levels`` only affects the tree layout.
    """
    if fmt == "tree":
        return render_tree(graph, root_id, levels)
    if fmt == "dot":
        return render_dot(graph)
    if fmt == "json":
        return render_json(graph)
    raise ValueError(f"unsupported output format: {fmt!r} (expected one of {', '.join(FORMATS)})")


__all__ = [
    "FORMATS",
    "GraphDocument",
    "render",
    "render_dot",
    "render_json",
    "render_tree",
]
