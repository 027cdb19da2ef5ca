"""Thread-safe in-memory dependency graph.

Expanders for one BFS level run in worker threads and mutate the same
DependencyGraph, so every public method takes the graph lock for the
duration of that single read or write. The lock is never held across an AWS
call: callers build their Node/Edge objects first and insert afterwards.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace

from blastradius.graph.models import Edge, GraphLevel, Node


class DependencyGraph:
    """Nodes keyed by id plus an append-only edge list.

    ``max_nodes`` optionally caps the number of distinct vertices. Once the
    cap is reached, inserts of *new* ids are refused (the insert methods
    return False) while updates to existing ids still succeed.
    """

    def __init__(self, max_nodes: int | None = None) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[str, Node] = {}
        self._edges: list[Edge] = []
        self._max_nodes = max_nodes
        self._refused = 0
        self._claims: set[str] = set()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> bool:
        """Insert or replace a node (last writer wins).

        Returns False only when ``node.id`` is new and the graph is full.
        """
        with self._lock:
            if not self._has_room_for(node.id):
                self._refused += 1
                return False
            self._nodes[node.id] = node
            return True

    def merge_node(self, node: Node) -> bool:
        """Insert a node, or fold its data into the existing record.

        Non-empty scalar fields of ``node`` overwrite the stored ones, tags and
        attributes are merged key by key. The id and type of an existing
        record never change.
        """
        with self._lock:
            existing = self._nodes.get(node.id)
            if existing is None:
                if not self._has_room_for(node.id):
                    self._refused += 1
                    return False
                self._nodes[node.id] = node
                return True
            self._nodes[node.id] = replace(
                existing,
                name=node.name or existing.name,
                arn=node.arn or existing.arn,
                region=node.region or existing.region,
                account=node.account or existing.account,
                tags={**existing.tags, **node.tags},
                attributes={**existing.attributes, **node.attributes},
            )
            return True

    def add_edge(self, edge: Edge) -> None:
        """Append an edge. Edges are not deduplicated."""
        with self._lock:
            self._edges.append(edge)

    def claim(self, key: str) -> bool:
        """Return True for the first caller to claim ``key`` in this graph.

        Expanders claim shared resources (target groups, task definitions)
        before describing them, so each one is described once per run no
        matter which expander reaches it first.
        """
        with self._lock:
            if key in self._claims:
                return False
            self._claims.add(key)
            return True

    def _has_room_for(self, node_id: str) -> bool:
        if node_id in self._nodes or self._max_nodes is None:
            return True
        return len(self._nodes) < self._max_nodes

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> Node | None:
        with self._lock:
            return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._nodes

    def nodes(self) -> list[Node]:
        with self._lock:
            return list(self._nodes.values())

    def edges(self) -> list[Edge]:
        with self._lock:
            return list(self._edges)

    def edges_from(self, node_id: str) -> list[Edge]:
        with self._lock:
            return [e for e in self._edges if e.source == node_id]

    def edges_into(self, node_id: str) -> list[Edge]:
        with self._lock:
            return [e for e in self._edges if e.target == node_id]

    @property
    def node_count(self) -> int:
        with self._lock:
            return len(self._nodes)

    @property
    def edge_count(self) -> int:
        with self._lock:
            return len(self._edges)

    @property
    def refused(self) -> int:
        """Number of inserts turned away because the graph was full."""
        with self._lock:
            return self._refused

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._max_nodes is not None and len(self._nodes) >= self._max_nodes

    def bfs(self, root_id: str) -> list[GraphLevel]:
        """Group nodes by BFS depth from ``root_id``.

        Edges are walked in both directions, so resources that point at the
        root (event sources, DNS records, heuristic consumers) are reached
        too. Returns an empty list when the root is unknown. Each node appears
        in exactly one level.
        """
        with self._lock:
            if root_id not in self._nodes:
                return []
            adjacency: dict[str, list[str]] = {}
            for edge in self._edges:
                adjacency.setdefault(edge.source, []).append(edge.target)
                adjacency.setdefault(edge.target, []).append(edge.source)

            levels: list[GraphLevel] = []
            visited = {root_id}
            queue: deque[str] = deque([root_id])
            depth = 0
            while queue:
                level = GraphLevel(depth=depth)
                for _ in range(len(queue)):
                    node_id = queue.popleft()
                    level.nodes.append(self._nodes[node_id])
                    for target in adjacency.get(node_id, []):
                        if target not in visited and target in self._nodes:
                            visited.add(target)
                            queue.append(target)
                levels.append(level)
                depth += 1
            return levels
