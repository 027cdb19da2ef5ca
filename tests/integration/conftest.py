"""Shared fixtures for blast-radius integration tests.

The orchestrator is exercised over an in-memory "topology": a dict mapping
node ids to the ids they depend on. A scripted expander turns that dict into
graph edges, so traversal order, caps and failure handling can be checked
without any AWS clients.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

import pytest

from blastradius.discover.base import Expander
from blastradius.discover.discoverer import Discoverer
from blastradius.discover.errors import NotFoundError
from blastradius.discover.registry import ExpanderRegistry
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node
from blastradius.models.config import DiscoveryConfig

FAKE_TYPE = "Fake"


class TopologyIdentifier:
    """Resolves any id present in the topology to a Fake node."""

    def __init__(self, topology: dict[str, list[str]]) -> None:
        self._topology = topology

    def identify(self, raw: str) -> Node:
        if raw not in self._topology:
            raise NotFoundError(f"unable to identify resource: {raw}")
        return Node(id=raw, type=FAKE_TYPE, name=raw)


class TopologyExpander(Expander):
    """Emits one ``depends-on`` edge per child listed in the topology.

    ``fail`` maps node ids to the exception raised after its children have
    been emitted; every call is recorded in ``calls``.
    """

    resource_types = (FAKE_TYPE,)

    def __init__(
        self,
        topology: dict[str, list[str]],
        fail: dict[str, Exception] | None = None,
        on_expand: Callable[[str], None] | None = None,
    ) -> None:
        super().__init__(None, DiscoveryConfig())  # type: ignore[arg-type]
        self._topology = topology
        self._fail = fail or {}
        self._on_expand = on_expand
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        with self._lock:
            self.calls.append(node.id)
        if self._on_expand is not None:
            self._on_expand(node.id)
        for child in self._topology.get(node.id, []):
            neighbor = self._link(graph, node.id, Node(id=child, type=FAKE_TYPE, name=child), "depends-on", "Fake", {})
            if neighbor:
                neighbors.append(neighbor)
        if node.id in self._fail:
            raise self._fail[node.id]


@pytest.fixture
def make_discoverer() -> Callable[..., tuple[Discoverer, TopologyExpander]]:
    """Build a Discoverer over a topology: ``make_discoverer(topology, max_depth=3, fail={...})``."""

    def factory(
        topology: dict[str, list[str]],
        fail: dict[str, Exception] | None = None,
        on_expand: Callable[[str], None] | None = None,
        **config: Any,
    ) -> tuple[Discoverer, TopologyExpander]:
        expander = TopologyExpander(topology, fail=fail, on_expand=on_expand)
        registry = ExpanderRegistry()
        registry.register(expander)
        discoverer = Discoverer(
            None,
            DiscoveryConfig(**config),
            registry=registry,
            identifier=TopologyIdentifier(topology),  # type: ignore[arg-type]
        )
        return discoverer, expander

    return factory
