"""Integration tests for the level-synchronous BFS orchestrator."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from blastradius.discover.discoverer import Discoverer
from blastradius.discover.errors import DiscoveryTimeoutError, ExpansionError, NotFoundError
from blastradius.discover.registry import ExpanderRegistry
from blastradius.graph.models import Node
from blastradius.models.config import DiscoveryConfig

_DIAMOND = {"A": ["B", "C"], "B": ["D"], "C": ["D"], "D": []}


# =====================================================================
# Traversal shape
# =====================================================================


class TestTraversal:
    """Level grouping, visited-set handling and depth bounds."""

    async def test_diamond_levels(self, make_discoverer) -> None:
        discoverer, expander = make_discoverer(_DIAMOND, max_depth=2)

        result = await discoverer.discover("A")

        assert result.root_id == "A"
        assert result.levels == [["A"], ["B", "C"], ["D"]]
        assert result.depth_reached == 2
        assert result.truncated is False
        assert sorted(expander.calls) == ["A", "B", "C", "D"]
        # Both paths into D are recorded even though D is expanded once.
        assert len(result.graph.edges_into("D")) == 2
        assert result.graph.edge_count == 4

    @pytest.mark.parametrize("size", [1, 2, 3, 7])
    async def test_cycle_visits_each_node_once(self, make_discoverer, size: int) -> None:
        ids = [f"n{i}" for i in range(size)]
        topology = {node_id: [ids[(i + 1) % size]] for i, node_id in enumerate(ids)}
        discoverer, expander = make_discoverer(topology, max_depth=size + 2)

        result = await discoverer.discover("n0")

        assert result.graph.node_count == size
        assert sorted(expander.calls) == sorted(ids)
        assert result.graph.edge_count == size

    async def test_max_depth_zero_expands_only_the_seed(self, make_discoverer) -> None:
        discoverer, expander = make_discoverer(_DIAMOND, max_depth=0)

        result = await discoverer.discover("A")

        assert expander.calls == ["A"]
        assert result.levels == [["A"], ["B", "C"]]
        assert result.graph.node_count == 3

    async def test_levels_are_well_ordered(self, make_discoverer) -> None:
        topology = {
            "root": ["a", "b", "c"],
            "a": ["d", "e", "root"],
            "b": ["e", "f"],
            "c": ["g"],
            "d": ["h", "a"],
            "e": ["h"],
            "f": [],
            "g": ["b", "i"],
            "h": [],
            "i": [],
        }
        discoverer, _ = make_discoverer(topology, max_depth=5)

        result = await discoverer.discover("root")

        depth_of = {node_id: depth for depth, level in enumerate(result.levels) for node_id in level}
        assert set(depth_of) == set(topology)
        for node_id, depth in depth_of.items():
            if depth == 0:
                continue
            parents = {e.source for e in result.graph.edges_into(node_id)}
            assert any(depth_of[p] == depth - 1 for p in parents), node_id

    async def test_frontier_order_is_independent_of_completion_order(self, make_discoverer) -> None:
        topology = {"A": ["slow", "fast"], "slow": ["x"], "fast": ["y"], "x": [], "y": []}

        def on_expand(node_id: str) -> None:
            if node_id == "slow":
                time.sleep(0.05)

        discoverer, _ = make_discoverer(topology, on_expand=on_expand, max_depth=3)

        result = await discoverer.discover("A")

        assert result.levels == [["A"], ["slow", "fast"], ["x", "y"]]

    async def test_unknown_type_is_a_leaf(self) -> None:
        class _Identifier:
            def identify(self, raw: str) -> Node:
                return Node(id=raw, type="Unregistered")

        discoverer = Discoverer(None, DiscoveryConfig(), registry=ExpanderRegistry(), identifier=_Identifier())

        result = await discoverer.discover("x")

        assert result.levels == [["x"]]
        assert result.graph.node_count == 1

    async def test_identification_failure_propagates(self, make_discoverer) -> None:
        discoverer, _ = make_discoverer(_DIAMOND)
        with pytest.raises(NotFoundError):
            await discoverer.discover("nope")

    def test_requires_clients_or_injected_collaborators(self) -> None:
        with pytest.raises(ValueError):
            Discoverer(None, DiscoveryConfig())


# =====================================================================
# Node cap
# =====================================================================


class TestNodeCap:
    """max_nodes is checked per dequeued node and enforced by the graph."""

    async def test_max_nodes_one(self, make_discoverer) -> None:
        discoverer, expander = make_discoverer(_DIAMOND, max_nodes=1)

        result = await discoverer.discover("A")

        assert result.graph.node_count == 1
        assert result.graph.edge_count == 0
        assert result.truncated is True
        assert expander.calls == []

    async def test_cap_holds_mid_level(self, make_discoverer) -> None:
        topology = {"root": [f"c{i}" for i in range(10)]} | {f"c{i}": [f"g{i}"] for i in range(10)}
        discoverer, expander = make_discoverer(topology, max_nodes=5, max_depth=3)

        result = await discoverer.discover("root")

        assert result.graph.node_count == 5
        assert result.truncated is True
        assert result.levels == [["root"], ["c0", "c1", "c2", "c3"]]
        assert expander.calls == ["root"]

    async def test_refusal_on_last_level_marks_truncated(self, make_discoverer) -> None:
        topology = {"root": [f"c{i}" for i in range(10)]}
        discoverer, expander = make_discoverer(topology, max_nodes=5, max_depth=0)

        result = await discoverer.discover("root")

        assert result.levels == [["root"], ["c0", "c1", "c2", "c3"]]
        assert result.truncated is True
        assert expander.calls == ["root"]

    @pytest.mark.parametrize("cap", [2, 3, 6, 11])
    async def test_node_count_never_exceeds_cap(self, make_discoverer, cap: int) -> None:
        topology = {f"n{i}": [f"n{2 * i + 1}", f"n{2 * i + 2}"] for i in range(15)}
        discoverer, _ = make_discoverer(topology, max_nodes=cap, max_depth=10, concurrency=4)

        result = await discoverer.discover("n0")

        assert result.graph.node_count <= cap

    async def test_exact_fit_is_not_truncated(self, make_discoverer) -> None:
        discoverer, _ = make_discoverer(_DIAMOND, max_nodes=10, max_depth=2)
        result = await discoverer.discover("A")
        assert result.truncated is False


# =====================================================================
# Failure handling
# =====================================================================


class TestFailureResilience:
    """Per-node failures never abort the run."""

    async def test_expansion_error_keeps_partial_neighbours(self, make_discoverer) -> None:
        topology = {"A": ["B", "C"], "B": ["D"], "C": ["E"], "D": [], "E": []}
        fail = {"B": ExpansionError("describe failed")}
        discoverer, expander = make_discoverer(topology, fail=fail, max_depth=3)

        result = await discoverer.discover("A")

        assert result.levels == [["A"], ["B", "C"], ["D", "E"]]
        assert "D" in expander.calls

    async def test_malformed_response_keeps_partial_neighbours(self, make_discoverer) -> None:
        topology = {"A": ["B"], "B": ["D"], "D": ["E"], "E": []}
        fail = {"B": KeyError("Configuration")}
        discoverer, expander = make_discoverer(topology, fail=fail, max_depth=3)

        result = await discoverer.discover("A")

        assert result.levels == [["A"], ["B"], ["D"], ["E"]]
        assert expander.calls == ["A", "B", "D", "E"]

    async def test_every_graph_node_has_a_level(self, make_discoverer) -> None:
        topology = {"A": ["B", "C"], "B": ["D"], "C": ["E"], "D": [], "E": []}
        fail = {"B": RuntimeError("bug in expander"), "C": ValueError("bad type")}
        discoverer, _ = make_discoverer(topology, fail=fail, max_depth=3)

        result = await discoverer.discover("A")

        levelled = {node_id for level in result.levels for node_id in level}
        assert levelled == {node.id for node in result.graph.nodes()}

    async def test_seed_failure_still_returns_result(self, make_discoverer) -> None:
        discoverer, _ = make_discoverer(_DIAMOND, fail={"A": ExpansionError("denied")})
        result = await discoverer.discover("A")
        assert result.levels[0] == ["A"]
        assert result.levels[1] == ["B", "C"]


# =====================================================================
# Concurrency and timeouts
# =====================================================================


class TestConcurrency:
    async def test_concurrency_is_bounded(self, make_discoverer) -> None:
        topology = {"root": [f"c{i}" for i in range(20)]} | {f"c{i}": [] for i in range(20)}
        lock = threading.Lock()
        active = 0
        peak = 0

        def on_expand(node_id: str) -> None:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        discoverer, expander = make_discoverer(topology, on_expand=on_expand, concurrency=3, max_depth=2)

        await discoverer.discover("root")

        assert len(expander.calls) == 21
        assert 1 <= peak <= 3

    async def test_timeout_raises(self, make_discoverer) -> None:
        def on_expand(node_id: str) -> None:
            time.sleep(0.3)

        discoverer, _ = make_discoverer(_DIAMOND, on_expand=on_expand, timeout_seconds=0.05)

        with pytest.raises(DiscoveryTimeoutError):
            await discoverer.discover("A")

    def test_timeout_returns_promptly_through_asyncio_run(self, make_discoverer) -> None:
        release = threading.Event()
        discoverer, _ = make_discoverer(
            _DIAMOND, on_expand=lambda node_id: release.wait(5), timeout_seconds=0.1
        )

        start = time.monotonic()
        try:
            with pytest.raises(DiscoveryTimeoutError):
                asyncio.run(discoverer.discover("A"))
            elapsed = time.monotonic() - start
        finally:
            release.set()

        assert elapsed < 1.0

    async def test_abandoned_workers_stop_expanding(self, make_discoverer) -> None:
        release = threading.Event()
        topology = {"root": ["a", "b"], "a": [], "b": []}
        discoverer, expander = make_discoverer(
            topology, on_expand=lambda node_id: release.wait(5), timeout_seconds=0.1, concurrency=1
        )

        with pytest.raises(DiscoveryTimeoutError):
            await discoverer.discover("root")
        release.set()
        await asyncio.sleep(0.2)

        assert expander.calls == ["root"]

    async def test_generous_timeout_completes(self, make_discoverer) -> None:
        discoverer, _ = make_discoverer(_DIAMOND, timeout_seconds=30)
        result = await discoverer.discover("A")
        assert result.graph.node_count == 4
