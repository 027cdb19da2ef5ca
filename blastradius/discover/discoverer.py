"""Level-synchronous breadth-first traversal.

All nodes of depth N are expanded, and every neighbour they emit is
collected, before any node of depth N+1 is looked at. Inside a level the
expanders run concurrently in worker threads, bounded by a semaphore; the
shared DependencyGraph is the only state they touch.

Each run owns its thread pool and a cancel event. When the run ends or times
out the event is set and the pool is shut down without waiting, so workers
still inside an API call stop at their next page or lookup.
"""

from __future__ import annotations

import asyncio
import functools
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from blastradius.discover.base import cancel_scope
from blastradius.discover.errors import DiscoveryCancelledError, DiscoveryTimeoutError, ExpansionError
from blastradius.discover.identifier import ResourceIdentifier
from blastradius.discover.registry import ExpanderRegistry, build_default_registry
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import DiscoveryResult
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover")

_T = TypeVar("_T")


@dataclass
class _RunState:
    executor: ThreadPoolExecutor
    cancel: threading.Event = field(default_factory=threading.Event)
    truncated: bool = False

    async def in_thread(self, fn: Callable[..., _T], *args: Any) -> _T:
        """Run ``fn`` on the run's pool with the cancel event bound."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(_cancellable, self.cancel, fn, *args))

    def close(self) -> None:
        self.cancel.set()
        self.executor.shutdown(wait=False, cancel_futures=True)


def _cancellable(cancel: threading.Event, fn: Callable[..., _T], *args: Any) -> _T:
    with cancel_scope(cancel):
        return fn(*args)


class Discoverer:
    """Runs one bounded discovery from a single seed resource.

    ``registry`` and ``identifier`` default to the built-in AWS ones; tests
    inject fakes so no clients are needed.
    """

    def __init__(
        self,
        clients: AWSClients | None,
        config: DiscoveryConfig,
        registry: ExpanderRegistry | None = None,
        identifier: ResourceIdentifier | None = None,
    ) -> None:
        if clients is None and (registry is None or identifier is None):
            raise ValueError("clients are required unless both registry and identifier are supplied")
        self._config = config
        self._registry = registry if registry is not None else build_default_registry(clients, config)
        self._identifier = identifier if identifier is not None else ResourceIdentifier(clients)

    async def discover(self, resource_id: str) -> DiscoveryResult:
        """Identify ``resource_id`` and crawl its dependencies.

        Raises:
            InvalidIdentifierError: unsupported or malformed ARN.
            NotFoundError: the friendly name matched nothing.
            DiscoveryTimeoutError: ``timeout_seconds`` elapsed first.
        """
        timeout = self._config.timeout_seconds
        # One extra worker for the identifier and headroom for abandoned calls.
        state = _RunState(ThreadPoolExecutor(self._config.concurrency + 1, thread_name_prefix="blast-radius"))
        try:
            if timeout is None:
                return await self._run(resource_id, state)
            try:
                return await asyncio.wait_for(self._run(resource_id, state), timeout)
            except TimeoutError as exc:
                _log.warning("discovery_timeout", resource=resource_id, timeout_seconds=timeout)
                raise DiscoveryTimeoutError(f"discovery of {resource_id} timed out after {timeout}s") from exc
        finally:
            state.close()

    async def _run(self, resource_id: str, state: _RunState) -> DiscoveryResult:
        start = time.monotonic()
        graph = DependencyGraph(max_nodes=self._config.max_nodes)

        seed = await state.in_thread(self._identifier.identify, resource_id)
        graph.add_node(seed)

        visited = {seed.id}
        levels: list[list[str]] = [[seed.id]]
        frontier = [seed.id]
        depth = 0

        while frontier and depth <= self._config.max_depth and not state.truncated:
            _log.debug(
                "bfs_level",
                depth=depth,
                frontier=len(frontier),
                total_nodes=graph.node_count,
            )
            results = await self._expand_level(frontier, graph, state)

            next_frontier: list[str] = []
            for neighbors in results:
                for neighbor_id in neighbors:
                    if neighbor_id not in visited:
                        visited.add(neighbor_id)
                        next_frontier.append(neighbor_id)
            if next_frontier:
                levels.append(next_frontier)
            frontier = next_frontier
            depth += 1

        result = DiscoveryResult(
            graph=graph,
            root_id=seed.id,
            levels=levels,
            depth_reached=len(levels) - 1,
            truncated=state.truncated or graph.refused > 0,
        )
        _log.info(
            "discovery_complete",
            root=seed.id,
            nodes=graph.node_count,
            edges=graph.edge_count,
            depth_reached=result.depth_reached,
            truncated=result.truncated,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
        )
        return result

    async def _expand_level(self, frontier: list[str], graph: DependencyGraph, state: _RunState) -> list[list[str]]:
        """Expand every id in ``frontier``; results come back in frontier order."""
        semaphore = asyncio.Semaphore(self._config.concurrency)

        async def expand_one(node_id: str) -> list[str]:
            async with semaphore:
                if state.truncated:
                    return []
                if graph.node_count >= self._config.max_nodes:
                    state.truncated = True
                    _log.warning("max_nodes_reached", max_nodes=self._config.max_nodes)
                    return []
                return await self._expand_node(node_id, graph, state)

        return await asyncio.gather(*(expand_one(node_id) for node_id in frontier))

    async def _expand_node(self, node_id: str, graph: DependencyGraph, state: _RunState) -> list[str]:
        node = graph.get_node(node_id)
        if node is None:
            return []
        expander = self._registry.get(node.type)
        if expander is None:
            _log.debug("no_expander", node_id=node_id, type=node.type)
            return []

        try:
            return await state.in_thread(expander.expand, node, graph)
        except DiscoveryCancelledError:
            return []
        except ExpansionError as exc:
            _log.warning(
                "node_expansion_failed",
                node_id=node_id,
                type=node.type,
                error=str(exc),
                partial_neighbors=len(exc.neighbors),
            )
            return exc.neighbors
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "node_expansion_failed",
                node_id=node_id,
                type=node.type,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return []
