"""Expander contract and shared helpers.

An expander turns one resolved node into its neighbours: it re-fetches the
resource's configuration, merges every related resource into the shared
graph with an evidence-bearing edge, and returns the neighbour ids.

``expand`` is called from worker threads, concurrently with other expanders
working on the same BFS level. All graph access goes through the
DependencyGraph methods, which are individually locked.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import replace
from typing import TYPE_CHECKING, Any, ClassVar

from botocore.exceptions import BotoCoreError, ClientError

from blastradius.discover.errors import DiscoveryCancelledError, ExpansionError
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Edge, Evidence, Node
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover.expander")

AWS_ERRORS = (ClientError, BotoCoreError)

_cancel_event: ContextVar[threading.Event | None] = ContextVar("cancel_event", default=None)


@contextmanager
def cancel_scope(event: threading.Event) -> Iterator[None]:
    """Bind ``event`` as the cancellation signal for the calling thread."""
    token = _cancel_event.set(event)
    try:
        yield
    finally:
        _cancel_event.reset(token)


def raise_if_cancelled() -> None:
    """Raise DiscoveryCancelledError once the bound cancel event is set."""
    event = _cancel_event.get()
    if event is not None and event.is_set():
        raise DiscoveryCancelledError("discovery cancelled")


def error_code(exc: Exception) -> str:
    """Return the AWS error code of a ClientError, or the exception class name."""
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", "ClientError"))
    return type(exc).__name__


def paginate(client: Any, operation: str, result_key: str, **kwargs: Any) -> list[dict[str, Any]]:
    """Drain every page of ``operation`` and concatenate ``result_key``.

    Falls back to a single call when botocore has no paginator for the
    operation.
    """
    raise_if_cancelled()
    if client.can_paginate(operation):
        items: list[dict[str, Any]] = []
        for page in client.get_paginator(operation).paginate(**kwargs):
            raise_if_cancelled()
            items.extend(page.get(result_key, []))
        return items
    return list(getattr(client, operation)(**kwargs).get(result_key, []))


def tags_from_list(tag_list: list[dict[str, str]] | None, key: str = "Key", value: str = "Value") -> dict[str, str]:
    """Convert AWS ``[{"Key": k, "Value": v}]`` tag lists to a dict."""
    return {t[key]: t.get(value, "") for t in tag_list or [] if key in t}


class Expander(ABC):
    """Base class for per-resource-family expanders."""

    resource_types: ClassVar[tuple[str, ...]] = ()

    def __init__(self, clients: AWSClients, config: DiscoveryConfig) -> None:
        self._clients = clients
        self._config = config

    def expand(self, node: Node, graph: DependencyGraph) -> list[str]:
        """Discover ``node``'s neighbours and return their ids.

        Raises:
            ExpansionError: a required lookup failed, or the response could
                not be read. ``neighbors`` on the error carries whatever was
                emitted before the failure.
            DiscoveryCancelledError: the run was abandoned.
        """
        neighbors: list[str] = []
        raise_if_cancelled()
        try:
            self._expand(node, graph, neighbors)
        except DiscoveryCancelledError:
            raise
        except ExpansionError as exc:
            exc.neighbors = list(neighbors)
            raise
        except AWS_ERRORS as exc:
            raise ExpansionError(
                f"{node.type} {node.id}: {error_code(exc)}: {exc}",
                neighbors=neighbors,
            ) from exc
        except Exception as exc:  # noqa: BLE001
            # Malformed response; keep what was linked before the failure.
            raise ExpansionError(
                f"{node.type} {node.id}: unexpected {type(exc).__name__}: {exc}",
                neighbors=neighbors,
            ) from exc
        return neighbors

    @abstractmethod
    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        """Append neighbour ids to ``neighbors`` as they are discovered."""

    # ------------------------------------------------------------------
    # Graph helpers
    # ------------------------------------------------------------------

    def _refresh(self, graph: DependencyGraph, node: Node, fresh: Node) -> None:
        """Fold the authoritative record ``fresh`` into the vertex ``node.id``."""
        graph.merge_node(replace(fresh, id=node.id, type=node.type))

    def _link(
        self,
        graph: DependencyGraph,
        source_id: str,
        target: Node,
        relation: str,
        api_call: str,
        fields: dict[str, Any],
        *,
        reverse: bool = False,
    ) -> str | None:
        """Merge ``target`` and add an edge between it and ``source_id``.

        With ``reverse=True`` the edge points from ``target`` to
        ``source_id`` (e.g. a DNS record aliasing a load balancer). Returns
        the target id, or None when the graph is full and refused the node.
        """
        if not graph.merge_node(target):
            _log.debug("node_rejected_graph_full", node_id=target.id, type=target.type)
            return None
        src, dst = (target.id, source_id) if reverse else (source_id, target.id)
        graph.add_edge(Edge(source=src, target=dst, relation=relation, evidence=Evidence(api_call, fields)))
        return target.id

    def _stub(self, node_id: str, type_: str, parent: Node, **kwargs: Any) -> Node:
        """Build a node that inherits region/account from ``parent``."""
        kwargs.setdefault("name", node_id)
        return Node(id=node_id, type=type_, region=parent.region, account=parent.account, **kwargs)

    # ------------------------------------------------------------------
    # Secondary lookups
    # ------------------------------------------------------------------

    def _enrich(self, label: str, node: Node, fn: Callable[[], list[str]]) -> list[str]:
        """Run a non-essential sub-query; failures are logged, never raised."""
        raise_if_cancelled()
        try:
            return fn()
        except (*AWS_ERRORS, ExpansionError) as exc:
            _log.warning(
                "enrichment_failed",
                lookup=label,
                node_id=node.id,
                error_code=error_code(exc),
                error=str(exc),
            )
            return []
