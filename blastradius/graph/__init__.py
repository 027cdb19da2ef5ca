"""Resource dependency graph populated by the discovery engine.

Nodes are AWS resources keyed by ARN (or a synthetic id when the resource has
none); edges are directed relationships carrying the API evidence that
revealed them.
"""

from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import (
    DiscoveryResult,
    Edge,
    Evidence,
    GraphLevel,
    Node,
    Relation,
    ResourceType,
)

__all__ = [
    "DependencyGraph",
    "DiscoveryResult",
    "Edge",
    "Evidence",
    "GraphLevel",
    "Node",
    "Relation",
    "ResourceType",
]
