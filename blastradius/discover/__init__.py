"""Discovery engine: resource identification, expanders and BFS orchestration."""

from blastradius.discover.base import Expander
from blastradius.discover.discoverer import Discoverer
from blastradius.discover.errors import (
    DiscoveryError,
    DiscoveryTimeoutError,
    ExpansionError,
    InvalidIdentifierError,
    NotFoundError,
)
from blastradius.discover.heuristics import EndpointHeuristic
from blastradius.discover.identifier import ResourceIdentifier, parse_arn
from blastradius.discover.registry import ExpanderRegistry, build_default_registry

__all__ = [
    "Discoverer",
    "DiscoveryError",
    "DiscoveryTimeoutError",
    "EndpointHeuristic",
    "Expander",
    "ExpanderRegistry",
    "ExpansionError",
    "InvalidIdentifierError",
    "NotFoundError",
    "ResourceIdentifier",
    "build_default_registry",
    "parse_arn",
]
