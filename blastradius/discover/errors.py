"""Discovery error taxonomy.

Only InvalidIdentifierError and NotFoundError abort a run. ExpansionError is
absorbed per node by the orchestrator; secondary lookups that fail inside an
expander are logged and never raised at all.
DiscoveryCancelledError unwinds expander threads once a run has been
abandoned.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for all discovery failures."""


class InvalidIdentifierError(DiscoveryError):
    """Malformed ARN, or an ARN for a service/resource kind we cannot expand."""


class NotFoundError(DiscoveryError):
    """No resource matched the identifier, or a required describe call came back empty."""


class ExpansionError(DiscoveryError):
    """A required API call failed while expanding one node.

    ``neighbors`` holds the ids the expander had already emitted before the
    failure; the orchestrator still enqueues them.
    """

    def __init__(self, message: str, neighbors: list[str] | None = None) -> None:
        super().__init__(message)
        self.neighbors: list[str] = list(neighbors or [])


class DiscoveryTimeoutError(DiscoveryError):
    """The run-level timeout fired before traversal finished."""


class DiscoveryCancelledError(DiscoveryError):
    """The run was abandoned; raised between API calls in worker threads."""
