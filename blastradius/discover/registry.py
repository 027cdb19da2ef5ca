"""Type tag -> expander registry.

The orchestrator only ever talks to the registry, so adding a resource family
means writing an Expander subclass and registering it here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from blastradius.discover.base import Expander

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig


class ExpanderRegistry:
    """Maps node type tags to the expander that handles them."""

    def __init__(self) -> None:
        self._by_type: dict[str, Expander] = {}

    def register(self, expander: Expander, *types: str) -> None:
        """Register ``expander`` for its ``resource_types`` (or explicit ``types``)."""
        for type_ in types or expander.resource_types:
            self._by_type[type_] = expander

    def get(self, type_: str) -> Expander | None:
        return self._by_type.get(type_)

    def __contains__(self, type_: object) -> bool:
        return type_ in self._by_type

    @property
    def types(self) -> list[str]:
        return sorted(self._by_type)


def build_default_registry(clients: AWSClients, config: DiscoveryConfig) -> ExpanderRegistry:
    """Registry with every built-in expander."""
    from blastradius.discover.ecs import ECSServiceExpander
    from blastradius.discover.lambda_function import LambdaExpander
    from blastradius.discover.load_balancer import LoadBalancerExpander
    from blastradius.discover.rds import RDSExpander

    registry = ExpanderRegistry()
    for expander_cls in (LoadBalancerExpander, ECSServiceExpander, LambdaExpander, RDSExpander):
        registry.register(expander_cls(clients, config))
    return registry
