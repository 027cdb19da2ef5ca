"""Resolve a user-supplied identifier to a typed seed node.

ARNs are parsed offline. Anything else is treated as a friendly name and
tried against the live APIs in a fixed order; the first hit wins.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from blastradius.discover.arn import ARN_MIN_PARTS, split_arn
from blastradius.discover.base import AWS_ERRORS, error_code, paginate
from blastradius.discover.ecs import ecs_service_to_node
from blastradius.discover.errors import InvalidIdentifierError, NotFoundError
from blastradius.discover.lambda_function import lambda_function_to_node
from blastradius.discover.load_balancer import load_balancer_to_node
from blastradius.discover.rds import rds_cluster_to_node, rds_instance_to_node
from blastradius.graph.models import Node, ResourceType
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients

_log = get_logger("discover.identifier")

_LB_KINDS = {"app": "application", "net": "network", "gwy": "gateway"}


def parse_arn(raw: str) -> Node:
    """Build a seed node from an ARN without calling AWS.

    Raises:
        InvalidIdentifierError: malformed ARN, or a service/resource kind
            with no expander.
    """
    parsed = split_arn(raw)
    if parsed is None:
        raise InvalidIdentifierError(f"invalid ARN format (need {ARN_MIN_PARTS} ':'-separated fields): {raw}")

    node = Node(id=raw, type="", arn=raw, region=parsed.region, account=parsed.account)
    resource = parsed.resource

    if parsed.service == "elasticloadbalancing":
        # loadbalancer/<app|net|gwy>/<name>/<id>; classic LBs have no kind segment.
        parts = resource.split("/")
        if parts[0] != "loadbalancer" or len(parts) < 3:
            raise InvalidIdentifierError(f"unsupported elasticloadbalancing resource: {resource}")
        node.type = ResourceType.LOAD_BALANCER
        node.name = parts[-2]
        if parts[1] in _LB_KINDS:
            node.attributes["type"] = _LB_KINDS[parts[1]]
    elif parsed.service == "ecs":
        parts = resource.split("/")
        if parts[0] != "service" or len(parts) < 2:
            raise InvalidIdentifierError(f"unsupported ecs resource: {resource}")
        node.type = ResourceType.ECS_SERVICE
        node.name = parts[-1]
        if len(parts) >= 3:
            node.attributes["cluster"] = parts[1]
    elif parsed.service == "lambda":
        parts = resource.split(":")
        if parts[0] != "function" or len(parts) < 2 or not parts[1]:
            raise InvalidIdentifierError(f"unsupported lambda resource: {resource}")
        node.type = ResourceType.LAMBDA
        node.name = parts[1]
        if len(parts) >= 3 and parts[2]:
            node.attributes["qualifier"] = parts[2]
    elif parsed.service == "rds":
        kind, _, identifier = resource.partition(":")
        if not identifier or kind not in ("db", "cluster"):
            raise InvalidIdentifierError(f"unsupported rds resource: {resource}")
        node.type = ResourceType.RDS_INSTANCE if kind == "db" else ResourceType.RDS_CLUSTER
        node.name = identifier
    else:
        raise InvalidIdentifierError(f"unsupported service in ARN: {parsed.service}")

    return node


class ResourceIdentifier:
    """Turns an ARN or friendly name into the seed node of a discovery run."""

    def __init__(self, clients: AWSClients) -> None:
        self._clients = clients

    def identify(self, raw: str) -> Node:
        """Resolve ``raw`` to a node.

        Raises:
            InvalidIdentifierError: ``raw`` is an ARN we cannot handle.
            NotFoundError: no resolver matched the friendly name.
        """
        raw = raw.strip()
        if raw.startswith("arn:"):
            node = parse_arn(raw)
            _log.info("resource_identified", node_id=node.id, type=node.type, name=node.name, source="arn")
            return node

        for label, resolver in self._resolvers(raw):
            try:
                node = resolver()
            except AWS_ERRORS as exc:
                _log.debug("resolver_miss", resolver=label, identifier=raw, error_code=error_code(exc))
                continue
            if node is not None:
                _log.info("resource_identified", node_id=node.id, type=node.type, name=node.name, source=label)
                return node

        raise NotFoundError(f"unable to identify resource: {raw}")

    def _resolvers(self, raw: str) -> list[tuple[str, Callable[[], Node | None]]]:
        resolvers: list[tuple[str, Callable[[], Node | None]]] = [
            ("load_balancer", lambda: self._load_balancer(raw)),
        ]
        if raw.count("/") == 1:
            cluster, service = raw.split("/")
            resolvers.append(("ecs_service", lambda: self._ecs_service(cluster, service)))
        resolvers.extend(
            [
                ("lambda", lambda: self._lambda_function(raw)),
                ("rds_instance", lambda: self._rds_instance(raw)),
                ("rds_cluster", lambda: self._rds_cluster(raw)),
            ]
        )
        return resolvers

    def _load_balancer(self, name: str) -> Node | None:
        lbs = paginate(self._clients.elbv2, "describe_load_balancers", "LoadBalancers", Names=[name])
        return load_balancer_to_node(lbs[0]) if lbs else None

    def _ecs_service(self, cluster: str, service: str) -> Node | None:
        if not cluster or not service:
            return None
        output = self._clients.ecs.describe_services(cluster=cluster, services=[service], include=["TAGS"])
        for svc in output.get("services", []):
            # Missing services come back as failures, inactive ones as status INACTIVE.
            if svc.get("status") != "INACTIVE":
                return ecs_service_to_node(svc, cluster)
        return None

    def _lambda_function(self, name: str) -> Node | None:
        output = self._clients.lambda_.get_function(FunctionName=name)
        return lambda_function_to_node(output["Configuration"], output.get("Tags"))

    def _rds_instance(self, identifier: str) -> Node | None:
        instances = self._clients.rds.describe_db_instances(DBInstanceIdentifier=identifier).get("DBInstances", [])
        return rds_instance_to_node(instances[0]) if instances else None

    def _rds_cluster(self, identifier: str) -> Node | None:
        clusters = self._clients.rds.describe_db_clusters(DBClusterIdentifier=identifier).get("DBClusters", [])
        return rds_cluster_to_node(clusters[0]) if clusters else None
