"""RDS instance and cluster expander.

Membership is recorded from both sides: an instance emits
``cluster -contains-> instance`` and a cluster emits the same relation for
each member. Both sides use ARNs as vertex ids so they land on the same
nodes; the two edges are kept independently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from blastradius.discover.arn import build_arn, split_arn
from blastradius.discover.base import Expander, tags_from_list
from blastradius.discover.errors import ExpansionError
from blastradius.discover.heuristics import EndpointHeuristic
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node, Relation, ResourceType
from blastradius.models.config import HEURISTIC_RDS_ENDPOINT
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover.rds")


def _optional(attributes: dict[str, Any], source: dict[str, Any], pairs: tuple[tuple[str, str], ...]) -> None:
    for key, attr in pairs:
        if source.get(key) is not None:
            attributes[attr] = source[key]


def rds_instance_to_node(instance: dict[str, Any]) -> Node:
    arn = instance["DBInstanceArn"]
    parsed = split_arn(arn)
    attributes: dict[str, Any] = {
        "engine": instance.get("Engine"),
        "engineVersion": instance.get("EngineVersion"),
        "status": instance.get("DBInstanceStatus"),
    }
    _optional(
        attributes,
        instance,
        (
            ("DBInstanceClass", "instanceClass"),
            ("AllocatedStorage", "allocatedStorage"),
            ("StorageType", "storageType"),
            ("MultiAZ", "multiAZ"),
            ("PubliclyAccessible", "publiclyAccessible"),
        ),
    )
    endpoint = instance.get("Endpoint") or {}
    if endpoint.get("Address"):
        attributes["endpoint"] = endpoint["Address"]
    if endpoint.get("Port") is not None:
        attributes["port"] = endpoint["Port"]
    return Node(
        id=arn,
        type=ResourceType.RDS_INSTANCE,
        name=instance.get("DBInstanceIdentifier", ""),
        arn=arn,
        region=parsed.region if parsed else "",
        account=parsed.account if parsed else "",
        tags=tags_from_list(instance.get("TagList")),
        attributes=attributes,
    )


def rds_cluster_to_node(cluster: dict[str, Any]) -> Node:
    arn = cluster["DBClusterArn"]
    parsed = split_arn(arn)
    attributes: dict[str, Any] = {
        "engine": cluster.get("Engine"),
        "engineVersion": cluster.get("EngineVersion"),
        "status": cluster.get("Status"),
    }
    _optional(
        attributes,
        cluster,
        (
            ("AllocatedStorage", "allocatedStorage"),
            ("StorageType", "storageType"),
            ("MultiAZ", "multiAZ"),
            ("Endpoint", "endpoint"),
            ("Port", "port"),
            ("ReaderEndpoint", "readerEndpoint"),
        ),
    )
    return Node(
        id=arn,
        type=ResourceType.RDS_CLUSTER,
        name=cluster.get("DBClusterIdentifier", ""),
        arn=arn,
        region=parsed.region if parsed else "",
        account=parsed.account if parsed else "",
        tags=tags_from_list(cluster.get("TagList")),
        attributes=attributes,
    )


class RDSExpander(Expander):
    """Expands RDS instances and Aurora/Multi-AZ clusters."""

    resource_types = (ResourceType.RDS_INSTANCE, ResourceType.RDS_CLUSTER)

    def __init__(self, clients: AWSClients, config: DiscoveryConfig) -> None:
        super().__init__(clients, config)
        self._rds = clients.rds
        self._heuristic = EndpointHeuristic(clients)

    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        if node.type == ResourceType.RDS_INSTANCE:
            self._expand_instance(node, graph, neighbors)
        elif node.type == ResourceType.RDS_CLUSTER:
            self._expand_cluster(node, graph, neighbors)
        else:
            raise ExpansionError(f"unknown RDS type: {node.type}")

    def _sibling_arn(self, node: Node, kind: str, identifier: str) -> str:
        """ARN for another RDS resource in ``node``'s account, or the bare identifier."""
        parsed = split_arn(node.arn)
        if parsed is None or not parsed.region or not parsed.account:
            return identifier
        return build_arn(parsed.partition, "rds", parsed.region, parsed.account, f"{kind}:{identifier}")

    def _append(self, neighbors: list[str], neighbor: str | None) -> None:
        if neighbor:
            neighbors.append(neighbor)

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def _expand_instance(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        identifier = node.name or node.arn
        _log.debug("expanding_rds_instance", identifier=identifier)

        output = self._rds.describe_db_instances(DBInstanceIdentifier=identifier)
        instances = output.get("DBInstances", [])
        if not instances:
            raise ExpansionError(f"RDS instance not found: {identifier}")
        instance = instances[0]
        self._refresh(graph, node, rds_instance_to_node(instance))

        subnet_group = instance.get("DBSubnetGroup") or {}
        group_name = subnet_group.get("DBSubnetGroupName")
        if group_name:
            attributes: dict[str, Any] = {"vpcId": subnet_group.get("VpcId")}
            if subnet_group.get("DBSubnetGroupDescription"):
                attributes["description"] = subnet_group["DBSubnetGroupDescription"]
            group_id = self._link(
                graph,
                node.id,
                self._stub(group_name, ResourceType.DB_SUBNET_GROUP, node, attributes=attributes),
                Relation.USES_SUBNET_GROUP,
                "DescribeDBInstances",
                {"DBSubnetGroupName": group_name},
            )
            self._append(neighbors, group_id)
            if group_id:
                for subnet in subnet_group.get("Subnets", []):
                    subnet_id = subnet.get("SubnetIdentifier")
                    if not subnet_id:
                        continue
                    az = (subnet.get("SubnetAvailabilityZone") or {}).get("Name")
                    subnet_node = self._stub(
                        subnet_id,
                        ResourceType.SUBNET,
                        node,
                        attributes={"availabilityZone": az} if az else {},
                    )
                    self._append(
                        neighbors,
                        self._link(
                            graph,
                            group_id,
                            subnet_node,
                            Relation.CONTAINS,
                            "DescribeDBInstances",
                            {"SubnetIdentifier": subnet_id},
                        ),
                    )

        self._security_groups(node, graph, neighbors, instance.get("VpcSecurityGroups", []), "DescribeDBInstances")

        for group in instance.get("DBParameterGroups", []):
            pg_name = group.get("DBParameterGroupName")
            if not pg_name:
                continue
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    self._stub(
                        pg_name,
                        ResourceType.DB_PARAMETER_GROUP,
                        node,
                        attributes={"status": group.get("ParameterApplyStatus")},
                    ),
                    Relation.USES_PARAMETER_GROUP,
                    "DescribeDBInstances",
                    {"DBParameterGroupName": pg_name},
                ),
            )

        cluster_id = instance.get("DBClusterIdentifier")
        if cluster_id:
            cluster_arn = self._sibling_arn(node, "cluster", cluster_id)
            cluster_node = self._stub(
                cluster_arn,
                ResourceType.RDS_CLUSTER,
                node,
                name=cluster_id,
                arn=cluster_arn if cluster_arn != cluster_id else "",
            )
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    cluster_node,
                    Relation.CONTAINS,
                    "DescribeDBInstances",
                    {"DBClusterIdentifier": cluster_id},
                    reverse=True,
                ),
            )

        endpoint = (instance.get("Endpoint") or {}).get("Address")
        self._upstream(endpoint, node, graph, neighbors)

    # ------------------------------------------------------------------
    # Clusters
    # ------------------------------------------------------------------

    def _expand_cluster(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        identifier = node.name or node.arn
        _log.debug("expanding_rds_cluster", identifier=identifier)

        output = self._rds.describe_db_clusters(DBClusterIdentifier=identifier)
        clusters = output.get("DBClusters", [])
        if not clusters:
            raise ExpansionError(f"RDS cluster not found: {identifier}")
        cluster = clusters[0]
        self._refresh(graph, node, rds_cluster_to_node(cluster))

        for member in cluster.get("DBClusterMembers", []):
            member_id = member.get("DBInstanceIdentifier")
            if not member_id:
                continue
            member_arn = self._sibling_arn(node, "db", member_id)
            writer = member.get("IsClusterWriter")
            member_node = self._stub(
                member_arn,
                ResourceType.RDS_INSTANCE,
                node,
                name=member_id,
                arn=member_arn if member_arn != member_id else "",
                attributes={"isClusterWriter": writer},
            )
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    member_node,
                    Relation.CONTAINS,
                    "DescribeDBClusters",
                    {"DBInstanceIdentifier": member_id, "IsClusterWriter": writer},
                ),
            )

        group_name = cluster.get("DBSubnetGroup")
        if group_name:
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    self._stub(group_name, ResourceType.DB_SUBNET_GROUP, node),
                    Relation.USES_SUBNET_GROUP,
                    "DescribeDBClusters",
                    {"DBSubnetGroup": group_name},
                ),
            )

        self._security_groups(node, graph, neighbors, cluster.get("VpcSecurityGroups", []), "DescribeDBClusters")

        pg_name = cluster.get("DBClusterParameterGroup")
        if pg_name:
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    self._stub(pg_name, ResourceType.DB_CLUSTER_PARAMETER_GROUP, node),
                    Relation.USES_PARAMETER_GROUP,
                    "DescribeDBClusters",
                    {"DBClusterParameterGroup": pg_name},
                ),
            )

        self._upstream(cluster.get("Endpoint"), node, graph, neighbors)

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _security_groups(
        self,
        node: Node,
        graph: DependencyGraph,
        neighbors: list[str],
        groups: list[dict[str, Any]],
        api_call: str,
    ) -> None:
        for group in groups:
            sg_id = group.get("VpcSecurityGroupId")
            if not sg_id:
                continue
            self._append(
                neighbors,
                self._link(
                    graph,
                    node.id,
                    self._stub(sg_id, ResourceType.SECURITY_GROUP, node, attributes={"status": group.get("Status")}),
                    Relation.USES_SECURITY_GROUP,
                    api_call,
                    {"VpcSecurityGroupId": sg_id},
                ),
            )

    def _upstream(self, endpoint: str | None, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        if not endpoint or not self._config.heuristic_enabled(HEURISTIC_RDS_ENDPOINT):
            return
        neighbors.extend(self._heuristic.find_consumers(endpoint, node, graph))
