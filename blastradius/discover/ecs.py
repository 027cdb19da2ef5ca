"""ECS service expander.

Discovers the cluster, task definition (and its IAM roles), target groups the
service registers with, awsvpc security groups/subnets, and Application Auto
Scaling policies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from blastradius.discover.arn import (
    region_and_account,
    role_name_from_arn,
    split_arn,
    target_group_name_from_arn,
)
from blastradius.discover.base import Expander, paginate, tags_from_list
from blastradius.discover.errors import ExpansionError
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node, Relation, ResourceType
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover.ecs")


def ecs_service_to_node(svc: dict[str, Any], cluster: str) -> Node:
    arn = svc["serviceArn"]
    region, account = region_and_account(arn)
    attributes: dict[str, Any] = {
        "cluster": cluster,
        "status": svc.get("status"),
        "desiredCount": svc.get("desiredCount"),
        "runningCount": svc.get("runningCount"),
        "launchType": svc.get("launchType"),
    }
    if svc.get("taskDefinition"):
        attributes["taskDefinition"] = svc["taskDefinition"]
    return Node(
        id=arn,
        type=ResourceType.ECS_SERVICE,
        name=svc.get("serviceName", ""),
        arn=arn,
        region=region,
        account=account,
        tags=tags_from_list(svc.get("tags"), key="key", value="value"),
        attributes=attributes,
    )


def task_definition_to_node(td: dict[str, Any], region: str, account: str) -> Node:
    arn = td["taskDefinitionArn"]
    family = td.get("family", "")
    attributes: dict[str, Any] = {
        "family": family,
        "revision": td.get("revision"),
        "cpu": td.get("cpu"),
        "memory": td.get("memory"),
        "networkMode": td.get("networkMode"),
        "requiresCompatibilities": td.get("requiresCompatibilities", []),
    }
    containers = []
    for container in td.get("containerDefinitions", []):
        info: dict[str, Any] = {"name": container.get("name"), "image": container.get("image")}
        if container.get("cpu"):
            info["cpu"] = container["cpu"]
        if container.get("memory") is not None:
            info["memory"] = container["memory"]
        containers.append(info)
    if containers:
        attributes["containers"] = containers
    return Node(
        id=arn,
        type=ResourceType.TASK_DEFINITION,
        name=f"{family}:{td.get('revision')}" if family else arn,
        arn=arn,
        region=region,
        account=account,
        attributes=attributes,
    )


def scaling_policy_to_node(policy: dict[str, Any], region: str, account: str) -> Node:
    arn = policy["PolicyARN"]
    attributes: dict[str, Any] = {"policyType": policy.get("PolicyType")}
    target_tracking = policy.get("TargetTrackingScalingPolicyConfiguration")
    if target_tracking:
        attributes["targetValue"] = target_tracking.get("TargetValue")
    return Node(
        id=arn,
        type=ResourceType.SCALING_POLICY,
        name=policy.get("PolicyName", ""),
        arn=arn,
        region=region,
        account=account,
        attributes=attributes,
    )


def cluster_from_service_arn(arn: str) -> str:
    """Cluster name from ``service/<cluster>/<name>``; empty for legacy ARNs."""
    parsed = split_arn(arn)
    if parsed is None:
        return ""
    segments = parsed.resource.split("/")
    if len(segments) >= 3 and segments[0] == "service":
        return segments[1]
    return ""


class ECSServiceExpander(Expander):
    """Expands ECS services."""

    resource_types = (ResourceType.ECS_SERVICE,)

    def __init__(self, clients: AWSClients, config: DiscoveryConfig) -> None:
        super().__init__(clients, config)
        self._ecs = clients.ecs
        self._autoscaling = clients.application_autoscaling

    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        cluster = node.attributes.get("cluster") or cluster_from_service_arn(node.arn)
        if not cluster:
            raise ExpansionError(f"cannot determine cluster for ECS service: {node.id}")
        _log.debug("expanding_ecs_service", arn=node.arn, cluster=cluster)

        output = self._ecs.describe_services(cluster=cluster, services=[node.arn or node.name], include=["TAGS"])
        services = output.get("services", [])
        if not services:
            raise ExpansionError(f"ECS service not found: {node.id}")
        svc = services[0]
        self._refresh(graph, node, ecs_service_to_node(svc, cluster))

        cluster_arn = svc.get("clusterArn", "")
        cluster_node = self._stub(
            cluster_arn or cluster,
            ResourceType.ECS_CLUSTER,
            node,
            name=cluster,
            arn=cluster_arn,
        )
        neighbor = self._link(
            graph, node.id, cluster_node, Relation.RUNS_IN, "DescribeServices", {"ClusterArn": cluster_arn}
        )
        if neighbor:
            neighbors.append(neighbor)

        td_arn = svc.get("taskDefinition")
        if td_arn:
            neighbors.extend(
                self._enrich("task_definition", node, lambda: self._task_definition(td_arn, node, graph))
            )

        for lb in svc.get("loadBalancers", []):
            tg_arn = lb.get("targetGroupArn")
            if not tg_arn:
                continue
            fields = {
                "TargetGroupArn": tg_arn,
                "ContainerName": lb.get("containerName"),
                "ContainerPort": lb.get("containerPort"),
            }
            tg_node = self._stub(
                tg_arn, ResourceType.TARGET_GROUP, node, name=target_group_name_from_arn(tg_arn), arn=tg_arn
            )
            neighbor = self._link(graph, node.id, tg_node, Relation.REGISTERS_WITH, "DescribeServices", fields)
            if neighbor:
                neighbors.append(neighbor)

        awsvpc = svc.get("networkConfiguration", {}).get("awsvpcConfiguration", {})
        for sg_id in awsvpc.get("securityGroups", []):
            neighbor = self._link(
                graph,
                node.id,
                self._stub(sg_id, ResourceType.SECURITY_GROUP, node),
                Relation.USES_SECURITY_GROUP,
                "DescribeServices",
                {"SecurityGroups": awsvpc.get("securityGroups", [])},
            )
            if neighbor:
                neighbors.append(neighbor)
        for subnet_id in awsvpc.get("subnets", []):
            neighbor = self._link(
                graph,
                node.id,
                self._stub(subnet_id, ResourceType.SUBNET, node),
                Relation.RUNS_IN_SUBNET,
                "DescribeServices",
                {"Subnets": awsvpc.get("subnets", [])},
            )
            if neighbor:
                neighbors.append(neighbor)

        service_name = svc.get("serviceName") or node.name
        neighbors.extend(
            self._enrich(
                "scaling_policies",
                node,
                lambda: self._scaling_policies(cluster, service_name, node, graph),
            )
        )

    def _task_definition(self, td_arn: str, service: Node, graph: DependencyGraph) -> list[str]:
        fields = {"TaskDefinition": td_arn}
        if not graph.claim(f"task-definition:{td_arn}"):
            # Another service in this run already described it.
            stub = self._stub(
                td_arn, ResourceType.TASK_DEFINITION, service, name=td_arn.rsplit("/", 1)[-1], arn=td_arn
            )
            linked = self._link(graph, service.id, stub, Relation.USES_TASK_DEFINITION, "DescribeServices", fields)
            return [linked] if linked else []

        td = self._ecs.describe_task_definition(taskDefinition=td_arn)["taskDefinition"]
        td_node = task_definition_to_node(td, service.region, service.account)
        linked = self._link(graph, service.id, td_node, Relation.USES_TASK_DEFINITION, "DescribeServices", fields)
        if linked is None:
            return []
        neighbors = [linked]

        for key, relation in (
            ("taskRoleArn", Relation.USES_TASK_ROLE),
            ("executionRoleArn", Relation.USES_EXECUTION_ROLE),
        ):
            role_arn = td.get(key)
            if not role_arn:
                continue
            role_node = self._stub(
                role_arn, ResourceType.IAM_ROLE, service, name=role_name_from_arn(role_arn), arn=role_arn
            )
            api_field = key[0].upper() + key[1:]
            neighbor = self._link(
                graph, td_node.id, role_node, relation, "DescribeTaskDefinition", {api_field: role_arn}
            )
            if neighbor:
                neighbors.append(neighbor)
        return neighbors

    def _scaling_policies(self, cluster: str, service_name: str, service: Node, graph: DependencyGraph) -> list[str]:
        resource_id = f"service/{cluster}/{service_name}"
        targets = paginate(
            self._autoscaling,
            "describe_scalable_targets",
            "ScalableTargets",
            ServiceNamespace="ecs",
            ResourceIds=[resource_id],
        )
        if not targets:
            return []

        neighbors: list[str] = []
        policies = paginate(
            self._autoscaling,
            "describe_scaling_policies",
            "ScalingPolicies",
            ServiceNamespace="ecs",
            ResourceId=resource_id,
        )
        for policy in policies:
            policy_node = scaling_policy_to_node(policy, service.region, service.account)
            neighbor = self._link(
                graph,
                service.id,
                policy_node,
                Relation.HAS_SCALING_POLICY,
                "DescribeScalingPolicies",
                {"PolicyName": policy.get("PolicyName"), "PolicyARN": policy.get("PolicyARN")},
            )
            if neighbor:
                neighbors.append(neighbor)
        return neighbors
