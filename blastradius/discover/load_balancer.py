"""Application/Network Load Balancer expander.

Forward links: security groups, subnets, listeners, target groups (from
listener default actions and listener rules) and registered targets.
Reverse link: Route 53 alias records that point at the load balancer's DNS
name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from blastradius.discover.arn import lambda_name_from_arn, region_and_account, target_group_name_from_arn
from blastradius.discover.base import Expander, paginate, tags_from_list
from blastradius.discover.errors import ExpansionError
from blastradius.discover.route53 import AliasResolver
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node, Relation, ResourceType
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover.load_balancer")

_TARGET_TYPES = {
    "instance": ResourceType.EC2_INSTANCE,
    "ip": ResourceType.IP_TARGET,
    "lambda": ResourceType.LAMBDA,
}


def load_balancer_to_node(lb: dict[str, Any]) -> Node:
    arn = lb["LoadBalancerArn"]
    region, account = region_and_account(arn)
    attributes: dict[str, Any] = {
        "type": lb.get("Type"),
        "scheme": lb.get("Scheme"),
        "state": lb.get("State", {}).get("Code"),
    }
    if lb.get("DNSName"):
        attributes["dnsName"] = lb["DNSName"]
    if lb.get("VpcId"):
        attributes["vpcId"] = lb["VpcId"]
    return Node(
        id=arn,
        type=ResourceType.LOAD_BALANCER,
        name=lb.get("LoadBalancerName", ""),
        arn=arn,
        region=region,
        account=account,
        attributes=attributes,
    )


def listener_to_node(listener: dict[str, Any], region: str, account: str) -> Node:
    arn = listener["ListenerArn"]
    protocol = listener.get("Protocol", "")
    port = listener.get("Port")
    attributes: dict[str, Any] = {"port": port, "protocol": protocol}
    certificates = listener.get("Certificates") or []
    if certificates:
        attributes["certificateArn"] = certificates[0].get("CertificateArn")
    return Node(
        id=arn,
        type=ResourceType.LISTENER,
        name=f"{protocol}:{port}" if protocol and port is not None else arn,
        arn=arn,
        region=region,
        account=account,
        attributes=attributes,
    )


def target_group_to_node(tg: dict[str, Any]) -> Node:
    arn = tg["TargetGroupArn"]
    region, account = region_and_account(arn)
    attributes: dict[str, Any] = {
        "targetType": tg.get("TargetType"),
        "protocol": tg.get("Protocol"),
        "port": tg.get("Port"),
    }
    if tg.get("VpcId"):
        attributes["vpcId"] = tg["VpcId"]
    return Node(
        id=arn,
        type=ResourceType.TARGET_GROUP,
        name=tg.get("TargetGroupName", ""),
        arn=arn,
        region=region,
        account=account,
        attributes=attributes,
    )


def _action_target_groups(actions: list[dict[str, Any]]) -> list[str]:
    """Target group ARNs referenced by forward actions, in order, without repeats."""
    arns: list[str] = []
    for action in actions:
        candidates = [action.get("TargetGroupArn")]
        candidates += [tg.get("TargetGroupArn") for tg in action.get("ForwardConfig", {}).get("TargetGroups", [])]
        for arn in candidates:
            if arn and arn not in arns:
                arns.append(arn)
    return arns


class LoadBalancerExpander(Expander):
    """Expands ELBv2 load balancers."""

    resource_types = (ResourceType.LOAD_BALANCER,)

    def __init__(self, clients: AWSClients, config: DiscoveryConfig) -> None:
        super().__init__(clients, config)
        self._elbv2 = clients.elbv2
        self._aliases = AliasResolver(clients)

    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        _log.debug("expanding_load_balancer", arn=node.arn or node.id)

        if node.arn:
            output = self._elbv2.describe_load_balancers(LoadBalancerArns=[node.arn])
        else:
            output = self._elbv2.describe_load_balancers(Names=[node.name])
        lbs = output.get("LoadBalancers", [])
        if not lbs:
            raise ExpansionError(f"load balancer not found: {node.arn or node.name}")
        lb = lbs[0]
        self._refresh(graph, node, load_balancer_to_node(lb))

        for sg_id in lb.get("SecurityGroups", []):
            neighbor = self._link(
                graph,
                node.id,
                self._stub(sg_id, ResourceType.SECURITY_GROUP, node, attributes={"attachedTo": node.name}),
                Relation.USES_SECURITY_GROUP,
                "DescribeLoadBalancers",
                {"SecurityGroups": lb.get("SecurityGroups", [])},
            )
            if neighbor:
                neighbors.append(neighbor)

        for az in lb.get("AvailabilityZones", []):
            subnet_id = az.get("SubnetId")
            if not subnet_id:
                continue
            neighbor = self._link(
                graph,
                node.id,
                self._stub(subnet_id, ResourceType.SUBNET, node, attributes={"availabilityZone": az.get("ZoneName")}),
                Relation.USES_SUBNET,
                "DescribeLoadBalancers",
                {"SubnetId": subnet_id, "ZoneName": az.get("ZoneName")},
            )
            if neighbor:
                neighbors.append(neighbor)

        lb_arn = lb["LoadBalancerArn"]
        self._enrich("tags", node, lambda: self._tags(lb_arn, node, graph))
        neighbors.extend(self._enrich("listeners", node, lambda: self._listeners(lb_arn, node, graph)))

        dns_name = lb.get("DNSName")
        if dns_name:
            neighbors.extend(
                self._enrich("route53_aliases", node, lambda: self._aliases.find_aliases(dns_name, node, graph))
            )

    def _tags(self, lb_arn: str, node: Node, graph: DependencyGraph) -> list[str]:
        output = self._elbv2.describe_tags(ResourceArns=[lb_arn])
        for description in output.get("TagDescriptions", []):
            if description.get("ResourceArn") == lb_arn:
                graph.merge_node(Node(id=node.id, type=node.type, tags=tags_from_list(description.get("Tags"))))
        return []

    def _listeners(self, lb_arn: str, node: Node, graph: DependencyGraph) -> list[str]:
        neighbors: list[str] = []
        for listener in paginate(self._elbv2, "describe_listeners", "Listeners", LoadBalancerArn=lb_arn):
            listener_node = listener_to_node(listener, node.region, node.account)
            linked = self._link(
                graph,
                node.id,
                listener_node,
                Relation.HAS_LISTENER,
                "DescribeListeners",
                {
                    "ListenerArn": listener["ListenerArn"],
                    "Port": listener.get("Port"),
                    "Protocol": listener.get("Protocol"),
                },
            )
            if linked is None:
                continue
            neighbors.append(linked)

            tg_arns = _action_target_groups(listener.get("DefaultActions", []))
            rule_arns = self._enrich(
                "listener_rules",
                listener_node,
                lambda listener_arn=listener["ListenerArn"]: self._rule_target_groups(listener_arn),
            )
            tg_arns += [arn for arn in rule_arns if arn not in tg_arns]

            for tg_arn in tg_arns:
                neighbors.extend(
                    self._enrich(
                        "target_group",
                        listener_node,
                        lambda tg_arn=tg_arn, source=listener_node: self._target_group(tg_arn, source, graph),
                    )
                )
        return neighbors

    def _rule_target_groups(self, listener_arn: str) -> list[str]:
        """Target groups forwarded to by non-default listener rules."""
        arns: list[str] = []
        for rule in paginate(self._elbv2, "describe_rules", "Rules", ListenerArn=listener_arn):
            if rule.get("IsDefault"):
                continue
            arns += [arn for arn in _action_target_groups(rule.get("Actions", [])) if arn not in arns]
        return arns

    def _target_group(self, tg_arn: str, source: Node, graph: DependencyGraph) -> list[str]:
        """Link ``source`` to a target group, describing it once per run.

        A group first seen as a stub (e.g. from an ECS service) is still
        described here, so its targets do not depend on expansion order.
        """
        fields = {"TargetGroupArn": tg_arn}
        if not graph.claim(f"target-group:{tg_arn}"):
            stub = self._stub(
                tg_arn, ResourceType.TARGET_GROUP, source, name=target_group_name_from_arn(tg_arn), arn=tg_arn
            )
            linked = self._link(graph, source.id, stub, Relation.FORWARDS_TO, "DescribeListeners", fields)
            return [linked] if linked else []

        groups = self._elbv2.describe_target_groups(TargetGroupArns=[tg_arn]).get("TargetGroups", [])
        if not groups:
            raise ExpansionError(f"target group not found: {tg_arn}")
        tg = groups[0]
        tg_node = target_group_to_node(tg)
        linked = self._link(graph, source.id, tg_node, Relation.FORWARDS_TO, "DescribeListeners", fields)
        if linked is None:
            return []
        neighbors = [linked]
        neighbors.extend(self._enrich("target_health", tg_node, lambda: self._targets(tg, tg_node, graph)))
        return neighbors

    def _targets(self, tg: dict[str, Any], tg_node: Node, graph: DependencyGraph) -> list[str]:
        target_type = _TARGET_TYPES.get(tg.get("TargetType", ""))
        if target_type is None:
            # "alb" targets and unknown types have no node family here.
            return []
        neighbors: list[str] = []
        output = self._elbv2.describe_target_health(TargetGroupArn=tg["TargetGroupArn"])
        for description in output.get("TargetHealthDescriptions", []):
            target = description.get("Target") or {}
            target_id = target.get("Id")
            if not target_id:
                continue
            if target_type == ResourceType.LAMBDA:
                target_node = self._stub(
                    target_id, target_type, tg_node, name=lambda_name_from_arn(target_id), arn=target_id
                )
            else:
                target_node = self._stub(target_id, target_type, tg_node, attributes={"port": target.get("Port")})
            linked = self._link(
                graph,
                tg_node.id,
                target_node,
                Relation.ROUTES_TO_TARGET,
                "DescribeTargetHealth",
                {"TargetId": target_id, "TargetHealth": description.get("TargetHealth")},
            )
            if linked:
                neighbors.append(linked)
        return neighbors
