"""Lambda function expander.

Forward links: execution role, VPC security groups/subnets, dead-letter
target and async invoke destinations. Event-source mappings are recorded as
``source -triggers-> function``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from blastradius.discover.arn import name_from_arn, region_and_account, role_name_from_arn
from blastradius.discover.base import Expander, error_code, paginate
from blastradius.graph.dependency_graph import DependencyGraph
from blastradius.graph.models import Node, Relation, ResourceType
from blastradius.observability.logging import get_logger

if TYPE_CHECKING:
    from blastradius.aws.clients import AWSClients
    from blastradius.models.config import DiscoveryConfig

_log = get_logger("discover.lambda")

# Checked in order; first substring found in the source ARN wins.
_EVENT_SOURCE_TYPES = (
    (":sqs:", ResourceType.SQS_QUEUE),
    (":dynamodb:", ResourceType.DYNAMODB_STREAM),
    (":kinesis:", ResourceType.KINESIS_STREAM),
    (":kafka:", ResourceType.KAFKA_CLUSTER),
)


def classify_event_source(source_arn: str) -> str:
    """Pick a display type for an event source ARN; unknown sources stay generic."""
    for marker, type_ in _EVENT_SOURCE_TYPES:
        if marker in source_arn:
            return type_
    return ResourceType.EVENT_SOURCE


def lambda_function_to_node(config: dict[str, Any], tags: dict[str, str] | None = None) -> Node:
    arn = config["FunctionArn"]
    region, account = region_and_account(arn)
    attributes: dict[str, Any] = {
        "runtime": config.get("Runtime"),
        "handler": config.get("Handler"),
        "state": config.get("State"),
        "lastModified": config.get("LastModified"),
    }
    for key, attr in (
        ("MemorySize", "memorySize"),
        ("Timeout", "timeout"),
        ("CodeSize", "codeSize"),
        ("Description", "description"),
        ("PackageType", "packageType"),
    ):
        if config.get(key):
            attributes[attr] = config[key]
    # Only the count: variable values may hold secrets.
    variables = config.get("Environment", {}).get("Variables")
    if variables:
        attributes["environmentVariablesCount"] = len(variables)
    layers = [layer["Arn"] for layer in config.get("Layers", []) if layer.get("Arn")]
    if layers:
        attributes["layers"] = layers
    return Node(
        id=arn,
        type=ResourceType.LAMBDA,
        name=config.get("FunctionName", ""),
        arn=arn,
        region=region,
        account=account,
        tags=dict(tags or {}),
        attributes=attributes,
    )


class LambdaExpander(Expander):
    """Expands Lambda functions."""

    resource_types = (ResourceType.LAMBDA,)

    def __init__(self, clients: AWSClients, config: DiscoveryConfig) -> None:
        super().__init__(clients, config)
        self._lambda = clients.lambda_

    def _expand(self, node: Node, graph: DependencyGraph, neighbors: list[str]) -> None:
        function_name = node.name or node.arn
        _log.debug("expanding_lambda_function", function=function_name)

        kwargs = {"FunctionName": function_name}
        if node.attributes.get("qualifier"):
            kwargs["Qualifier"] = node.attributes["qualifier"]
        output = self._lambda.get_function(**kwargs)
        config = output["Configuration"]
        self._refresh(graph, node, lambda_function_to_node(config, output.get("Tags")))

        role_arn = config.get("Role")
        if role_arn:
            neighbor = self._link(
                graph,
                node.id,
                self._stub(role_arn, ResourceType.IAM_ROLE, node, name=role_name_from_arn(role_arn), arn=role_arn),
                Relation.USES_EXECUTION_ROLE,
                "GetFunction",
                {"Role": role_arn},
            )
            if neighbor:
                neighbors.append(neighbor)

        vpc = config.get("VpcConfig") or {}
        if vpc.get("VpcId"):
            for sg_id in vpc.get("SecurityGroupIds", []):
                neighbor = self._link(
                    graph,
                    node.id,
                    self._stub(sg_id, ResourceType.SECURITY_GROUP, node),
                    Relation.USES_SECURITY_GROUP,
                    "GetFunction",
                    {"VpcConfig": vpc},
                )
                if neighbor:
                    neighbors.append(neighbor)
            for subnet_id in vpc.get("SubnetIds", []):
                neighbor = self._link(
                    graph,
                    node.id,
                    self._stub(subnet_id, ResourceType.SUBNET, node),
                    Relation.RUNS_IN_SUBNET,
                    "GetFunction",
                    {"VpcConfig": vpc},
                )
                if neighbor:
                    neighbors.append(neighbor)

        dlq_arn = (config.get("DeadLetterConfig") or {}).get("TargetArn")
        if dlq_arn:
            neighbor = self._link(
                graph,
                node.id,
                self._stub(dlq_arn, ResourceType.DLQ, node, name=name_from_arn(dlq_arn), arn=dlq_arn),
                Relation.SENDS_FAILURES_TO,
                "GetFunction",
                {"TargetArn": dlq_arn},
            )
            if neighbor:
                neighbors.append(neighbor)

        function_arn = config["FunctionArn"]
        neighbors.extend(
            self._enrich("event_source_mappings", node, lambda: self._event_sources(function_arn, node, graph))
        )
        neighbors.extend(
            self._enrich("invoke_destinations", node, lambda: self._destinations(kwargs, node, graph))
        )

    def _event_sources(self, function_arn: str, function: Node, graph: DependencyGraph) -> list[str]:
        neighbors: list[str] = []
        mappings = paginate(
            self._lambda, "list_event_source_mappings", "EventSourceMappings", FunctionName=function_arn
        )
        for mapping in mappings:
            source_arn = mapping.get("EventSourceArn")
            if not source_arn:
                continue
            attributes: dict[str, Any] = {"state": mapping.get("State"), "batchSize": mapping.get("BatchSize")}
            if mapping.get("UUID"):
                attributes["uuid"] = mapping["UUID"]
            source_node = self._stub(
                source_arn,
                classify_event_source(source_arn),
                function,
                name=name_from_arn(source_arn),
                arn=source_arn,
                attributes=attributes,
            )
            linked = self._link(
                graph,
                function.id,
                source_node,
                Relation.TRIGGERS,
                "ListEventSourceMappings",
                {"EventSourceArn": source_arn, "UUID": mapping.get("UUID"), "State": mapping.get("State")},
                reverse=True,
            )
            if linked is None:
                continue
            neighbors.append(linked)

            on_failure = (mapping.get("DestinationConfig") or {}).get("OnFailure") or {}
            destination = on_failure.get("Destination")
            if destination:
                dest_node = self._stub(
                    destination,
                    ResourceType.EVENT_DESTINATION,
                    function,
                    name=name_from_arn(destination),
                    arn=destination,
                )
                neighbor = self._link(
                    graph,
                    source_node.id,
                    dest_node,
                    Relation.SENDS_FAILURES_TO,
                    "ListEventSourceMappings",
                    {"Destination": destination},
                )
                if neighbor:
                    neighbors.append(neighbor)
        return neighbors

    def _destinations(self, function_ref: dict[str, str], function: Node, graph: DependencyGraph) -> list[str]:
        # Destinations are configured per version or alias.
        try:
            output = self._lambda.get_function_event_invoke_config(**function_ref)
        except ClientError as exc:
            if error_code(exc) != "ResourceNotFoundException":
                raise
            _log.debug("no_event_invoke_config", function=function_ref["FunctionName"])
            return []

        neighbors: list[str] = []
        destination_config = output.get("DestinationConfig") or {}
        for key, relation in (
            ("OnSuccess", Relation.SENDS_SUCCESS_TO),
            ("OnFailure", Relation.SENDS_FAILURES_TO),
        ):
            destination = (destination_config.get(key) or {}).get("Destination")
            if not destination:
                continue
            dest_node = self._stub(
                destination,
                ResourceType.EVENT_DESTINATION,
                function,
                name=name_from_arn(destination),
                arn=destination,
                attributes={"destinationType": key},
            )
            neighbor = self._link(
                graph,
                function.id,
                dest_node,
                relation,
                "GetFunctionEventInvokeConfig",
                {"Destination": destination},
            )
            if neighbor:
                neighbors.append(neighbor)
        return neighbors
