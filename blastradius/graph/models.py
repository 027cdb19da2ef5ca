"""Data structures for the resource dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from blastradius.graph.dependency_graph import DependencyGraph


class ResourceType(StrEnum):
    """Built-in resource type tags.

    Node.type is a plain string: expanders for new resource families may use
    tags that are not listed here.
    """

    LOAD_BALANCER = "LoadBalancer"
    LISTENER = "Listener"
    TARGET_GROUP = "TargetGroup"
    SECURITY_GROUP = "SecurityGroup"
    SUBNET = "Subnet"
    EC2_INSTANCE = "EC2Instance"
    IP_TARGET = "IPTarget"
    ECS_CLUSTER = "ECSCluster"
    ECS_SERVICE = "ECSService"
    TASK_DEFINITION = "TaskDefinition"
    IAM_ROLE = "IAMRole"
    SCALING_POLICY = "ScalingPolicy"
    LAMBDA = "Lambda"
    EVENT_SOURCE = "EventSource"
    SQS_QUEUE = "SQSQueue"
    DYNAMODB_STREAM = "DynamoDBStream"
    KINESIS_STREAM = "KinesisStream"
    KAFKA_CLUSTER = "KafkaCluster"
    DLQ = "DLQ"
    EVENT_DESTINATION = "EventDestination"
    RDS_INSTANCE = "RDSInstance"
    RDS_CLUSTER = "RDSCluster"
    DB_SUBNET_GROUP = "DBSubnetGroup"
    DB_PARAMETER_GROUP = "DBParameterGroup"
    DB_CLUSTER_PARAMETER_GROUP = "DBClusterParameterGroup"
    ROUTE53_RECORD = "Route53Record"


class Relation(StrEnum):
    """Built-in relation tags. Edge.relation accepts any string."""

    HAS_LISTENER = "has-listener"
    FORWARDS_TO = "forwards-to"
    ROUTES_TO_TARGET = "routes-to-target"
    USES_SECURITY_GROUP = "uses-security-group"
    USES_SUBNET = "uses-subnet"
    RUNS_IN_SUBNET = "runs-in-subnet"
    ALIASES_TO = "aliases-to"
    RUNS_IN = "runs-in"
    USES_TASK_DEFINITION = "uses-task-definition"
    REGISTERS_WITH = "registers-with"
    USES_TASK_ROLE = "uses-task-role"
    USES_EXECUTION_ROLE = "uses-execution-role"
    HAS_SCALING_POLICY = "has-scaling-policy"
    TRIGGERS = "triggers"
    SENDS_FAILURES_TO = "sends-failures-to"
    SENDS_SUCCESS_TO = "sends-success-to"
    USES_SUBNET_GROUP = "uses-subnet-group"
    CONTAINS = "contains"
    USES_PARAMETER_GROUP = "uses-parameter-group"
    CONNECTS_TO = "connects-to"


@dataclass
class Node:
    """One discovered AWS resource.

    ``id`` is the graph identity: the ARN when the resource has one, otherwise
    a synthetic stable key (security group id, Route 53 record key, ...).
    """

    id: str
    type: str
    name: str = ""
    arn: str = ""
    region: str = ""
    account: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Evidence:
    """Which API call and response fields justified an edge."""

    api_call: str
    fields: dict[str, Any] = field(default_factory=dict)
    heuristic: bool = False


@dataclass(frozen=True)
class Edge:
    """A directed, evidence-bearing relationship between two nodes."""

    source: str
    target: str
    relation: str
    evidence: Evidence


@dataclass
class GraphLevel:
    """Nodes reached at one BFS depth."""

    depth: int
    nodes: list[Node] = field(default_factory=list)


@dataclass
class DiscoveryResult:
    """Result of a discovery run."""

    graph: DependencyGraph
    root_id: str
    levels: list[list[str]] = field(default_factory=list)
    depth_reached: int = 0
    truncated: bool = False  # True if max_nodes stopped the traversal
